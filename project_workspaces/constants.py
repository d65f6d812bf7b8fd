"""Centralized filesystem paths and constants for project workspaces.

Single source of truth for every file path used across the package, plus the
identifiers shared by the orchestrator, launchers and window positioner.
"""

import os
from pathlib import Path
from typing import Final


# Workspace and window tagging
WORKSPACE_PREFIX: Final[str] = "ap-"
WINDOW_TOKEN_PREFIX: Final[str] = "AP:"
FALLBACK_WORKSPACE: Final[str] = "1"

# Application bundle identifiers
AEROSPACE_BUNDLE_ID: Final[str] = "bobko.aerospace"
IDE_BUNDLE_ID: Final[str] = "com.microsoft.VSCode"
BROWSER_BUNDLE_ID: Final[str] = "com.google.Chrome"


def window_token(project_id: str) -> str:
    """Return the title token that tags a project's windows (``AP:<id>``)."""
    return f"{WINDOW_TOKEN_PREFIX}{project_id}"


class DataPaths:
    """Canonical filesystem paths for config, state, and logs.

    Paths are derived from a home directory so tests can root them in a
    temporary directory. Does not perform any I/O.

    Example:
        paths = DataPaths.default()
        recency = paths.recent_projects_file
    """

    def __init__(self, home: Path):
        self.home = Path(home)

    @classmethod
    def default(cls) -> "DataPaths":
        """Paths rooted at the current user's home directory."""
        return cls(Path.home())

    @property
    def config_dir(self) -> Path:
        return self.home / ".config" / "agent-panel"

    @property
    def config_file(self) -> Path:
        """Config file, overridable via ``AGENT_PANEL_CONFIG``."""
        override = os.environ.get("AGENT_PANEL_CONFIG")
        if override:
            return Path(override).expanduser()
        return self.config_dir / "config.json"

    @property
    def state_dir(self) -> Path:
        return self.home / ".local" / "state" / "agent-panel"

    @property
    def recent_projects_file(self) -> Path:
        return self.state_dir / "recent-projects.json"

    @property
    def window_layouts_file(self) -> Path:
        return self.state_dir / "window-layouts.json"

    @property
    def focus_history_file(self) -> Path:
        return self.state_dir / "focus-history.json"

    @property
    def chrome_tabs_dir(self) -> Path:
        return self.state_dir / "chrome-tabs"

    def chrome_tabs_file(self, project_id: str) -> Path:
        return self.chrome_tabs_dir / f"{project_id}.json"

    @property
    def logs_dir(self) -> Path:
        return self.state_dir / "logs"

    @property
    def log_file(self) -> Path:
        return self.logs_dir / "agent-panel.log"
