"""
Chrome tab persistence, cold-start tab resolution and tab capture.

A saved snapshot is the complete truth for a project: on the next activation
its URLs are opened verbatim. Only when no snapshot exists are the tabs
resolved from config (pinned tabs, git remote, default tabs).
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from pydantic import ValidationError

from ..config import atomic_write_json
from ..errors import CommandError, StoreError
from ..models import ChromeConfig, ChromeTabSnapshot, ProjectConfig
from .command_runner import CommandRunner
from .launchers import applescript_escape, osascript_args

logger = logging.getLogger(__name__)

CAPTURE_TIMEOUT_SECONDS = 10.0
GIT_TIMEOUT_SECONDS = 5.0


def _dedupe(urls: Sequence[str], seen: Optional[set] = None) -> List[str]:
    seen = set() if seen is None else set(seen)
    result = []
    for url in urls:
        if url not in seen:
            seen.add(url)
            result.append(url)
    return result


class ChromeTabStore:
    """Per-project snapshot files (``chrome-tabs/<id>.json``)."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _file(self, project_id: str) -> Path:
        return self.directory / f"{project_id}.json"

    def save(self, snapshot: ChromeTabSnapshot, project_id: str) -> None:
        """Write a snapshot atomically.

        Raises:
            StoreError: If the file cannot be written
        """
        try:
            atomic_write_json(self._file(project_id), snapshot.model_dump(mode="json"), prefix=".tabs-")
        except OSError as e:
            raise StoreError(f"Failed to write tab snapshot for {project_id}: {e}") from e
        logger.debug(f"chrome_tabs.saved project={project_id} count={len(snapshot.urls)}")

    def load(self, project_id: str) -> Optional[ChromeTabSnapshot]:
        """Load a snapshot, or None when the project has none.

        Raises:
            StoreError: If the file exists but cannot be read or decoded
        """
        path = self._file(project_id)
        if not path.exists():
            return None
        try:
            with open(path, "r") as f:
                data = json.load(f)
            return ChromeTabSnapshot.model_validate(data)
        except OSError as e:
            raise StoreError(f"Failed to read tab snapshot for {project_id}: {e}") from e
        except (json.JSONDecodeError, ValidationError) as e:
            raise StoreError(f"Failed to decode tab snapshot for {project_id}: {e}") from e

    def delete(self, project_id: str) -> None:
        """Remove a snapshot (missing is fine).

        Raises:
            StoreError: If the file exists but cannot be removed
        """
        path = self._file(project_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to delete tab snapshot for {project_id}: {e}") from e


@dataclass(frozen=True)
class ResolvedTabs:
    """Cold-start tab set: always-open tabs are leftmost."""
    always_open: List[str] = field(default_factory=list)
    regular: List[str] = field(default_factory=list)

    @property
    def ordered_urls(self) -> List[str]:
        return self.always_open + self.regular


class ChromeTabResolver:
    """Computes the tab set for a project that has no saved snapshot."""

    @staticmethod
    def resolve(
        chrome: ChromeConfig,
        project: ProjectConfig,
        git_remote_url: Optional[str] = None,
    ) -> ResolvedTabs:
        """Resolve tabs from config.

        Args:
            chrome: Global Chrome config
            project: Project being activated
            git_remote_url: ``origin`` URL, opened only when ``open_git_remote`` is set

        Returns:
            Always-open tabs (global pinned, project pinned, git remote) and
            regular tabs (global and project defaults not already open), each
            de-duplicated in order
        """
        always_open = [*chrome.pinned_tabs, *project.chrome_pinned_tabs]
        if chrome.open_git_remote and git_remote_url:
            always_open.append(git_remote_url)
        always_open = _dedupe(always_open)

        regular = _dedupe(
            [*chrome.default_tabs, *project.chrome_default_tabs],
            seen=set(always_open),
        )
        return ResolvedTabs(always_open=always_open, regular=regular)


class ChromeTabCapture:
    """Reads tab URLs of the Chrome window with a given name via AppleScript."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    @staticmethod
    def build_script(window_title: str) -> List[str]:
        escaped = applescript_escape(window_title)
        return [
            'tell application "Google Chrome"',
            "  set targetWindow to missing value",
            "  repeat with w in windows",
            f'    if given name of w is "{escaped}" then',
            "      set targetWindow to w",
            "      exit repeat",
            "    end if",
            "  end repeat",
            "  if targetWindow is missing value then",
            '    return ""',
            "  end if",
            "  set urlList to {}",
            "  repeat with t in tabs of targetWindow",
            "    set end of urlList to URL of t",
            "  end repeat",
            "  set AppleScript's text item delimiters to \"\\n\"",
            "  return urlList as text",
            "end tell",
        ]

    def capture_tab_urls(self, window_title: str) -> List[str]:
        """Return the tab URLs of the named window (empty if no such window).

        Raises:
            CommandError: osascript could not run, timed out or exited non-zero
        """
        args = osascript_args(self.build_script(window_title))
        result = self.runner.run("osascript", args, timeout=CAPTURE_TIMEOUT_SECONDS)
        if result.exit_code != 0:
            raise CommandError(
                f"osascript (capture tabs) failed with exit code {result.exit_code}",
                command="osascript",
                detail=result.stderr.strip() or None,
            )
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]


class GitRemoteResolver:
    """Resolves ``origin`` for a local project; None on any failure."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def resolve(self, project_path: Path) -> Optional[str]:
        try:
            result = self.runner.run(
                "git",
                ["-C", str(project_path), "remote", "get-url", "origin"],
                timeout=GIT_TIMEOUT_SECONDS,
            )
        except CommandError as e:
            logger.debug(f"git remote lookup failed for {project_path}: {e}")
            return None
        if result.exit_code != 0:
            return None
        url = result.stdout.strip()
        return url or None
