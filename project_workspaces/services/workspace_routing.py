"""Workspace naming rules shared by activation, exit and window recovery."""

from typing import Callable, Optional, Sequence

from ..constants import FALLBACK_WORKSPACE, WORKSPACE_PREFIX


def is_project_workspace(name: str) -> bool:
    return name.startswith(WORKSPACE_PREFIX)


def project_id_from_workspace(name: str) -> Optional[str]:
    """Extract the project id from ``ap-<id>`` (None for other workspaces)."""
    if not is_project_workspace(name):
        return None
    project_id = name[len(WORKSPACE_PREFIX):]
    return project_id or None


def workspace_name_for_project(project_id: str) -> str:
    return f"{WORKSPACE_PREFIX}{project_id}"


def preferred_non_project_workspace(
    workspaces: Sequence[str],
    has_windows: Callable[[str], bool],
) -> str:
    """Pick where non-project windows should go.

    Prefers the first non-project workspace with windows, then the first
    non-project workspace, then ``FALLBACK_WORKSPACE``.
    """
    non_project = [ws for ws in workspaces if not is_project_workspace(ws)]
    for workspace in non_project:
        if has_windows(workspace):
            return workspace
    if non_project:
        return non_project[0]
    return FALLBACK_WORKSPACE
