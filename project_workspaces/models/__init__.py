"""
Data models for project workspaces.

Pydantic models for geometry, AeroSpace snapshots, configuration and
operation results.
"""

from .geometry import (
    Point,
    Rect,
    RecoveryOutcome,
    SavedWindowFrames,
    ScreenMode,
    WindowLayout,
    WindowPositionResult,
)
from .project import (
    AgentLayerConfig,
    AppConfig,
    ChromeConfig,
    LayoutConfig,
    ProjectConfig,
    color_hex,
    normalize_id,
    resolve_color,
)
from .results import (
    ActivationOutcome,
    ChromeTabSnapshot,
    CloseOutcome,
    ProjectWorkspaceState,
)
from .window import CapturedFocus, FocusHistory, FocusHistoryEntry, ManagedWindow, WorkspaceSummary

__all__ = [
    "Point",
    "Rect",
    "RecoveryOutcome",
    "SavedWindowFrames",
    "ScreenMode",
    "WindowLayout",
    "WindowPositionResult",
    "AgentLayerConfig",
    "AppConfig",
    "ChromeConfig",
    "LayoutConfig",
    "ProjectConfig",
    "color_hex",
    "normalize_id",
    "resolve_color",
    "ActivationOutcome",
    "ChromeTabSnapshot",
    "CloseOutcome",
    "ProjectWorkspaceState",
    "CapturedFocus",
    "FocusHistory",
    "FocusHistoryEntry",
    "ManagedWindow",
    "WorkspaceSummary",
]
