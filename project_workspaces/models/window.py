"""
AeroSpace Window and Workspace Models

Snapshots parsed from ``aerospace`` CLI output. They are re-queried on every
use and never cached across activations.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..constants import WORKSPACE_PREFIX


class ManagedWindow(BaseModel):
    """Window as reported by ``aerospace list-windows``."""

    model_config = {"frozen": True}

    window_id: int = Field(..., description="AeroSpace window id")
    app_bundle_id: str = Field(..., description="App bundle identifier")
    workspace: str = Field(..., description="Workspace the window is on")
    window_title: str = Field(default="", description="Window title")

    def has_token(self, token: str) -> bool:
        """Check if the title carries a project discovery token."""
        return token in self.window_title


class WorkspaceSummary(BaseModel):
    """Workspace name plus focus flag from one ``list-workspaces`` query."""

    model_config = {"frozen": True}

    workspace: str
    is_focused: bool


class CapturedFocus(BaseModel):
    """Focus snapshot taken before activation, used to restore context later.

    Only ``workspace`` is inspected by the orchestrator (to decide whether the
    snapshot belongs on the focus stack); the rest is opaque.
    """

    model_config = {"frozen": True}

    window_id: int = Field(..., description="Focused window id")
    app_bundle_id: str = Field(default="", description="Focused app bundle id")
    workspace: str = Field(..., description="Workspace holding the focused window")

    @classmethod
    def from_window(cls, window: ManagedWindow) -> "CapturedFocus":
        return cls(
            window_id=window.window_id,
            app_bundle_id=window.app_bundle_id,
            workspace=window.workspace,
        )

    @property
    def is_project_workspace(self) -> bool:
        return self.workspace.startswith(WORKSPACE_PREFIX)

    def describe(self) -> str:
        return f"window {self.window_id} ({self.app_bundle_id or 'unknown'}) on {self.workspace}"


class FocusHistoryEntry(BaseModel):
    """Focus snapshot plus the time it was captured, as persisted on disk."""

    model_config = {"frozen": True}

    window_id: int
    app_bundle_id: str = ""
    workspace: str
    captured_at: datetime

    @field_validator("captured_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)

    @classmethod
    def from_focus(cls, focus: CapturedFocus, captured_at: datetime) -> "FocusHistoryEntry":
        return cls(
            window_id=focus.window_id,
            app_bundle_id=focus.app_bundle_id,
            workspace=focus.workspace,
            captured_at=captured_at,
        )

    @property
    def focus(self) -> CapturedFocus:
        return CapturedFocus(window_id=self.window_id, app_bundle_id=self.app_bundle_id, workspace=self.workspace)


class FocusHistory(BaseModel):
    """Focus stack (oldest first) plus the most recently pushed entry."""

    version: int = 1
    stack: List[FocusHistoryEntry] = Field(default_factory=list)
    most_recent: Optional[FocusHistoryEntry] = None
