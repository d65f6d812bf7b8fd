"""
Operation result models.

Success results of activate/close and read-only workspace state. Warnings on
these results never indicate failure: a caller that gets a result back got a
completed operation.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field


class ActivationOutcome(BaseModel):
    """Result of a successful project activation."""

    model_config = {"frozen": True}

    ide_window_id: int = Field(..., description="AeroSpace id of the focused IDE window")
    tab_restore_warning: Optional[str] = Field(default=None, description="Chrome tab restore problem")
    layout_warning: Optional[str] = Field(default=None, description="Window positioning problem")

    @property
    def warnings(self) -> List[str]:
        return [w for w in (self.tab_restore_warning, self.layout_warning) if w]


class CloseOutcome(BaseModel):
    """Result of a successful project close."""

    model_config = {"frozen": True}

    tab_capture_warning: Optional[str] = Field(default=None, description="Chrome tab capture problem")


class ProjectWorkspaceState(BaseModel):
    """Which project workspaces exist and which one is focused."""

    model_config = {"frozen": True}

    active_project_id: Optional[str] = Field(default=None, description="Project of the focused workspace")
    open_project_ids: List[str] = Field(default_factory=list, description="Projects with a workspace")


class ChromeTabSnapshot(BaseModel):
    """Tab URLs captured from a project's Chrome window on close."""

    urls: List[str] = Field(default_factory=list)
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
