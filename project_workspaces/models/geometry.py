"""
Window Geometry Models

Pydantic models for screen and window geometry. Every rectangle uses one
convention: origin at the bottom-left of the primary display, Y growing up
(AppKit screen points). Native Accessibility coordinates (top-left origin)
are converted at the macOS boundary and never reach these models.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field


# ============================================================================
# Domain 1: Rectangles
# ============================================================================

class Rect(BaseModel):
    """Axis-aligned rectangle in screen points (bottom-left origin, Y up)."""

    model_config = {"frozen": True}

    x: float = Field(..., description="Left edge (points)")
    y: float = Field(..., description="Bottom edge (points)")
    width: float = Field(..., ge=0, description="Width (points)")
    height: float = Field(..., ge=0, description="Height (points)")

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2

    @property
    def center(self) -> "Point":
        return Point(x=self.mid_x, y=self.mid_y)

    def contains_point(self, x: float, y: float) -> bool:
        """Check if point lies within the rectangle (max edges exclusive)."""
        return self.min_x <= x < self.max_x and self.min_y <= y < self.max_y

    def contains_rect(self, other: "Rect") -> bool:
        """Check if another rectangle lies fully inside this one."""
        return (other.min_x >= self.min_x and other.max_x <= self.max_x and
                other.min_y >= self.min_y and other.max_y <= self.max_y)

    def intersection_area(self, other: "Rect") -> float:
        """Area shared with another rectangle (0 when disjoint)."""
        overlap_w = min(self.max_x, other.max_x) - max(self.min_x, other.min_x)
        overlap_h = min(self.max_y, other.max_y) - max(self.min_y, other.min_y)
        if overlap_w <= 0 or overlap_h <= 0:
            return 0.0
        return overlap_w * overlap_h

    def offset(self, dx: float, dy: float) -> "Rect":
        """Return a copy translated by (dx, dy)."""
        return Rect(x=self.x + dx, y=self.y + dy, width=self.width, height=self.height)


class Point(BaseModel):
    """Point in screen points (bottom-left origin, Y up)."""

    model_config = {"frozen": True}

    x: float
    y: float

    def squared_distance(self, other: "Point") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        return dx * dx + dy * dy


# ============================================================================
# Domain 2: Layout
# ============================================================================

class ScreenMode(str, Enum):
    """Coarse monitor classification used to pick a layout strategy."""
    SMALL = "small"
    WIDE = "wide"


class WindowLayout(BaseModel):
    """Target frames for a project's IDE and browser windows."""

    model_config = {"frozen": True}

    ide_frame: Rect = Field(..., description="IDE window frame")
    browser_frame: Rect = Field(..., description="Browser window frame")


class SavedWindowFrames(BaseModel):
    """Frames captured on close/exit, persisted per project and screen mode."""

    model_config = {"frozen": True, "populate_by_name": True}

    ide: Rect = Field(..., description="IDE window frame")
    browser: Optional[Rect] = Field(
        default=None,
        alias="chrome",
        description="Browser window frame (stored under the 'chrome' key)",
    )


# ============================================================================
# Domain 3: Positioning results
# ============================================================================

class WindowPositionResult(BaseModel):
    """Outcome of positioning every tagged window of one app."""

    positioned: int = Field(..., ge=0, description="Windows successfully moved")
    matched: int = Field(..., ge=0, description="Windows matching the project token")

    @computed_field
    @property
    def has_partial_failure(self) -> bool:
        """Some matched windows could not be positioned."""
        return self.positioned < self.matched


class RecoveryOutcome(str, Enum):
    """Result of recovering a single off-screen or oversized window."""
    RECOVERED = "recovered"
    UNCHANGED = "unchanged"
    NOT_FOUND = "not_found"
