"""
Screen geometry via AppKit and CoreGraphics.

Classifies the display under a point as small or wide from its physical
width, and exposes visible frames in AppKit (bottom-left, Y up) points.
"""

import logging
from typing import List, Optional

import Quartz
from AppKit import NSScreen

from ..errors import ScreenDetectionError
from ..models import Point, Rect, ScreenMode
from ..services.coordinates import physical_width_inches_from_mm

logger = logging.getLogger(__name__)


def rect_from_ns(ns_rect) -> Rect:
    return Rect(
        x=ns_rect.origin.x,
        y=ns_rect.origin.y,
        width=ns_rect.size.width,
        height=ns_rect.size.height,
    )


class ScreenModeDetector:
    """Resolves the screen under a point and its physical dimensions."""

    def _screen_containing(self, point: Point):
        for screen in NSScreen.screens():
            if rect_from_ns(screen.frame()).contains_point(point.x, point.y):
                return screen
        return None

    def detect_mode(self, point: Point, threshold: float) -> ScreenMode:
        """Classify the screen containing ``point``.

        Raises:
            ScreenDetectionError: If the physical width cannot be determined
        """
        width = self.physical_width_inches(point)
        mode = ScreenMode.SMALL if width < threshold else ScreenMode.WIDE
        logger.debug(f"screen.mode width_in={width:.1f} threshold={threshold} mode={mode.value}")
        return mode

    def physical_width_inches(self, point: Point) -> float:
        """Physical width of the screen containing ``point``.

        Raises:
            ScreenDetectionError: No screen at the point, no display id, or 0mm width
        """
        screen = self._screen_containing(point)
        if screen is None:
            raise ScreenDetectionError(f"No display found containing point ({point.x}, {point.y})")

        display_id = screen.deviceDescription().get("NSScreenNumber")
        if display_id is None:
            raise ScreenDetectionError("Cannot determine display ID for screen containing point")

        size = Quartz.CGDisplayScreenSize(int(display_id))
        return physical_width_inches_from_mm(size.width)

    def screen_visible_frame(self, point: Point) -> Optional[Rect]:
        screen = self._screen_containing(point)
        if screen is None:
            return None
        return rect_from_ns(screen.visibleFrame())

    def all_visible_frames(self) -> List[Rect]:
        return [rect_from_ns(screen.visibleFrame()) for screen in NSScreen.screens()]

    def all_frames(self) -> List[Rect]:
        """Full frames of every screen (used to locate the primary display)."""
        return [rect_from_ns(screen.frame()) for screen in NSScreen.screens()]
