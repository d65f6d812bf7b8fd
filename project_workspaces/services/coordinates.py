"""Coordinate conversion between Accessibility and AppKit screen space.

The Accessibility API reports window positions with a top-left origin on the
primary display and Y growing down. The rest of the package uses AppKit's
bottom-left origin with Y growing up. These pure helpers are the only place
the two conventions meet.
"""

from typing import List, Optional, Sequence, Tuple, TypeVar

from ..errors import ScreenDetectionError
from ..models import Rect

MM_PER_INCH = 25.4

T = TypeVar("T")


def primary_screen_height(screen_frames: Sequence[Rect]) -> Optional[float]:
    """Height of the primary display (the screen whose frame origin is 0,0)."""
    for frame in screen_frames:
        if frame.x == 0 and frame.y == 0:
            return frame.height
    return None


def ax_to_screen_rect(ax_x: float, ax_y: float, width: float, height: float, primary_height: float) -> Rect:
    """Convert an AX position + size into a bottom-left-origin Rect."""
    return Rect(x=ax_x, y=primary_height - ax_y - height, width=width, height=height)


def screen_rect_to_ax(frame: Rect, primary_height: float) -> Tuple[float, float]:
    """Convert a bottom-left-origin Rect into the AX top-left position."""
    return frame.x, primary_height - frame.y - frame.height


def physical_width_inches_from_mm(width_mm: float) -> float:
    """Convert a display's reported physical width to inches.

    Raises:
        ScreenDetectionError: If the width is not positive (broken EDID)
    """
    if width_mm <= 0:
        raise ScreenDetectionError(
            "Cannot determine physical screen size: display reported 0mm width (broken EDID)"
        )
    return width_mm / MM_PER_INCH


def order_window_matches(matches: Sequence[Tuple[str, int, T]]) -> List[T]:
    """Order tagged windows by title, then by enumeration index.

    Args:
        matches: ``(title, enumeration_index, element)`` triples

    Returns:
        Elements in a stable order; the first is the primary window
    """
    return [element for _, _, element in sorted(matches, key=lambda m: (m[0], m[1]))]
