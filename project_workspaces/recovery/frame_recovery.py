"""
Off-screen and oversized window recovery geometry.

Picks the screen a stray window belongs to and computes the frame that brings
it back. Multi-monitor selection prefers the screen holding the window's
midpoint, then the one it overlaps most, then the nearest by center.
"""

from typing import Optional, Sequence

from ..models import Rect


def select_recovery_screen(
    current_frame: Rect,
    fallback_screen: Rect,
    screens: Sequence[Rect],
) -> Rect:
    """Choose the visible frame a window should be recovered onto.

    Args:
        current_frame: Window frame
        fallback_screen: Used when ``screens`` is empty
        screens: Visible frames of every connected screen

    Returns:
        The selected visible frame
    """
    if not screens:
        return fallback_screen

    midpoint = current_frame.center

    for screen in screens:
        if screen.contains_point(midpoint.x, midpoint.y):
            return screen

    best = max(screens, key=lambda s: s.intersection_area(current_frame))
    if best.intersection_area(current_frame) > 0:
        return best

    return min(screens, key=lambda s: s.center.squared_distance(midpoint))


def compute_recovered_frame(current_frame: Rect, screen: Rect) -> Optional[Rect]:
    """Compute the recovered frame, or None if the window needs nothing.

    Recovery is needed when the frame is larger than the screen in either
    dimension or its midpoint lies outside the screen. Only oversized
    dimensions shrink; the result is centered on both axes.
    """
    shrink_width = current_frame.width > screen.width
    shrink_height = current_frame.height > screen.height
    off_screen = not screen.contains_point(current_frame.mid_x, current_frame.mid_y)

    if not (shrink_width or shrink_height or off_screen):
        return None

    width = screen.width if shrink_width else current_frame.width
    height = screen.height if shrink_height else current_frame.height
    return Rect(
        x=screen.min_x + (screen.width - width) / 2,
        y=screen.min_y + (screen.height - height) / 2,
        width=width,
        height=height,
    )
