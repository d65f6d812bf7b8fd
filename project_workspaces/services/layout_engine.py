"""
Window Layout Engine

Pure geometry for a project's IDE + browser pair. Everything here works in
bottom-left-origin, Y-up screen points and has no hidden state: the same
inputs always produce the same frames.

Algorithm (wide mode):
1. Height is a percentage of the visible height, top-aligned
2. Width is half the screen, capped at a physical maximum in inches
3. The leftover width becomes the gap, capped at a percentage of the screen
4. The pair hugs the configured screen edge; the IDE takes its configured side
"""

import logging
from typing import List, Optional

from ..models import LayoutConfig, Rect, ScreenMode, WindowLayout

logger = logging.getLogger(__name__)

FALLBACK_PHYSICAL_WIDTH_INCHES = 32.0


def compute_layout(
    screen_visible_frame: Rect,
    physical_width_inches: float,
    mode: ScreenMode,
    config: LayoutConfig,
) -> WindowLayout:
    """Compute target frames for the IDE and browser windows.

    Args:
        screen_visible_frame: Usable area of the target screen
        physical_width_inches: Physical screen width (must be positive)
        mode: Screen classification
        config: Layout tuning

    Returns:
        WindowLayout with both frames
    """
    if mode == ScreenMode.SMALL:
        return WindowLayout(ide_frame=screen_visible_frame, browser_frame=screen_visible_frame)
    return _compute_wide_layout(screen_visible_frame, physical_width_inches, config)


def _compute_wide_layout(screen: Rect, physical_width_inches: float, config: LayoutConfig) -> WindowLayout:
    screen_width = screen.width

    # Top-aligned (Y up: top edge is max_y)
    height = screen.height * config.window_height / 100.0
    y = screen.max_y - height

    points_per_inch = screen_width / physical_width_inches
    width = min(screen_width * 0.5, config.max_window_width * points_per_inch)

    max_gap = screen_width * config.max_gap / 100.0
    remaining = screen_width - 2 * width
    gap = min(max_gap, max(0.0, remaining))

    if config.justification == "right":
        right_x = screen.max_x - width
        left_x = right_x - gap - width
    else:
        left_x = screen.min_x
        right_x = left_x + width + gap

    if config.ide_position == "left":
        ide_x, browser_x = left_x, right_x
    else:
        ide_x, browser_x = right_x, left_x

    logger.debug(
        f"layout.wide width={width:.1f} height={height:.1f} gap={gap:.1f} "
        f"ide_x={ide_x:.1f} browser_x={browser_x:.1f}"
    )
    return WindowLayout(
        ide_frame=Rect(x=ide_x, y=y, width=width, height=height),
        browser_frame=Rect(x=browser_x, y=y, width=width, height=height),
    )


def clamp_to_screen(frame: Rect, screen: Rect) -> Rect:
    """Fit a frame inside a screen.

    Each dimension shrinks to at most the screen's (never grows), then the
    frame is translated by the smallest amount that brings every edge inside.
    """
    width = min(frame.width, screen.width)
    height = min(frame.height, screen.height)

    x = min(max(frame.x, screen.min_x), screen.max_x - width)
    y = min(max(frame.y, screen.min_y), screen.max_y - height)
    return Rect(x=x, y=y, width=width, height=height)


def cascade_offset_points(screen_width: float, physical_width_inches: float) -> float:
    """Diagonal step between stacked windows: half an inch in points."""
    return 0.5 * (screen_width / physical_width_inches)


def cascade_frames(primary: Rect, count: int, offset: float, screen: Optional[Rect]) -> List[Rect]:
    """Frames for ``count`` windows sharing a role, stepped down-right from ``primary``.

    Window ``i`` is shifted by ``(+offset*i, -offset*i)`` (down is lower Y).
    Each frame is clamped to ``screen`` when one is given.
    """
    frames = []
    for index in range(count):
        step = offset * index
        frame = primary.offset(step, -step)
        if screen is not None:
            frame = clamp_to_screen(frame, screen)
        frames.append(frame)
    return frames


def screen_containing(point_x: float, point_y: float, screens: List[Rect]) -> Optional[Rect]:
    """First screen whose visible frame contains the point."""
    for screen in screens:
        if screen.contains_point(point_x, point_y):
            return screen
    return None
