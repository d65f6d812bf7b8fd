"""Cycle focus through the windows of the focused workspace."""

import logging
from enum import Enum
from typing import Optional

from .aerospace_client import AeroSpaceClient

logger = logging.getLogger(__name__)


class CycleDirection(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


class WindowCycler:
    """Moves focus to the next or previous window, wrapping at either end.

    Window order is the order AeroSpace lists the workspace's windows in.
    """

    def __init__(self, aerospace: AeroSpaceClient):
        self.aerospace = aerospace

    def cycle_focus(self, direction: CycleDirection = CycleDirection.NEXT) -> Optional[int]:
        """Focus the neighbouring window in the focused workspace.

        Returns:
            The newly focused window id, or None when there is nothing to cycle to

        Raises:
            AeroSpaceError: If AeroSpace cannot be queried or the focus command fails
        """
        focused = self.aerospace.focused_window()
        windows = self.aerospace.list_windows_workspace(focused.workspace)
        ids = [w.window_id for w in windows]
        if len(ids) < 2:
            logger.debug(f"cycle.skipped workspace={focused.workspace} window_count={len(ids)}")
            return None
        if focused.window_id not in ids:
            logger.debug(f"cycle.focused_not_listed window_id={focused.window_id} workspace={focused.workspace}")
            return None

        index = ids.index(focused.window_id)
        step = 1 if direction == CycleDirection.NEXT else -1
        target = ids[(index + step) % len(ids)]
        self.aerospace.focus_window(target)
        logger.info(f"cycle.focused direction={direction.value} window_id={target} workspace={focused.workspace}")
        return target
