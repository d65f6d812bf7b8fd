"""Bounded LIFO of non-project focus snapshots used to restore context on exit."""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, List, Optional

from ..models import CapturedFocus, FocusHistory, FocusHistoryEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 20


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FocusStack:
    """Focus history pushed before activations and popped on close/exit.

    Consecutive pushes of the same window id coalesce into one entry (the
    newer snapshot wins). Beyond ``max_size`` the oldest entry is dropped.
    Entries are validated lazily when popped.

    ``most_recent`` survives pops: it is the last snapshot pushed, kept as a
    restore candidate once the stack itself is exhausted.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, now: Callable[[], datetime] = _utc_now):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._entries: Deque[FocusHistoryEntry] = deque(maxlen=max_size)
        self._most_recent: Optional[FocusHistoryEntry] = None
        self._now = now

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[CapturedFocus]:
        """Snapshot of entries, oldest first."""
        return [entry.focus for entry in self._entries]

    @property
    def most_recent(self) -> Optional[CapturedFocus]:
        return self._most_recent.focus if self._most_recent else None

    def push(self, focus: CapturedFocus) -> None:
        entry = FocusHistoryEntry.from_focus(focus, self._now())
        self._most_recent = entry
        if self._entries and self._entries[-1].window_id == focus.window_id:
            self._entries[-1] = entry
            return
        self._entries.append(entry)

    def pop(self) -> Optional[CapturedFocus]:
        return self._entries.pop().focus if self._entries else None

    def peek(self) -> Optional[CapturedFocus]:
        return self._entries[-1].focus if self._entries else None

    def clear(self) -> None:
        self._entries.clear()
        self._most_recent = None

    def pop_first_valid(self, is_valid: Callable[[CapturedFocus], bool]) -> Optional[CapturedFocus]:
        """Pop until an entry passes ``is_valid``; invalid entries are discarded.

        Returns:
            The first valid entry, or None once the stack is exhausted
        """
        while self._entries:
            candidate = self._entries.pop().focus
            if is_valid(candidate):
                return candidate
            logger.debug(f"focus_stack.discarded_stale {candidate.describe()}")
        return None

    def to_history(self) -> FocusHistory:
        return FocusHistory(stack=list(self._entries), most_recent=self._most_recent)

    def restore(self, history: FocusHistory) -> None:
        """Replace the contents with persisted history (oldest entries beyond capacity drop)."""
        self._entries.clear()
        self._entries.extend(history.stack)
        self._most_recent = history.most_recent
