"""Unit tests for FocusStack."""

from datetime import datetime, timezone

import pytest

from project_workspaces.models import CapturedFocus
from project_workspaces.services.focus_stack import FocusStack


def focus(window_id: int, workspace: str = "1") -> CapturedFocus:
    return CapturedFocus(window_id=window_id, app_bundle_id="com.apple.Terminal", workspace=workspace)


class TestFocusStack:
    """Push, coalescing, capacity and lazy validation."""

    def test_push_pop_is_lifo(self):
        stack = FocusStack()
        stack.push(focus(1))
        stack.push(focus(2))

        assert stack.pop().window_id == 2
        assert stack.pop().window_id == 1
        assert stack.pop() is None

    def test_consecutive_same_window_coalesces(self):
        stack = FocusStack()
        stack.push(focus(1, "1"))
        stack.push(focus(1, "2"))

        assert len(stack) == 1
        assert stack.peek().workspace == "2"

    def test_non_consecutive_duplicates_are_kept(self):
        stack = FocusStack()
        stack.push(focus(1))
        stack.push(focus(2))
        stack.push(focus(1))

        assert [f.window_id for f in stack.entries] == [1, 2, 1]

    def test_capacity_drops_oldest(self):
        stack = FocusStack(max_size=3)
        for window_id in range(1, 6):
            stack.push(focus(window_id))

        assert [f.window_id for f in stack.entries] == [3, 4, 5]

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            FocusStack(max_size=0)

    def test_pop_first_valid_discards_stale_entries(self):
        stack = FocusStack()
        for window_id in (1, 2, 3):
            stack.push(focus(window_id))

        result = stack.pop_first_valid(lambda f: f.window_id == 1)

        assert result.window_id == 1
        assert len(stack) == 0

    def test_pop_first_valid_exhausted(self):
        stack = FocusStack()
        stack.push(focus(1))

        assert stack.pop_first_valid(lambda f: False) is None
        assert len(stack) == 0

    def test_pop_first_valid_leaves_older_entries(self):
        stack = FocusStack()
        stack.push(focus(1))
        stack.push(focus(2))

        assert stack.pop_first_valid(lambda f: True).window_id == 2
        assert [f.window_id for f in stack.entries] == [1]

    def test_most_recent_survives_pops(self):
        stack = FocusStack()
        stack.push(focus(1))
        stack.push(focus(2))
        stack.pop()
        stack.pop()

        assert stack.pop() is None
        assert stack.most_recent == focus(2)

    def test_clear_resets_most_recent(self):
        stack = FocusStack()
        stack.push(focus(1))
        stack.clear()

        assert stack.most_recent is None
        assert stack.entries == []


class TestFocusStackHistory:
    """Conversion to and from persisted focus history."""

    def test_to_history_records_capture_time(self):
        captured_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        stack = FocusStack(now=lambda: captured_at)
        stack.push(focus(1))
        stack.push(focus(2, "3"))

        history = stack.to_history()

        assert [entry.window_id for entry in history.stack] == [1, 2]
        assert all(entry.captured_at == captured_at for entry in history.stack)
        assert history.most_recent.workspace == "3"

    def test_restore_replaces_contents(self):
        source = FocusStack()
        source.push(focus(1))
        source.push(focus(2))
        stack = FocusStack()
        stack.push(focus(9))

        stack.restore(source.to_history())

        assert [f.window_id for f in stack.entries] == [1, 2]
        assert stack.most_recent == focus(2)

    def test_restore_beyond_capacity_keeps_newest(self):
        source = FocusStack()
        for window_id in range(1, 6):
            source.push(focus(window_id))
        stack = FocusStack(max_size=2)

        stack.restore(source.to_history())

        assert [f.window_id for f in stack.entries] == [4, 5]
