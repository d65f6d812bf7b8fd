"""Unit tests for recency, window position and focus history persistence."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from project_workspaces.errors import StoreError
from project_workspaces.models import FocusHistory, FocusHistoryEntry, Rect, SavedWindowFrames, ScreenMode
from project_workspaces.services.state_stores import FocusHistoryStore, RecencyStore, WindowPositionStore

IDE = Rect(x=10, y=20, width=800, height=600)
BROWSER = Rect(x=900, y=20, width=800, height=600)


class TestRecencyStore:

    def test_missing_file_is_empty(self, paths):
        store = RecencyStore(paths.recent_projects_file)
        assert store.load() == []

    def test_record_moves_to_front_and_persists(self, paths):
        store = RecencyStore(paths.recent_projects_file)
        store.record("alpha")
        store.record("beta")
        store.record("alpha")

        assert store.ids == ["alpha", "beta"]
        assert json.loads(paths.recent_projects_file.read_text()) == ["alpha", "beta"]
        assert RecencyStore(paths.recent_projects_file).load() == ["alpha", "beta"]

    def test_capped(self, paths):
        store = RecencyStore(paths.recent_projects_file, max_entries=3)
        for project_id in ["a", "b", "c", "d"]:
            store.record(project_id)

        assert store.ids == ["d", "c", "b"]

    @pytest.mark.parametrize("content", ["{oops", '{"a": 1}', '["a", 2]'])
    def test_malformed_file_resets(self, paths, content, caplog):
        paths.recent_projects_file.parent.mkdir(parents=True)
        paths.recent_projects_file.write_text(content)

        assert RecencyStore(paths.recent_projects_file).load() == []
        assert "recent projects" in caplog.text

    def test_write_failure_is_not_raised(self, tmp_path, caplog):
        blocker = tmp_path / "file"
        blocker.write_text("")
        store = RecencyStore(blocker / "recent.json")

        store.record("alpha")

        assert store.ids == ["alpha"]
        assert "Failed to save recent projects" in caplog.text


class TestWindowPositionStore:

    def test_round_trip_per_mode(self, paths):
        store = WindowPositionStore(paths.window_layouts_file)
        store.save("alpha", ScreenMode.WIDE, SavedWindowFrames(ide=IDE, browser=BROWSER))
        store.save("alpha", ScreenMode.SMALL, SavedWindowFrames(ide=IDE))

        wide = store.load("alpha", ScreenMode.WIDE)
        small = store.load("alpha", ScreenMode.SMALL)

        assert wide.browser == BROWSER
        assert small.ide == IDE
        assert small.browser is None
        assert store.load("beta", ScreenMode.WIDE) is None

    def test_file_format(self, paths):
        store = WindowPositionStore(paths.window_layouts_file)
        store.save("alpha", ScreenMode.WIDE, SavedWindowFrames(ide=IDE, browser=BROWSER))
        store.save("beta", ScreenMode.SMALL, SavedWindowFrames(ide=IDE))

        data = json.loads(paths.window_layouts_file.read_text())

        assert data["version"] == 1
        assert set(data["projects"]) == {"alpha", "beta"}
        assert set(data["projects"]["alpha"]["wide"]) == {"ide", "chrome"}
        assert "chrome" not in data["projects"]["beta"]["small"]

    def test_corrupt_file_raises(self, paths):
        paths.window_layouts_file.parent.mkdir(parents=True)
        paths.window_layouts_file.write_text("not json")
        store = WindowPositionStore(paths.window_layouts_file)

        with pytest.raises(StoreError, match="decode"):
            store.load("alpha", ScreenMode.WIDE)
        with pytest.raises(StoreError):
            store.save("alpha", ScreenMode.WIDE, SavedWindowFrames(ide=IDE))

    def test_invalid_frames_raise(self, paths):
        paths.window_layouts_file.parent.mkdir(parents=True)
        paths.window_layouts_file.write_text(json.dumps(
            {"version": 1, "projects": {"alpha": {"wide": {"ide": {"x": 1}}}}}
        ))

        with pytest.raises(StoreError, match="alpha/wide"):
            WindowPositionStore(paths.window_layouts_file).load("alpha", ScreenMode.WIDE)


NOW = datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)


def history_entry(window_id: int, age: timedelta) -> FocusHistoryEntry:
    return FocusHistoryEntry(window_id=window_id, app_bundle_id="com.apple.Terminal", workspace="1", captured_at=NOW - age)


class TestFocusHistoryStore:

    def make_store(self, paths, **kwargs):
        return FocusHistoryStore(paths.focus_history_file, now=lambda: NOW, **kwargs)

    def test_missing_file_is_none(self, paths):
        assert self.make_store(paths).load() is None

    def test_save_then_load(self, paths):
        store = self.make_store(paths)
        history = FocusHistory(
            stack=[history_entry(1, timedelta(hours=2)), history_entry(2, timedelta(hours=1))],
            most_recent=history_entry(2, timedelta(hours=1)),
        )

        store.save(history)

        assert store.load() == history
        data = json.loads(paths.focus_history_file.read_text())
        assert data["version"] == 1
        assert [entry["window_id"] for entry in data["stack"]] == [1, 2]
        assert data["most_recent"]["window_id"] == 2

    def test_entries_older_than_max_age_are_pruned(self, paths, caplog):
        store = self.make_store(paths)
        store.save(FocusHistory(
            stack=[history_entry(1, timedelta(days=8)), history_entry(2, timedelta(days=6))],
            most_recent=history_entry(3, timedelta(days=7, seconds=1)),
        ))

        with caplog.at_level("INFO"):
            history = store.load()

        assert [entry.window_id for entry in history.stack] == [2]
        assert history.most_recent is None
        assert "focus_history.pruned entries=1 dropped_most_recent=True" in caplog.text

    def test_stack_trimmed_to_newest_entries(self, paths):
        store = self.make_store(paths, max_entries=2)
        store.save(FocusHistory(stack=[history_entry(i, timedelta(minutes=10 - i)) for i in range(1, 5)]))

        assert [entry.window_id for entry in store.load().stack] == [3, 4]

    def test_naive_timestamps_are_read_as_utc(self, paths):
        paths.focus_history_file.parent.mkdir(parents=True)
        paths.focus_history_file.write_text(json.dumps({
            "version": 1,
            "stack": [{"window_id": 1, "workspace": "1", "captured_at": "2026-03-08T11:00:00"}],
        }))

        entry = self.make_store(paths).load().stack[0]

        assert entry.captured_at == NOW - timedelta(hours=1)

    @pytest.mark.parametrize("content", ["{oops", '{"stack": [{"window_id": "x"}]}', "[]"])
    def test_corrupt_file_raises(self, paths, content):
        paths.focus_history_file.parent.mkdir(parents=True)
        paths.focus_history_file.write_text(content)

        with pytest.raises(StoreError, match="focus history"):
            self.make_store(paths).load()

    def test_unsupported_version_raises(self, paths):
        paths.focus_history_file.parent.mkdir(parents=True)
        paths.focus_history_file.write_text(json.dumps({"version": 2, "stack": []}))

        with pytest.raises(StoreError, match="version: 2"):
            self.make_store(paths).load()

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = FocusHistoryStore(blocker / "focus-history.json")

        with pytest.raises(StoreError, match="Failed to write focus history"):
            store.save(FocusHistory())

    @pytest.mark.parametrize("kwargs", [{"max_age": timedelta(0)}, {"max_entries": 0}])
    def test_invalid_limits(self, paths, kwargs):
        with pytest.raises(ValueError):
            FocusHistoryStore(paths.focus_history_file, **kwargs)
