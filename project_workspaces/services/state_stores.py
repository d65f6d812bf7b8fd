"""
Persisted orchestrator state: project recency, saved window frames and focus history.

All files live under the state directory and are always replaced atomically.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..config import atomic_write_json
from ..errors import StoreError
from ..models import FocusHistory, SavedWindowFrames, ScreenMode

logger = logging.getLogger(__name__)

MAX_RECENT_PROJECTS = 100
LAYOUTS_FILE_VERSION = 1
FOCUS_HISTORY_VERSION = 1
FOCUS_HISTORY_MAX_AGE = timedelta(days=7)
FOCUS_HISTORY_MAX_ENTRIES = 20


class RecencyStore:
    """Project ids in activation order, most recent first."""

    def __init__(self, path: Path, max_entries: int = MAX_RECENT_PROJECTS):
        self.path = Path(path)
        self.max_entries = max_entries
        self._ids: List[str] = []

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def load(self) -> List[str]:
        """Load recency from disk; unreadable or malformed files reset to empty."""
        if not self.path.exists():
            self._ids = []
            return []
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load recent projects from {self.path}: {e}")
            self._ids = []
            return []

        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            logger.warning(f"Ignoring malformed recent projects file {self.path}")
            self._ids = []
            return []

        self._ids = data[: self.max_entries]
        return self.ids

    def record(self, project_id: str) -> None:
        """Move ``project_id`` to the front and persist (best effort)."""
        self._ids = [project_id] + [pid for pid in self._ids if pid != project_id]
        del self._ids[self.max_entries:]
        try:
            atomic_write_json(self.path, self._ids, prefix=".recent-")
        except OSError as e:
            logger.warning(f"Failed to save recent projects to {self.path}: {e}")


class WindowPositionStore:
    """Saved IDE/browser frames per project per screen mode.

    File format::

        {"version": 1, "projects": {"<id>": {"small": {...}, "wide": {...}}}}
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": LAYOUTS_FILE_VERSION, "projects": {}}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except OSError as e:
            raise StoreError(f"Failed to read window layouts file: {e}") from e
        except json.JSONDecodeError as e:
            raise StoreError(f"Failed to decode window layouts file: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("projects"), dict):
            raise StoreError("Failed to decode window layouts file: missing 'projects' object")
        return data

    def load(self, project_id: str, mode: ScreenMode) -> Optional[SavedWindowFrames]:
        """Saved frames for a project and mode, or None.

        Raises:
            StoreError: If the file exists but is unreadable or corrupt
        """
        entry = self._read()["projects"].get(project_id) or {}
        frames = entry.get(mode.value)
        if frames is None:
            return None
        try:
            return SavedWindowFrames.model_validate(frames)
        except ValidationError as e:
            raise StoreError(f"Failed to decode saved frames for {project_id}/{mode.value}: {e}") from e

    def save(self, project_id: str, mode: ScreenMode, frames: SavedWindowFrames) -> None:
        """Update one project/mode entry, keeping every other entry.

        Raises:
            StoreError: If the existing file is corrupt or the write fails
        """
        data = self._read()
        data["version"] = LAYOUTS_FILE_VERSION
        entry = data["projects"].setdefault(project_id, {})
        entry[mode.value] = frames.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            atomic_write_json(self.path, data, prefix=".layouts-")
        except OSError as e:
            raise StoreError(f"Failed to write window layouts file: {e}") from e
        logger.debug(f"positions.saved project={project_id} mode={mode.value}")


class FocusHistoryStore:
    """Persisted focus stack so a new process can still restore focus on exit.

    File format::

        {"version": 1, "stack": [{"window_id": ..., "captured_at": "<ISO-8601>"}, ...],
         "most_recent": {...} | null}

    Entries older than ``max_age`` are pruned on load, then the stack is
    trimmed to the newest ``max_entries``.
    """

    def __init__(
        self,
        path: Path,
        max_age: timedelta = FOCUS_HISTORY_MAX_AGE,
        max_entries: int = FOCUS_HISTORY_MAX_ENTRIES,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        if max_age <= timedelta(0):
            raise ValueError("max_age must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.path = Path(path)
        self.max_age = max_age
        self.max_entries = max_entries
        self._now = now

    def load(self) -> Optional[FocusHistory]:
        """Load and prune persisted history; None if nothing was saved yet.

        Raises:
            StoreError: If the file is unreadable, corrupt or from another version
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except OSError as e:
            raise StoreError(f"Failed to read focus history: {e}") from e
        except json.JSONDecodeError as e:
            raise StoreError(f"Failed to decode focus history: {e}") from e

        try:
            history = FocusHistory.model_validate(data)
        except ValidationError as e:
            raise StoreError(f"Failed to decode focus history: {e}") from e
        if history.version != FOCUS_HISTORY_VERSION:
            raise StoreError(f"Unsupported focus history version: {history.version}")

        return self._prune(history)

    def save(self, history: FocusHistory) -> None:
        """Replace the history file.

        Raises:
            StoreError: If the write fails
        """
        try:
            atomic_write_json(self.path, history.model_dump(mode="json"), prefix=".focus-")
        except OSError as e:
            raise StoreError(f"Failed to write focus history: {e}") from e

    def _prune(self, history: FocusHistory) -> FocusHistory:
        cutoff = self._now() - self.max_age
        fresh = [entry for entry in history.stack if entry.captured_at >= cutoff]
        kept = fresh[-self.max_entries:]
        most_recent = history.most_recent
        dropped_most_recent = most_recent is not None and most_recent.captured_at < cutoff
        if dropped_most_recent:
            most_recent = None

        pruned = len(history.stack) - len(kept)
        if pruned or dropped_most_recent:
            logger.info(f"focus_history.pruned entries={pruned} dropped_most_recent={dropped_most_recent}")
        return FocusHistory(version=history.version, stack=kept, most_recent=most_recent)
