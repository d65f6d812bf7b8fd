"""
Configuration loading, atomic JSON writes and config file watching.

Loads ``config.json`` into a validated ``AppConfig`` and watches it with
watchdog so a long-running host can reload without restarting.
"""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import ValidationError
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from .errors import ConfigError
from .models import AppConfig

logger = logging.getLogger(__name__)


def load_config(config_file: Path) -> AppConfig:
    """Load and validate the configuration file.

    Args:
        config_file: Path to config.json

    Returns:
        Validated AppConfig

    Raises:
        ConfigError: If the file is missing, unreadable, not JSON, or invalid
    """
    if not config_file.exists():
        raise ConfigError(f"Config file not found: {config_file}")

    try:
        with open(config_file, "r") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to read {config_file}: {e}") from e

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            errors.append(f"{location}: {error['msg']}" if location else error["msg"])
        raise ConfigError(f"Invalid config in {config_file}", errors) from e

    logger.info(f"Loaded config: {len(config.projects)} projects from {config_file}")
    return config


def atomic_write_json(path: Path, data: Any, prefix: str = ".state-") -> None:
    """Write JSON to ``path`` atomically (temp file + fsync + rename).

    Args:
        path: Destination file
        data: JSON-serializable data
        prefix: Temp file prefix within the destination directory

    Raises:
        OSError: If the directory or file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=prefix, suffix=".json")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())

        os.rename(temp_path, path)
    except Exception:
        # Clean up temp file on error
        if Path(temp_path).exists():
            os.unlink(temp_path)
        raise


class DebouncedReloadHandler(FileSystemEventHandler):
    """File system event handler with debounced reload callback.

    Debounces rapid file modifications (e.g., editor save sequences)
    to prevent excessive reload operations.
    """

    def __init__(self, callback: Callable[[], None], target_filename: str, debounce_ms: int = 100):
        """Initialize debounced reload handler.

        Args:
            callback: Function to call after debounce period
            target_filename: Only events for this filename trigger the callback
            debounce_ms: Debounce timeout in milliseconds (default: 100ms)
        """
        super().__init__()
        self.callback = callback
        self.target_filename = target_filename
        self.debounce_seconds = debounce_ms / 1000
        self._debounce_handle: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the asyncio event loop for scheduling callbacks."""
        self._loop = loop

    def _schedule_callback(self) -> None:
        if self._loop is None:
            logger.warning("No event loop set for debounced handler, calling immediately")
            self.callback()
            return
        # Observer thread -> event loop thread
        self._loop.call_soon_threadsafe(self._restart_timer)

    def _restart_timer(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        self._debounce_handle = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._debounce_handle = None
        self.callback()

    def _should_trigger(self, event) -> bool:
        if event.is_directory:
            return False
        event_path = getattr(event, "dest_path", None) or event.src_path
        return Path(event_path).name == self.target_filename

    def on_modified(self, event) -> None:
        if self._should_trigger(event):
            self._schedule_callback()

    def on_moved(self, event) -> None:
        """Handle file moved event (atomic saves use temp file + rename)."""
        if self._should_trigger(event):
            self._schedule_callback()

    def on_created(self, event) -> None:
        if self._should_trigger(event):
            self._schedule_callback()


class ConfigWatcher:
    """Watches config.json and invokes a callback when it changes.

    Example:
        watcher = ConfigWatcher(paths.config_file, manager.load_config)
        watcher.set_event_loop(asyncio.get_running_loop())
        watcher.start()
    """

    def __init__(self, config_file: Path, reload_callback: Callable[[], None], debounce_ms: int = 100):
        self.config_file = config_file
        self.observer = Observer()
        self.handler = DebouncedReloadHandler(reload_callback, config_file.name, debounce_ms)
        self._started = False

    def set_event_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self.handler.set_event_loop(loop)

    def start(self) -> None:
        """Start watching the config file.

        Watches the parent directory since some editors use atomic save
        (create temp file + rename) which doesn't trigger events on the file itself.
        """
        if self._started:
            logger.warning("Config watcher already started")
            return

        watch_dir = self.config_file.parent
        watch_dir.mkdir(parents=True, exist_ok=True)

        self.observer.schedule(self.handler, str(watch_dir), recursive=False)
        self.observer.start()
        self._started = True

        logger.info(f"Started watching {self.config_file} for modifications")

    def stop(self) -> None:
        if not self._started:
            return

        self.observer.stop()
        self.observer.join(timeout=5.0)
        self._started = False

        logger.info(f"Stopped watching {self.config_file}")
