"""Synchronous external command execution with timeouts.

No business logic lives here: callers get exit code plus captured output, or
one of two exceptions. A timeout is always reported as ``CommandTimeoutError``
so callers never have to classify timeouts from exit codes or message text.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Sequence

from ..errors import CommandError, CommandTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

# GUI apps inherit a minimal PATH; these are searched after it.
STANDARD_SEARCH_PATHS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "/opt/homebrew/sbin",
    "/usr/local/sbin",
    "/usr/sbin",
    "/sbin",
)


def resolve_executable(name: str) -> Optional[str]:
    """Resolve an executable name to a full path.

    Args:
        name: Executable name (e.g. ``aerospace``) or absolute path

    Returns:
        Full path, or None if not found
    """
    if os.path.isabs(name):
        return name if os.access(name, os.X_OK) and os.path.isfile(name) else None

    found = shutil.which(name)
    if found:
        return found

    for directory in STANDARD_SEARCH_PATHS:
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    return None


@dataclass(frozen=True)
class CommandResult:
    """Completed command (any exit code)."""
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs external commands synchronously with a timeout."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.default_timeout = default_timeout
        self._resolved: Dict[str, str] = {}

    def _resolve(self, executable: str) -> str:
        cached = self._resolved.get(executable)
        if cached:
            return cached
        path = resolve_executable(executable)
        if path is None:
            raise CommandError(f"Executable not found: {executable}", command=executable)
        self._resolved[executable] = path
        return path

    def run(
        self,
        executable: str,
        args: Sequence[str],
        timeout: Optional[float] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            executable: Executable name or absolute path
            args: Arguments (not including the executable)
            timeout: Seconds before the process is killed (default: runner default)
            cwd: Working directory

        Returns:
            CommandResult for any exit code

        Raises:
            CommandTimeoutError: If the command exceeded its timeout
            CommandError: If the executable is missing, cannot be started, or
                its output cannot be decoded
        """
        path = self._resolve(executable)
        limit = self.default_timeout if timeout is None else timeout
        command_line = " ".join([executable, *args])

        try:
            completed = subprocess.run(
                [path, *args],
                capture_output=True,
                text=True,
                timeout=limit,
                cwd=str(cwd) if cwd is not None else None,
            )
        except subprocess.TimeoutExpired as e:
            logger.debug(f"Command timed out after {limit}s: {command_line}")
            raise CommandTimeoutError(command_line, limit) from e
        except OSError as e:
            raise CommandError(
                f"Failed to run {executable}", command=command_line, detail=str(e)
            ) from e
        except UnicodeDecodeError as e:
            raise CommandError(
                f"{executable} produced output that is not valid UTF-8", command=command_line, detail=str(e)
            ) from e

        return CommandResult(
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
