"""Exception hierarchy for project workspaces.

Low-level helpers raise the specific errors below; ``ProjectManager`` maps
them onto ``ProjectError`` with a ``ProjectErrorKind`` for callers.
"""

from enum import Enum
from typing import List, Optional, Sequence


class CommandError(Exception):
    """External command could not be run (missing executable, OS error)."""

    def __init__(self, message: str, command: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.command = command
        self.detail = detail


class CommandTimeoutError(CommandError):
    """External command exceeded its timeout and was killed."""

    def __init__(self, command: str, timeout_seconds: float):
        super().__init__(
            f"Command timed out after {timeout_seconds:g}s: {command}",
            command=command,
        )
        self.timeout_seconds = timeout_seconds


class AeroSpaceError(Exception):
    """Base class for AeroSpace CLI failures."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class AeroSpaceCommandError(AeroSpaceError):
    """aerospace exited non-zero."""

    def __init__(self, command: str, exit_code: int, stderr: str = ""):
        trimmed = stderr.strip()
        super().__init__(
            f"{command} failed with exit code {exit_code}.",
            detail=trimmed or None,
        )
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class AeroSpaceParseError(AeroSpaceError):
    """aerospace output did not match the requested format."""


class AeroSpaceTimeoutError(AeroSpaceError):
    """aerospace command timed out (trips the circuit breaker)."""


class AeroSpaceUnavailableError(AeroSpaceError):
    """aerospace could not be executed at all."""


class CircuitOpenError(AeroSpaceError):
    """Call rejected without running because the circuit breaker is open."""


class LaunchError(Exception):
    """IDE or browser launch failed."""


class StoreError(Exception):
    """Persisted state could not be read, decoded or written."""


class ScreenDetectionError(Exception):
    """Display geometry could not be determined."""


class WindowPositionError(Exception):
    """Window frame could not be read or written."""


class AccessibilityPermissionError(WindowPositionError):
    """Accessibility permission is missing; the user must grant it."""


class ConfigError(Exception):
    """Configuration file is missing or invalid."""

    def __init__(self, message: str, errors: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors: List[str] = list(errors or [])

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return self.message + "\n" + "\n".join(f"  - {e}" for e in self.errors)


class ProjectErrorKind(str, Enum):
    """Public failure categories of project operations."""
    PROJECT_NOT_FOUND = "project_not_found"
    CONFIG_NOT_LOADED = "config_not_loaded"
    WINDOW_MANAGER_ERROR = "window_manager_error"
    IDE_LAUNCH_FAILED = "ide_launch_failed"
    BROWSER_LAUNCH_FAILED = "browser_launch_failed"
    NO_ACTIVE_PROJECT = "no_active_project"
    NO_PREVIOUS_WINDOW = "no_previous_window"
    WINDOW_NOT_FOUND = "window_not_found"
    FOCUS_UNSTABLE = "focus_unstable"


class ProjectError(Exception):
    """Terminal failure of a project operation.

    Carries the identifiers known at the failure point so callers can report
    which project, workspace and window were involved.
    """

    def __init__(
        self,
        kind: ProjectErrorKind,
        detail: Optional[str] = None,
        project_id: Optional[str] = None,
        workspace: Optional[str] = None,
        window_id: Optional[int] = None,
    ):
        self.kind = kind
        self.detail = detail
        self.project_id = project_id
        self.workspace = workspace
        self.window_id = window_id
        super().__init__(str(self))

    def __str__(self) -> str:
        parts = [self.kind.value]
        if self.detail:
            parts.append(self.detail)
        context = []
        if self.project_id:
            context.append(f"project={self.project_id}")
        if self.workspace:
            context.append(f"workspace={self.workspace}")
        if self.window_id is not None:
            context.append(f"window={self.window_id}")
        message = ": ".join(parts)
        if context:
            message += f" [{', '.join(context)}]"
        return message

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "kind": self.kind.value,
            "detail": self.detail,
            "project_id": self.project_id,
            "workspace": self.workspace,
            "window_id": self.window_id,
        }
