"""AeroSpace CLI client.

Typed wrapper over ``aerospace`` commands: workspace and window queries,
moves, focus, and close. Every call is gated by a ``CircuitBreaker`` so a hung
AeroSpace fails fast instead of stacking multi-second timeouts. When the
breaker is open and the AeroSpace process is actually gone, the client can
restart it once per attempt budget.
"""

import logging
import math
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, Tuple

import psutil

from ..errors import (
    AeroSpaceCommandError,
    AeroSpaceError,
    AeroSpaceParseError,
    AeroSpaceTimeoutError,
    AeroSpaceUnavailableError,
    CircuitOpenError,
    CommandError,
    CommandTimeoutError,
)
from ..models import ManagedWindow, WorkspaceSummary
from .circuit_breaker import CircuitBreaker
from .command_runner import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

AEROSPACE_EXECUTABLE = "aerospace"
AEROSPACE_PROCESS_NAME = "AeroSpace"

DEFAULT_TIMEOUT_SECONDS = 5.0
HELP_TIMEOUT_SECONDS = 2.0
START_TIMEOUT_SECONDS = 10.0
READINESS_TIMEOUT_SECONDS = 10.0
READINESS_INTERVAL_SECONDS = 0.25

WINDOW_FORMAT = "%{window-id}||%{app-bundle-id}||%{workspace}||%{window-title}"
WORKSPACE_FORMAT = "%{workspace}||%{workspace-is-focused}"
FIELD_SEPARATOR = "||"

# Failure text that means "this aerospace build lacks the option/command".
COMPATIBILITY_MARKERS = (
    "unknown option",
    "unknown flag",
    "unknown command",
    "unknown subcommand",
    "unrecognized option",
    "unrecognised option",
    "unrecognized command",
    "invalid option",
    "no such option",
    "no such command",
    "mandatory option is not specified",
)

REQUIRED_CLI_FLAGS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("list-workspaces", ("--all", "--focused")),
    ("list-windows", ("--monitor", "--workspace", "--focused", "--app-bundle-id", "--format")),
    ("summon-workspace", ()),
    ("move-node-to-workspace", ("--window-id",)),
    ("focus", ("--window-id", "--boundaries", "--boundaries-action", "dfs-next", "dfs-prev")),
    ("close", ("--window-id",)),
)


def aerospace_process_running() -> bool:
    """Check whether an AeroSpace process is alive."""
    for proc in psutil.process_iter(["name"]):
        try:
            if proc.info.get("name") == AEROSPACE_PROCESS_NAME:
                return True
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return False


def needs_compatibility_fallback(result: CommandResult) -> bool:
    """Return True if a failed command failed because the option is unsupported.

    Operational failures (e.g. "workspace not found") never qualify.
    """
    if result.exit_code == 0:
        return False
    diagnostic = (result.stderr + "\n" + result.stdout).lower()
    return any(marker in diagnostic for marker in COMPATIBILITY_MARKERS)


def parse_windows(output: str) -> List[ManagedWindow]:
    """Parse ``list-windows`` output in ``WINDOW_FORMAT``.

    The title keeps any further ``||`` text.

    Raises:
        AeroSpaceParseError: On the first malformed line (never a partial result)
    """
    windows = []
    for line in output.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        parts = trimmed.split(FIELD_SEPARATOR, 3)
        if len(parts) < 4:
            raise AeroSpaceParseError(
                "Unexpected aerospace output format.",
                detail=f"Expected '<window-id>||<app-bundle-id>||<workspace>||<window-title>', got: {trimmed}",
            )

        id_part = parts[0].strip()
        try:
            window_id = int(id_part)
        except ValueError:
            raise AeroSpaceParseError("Window id was not an integer.", detail=f"Got: {id_part}")

        windows.append(ManagedWindow(
            window_id=window_id,
            app_bundle_id=parts[1].strip(),
            workspace=parts[2].strip(),
            window_title=parts[3].strip(),
        ))
    return windows


def parse_workspace_summaries(output: str) -> List[WorkspaceSummary]:
    """Parse ``list-workspaces`` output in ``WORKSPACE_FORMAT``.

    Raises:
        AeroSpaceParseError: On a missing separator or a focus flag other than true/false
    """
    summaries = []
    for line in output.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        workspace, sep, focus_token = trimmed.partition(FIELD_SEPARATOR)
        if not sep:
            raise AeroSpaceParseError(
                "Unexpected workspace summary format.",
                detail=f"Expected '<workspace>||<is-focused>', got: {trimmed}",
            )

        token = focus_token.strip().lower()
        if token not in ("true", "false"):
            raise AeroSpaceParseError(
                "Unexpected workspace focus value.",
                detail=f"Expected 'true' or 'false', got: {token}",
            )
        summaries.append(WorkspaceSummary(workspace=workspace.strip(), is_focused=token == "true"))
    return summaries


def _parse_lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def _require_workspace(name: str) -> str:
    trimmed = name.strip()
    if not trimmed:
        raise ValueError("Workspace name cannot be empty.")
    return trimmed


def _require_window_id(window_id: int) -> int:
    if window_id <= 0:
        raise ValueError("Window ID must be positive.")
    return window_id


class AeroSpaceClient:
    """Synchronous client for the ``aerospace`` CLI.

    Args:
        runner: Command runner
        breaker: Circuit breaker shared with every other client in the process
        process_checker: Returns True while AeroSpace is running. When None,
            auto-recovery is disabled.
        recover_in_background: Run auto-recovery on a daemon thread and fail the
            triggering call fast, for callers that must not block for seconds
        sleep: Blocking sleep used by the readiness poll
        clock: Monotonic clock used by the readiness poll
    """

    def __init__(
        self,
        runner: CommandRunner,
        breaker: CircuitBreaker,
        process_checker: Optional[Callable[[], bool]] = aerospace_process_running,
        recover_in_background: bool = False,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.runner = runner
        self.breaker = breaker
        self.process_checker = process_checker
        self.recover_in_background = recover_in_background
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _run(self, args: Sequence[str], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> CommandResult:
        """Run an aerospace command through the breaker.

        Raises:
            CircuitOpenError: Breaker open and no recovery possible
            AeroSpaceTimeoutError: Command timed out (breaker tripped)
            AeroSpaceUnavailableError: aerospace could not be executed
        """
        if self.breaker.should_allow():
            return self._execute_and_record(args, timeout)

        if (self.process_checker is not None
                and not self.process_checker()
                and self.breaker.begin_recovery()):
            logger.info(f"circuit_breaker.recovery_started background={self.recover_in_background}")
            if self.recover_in_background:
                threading.Thread(
                    target=self._recover, name="aerospace-recovery", daemon=True
                ).start()
            elif self._recover():
                return self._execute_and_record(args, timeout)

        raise self._breaker_open_error()

    def _recover(self) -> bool:
        succeeded = False
        try:
            self.start()
            succeeded = True
        except AeroSpaceError as e:
            logger.warning(f"circuit_breaker.recovery_failed error={e}")
        finally:
            self.breaker.end_recovery(success=succeeded)
        if succeeded:
            logger.info("circuit_breaker.recovery_succeeded")
        return succeeded

    def _execute_and_record(self, args: Sequence[str], timeout: float) -> CommandResult:
        command_line = " ".join([AEROSPACE_EXECUTABLE, *args])
        try:
            result = self.runner.run(AEROSPACE_EXECUTABLE, list(args), timeout=timeout)
        except CommandTimeoutError as e:
            if self.breaker.record_timeout():
                logger.warning(f"circuit_breaker.tripped command={command_line} timeout={timeout}s")
            raise AeroSpaceTimeoutError(
                f"{command_line} timed out after {timeout:g}s.", detail=e.message
            ) from e
        except CommandError as e:
            raise AeroSpaceUnavailableError(
                f"Failed to run {command_line}.", detail=e.detail or e.message
            ) from e

        if result.exit_code == 0:
            self.breaker.record_success()
        return result

    def _breaker_open_error(self) -> CircuitOpenError:
        retry_in = max(1, math.ceil(self.breaker.remaining_cooldown()))
        return CircuitOpenError(
            "AeroSpace is unresponsive (circuit breaker open).",
            detail=(
                "A previous aerospace command timed out. Failing fast to prevent cascade. "
                f"Retry in {retry_in}s."
            ),
        )

    def _run_checked(self, args: Sequence[str], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> CommandResult:
        result = self._run(args, timeout)
        if result.exit_code != 0:
            raise AeroSpaceCommandError(
                " ".join([AEROSPACE_EXECUTABLE, *args]), result.exit_code, result.stderr
            )
        return result

    def _run_with_fallback(self, primary: Sequence[str], fallback: Sequence[str]) -> CommandResult:
        """Run ``primary``; run ``fallback`` only if primary is unsupported."""
        result = self._run(primary)
        if needs_compatibility_fallback(result):
            logger.debug(f"aerospace.compat_fallback from={' '.join(primary)} to={' '.join(fallback)}")
            return self._run_checked(fallback)
        if result.exit_code != 0:
            raise AeroSpaceCommandError(
                " ".join([AEROSPACE_EXECUTABLE, *primary]), result.exit_code, result.stderr
            )
        return result

    # ------------------------------------------------------------------
    # App lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Launch AeroSpace and wait until its CLI responds.

        Raises:
            AeroSpaceError: If launch fails or the CLI is not ready in time
        """
        try:
            result = self.runner.run("open", ["-a", "AeroSpace"], timeout=START_TIMEOUT_SECONDS)
        except CommandTimeoutError as e:
            raise AeroSpaceTimeoutError("open -a AeroSpace timed out.", detail=e.message) from e
        except CommandError as e:
            raise AeroSpaceUnavailableError("Failed to run open -a AeroSpace.", detail=e.detail) from e
        if result.exit_code != 0:
            raise AeroSpaceCommandError("open -a AeroSpace", result.exit_code, result.stderr)

        # Fresh start: clear any tripped state
        self.breaker.reset()

        deadline = self._clock() + READINESS_TIMEOUT_SECONDS
        while self._clock() < deadline:
            if self.is_cli_available():
                return
            self._sleep(READINESS_INTERVAL_SECONDS)

        raise AeroSpaceError(
            f"AeroSpace did not become ready within {READINESS_TIMEOUT_SECONDS:g}s after launch."
        )

    def is_cli_available(self) -> bool:
        """Return True if ``aerospace --help`` succeeds."""
        try:
            return self._run(["--help"], timeout=HELP_TIMEOUT_SECONDS).exit_code == 0
        except AeroSpaceError:
            return False

    def reload_config(self) -> None:
        self._run_checked(["reload-config"])

    def check_compatibility(self) -> None:
        """Verify the installed CLI supports every command and flag used here.

        Raises:
            AeroSpaceError: Listing every unsupported command/flag (sorted)
        """
        def check_help(check: Tuple[str, Tuple[str, ...]]) -> Optional[str]:
            command, required = check
            try:
                result = self._run_checked([command, "--help"], timeout=HELP_TIMEOUT_SECONDS)
            except AeroSpaceError as e:
                return f"aerospace {command} --help failed: {e.message}"
            output = "\n".join(
                part.strip() for part in (result.stdout, result.stderr) if part.strip()
            )
            missing = [flag for flag in required if flag not in output]
            if missing:
                return f"aerospace {command} missing flags: {', '.join(missing)}"
            return None

        with ThreadPoolExecutor(max_workers=len(REQUIRED_CLI_FLAGS)) as pool:
            failures = sorted(f for f in pool.map(check_help, REQUIRED_CLI_FLAGS) if f)

        if failures:
            raise AeroSpaceError("AeroSpace CLI compatibility check failed.", detail="\n".join(failures))

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def list_workspaces(self) -> List[str]:
        return _parse_lines(self._run_checked(["list-workspaces", "--all"]).stdout)

    def list_workspaces_focused(self) -> List[str]:
        return _parse_lines(self._run_checked(["list-workspaces", "--focused"]).stdout)

    def list_workspaces_with_focus(self) -> List[WorkspaceSummary]:
        result = self._run_checked(["list-workspaces", "--all", "--format", WORKSPACE_FORMAT])
        return parse_workspace_summaries(result.stdout)

    def workspace_exists(self, name: str) -> bool:
        return name in self.list_workspaces()

    def create_workspace(self, name: str) -> None:
        """Create (and switch to) a workspace that does not exist yet.

        Raises:
            ValueError: Empty name or workspace already exists
        """
        trimmed = _require_workspace(name)
        if self.workspace_exists(trimmed):
            raise ValueError(f"Workspace already exists: {trimmed}")
        self._run_checked(["summon-workspace", trimmed])

    def focus_workspace(self, name: str) -> None:
        """Focus a workspace, preferring ``summon-workspace`` (multi-monitor aware)."""
        trimmed = _require_workspace(name)
        self._run_with_fallback(["summon-workspace", trimmed], ["workspace", trimmed])

    def close_workspace(self, name: str) -> List[str]:
        """Close every window in a workspace.

        Returns:
            Per-window failure descriptions (empty when every close succeeded)

        Raises:
            AeroSpaceError: If listing fails, or if every close failed
        """
        trimmed = _require_workspace(name)
        windows = self.list_windows_workspace(trimmed)

        failures = []
        for window in windows:
            try:
                self.close_window(window.window_id)
            except AeroSpaceError as e:
                failures.append(f"window {window.window_id}: {e.message}")

        if windows and len(failures) == len(windows):
            raise AeroSpaceError(
                f"Failed to close {len(failures)} windows in workspace {trimmed}.",
                detail="\n".join(failures),
            )
        if failures:
            logger.warning(f"close_workspace.partial workspace={trimmed} failed={len(failures)}/{len(windows)}")
        return failures

    # ------------------------------------------------------------------
    # Windows
    # ------------------------------------------------------------------

    def list_windows_for_app(self, bundle_id: str) -> List[ManagedWindow]:
        """List an app's windows on every monitor (focused monitor on older CLIs)."""
        result = self._run_with_fallback(
            ["list-windows", "--app-bundle-id", bundle_id, "--format", WINDOW_FORMAT],
            ["list-windows", "--monitor", "focused", "--app-bundle-id", bundle_id, "--format", WINDOW_FORMAT],
        )
        return parse_windows(result.stdout)

    def list_windows_on_focused_monitor(self, bundle_id: Optional[str] = None) -> List[ManagedWindow]:
        args = ["list-windows", "--monitor", "focused"]
        if bundle_id:
            args += ["--app-bundle-id", bundle_id]
        args += ["--format", WINDOW_FORMAT]
        return parse_windows(self._run_checked(args).stdout)

    def list_windows_workspace(self, workspace: str) -> List[ManagedWindow]:
        result = self._run_checked(["list-windows", "--workspace", workspace, "--format", WINDOW_FORMAT])
        return parse_windows(result.stdout)

    def list_all_windows(self) -> List[ManagedWindow]:
        """List windows of every workspace, skipping workspaces that fail."""
        windows: List[ManagedWindow] = []
        for workspace in self.list_workspaces():
            try:
                windows.extend(self.list_windows_workspace(workspace))
            except AeroSpaceError as e:
                # Transient workspaces can disappear between the two queries
                logger.debug(f"Skipping workspace {workspace}: {e}")
        return windows

    def focused_window(self) -> ManagedWindow:
        """Return the focused window.

        Raises:
            AeroSpaceParseError: If not exactly one window is focused
        """
        result = self._run_checked(["list-windows", "--focused", "--format", WINDOW_FORMAT])
        windows = parse_windows(result.stdout)
        if len(windows) != 1:
            raise AeroSpaceParseError(f"Expected exactly one focused window, found {len(windows)}.")
        return windows[0]

    def move_window_to_workspace(self, workspace: str, window_id: int, focus_follows: bool = False) -> None:
        """Move a window, optionally making focus follow it.

        The focus-following variant falls back to a plain move on CLIs that lack
        ``--focus-follows-window``.
        """
        trimmed = _require_workspace(workspace)
        _require_window_id(window_id)
        plain = ["move-node-to-workspace", "--window-id", str(window_id), trimmed]
        if focus_follows:
            self._run_with_fallback(
                ["move-node-to-workspace", "--focus-follows-window", "--window-id", str(window_id), trimmed],
                plain,
            )
        else:
            self._run_checked(plain)

    def focus_window(self, window_id: int) -> None:
        _require_window_id(window_id)
        self._run_checked(["focus", "--window-id", str(window_id)])

    def close_window(self, window_id: int) -> None:
        _require_window_id(window_id)
        self._run_checked(["close", "--window-id", str(window_id)])
