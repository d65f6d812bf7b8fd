"""
Window recovery: bring oversized or off-screen windows back onto a screen.

Project workspaces (``ap-<id>``) get their canonical IDE/Chrome layout
re-applied first; every other window is shrunk and centered individually.
Focus is restored to the originally focused window afterwards.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Set, Tuple

from ..constants import BROWSER_BUNDLE_ID, IDE_BUNDLE_ID, window_token
from ..errors import AccessibilityPermissionError, AeroSpaceError, ScreenDetectionError, WindowPositionError
from ..models import LayoutConfig, ManagedWindow, Point, Rect, RecoveryOutcome, ScreenMode
from ..services.aerospace_client import AeroSpaceClient
from ..services.layout_engine import FALLBACK_PHYSICAL_WIDTH_INCHES, cascade_offset_points, compute_layout
from ..services.workspace_routing import preferred_non_project_workspace, project_id_from_workspace

logger = logging.getLogger(__name__)


@dataclass
class WindowRecoveryResult:
    """Counts and non-fatal errors of a recovery run."""
    windows_processed: int = 0
    windows_recovered: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization"""
        return {
            "windows_processed": self.windows_processed,
            "windows_recovered": self.windows_recovered,
            "errors": self.errors,
        }


class WindowRecoveryManager:
    """Recovers windows of one workspace or of every workspace.

    Not thread-safe; call from one thread. ``AccessibilityPermissionError``
    is never folded into the result errors: it propagates so the caller can
    prompt the user.
    """

    def __init__(
        self,
        aerospace: AeroSpaceClient,
        window_positioner,
        screen_visible_frame: Rect,
        screen_detector=None,
        layout_config: Optional[LayoutConfig] = None,
    ):
        self.aerospace = aerospace
        self.window_positioner = window_positioner
        self.screen_visible_frame = screen_visible_frame
        self.screen_detector = screen_detector
        self.layout_config = layout_config or LayoutConfig()

    def _focused_window_id(self) -> Optional[int]:
        try:
            return self.aerospace.focused_window().window_id
        except AeroSpaceError:
            return None

    def _restore_focus(self, window_id: Optional[int]) -> None:
        if window_id is None:
            return
        try:
            self.aerospace.focus_window(window_id)
        except AeroSpaceError as e:
            logger.warning(f"recover.focus_restore_failed window_id={window_id} {e}")

    def recover_workspace_windows(self, workspace: str) -> WindowRecoveryResult:
        """Recover every window in one workspace.

        Raises:
            AeroSpaceError: If the workspace windows cannot be listed
            AccessibilityPermissionError: If Accessibility is not granted
        """
        logger.info(f"recover_workspace.started workspace={workspace}")
        original_focus = self._focused_window_id()

        try:
            windows = self.aerospace.list_windows_workspace(workspace)
        except AeroSpaceError as e:
            logger.error(f"recover_workspace.list_failed workspace={workspace} {e}")
            raise

        result = WindowRecoveryResult(windows_processed=len(windows))
        handled: Set[int] = set()

        project_id = project_id_from_workspace(workspace)
        if project_id is not None and self.screen_detector is not None:
            recovered, errors, handled = self._recover_project_layout(project_id, windows)
            result.windows_recovered += recovered
            result.errors.extend(errors)

        for window in windows:
            if window.window_id in handled:
                continue
            self._recover_into(result, window)

        self._restore_focus(original_focus)
        logger.info(
            f"recover_workspace.completed workspace={workspace} processed={result.windows_processed} "
            f"recovered={result.windows_recovered} errors={len(result.errors)}"
        )
        return result

    def recover_all_windows(
        self, progress: Optional[Callable[[int, int], None]] = None
    ) -> WindowRecoveryResult:
        """Move every window to the preferred non-project workspace and recover it.

        Args:
            progress: Called with (current, total) after each window

        Raises:
            AeroSpaceError: If workspaces cannot be listed
            AccessibilityPermissionError: If Accessibility is not granted
        """
        logger.info("recover_all.started")
        original_focus = self._focused_window_id()

        try:
            workspaces = self.aerospace.list_workspaces()
        except AeroSpaceError as e:
            logger.error(f"recover_all.list_workspaces_failed {e}")
            raise

        result = WindowRecoveryResult()
        all_windows: List[ManagedWindow] = []
        queried: List[str] = []
        with_windows: Set[str] = set()
        for workspace in workspaces:
            try:
                windows = self.aerospace.list_windows_workspace(workspace)
            except AeroSpaceError as e:
                result.errors.append(f"Failed to list workspace {workspace}: {e}")
                logger.warning(f"recover_all.workspace_list_failed workspace={workspace} {e}")
                continue
            all_windows.extend(windows)
            queried.append(workspace)
            if windows:
                with_windows.add(workspace)

        destination = preferred_non_project_workspace(queried, lambda ws: ws in with_windows)
        total = len(all_windows)

        for index, window in enumerate(all_windows, start=1):
            try:
                self.aerospace.move_window_to_workspace(destination, window.window_id, focus_follows=True)
            except AeroSpaceError as e:
                result.errors.append(f"Move failed for window {window.window_id} ({window.window_title}): {e}")
            else:
                self._recover_into(result, window)
            result.windows_processed += 1
            if progress is not None:
                progress(index, total)

        self._restore_focus(original_focus)
        logger.info(
            f"recover_all.completed processed={result.windows_processed} "
            f"recovered={result.windows_recovered} errors={len(result.errors)}"
        )
        return result

    def _recover_into(self, result: WindowRecoveryResult, window: ManagedWindow) -> None:
        outcome, error = self._recover_single(window)
        if outcome == RecoveryOutcome.RECOVERED:
            result.windows_recovered += 1
        elif outcome == RecoveryOutcome.NOT_FOUND:
            result.errors.append(f"Window not found for recovery: {window.window_id} ({window.window_title})")
        elif error:
            result.errors.append(error)

    def _recover_single(self, window: ManagedWindow) -> Tuple[Optional[RecoveryOutcome], Optional[str]]:
        label = f"{window.window_id} ({window.window_title})"
        try:
            self.aerospace.focus_window(window.window_id)
        except AeroSpaceError as e:
            return None, f"Focus failed for window {label}: {e}"

        try:
            outcome = self.window_positioner.recover_window(
                window.app_bundle_id, window.window_title, self.screen_visible_frame
            )
        except AccessibilityPermissionError:
            raise
        except WindowPositionError as e:
            return None, f"Recover failed for window {label}: {e}"
        return outcome, None

    def _recover_project_layout(
        self, project_id: str, windows: List[ManagedWindow]
    ) -> Tuple[int, List[str], Set[int]]:
        """Re-apply the computed layout to a project's tagged windows.

        Returns:
            (recovered count, errors, ids of windows handled here)
        """
        bundles = {w.app_bundle_id for w in windows}
        targets = [(b, label) for b, label in ((IDE_BUNDLE_ID, "IDE"), (BROWSER_BUNDLE_ID, "Chrome")) if b in bundles]
        if not targets:
            return 0, [], set()

        errors: List[str] = []
        screen = self.screen_visible_frame
        center = Point(x=screen.mid_x, y=screen.mid_y)

        try:
            mode = self.screen_detector.detect_mode(center, self.layout_config.small_screen_threshold)
        except ScreenDetectionError as e:
            logger.warning(f"recover_layout.screen_mode_failed {e}")
            errors.append(f"Recovery screen mode detection failed ({e}); using wide fallback")
            mode = ScreenMode.WIDE

        try:
            physical_width = self.screen_detector.physical_width_inches(center)
        except ScreenDetectionError as e:
            logger.warning(f"recover_layout.physical_width_failed {e}")
            errors.append(f'Recovery physical width detection failed ({e}); using 32" fallback')
            physical_width = FALLBACK_PHYSICAL_WIDTH_INCHES

        layout = compute_layout(screen, physical_width, mode, self.layout_config)
        offset = cascade_offset_points(screen.width, physical_width)
        token = window_token(project_id)

        recovered = 0
        handled: Set[int] = set()
        for bundle_id, label in targets:
            tagged = [w for w in windows if w.app_bundle_id == bundle_id and w.has_token(token)]
            frame = layout.ide_frame if bundle_id == IDE_BUNDLE_ID else layout.browser_frame
            try:
                position = self.window_positioner.set_window_frames(bundle_id, project_id, frame, offset)
            except AccessibilityPermissionError:
                raise
            except WindowPositionError as e:
                logger.warning(f"recover_layout.{label.lower()}_failed {e}")
                errors.append(f"Recovery {label} positioning failed: {e}")
                continue
            recovered += min(position.positioned, len(tagged))
            handled.update(w.window_id for w in tagged)
            logger.info(
                f"recover_layout.{label.lower()}_positioned positioned={position.positioned} matched={position.matched}"
            )

        return recovered, errors, handled
