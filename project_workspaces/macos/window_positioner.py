"""
Accessibility-based window frame reader/writer.

Finds an app's windows whose title carries a project token, reads and writes
their frames, and recovers off-screen or oversized windows. Frames cross this
boundary in AppKit coordinates only; AX top-left positions never leave the
module.
"""

import logging
import time
from typing import List, Optional

from AppKit import NSRunningApplication, NSScreen
from ApplicationServices import (
    AXIsProcessTrusted,
    AXIsProcessTrustedWithOptions,
    AXUIElementCopyAttributeValue,
    AXUIElementCreateApplication,
    AXUIElementSetAttributeValue,
    AXUIElementSetMessagingTimeout,
    AXValueCreate,
    AXValueGetValue,
    kAXErrorSuccess,
    kAXFocusedWindowAttribute,
    kAXPositionAttribute,
    kAXSizeAttribute,
    kAXTitleAttribute,
    kAXTrustedCheckOptionPrompt,
    kAXValueCGPointType,
    kAXValueCGSizeType,
    kAXWindowsAttribute,
)
import Quartz

from ..constants import window_token
from ..errors import AccessibilityPermissionError, WindowPositionError
from ..models import Rect, RecoveryOutcome, WindowPositionResult
from ..recovery.frame_recovery import compute_recovered_frame, select_recovery_screen
from ..services.coordinates import (
    ax_to_screen_rect,
    order_window_matches,
    primary_screen_height,
    screen_rect_to_ax,
)
from ..services.layout_engine import cascade_frames, screen_containing
from .screen_geometry import rect_from_ns

logger = logging.getLogger(__name__)

AX_TIMEOUT_SECONDS = 0.5
SLOW_CALL_MS = 100


class AXWindowPositioner:
    """Reads and writes window frames through the Accessibility API."""

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def is_accessibility_trusted(self) -> bool:
        return bool(AXIsProcessTrusted())

    def prompt_for_accessibility(self) -> bool:
        """Show the system Accessibility prompt; returns current trust."""
        trusted = bool(AXIsProcessTrustedWithOptions({kAXTrustedCheckOptionPrompt: True}))
        logger.debug(f"ax.prompt_accessibility result={trusted}")
        return trusted

    def _require_trust(self) -> None:
        if not self.is_accessibility_trusted():
            raise AccessibilityPermissionError(
                "Accessibility permission is required to position windows. "
                "Grant it in System Settings > Privacy & Security > Accessibility."
            )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def get_primary_window_frame(self, bundle_id: str, project_id: str) -> Rect:
        """Frame of the first tagged window of an app.

        Raises:
            AccessibilityPermissionError: Accessibility not granted
            WindowPositionError: No tagged window, or AX read failed
        """
        self._require_trust()
        token = window_token(project_id)
        matches = self._find_matching_windows(bundle_id, token)
        if not matches:
            raise WindowPositionError(f"No window found with token '{token}' for {bundle_id}")
        return self._read_frame(matches[0], bundle_id)

    def set_window_frames(
        self,
        bundle_id: str,
        project_id: str,
        primary_frame: Rect,
        cascade_offset: float,
    ) -> WindowPositionResult:
        """Position every tagged window of an app, cascading extras.

        Raises:
            AccessibilityPermissionError: Accessibility not granted
            WindowPositionError: No tagged window, or every write failed
        """
        self._require_trust()
        token = window_token(project_id)
        matches = self._find_matching_windows(bundle_id, token)
        if not matches:
            raise WindowPositionError(f"No window found with token '{token}' for {bundle_id}")

        visible_frames = [rect_from_ns(s.visibleFrame()) for s in NSScreen.screens()]
        screen = screen_containing(primary_frame.mid_x, primary_frame.mid_y, visible_frames)
        frames = cascade_frames(primary_frame, len(matches), cascade_offset, screen)

        positioned = 0
        last_error: Optional[WindowPositionError] = None
        for index, (element, frame) in enumerate(zip(matches, frames)):
            try:
                self._write_frame(element, frame, bundle_id)
                positioned += 1
            except WindowPositionError as e:
                last_error = e
                logger.warning(f"Failed to set frame for match {index} of {bundle_id}: {e}")

        if positioned == 0 and last_error is not None:
            raise last_error
        return WindowPositionResult(positioned=positioned, matched=len(matches))

    def recover_window(self, bundle_id: str, window_title: str, screen_visible_frame: Rect) -> RecoveryOutcome:
        """Recover the window with an exact title (focused window preferred)."""
        self._require_trust()
        element = self._find_focused_or_titled_window(bundle_id, window_title)
        if element is None:
            return RecoveryOutcome.NOT_FOUND
        return self._recover_element(element, bundle_id, screen_visible_frame)

    def recover_focused_window(self, bundle_id: str, screen_visible_frame: Rect) -> RecoveryOutcome:
        """Recover the app's focused window."""
        self._require_trust()
        for pid in self._pids(bundle_id):
            app = self._app_element(pid)
            err, focused = AXUIElementCopyAttributeValue(app, kAXFocusedWindowAttribute, None)
            if err == kAXErrorSuccess and focused is not None:
                AXUIElementSetMessagingTimeout(focused, AX_TIMEOUT_SECONDS)
                return self._recover_element(focused, bundle_id, screen_visible_frame)
        return RecoveryOutcome.NOT_FOUND

    # ------------------------------------------------------------------
    # Window resolution
    # ------------------------------------------------------------------

    def _pids(self, bundle_id: str) -> List[int]:
        apps = NSRunningApplication.runningApplicationsWithBundleIdentifier_(bundle_id)
        return sorted(app.processIdentifier() for app in apps)

    def _app_element(self, pid: int):
        element = AXUIElementCreateApplication(pid)
        AXUIElementSetMessagingTimeout(element, AX_TIMEOUT_SECONDS)
        return element

    def _read_title(self, element) -> Optional[str]:
        err, title = AXUIElementCopyAttributeValue(element, kAXTitleAttribute, None)
        if err != kAXErrorSuccess or title is None:
            return None
        return str(title)

    def _window_elements(self, pid: int):
        """Return (error, windows) for one pid; windows is None on failure."""
        start = time.perf_counter()
        err, windows = AXUIElementCopyAttributeValue(self._app_element(pid), kAXWindowsAttribute, None)
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms > SLOW_CALL_MS:
            logger.warning(f"ax.enumerate_windows SLOW pid={pid} elapsed={elapsed_ms:.1f}ms")
        if err != kAXErrorSuccess or windows is None:
            return err, None
        return err, list(windows)

    def _find_matching_windows(self, bundle_id: str, token: str) -> list:
        pids = self._pids(bundle_id)
        if not pids:
            raise WindowPositionError(f"No running application with bundle ID '{bundle_id}'")

        matches = []
        last_error = None
        any_succeeded = False
        enum_index = 0
        for pid in pids:
            err, windows = self._window_elements(pid)
            if windows is None:
                last_error = err
                continue
            any_succeeded = True
            for window in windows:
                AXUIElementSetMessagingTimeout(window, AX_TIMEOUT_SECONDS)
                title = self._read_title(window)
                if title is not None and token in title:
                    matches.append((title, enum_index, window))
                enum_index += 1

        if not any_succeeded and last_error is not None:
            raise WindowPositionError(
                f"Failed to enumerate windows for {bundle_id} "
                f"(AX error {last_error}; may indicate missing Accessibility permission)"
            )
        return order_window_matches(matches)

    def _find_focused_or_titled_window(self, bundle_id: str, title: str):
        pids = self._pids(bundle_id)
        if not pids:
            # App not running is not an error for recovery
            return None

        for pid in pids:
            err, focused = AXUIElementCopyAttributeValue(self._app_element(pid), kAXFocusedWindowAttribute, None)
            if err == kAXErrorSuccess and focused is not None:
                AXUIElementSetMessagingTimeout(focused, AX_TIMEOUT_SECONDS)
                if self._read_title(focused) == title:
                    return focused

        last_error = None
        any_succeeded = False
        for pid in pids:
            err, windows = self._window_elements(pid)
            if windows is None:
                last_error = err
                continue
            any_succeeded = True
            for window in windows:
                AXUIElementSetMessagingTimeout(window, AX_TIMEOUT_SECONDS)
                if self._read_title(window) == title:
                    return window

        if not any_succeeded and last_error is not None:
            raise WindowPositionError(
                f"Failed to enumerate windows for {bundle_id} "
                f"(AX error {last_error}; may indicate missing Accessibility permission)"
            )
        return None

    # ------------------------------------------------------------------
    # Frame I/O
    # ------------------------------------------------------------------

    def _primary_height(self) -> float:
        height = primary_screen_height([rect_from_ns(s.frame()) for s in NSScreen.screens()])
        if height is None:
            raise WindowPositionError("Cannot determine primary display (no screen with origin 0,0)")
        return height

    def _read_frame(self, element, bundle_id: str) -> Rect:
        primary_height = self._primary_height()

        err, position_value = AXUIElementCopyAttributeValue(element, kAXPositionAttribute, None)
        if err != kAXErrorSuccess or position_value is None:
            raise WindowPositionError(f"Failed to read window position for {bundle_id} (AX error {err})")
        ok, position = AXValueGetValue(position_value, kAXValueCGPointType, None)
        if not ok:
            raise WindowPositionError(f"Failed to unpack window position for {bundle_id}")

        err, size_value = AXUIElementCopyAttributeValue(element, kAXSizeAttribute, None)
        if err != kAXErrorSuccess or size_value is None:
            raise WindowPositionError(f"Failed to read window size for {bundle_id} (AX error {err})")
        ok, size = AXValueGetValue(size_value, kAXValueCGSizeType, None)
        if not ok:
            raise WindowPositionError(f"Failed to unpack window size for {bundle_id}")

        return ax_to_screen_rect(position.x, position.y, size.width, size.height, primary_height)

    def _write_frame(self, element, frame: Rect, bundle_id: str) -> None:
        primary_height = self._primary_height()
        ax_x, ax_y = screen_rect_to_ax(frame, primary_height)

        position_value = AXValueCreate(kAXValueCGPointType, Quartz.CGPointMake(ax_x, ax_y))
        err = AXUIElementSetAttributeValue(element, kAXPositionAttribute, position_value)
        if err != kAXErrorSuccess:
            raise WindowPositionError(f"Failed to set window position for {bundle_id} (AX error {err})")

        size_value = AXValueCreate(kAXValueCGSizeType, Quartz.CGSizeMake(frame.width, frame.height))
        err = AXUIElementSetAttributeValue(element, kAXSizeAttribute, size_value)
        if err != kAXErrorSuccess:
            raise WindowPositionError(f"Failed to set window size for {bundle_id} (AX error {err})")

    def _recover_element(self, element, bundle_id: str, screen_visible_frame: Rect) -> RecoveryOutcome:
        current = self._read_frame(element, bundle_id)
        screen = select_recovery_screen(
            current,
            screen_visible_frame,
            [rect_from_ns(s.visibleFrame()) for s in NSScreen.screens()],
        )
        recovered = compute_recovered_frame(current, screen)
        if recovered is None:
            return RecoveryOutcome.UNCHANGED
        self._write_frame(element, recovered, bundle_id)
        logger.info(f"window.recovered bundle={bundle_id} from={current} to={recovered}")
        return RecoveryOutcome.RECOVERED
