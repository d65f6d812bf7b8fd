"""
Recovery module

Off-screen and oversized window recovery.
"""

from .frame_recovery import compute_recovered_frame, select_recovery_screen
from .window_recovery import WindowRecoveryManager, WindowRecoveryResult

__all__ = [
    "compute_recovered_frame",
    "select_recovery_screen",
    "WindowRecoveryManager",
    "WindowRecoveryResult",
]
