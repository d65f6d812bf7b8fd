"""Thread-safe circuit breaker for AeroSpace CLI commands.

When AeroSpace hangs, every CLI call times out after several seconds. A single
timeout opens the breaker and subsequent calls fail immediately until the
cooldown expires; the first call after that is let through as a trial.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

DEFAULT_COOLDOWN_SECONDS = 30.0
MAX_RECOVERY_ATTEMPTS = 2


@dataclass(frozen=True)
class CircuitState:
    """Breaker state: closed (``until`` is None) or open until a clock value."""
    until: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.until is not None

    @classmethod
    def closed(cls) -> "CircuitState":
        return cls()

    @classmethod
    def opened(cls, until: float) -> "CircuitState":
        return cls(until=until)


class CircuitBreaker:
    """Fail-fast gate shared by every AeroSpace client in a process.

    Every state access goes through one lock; instances are safe to share
    across threads.

    Args:
        cooldown_seconds: How long to fail fast after a timeout
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(
        self,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._state = CircuitState.closed()
        self._recovery_attempts = 0
        self._recovery_in_progress = False

    @property
    def current_state(self) -> CircuitState:
        with self._lock:
            return self._state

    @property
    def is_recovery_in_progress(self) -> bool:
        with self._lock:
            return self._recovery_in_progress

    def should_allow(self) -> bool:
        """Return True if a call may run.

        An open breaker whose cooldown has expired closes here, letting the
        next call through as a trial.
        """
        with self._lock:
            if not self._state.is_open:
                return True
            if self._clock() >= self._state.until:
                self._state = CircuitState.closed()
                return True
            return False

    def record_timeout(self) -> bool:
        """Open the breaker for a full cooldown.

        A fresh trip (closed to open) also resets the recovery budget.

        Returns:
            True if this call tripped a closed breaker
        """
        with self._lock:
            tripped = not self._state.is_open
            if tripped:
                self._recovery_attempts = 0
            self._state = CircuitState.opened(self._clock() + self.cooldown_seconds)
            return tripped

    def record_success(self) -> None:
        with self._lock:
            self._state = CircuitState.closed()
            self._recovery_attempts = 0

    def reset(self) -> None:
        """Force closed and clear recovery tracking (e.g. after a fresh start)."""
        with self._lock:
            self._state = CircuitState.closed()
            self._recovery_attempts = 0
            self._recovery_in_progress = False

    def remaining_cooldown(self) -> float:
        """Seconds until an open breaker lets a trial call through (0 if closed)."""
        with self._lock:
            if not self._state.is_open:
                return 0.0
            return max(0.0, self._state.until - self._clock())

    def begin_recovery(self) -> bool:
        """Atomically start a recovery attempt if one is allowed.

        Allowed only while open with the cooldown unexpired, below
        ``MAX_RECOVERY_ATTEMPTS``, and with no attempt already running.

        Returns:
            True if the caller should proceed with a restart
        """
        with self._lock:
            if not self._state.is_open or self._clock() >= self._state.until:
                return False
            if self._recovery_attempts >= MAX_RECOVERY_ATTEMPTS or self._recovery_in_progress:
                return False
            self._recovery_in_progress = True
            return True

    def end_recovery(self, success: bool) -> None:
        """Finish a recovery attempt.

        Success closes the breaker. Failure counts the attempt and re-opens for
        a full cooldown, since a restart may already have reset the breaker
        before its readiness poll failed.
        """
        with self._lock:
            self._recovery_in_progress = False
            if success:
                self._state = CircuitState.closed()
                self._recovery_attempts = 0
            else:
                self._recovery_attempts += 1
                self._state = CircuitState.opened(self._clock() + self.cooldown_seconds)


_shared_breaker: Optional[CircuitBreaker] = None
_shared_lock = threading.Lock()


def shared_circuit_breaker() -> CircuitBreaker:
    """Process-wide breaker for production wiring.

    Library code takes a breaker argument; only entry points should call this.
    """
    global _shared_breaker
    with _shared_lock:
        if _shared_breaker is None:
            _shared_breaker = CircuitBreaker()
        return _shared_breaker
