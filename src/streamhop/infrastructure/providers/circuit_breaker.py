"""Per-provider circuit breaker for soft-disabling drifted providers.

Drift failures are counted inside a sliding ``window_seconds``.  When
``failure_threshold`` of them accumulate the breaker opens and the
provider is skipped for ``cooldown_seconds``.  After the cooldown one
probe attempt is allowed (half-open): success closes the breaker, a
failure re-opens it and restarts the cooldown.

Operators can also force a provider into a ``disabled`` state, either
indefinitely or for a bounded number of seconds.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from enum import Enum


class BreakerState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"
    DISABLED = "disabled"


class ProviderCircuitBreaker:
    """Track windowed failure counts and open/closed state per provider.

    Guarded by a lock: several ``resolve()`` calls may record outcomes for
    the same provider concurrently.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 3,
        window_seconds: float = 300.0,
        cooldown_seconds: float = 600.0,
    ) -> None:
        self._threshold = failure_threshold
        self._window = window_seconds
        self._cooldown = cooldown_seconds
        self._failures: dict[str, deque[float]] = {}
        self._states: dict[str, BreakerState] = {}
        self._opened_at: dict[str, float] = {}
        # name -> monotonic deadline, or None for "until enabled"
        self._manual: dict[str, float | None] = {}
        self._lock = threading.Lock()

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def allow(self, name: str) -> bool:
        """Return ``True`` if *name* may run an attempt now.

        - **DISABLED**: blocked until the manual deadline (if any) passes.
        - **CLOSED**: always allowed.
        - **OPEN**: blocked until cooldown expires, then transitions to
          HALF_OPEN and allows a probe.
        - **HALF_OPEN**: allowed (probe in progress).
        """
        now = time.monotonic()
        with self._lock:
            if self._manual_active(name, now):
                return False

            state = self._states.get(name, BreakerState.CLOSED)
            if state is BreakerState.OPEN:
                if now - self._opened_at.get(name, 0.0) >= self._cooldown:
                    self._states[name] = BreakerState.HALF_OPEN
                    return True
                return False
            return True

    def record_success(self, name: str) -> None:
        """Record a successful attempt; closes the breaker."""
        with self._lock:
            self._failures.pop(name, None)
            self._states.pop(name, None)
            self._opened_at.pop(name, None)

    def record_failure(self, name: str) -> int:
        """Record a drift failure and return the count inside the window.

        In HALF_OPEN a single failure re-opens the breaker.
        """
        now = time.monotonic()
        with self._lock:
            window = self._failures.setdefault(name, deque())
            window.append(now)
            while window and now - window[0] > self._window:
                window.popleft()
            count = len(window)

            state = self._states.get(name, BreakerState.CLOSED)
            if state is BreakerState.HALF_OPEN or count >= self._threshold:
                self._states[name] = BreakerState.OPEN
                self._opened_at[name] = now
            return count

    def disable(self, name: str, seconds: float | None = None) -> None:
        """Force *name* off, for *seconds* or until :meth:`enable`."""
        with self._lock:
            self._manual[name] = (
                None if seconds is None else time.monotonic() + seconds
            )

    def enable(self, name: str) -> None:
        """Clear a manual disable and reset the breaker to CLOSED."""
        with self._lock:
            self._manual.pop(name, None)
        self.record_success(name)

    def state(self, name: str) -> str:
        """Return the current state as a string (for diagnostics).

        Does not perform the OPEN -> HALF_OPEN transition; an expired
        cooldown is reported as ``half_open``.
        """
        now = time.monotonic()
        with self._lock:
            if self._manual_active(name, now):
                return BreakerState.DISABLED.value
            state = self._states.get(name, BreakerState.CLOSED)
            if (
                state is BreakerState.OPEN
                and now - self._opened_at.get(name, 0.0) >= self._cooldown
            ):
                return BreakerState.HALF_OPEN.value
            return state.value

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _manual_active(self, name: str, now: float) -> bool:
        if name not in self._manual:
            return False
        deadline = self._manual[name]
        if deadline is not None and now >= deadline:
            del self._manual[name]
            return False
        return True
