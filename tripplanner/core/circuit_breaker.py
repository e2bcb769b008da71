"""
Circuit breaker guarding calls to unreliable external services.
"""

import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

from tripplanner.core.exceptions import CircuitOpenError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"  # Normal
    OPEN = "OPEN"  # Failing, reject requests
    HALF_OPEN = "HALF_OPEN"  # Probing whether the service recovered


class CircuitBreaker:
    """
    Three-state breaker with a consecutive-failure threshold and a timed cooldown.

    Calls run on worker threads during augmentation, so state changes are
    guarded by a lock.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        half_open_requests: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if half_open_requests < 1:
            raise ValueError("half_open_requests must be at least 1")

        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_requests = half_open_requests
        self._clock = clock
        self._lock = threading.Lock()

        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._probes = 0
        self._last_failure_time: Optional[float] = None

    def _refresh(self) -> None:
        # OPEN -> HALF_OPEN once the cooldown has elapsed; caller holds the lock
        if (
            self._state == CircuitState.OPEN
            and self._last_failure_time is not None
            and self._clock() - self._last_failure_time >= self.reset_timeout
        ):
            logger.info(f"[BREAKER] {self.name}: cooldown elapsed, probing")
            self._state = CircuitState.HALF_OPEN
            self._probes = 0
            self._successes = 0

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh()
            return self._state

    def can_attempt(self) -> bool:
        """Whether a call would currently be admitted. Does not reserve a probe."""
        with self._lock:
            return self._try_acquire(reserve=False)

    def _try_acquire(self, reserve: bool = True) -> bool:
        self._refresh()
        if self._state == CircuitState.CLOSED:
            return True
        if self._state == CircuitState.HALF_OPEN and self._probes < self.half_open_requests:
            if reserve:
                self._probes += 1
            return True
        return False

    def record_success(self) -> None:
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._successes += 1
                if self._successes >= self.half_open_requests:
                    logger.info(f"[BREAKER] {self.name}: recovered, closing circuit")
                    self._reset()
            else:
                self._failures = 0

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure_time = self._clock()

            if self._state == CircuitState.HALF_OPEN:
                # Any failure while probing re-opens the circuit
                self._state = CircuitState.OPEN
                logger.warning(f"[BREAKER] {self.name}: probe failed, circuit re-opened")
            elif (
                self._state == CircuitState.CLOSED
                and self._failures >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                logger.warning(
                    f"[BREAKER] {self.name}: {self._failures} consecutive failures, circuit opened"
                )

    def reset(self) -> None:
        with self._lock:
            self._reset()

    def _reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._successes = 0
        self._probes = 0
        self._last_failure_time = None

    def stats(self) -> dict[str, Any]:
        with self._lock:
            self._refresh()
            return {
                "state": self._state,
                "failures": self._failures,
                "last_failure_time": self._last_failure_time,
            }

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``fn`` through the breaker.

        Raises:
            CircuitOpenError: if the circuit rejects the call; ``fn`` is not invoked
        """
        with self._lock:
            allowed = self._try_acquire()
        if not allowed:
            raise CircuitOpenError(self.name)

        try:
            result = fn(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result
