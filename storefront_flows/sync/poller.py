"""
Bounded-time predicate polling.

Every wait in the flows is an instance of ConditionPoller.poll: evaluate the
condition immediately, then sleep one interval between evaluations until the
condition holds or the round's timeout elapses.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..errors import ConfigError, DriverError, PollExhausted
from .policy import RetryPolicy

logger = logging.getLogger("storefront.flows.poller")

Condition = Callable[[], bool]

# Float clocks drift by a few ulps; a round that is due must not run one more evaluation.
_CLOCK_SLACK_S = 1e-6


def _error_kind(exc: BaseException) -> tuple[str, str]:
    if isinstance(exc, DriverError):
        return type(exc).__name__, exc.kind
    return type(exc).__name__, ""


class ConditionPoller:
    """Poll a Condition under a RetryPolicy.

    Args:
        clock: Monotonic clock in seconds (defaults to time.monotonic).
        sleep: Sleep function in seconds (defaults to time.sleep).
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._clock = clock
        self._sleep = sleep

    def now(self) -> float:
        return (self._clock or time.monotonic)()

    def pause(self, seconds: float) -> None:
        (self._sleep or time.sleep)(seconds)

    def poll(self, condition: Condition, policy: RetryPolicy) -> bool:
        """Return True as soon as ``condition()`` holds, False once the timeout elapses.

        A condition that raises counts as "not yet satisfied". If every evaluation
        in the round raised the same kind of error, PollExhausted is raised with the
        last error, so a broken driver is distinguishable from a false condition.
        """
        if policy.poll_interval_ms <= 0:
            raise ConfigError("poll_interval_ms", "must be > 0 (polling never busy-spins)")

        start = self.now()
        attempts = 0
        last_error: BaseException | None = None
        error_kind: tuple[str, str] | None = None
        uniform_failures = True

        while True:
            attempts += 1
            try:
                if condition():
                    logger.debug("condition met after %d evaluation(s)", attempts)
                    return True
                uniform_failures = False
            except Exception as exc:  # noqa: BLE001
                kind = _error_kind(exc)
                if error_kind is not None and kind != error_kind:
                    uniform_failures = False
                error_kind = kind
                last_error = exc
                logger.debug("condition evaluation %d raised %s: %s", attempts, kind[0], exc)

            elapsed = self.now() - start
            if elapsed >= policy.timeout_s - _CLOCK_SLACK_S:
                break
            self.pause(policy.interval_s)

        elapsed_ms = int(round((self.now() - start) * 1000))
        if uniform_failures and last_error is not None:
            raise PollExhausted(last_error=last_error, attempts=attempts, elapsed_ms=elapsed_ms)
        logger.debug("condition not met after %d evaluation(s) in %dms", attempts, elapsed_ms)
        return False


def poll(condition: Condition, policy: RetryPolicy) -> bool:
    """Module-level convenience using the real clock."""
    return ConditionPoller().poll(condition, policy)


__all__ = ["Condition", "ConditionPoller", "poll"]
