from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import ActionFailed, DriverError
from .poller import Condition, ConditionPoller
from .policy import RetryPolicy

logger = logging.getLogger("storefront.flows.retry")


@dataclass(frozen=True)
class ActionOutcome:
    succeeded: bool
    attempts_used: int
    elapsed_ms: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "attempts_used": self.attempts_used,
            "elapsed_ms": self.elapsed_ms,
        }


class RetryableAction:
    """Run an action, then wait for its post-condition; repeat up to max_attempts.

    The first polling round uses the nominal policy; each retry round uses a
    widened (doubled) timeout. An unmet post-condition is reported through
    ``ActionOutcome.succeeded`` and never raised: whether that is fatal is the
    caller's decision. The action must be safe to repeat.
    """

    def __init__(self, poller: ConditionPoller | None = None) -> None:
        self._poller = poller or ConditionPoller()

    @property
    def poller(self) -> ConditionPoller:
        return self._poller

    def run(
        self,
        action: Callable[[], None],
        post_condition: Condition,
        policy: RetryPolicy,
        *,
        name: str = "action",
    ) -> ActionOutcome:
        start = self._poller.now()
        round_policy = policy
        attempts = 0

        def _elapsed_ms() -> int:
            return int(round((self._poller.now() - start) * 1000))

        while attempts < policy.max_attempts:
            attempts += 1
            try:
                action()
            except DriverError as exc:
                outcome = ActionOutcome(succeeded=False, attempts_used=attempts, elapsed_ms=_elapsed_ms())
                raise ActionFailed(action=name, outcome=outcome, cause=exc) from exc

            if self._poller.poll(post_condition, round_policy):
                outcome = ActionOutcome(succeeded=True, attempts_used=attempts, elapsed_ms=_elapsed_ms())
                if attempts > 1:
                    logger.info("%s succeeded on attempt %d (%dms)", name, attempts, outcome.elapsed_ms)
                return outcome

            if attempts < policy.max_attempts:
                previous_ms = round_policy.timeout_ms
                round_policy = round_policy.widened()
                logger.warning(
                    "%s: post-condition not met within %dms; retrying with %dms",
                    name,
                    previous_ms,
                    round_policy.timeout_ms,
                )

        outcome = ActionOutcome(succeeded=False, attempts_used=attempts, elapsed_ms=_elapsed_ms())
        logger.warning("%s: post-condition still unmet after %d attempt(s)", name, attempts)
        return outcome


__all__ = ["ActionOutcome", "RetryableAction"]
