from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..driver.base import Driver, ElementRef
from ..errors import HardAssertionFailure
from ..sync.poller import Condition, ConditionPoller
from ..sync.policy import FlowTimings, RetryPolicy, resolve_timings
from ..sync.probe import SoftProbe
from ..sync.retry import ActionOutcome, RetryableAction


class FlowState(str, Enum):
    LOGIN = "Login"
    INVENTORY = "Inventory"
    CART = "Cart"
    CHECKOUT = "Checkout"
    CONFIRMATION = "Confirmation"


@dataclass(frozen=True)
class FlowContext:
    """Everything a FlowStep needs, passed explicitly from step to step.

    One context is built per scenario around that scenario's session driver.
    The probe is shared by every step of the scenario so diagnostics
    accumulate in order.
    """

    driver: Driver
    timings: FlowTimings = field(default_factory=resolve_timings)
    retry: RetryableAction = field(default_factory=RetryableAction)
    probe: SoftProbe = field(default_factory=SoftProbe)

    @classmethod
    def create(
        cls,
        driver: Driver,
        *,
        timings: FlowTimings | None = None,
        poller: ConditionPoller | None = None,
        probe: SoftProbe | None = None,
    ) -> FlowContext:
        return cls(
            driver=driver,
            timings=timings or resolve_timings(),
            retry=RetryableAction(poller),
            probe=probe or SoftProbe(),
        )

    @property
    def poller(self) -> ConditionPoller:
        return self.retry.poller

    def wait(self, condition: Condition, policy: RetryPolicy) -> bool:
        return self.poller.poll(condition, policy)

    def act(
        self,
        name: str,
        action: Callable[[], None],
        post_condition: Condition,
        policy: RetryPolicy,
    ) -> ActionOutcome:
        return self.retry.run(action, post_condition, policy, name=name)

    def soft(self, operation: Callable[[], Any], *, label: str) -> Any:
        return self.probe.probe(operation, label=label)

    def require(
        self,
        ok: bool,
        *,
        step: FlowState,
        check: str,
        expected: Any = True,
        actual: Any = False,
        detail: str = "",
    ) -> None:
        if not ok:
            raise HardAssertionFailure(
                step=step.value, check=check, expected=expected, actual=actual, detail=detail
            )

    def describe(self, ref: ElementRef) -> str:
        """Location suffix for assertion details; never raises."""
        url = self.probe_url()
        return f"{ref} at {url}" if url else str(ref)

    def probe_url(self) -> str:
        try:
            return self.driver.current_url() or ""
        except Exception:  # noqa: BLE001
            return ""


__all__ = ["FlowContext", "FlowState"]
