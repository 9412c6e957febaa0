"""
Capability-gated transitions between flow steps.

TRANSITIONS lists, per state, the operations that move the scenario to its
next step; READS lists the operations that only observe the current page.
FlowStateMachine refuses anything else with IllegalTransition and checks
that each transition lands on the state it declares.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import HardAssertionFailure, IllegalTransition
from .context import FlowState
from .steps import FlowStep

logger = logging.getLogger("storefront.flows.machine")

# state -> {operation: resulting state}
TRANSITIONS: dict[FlowState, dict[str, FlowState]] = {
    FlowState.LOGIN: {
        "submit": FlowState.INVENTORY,
        "attempt_and_stay": FlowState.LOGIN,
    },
    FlowState.INVENTORY: {
        "verify_loaded": FlowState.INVENTORY,
        "toggle_add_to_cart": FlowState.INVENTORY,
        "toggle_remove_from_cart": FlowState.INVENTORY,
        "verify_cart_badge": FlowState.INVENTORY,
        "go_to_cart": FlowState.CART,
    },
    FlowState.CART: {
        "verify_item_present": FlowState.CART,
        "proceed_to_checkout": FlowState.CHECKOUT,
        "continue_shopping": FlowState.INVENTORY,
    },
    FlowState.CHECKOUT: {
        "fill_details": FlowState.CHECKOUT,
        "continue_": FlowState.CHECKOUT,
        "finish": FlowState.CONFIRMATION,
        "cancel": FlowState.CART,
        "complete": FlowState.CONFIRMATION,
    },
    FlowState.CONFIRMATION: {
        "verify_complete": FlowState.CONFIRMATION,
        "back_home": FlowState.INVENTORY,
    },
}

READS: dict[FlowState, frozenset[str]] = {
    FlowState.LOGIN: frozenset({"is_error_displayed", "error_message"}),
    FlowState.INVENTORY: frozenset(
        {
            "cart_badge_count",
            "is_inventory_displayed",
            "is_add_button_visible",
            "is_remove_button_visible",
            "is_cart_badge_displayed",
        }
    ),
    FlowState.CART: frozenset({"has_items"}),
    FlowState.CHECKOUT: frozenset({"error_message"}),
    FlowState.CONFIRMATION: frozenset({"is_displayed", "message", "text"}),
}

MATCH_MODES = ("equals", "contains", "truthy", "falsy")


@dataclass(frozen=True)
class Transition:
    op: str
    args: tuple[Any, ...] = ()
    # Positions in args that are never logged.
    secret_args: tuple[int, ...] = ()

    def describe(self) -> str:
        shown = ["***" if i in self.secret_args else repr(arg) for i, arg in enumerate(self.args)]
        return f"{self.op}({', '.join(shown)})"


@dataclass(frozen=True)
class Expect:
    label: str
    read: str
    expected: Any = None
    match: str = "equals"
    hard: bool = True
    args: tuple[Any, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.match not in MATCH_MODES:
            raise ValueError(f"unknown match mode {self.match!r} (expected one of {', '.join(MATCH_MODES)})")

    def matches(self, actual: Any) -> bool:
        if self.match == "truthy":
            return bool(actual)
        if self.match == "falsy":
            return not actual
        if self.match == "contains":
            return actual is not None and str(self.expected) in str(actual)
        return actual == self.expected

    def describe_expected(self) -> str:
        if self.match in ("truthy", "falsy"):
            return self.match
        return f"{self.match} {self.expected!r}"


PlanItem = Union[Transition, Expect]


class FlowStateMachine:
    """Apply named operations to flow steps, refusing those the step does not offer."""

    def __init__(
        self,
        transitions: dict[FlowState, dict[str, FlowState]] | None = None,
        reads: dict[FlowState, frozenset[str]] | None = None,
    ) -> None:
        self.transitions = transitions if transitions is not None else TRANSITIONS
        self.reads = reads if reads is not None else READS

    def allowed(self, state: FlowState) -> tuple[str, ...]:
        return tuple(sorted(self.transitions.get(state, {})))

    def _bound(self, step: FlowStep, op: str) -> Callable[..., Any]:
        method = getattr(step, op, None)
        if not callable(method):
            raise IllegalTransition(state=step.state.value, operation=op, allowed=self.allowed(step.state))
        return method

    def apply(self, step: FlowStep, op: str, *args: Any) -> FlowStep:
        target = self.transitions.get(step.state, {}).get(op)
        if target is None:
            raise IllegalTransition(state=step.state.value, operation=op, allowed=self.allowed(step.state))
        result = self._bound(step, op)(*args)
        if not isinstance(result, FlowStep) or result.state is not target:
            got = getattr(result, "state", type(result).__name__)
            raise IllegalTransition(
                state=step.state.value,
                operation=f"{op} -> {getattr(got, 'value', got)}",
                allowed=(target.value,),
            )
        logger.debug("%s.%s -> %s", step.state.value, op, result.state.value)
        return result

    def _check_read(self, step: FlowStep, op: str) -> None:
        legal = self.reads.get(step.state, frozenset())
        if op not in legal:
            raise IllegalTransition(state=step.state.value, operation=op, allowed=tuple(sorted(legal)))

    def read(self, step: FlowStep, op: str, *args: Any) -> Any:
        self._check_read(step, op)
        return self._bound(step, op)(*args)

    def expect(self, step: FlowStep, item: Expect, observed: dict[str, Any] | None = None) -> bool:
        """Evaluate one expectation; hard ones raise, soft ones are recorded as diagnostics."""
        probe = step.ctx.probe
        if item.hard:
            actual = self.read(step, item.read, *item.args)
        else:
            # An unknown read is a plan error, not a soft miss.
            self._check_read(step, item.read)
            actual = probe.probe(lambda: self.read(step, item.read, *item.args), label=item.label)
        if observed is not None:
            observed[item.label] = actual

        if item.matches(actual):
            return True
        if item.hard:
            raise HardAssertionFailure(
                step=step.state.value,
                check=item.label,
                expected=item.describe_expected(),
                actual=actual,
            )
        probe.record_miss(
            item.label,
            category="expectation",
            message=f"expected {item.describe_expected()}, got {actual!r}",
            replace_last=True,
        )
        return False

    def walk(
        self,
        start: FlowStep,
        plan: Iterable[PlanItem],
        *,
        observed: dict[str, Any] | None = None,
        on_step: Callable[[FlowStep], None] | None = None,
    ) -> FlowStep:
        """Run a plan from ``start`` and return the step it ends on.

        ``on_step`` is called with every step reached, so a caller can tell
        where a plan stopped when an item raises.
        """
        step = start
        for item in plan:
            if isinstance(item, Transition):
                logger.debug("apply %s on %s", item.describe(), step.state.value)
                step = self.apply(step, item.op, *item.args)
                if on_step is not None:
                    on_step(step)
            elif isinstance(item, Expect):
                self.expect(step, item, observed)
            else:
                raise TypeError(f"unsupported plan item: {item!r}")
        return step


__all__ = [
    "MATCH_MODES",
    "READS",
    "TRANSITIONS",
    "Expect",
    "FlowStateMachine",
    "PlanItem",
    "Transition",
]
