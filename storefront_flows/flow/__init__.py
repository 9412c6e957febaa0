"""Storefront flow steps and the state machine that sequences them."""

from __future__ import annotations

from .context import FlowContext, FlowState
from .machine import READS, TRANSITIONS, Expect, FlowStateMachine, PlanItem, Transition
from .steps import STEP_TYPES, Cart, Checkout, Confirmation, FlowStep, Inventory, Login

__all__ = [
    "READS",
    "STEP_TYPES",
    "TRANSITIONS",
    "Cart",
    "Checkout",
    "Confirmation",
    "Expect",
    "FlowContext",
    "FlowState",
    "FlowStateMachine",
    "FlowStep",
    "Inventory",
    "Login",
    "PlanItem",
    "Transition",
]
