"""
Storefront UI flows over a browser driver.

Waits are bounded polls (ConditionPoller), actions are retried against a
post-condition (RetryableAction), diagnostic checks never abort (SoftProbe),
and every scenario walks an immutable chain of page steps inside its own
browser session (ScenarioRunner).
"""

from __future__ import annotations

from .config import FlowConfig
from .errors import (
    ActionFailed,
    ConfigError,
    DriverError,
    FlowError,
    HardAssertionFailure,
    IllegalTransition,
    PollExhausted,
)
from .flow import Expect, FlowContext, FlowState, FlowStateMachine, Transition
from .runner import ScenarioError, ScenarioOutcome, ScenarioRunner
from .scenarios import Scenario, build_all, build_scenarios
from .sync import ActionOutcome, ConditionPoller, RetryableAction, RetryPolicy, SoftProbe

__version__ = "0.1.0"

__all__ = [
    "ActionFailed",
    "ActionOutcome",
    "ConditionPoller",
    "ConfigError",
    "DriverError",
    "Expect",
    "FlowConfig",
    "FlowContext",
    "FlowError",
    "FlowState",
    "FlowStateMachine",
    "HardAssertionFailure",
    "IllegalTransition",
    "PollExhausted",
    "RetryPolicy",
    "RetryableAction",
    "Scenario",
    "ScenarioError",
    "ScenarioOutcome",
    "ScenarioRunner",
    "SoftProbe",
    "Transition",
    "build_all",
    "build_scenarios",
]
