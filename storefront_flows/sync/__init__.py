"""Synchronization primitives: polling, retried actions, soft probes.

Every wait in the flows goes through ConditionPoller; RetryableAction builds
action + wait rounds on top of it, and SoftProbe turns checks into
non-throwing reads.
"""

from __future__ import annotations

from .poller import Condition, ConditionPoller, poll
from .policy import FlowTimings, RetryPolicy, resolve_timings
from .probe import ProbeResult, SoftProbe
from .retry import ActionOutcome, RetryableAction

__all__ = [
    "ActionOutcome",
    "Condition",
    "ConditionPoller",
    "FlowTimings",
    "ProbeResult",
    "RetryPolicy",
    "RetryableAction",
    "SoftProbe",
    "poll",
    "resolve_timings",
]
