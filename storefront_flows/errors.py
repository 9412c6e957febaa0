"""
Error taxonomy for flow execution.

Provides:
- FlowError: Base class for every error raised by this package
- DriverError: Failures reported by the browser driver
- PollExhausted: Condition evaluation failed the same way for a whole polling round
- HardAssertionFailure: A scenario-blocking check did not hold
- ActionFailed: The action inside a RetryableAction raised a driver error
- IllegalTransition: Operation not legal from the current flow step
- ConfigError: Invalid policy or configuration value
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sync.retry import ActionOutcome


class FlowError(Exception):
    """Base class for all flow errors."""

    def to_dict(self) -> dict[str, Any]:
        return {"error": type(self).__name__, "message": str(self)}


@dataclass
class DriverError(FlowError):
    """Structured error raised by a driver capability."""

    kind: str
    message: str

    def __str__(self) -> str:
        return f"[driver:{self.kind}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"error": "DriverError", "kind": self.kind, "message": self.message}


@dataclass
class PollExhausted(FlowError):
    """Every evaluation in a polling round raised the same kind of error."""

    last_error: BaseException
    attempts: int
    elapsed_ms: int

    def __str__(self) -> str:
        return (
            f"condition failed with {type(self.last_error).__name__} on all {self.attempts} "
            f"evaluations over {self.elapsed_ms}ms: {self.last_error}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "PollExhausted",
            "attempts": self.attempts,
            "elapsed_ms": self.elapsed_ms,
            "last_error": type(self.last_error).__name__,
            "message": str(self.last_error),
        }


@dataclass
class HardAssertionFailure(FlowError):
    """A hard check failed; aborts the current scenario."""

    step: str
    check: str
    expected: Any = None
    actual: Any = None
    detail: str = ""

    def __str__(self) -> str:
        text = f"[{self.step}] {self.check} failed: expected {self.expected!r}, got {self.actual!r}"
        if self.detail:
            text += f" ({self.detail})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "HardAssertionFailure",
            "step": self.step,
            "check": self.check,
            "expected": self.expected,
            "actual": self.actual,
            "detail": self.detail,
        }


@dataclass
class ActionFailed(FlowError):
    """The wrapped action raised; carries the outcome accumulated so far."""

    action: str
    outcome: ActionOutcome
    cause: DriverError

    def __str__(self) -> str:
        return f"action {self.action!r} failed on attempt {self.outcome.attempts_used}: {self.cause}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "ActionFailed",
            "action": self.action,
            "outcome": self.outcome.to_dict(),
            "cause": self.cause.to_dict(),
        }


@dataclass
class IllegalTransition(FlowError):
    state: str
    operation: str
    allowed: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"operation {self.operation!r} is not legal from {self.state} (allowed: {', '.join(self.allowed)})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "IllegalTransition",
            "state": self.state,
            "operation": self.operation,
            "allowed": list(self.allowed),
        }


@dataclass
class ConfigError(FlowError):
    field_name: str
    reason: str

    def __str__(self) -> str:
        return f"invalid {self.field_name}: {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return {"error": "ConfigError", "field": self.field_name, "reason": self.reason}


def is_connection_reset(exc: BaseException) -> bool:
    """True for the transient connection-reset class of driver failures."""
    if isinstance(exc, DriverError):
        if exc.kind == "connection_reset":
            return True
        return "ERR_CONNECTION_RESET" in exc.message
    return False


__all__ = [
    "ActionFailed",
    "ConfigError",
    "DriverError",
    "FlowError",
    "HardAssertionFailure",
    "IllegalTransition",
    "PollExhausted",
    "is_connection_reset",
]
