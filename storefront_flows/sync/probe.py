"""
Non-throwing reads for exploratory and diagnostic checks.

A SoftProbe runs an operation and turns any failure into ``None``. Every probe,
successful or not, is appended to the probe's ordered ``results`` so a
scenario can report what was observed even when it did not abort.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from ..errors import DriverError, HardAssertionFailure, PollExhausted

logger = logging.getLogger("storefront.flows.probe")

T = TypeVar("T")


@dataclass(frozen=True)
class ProbeResult:
    label: str
    ok: bool
    value: Any = None
    category: str | None = None
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"label": self.label, "ok": self.ok}
        if self.ok:
            out["value"] = self.value
        else:
            out["category"] = self.category
            if self.message:
                out["message"] = self.message
        return out


def classify_failure(exc: BaseException) -> str:
    """Category recorded for a suppressed failure."""
    if isinstance(exc, DriverError):
        return f"driver:{exc.kind}"
    if isinstance(exc, (AssertionError, HardAssertionFailure)):
        return "assertion"
    if isinstance(exc, PollExhausted):
        return "poll_exhausted"
    return "unexpected"


class SoftProbe:
    """Records every probe in order; never raises.

    A probe taken while another probe of the same SoftProbe is running is
    reported through the enclosing one, so one soft check yields one result.
    A failure inside a nested probe becomes the enclosing probe's result.
    """

    def __init__(self) -> None:
        self._results: list[ProbeResult] = []
        self._depth = 0
        self._nested_failure: ProbeResult | None = None

    @property
    def results(self) -> tuple[ProbeResult, ...]:
        return tuple(self._results)

    def _attempt(self, operation: Callable[[], T], label: str) -> tuple[ProbeResult, T | None]:
        if self._depth == 0:
            self._nested_failure = None
        self._depth += 1
        try:
            value = operation()
        except Exception as exc:  # noqa: BLE001
            category = classify_failure(exc)
            logger.warning("probe %r suppressed %s: %s", label, category, exc)
            return ProbeResult(label=label, ok=False, category=category, message=str(exc)), None
        finally:
            self._depth -= 1
        return ProbeResult(label=label, ok=True, value=value), value

    def _record(self, result: ProbeResult) -> None:
        if self._depth:
            if not result.ok and self._nested_failure is None:
                self._nested_failure = result
            return
        if result.ok and self._nested_failure is not None:
            result = replace(self._nested_failure, label=result.label)
        self._nested_failure = None
        self._results.append(result)

    def probe(self, operation: Callable[[], T], *, label: str = "probe") -> T | None:
        result, value = self._attempt(operation, label)
        self._record(result)
        return value

    def check(self, predicate: Callable[[], bool], *, label: str) -> bool:
        """Soft boolean check: a False result or a failure is recorded as a miss."""
        result, value = self._attempt(predicate, label)
        if result.ok and not value:
            # Evaluated cleanly but false.
            result = ProbeResult(label=label, ok=False, category="miss")
            logger.warning("soft check %r missed (miss)", label)
        self._record(result)
        return bool(result.ok and value)

    def record_miss(
        self,
        label: str,
        *,
        category: str = "miss",
        message: str | None = None,
        replace_last: bool = False,
    ) -> None:
        if replace_last and self._results and self._results[-1].label == label:
            self._results.pop()
        self._results.append(ProbeResult(label=label, ok=False, category=category, message=message))
        logger.warning("soft check %r missed (%s)", label, category)


__all__ = ["ProbeResult", "SoftProbe", "classify_failure"]
