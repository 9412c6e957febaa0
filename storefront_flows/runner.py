"""
Scenario execution.

ScenarioRunner is the failure boundary of a scenario: whatever a flow raises
is turned into a structured ScenarioOutcome, and the session acquired for the
scenario is released on every path. Scenarios run one after another; no
state is shared between them apart from the session factory.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .config import FlowConfig
from .driver.base import Session, SessionFactory
from .errors import (
    ActionFailed,
    ConfigError,
    DriverError,
    FlowError,
    HardAssertionFailure,
    IllegalTransition,
    PollExhausted,
    is_connection_reset,
)
from .flow.context import FlowContext, FlowState
from .flow.machine import FlowStateMachine
from .flow.steps import FlowStep, Login
from .scenarios import Scenario
from .sync.poller import ConditionPoller
from .sync.probe import ProbeResult, SoftProbe

logger = logging.getLogger("storefront.flows.runner")

# Checked in order; subclasses before their bases.
_ERROR_CATEGORIES: tuple[tuple[type[BaseException], str], ...] = (
    (HardAssertionFailure, "hard_assertion"),
    (ActionFailed, "action_failed"),
    (PollExhausted, "poll_exhausted"),
    (DriverError, "driver"),
    (IllegalTransition, "illegal_transition"),
    (ConfigError, "config"),
)


@dataclass(frozen=True)
class ScenarioError:
    category: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: BaseException) -> ScenarioError:
        category = "unexpected"
        for exc_type, name in _ERROR_CATEGORIES:
            if isinstance(exc, exc_type):
                category = name
                break
        details = exc.to_dict() if isinstance(exc, FlowError) else {"error": type(exc).__name__}
        return cls(category=category, message=str(exc), details=details)

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "message": self.message, "details": self.details}


@dataclass(frozen=True)
class ScenarioOutcome:
    scenario_id: str
    kind: str
    final_step: FlowState | None
    error: ScenarioError | None = None
    diagnostics: tuple[ProbeResult, ...] = ()
    observed: dict[str, Any] = field(default_factory=dict)
    started_at: str = ""  # ISO-8601, UTC
    duration_ms: int = 0

    @property
    def passed(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario_id": self.scenario_id,
            "kind": self.kind,
            "passed": self.passed,
            "final_step": self.final_step.value if self.final_step is not None else None,
            "error": self.error.to_dict() if self.error is not None else None,
            "diagnostics": [item.to_dict() for item in self.diagnostics],
            "observed": dict(self.observed),
            "started_at": self.started_at,
            "duration_ms": self.duration_ms,
        }


class ScenarioRunner:
    """Run scenarios, each in a session of its own.

    Args:
        sessions: Opens and closes sessions (one browser context each).
        config: Timings and session retry backoff.
        poller: Poller shared by every wait; inject one with a fake clock in tests.
        sleep: Sleep used for the session retry backoff (defaults to the poller's).
    """

    def __init__(
        self,
        sessions: SessionFactory,
        config: FlowConfig | None = None,
        *,
        poller: ConditionPoller | None = None,
        sleep: Callable[[float], None] | None = None,
        machine: FlowStateMachine | None = None,
    ) -> None:
        self.sessions = sessions
        self.config = config or FlowConfig.from_env()
        self.poller = poller or ConditionPoller()
        self._sleep = sleep
        self.machine = machine or FlowStateMachine()

    def _pause(self, seconds: float) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            self.poller.pause(seconds)

    def acquire_session(self) -> Session:
        """Open a session, retrying exactly once on a connection reset."""
        attempts = 0
        while True:
            try:
                return self.sessions.open(self.config)
            except DriverError as exc:
                if is_connection_reset(exc) and attempts < 1:
                    attempts += 1
                    logger.warning(
                        "session open failed with connection reset; retrying in %.1fs: %s",
                        self.config.session_retry_backoff_s,
                        exc,
                    )
                    self._pause(self.config.session_retry_backoff_s)
                    continue
                raise

    def release_session(self, session: Session) -> None:
        try:
            self.sessions.close(session)
        except Exception as exc:  # noqa: BLE001
            logger.warning("session %s close failed: %s", session.session_id, exc)

    @contextmanager
    def session(self) -> Iterator[Session]:
        session = self.acquire_session()
        try:
            yield session
        finally:
            self.release_session(session)

    def run(self, scenario: Scenario) -> ScenarioOutcome:
        started_at = datetime.now(timezone.utc).isoformat()
        start = self.poller.now()
        probe = SoftProbe()
        observed: dict[str, Any] = {}
        reached: list[FlowState] = []
        error: ScenarioError | None = None

        def _reached(step: FlowStep) -> None:
            reached.append(step.state)

        logger.info("scenario %s started", scenario.scenario_id)
        logger.debug("scenario %s params %s", scenario.scenario_id, scenario.masked_params())
        try:
            with self.session() as session:
                ctx = FlowContext.create(
                    session.driver,
                    timings=self.config.timings,
                    poller=self.poller,
                    probe=probe,
                )
                # Every session starts on the login page, even if its form never renders.
                reached.append(FlowState.LOGIN)
                start_step = Login.open(ctx)
                self.machine.walk(start_step, scenario.plan, observed=observed, on_step=_reached)
        except Exception as exc:  # noqa: BLE001
            error = ScenarioError.from_exception(exc)
            logger.error("scenario %s failed (%s): %s", scenario.scenario_id, error.category, error.message)

        duration_ms = int(round((self.poller.now() - start) * 1000))
        outcome = ScenarioOutcome(
            scenario_id=scenario.scenario_id,
            kind=scenario.kind,
            final_step=reached[-1] if reached else None,
            error=error,
            diagnostics=probe.results,
            observed=observed,
            started_at=started_at,
            duration_ms=duration_ms,
        )
        if outcome.passed:
            logger.info(
                "scenario %s passed at %s in %dms",
                scenario.scenario_id,
                outcome.final_step.value if outcome.final_step else "-",
                duration_ms,
            )
        return outcome

    def run_all(self, scenarios: Iterable[Scenario]) -> list[ScenarioOutcome]:
        return [self.run(scenario) for scenario in scenarios]


__all__ = ["ScenarioError", "ScenarioOutcome", "ScenarioRunner"]
