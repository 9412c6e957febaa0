from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

from ..errors import ConfigError


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds for one wait: poll interval, per-round timeout, action attempts.

    ``timeout_ms`` bounds a single polling round; ``max_attempts`` bounds how many
    (action + polling round) repetitions a RetryableAction performs.
    """

    poll_interval_ms: int
    timeout_ms: int
    max_attempts: int = 1

    def __post_init__(self) -> None:
        if isinstance(self.poll_interval_ms, bool) or not isinstance(self.poll_interval_ms, int):
            raise ConfigError("poll_interval_ms", f"expected int, got {self.poll_interval_ms!r}")
        if isinstance(self.timeout_ms, bool) or not isinstance(self.timeout_ms, int):
            raise ConfigError("timeout_ms", f"expected int, got {self.timeout_ms!r}")
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ConfigError("max_attempts", f"expected int, got {self.max_attempts!r}")
        if self.poll_interval_ms <= 0:
            raise ConfigError("poll_interval_ms", "must be > 0 (polling never busy-spins)")
        if self.timeout_ms <= self.poll_interval_ms:
            raise ConfigError("timeout_ms", f"must exceed poll_interval_ms ({self.poll_interval_ms})")
        if self.max_attempts < 1:
            raise ConfigError("max_attempts", "must be >= 1")

    @property
    def interval_s(self) -> float:
        return self.poll_interval_ms / 1000.0

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    def widened(self, factor: int = 2) -> RetryPolicy:
        """Policy for a retry round: same interval, longer timeout."""
        return replace(self, timeout_ms=self.timeout_ms * factor)

    def scaled(self, factor: float) -> RetryPolicy:
        timeout = max(self.poll_interval_ms + 1, int(round(self.timeout_ms * factor)))
        return replace(self, timeout_ms=timeout)

    def to_dict(self) -> dict[str, int]:
        return {
            "poll_interval_ms": self.poll_interval_ms,
            "timeout_ms": self.timeout_ms,
            "max_attempts": self.max_attempts,
        }


@dataclass(frozen=True)
class FlowTimings:
    """One policy per named wait in the storefront flows."""

    login_ready: RetryPolicy
    login_submit: RetryPolicy
    inventory_ready: RetryPolicy
    add_to_cart: RetryPolicy
    remove_from_cart: RetryPolicy
    badge_cleared: RetryPolicy
    cart_navigation: RetryPolicy
    cart_item: RetryPolicy
    page_transition: RetryPolicy

    def map(self, fn) -> FlowTimings:  # noqa: ANN001
        return FlowTimings(**{f.name: fn(getattr(self, f.name)) for f in fields(self)})

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {f.name: getattr(self, f.name).to_dict() for f in fields(self)}


_DEFAULT_TIMINGS = FlowTimings(
    login_ready=RetryPolicy(100, 3000, 1),
    login_submit=RetryPolicy(100, 3000, 1),
    inventory_ready=RetryPolicy(100, 2000, 1),
    add_to_cart=RetryPolicy(100, 2500, 2),
    remove_from_cart=RetryPolicy(100, 3000, 2),
    badge_cleared=RetryPolicy(100, 1000, 1),
    cart_navigation=RetryPolicy(100, 4000, 1),
    cart_item=RetryPolicy(100, 3000, 1),
    page_transition=RetryPolicy(100, 3000, 1),
)

_PROFILE_SCALE: dict[str, float] = {
    "fast": 0.5,
    "default": 1.0,
    "slow": 2.0,
}


def _coerce_profile(raw: str | None) -> str:
    if not isinstance(raw, str) or not raw.strip():
        return "default"
    value = raw.strip().lower()
    return value if value in _PROFILE_SCALE else "default"


def _env_float(env: Mapping[str, str], key: str, *, fallback: float) -> float:
    raw = env.get(key)
    if raw is None:
        return float(fallback)
    try:
        return float(raw)
    except ValueError:
        return float(fallback)


def _env_int(env: Mapping[str, str], key: str, *, fallback: int | None) -> int | None:
    raw = env.get(key)
    if raw is None:
        return fallback
    try:
        return int(raw)
    except ValueError:
        return fallback


def resolve_timings(profile: str | None = None, *, env: Mapping[str, str] | None = None) -> FlowTimings:
    """Build FlowTimings for a profile, applying env overrides.

    Overrides: STOREFRONT_TIMEOUT_SCALE multiplies every timeout;
    STOREFRONT_POLL_INTERVAL_MS replaces every poll interval.
    """
    env_map = os.environ if env is None else env
    name = _coerce_profile(profile if profile is not None else env_map.get("STOREFRONT_TIMEOUT_PROFILE"))
    scale = _PROFILE_SCALE[name] * _env_float(env_map, "STOREFRONT_TIMEOUT_SCALE", fallback=1.0)
    if scale <= 0:
        raise ConfigError("STOREFRONT_TIMEOUT_SCALE", "must be > 0")
    interval = _env_int(env_map, "STOREFRONT_POLL_INTERVAL_MS", fallback=None)

    def _apply(policy: RetryPolicy) -> RetryPolicy:
        if interval is not None:
            # Re-validated by RetryPolicy.__post_init__.
            policy = replace(policy, poll_interval_ms=interval)
        return policy.scaled(scale) if scale != 1.0 else policy

    return _DEFAULT_TIMINGS.map(_apply)


__all__ = ["FlowTimings", "RetryPolicy", "resolve_timings"]
