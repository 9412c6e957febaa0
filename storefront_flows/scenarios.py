"""
Scenario tables and plan builders.

A Scenario is one parameterized run: a kind, its parameters and the plan
(Transition / Expect items) FlowStateMachine.walk executes from the login
page. The built-in tables can be replaced per kind with external rows, given
either as mappings or as positional sequences in the table's field order.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .flow.machine import Expect, PlanItem, Transition

CONFIRMATION_PHRASE = "Thank you for your order!"

CREDENTIAL_FIELDS = ("username", "password")
INVALID_LOGIN_FIELDS = ("username", "password", "expected_error")
CHECKOUT_FIELDS = ("first_name", "last_name", "zip_code")
FULL_CHECKOUT_FIELDS = ("username", "password", "first_name", "last_name", "zip_code")

_SECRET_KEYS = frozenset({"password"})

STANDARD_USER: tuple[dict[str, str], ...] = ({"username": "standard_user", "password": "secret_sauce"},)

VALID_LOGINS: tuple[dict[str, str], ...] = (
    {"username": "standard_user", "password": "secret_sauce"},
    {"username": "problem_user", "password": "secret_sauce"},
    {"username": "performance_glitch_user", "password": "secret_sauce"},
)

INVALID_LOGINS: tuple[dict[str, str], ...] = (
    {
        "username": "invalid_user",
        "password": "wrong_password",
        "expected_error": "Epic sadface: Username and password do not match any user in this service",
    },
    {
        "username": "locked_out_user",
        "password": "secret_sauce",
        "expected_error": "Epic sadface: Sorry, this user has been locked out.",
    },
    {"username": "", "password": "secret_sauce", "expected_error": "Epic sadface: Username is required"},
    {"username": "standard_user", "password": "", "expected_error": "Epic sadface: Password is required"},
)

CHECKOUT_DETAILS: tuple[dict[str, str], ...] = (
    {"first_name": "John", "last_name": "Doe", "zip_code": "12345"},
    {"first_name": "Jane", "last_name": "Smith", "zip_code": "54321"},
    {"first_name": "Bob", "last_name": "Johnson", "zip_code": "67890"},
    {"first_name": "Alice", "last_name": "Williams", "zip_code": "98765"},
)

FULL_CHECKOUTS: tuple[dict[str, str], ...] = tuple(
    dict(zip(FULL_CHECKOUT_FIELDS, row))
    for row in (
        ("standard_user", "secret_sauce", "John", "Doe", "12345"),
        ("standard_user", "secret_sauce", "Jane", "Smith", "54321"),
        ("problem_user", "secret_sauce", "Bob", "Johnson", "67890"),
    )
)


@dataclass(frozen=True)
class Scenario:
    scenario_id: str
    kind: str
    params: Mapping[str, str]
    plan: tuple[PlanItem, ...] = field(default_factory=tuple)

    def masked_params(self) -> dict[str, str]:
        return {k: ("***" if k in _SECRET_KEYS and v else v) for k, v in self.params.items()}


def _login(params: Mapping[str, str]) -> list[PlanItem]:
    return [
        Transition("submit", (params["username"], params["password"]), secret_args=(1,)),
        Transition("verify_loaded"),
    ]


def _to_confirmation(params: Mapping[str, str]) -> list[PlanItem]:
    return [
        Transition("toggle_add_to_cart"),
        Transition("go_to_cart"),
        Transition("verify_item_present"),
        Expect("cart has items", "has_items", match="truthy"),
        Transition("proceed_to_checkout"),
        Transition("complete", (params["first_name"], params["last_name"], params["zip_code"])),
        Transition("verify_complete"),
        Expect("confirmation displayed", "is_displayed", match="truthy"),
        Expect("confirmation message", "message", CONFIRMATION_PHRASE, match="contains"),
    ]


def plan_valid_login(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        *_login(params),
        Expect("inventory displayed", "is_inventory_displayed", match="truthy"),
    )


def plan_invalid_login(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        Transition("attempt_and_stay", (params["username"], params["password"]), secret_args=(1,)),
        Expect("error displayed", "is_error_displayed", match="truthy"),
        Expect("error message", "error_message", params["expected_error"]),
    )


def plan_add_to_cart(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        *_login(params),
        Transition("toggle_add_to_cart"),
        Expect("remove button visible", "is_remove_button_visible", match="truthy"),
        Expect("cart badge count", "cart_badge_count", "1"),
    )


def plan_remove_from_cart(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        *_login(params),
        Transition("toggle_add_to_cart"),
        Transition("toggle_remove_from_cart"),
        Expect("add button visible", "is_add_button_visible", match="truthy"),
        Expect("cart badge hidden", "is_cart_badge_displayed", match="falsy", hard=False),
    )


def plan_checkout(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (*_login(params), *_to_confirmation(params))


def plan_inventory_elements(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        *_login(params),
        Expect("add button visible", "is_add_button_visible", match="truthy"),
        Expect("cart badge initially hidden", "is_cart_badge_displayed", match="falsy"),
    )


def plan_cart_badge(params: Mapping[str, str]) -> tuple[PlanItem, ...]:
    return (
        *_login(params),
        Expect("cart badge initially hidden", "is_cart_badge_displayed", match="falsy"),
        Transition("toggle_add_to_cart"),
        Expect("cart badge shown after add", "is_cart_badge_displayed", match="truthy"),
        Expect("cart badge count", "cart_badge_count", "1"),
        Transition("toggle_remove_from_cart"),
        Expect("cart badge hidden after remove", "is_cart_badge_displayed", match="falsy", hard=False),
    )


@dataclass(frozen=True)
class ScenarioKind:
    name: str
    fields: tuple[str, ...]
    table: tuple[Mapping[str, str], ...]
    plan: Callable[[Mapping[str, str]], tuple[PlanItem, ...]]
    # Fields filled from STANDARD_USER when a row omits them.
    defaults: Mapping[str, str] = field(default_factory=dict)

    def label(self, params: Mapping[str, str]) -> str:
        user = params.get("username") or "<empty>"
        if "first_name" not in params:
            return user
        name = f"{params['first_name']} {params['last_name']}"
        return name if self.name == "checkout" else f"{user}:{name}"


KINDS: dict[str, ScenarioKind] = {
    kind.name: kind
    for kind in (
        ScenarioKind("valid_login", CREDENTIAL_FIELDS, VALID_LOGINS, plan_valid_login),
        ScenarioKind("invalid_login", INVALID_LOGIN_FIELDS, INVALID_LOGINS, plan_invalid_login),
        ScenarioKind("add_to_cart", CREDENTIAL_FIELDS, STANDARD_USER, plan_add_to_cart),
        ScenarioKind("remove_from_cart", CREDENTIAL_FIELDS, STANDARD_USER, plan_remove_from_cart),
        ScenarioKind("checkout", CHECKOUT_FIELDS, CHECKOUT_DETAILS, plan_checkout, dict(STANDARD_USER[0])),
        ScenarioKind("end_to_end", FULL_CHECKOUT_FIELDS, FULL_CHECKOUTS, plan_checkout),
        ScenarioKind("inventory_elements", CREDENTIAL_FIELDS, STANDARD_USER, plan_inventory_elements),
        ScenarioKind("cart_badge", CREDENTIAL_FIELDS, STANDARD_USER, plan_cart_badge),
    )
}


def _normalize_row(kind: ScenarioKind, row: Any, index: int) -> dict[str, str]:
    if isinstance(row, Mapping):
        params = {str(k): v for k, v in row.items()}
    elif isinstance(row, Sequence) and not isinstance(row, (str, bytes)):
        if len(row) != len(kind.fields):
            raise ConfigError(
                f"{kind.name}[{index}]",
                f"expected {len(kind.fields)} values ({', '.join(kind.fields)}), got {len(row)}",
            )
        params = dict(zip(kind.fields, row))
    else:
        raise ConfigError(f"{kind.name}[{index}]", f"row must be an object or a list, got {type(row).__name__}")

    for key, value in kind.defaults.items():
        params.setdefault(key, value)
    missing = [name for name in kind.fields if name not in params]
    if missing:
        raise ConfigError(f"{kind.name}[{index}]", f"missing field(s): {', '.join(missing)}")
    out: dict[str, str] = {}
    for key, value in params.items():
        if value is None or isinstance(value, (dict, list)):
            raise ConfigError(f"{kind.name}[{index}].{key}", f"expected a string, got {value!r}")
        out[key] = str(value)
    return out


def build_scenarios(kind: str, rows: Iterable[Any] | None = None) -> list[Scenario]:
    """Scenarios for one kind, from the built-in table or from ``rows``."""
    kind_def = KINDS.get(kind)
    if kind_def is None:
        raise ConfigError("kind", f"unknown scenario kind {kind!r} (known: {', '.join(KINDS)})")
    source = kind_def.table if rows is None else list(rows)
    scenarios: list[Scenario] = []
    for index, row in enumerate(source, start=1):
        params = _normalize_row(kind_def, row, index)
        scenarios.append(
            Scenario(
                scenario_id=f"{kind}#{index}[{kind_def.label(params)}]",
                kind=kind,
                params=params,
                plan=kind_def.plan(params),
            )
        )
    return scenarios


def build_all(
    kinds: Iterable[str] | None = None,
    data: Mapping[str, Iterable[Any]] | None = None,
) -> list[Scenario]:
    """Scenarios for ``kinds`` (all kinds by default), in kind order."""
    data = data or {}
    selected = list(kinds) if kinds else list(KINDS)
    scenarios: list[Scenario] = []
    for kind in selected:
        scenarios.extend(build_scenarios(kind, data.get(kind)))
    return scenarios


def load_data(path: str | Path) -> dict[str, list[Any]]:
    """Read replacement rows: a JSON object mapping kind -> list of rows."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError("data", f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError("data", f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("data", f"{path} must contain a JSON object keyed by scenario kind")
    unknown = sorted(set(raw) - set(KINDS))
    if unknown:
        raise ConfigError("data", f"unknown scenario kind(s): {', '.join(unknown)}")
    for kind, rows in raw.items():
        if not isinstance(rows, list):
            raise ConfigError(f"data.{kind}", "must be a list of rows")
    return raw


__all__ = [
    "CONFIRMATION_PHRASE",
    "KINDS",
    "Scenario",
    "ScenarioKind",
    "build_all",
    "build_scenarios",
    "load_data",
]
