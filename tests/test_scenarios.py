from __future__ import annotations

import json

import pytest

from storefront_flows.errors import ConfigError
from storefront_flows.flow.machine import Expect, Transition
from storefront_flows.scenarios import KINDS, build_all, build_scenarios, load_data


def test_builtin_tables() -> None:
    counts = {kind: len(build_scenarios(kind)) for kind in KINDS}
    assert counts == {
        "valid_login": 3,
        "invalid_login": 4,
        "add_to_cart": 1,
        "remove_from_cart": 1,
        "checkout": 4,
        "end_to_end": 3,
        "inventory_elements": 1,
        "cart_badge": 1,
    }


def test_scenario_ids_are_unique() -> None:
    ids = [s.scenario_id for s in build_all()]
    assert len(ids) == len(set(ids))
    assert "invalid_login#3[<empty>]" in ids
    assert "checkout#2[Jane Smith]" in ids


def test_checkout_rows_default_to_standard_user() -> None:
    scenario = build_scenarios("checkout", [{"first_name": "Ann", "last_name": "Lee", "zip_code": "10001"}])[0]

    assert scenario.params["username"] == "standard_user"
    submit = scenario.plan[0]
    assert isinstance(submit, Transition)
    assert submit.op == "submit"
    assert submit.args == ("standard_user", "secret_sauce")
    complete = next(item for item in scenario.plan if isinstance(item, Transition) and item.op == "complete")
    assert complete.args == ("Ann", "Lee", "10001")


def test_invalid_login_plan_compares_error_text() -> None:
    scenario = build_scenarios("invalid_login")[1]

    assert scenario.plan[0] == Transition("attempt_and_stay", ("locked_out_user", "secret_sauce"), secret_args=(1,))
    last = scenario.plan[-1]
    assert isinstance(last, Expect)
    assert last.read == "error_message"
    assert last.expected == "Epic sadface: Sorry, this user has been locked out."
    assert last.match == "equals"


def test_badge_disappearance_after_remove_is_soft() -> None:
    scenario = build_scenarios("remove_from_cart")[0]
    badge = [item for item in scenario.plan if isinstance(item, Expect) and item.read == "is_cart_badge_displayed"]
    assert [item.hard for item in badge] == [False]


def test_positional_rows_and_validation() -> None:
    scenario = build_scenarios("valid_login", [["visual_user", "secret_sauce"]])[0]
    assert scenario.params == {"username": "visual_user", "password": "secret_sauce"}

    with pytest.raises(ConfigError):
        build_scenarios("valid_login", [["only_user"]])
    with pytest.raises(ConfigError):
        build_scenarios("invalid_login", [{"username": "x", "password": "y"}])
    with pytest.raises(ConfigError):
        build_scenarios("valid_login", ["standard_user"])
    with pytest.raises(ConfigError):
        build_scenarios("no_such_kind")


def test_masked_params_hide_passwords() -> None:
    scenario = build_scenarios("valid_login")[0]
    assert scenario.masked_params() == {"username": "standard_user", "password": "***"}


def test_build_all_respects_kind_selection() -> None:
    scenarios = build_all(["cart_badge", "valid_login"])
    assert [s.kind for s in scenarios] == ["cart_badge", "valid_login", "valid_login", "valid_login"]


def test_load_data(tmp_path) -> None:
    path = tmp_path / "rows.json"
    path.write_text(json.dumps({"valid_login": [["u1", "p1"]]}), encoding="utf-8")

    data = load_data(path)
    scenarios = build_all(["valid_login", "cart_badge"], data)

    assert [s.params["username"] for s in scenarios] == ["u1", "standard_user"]


def test_load_data_rejects_bad_files(tmp_path) -> None:
    bad_json = tmp_path / "bad.json"
    bad_json.write_text("{", encoding="utf-8")
    unknown = tmp_path / "unknown.json"
    unknown.write_text(json.dumps({"mystery": []}), encoding="utf-8")
    not_list = tmp_path / "not_list.json"
    not_list.write_text(json.dumps({"valid_login": {"username": "x"}}), encoding="utf-8")

    for path in (bad_json, unknown, not_list, tmp_path / "missing.json"):
        with pytest.raises(ConfigError):
            load_data(path)
