from __future__ import annotations

from typing import Any

import pytest

from storefront_flows import locators as loc
from storefront_flows.conditions import (
    CSS_COUNT_JS,
    ELEMENT_ID_PRESENT_JS,
    all_of,
    any_of,
    css_count,
    css_count_equals,
    element_absent,
    element_present,
    url_contains,
)
from storefront_flows.errors import DriverError


def test_element_present_by_id_uses_id_lookup(storefront) -> None:
    calls: list[tuple[str, Any]] = []
    original = storefront.eval_predicate

    def recording(script: str, args: Any = ()) -> Any:
        calls.append((script, list(args)))
        return original(script, args)

    storefront.eval_predicate = recording

    assert element_present(storefront, loc.INVENTORY_CONTAINER)() is True
    assert element_present(storefront, loc.CART_BADGE)() is False
    assert calls == [
        (ELEMENT_ID_PRESENT_JS, ["inventory_container"]),
        (CSS_COUNT_JS, [".shopping_cart_badge"]),
    ]


def test_element_absent_and_counts(storefront) -> None:
    assert element_absent(storefront, loc.REMOVE_FROM_CART_BACKPACK)() is True
    assert css_count(storefront, ".cart_item") == 0
    assert css_count_equals(storefront, "#inventory_container", 1)() is True


def test_css_count_tolerates_odd_results() -> None:
    class OddDriver:
        def eval_predicate(self, script: str, args: Any = ()) -> Any:  # noqa: ARG002
            return None

    assert css_count(OddDriver(), ".x") == 0  # type: ignore[arg-type]


def test_url_contains(storefront) -> None:
    assert url_contains(storefront, "inventory")() is True
    assert url_contains(storefront, "cart")() is False


def test_all_of_short_circuits() -> None:
    seen: list[str] = []

    def first() -> bool:
        seen.append("first")
        return False

    def second() -> bool:
        seen.append("second")
        return True

    assert all_of(first, second)() is False
    assert seen == ["first"]


def test_any_of_ignores_a_failing_branch_when_another_holds() -> None:
    def broken() -> bool:
        raise DriverError(kind="javascript", message="boom")

    assert any_of(broken, lambda: True)() is True
    assert any_of(lambda: False, lambda: False)() is False


def test_any_of_reraises_when_no_branch_holds() -> None:
    def broken() -> bool:
        raise DriverError(kind="javascript", message="boom")

    with pytest.raises(DriverError):
        any_of(broken, lambda: False)()
