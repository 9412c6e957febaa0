"""
Condition builders.

Each builder returns a zero-argument callable that reads current UI state
through the driver it is given. Conditions are side-effect free and safe to
re-evaluate; driver errors propagate so ConditionPoller can tell a false
condition from a broken driver.
"""

from __future__ import annotations

from .driver.base import Driver, ElementRef
from .sync.poller import Condition

ELEMENT_ID_PRESENT_JS = "return document.getElementById(arguments[0]) !== null;"
CSS_COUNT_JS = "return document.querySelectorAll(arguments[0]).length;"


def element_present(driver: Driver, ref: ElementRef) -> Condition:
    """Element exists in the DOM (visible or not)."""
    if ref.element_id:
        element_id = ref.element_id
        return lambda: bool(driver.eval_predicate(ELEMENT_ID_PRESENT_JS, [element_id]))
    return css_count_at_least(driver, ref.css, 1)


def element_absent(driver: Driver, ref: ElementRef) -> Condition:
    present = element_present(driver, ref)
    return lambda: not present()


def css_count(driver: Driver, selector: str) -> int:
    count = driver.eval_predicate(CSS_COUNT_JS, [selector])
    try:
        return int(count or 0)
    except (TypeError, ValueError):
        return 0


def css_count_at_least(driver: Driver, selector: str, n: int = 1) -> Condition:
    return lambda: css_count(driver, selector) >= n


def css_count_equals(driver: Driver, selector: str, n: int) -> Condition:
    return lambda: css_count(driver, selector) == n


def visible(driver: Driver, ref: ElementRef) -> Condition:
    return lambda: bool(driver.is_visible(ref))


def url_contains(driver: Driver, fragment: str) -> Condition:
    return lambda: fragment in (driver.current_url() or "")


def all_of(*conditions: Condition) -> Condition:
    return lambda: all(cond() for cond in conditions)


def any_of(*conditions: Condition) -> Condition:
    """True if any condition holds; an error in one branch does not hide another that holds."""

    def _check() -> bool:
        first_error: Exception | None = None
        for cond in conditions:
            try:
                if cond():
                    return True
            except Exception as exc:  # noqa: BLE001
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return False

    return _check


__all__ = [
    "CSS_COUNT_JS",
    "ELEMENT_ID_PRESENT_JS",
    "all_of",
    "any_of",
    "css_count",
    "css_count_at_least",
    "css_count_equals",
    "element_absent",
    "element_present",
    "url_contains",
    "visible",
]
