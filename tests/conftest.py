from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from storefront_flows.conditions import CSS_COUNT_JS, ELEMENT_ID_PRESENT_JS
from storefront_flows.config import FlowConfig
from storefront_flows.driver.base import ElementRef, Session
from storefront_flows.errors import DriverError
from storefront_flows.flow.context import FlowContext
from storefront_flows.sync.poller import ConditionPoller
from storefront_flows.sync.policy import FlowTimings, resolve_timings

BASE_URL = "https://www.saucedemo.com/"

PAGE_PATHS = {
    "login": "",
    "inventory": "inventory.html",
    "cart": "cart.html",
    "checkout-info": "checkout-step-one.html",
    "checkout-overview": "checkout-step-two.html",
    "complete": "checkout-complete.html",
}

USERS = {
    "standard_user": "secret_sauce",
    "problem_user": "secret_sauce",
    "performance_glitch_user": "secret_sauce",
    "locked_out_user": "secret_sauce",
}

ADD = "#add-to-cart-sauce-labs-backpack"
REMOVE = "#remove-sauce-labs-backpack"
BADGE = ".shopping_cart_badge"
ERROR = "[data-test='error']"


class FakeClock:
    """Integer-millisecond clock; sleeping advances time instantly."""

    def __init__(self) -> None:
        self.now_ms = 0
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.now_ms / 1000.0

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ms += int(round(seconds * 1000))


class FakeStorefront:
    """In-memory storefront implementing the Driver capabilities.

    Clicks mutate the page after ``lag_ms``; ``drop_clicks`` maps a selector
    to how many clicks on it are silently ignored; ``badge_lag_ms`` delays
    the cart badge disappearing after a removal.
    """

    def __init__(
        self,
        clock: FakeClock,
        *,
        page: str = "login",
        in_cart: bool = False,
        lag_ms: int = 0,
        badge_lag_ms: int = 0,
    ) -> None:
        self.clock = clock
        self.page = page
        self.in_cart = in_cart
        self.badge = in_cart
        self.lag_ms = lag_ms
        self.badge_lag_ms = badge_lag_ms
        self.drop_clicks: dict[str, int] = {}
        self.hidden: set[str] = set()
        self.broken: DriverError | None = None
        self.login_error: str | None = None
        self.checkout_error: str | None = None
        self.values: dict[str, str] = {}
        self.clicks: list[str] = []
        self._pending: list[tuple[int, Callable[[], None]]] = []

    # -- scheduling -------------------------------------------------------

    def _later(self, fn: Callable[[], None], delay_ms: int | None = None) -> None:
        delay = self.lag_ms if delay_ms is None else delay_ms
        if delay <= 0:
            fn()
        else:
            self._pending.append((self.clock.now_ms + delay, fn))

    def _settle(self) -> None:
        if self.broken is not None:
            raise self.broken
        due = sorted((item for item in self._pending if item[0] <= self.clock.now_ms), key=lambda item: item[0])
        self._pending = [item for item in self._pending if item[0] > self.clock.now_ms]
        for _when, fn in due:
            fn()

    # -- DOM model --------------------------------------------------------

    def elements(self) -> set[str]:
        found: set[str] = set()
        if self.page == "login":
            found |= {"#user-name", "#password", "#login-button"}
            if self.login_error:
                found.add(ERROR)
        elif self.page == "inventory":
            found |= {"#inventory_container", "#shopping_cart_container", REMOVE if self.in_cart else ADD}
        elif self.page == "cart":
            found |= {"#shopping_cart_container", "#checkout", "#continue-shopping"}
            if self.in_cart:
                found.add(".cart_item")
        elif self.page == "checkout-info":
            found |= {"#first-name", "#last-name", "#postal-code", "#continue", "#cancel"}
            if self.checkout_error:
                found.add(ERROR)
        elif self.page == "checkout-overview":
            found |= {"#finish", "#cancel"}
        elif self.page == "complete":
            found |= {".complete-header", ".complete-text", "#back-to-products"}
        if self.badge and self.page in ("inventory", "cart"):
            found.add(BADGE)
        return found

    def _require(self, ref: ElementRef) -> None:
        if ref.css not in self.elements():
            raise DriverError(kind="no_such_element", message=f"element not found: {ref}")

    def _text(self, css: str) -> str:
        if css == ERROR:
            return self.login_error or self.checkout_error or ""
        if css == BADGE:
            return "1"
        if css == ".complete-header":
            return "Thank you for your order!"
        if css == ".complete-text":
            return "Your order has been dispatched, and will arrive just as fast as the pony can get there!"
        return ""

    # -- Driver capabilities ---------------------------------------------

    def click(self, ref: ElementRef) -> None:
        self._settle()
        self._require(ref)
        self.clicks.append(ref.css)
        if self.drop_clicks.get(ref.css, 0) > 0:
            self.drop_clicks[ref.css] -= 1
            return
        handler = getattr(self, "_on_" + ref.css.lstrip("#").replace("-", "_"), None)
        if handler is not None:
            handler()

    def type(self, ref: ElementRef, text: str) -> None:
        self._settle()
        self._require(ref)
        self.values[ref.css] = text

    def is_visible(self, ref: ElementRef) -> bool:
        self._settle()
        return ref.css in self.elements() and ref.css not in self.hidden

    def get_text(self, ref: ElementRef) -> str:
        self._settle()
        self._require(ref)
        return self._text(ref.css)

    def current_url(self) -> str:
        self._settle()
        return BASE_URL + PAGE_PATHS[self.page]

    def eval_predicate(self, script: str, args: list[Any] | tuple[Any, ...] = ()) -> Any:
        self._settle()
        if script == ELEMENT_ID_PRESENT_JS:
            return f"#{args[0]}" in self.elements()
        if script == CSS_COUNT_JS:
            return 1 if args[0] in self.elements() else 0
        raise DriverError(kind="javascript", message=f"unsupported script: {script!r}")

    # -- click handlers ---------------------------------------------------

    def _go(self, page: str) -> None:
        self._later(lambda: setattr(self, "page", page))

    def _on_login_button(self) -> None:
        username = self.values.get("#user-name", "")
        password = self.values.get("#password", "")
        if not username:
            error = "Epic sadface: Username is required"
        elif not password:
            error = "Epic sadface: Password is required"
        elif username == "locked_out_user" and USERS.get(username) == password:
            error = "Epic sadface: Sorry, this user has been locked out."
        elif USERS.get(username) != password:
            error = "Epic sadface: Username and password do not match any user in this service"
        else:
            error = None

        def _apply() -> None:
            self.login_error = error
            if error is None:
                self.page = "inventory"

        self._later(_apply)

    def _on_add_to_cart_sauce_labs_backpack(self) -> None:
        def _apply() -> None:
            self.in_cart = True
            self.badge = True

        self._later(_apply)

    def _on_remove_sauce_labs_backpack(self) -> None:
        self._later(lambda: setattr(self, "in_cart", False))
        self._later(lambda: setattr(self, "badge", False), self.lag_ms + self.badge_lag_ms)

    def _on_shopping_cart_container(self) -> None:
        self._go("cart")

    def _on_checkout(self) -> None:
        self._go("checkout-info")

    def _on_continue_shopping(self) -> None:
        self._go("inventory")

    def _on_continue(self) -> None:
        if not self.values.get("#first-name"):
            self._later(lambda: setattr(self, "checkout_error", "Error: First Name is required"))
        elif not self.values.get("#last-name"):
            self._later(lambda: setattr(self, "checkout_error", "Error: Last Name is required"))
        elif not self.values.get("#postal-code"):
            self._later(lambda: setattr(self, "checkout_error", "Error: Postal Code is required"))
        else:
            self._go("checkout-overview")

    def _on_finish(self) -> None:
        def _apply() -> None:
            self.page = "complete"
            self.in_cart = False
            self.badge = False

        self._later(_apply)

    def _on_cancel(self) -> None:
        self._go("cart" if self.page == "checkout-info" else "inventory")

    def _on_back_to_products(self) -> None:
        self._go("inventory")


class FakeSessionFactory:
    """Hands out FakeStorefront sessions; ``failures`` are raised by successive opens."""

    def __init__(self, clock: FakeClock, **storefront_kwargs: Any) -> None:
        self.clock = clock
        self.storefront_kwargs = storefront_kwargs
        self.failures: list[BaseException] = []
        self.close_error: BaseException | None = None
        self.opened: list[Session] = []
        self.closed: list[Session] = []
        self.open_calls = 0

    def open(self, config: FlowConfig) -> Session:  # noqa: ARG002
        self.open_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        driver = FakeStorefront(self.clock, **self.storefront_kwargs)
        session = Session(session_id=f"s{self.open_calls}", driver=driver)
        self.opened.append(session)
        return session

    def close(self, session: Session) -> None:
        if not session.mark_closed():
            return
        self.closed.append(session)
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(clock: FakeClock) -> ConditionPoller:
    return ConditionPoller(clock=clock.now, sleep=clock.sleep)


@pytest.fixture
def timings() -> FlowTimings:
    return resolve_timings("default", env={})


@pytest.fixture
def storefront(clock: FakeClock) -> FakeStorefront:
    return FakeStorefront(clock, page="inventory")


@pytest.fixture
def ctx(storefront: FakeStorefront, timings: FlowTimings, poller: ConditionPoller) -> FlowContext:
    return FlowContext.create(storefront, timings=timings, poller=poller)


@pytest.fixture
def flow_config(timings: FlowTimings) -> FlowConfig:
    return FlowConfig(timings=timings, session_retry_backoff_s=1.2)
