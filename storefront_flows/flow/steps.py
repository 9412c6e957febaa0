"""
Storefront pages as immutable flow steps.

Each step is a frozen dataclass carrying the scenario's FlowContext. Every
transition returns a new step value; a step that changes the top-level page
waits (through RetryableAction or ConditionPoller) for the next page's
defining element before returning.

Actions handed to RetryableAction only click while their control is still
present, so a retry click can never toggle back a post-state that arrived late.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import ClassVar

from .. import locators as loc
from ..conditions import all_of, any_of, css_count, css_count_at_least, element_absent, element_present, url_contains
from ..driver.base import ElementRef
from ..errors import IllegalTransition
from .context import FlowContext, FlowState

logger = logging.getLogger("storefront.flows.steps")


@dataclass(frozen=True)
class FlowStep:
    ctx: FlowContext

    state: ClassVar[FlowState]
    elements: ClassVar[tuple[ElementRef, ...]] = ()

    def _present(self, ref: ElementRef) -> bool:
        return bool(element_present(self.ctx.driver, ref)())

    def _click_when_present(self, ref: ElementRef) -> Callable[[], None]:
        def _click() -> None:
            if self._present(ref):
                self.ctx.driver.click(ref)
            else:
                logger.debug("%s: %s not present, click skipped", self.state.value, ref.name)

        return _click

    def _soft_visible(self, ref: ElementRef, label: str) -> bool:
        return bool(self.ctx.soft(lambda: self.ctx.driver.is_visible(ref), label=label))


@dataclass(frozen=True)
class Login(FlowStep):
    state: ClassVar[FlowState] = FlowState.LOGIN
    elements: ClassVar[tuple[ElementRef, ...]] = (
        loc.USERNAME_FIELD,
        loc.PASSWORD_FIELD,
        loc.LOGIN_BUTTON,
        loc.LOGIN_ERROR,
    )

    @classmethod
    def open(cls, ctx: FlowContext) -> Login:
        """Entry step of every scenario: the login form must appear."""
        ready = ctx.wait(element_present(ctx.driver, loc.USERNAME_FIELD), ctx.timings.login_ready)
        ctx.require(
            ready,
            step=FlowState.LOGIN,
            check="login form present",
            detail=ctx.describe(loc.USERNAME_FIELD),
        )
        return cls(ctx)

    def _submit(self, username: str, password: str) -> bool:
        driver = self.ctx.driver
        driver.type(loc.USERNAME_FIELD, username)
        driver.type(loc.PASSWORD_FIELD, password)
        settled = any_of(
            element_present(driver, loc.INVENTORY_CONTAINER),
            element_present(driver, loc.LOGIN_ERROR),
        )
        outcome = self.ctx.act(
            "login submit",
            lambda: driver.click(loc.LOGIN_BUTTON),
            settled,
            self.ctx.timings.login_submit,
        )
        if not outcome.succeeded:
            self.ctx.probe.record_miss("login settled", category="timeout")
        return outcome.succeeded

    def submit(self, username: str, password: str) -> Inventory:
        """Always attempts the login; Inventory.verify_loaded decides whether it worked."""
        self._submit(username, password)
        return Inventory(self.ctx)

    def attempt_and_stay(self, username: str, password: str) -> Login:
        """Submit credentials expected to be rejected; a failed login does not navigate."""
        self._submit(username, password)
        return replace(self)

    def is_error_displayed(self) -> bool:
        return self._soft_visible(loc.LOGIN_ERROR, "login error displayed")

    def error_message(self) -> str:
        return self.ctx.driver.get_text(loc.LOGIN_ERROR)


@dataclass(frozen=True)
class Inventory(FlowStep):
    state: ClassVar[FlowState] = FlowState.INVENTORY
    elements: ClassVar[tuple[ElementRef, ...]] = (
        loc.INVENTORY_CONTAINER,
        loc.ADD_TO_CART_BACKPACK,
        loc.REMOVE_FROM_CART_BACKPACK,
        loc.CART_BADGE,
        loc.CART_LINK,
    )

    def verify_loaded(self) -> Inventory:
        driver = self.ctx.driver
        loaded = all_of(
            lambda: driver.is_visible(loc.INVENTORY_CONTAINER),
            any_of(
                element_present(driver, loc.ADD_TO_CART_BACKPACK),
                element_present(driver, loc.REMOVE_FROM_CART_BACKPACK),
            ),
        )
        outcome = self.ctx.act("inventory load", lambda: None, loaded, self.ctx.timings.inventory_ready)
        self.ctx.require(
            outcome.succeeded,
            step=self.state,
            check="inventory loaded",
            detail=self.ctx.describe(loc.INVENTORY_CONTAINER),
        )
        return replace(self)

    def toggle_add_to_cart(self) -> Inventory:
        driver = self.ctx.driver
        self.ctx.act(
            "add to cart",
            self._click_when_present(loc.ADD_TO_CART_BACKPACK),
            element_present(driver, loc.REMOVE_FROM_CART_BACKPACK),
            self.ctx.timings.add_to_cart,
        )
        self.ctx.require(
            driver.is_visible(loc.REMOVE_FROM_CART_BACKPACK),
            step=self.state,
            check="remove button visible after add",
            detail=self.ctx.describe(loc.REMOVE_FROM_CART_BACKPACK),
        )
        return replace(self)

    def toggle_remove_from_cart(self) -> Inventory:
        step = self
        if not self.is_remove_button_visible():
            logger.debug("remove button not visible; adding the item first")
            step = self.toggle_add_to_cart()

        driver = self.ctx.driver
        self.ctx.act(
            "remove from cart",
            self._click_when_present(loc.REMOVE_FROM_CART_BACKPACK),
            element_present(driver, loc.ADD_TO_CART_BACKPACK),
            self.ctx.timings.remove_from_cart,
        )
        self.ctx.require(
            driver.is_visible(loc.ADD_TO_CART_BACKPACK),
            step=self.state,
            check="add button visible after remove",
            detail=self.ctx.describe(loc.ADD_TO_CART_BACKPACK),
        )
        # A lingering badge is tolerated and only reported.
        self.ctx.probe.check(
            lambda: self.ctx.wait(element_absent(driver, loc.CART_BADGE), self.ctx.timings.badge_cleared),
            label="cart badge cleared",
        )
        return replace(step)

    def cart_badge_count(self) -> str:
        driver = self.ctx.driver

        def _read() -> str:
            if css_count(driver, loc.CART_BADGE.css) == 0:
                return ""
            return driver.get_text(loc.CART_BADGE).strip()

        return self.ctx.soft(_read, label="cart badge count") or ""

    def verify_cart_badge(self, expected: str) -> Inventory:
        actual = self.ctx.driver.get_text(loc.CART_BADGE).strip()
        self.ctx.require(
            actual == str(expected),
            step=self.state,
            check="cart badge count",
            expected=str(expected),
            actual=actual,
        )
        return replace(self)

    def is_inventory_displayed(self) -> bool:
        return self._soft_visible(loc.INVENTORY_CONTAINER, "inventory displayed")

    def is_add_button_visible(self) -> bool:
        return self._soft_visible(loc.ADD_TO_CART_BACKPACK, "add button visible")

    def is_remove_button_visible(self) -> bool:
        return self._soft_visible(loc.REMOVE_FROM_CART_BACKPACK, "remove button visible")

    def is_cart_badge_displayed(self) -> bool:
        return bool(
            self.ctx.soft(element_present(self.ctx.driver, loc.CART_BADGE), label="cart badge displayed")
        )

    def go_to_cart(self) -> Cart:
        """Cart.verify_item_present is the hard gate; a slow navigation is only reported here."""
        driver = self.ctx.driver
        outcome = self.ctx.act(
            "go to cart",
            lambda: driver.click(loc.CART_LINK),
            url_contains(driver, loc.CART_URL_FRAGMENT),
            self.ctx.timings.cart_navigation,
        )
        if not outcome.succeeded:
            self.ctx.probe.record_miss("cart view reached", category="timeout", message=self.ctx.probe_url())
        return Cart(self.ctx)


@dataclass(frozen=True)
class Cart(FlowStep):
    state: ClassVar[FlowState] = FlowState.CART
    elements: ClassVar[tuple[ElementRef, ...]] = (
        loc.CART_ITEM,
        loc.CHECKOUT_BUTTON,
        loc.CONTINUE_SHOPPING_BUTTON,
    )

    def verify_item_present(self) -> Cart:
        driver = self.ctx.driver
        if not self.ctx.wait(css_count_at_least(driver, loc.CART_ITEM.css, 1), self.ctx.timings.cart_item):
            # Slow path: one direct look, failing loud.
            self.ctx.require(
                driver.is_visible(loc.CART_ITEM),
                step=self.state,
                check="cart item present",
                detail=self.ctx.describe(loc.CART_ITEM),
            )
        return replace(self)

    def has_items(self) -> bool:
        return self._soft_visible(loc.CART_ITEM, "cart has items")

    def proceed_to_checkout(self) -> Checkout:
        outcome = self.ctx.act(
            "proceed to checkout",
            self._click_when_present(loc.CHECKOUT_BUTTON),
            element_present(self.ctx.driver, loc.FIRST_NAME_FIELD),
            self.ctx.timings.page_transition,
        )
        self.ctx.require(
            outcome.succeeded,
            step=self.state,
            check="checkout information page reached",
            detail=self.ctx.describe(loc.FIRST_NAME_FIELD),
        )
        return Checkout(self.ctx)

    def continue_shopping(self) -> Inventory:
        outcome = self.ctx.act(
            "continue shopping",
            self._click_when_present(loc.CONTINUE_SHOPPING_BUTTON),
            element_present(self.ctx.driver, loc.INVENTORY_CONTAINER),
            self.ctx.timings.page_transition,
        )
        self.ctx.require(
            outcome.succeeded,
            step=self.state,
            check="inventory page reached",
            detail=self.ctx.describe(loc.INVENTORY_CONTAINER),
        )
        return Inventory(self.ctx)


@dataclass(frozen=True)
class Checkout(FlowStep):
    """Both checkout pages; ``phase`` is ``information`` or ``overview``."""

    phase: str = "information"

    state: ClassVar[FlowState] = FlowState.CHECKOUT
    elements: ClassVar[tuple[ElementRef, ...]] = (
        loc.FIRST_NAME_FIELD,
        loc.LAST_NAME_FIELD,
        loc.ZIP_CODE_FIELD,
        loc.CONTINUE_BUTTON,
        loc.FINISH_BUTTON,
        loc.CANCEL_BUTTON,
        loc.CHECKOUT_ERROR,
    )

    def fill_details(self, first_name: str, last_name: str, zip_code: str) -> Checkout:
        driver = self.ctx.driver
        driver.type(loc.FIRST_NAME_FIELD, first_name)
        driver.type(loc.LAST_NAME_FIELD, last_name)
        driver.type(loc.ZIP_CODE_FIELD, zip_code)
        return replace(self)

    def continue_(self) -> Checkout:
        driver = self.ctx.driver
        self.ctx.act(
            "continue checkout",
            self._click_when_present(loc.CONTINUE_BUTTON),
            any_of(element_present(driver, loc.FINISH_BUTTON), element_present(driver, loc.CHECKOUT_ERROR)),
            self.ctx.timings.page_transition,
        )
        if not self._present(loc.FINISH_BUTTON):
            self.ctx.require(
                False,
                step=self.state,
                check="checkout overview reached",
                detail=self.error_message() or self.ctx.describe(loc.FINISH_BUTTON),
            )
        return replace(self, phase="overview")

    def finish(self) -> Confirmation:
        """Confirmation.verify_complete is the hard gate; a slow page is only reported here."""
        outcome = self.ctx.act(
            "finish checkout",
            self._click_when_present(loc.FINISH_BUTTON),
            element_present(self.ctx.driver, loc.CONFIRMATION_MESSAGE),
            self.ctx.timings.page_transition,
        )
        if not outcome.succeeded:
            self.ctx.probe.record_miss("confirmation reached", category="timeout", message=self.ctx.probe_url())
        return Confirmation(self.ctx)

    def cancel(self) -> Cart:
        if self.phase != "information":
            # The overview page's cancel leads back to the inventory, not the cart.
            raise IllegalTransition(
                state=f"{self.state.value}({self.phase})",
                operation="cancel",
                allowed=("continue_", "finish", "complete", "error_message"),
            )
        outcome = self.ctx.act(
            "cancel checkout",
            self._click_when_present(loc.CANCEL_BUTTON),
            url_contains(self.ctx.driver, loc.CART_URL_FRAGMENT),
            self.ctx.timings.page_transition,
        )
        self.ctx.require(
            outcome.succeeded,
            step=self.state,
            check="cart page reached",
            detail=self.ctx.probe_url(),
        )
        return Cart(self.ctx)

    def complete(self, first_name: str, last_name: str, zip_code: str) -> Confirmation:
        return self.fill_details(first_name, last_name, zip_code).continue_().finish()

    def error_message(self) -> str:
        driver = self.ctx.driver

        def _read() -> str:
            if css_count(driver, loc.CHECKOUT_ERROR.css) == 0:
                return ""
            return driver.get_text(loc.CHECKOUT_ERROR)

        return self.ctx.soft(_read, label="checkout error message") or ""


@dataclass(frozen=True)
class Confirmation(FlowStep):
    state: ClassVar[FlowState] = FlowState.CONFIRMATION
    elements: ClassVar[tuple[ElementRef, ...]] = (
        loc.CONFIRMATION_MESSAGE,
        loc.CONFIRMATION_TEXT,
        loc.BACK_HOME_BUTTON,
    )

    def verify_complete(self) -> Confirmation:
        driver = self.ctx.driver
        shown = self.ctx.wait(lambda: driver.is_visible(loc.CONFIRMATION_MESSAGE), self.ctx.timings.page_transition)
        self.ctx.require(
            shown,
            step=self.state,
            check="order confirmation visible",
            detail=self.ctx.describe(loc.CONFIRMATION_MESSAGE),
        )
        return replace(self)

    def is_displayed(self) -> bool:
        return self._soft_visible(loc.CONFIRMATION_MESSAGE, "confirmation displayed")

    def message(self) -> str:
        return self.ctx.driver.get_text(loc.CONFIRMATION_MESSAGE)

    def text(self) -> str:
        return self.ctx.driver.get_text(loc.CONFIRMATION_TEXT)

    def back_home(self) -> Inventory:
        outcome = self.ctx.act(
            "back home",
            self._click_when_present(loc.BACK_HOME_BUTTON),
            element_present(self.ctx.driver, loc.INVENTORY_CONTAINER),
            self.ctx.timings.page_transition,
        )
        self.ctx.require(
            outcome.succeeded,
            step=self.state,
            check="inventory page reached",
            detail=self.ctx.describe(loc.INVENTORY_CONTAINER),
        )
        return Inventory(self.ctx)


STEP_TYPES: dict[FlowState, type[FlowStep]] = {
    FlowState.LOGIN: Login,
    FlowState.INVENTORY: Inventory,
    FlowState.CART: Cart,
    FlowState.CHECKOUT: Checkout,
    FlowState.CONFIRMATION: Confirmation,
}


__all__ = ["STEP_TYPES", "Cart", "Checkout", "Confirmation", "FlowStep", "Inventory", "Login"]
