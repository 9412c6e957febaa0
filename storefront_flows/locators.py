"""Element references for the storefront pages."""

from __future__ import annotations

from .driver.base import ElementRef

# Login
USERNAME_FIELD = ElementRef.by_id("Username Field", "user-name")
PASSWORD_FIELD = ElementRef.by_id("Password Field", "password")
LOGIN_BUTTON = ElementRef.by_id("Login Button", "login-button")
LOGIN_ERROR = ElementRef.by_css("Error Message", "[data-test='error']")

# Inventory
INVENTORY_CONTAINER = ElementRef.by_id("Inventory Container", "inventory_container")
ADD_TO_CART_BACKPACK = ElementRef.by_id("Add Backpack to Cart", "add-to-cart-sauce-labs-backpack")
REMOVE_FROM_CART_BACKPACK = ElementRef.by_id("Remove Backpack from Cart", "remove-sauce-labs-backpack")
CART_BADGE = ElementRef.by_css("Cart Badge", ".shopping_cart_badge")
CART_LINK = ElementRef.by_id("Cart Link", "shopping_cart_container")

# Cart
CART_ITEM = ElementRef.by_css("Cart Item", ".cart_item")
CHECKOUT_BUTTON = ElementRef.by_id("Checkout Button", "checkout")
CONTINUE_SHOPPING_BUTTON = ElementRef.by_id("Continue Shopping Button", "continue-shopping")

# Checkout: information and overview
FIRST_NAME_FIELD = ElementRef.by_id("First Name Field", "first-name")
LAST_NAME_FIELD = ElementRef.by_id("Last Name Field", "last-name")
ZIP_CODE_FIELD = ElementRef.by_id("Zip Code Field", "postal-code")
CONTINUE_BUTTON = ElementRef.by_id("Continue Button", "continue")
FINISH_BUTTON = ElementRef.by_id("Finish Button", "finish")
CANCEL_BUTTON = ElementRef.by_id("Cancel Button", "cancel")
CHECKOUT_ERROR = ElementRef.by_css("Checkout Error", "[data-test='error']")

# Confirmation
CONFIRMATION_MESSAGE = ElementRef.by_css("Confirmation Message", ".complete-header")
CONFIRMATION_TEXT = ElementRef.by_css("Confirmation Text", ".complete-text")
BACK_HOME_BUTTON = ElementRef.by_id("Back Home Button", "back-to-products")

CART_URL_FRAGMENT = "cart"
