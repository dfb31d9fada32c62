"""Storefront engine: the client side of cart and order consistency.

The storefront keeps an optimistic local cart in step with the Ordering
service, enforces purchase limits before items are added, drives checkout,
and tracks placed orders through their lifecycle.
"""

from storefront.cart_store import CartNotice, CartStore
from storefront.checkout import CheckoutFailure, CheckoutOrchestrator, CheckoutStep, ReviewSummary
from storefront.limits import LimitCheck, check_purchase_limit
from storefront.models import Cart, CartItem, Order, PurchaseLimitState
from storefront.orders import OrderTracker
from storefront.reconciler import reconcile
from storefront.session import StorefrontSession

__all__ = [
    "Cart",
    "CartItem",
    "CartNotice",
    "CartStore",
    "CheckoutFailure",
    "CheckoutOrchestrator",
    "CheckoutStep",
    "LimitCheck",
    "Order",
    "OrderTracker",
    "PurchaseLimitState",
    "ReviewSummary",
    "StorefrontSession",
    "check_purchase_limit",
    "reconcile",
]
