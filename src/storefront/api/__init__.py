"""Ordering API adapters for the storefront engine.

- FakeStorefrontApi for development and testing
- HttpStorefrontApi for a running Ordering service
"""

from storefront.api.fake_adapter import FakeStorefrontApi
from storefront.api.http_adapter import HttpStorefrontApi
from storefront.api.port import StorefrontApi

__all__ = ["FakeStorefrontApi", "HttpStorefrontApi", "StorefrontApi"]
