"""Ordering bounded context: Shopping Cart, Orders and purchase limits.

Handles the authoritative shopping cart (CQRS), the order lifecycle (event
sourced) and the regulatory daily purchase allowance checked at checkout.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
