"""Storefront error taxonomy.

Local errors are raised before anything is sent to the server. ``ApiError``
and its subclasses describe a server response (or the lack of one) and are
built from the Ordering API's error envelope.
"""

from typing import Any


class StorefrontError(Exception):
    """Base exception for the storefront engine."""


class CheckoutValidationError(StorefrontError):
    """A checkout step's input failed local validation. Nothing was sent."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = field_errors
        summary = "; ".join(f"{field}: {message}" for field, message in field_errors.items())
        super().__init__(summary or "Invalid checkout input")


class CheckoutStateError(StorefrontError):
    """The requested checkout move is not allowed from the current step."""


class PurchaseLimitExceeded(StorefrontError):
    """Adding the item would exceed the customer's daily purchase limit."""

    def __init__(self, check) -> None:
        self.check = check
        super().__init__(check.warning)


class PromoInFlightError(StorefrontError):
    """A promo code operation is still waiting for the server."""


class OrderTransitionError(StorefrontError):
    """The order does not offer the requested transition."""


class ApiError(StorefrontError):
    """The Ordering API refused a request or could not be reached."""

    status_code: int | None = None
    error_type = "api_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(ApiError):
    status_code = 404
    error_type = "not_found"


class ConflictError(ApiError):
    """Someone else changed the resource since it was last read."""

    status_code = 409
    error_type = "conflict"


class RejectedError(ApiError):
    """The server refused the request on validation or compliance grounds."""

    status_code = 422
    error_type = "validation_error"

    @property
    def is_compliance_rejection(self) -> bool:
        return "purchase_limit" in self.details


class TransportError(ApiError):
    """No usable response: network failure, timeout, or a 5xx."""

    error_type = "transport_error"


def _message_from(body: Any, default: str) -> tuple[str, dict]:
    if not isinstance(body, dict):
        return default, {}
    details = body.get("details")
    if details is None and "detail" in body:
        # FastAPI request validation errors
        details = {"request": body["detail"]}
    return body.get("message") or default, details if isinstance(details, dict) else {}


def error_from_response(status_code: int, body: Any) -> ApiError:
    """Build the matching ApiError for an error response."""
    message, details = _message_from(body, f"Request failed with status {status_code}")
    if status_code == 404:
        return NotFoundError(message, details=details)
    if status_code == 409:
        return ConflictError(message, details=details)
    if status_code in (400, 422):
        return RejectedError(message, status_code=status_code, details=details)
    if status_code >= 500:
        return TransportError(message, status_code=status_code, details=details)
    return ApiError(message, status_code=status_code, details=details)
