"""Map domain exceptions onto HTTP error responses.

Every error body has the same shape:
    {"error": "<type>", "message": "<first message>", "details": {field: [messages]}}

- ValidationError       → 422 (rule violated, including purchase limit rejection)
- InvalidOperationError → 409 (the order moved on since the caller last saw it)
- ObjectNotFoundError   → 404
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def _details(exc) -> dict:
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        return messages
    return {"_entity": [str(messages or exc)]}


def _first_message(details: dict) -> str:
    for messages in details.values():
        if isinstance(messages, list | tuple) and messages:
            return str(messages[0])
        if messages:
            return str(messages)
    return "Request failed"


def create_error_response(error_type: str, exc: Exception, status_code: int) -> JSONResponse:
    details = _details(exc)
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_type,
            "message": _first_message(details),
            "details": details,
        },
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Request rejected", path=request.url.path, details=_details(exc))
    return create_error_response("validation_error", exc, status.HTTP_422_UNPROCESSABLE_ENTITY)


async def conflict_error_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
    logger.info("Request conflicts with current state", path=request.url.path, details=_details(exc))
    return create_error_response("conflict", exc, status.HTTP_409_CONFLICT)


async def not_found_error_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return create_error_response("not_found", exc, status.HTTP_404_NOT_FOUND)


def register_error_handlers(app: FastAPI) -> None:
    """Install the domain exception handlers on ``app``."""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(InvalidOperationError, conflict_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_error_handler)
