"""Exception handlers mapping domain errors onto HTTP responses.

Protean's own handlers are installed first; the ordering taxonomy and the
two Protean errors the API reports most often are then given one JSON
shape: ``{"error": code, "message": ..., "retryable": bool}``.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from ordering.domain import logger
from ordering.shared.errors import OrderingError


def _error_body(code, message, retryable=False, **extra):
    return {"error": code, "message": message, "retryable": retryable, **extra}


async def _ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message, **exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.retryable),
    )


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    messages = exc.messages if isinstance(exc.messages, dict) else {"_entity": [str(exc.messages)]}
    first = next((msgs[0] if isinstance(msgs, list) and msgs else str(msgs) for msgs in messages.values()), "")
    return JSONResponse(
        status_code=400,
        content=_error_body("validation_error", first or "Invalid request", errors=messages),
    )


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    message = getattr(exc, "messages", None) or (exc.args[0] if exc.args else None)
    if not isinstance(message, str):
        message = "Not found"
    return JSONResponse(status_code=404, content=_error_body("not_found", message))


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(OrderingError, _ordering_error)
