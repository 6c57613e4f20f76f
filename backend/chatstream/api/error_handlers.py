"""Error Handlers — global exception handlers for the chat API.

Invariants:
    - ChatError → flat JSON {error, detail?} with the error's own HTTP status
    - RequestValidationError → 400 with the invalid-message body
    - Exception (catch-all) → 500 {error: "服务器内部错误"}, never leaks internals

Design Decisions:
    - Three-layer handler: domain (ChatError), validation (Pydantic), catch-all (Exception)
    - Extracted from main.py (ADR: import fan-out < 10)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from chatstream.core.errors import (
    ChatError, ErrorSeverity, GENERIC_ERROR_MESSAGE, INVALID_MESSAGE_ERROR,
)

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_chat_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_chat_error_handler(app: FastAPI) -> None:

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        """Handle all chat domain/infrastructure errors."""
        log = logger.warning if exc.severity == ErrorSeverity.WARNING else logger.error
        log(
            f"ChatError: {exc.message}",
            extra={"error_code": exc.code, "path": request.url.path},
        )
        return JSONResponse(
            status_code=exc.http_status, content=exc.to_response(),
        )


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError,
    ):
        logger.warning(
            f"Validation error on {request.url.path}: {exc.errors()}",
        )
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        """Catch-all — never leaks internal details."""
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": GENERIC_ERROR_MESSAGE},
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    fields = ", ".join(
        ".".join(str(loc) for loc in e["loc"]) for e in exc.errors()
    )
    return {"error": INVALID_MESSAGE_ERROR, "detail": fields}
