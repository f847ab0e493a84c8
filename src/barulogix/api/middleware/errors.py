"""Error handling for consistent JSON error responses.

All errors are converted to one JSON structure:
- error: Human-readable Spanish description (shown as-is by the frontend)
- code: Machine-readable error code
- details: Optional underlying cause
- request_id: Correlation ID for debugging

Domain errors raised by services reach the client through
ErrorHandlerMiddleware. Errors FastAPI handles itself (HTTPException and
request validation) are rendered by the exception handlers registered in
``install_exception_handlers``.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from barulogix.api.middleware.request_id import get_request_id
from barulogix.services.errors import BaruLogixError

logger = logging.getLogger(__name__)

VALIDATION_MESSAGE = "Datos de entrada inválidos"
INTERNAL_MESSAGE = "Error interno del servidor"

_HTTP_CODES = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def build_error_response(
    message: str,
    code: str,
    status_code: int,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a standardized error response.

    Args:
        message: Human-readable description.
        code: Machine-readable error code.
        status_code: HTTP status code.
        details: Optional additional details.
        headers: Optional extra response headers.

    Returns:
        JSONResponse with consistent error structure.
    """
    body: dict[str, Any] = {
        "error": message,
        "code": code,
    }
    if details is not None:
        body["details"] = jsonable_encoder(details)

    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def domain_error_response(exc: BaruLogixError) -> JSONResponse:
    """Render a service-layer error."""
    if exc.status_code >= 500:
        logger.error("Request failed: %s (%s)", exc.message, exc.details)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return build_error_response(
        message=exc.message,
        code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
        headers=headers,
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that catches exceptions and returns consistent JSON errors.

    Handles:
    - BaruLogixError and subclasses: domain errors with their own status
    - HTTPException: FastAPI's built-in HTTP errors
    - ValidationError: Pydantic validation failures
    - Generic exceptions: Unexpected errors (logged, returns 500)
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process request and handle any exceptions.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The response, or an error response if an exception occurred.
        """
        try:
            return await call_next(request)
        except BaruLogixError as exc:
            return domain_error_response(exc)
        except HTTPException as exc:
            return build_error_response(
                message=str(exc.detail),
                code=_HTTP_CODES.get(exc.status_code, "http_error"),
                status_code=exc.status_code,
            )
        except ValidationError as exc:
            return build_error_response(
                message=VALIDATION_MESSAGE,
                code="validation_error",
                status_code=422,
                details={"errors": exc.errors(include_url=False)},
            )
        except Exception:
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                message=INTERNAL_MESSAGE,
                code="internal_error",
                status_code=500,
            )


async def _domain_error_handler(_request: Request, exc: BaruLogixError) -> JSONResponse:
    return domain_error_response(exc)


async def _http_error_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return build_error_response(
        message=str(exc.detail),
        code=_HTTP_CODES.get(exc.status_code, "http_error"),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return build_error_response(
        message=VALIDATION_MESSAGE,
        code="validation_error",
        status_code=422,
        details={"errors": exc.errors()},
    )


def install_exception_handlers(app: FastAPI) -> None:
    """Register handlers so framework-level errors use the same envelope."""
    app.add_exception_handler(BaruLogixError, _domain_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
