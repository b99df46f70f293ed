"""Middleware configuration for the intake API.

This module sets up middleware for request logging, last-resort error
handling and security headers.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = {
    "success": False,
    "message": "An unexpected error occurred",
    "error": {"kind": "InternalError"},
}


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request/response logging."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Log request and response details.

        Returns:
            Response: HTTP response with X-Process-Time header
        """
        start_time = time.time()
        client = request.client.host if request.client else "unknown"
        logger.info(f"{request.method} {request.url.path} - Client: {client}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"{request.method} {request.url.path} - Error: {str(e)} - Time: {process_time:.3f}s",
                exc_info=True
            )
            return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turns exceptions that escaped the exception handlers into a 500 envelope.

    Domain errors are mapped by the handlers in src.api.errors; anything
    reaching this middleware is unexpected, so no detail is returned.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unexpected error: {str(e)}", exc_info=True)
            return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds security headers to every response.

    Security Impact:
        - Prevents MIME type sniffing of served attachments
        - Prevents clickjacking
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        return response


def setup_middleware(app) -> None:
    """Setup application middleware.

    Middleware Order (outermost last):
        1. SecurityHeadersMiddleware - Adds security headers
        2. ErrorHandlingMiddleware - Handles errors
        3. LoggingMiddleware - Logs requests/responses
    """
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(LoggingMiddleware)
