"""Exception handlers mapping the error taxonomy onto HTTP responses.

Every failure leaves the API as the {success: false, message, error: {kind,
fields?}} envelope. Stack traces and datastore messages are logged, never
returned.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.domain.ports import AttachmentError, EMRError, StorageError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    "ValidationError": 400,
    "InvalidIdentifier": 400,
    "NotFound": 404,
    "ConflictError": 409,
    "StorageError": 500,
}

ATTACHMENT_STATUS_BY_REASON = {
    "empty": 400,
    "too_large": 413,
    "unsupported_type": 415,
    "storage": 500,
}

ROUTING_KIND_BY_STATUS = {
    400: "ValidationError",
    404: "NotFound",
    405: "MethodNotAllowed",
    422: "ValidationError",
}

# Leading location parts FastAPI adds that are not field names
REQUEST_LOCATIONS = {"body", "query", "path", "form", "header", "cookie"}


def error_response(
    status_code: int,
    kind: str,
    message: str,
    fields: Optional[list[str]] = None
) -> JSONResponse:
    error = {"kind": kind}
    if fields:
        error["fields"] = fields
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error},
    )


def status_for(exc: EMRError) -> int:
    if isinstance(exc, AttachmentError):
        return ATTACHMENT_STATUS_BY_REASON.get(exc.reason, 500)
    return STATUS_BY_KIND.get(exc.kind, 500)


async def emr_error_handler(request: Request, exc: EMRError) -> JSONResponse:
    """Map a domain error to its status code and envelope."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(
            f"{request.method} {request.url.path} failed: {exc.kind}: {exc.message}",
            exc_info=exc
        )
        message = "Storage operation failed" if isinstance(exc, StorageError) else "Attachment could not be stored"
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.message}")
        message = exc.message
    return error_response(status_code, exc.kind, message, getattr(exc, "fields", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies/parameters as a ValidationError."""
    fields = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        if location and location[0] in REQUEST_LOCATIONS:
            location = location[1:]
        name = ".".join(location) or "body"
        if name not in fields:
            fields.append(name)
    logger.info(f"{request.method} {request.url.path} rejected: invalid request ({', '.join(fields)})")
    return error_response(400, "ValidationError", "Invalid request", fields)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing errors (unknown path, wrong method) in the envelope."""
    kind = ROUTING_KIND_BY_STATUS.get(exc.status_code, "HTTPError")
    response = error_response(exc.status_code, kind, str(exc.detail))
    if exc.headers:
        # Allow on 405
        response.headers.update(exc.headers)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EMRError, emr_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
