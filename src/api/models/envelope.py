"""Response envelope shared by every JSON endpoint."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Machine-checkable error description.

    Attributes:
        kind: ValidationError, NotFound, InvalidIdentifier, AttachmentError,
            ConflictError, StorageError or InternalError
        fields: Offending field names (validation failures only)
    """
    kind: str
    fields: Optional[list[str]] = Field(None, description="Offending field names")


class Envelope(BaseModel):
    """{success, data?, message?, error?}"""
    success: bool
    data: Any = None
    message: Optional[str] = None
    error: Optional[ErrorBody] = None


def ok(data: Any = None, message: Optional[str] = None) -> Envelope:
    return Envelope(success=True, data=data, message=message)
