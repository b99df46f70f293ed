"""Attachment Store Service.

Content-addressed storage for patient photos and insurance-card images.
The reference of an attachment is the SHA-256 hex digest of its bytes, so
storing the same image twice yields the same reference and one stored copy.

Security Impact:
    - Only JPEG, PNG and GIF images are accepted, and the declared content
      type must agree with the file signature
    - Uploads above the configured size limit are rejected before storage
    - The aggregate only ever holds references, never bytes

Architecture:
    - Depends only on StoragePort
    - Bytes are written by the same storage transaction as the patient or
      section row that references them, so a failed write leaves no bytes
      behind and a committed reference always has its bytes
    - release() is best-effort: failures are logged and never raised, so an
      attachment cleanup can never block or roll back a patient write
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from typing import Optional

from src.domain.ports import (
    Attachment,
    AttachmentError,
    InvalidIdentifierError,
    NotFoundError,
    StorageError,
    StoragePort,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif")

REFERENCE_PATTERN = re.compile(r"^[0-9a-f]{64}$")

_SIGNATURES = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/jpg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG\r\n\x1a\n",),
    "image/gif": (b"GIF87a", b"GIF89a"),
}


@dataclass(frozen=True)
class Upload:
    """An uploaded file as received at the boundary."""
    content: bytes
    content_type: str
    filename: Optional[str] = None


def compute_reference(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def parse_reference(raw: str) -> str:
    """Validate the syntax of an attachment reference.

    Raises:
        InvalidIdentifierError: If the reference is not a 64-char hex digest
    """
    candidate = (raw or "").strip().lower()
    if not REFERENCE_PATTERN.match(candidate):
        raise InvalidIdentifierError(f"Invalid attachment reference: {raw!r}", identifier=raw)
    return candidate


class AttachmentStore:
    """Content-addressed binary store backed by a StoragePort.

    Parameters:
        storage: Storage adapter
        max_bytes: Maximum accepted upload size
        allowed_types: Accepted MIME types
    """

    def __init__(
        self,
        storage: StoragePort,
        max_bytes: int = DEFAULT_MAX_BYTES,
        allowed_types: tuple = DEFAULT_ALLOWED_TYPES,
    ):
        self.storage = storage
        self.max_bytes = max_bytes
        self.allowed_types = tuple(t.lower() for t in allowed_types)

    def check(self, upload: Upload) -> None:
        """Validate an upload without storing it.

        Raises:
            AttachmentError: If the upload is empty, too large, of an
                unsupported type, or its bytes do not match its type
        """
        content_type = (upload.content_type or "").lower()
        if not upload.content:
            raise AttachmentError("Uploaded file is empty", reason="empty")
        if len(upload.content) > self.max_bytes:
            raise AttachmentError(
                f"Uploaded file exceeds {self.max_bytes} bytes",
                reason="too_large",
                details={"size_bytes": len(upload.content), "max_bytes": self.max_bytes},
            )
        if content_type not in self.allowed_types:
            raise AttachmentError(
                f"Unsupported file type {upload.content_type!r}; only JPEG, PNG and GIF images are allowed",
                reason="unsupported_type",
                details={"content_type": upload.content_type},
            )
        signatures = _SIGNATURES.get(content_type, ())
        if signatures and not upload.content.startswith(signatures):
            raise AttachmentError(
                f"File content does not match declared type {upload.content_type!r}",
                reason="unsupported_type",
                details={"content_type": upload.content_type},
            )

    def prepare(self, upload: Upload) -> Attachment:
        """Validate an upload and address it by content.

        Nothing is stored here: the returned attachment is written by the
        storage call that persists the row referencing it, in the same
        transaction.

        Raises:
            AttachmentError: If the upload is rejected
        """
        self.check(upload)
        return Attachment(
            reference=compute_reference(upload.content),
            content=upload.content,
            content_type=upload.content_type.lower(),
            filename=upload.filename,
        )

    def fetch(self, reference: str) -> Attachment:
        """Fetch a stored attachment.

        Raises:
            InvalidIdentifierError: If the reference is malformed
            NotFoundError: If no attachment has this reference
            AttachmentError: If the store cannot be read
        """
        reference = parse_reference(reference)
        result = self.storage.get_attachment(reference)
        if not result.is_success():
            raise AttachmentError(f"Failed to fetch attachment: {result.error}", reason="storage")
        row = result.value
        if row is None:
            raise NotFoundError("Attachment not found", resource="attachment", identifier=reference)
        return Attachment(
            reference=reference,
            content=bytes(row["content"]),
            content_type=row["content_type"],
            filename=row.get("filename"),
        )

    def release(self, reference: Optional[str]) -> None:
        """Best-effort removal of an attachment that may no longer be referenced.

        The bytes are kept while any patient photo or section still points at
        the same content; the check and the delete are one storage operation.
        Failures are logged, never raised.
        """
        if not reference:
            return
        try:
            removed = self.storage.release_attachment(parse_reference(reference)).unwrap("release_attachment")
        except (StorageError, InvalidIdentifierError) as e:
            logger.warning(f"Failed to release attachment {reference[:12]}: {e}")
            return
        if removed:
            logger.info(f"Released attachment {reference[:12]}")
        else:
            logger.debug(f"Attachment {reference[:12]} still referenced")
