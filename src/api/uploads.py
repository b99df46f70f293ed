"""Conversion of multipart uploads into domain Upload values."""

from typing import Optional

from fastapi import UploadFile

from src.domain.services import Upload


def read_upload(file: Optional[UploadFile]) -> Optional[Upload]:
    """Read an UploadFile fully; an empty file part means no upload."""
    if file is None or not file.filename:
        return None
    content = file.file.read()
    return Upload(
        content=content,
        content_type=file.content_type or "application/octet-stream",
        filename=file.filename,
    )
