"""Identity Lifecycle Manager.

Allocates patient identifiers at the first demographic save, resolves them
for every later section write and owns deletion of the aggregate together
with its attachments.

Security Impact:
    - Demographics are fully validated before any attachment or row is stored
    - A failed create leaves nothing behind: the photo bytes share the patient row's transaction
    - Malformed identifiers are rejected before any storage lookup
"""

import logging
import uuid
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from src.domain.patient_record import Demographics, merge_demographics
from src.domain.ports import (
    InvalidIdentifierError,
    NotFoundError,
    StorageError,
    StoragePort,
    ValidationError,
)
from src.domain.sections import scaffolded_sections
from src.domain.services.attachment_store import AttachmentStore, Upload

logger = logging.getLogger(__name__)


def parse_identifier(raw: Optional[str], resource: str = "patient") -> str:
    """Validate identifier syntax and return its canonical form.

    Parameters:
        raw: Identifier as received
        resource: Resource name used in the error message

    Returns:
        str: Canonical lowercase UUID string

    Raises:
        InvalidIdentifierError: If raw is not a UUID
    """
    try:
        return str(uuid.UUID(str(raw).strip()))
    except (ValueError, AttributeError, TypeError):
        raise InvalidIdentifierError(f"Invalid {resource} ID format: {raw!r}", identifier=raw)


def validate_demographics(payload: dict) -> dict:
    """Validate a demographics payload and return its persisted JSON form.

    Raises:
        ValidationError: With the offending field names
    """
    try:
        return Demographics.model_validate(payload).model_dump(mode="json")
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e)


class IdentityLifecycleManager:
    """Creates, resolves, updates and deletes Patient aggregates.

    Parameters:
        storage: Storage adapter
        attachments: Attachment store for photos
    """

    def __init__(self, storage: StoragePort, attachments: AttachmentStore):
        self.storage = storage
        self.attachments = attachments

    def create_patient(self, demographics: dict, photo: Optional[Upload] = None) -> str:
        """Create a patient from its demographic core.

        The optional photo is validated and addressed first, then written in
        the same transaction as the patient row. Contact info, insurance and
        every social-history topic are written as empty "incomplete" scaffolds.

        Parameters:
            demographics: Nested demographics payload
            photo: Optional photo upload

        Returns:
            str: The new patient identifier

        Raises:
            ValidationError: If required fields are missing or malformed
            AttachmentError: If the photo is rejected
            StorageError: If the aggregate cannot be persisted
        """
        core = validate_demographics(demographics)
        attachment = self.attachments.prepare(photo) if photo is not None else None
        photo_reference = attachment.reference if attachment else None
        patient_id = str(uuid.uuid4())
        scaffolds = {spec.key: spec.scaffold() for spec in scaffolded_sections()}

        result = self.storage.insert_patient(patient_id, core, photo_reference, scaffolds, attachment)
        if not result.is_success():
            raise StorageError(
                f"Failed to create patient: {result.error}",
                operation="insert_patient",
                details=result.error_details,
            )

        logger.info(f"Created patient {patient_id}")
        return patient_id

    def resolve_identity(self, patient_id: str) -> dict:
        """Look up an existing patient.

        Returns:
            dict: Patient row (patient_id, demographics, photo_reference, timestamps)

        Raises:
            InvalidIdentifierError: If patient_id is malformed
            NotFoundError: If no patient has this identifier
        """
        canonical = parse_identifier(patient_id)
        row = self.storage.get_patient(canonical).unwrap("get_patient")
        if row is None:
            raise NotFoundError("Patient not found", resource="patient", identifier=canonical)
        return row

    def update_demographics(
        self,
        patient_id: str,
        changes: dict,
        photo: Optional[Upload] = None
    ) -> dict:
        """Apply a partial demographics update and optionally replace the photo.

        The merged core is revalidated as a whole before anything is written.
        The previous photo is released best-effort after the new reference
        has been persisted.

        Returns:
            dict: The updated patient row

        Raises:
            InvalidIdentifierError, NotFoundError, ValidationError,
            AttachmentError, StorageError
        """
        row = self.resolve_identity(patient_id)
        canonical = row["patient_id"]
        core = validate_demographics(merge_demographics(row["demographics"], changes or {}))

        old_photo = row.get("photo_reference")
        attachment = self.attachments.prepare(photo) if photo is not None else None
        new_photo = attachment.reference if attachment else old_photo

        result = self.storage.update_patient(canonical, core, new_photo, attachment)
        if not result.is_success():
            raise StorageError(
                f"Failed to update patient: {result.error}",
                operation="update_patient",
                details=result.error_details,
            )
        if not result.value:
            raise NotFoundError("Patient not found", resource="patient", identifier=canonical)

        if new_photo != old_photo:
            self.attachments.release(old_photo)

        logger.info(f"Updated demographics for patient {canonical}")
        return self.resolve_identity(canonical)

    def delete_patient(self, patient_id: str) -> None:
        """Delete a patient and release every attachment it owns.

        Attachment cleanup happens after the aggregate is gone and never
        raises; failures are logged and the delete stands.

        Raises:
            InvalidIdentifierError, NotFoundError, StorageError
        """
        row = self.resolve_identity(patient_id)
        canonical = row["patient_id"]
        sections = self.storage.get_sections(canonical).unwrap("get_sections")
        owned = [row.get("photo_reference")] + [s.get("attachment_reference") for s in sections]

        deleted = self.storage.delete_patient(canonical).unwrap("delete_patient")
        if not deleted:
            raise NotFoundError("Patient not found", resource="patient", identifier=canonical)

        for reference in {ref for ref in owned if ref}:
            self.attachments.release(reference)
        logger.info(f"Deleted patient {canonical}")
