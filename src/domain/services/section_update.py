"""Section Update Service.

Implements the section-wise partial update protocol: every section of the
Patient aggregate (contact info, insurance, allergies, family history and
each social-history topic) is written independently, as a whole-section
replace at its own storage key.

Contract of every write:
    1. resolve the patient identity (InvalidIdentifier / NotFound)
    2. validate the full payload against the section model (ValidationError)
    3. replace the section with one path-scoped storage statement
    4. return the persisted value

Nothing is written unless steps 1 and 2 succeed. Writers to different
sections never conflict. Two writers to the same section race and the
last write applied at the storage layer wins; there is no merge and no
optimistic-concurrency check.
"""

import logging
from typing import Any

from src.domain.enums import SectionState
from src.domain.ports import NotFoundError, StoragePort, ValidationError
from src.domain.sections import SectionSpec, get_section_spec
from src.domain.services.attachment_store import AttachmentStore, Upload
from src.domain.services.identity_manager import IdentityLifecycleManager

logger = logging.getLogger(__name__)

INSURANCE_KEY = "insurance"
CARD_FIELD = "insurance_card_reference"


def resolve_section(key: str) -> SectionSpec:
    """Look up a section spec, reporting unknown keys as a validation failure."""
    try:
        return get_section_spec(key)
    except KeyError:
        raise ValidationError(f"Unknown section: {key!r}", fields=[key])


class SectionUpdateService:
    """Writes and deletes individual sections of a Patient aggregate.

    Parameters:
        storage: Storage adapter
        identity: Identity lifecycle manager used to resolve patients
        attachments: Attachment store (insurance card images)
    """

    def __init__(
        self,
        storage: StoragePort,
        identity: IdentityLifecycleManager,
        attachments: AttachmentStore,
    ):
        self.storage = storage
        self.identity = identity
        self.attachments = attachments

    def upsert_section(self, patient_id: str, key: str, payload: Any) -> Any:
        """Validate a section payload and replace the stored section.

        Parameters:
            patient_id: Patient identifier
            key: Section storage key ("contact_info", "social_history.stress", ...)
            payload: Section payload

        Returns:
            The persisted section value

        Raises:
            InvalidIdentifierError, NotFoundError, ValidationError, StorageError
        """
        spec = resolve_section(key)
        canonical = self.identity.resolve_identity(patient_id)["patient_id"]
        value = spec.validate(payload)

        attachment_reference = None
        if spec.key == INSURANCE_KEY:
            # The card image is owned by attach_insurance_card
            attachment_reference = self._current_card(canonical)
            value[CARD_FIELD] = attachment_reference

        self._write(canonical, spec.key, value, SectionState.COMPLETE, attachment_reference)
        logger.info(f"Wrote section {spec.key} for patient {canonical}")
        return value

    def delete_section(self, patient_id: str, key: str) -> bool:
        """Remove a section, leaving every other section untouched.

        An attachment owned by the section (insurance card) is released
        best-effort.

        Returns:
            bool: True if the section existed

        Raises:
            InvalidIdentifierError, NotFoundError, ValidationError, StorageError
        """
        spec = resolve_section(key)
        canonical = self.identity.resolve_identity(patient_id)["patient_id"]
        existing = self.storage.get_section(canonical, spec.key).unwrap("get_section")

        removed = self.storage.delete_section(canonical, spec.key).unwrap("delete_section")
        if existing and existing.get("attachment_reference"):
            self.attachments.release(existing["attachment_reference"])
        logger.info(f"Deleted section {spec.key} for patient {canonical} (existed={removed})")
        return removed

    def attach_insurance_card(self, patient_id: str, upload: Upload) -> dict:
        """Store an insurance-card image and point the insurance section at it.

        The image bytes are written in the same transaction as the section,
        so the aggregate never holds a dangling reference and a failed write
        leaves no bytes behind. The previous card is released after the new
        reference is persisted.

        Returns:
            dict: The persisted insurance section

        Raises:
            InvalidIdentifierError, NotFoundError, AttachmentError, StorageError
        """
        spec = resolve_section(INSURANCE_KEY)
        canonical = self.identity.resolve_identity(patient_id)["patient_id"]
        existing = self.storage.get_section(canonical, spec.key).unwrap("get_section")

        attachment = self.attachments.prepare(upload)
        reference = attachment.reference
        if existing is None:
            value, state = spec.scaffold(), SectionState.INCOMPLETE.value
        else:
            value, state = dict(existing["payload"]), existing["state"]
        value[CARD_FIELD] = reference
        previous = existing.get("attachment_reference") if existing else None

        self._write(canonical, spec.key, value, state, reference, attachment)

        if previous and previous != reference:
            self.attachments.release(previous)
        logger.info(f"Attached insurance card {reference[:12]} to patient {canonical}")
        return value

    def _current_card(self, patient_id: str):
        row = self.storage.get_section(patient_id, INSURANCE_KEY).unwrap("get_section")
        return row.get("attachment_reference") if row else None

    def _write(
        self, patient_id: str, key: str, value: Any, state, attachment_reference, attachment=None
    ) -> None:
        state_value = state.value if isinstance(state, SectionState) else state
        written = self.storage.write_section(
            patient_id, key, value, state_value, attachment_reference, attachment
        ).unwrap("write_section")
        if not written:
            # Patient deleted between resolution and write
            raise NotFoundError("Patient not found", resource="patient", identifier=patient_id)
