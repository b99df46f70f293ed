"""Aggregate Query Service.

Read-side projections of the Patient aggregate: the list view, the full
aggregate and single-section fetches.
"""

import logging
from typing import Any, Optional

from src.domain.enums import SectionState
from src.domain.patient_record import PatientRecord, PatientSummary
from src.domain.ports import StoragePort
from src.domain.sections import get_section_spec, social_history_sections
from src.domain.services.identity_manager import IdentityLifecycleManager
from src.domain.services.section_update import resolve_section

logger = logging.getLogger(__name__)


def assemble_record(row: dict, section_rows: list[dict]) -> PatientRecord:
    """Build the full aggregate from a patient row and its section rows."""
    record = {
        "id": row["patient_id"],
        **row["demographics"],
        "photo_reference": row.get("photo_reference"),
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
        "social_history": {},
        "section_status": {},
    }
    for section in section_rows:
        spec = get_section_spec(section["section_key"])
        if spec.is_social_history:
            record["social_history"][spec.topic] = section["payload"]
        else:
            record[spec.key] = section["payload"]
        record["section_status"][spec.key] = SectionState(section["state"])
    return PatientRecord.model_validate(record)


class AggregateQueryService:
    """Read-only projections over stored patients.

    Parameters:
        storage: Storage adapter
        identity: Identity lifecycle manager used to resolve patients
    """

    def __init__(self, storage: StoragePort, identity: IdentityLifecycleManager):
        self.storage = storage
        self.identity = identity

    def list_patients(
        self,
        limit: int = 100,
        offset: int = 0,
        name: Optional[str] = None
    ) -> list[PatientSummary]:
        """List patients newest first.

        Parameters:
            limit: Maximum number of patients
            offset: Number of patients to skip
            name: Optional case-insensitive substring of first or last name

        Returns:
            list[PatientSummary]: id, name, date of birth, gender, blood
            group, contact email/mobile and creation time
        """
        rows = self.storage.list_patients(limit=limit, offset=offset, name_contains=name).unwrap(
            "list_patients"
        )
        summaries = []
        for row in rows:
            demographics = row["demographics"]
            contact = row.get("contact_info") or {}
            summaries.append(PatientSummary(
                id=row["patient_id"],
                name=demographics["name"],
                date_of_birth=demographics["date_of_birth"],
                gender=demographics["gender"],
                blood_group=demographics["blood_group"],
                email=contact.get("email"),
                mobile=contact.get("mobile"),
                created_at=row.get("created_at"),
            ))
        return summaries

    def get_patient(self, patient_id: str) -> PatientRecord:
        """Fetch the full aggregate.

        Raises:
            InvalidIdentifierError, NotFoundError, StorageError
        """
        row = self.identity.resolve_identity(patient_id)
        sections = self.storage.get_sections(row["patient_id"]).unwrap("get_sections")
        return assemble_record(row, sections)

    def get_section(self, patient_id: str, key: str) -> Any:
        """Fetch a section's current value.

        A never-written or deleted section yields its empty value: {} (or
        [] for allergies).

        Raises:
            InvalidIdentifierError, NotFoundError, ValidationError, StorageError
        """
        spec = resolve_section(key)
        canonical = self.identity.resolve_identity(patient_id)["patient_id"]
        row = self.storage.get_section(canonical, spec.key).unwrap("get_section")
        if row is None:
            return spec.empty_value()
        return row["payload"]

    def get_social_history(self, patient_id: str) -> dict:
        """Fetch every social-history topic, {} for topics not present."""
        canonical = self.identity.resolve_identity(patient_id)["patient_id"]
        rows = self.storage.get_sections(canonical).unwrap("get_sections")
        stored = {row["section_key"]: row["payload"] for row in rows}
        return {spec.topic: stored.get(spec.key, {}) for spec in social_history_sections()}
