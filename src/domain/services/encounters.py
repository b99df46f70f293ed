"""Visit and Appointment Services.

CRUD over the independent Visit and Appointment records, plus the
per-row medication operations of a visit and the overview statistics of
both record kinds. Neither service touches the Patient aggregate.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.domain.encounter_record import (
    MEDICATION_ALIASES,
    Appointment,
    Medication,
    MedicationStatusChange,
    Visit,
)
from src.domain.enums import MedicationStatus, Urgency
from src.domain.ports import EncounterQuery, NotFoundError, StoragePort, ValidationError
from src.domain.services.identity_manager import parse_identifier
from src.domain.validators import CLINICAL_DATE_FORMAT, is_blank

logger = logging.getLogger(__name__)

VISIT = "visit"
APPOINTMENT = "appointment"

RECENT_LIMIT = 10
DAY_LIMIT = 1000
APPOINTMENT_TIME_FORMAT = "%I:%M %p"


def _validate(model_cls: type[BaseModel], payload, prefix: Optional[str] = None) -> BaseModel:
    if not isinstance(payload, dict):
        raise ValidationError("A JSON object is required", fields=[prefix or "payload"])
    try:
        return model_cls.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, prefix=prefix)


def _present(row: dict) -> dict:
    return {
        "id": row["record_id"],
        **row["document"],
        "created_at": row.get("created_at"),
        "updated_at": row.get("updated_at"),
    }


def _clinical_date(value: str) -> date:
    return datetime.strptime(value, CLINICAL_DATE_FORMAT).date()


def _with_medication_ids(document: dict) -> dict:
    for medication in document.get("medication_history") or []:
        if not medication.get("id"):
            medication["id"] = str(uuid.uuid4())
    return document


class _EncounterService:
    kind = ""

    def __init__(self, storage: StoragePort):
        self.storage = storage

    def _load(self, record_id: str) -> dict:
        canonical = parse_identifier(record_id, resource=self.kind)
        row = self.storage.get_encounter(self.kind, canonical).unwrap("get_encounter")
        if row is None:
            raise NotFoundError(f"{self.kind.capitalize()} not found", resource=self.kind, identifier=canonical)
        return row

    def get(self, record_id: str) -> dict:
        return _present(self._load(record_id))

    def delete(self, record_id: str) -> None:
        row = self._load(record_id)
        if not self.storage.delete_encounter(self.kind, row["record_id"]).unwrap("delete_encounter"):
            raise NotFoundError(f"{self.kind.capitalize()} not found", resource=self.kind, identifier=row["record_id"])
        logger.info(f"Deleted {self.kind} {row['record_id']}")

    def _insert(self, document: dict, index: dict) -> dict:
        record_id = str(uuid.uuid4())
        self.storage.insert_encounter(self.kind, record_id, document, index).unwrap("insert_encounter")
        logger.info(f"Created {self.kind} {record_id}")
        return self.get(record_id)

    def _replace(self, record_id: str, document: dict, index: dict) -> dict:
        if not self.storage.replace_encounter(self.kind, record_id, document, index).unwrap("replace_encounter"):
            raise NotFoundError(f"{self.kind.capitalize()} not found", resource=self.kind, identifier=record_id)
        logger.info(f"Updated {self.kind} {record_id}")
        return self.get(record_id)

    def _list(self, query: EncounterQuery) -> list[dict]:
        rows = self.storage.list_encounters(query).unwrap("list_encounters")
        return [_present(row) for row in rows]

    def _counts(self, column: str) -> list[tuple]:
        return self.storage.count_encounters(self.kind, column).unwrap("count_encounters")


class VisitService(_EncounterService):
    """Create, read, update and delete Visit records and their medication rows."""

    kind = VISIT

    @staticmethod
    def _index(visit: Visit) -> dict:
        return {
            "patient_name": visit.patient_name,
            "category": visit.visit_type.value,
            "doctor": visit.seen_by,
            "urgency": None,
            "event_date": _clinical_date(visit.follow_up_date) if visit.follow_up_date else None,
        }

    def create(self, payload: dict) -> dict:
        """Create a visit; a reference id and medication row ids are generated for it.

        Raises:
            ValidationError: If visit_type, patient_name or chief_complaints
                are missing, or any field fails its rule
        """
        visit = _validate(Visit, payload)
        document = _with_medication_ids(visit.model_dump(mode="json"))
        document["reference_id"] = uuid.uuid4().hex
        return self._insert(document, self._index(visit))

    def update(self, record_id: str, payload: dict) -> dict:
        """Replace a visit with a fully validated payload, keeping its reference id.

        Medication rows that carry an id keep it; new rows get one.
        """
        row = self._load(record_id)
        visit = _validate(Visit, payload)
        document = _with_medication_ids(visit.model_dump(mode="json"))
        document["reference_id"] = row["document"].get("reference_id")
        return self._replace(row["record_id"], document, self._index(visit))

    def list_visits(
        self,
        patient_name: Optional[str] = None,
        visit_type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        """List visits newest first, filtered on name, type and creation date range."""
        return self._list(EncounterQuery(
            kind=self.kind,
            name_contains=patient_name,
            category=visit_type,
            created_from=datetime.combine(start_date, datetime.min.time()) if start_date else None,
            created_to=datetime.combine(end_date + timedelta(days=1), datetime.min.time()) if end_date else None,
            limit=limit,
            offset=offset,
        ))

    def stats(self) -> dict:
        """Visit totals, counts per visit type and the most recent visits."""
        by_type = self._counts("category")
        return {
            "total_visits": sum(count for _, count in by_type),
            "visits_by_type": [{"visit_type": value, "count": count} for value, count in by_type],
            "recent_visits": self.list_visits(limit=RECENT_LIMIT),
        }

    # -- medication history -------------------------------------------------

    def _save_medications(self, row: dict, medications: list[dict]) -> dict:
        document = dict(row["document"])
        document["medication_history"] = medications
        visit = _validate(Visit, document)
        return self._replace(row["record_id"], document, self._index(visit))

    @staticmethod
    def _find_medication(medications: list[dict], medication_id: str) -> int:
        for position, medication in enumerate(medications):
            if medication.get("id") == medication_id:
                return position
        raise NotFoundError("Medication not found", resource="medication", identifier=medication_id)

    def add_medication(self, record_id: str, payload: dict) -> dict:
        """Append one medication row to a visit's medication history."""
        row = self._load(record_id)
        medication = _validate(Medication, payload, prefix="medication").model_dump(mode="json")
        medication["id"] = str(uuid.uuid4())
        medications = list(row["document"].get("medication_history") or []) + [medication]
        return self._save_medications(row, medications)

    def update_medication(self, record_id: str, medication_id: str, payload: dict) -> dict:
        """Change the non-blank fields of one medication row.

        Wizard names (mg, doseTime, timePeriod, a boolean status) are
        accepted; blank values leave the stored field as it is. The merged
        row is revalidated as a whole.

        Raises:
            InvalidIdentifierError, NotFoundError, ValidationError
        """
        row = self._load(record_id)
        if not isinstance(payload, dict):
            raise ValidationError("A JSON object is required", fields=["medication"])
        medications = [dict(m) for m in row["document"].get("medication_history") or []]
        position = self._find_medication(medications, medication_id)

        changes = {
            MEDICATION_ALIASES.get(key, key): value
            for key, value in payload.items()
            if not is_blank(value)
        }
        changes.pop("id", None)
        merged = _validate(Medication, {**medications[position], **changes}, prefix="medication")
        medications[position] = merged.model_dump(mode="json")
        logger.info(f"Updating medication {medication_id} of visit {row['record_id']}")
        return self._save_medications(row, medications)

    def delete_medication(self, record_id: str, medication_id: str) -> dict:
        """Remove one medication row; the other rows keep their order."""
        row = self._load(record_id)
        medications = list(row["document"].get("medication_history") or [])
        del medications[self._find_medication(medications, medication_id)]
        logger.info(f"Deleting medication {medication_id} of visit {row['record_id']}")
        return self._save_medications(row, medications)

    def set_medication_status(self, record_id: str, medication_id: str, payload: dict) -> dict:
        """Mark one medication row Active or Inactive.

        Returns:
            dict: medication_id and the new status literal
        """
        change = _validate(MedicationStatusChange, payload)
        row = self._load(record_id)
        medications = [dict(m) for m in row["document"].get("medication_history") or []]
        position = self._find_medication(medications, medication_id)
        medications[position]["status"] = change.status.value
        self._save_medications(row, medications)
        return {"medication_id": medication_id, "status": change.status.value}

    def list_medications(self, record_id: str, active_only: bool = False) -> list[dict]:
        medications = self._load(record_id)["document"].get("medication_history") or []
        if active_only:
            return [m for m in medications if m.get("status") == MedicationStatus.ACTIVE.value]
        return medications


class AppointmentService(_EncounterService):
    """Create, read, update and delete Appointment records."""

    kind = APPOINTMENT

    @staticmethod
    def _index(appointment: Appointment) -> dict:
        name = appointment.patient_name
        return {
            "patient_name": " ".join(part for part in (name.first, name.middle, name.last) if part),
            "category": appointment.appointment_type.value,
            "doctor": appointment.doctor,
            "urgency": appointment.urgency.value,
            "event_date": _clinical_date(appointment.appointment_date),
        }

    def create(self, payload: dict) -> dict:
        """Book an appointment.

        Raises:
            ValidationError: If name, age, contact number, date or time are
                missing or malformed
        """
        appointment = _validate(Appointment, payload)
        return self._insert(appointment.model_dump(mode="json"), self._index(appointment))

    def update(self, record_id: str, payload: dict) -> dict:
        row = self._load(record_id)
        appointment = _validate(Appointment, payload)
        return self._replace(row["record_id"], appointment.model_dump(mode="json"), self._index(appointment))

    def list_appointments(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        patient_name: Optional[str] = None,
        doctor: Optional[str] = None,
        appointment_type: Optional[str] = None,
        urgency: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        """List appointments newest first.

        start_date/end_date bound the scheduled appointment date (inclusive).
        """
        return self._list(EncounterQuery(
            kind=self.kind,
            name_contains=patient_name,
            category=appointment_type,
            doctor_contains=doctor,
            urgency=urgency,
            event_from=start_date,
            event_to=end_date,
            limit=limit,
            offset=offset,
        ))

    def list_for_day(self, day: Optional[date] = None) -> list[dict]:
        """Appointments scheduled on one day (default: today), earliest time first."""
        day = day or date.today()
        appointments = self.list_appointments(start_date=day, end_date=day, limit=DAY_LIMIT)
        return sorted(
            appointments,
            key=lambda a: datetime.strptime(a["appointment_time"], APPOINTMENT_TIME_FORMAT).time(),
        )

    def stats(self) -> dict:
        """Appointment totals, urgent count, counts per type and doctor, and the most recent bookings."""
        by_type = self._counts("category")
        by_urgency = dict(self._counts("urgency"))
        return {
            "total_appointments": sum(count for _, count in by_type),
            "urgent_appointments": by_urgency.get(Urgency.YES.value, 0),
            "appointments_by_type": [
                {"appointment_type": value, "count": count} for value, count in by_type
            ],
            "appointments_by_doctor": [
                {"doctor": value, "count": count} for value, count in self._counts("doctor")
            ],
            "recent_appointments": self.list_appointments(limit=RECENT_LIMIT),
        }
