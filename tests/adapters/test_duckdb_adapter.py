"""Tests for the DuckDB storage adapter."""

import uuid
from datetime import date

import pytest

from src.adapters.storage.duckdb_adapter import DuckDBAdapter
from src.domain.ports import Attachment, EncounterQuery, StorageError
from src.infrastructure.config_manager import DatabaseConfig

DEMOGRAPHICS = {"name": {"first": "Asha", "last": "Rao"}, "date_of_birth": "03-14-1990"}


def new_id() -> str:
    return str(uuid.uuid4())


class TestConstruction:

    def test_defaults_to_memory(self):
        assert DuckDBAdapter().db_path == ":memory:"

    def test_from_config(self, tmp_path):
        config = DatabaseConfig(db_type="duckdb", db_path=str(tmp_path / "emr.duckdb"))
        adapter = DuckDBAdapter(db_config=config)
        assert adapter.db_path.endswith("emr.duckdb")
        assert adapter.initialize_schema().is_success()
        adapter.close()

    def test_rejects_postgres_config(self):
        config = DatabaseConfig(db_type="postgresql", host="localhost", database="emr")
        with pytest.raises(StorageError):
            DuckDBAdapter(db_config=config)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(StorageError):
            DuckDBAdapter(db_path=str(tmp_path / "missing" / "emr.duckdb"))

    def test_schema_is_idempotent(self, storage):
        assert storage.initialize_schema().is_success()

    def test_ping(self, storage):
        result = storage.ping()
        assert result.is_success()
        assert result.value >= 0


class TestPatients:

    def test_insert_and_get(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {"contact_info": {"email": None}}).unwrap()

        row = storage.get_patient(patient_id).value
        assert row["demographics"] == DEMOGRAPHICS
        assert row["created_at"] == row["updated_at"]

        section = storage.get_section(patient_id, "contact_info").value
        assert section["payload"] == {"email": None}
        assert section["state"] == "incomplete"

    def test_duplicate_insert_fails(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {}).unwrap()
        result = storage.insert_patient(patient_id, DEMOGRAPHICS, None, {})
        assert result.is_failure()
        assert result.error_type == "StorageError"

    def test_update_missing(self, storage):
        assert storage.update_patient(new_id(), DEMOGRAPHICS, None).value is False

    def test_delete_cascades_sections(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {"insurance": {}}).unwrap()
        assert storage.delete_patient(patient_id).value is True
        assert storage.get_sections(patient_id).value == []
        assert storage.delete_patient(patient_id).value is False

    def test_list_by_name(self, storage):
        asha, vikram = new_id(), new_id()
        storage.insert_patient(asha, DEMOGRAPHICS, None, {}).unwrap()
        storage.insert_patient(vikram, {"name": {"first": "Vikram", "last": "Singh"}}, None, {}).unwrap()

        rows = storage.list_patients(name_contains="sin").value
        assert [row["patient_id"] for row in rows] == [vikram]
        assert rows[0]["contact_info"] is None

    @pytest.mark.parametrize("text", ["%", "_", "\\", "A_ha"])
    def test_name_wildcards_match_literally(self, storage, text):
        storage.insert_patient(new_id(), DEMOGRAPHICS, None, {}).unwrap()
        assert storage.list_patients(name_contains=text).value == []

    def test_name_with_literal_percent(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, {"name": {"first": "100%", "last": "Rao"}}, None, {}).unwrap()
        storage.insert_patient(new_id(), DEMOGRAPHICS, None, {}).unwrap()

        rows = storage.list_patients(name_contains="0%").value
        assert [row["patient_id"] for row in rows] == [patient_id]


class TestSections:

    def test_write_requires_patient(self, storage):
        assert storage.write_section(new_id(), "contact_info", {}, "complete").value is False

    def test_upsert_replaces_single_row(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {"a": {"x": None}, "b": {"y": None}}).unwrap()

        assert storage.write_section(patient_id, "a", {"x": 1}, "complete").value is True
        assert storage.write_section(patient_id, "a", {"x": 2}, "complete", "ref").value is True

        sections = {s["section_key"]: s for s in storage.get_sections(patient_id).value}
        assert sections["a"]["payload"] == {"x": 2}
        assert sections["a"]["attachment_reference"] == "ref"
        assert sections["b"]["payload"] == {"y": None}
        assert sections["b"]["state"] == "incomplete"

    def test_list_payload(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {}).unwrap()
        storage.write_section(patient_id, "allergies", [{"allergen": "Eggs"}], "complete").unwrap()
        assert storage.get_section(patient_id, "allergies").value["payload"] == [{"allergen": "Eggs"}]

    def test_delete_section(self, storage):
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {"a": {}}).unwrap()
        assert storage.delete_section(patient_id, "a").value is True
        assert storage.delete_section(patient_id, "a").value is False
        assert storage.get_section(patient_id, "a").value is None


def gif(reference: str, filename: str = "card.gif") -> Attachment:
    return Attachment(reference=reference, content=b"GIF89a", content_type="image/gif", filename=filename)


class TestAttachments:

    def test_written_with_patient(self, storage):
        reference = "a" * 64
        storage.insert_patient(new_id(), DEMOGRAPHICS, reference, {}, gif(reference, "one.gif")).unwrap()
        storage.insert_patient(new_id(), DEMOGRAPHICS, reference, {}, gif(reference, "two.gif")).unwrap()

        row = storage.get_attachment(reference).value
        assert row["content"] == b"GIF89a"
        assert row["filename"] == "one.gif"
        assert row["size_bytes"] == 6

    def test_failed_insert_rolls_back_bytes(self, storage):
        reference = "b" * 64
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {}).unwrap()

        result = storage.insert_patient(patient_id, DEMOGRAPHICS, reference, {}, gif(reference))

        assert result.is_failure()
        assert storage.get_attachment(reference).value is None

    def test_section_write_for_missing_patient_stores_nothing(self, storage):
        reference = "c" * 64
        assert storage.write_section(new_id(), "insurance", {}, "complete", reference, gif(reference)).value is False
        assert storage.get_attachment(reference).value is None

    def test_release_keeps_referenced_bytes(self, storage):
        reference = "d" * 64
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, None, {}).unwrap()
        storage.write_section(patient_id, "insurance", {}, "complete", reference, gif(reference)).unwrap()

        assert storage.release_attachment(reference).value is False
        assert storage.get_attachment(reference).value is not None

        storage.delete_section(patient_id, "insurance").unwrap()
        assert storage.release_attachment(reference).value is True
        assert storage.get_attachment(reference).value is None
        assert storage.release_attachment(reference).value is False

    def test_release_after_photo_replaced(self, storage):
        old, new = "e" * 64, "f" * 64
        patient_id = new_id()
        storage.insert_patient(patient_id, DEMOGRAPHICS, old, {}, gif(old)).unwrap()
        storage.update_patient(patient_id, DEMOGRAPHICS, new, gif(new)).unwrap()

        assert storage.release_attachment(old).value is True
        assert storage.release_attachment(new).value is False


class TestEncounters:

    def test_kinds_are_separate(self, storage):
        record_id = new_id()
        storage.insert_encounter("visit", record_id, {"n": 1}, {"patient_name": "Asha Rao"}).unwrap()
        assert storage.get_encounter("visit", record_id).value["document"] == {"n": 1}
        assert storage.get_encounter("appointment", record_id).value is None
        assert storage.delete_encounter("appointment", record_id).value is False

    def test_replace(self, storage):
        record_id = new_id()
        storage.insert_encounter("visit", record_id, {"n": 1}, {}).unwrap()
        assert storage.replace_encounter("visit", record_id, {"n": 2}, {"category": "Follow-up"}).value is True
        assert storage.get_encounter("visit", record_id).value["document"] == {"n": 2}
        assert storage.replace_encounter("visit", new_id(), {}, {}).value is False

    def test_list_filters(self, storage):
        storage.insert_encounter("appointment", new_id(), {"n": 1}, {
            "patient_name": "Asha Rao", "category": "Consultation", "doctor": "Dr. Mehta",
            "urgency": "Yes", "event_date": date(2025, 5, 20),
        }).unwrap()
        storage.insert_encounter("appointment", new_id(), {"n": 2}, {
            "patient_name": "Vikram Singh", "category": "Follow-up", "doctor": "Dr. Iyer",
            "urgency": "No", "event_date": date(2025, 6, 10),
        }).unwrap()

        def documents(**filters):
            rows = storage.list_encounters(EncounterQuery(kind="appointment", **filters)).value
            return sorted(row["document"]["n"] for row in rows)

        assert documents() == [1, 2]
        assert documents(name_contains="VIKRAM") == [2]
        assert documents(category="Consultation") == [1]
        assert documents(doctor_contains="mehta") == [1]
        assert documents(urgency="No") == [2]
        assert documents(event_from=date(2025, 6, 1)) == [2]
        assert documents(event_to=date(2025, 5, 20)) == [1]
        assert documents(limit=1) in ([1], [2])
        assert storage.list_encounters(EncounterQuery(kind="visit")).value == []

    def test_list_filters_escape_wildcards(self, storage):
        storage.insert_encounter("appointment", new_id(), {"n": 1}, {
            "patient_name": "Asha Rao", "doctor": "Dr. Mehta",
        }).unwrap()

        def documents(**filters):
            return storage.list_encounters(EncounterQuery(kind="appointment", **filters)).value

        assert documents(name_contains="%") == []
        assert documents(name_contains="A_ha") == []
        assert documents(doctor_contains="Dr_") == []
        assert len(documents(doctor_contains="Dr.")) == 1

    def test_count_by_column(self, storage):
        for category, doctor in [("Consultation", "Dr. Mehta"), ("Consultation", "Dr. Iyer"), ("Follow-up", None)]:
            storage.insert_encounter("visit", new_id(), {}, {"category": category, "doctor": doctor}).unwrap()
        storage.insert_encounter("appointment", new_id(), {}, {"category": "Follow-up"}).unwrap()

        assert storage.count_encounters("visit", "category").value == [("Consultation", 2), ("Follow-up", 1)]
        assert storage.count_encounters("visit", "doctor").value == [
            ("Dr. Iyer", 1), ("Dr. Mehta", 1), (None, 1),
        ]
        with pytest.raises(ValueError):
            storage.count_encounters("visit", "document")
