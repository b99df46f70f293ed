"""Tests for read-side projections of patients."""

import uuid

import pytest

from src.domain.enums import BloodGroup, Gender
from src.domain.ports import NotFoundError, ValidationError


@pytest.fixture
def make_patient(identity, demographics):
    def _make(first: str, last: str):
        payload = dict(demographics, name={"first": first, "last": last})
        return identity.create_patient(payload)
    return _make


class TestListPatients:

    def test_summary_projection(self, query_service, section_service, patient_id, contact_info):
        section_service.upsert_section(patient_id, "contact_info", contact_info)

        summaries = query_service.list_patients()

        assert len(summaries) == 1
        summary = summaries[0]
        assert summary.id == patient_id
        assert summary.name.last == "Rao"
        assert summary.gender == Gender.FEMALE
        assert summary.blood_group == BloodGroup.O_POSITIVE
        assert summary.email == "asha@example.com"
        assert summary.mobile == {"country_code": "+91", "number": "9876543210"}
        assert summary.created_at is not None

    def test_scaffolded_contact_has_no_email(self, query_service, patient_id):
        summary = query_service.list_patients()[0]
        assert summary.email is None
        assert summary.mobile is None

    def test_pagination(self, query_service, make_patient):
        ids = {make_patient(f"P{i}", "Test") for i in range(5)}

        first_page = query_service.list_patients(limit=2, offset=0)
        rest = query_service.list_patients(limit=10, offset=2)

        assert len(first_page) == 2
        assert len(rest) == 3
        assert {s.id for s in first_page} | {s.id for s in rest} == ids

    def test_name_filter_case_insensitive(self, query_service, make_patient):
        asha = make_patient("Asha", "Rao")
        make_patient("Vikram", "Singh")

        assert [s.id for s in query_service.list_patients(name="asha")] == [asha]
        assert [s.id for s in query_service.list_patients(name="RAO")] == [asha]
        assert query_service.list_patients(name="nobody") == []

    def test_deleted_patient_not_listed(self, query_service, identity, patient_id):
        identity.delete_patient(patient_id)
        assert query_service.list_patients() == []


class TestGetPatient:

    def test_unknown(self, query_service):
        with pytest.raises(NotFoundError):
            query_service.get_patient(str(uuid.uuid4()))

    def test_social_history_overview(self, query_service, section_service, patient_id):
        section_service.upsert_section(patient_id, "social_history.gender_identity", {"identity": "Female"})
        overview = query_service.get_social_history(patient_id)
        assert len(overview) == 13
        assert overview["gender_identity"]["identity"] == "Female"
        assert overview["stress"]["perceived_stress_level"] is None

    def test_get_section_unknown_key(self, query_service, patient_id):
        with pytest.raises(ValidationError):
            query_service.get_section(patient_id, "hobbies")
