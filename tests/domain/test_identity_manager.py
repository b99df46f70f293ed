"""Tests for patient creation, resolution, update and deletion."""

import hashlib
import uuid
from unittest.mock import Mock

import pytest

from src.domain.ports import (
    AttachmentError,
    InvalidIdentifierError,
    NotFoundError,
    Result,
    StorageError,
    StoragePort,
    ValidationError,
)
from src.domain.services import AttachmentStore, IdentityLifecycleManager, Upload, parse_identifier

GIF_BYTES = b"GIF89a" + b"\x01" * 32


class TestParseIdentifier:

    def test_canonical_form(self):
        raw = str(uuid.uuid4())
        assert parse_identifier(f"  {raw.upper()} ") == raw

    @pytest.mark.parametrize("raw", ["", "123", "not-a-uuid", None])
    def test_malformed(self, raw):
        with pytest.raises(InvalidIdentifierError):
            parse_identifier(raw)


class TestCreatePatient:

    def test_create_scaffolds_sections(self, identity, storage, demographics):
        patient_id = identity.create_patient(demographics)

        row = storage.get_patient(patient_id).value
        assert row["demographics"]["blood_group"] == "O Positive (O⁺)"
        assert row["photo_reference"] is None

        sections = {s["section_key"]: s for s in storage.get_sections(patient_id).value}
        assert len(sections) == 15
        assert sections["contact_info"]["state"] == "incomplete"
        assert sections["social_history.alcohol_use"]["payload"]["current_status"] is None
        assert "allergies" not in sections

    def test_identifiers_unique(self, identity, demographics):
        assert identity.create_patient(demographics) != identity.create_patient(demographics)

    def test_missing_city_writes_nothing(self, identity, storage, demographics, png_upload):
        del demographics["address"]["city"]
        with pytest.raises(ValidationError) as exc_info:
            identity.create_patient(demographics, png_upload)

        assert "address.city" in exc_info.value.fields
        assert storage.list_patients().value == []
        reference = hashlib.sha256(png_upload.content).hexdigest()
        assert storage.get_attachment(reference).value is None

    def test_photo_stored(self, identity, storage, demographics, png_upload):
        patient_id = identity.create_patient(demographics, png_upload)
        reference = storage.get_patient(patient_id).value["photo_reference"]
        assert reference == hashlib.sha256(png_upload.content).hexdigest()

    def test_rejected_photo_writes_nothing(self, identity, storage, demographics):
        with pytest.raises(AttachmentError):
            identity.create_patient(demographics, Upload(b"text", "text/plain"))
        assert storage.list_patients().value == []

    def test_photo_bytes_share_the_insert(self, demographics, png_upload):
        storage = Mock(spec=StoragePort)
        storage.insert_patient.return_value = Result.failure_result(StorageError("constraint"))
        manager = IdentityLifecycleManager(storage, AttachmentStore(storage))

        with pytest.raises(StorageError):
            manager.create_patient(demographics, png_upload)

        args = storage.insert_patient.call_args.args
        reference = hashlib.sha256(png_upload.content).hexdigest()
        assert args[2] == reference
        assert args[4].reference == reference
        assert args[4].content == png_upload.content
        storage.release_attachment.assert_not_called()

    def test_failed_insert_leaves_no_bytes(self, identity, storage, demographics, png_upload, monkeypatch):
        insert_patient = storage.insert_patient

        def insert_then_fail(patient_id, core, photo_reference, scaffolds, attachment=None):
            # An unserializable scaffold fails after the photo bytes were written
            return insert_patient(patient_id, core, photo_reference, {**scaffolds, "contact_info": object()}, attachment)
        monkeypatch.setattr(storage, "insert_patient", insert_then_fail)

        with pytest.raises(StorageError):
            identity.create_patient(demographics, png_upload)

        assert storage.get_attachment(hashlib.sha256(png_upload.content).hexdigest()).value is None
        assert storage.list_patients().value == []


class TestResolveIdentity:

    def test_unknown(self, identity):
        with pytest.raises(NotFoundError):
            identity.resolve_identity(str(uuid.uuid4()))

    def test_malformed_is_not_not_found(self, identity):
        with pytest.raises(InvalidIdentifierError):
            identity.resolve_identity("patient-1")


class TestUpdateDemographics:

    def test_partial_update(self, identity, patient_id):
        row = identity.update_demographics(patient_id, {"occupation": "Student", "name": {"middle": "K"}})
        assert row["demographics"]["occupation"] == "Student"
        assert row["demographics"]["name"] == {"first": "Asha", "middle": "K", "last": "Rao"}
        assert row["demographics"]["address"]["city"] == "Pune"

    def test_invalid_update_leaves_record(self, identity, storage, patient_id):
        with pytest.raises(ValidationError):
            identity.update_demographics(patient_id, {"gender": "Robot"})
        assert storage.get_patient(patient_id).value["demographics"]["gender"] == "Female"

    def test_photo_replacement_releases_old(self, identity, storage, demographics, png_upload):
        patient_id = identity.create_patient(demographics, png_upload)
        old_reference = storage.get_patient(patient_id).value["photo_reference"]

        row = identity.update_demographics(patient_id, {}, Upload(GIF_BYTES, "image/gif", "new.gif"))

        assert row["photo_reference"] == hashlib.sha256(GIF_BYTES).hexdigest()
        assert storage.get_attachment(old_reference).value is None

    def test_unknown_patient(self, identity):
        with pytest.raises(NotFoundError):
            identity.update_demographics(str(uuid.uuid4()), {"occupation": "Student"})


class TestDeletePatient:

    def test_delete_releases_photo(self, identity, storage, demographics, png_upload):
        patient_id = identity.create_patient(demographics, png_upload)
        reference = storage.get_patient(patient_id).value["photo_reference"]

        identity.delete_patient(patient_id)

        assert storage.get_patient(patient_id).value is None
        assert storage.get_sections(patient_id).value == []
        assert storage.get_attachment(reference).value is None
        with pytest.raises(NotFoundError):
            identity.resolve_identity(patient_id)

    def test_shared_photo_kept_for_other_patient(self, identity, storage, demographics, png_upload):
        first = identity.create_patient(demographics, png_upload)
        second = identity.create_patient(demographics, png_upload)
        reference = storage.get_patient(first).value["photo_reference"]

        identity.delete_patient(first)

        assert storage.get_attachment(reference).value is not None
        assert storage.get_patient(second).value["photo_reference"] == reference

    def test_delete_while_other_patient_created_with_same_photo(
        self, identity, storage, demographics, png_upload, monkeypatch
    ):
        first = identity.create_patient(demographics, png_upload)
        insert_patient = storage.insert_patient

        def insert_after_concurrent_delete(*args, **kwargs):
            identity.delete_patient(first)
            return insert_patient(*args, **kwargs)
        monkeypatch.setattr(storage, "insert_patient", insert_after_concurrent_delete)

        second = identity.create_patient(demographics, png_upload)

        reference = storage.get_patient(second).value["photo_reference"]
        assert storage.get_patient(first).value is None
        assert identity.attachments.fetch(reference).content == png_upload.content

    def test_release_failure_does_not_undo_delete(self, identity, storage, demographics, png_upload, monkeypatch):
        patient_id = identity.create_patient(demographics, png_upload)
        monkeypatch.setattr(
            storage, "release_attachment",
            lambda reference: Result.failure_result(StorageError("unavailable"))
        )

        identity.delete_patient(patient_id)

        assert storage.get_patient(patient_id).value is None

    def test_delete_twice(self, identity, patient_id):
        identity.delete_patient(patient_id)
        with pytest.raises(NotFoundError):
            identity.delete_patient(patient_id)
