"""Shared fixtures: an in-memory DuckDB store, the domain services on top of
it, and an API client bound to the same store."""

import pytest
from fastapi.testclient import TestClient

from src.adapters.storage.duckdb_adapter import DuckDBAdapter
from src.api.main import create_app
from src.domain.services import (
    AggregateQueryService,
    AppointmentService,
    AttachmentStore,
    IdentityLifecycleManager,
    SectionUpdateService,
    Upload,
    VisitService,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
GIF_BYTES = b"GIF89a" + b"\x01" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x02" * 32


@pytest.fixture
def storage():
    """Fresh in-memory DuckDB adapter with the schema created."""
    adapter = DuckDBAdapter(db_path=":memory:")
    result = adapter.initialize_schema()
    assert result.is_success(), result.error
    yield adapter
    adapter.close()


@pytest.fixture
def attachments(storage):
    return AttachmentStore(storage, max_bytes=1024)


@pytest.fixture
def identity(storage, attachments):
    return IdentityLifecycleManager(storage, attachments)


@pytest.fixture
def section_service(storage, identity, attachments):
    return SectionUpdateService(storage, identity, attachments)


@pytest.fixture
def query_service(storage, identity):
    return AggregateQueryService(storage, identity)


@pytest.fixture
def visit_service(storage):
    return VisitService(storage)


@pytest.fixture
def appointment_service(storage):
    return AppointmentService(storage)


@pytest.fixture
def demographics():
    """Minimal valid demographics core."""
    return {
        "name": {"first": "Asha", "last": "Rao"},
        "date_of_birth": "03-14-1990",
        "gender": "Female",
        "blood_group": "O+",
        "address": {
            "city": "Pune",
            "postal_code": "411001",
            "district": "Pune",
            "state": "MH",
        },
    }


@pytest.fixture
def contact_info():
    return {
        "mobile": {"code": "+91", "number": "9876543210"},
        "email": "asha@example.com",
        "preferred_contact_methods": ["Phone Call", "Email"],
        "emergency_contact": [
            {
                "name": {"first": "Ravi", "last": "Rao"},
                "relationship": "Brother",
                "phone": {"code": "+91", "number": "9123456780"},
                "email": "ravi@example.com",
            }
        ],
    }


@pytest.fixture
def insurance():
    return {
        "primary": {
            "company_name": "Star Health",
            "policy_number": "POL-123",
            "plan_type": "Health Maintenance Organization (HMO)",
            "effective_start": "01-01-2024",
            "effective_end": "12-31-2024",
        },
        "insurance_contact_number": "9876543210",
    }


@pytest.fixture
def png_upload():
    return Upload(content=PNG_BYTES, content_type="image/png", filename="photo.png")


@pytest.fixture
def patient_id(identity, demographics):
    return identity.create_patient(demographics)


@pytest.fixture
def client(storage):
    """API client served from the in-memory store."""
    return TestClient(create_app(storage=storage))
