"""Patient demographics endpoints.

The wizard's first step posts a multipart form (camelCase field names plus
an optional photo). Creating a patient allocates its identifier; every
later step addresses the patient by that identifier.
"""

import logging
from typing import Annotated, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Query, Response, UploadFile

from src.api.dependencies import AttachmentStoreDep, IdentityDep, QueryServiceDep
from src.api.models.envelope import Envelope, ok
from src.api.uploads import read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["patients"])

FormField = Annotated[Optional[str], Form()]


def content_disposition(filename: str) -> str:
    """Build an inline Content-Disposition value for a stored filename.

    Header values must be latin-1, so the plain filename parameter carries
    an ASCII fallback and the exact name travels RFC 5987 encoded.
    """
    fallback = "".join(
        char if 32 <= ord(char) < 127 and char not in '"\\' else "_" for char in filename
    )
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def demographics_from_form(
    first_name: Optional[str] = None,
    middle_name: Optional[str] = None,
    last_name: Optional[str] = None,
    dob: Optional[str] = None,
    gender: Optional[str] = None,
    blood_group: Optional[str] = None,
    street: Optional[str] = None,
    street2: Optional[str] = None,
    city: Optional[str] = None,
    postal_code: Optional[str] = None,
    district: Optional[str] = None,
    state: Optional[str] = None,
    country: Optional[str] = None,
    occupation: Optional[str] = None,
    aadhar_number: Optional[str] = None,
    pan_number: Optional[str] = None,
) -> dict:
    """Nest flat form fields into the demographics document.

    Fields that were not submitted are left out, so the same mapping serves
    both create (everything validated) and update (subset merged).
    """
    def present(values: dict) -> dict:
        return {key: value for key, value in values.items() if value is not None}

    document = present({
        "date_of_birth": dob,
        "gender": gender,
        "blood_group": blood_group,
        "occupation": occupation,
        "national_id_primary": aadhar_number,
        "national_id_secondary": pan_number,
    })
    name = present({"first": first_name, "middle": middle_name, "last": last_name})
    if name:
        document["name"] = name
    address = present({
        "street": street,
        "street2": street2,
        "city": city,
        "postal_code": postal_code,
        "district": district,
        "state": state,
        "country": country,
    })
    if address:
        document["address"] = address
    return document


@router.post("/patient-demographics", response_model=Envelope, status_code=201)
def create_patient(
    identity: IdentityDep,
    first_name: Annotated[Optional[str], Form(alias="firstName")] = None,
    middle_name: Annotated[Optional[str], Form(alias="middleName")] = None,
    last_name: Annotated[Optional[str], Form(alias="lastName")] = None,
    dob: FormField = None,
    gender: FormField = None,
    blood_group: Annotated[Optional[str], Form(alias="bloodGroup")] = None,
    street: FormField = None,
    street2: FormField = None,
    city: FormField = None,
    postal_code: Annotated[Optional[str], Form(alias="postalCode")] = None,
    district: FormField = None,
    state: FormField = None,
    country: FormField = None,
    occupation: FormField = None,
    aadhar_number: Annotated[Optional[str], Form(alias="aadharNumber")] = None,
    pan_number: Annotated[Optional[str], Form(alias="panNumber")] = None,
    photo: Annotated[Optional[UploadFile], File()] = None,
) -> Envelope:
    """Create a patient from the demographics form.

    Returns:
        Envelope: data = {"id": <patient identifier>}

    Security Impact:
        - Nothing is persisted unless the whole demographics core validates
        - The photo is type and size checked before it is stored
    """
    demographics = demographics_from_form(
        first_name, middle_name, last_name, dob, gender, blood_group,
        street, street2, city, postal_code, district, state, country,
        occupation, aadhar_number, pan_number,
    )
    patient_id = identity.create_patient(demographics, read_upload(photo))
    return ok({"id": patient_id}, "Patient created")


@router.get("/patient-demographics", response_model=Envelope)
def list_patients(
    query: QueryServiceDep,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
    name: Optional[str] = None,
) -> Envelope:
    """List patients newest first (id, name, dob, gender, blood group, email, mobile)."""
    summaries = query.list_patients(limit=limit, offset=offset, name=name)
    return ok([summary.model_dump(mode="json") for summary in summaries])


@router.get("/patient-demographics/file/{file_id}")
def get_file(file_id: str, attachments: AttachmentStoreDep) -> Response:
    """Serve stored attachment bytes (patient photo or insurance card)."""
    attachment = attachments.fetch(file_id)
    headers = {"Cache-Control": "private, max-age=3600"}
    if attachment.filename:
        headers["Content-Disposition"] = content_disposition(attachment.filename)
    return Response(content=attachment.content, media_type=attachment.content_type, headers=headers)


@router.get("/patient-demographics/{patient_id}", response_model=Envelope)
def get_patient(patient_id: str, query: QueryServiceDep) -> Envelope:
    """Fetch the full Patient aggregate."""
    record = query.get_patient(patient_id)
    return ok(record.model_dump(mode="json"))


@router.put("/patient-demographics/{patient_id}", response_model=Envelope)
def update_patient(
    patient_id: str,
    identity: IdentityDep,
    query: QueryServiceDep,
    first_name: Annotated[Optional[str], Form(alias="firstName")] = None,
    middle_name: Annotated[Optional[str], Form(alias="middleName")] = None,
    last_name: Annotated[Optional[str], Form(alias="lastName")] = None,
    dob: FormField = None,
    gender: FormField = None,
    blood_group: Annotated[Optional[str], Form(alias="bloodGroup")] = None,
    street: FormField = None,
    street2: FormField = None,
    city: FormField = None,
    postal_code: Annotated[Optional[str], Form(alias="postalCode")] = None,
    district: FormField = None,
    state: FormField = None,
    country: FormField = None,
    occupation: FormField = None,
    aadhar_number: Annotated[Optional[str], Form(alias="aadharNumber")] = None,
    pan_number: Annotated[Optional[str], Form(alias="panNumber")] = None,
    photo: Annotated[Optional[UploadFile], File()] = None,
) -> Envelope:
    """Update a subset of the demographics and optionally replace the photo."""
    changes = demographics_from_form(
        first_name, middle_name, last_name, dob, gender, blood_group,
        street, street2, city, postal_code, district, state, country,
        occupation, aadhar_number, pan_number,
    )
    identity.update_demographics(patient_id, changes, read_upload(photo))
    record = query.get_patient(patient_id)
    return ok(record.model_dump(mode="json"), "Patient updated")


@router.delete("/patient-demographics/{patient_id}", response_model=Envelope)
def delete_patient(patient_id: str, identity: IdentityDep) -> Envelope:
    """Delete a patient with all its sections; owned attachments are released."""
    identity.delete_patient(patient_id)
    return ok(message="Patient deleted")
