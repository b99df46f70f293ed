"""Section endpoints for contact information, insurance, allergies and family history.

Each section is written independently: POST and PUT both validate the full
section payload and replace the stored section, leaving every other part of
the patient untouched.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, File, UploadFile

from src.api.dependencies import QueryServiceDep, SectionServiceDep
from src.api.models.envelope import Envelope, ok
from src.api.uploads import read_upload
from src.domain.ports import AttachmentError

router = APIRouter(prefix="/api", tags=["sections"])

SectionBody = Annotated[Any, Body()]

CONTACT_INFO = "contact_info"
INSURANCE = "insurance"
ALLERGIES = "allergies"
FAMILY_HISTORY = "family_history"


# -- contact information ------------------------------------------------------

@router.api_route("/contact-information/{patient_id}", methods=["POST", "PUT"], response_model=Envelope)
def write_contact_information(
    patient_id: str, payload: SectionBody, sections: SectionServiceDep
) -> Envelope:
    """Replace the contact information section."""
    value = sections.upsert_section(patient_id, CONTACT_INFO, payload)
    return ok(value, "Contact information saved")


@router.get("/contact-information/{patient_id}", response_model=Envelope)
def get_contact_information(patient_id: str, query: QueryServiceDep) -> Envelope:
    return ok(query.get_section(patient_id, CONTACT_INFO))


@router.delete("/contact-information/{patient_id}", response_model=Envelope)
def delete_contact_information(patient_id: str, sections: SectionServiceDep) -> Envelope:
    sections.delete_section(patient_id, CONTACT_INFO)
    return ok(message="Contact information deleted")


# -- insurance ------------------------------------------------------------------

@router.api_route("/insurance/{patient_id}", methods=["POST", "PUT"], response_model=Envelope)
def write_insurance(patient_id: str, payload: SectionBody, sections: SectionServiceDep) -> Envelope:
    """Replace the insurance section; an uploaded card image is kept."""
    value = sections.upsert_section(patient_id, INSURANCE, payload)
    return ok(value, "Insurance saved")


@router.post("/insurance/{patient_id}/card", response_model=Envelope, status_code=201)
def upload_insurance_card(
    patient_id: str,
    sections: SectionServiceDep,
    card: Annotated[UploadFile, File(alias="insuranceCard")],
) -> Envelope:
    """Store an insurance-card image and reference it from the insurance section.

    Returns:
        Envelope: data = {"reference": <attachment reference>, "insurance": <section>}
    """
    upload = read_upload(card)
    if upload is None:
        raise AttachmentError("No insurance card file was uploaded", reason="empty")
    value = sections.attach_insurance_card(patient_id, upload)
    return ok({"reference": value["insurance_card_reference"], "insurance": value}, "Insurance card uploaded")


@router.get("/insurance/{patient_id}", response_model=Envelope)
def get_insurance(patient_id: str, query: QueryServiceDep) -> Envelope:
    return ok(query.get_section(patient_id, INSURANCE))


@router.delete("/insurance/{patient_id}", response_model=Envelope)
def delete_insurance(patient_id: str, sections: SectionServiceDep) -> Envelope:
    """Delete the insurance section; its card image is released."""
    sections.delete_section(patient_id, INSURANCE)
    return ok(message="Insurance deleted")


# -- allergies ------------------------------------------------------------------

@router.api_route("/allergies/{patient_id}", methods=["POST", "PUT"], response_model=Envelope)
def write_allergies(patient_id: str, payload: SectionBody, sections: SectionServiceDep) -> Envelope:
    """Replace the allergy list. Accepts {"allergies": [...]} or a bare list."""
    value = sections.upsert_section(patient_id, ALLERGIES, payload)
    return ok(value, "Allergies saved")


@router.get("/allergies/{patient_id}", response_model=Envelope)
def get_allergies(patient_id: str, query: QueryServiceDep) -> Envelope:
    return ok(query.get_section(patient_id, ALLERGIES))


@router.delete("/allergies/{patient_id}", response_model=Envelope)
def delete_allergies(patient_id: str, sections: SectionServiceDep) -> Envelope:
    sections.delete_section(patient_id, ALLERGIES)
    return ok(message="Allergies deleted")


# -- family history -------------------------------------------------------------

@router.api_route("/family-history/{patient_id}", methods=["POST", "PUT"], response_model=Envelope)
def write_family_history(patient_id: str, payload: SectionBody, sections: SectionServiceDep) -> Envelope:
    """Replace the family history section."""
    value = sections.upsert_section(patient_id, FAMILY_HISTORY, payload)
    return ok(value, "Family history saved")


@router.get("/family-history/{patient_id}", response_model=Envelope)
def get_family_history(patient_id: str, query: QueryServiceDep) -> Envelope:
    return ok(query.get_section(patient_id, FAMILY_HISTORY))


@router.delete("/family-history/{patient_id}", response_model=Envelope)
def delete_family_history(patient_id: str, sections: SectionServiceDep) -> Envelope:
    sections.delete_section(patient_id, FAMILY_HISTORY)
    return ok(message="Family history deleted")
