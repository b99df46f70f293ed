"""Visit endpoints.

Visits are independent of the Patient aggregate: the patient name on a
visit is display text, not a lookup. Bodies may use the wizard's flat
camelCase form or the nested snake_case document.
"""

from datetime import date
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Query

from src.api.dependencies import VisitServiceDep
from src.api.models.envelope import Envelope, ok

router = APIRouter(prefix="/api", tags=["visits"])

JsonBody = Annotated[Any, Body()]


@router.post("/visits", response_model=Envelope, status_code=201)
def create_visit(payload: JsonBody, visits: VisitServiceDep) -> Envelope:
    """Create a visit; the response carries its id and generated reference_id."""
    return ok(visits.create(payload), "Visit created")


@router.get("/visits", response_model=Envelope)
def list_visits(
    visits: VisitServiceDep,
    patient_name: Annotated[Optional[str], Query(alias="patientName")] = None,
    visit_type: Annotated[Optional[str], Query(alias="visitType")] = None,
    start_date: Annotated[Optional[date], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[date], Query(alias="endDate")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> Envelope:
    """List visits newest first.

    startDate/endDate (YYYY-MM-DD) bound the creation date, inclusive.
    """
    return ok(visits.list_visits(
        patient_name=patient_name,
        visit_type=visit_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    ))


@router.get("/visits/stats/overview", response_model=Envelope)
def visit_stats(visits: VisitServiceDep) -> Envelope:
    """Total visits, counts per visit type and the ten most recent visits."""
    return ok(visits.stats())


@router.get("/visits/{visit_id}", response_model=Envelope)
def get_visit(visit_id: str, visits: VisitServiceDep) -> Envelope:
    return ok(visits.get(visit_id))


@router.put("/visits/{visit_id}", response_model=Envelope)
def update_visit(visit_id: str, payload: JsonBody, visits: VisitServiceDep) -> Envelope:
    """Replace a visit with a complete, revalidated document."""
    return ok(visits.update(visit_id, payload), "Visit updated")


@router.delete("/visits/{visit_id}", response_model=Envelope)
def delete_visit(visit_id: str, visits: VisitServiceDep) -> Envelope:
    visits.delete(visit_id)
    return ok(message="Visit deleted")


@router.post("/visits/{visit_id}/medications", response_model=Envelope, status_code=201)
def add_medication(visit_id: str, payload: JsonBody, visits: VisitServiceDep) -> Envelope:
    """Append one medication to the visit's medication history."""
    return ok(visits.add_medication(visit_id, payload), "Medication added")


@router.get("/visits/{visit_id}/medications", response_model=Envelope)
def list_medications(
    visit_id: str,
    visits: VisitServiceDep,
    active_only: Annotated[bool, Query(alias="activeOnly")] = False,
) -> Envelope:
    return ok(visits.list_medications(visit_id, active_only=active_only))


@router.put("/visits/{visit_id}/medications/{medication_id}", response_model=Envelope)
def update_medication(
    visit_id: str, medication_id: str, payload: JsonBody, visits: VisitServiceDep
) -> Envelope:
    """Change the non-blank fields of one medication row."""
    return ok(visits.update_medication(visit_id, medication_id, payload), "Medication updated")


@router.delete("/visits/{visit_id}/medications/{medication_id}", response_model=Envelope)
def delete_medication(visit_id: str, medication_id: str, visits: VisitServiceDep) -> Envelope:
    return ok(visits.delete_medication(visit_id, medication_id), "Medication deleted")


@router.patch("/visits/{visit_id}/medications/{medication_id}/status", response_model=Envelope)
def set_medication_status(
    visit_id: str, medication_id: str, payload: JsonBody, visits: VisitServiceDep
) -> Envelope:
    """Body {"status": true|false} marks the medication Active or Inactive."""
    return ok(visits.set_medication_status(visit_id, medication_id, payload), "Medication status updated")
