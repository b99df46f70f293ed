"""Appointment endpoints."""

from datetime import date
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Query

from src.api.dependencies import AppointmentServiceDep
from src.api.models.envelope import Envelope, ok

router = APIRouter(prefix="/api", tags=["appointments"])

JsonBody = Annotated[Any, Body()]


@router.post("/appointments", response_model=Envelope, status_code=201)
def create_appointment(payload: JsonBody, appointments: AppointmentServiceDep) -> Envelope:
    """Book an appointment. A 24-hour time ("14:30") is stored as "02:30 PM"."""
    return ok(appointments.create(payload), "Appointment created")


@router.get("/appointments", response_model=Envelope)
def list_appointments(
    appointments: AppointmentServiceDep,
    start_date: Annotated[Optional[date], Query(alias="startDate")] = None,
    end_date: Annotated[Optional[date], Query(alias="endDate")] = None,
    patient_name: Annotated[Optional[str], Query(alias="patientName")] = None,
    doctor: Optional[str] = None,
    appointment_type: Annotated[Optional[str], Query(alias="appointmentType")] = None,
    urgency: Optional[str] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> Envelope:
    """List appointments newest first; startDate/endDate bound the appointment date."""
    return ok(appointments.list_appointments(
        start_date=start_date,
        end_date=end_date,
        patient_name=patient_name,
        doctor=doctor,
        appointment_type=appointment_type,
        urgency=urgency,
        limit=limit,
        offset=offset,
    ))


@router.get("/appointments/stats/overview", response_model=Envelope)
def appointment_stats(appointments: AppointmentServiceDep) -> Envelope:
    """Totals, urgent count, counts per type and per doctor, and the ten most recent bookings."""
    return ok(appointments.stats())


@router.get("/appointments/today/list", response_model=Envelope)
def list_todays_appointments(appointments: AppointmentServiceDep) -> Envelope:
    """Today's appointments in time order."""
    return ok(appointments.list_for_day())


@router.get("/appointments/{appointment_id}", response_model=Envelope)
def get_appointment(appointment_id: str, appointments: AppointmentServiceDep) -> Envelope:
    return ok(appointments.get(appointment_id))


@router.put("/appointments/{appointment_id}", response_model=Envelope)
def update_appointment(
    appointment_id: str, payload: JsonBody, appointments: AppointmentServiceDep
) -> Envelope:
    return ok(appointments.update(appointment_id, payload), "Appointment updated")


@router.delete("/appointments/{appointment_id}", response_model=Envelope)
def delete_appointment(appointment_id: str, appointments: AppointmentServiceDep) -> Envelope:
    appointments.delete(appointment_id)
    return ok(message="Appointment deleted")
