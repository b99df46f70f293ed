"""Domain layer for the EMR intake service.

This module contains the Patient aggregate schema, field validators and
the services implementing the section-wise update protocol. Domain models
are pure Python with no external dependencies beyond Pydantic.
"""

from .patient_record import (
    Demographics,
    PatientRecord,
    PatientSummary,
)
from .encounter_record import Appointment, Visit

__all__ = [
    "Demographics",
    "PatientRecord",
    "PatientSummary",
    "Appointment",
    "Visit",
]
