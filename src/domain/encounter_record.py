"""Visit and Appointment Record Definitions.

Visits and appointments are independent of the Patient aggregate: the
patient name is captured as a value at the time of the encounter and is
never resolved against stored patients.

Both models accept the intake wizard's flat camelCase form (visitType,
height, icdQuickest, firstName, time, ...) and lift it into the nested
persisted shape at the boundary. Loosely typed billing amounts are decided
once here into a tagged variant: numeric (a Decimal) or unset.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, field_validator, model_validator

from src.domain.enums import (
    AppointmentReason,
    AppointmentType,
    DoseDuration,
    DoseFrequency,
    DoseTime,
    MedicationStatus,
    Urgency,
    VisitType,
)
from src.domain.patient_record import IntakeModel, PersonName
from src.domain.validators import (
    AppointmentTime,
    BloodPressure,
    ClinicalDate,
    Measurement,
    PhoneNumber,
    is_blank,
    parse_decimal,
)


# ============================================================================
# Billing amounts
# ============================================================================

class NumericAmount(BaseModel):
    kind: Literal["numeric"] = "numeric"
    value: Decimal = Field(..., ge=0)


class UnsetAmount(BaseModel):
    kind: Literal["unset"] = "unset"


def _parse_amount(value: Any) -> Any:
    """Decide a raw billing value into {kind: numeric|unset}.

    Raises:
        ValueError: For non-numeric text and booleans
    """
    if isinstance(value, (NumericAmount, UnsetAmount)):
        return value
    if isinstance(value, dict) and "kind" in value:
        return value
    if is_blank(value):
        return {"kind": "unset"}
    return {"kind": "numeric", "value": parse_decimal(value)}


BillingAmount = Annotated[
    Union[NumericAmount, UnsetAmount],
    Field(discriminator="kind"),
    BeforeValidator(_parse_amount),
]


def amount_value(amount: Union[NumericAmount, UnsetAmount]) -> Optional[Decimal]:
    """Decimal value of a billing amount, or None when unset."""
    return amount.value if isinstance(amount, NumericAmount) else None


class Billing(IntakeModel):
    total_cost: BillingAmount = Field(default_factory=UnsetAmount)
    amount_paid: BillingAmount = Field(default_factory=UnsetAmount)
    balance_amount: BillingAmount = Field(default_factory=UnsetAmount)


# ============================================================================
# Visit
# ============================================================================

class Vitals(IntakeModel):
    height: Measurement = None
    weight: Measurement = None
    blood_pressure: Optional[BloodPressure] = Field(None, validation_alias=AliasChoices("blood_pressure", "bloodPressure"))
    pulse: Measurement = None
    respiratory_rate: Measurement = Field(None, validation_alias=AliasChoices("respiratory_rate", "respiratoryRate"))
    oxygen_saturation: Measurement = Field(
        None, validation_alias=AliasChoices("oxygen_saturation", "oxygenSaturation")
    )
    temperature: Measurement = None


class Diagnosis(IntakeModel):
    icd10_quickest: Optional[str] = Field(None, validation_alias=AliasChoices("icd10_quickest", "icdQuickest"))
    full_icd10_list: Optional[str] = Field(None, validation_alias=AliasChoices("full_icd10_list", "icdFull"))


def _status_from_checkbox(value: Any) -> Any:
    # The wizard's medication row has an "active" checkbox
    if isinstance(value, bool):
        return MedicationStatus.ACTIVE if value else MedicationStatus.INACTIVE
    return value


class Medication(IntakeModel):
    id: Optional[str] = Field(None, max_length=36, validation_alias=AliasChoices("id", "_id"))
    problem: str = Field(..., min_length=1, max_length=100)
    medicine: str = Field(..., min_length=1, max_length=100)
    dosage: Measurement = Field(None, validation_alias=AliasChoices("dosage", "mg"))
    dose_time: Optional[DoseTime] = Field(None, validation_alias=AliasChoices("dose_time", "doseTime"))
    frequency: Optional[DoseFrequency] = None
    duration: Optional[DoseDuration] = Field(None, validation_alias=AliasChoices("duration", "timePeriod"))
    status: Annotated[MedicationStatus, BeforeValidator(_status_from_checkbox)] = MedicationStatus.ACTIVE


# Wizard field names of a medication row and their persisted names
MEDICATION_ALIASES = {"_id": "id", "mg": "dosage", "doseTime": "dose_time", "timePeriod": "duration"}


class MedicationStatusChange(IntakeModel):
    """Body of a medication status toggle: true/false or the status literal."""
    status: Annotated[MedicationStatus, BeforeValidator(_status_from_checkbox)]


def _is_blank_medication_row(row: Any) -> bool:
    if not isinstance(row, dict):
        return False
    keys = ("problem", "medicine", "dosage", "mg")
    return all(is_blank(row.get(key)) for key in keys)


_VITAL_FIELDS = (
    "height", "weight", "blood_pressure", "bloodPressure", "pulse", "respiratory_rate",
    "respiratoryRate", "oxygen_saturation", "oxygenSaturation", "temperature",
)
_DIAGNOSIS_FIELDS = ("icdQuickest", "icdFull", "icd10_quickest", "full_icd10_list")
_BILLING_FIELDS = {
    "totalCost": "total_cost",
    "amountPaid": "amount_paid",
    "balanceAmount": "balance_amount",
}


class Visit(IntakeModel):
    """A single clinical encounter.

    Parameters:
        visit_type: VisitType literal
        patient_name: Display-only patient name
        chief_complaints: Presenting complaints (required)
        vitals: Independently nullable measurements
        medication_history: Ordered medication rows; blank rows are dropped
        follow_up_date: MM-DD-YYYY follow-up date
        billing: Tagged billing amounts
    """

    visit_type: VisitType = Field(..., validation_alias=AliasChoices("visit_type", "visitType"))
    patient_name: str = Field(..., min_length=1, validation_alias=AliasChoices("patient_name", "patientName"))
    chief_complaints: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("chief_complaints", "chiefComplaints")
    )
    vitals: Vitals = Field(default_factory=Vitals)
    investigation_request: Optional[str] = Field(
        None, validation_alias=AliasChoices("investigation_request", "investigationRequest")
    )
    investigation_result: Optional[str] = Field(
        None, validation_alias=AliasChoices("investigation_result", "investigationResult")
    )
    diagnosis: Diagnosis = Field(default_factory=Diagnosis)
    treatment: Optional[str] = None
    seen_by: Optional[str] = Field(None, validation_alias=AliasChoices("seen_by", "seenBy"))
    medication_history: list[Medication] = Field(
        default_factory=list, validation_alias=AliasChoices("medication_history", "medications")
    )
    follow_up_date: Optional[ClinicalDate] = Field(
        None, validation_alias=AliasChoices("follow_up_date", "followUpDate")
    )
    billing: Billing = Field(default_factory=Billing)
    notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def lift_wizard_form(cls, data: Any) -> Any:
        """Nest the wizard's flat vitals/diagnosis/billing fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "vitals" not in data and any(key in data for key in _VITAL_FIELDS):
            data["vitals"] = {key: data.pop(key) for key in _VITAL_FIELDS if key in data}
        if "diagnosis" not in data and any(key in data for key in _DIAGNOSIS_FIELDS):
            data["diagnosis"] = {key: data.pop(key) for key in _DIAGNOSIS_FIELDS if key in data}
        if "billing" not in data and any(key in data for key in _BILLING_FIELDS):
            data["billing"] = {
                field: data.pop(key) for key, field in _BILLING_FIELDS.items() if key in data
            }
        for key in ("medication_history", "medications"):
            rows = data.get(key)
            if isinstance(rows, list):
                data[key] = [row for row in rows if not _is_blank_medication_row(row)]
        return data


# ============================================================================
# Appointment
# ============================================================================

def to_twelve_hour(value: Any) -> Any:
    """Convert a 24-hour "HH:MM" time to "hh:mm AM/PM".

    Values already in 12-hour form, and anything unparseable, pass through
    unchanged for the pattern rule to accept or reject.
    """
    if not isinstance(value, str):
        return value
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        return value
    return parsed.strftime("%I:%M %p")


class Appointment(IntakeModel):
    """A booked appointment.

    The patient name is captured as a value; the contact number is a bare
    7-10 digit local number.
    """

    patient_name: PersonName
    age: int = Field(..., ge=0, le=150)
    contact_number: PhoneNumber = Field(..., validation_alias=AliasChoices("contact_number", "contactInfo"))
    appointment_date: ClinicalDate = Field(..., validation_alias=AliasChoices("appointment_date", "date"))
    appointment_time: Annotated[AppointmentTime, BeforeValidator(to_twelve_hour)] = Field(
        ..., validation_alias=AliasChoices("appointment_time", "time")
    )
    appointment_type: AppointmentType = Field(
        AppointmentType.FOLLOW_UP, validation_alias=AliasChoices("appointment_type", "appointmentType")
    )
    reason: AppointmentReason = AppointmentReason.REGULAR
    urgency: Urgency = Urgency.NO
    doctor: Optional[str] = None
    comments: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def lift_name_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "patient_name" in data:
            return data
        data = dict(data)
        name_keys = {"firstName": "first", "middleName": "middle", "lastName": "last"}
        if any(key in data for key in name_keys):
            data["patient_name"] = {
                field: data.pop(key) for key, field in name_keys.items() if key in data
            }
        return data

    @field_validator("age", mode="before")
    @classmethod
    def reject_boolean_age(cls, v: Any) -> Any:
        if isinstance(v, bool):
            raise ValueError("age must be a number")
        return v
