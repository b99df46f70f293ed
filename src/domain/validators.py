"""Field-level validation rules for intake records.

A FieldRule declares the kind of a single scalar field (enumerated set,
regex pattern, numeric range) and whether it is required. Rules are used
two ways:

    - directly, via FieldRule.check(), which returns an accept/reject verdict
      with a reason and never raises
    - inside pydantic models, via the Annotated types at the bottom of this
      module, where FieldRule.validate() raises ValueError so that pydantic
      reports the offending field name

Security Impact:
    - Invalid enum values are rejected, never replaced by a default
    - Date-pattern fields only accept their own separator/order, so an ISO
      date cannot be stored where MM-DD-YYYY is declared (and vice versa)
    - Numeric fields reject non-numeric text and booleans
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BeforeValidator


# ============================================================================
# Patterns
# ============================================================================

CLINICAL_DATE_PATTERN = r"^(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])-\d{4}$"
QUIT_DATE_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])$"
PHONE_CODE_PATTERN = r"^\+\d{1,3}$"
PHONE_NUMBER_PATTERN = r"^\d{7,10}$"
EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
NATIONAL_ID_PRIMARY_PATTERN = r"^[0-9]{12}$"
NATIONAL_ID_SECONDARY_PATTERN = r"^[A-Z]{5}[0-9]{4}[A-Z]{1}$"
BLOOD_PRESSURE_PATTERN = r"^\d{2,3}/\d{2,3}$"
APPOINTMENT_TIME_PATTERN = r"^(0[1-9]|1[0-2]):[0-5][0-9] (AM|PM)$"

CLINICAL_DATE_FORMAT = "%m-%d-%Y"
QUIT_DATE_FORMAT = "%Y-%m-%d"


class FieldKind(str, Enum):
    """Declared kind of a scalar field."""
    ENUM = "enum"
    PATTERN = "pattern"
    NUMERIC = "numeric"
    TEXT = "text"


def is_blank(value: Any) -> bool:
    """True for None and for strings that are empty after stripping."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def blank_to_none(value: Any) -> Any:
    """Map an empty form value to None; pass everything else through."""
    return None if is_blank(value) else value


@dataclass(frozen=True)
class RuleCheck:
    """Outcome of checking one value against a FieldRule."""
    accepted: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class FieldRule:
    """Declarative rule for one scalar field.

    Parameters:
        name: Field name used in rejection messages
        kind: FieldKind of the field
        required: Whether an absent/blank value is rejected
        pattern: Regex the value must fully match (PATTERN kind)
        choices: Allowed literals (ENUM kind)
        minimum: Inclusive lower bound (NUMERIC kind)
        maximum: Inclusive upper bound (NUMERIC kind)
        date_format: strptime format; when set, a pattern match must also
            be a real calendar date (rejects 02-30-2024)
    """
    name: str
    kind: FieldKind
    required: bool = False
    pattern: Optional[str] = None
    choices: tuple = field(default_factory=tuple)
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    date_format: Optional[str] = None

    @classmethod
    def for_enum(cls, name: str, enum_cls: type[Enum], required: bool = False) -> "FieldRule":
        return cls(
            name=name,
            kind=FieldKind.ENUM,
            required=required,
            choices=tuple(member.value for member in enum_cls),
        )

    def check(self, value: Any) -> RuleCheck:
        """Check a raw value without raising.

        Parameters:
            value: Raw value as received at the boundary

        Returns:
            RuleCheck: accepted=True, or accepted=False with a reason
        """
        if is_blank(value):
            if self.required:
                return RuleCheck(False, f"{self.name} is required")
            return RuleCheck(True)

        if self.kind == FieldKind.ENUM:
            literal = value.value if isinstance(value, Enum) else value
            if literal not in self.choices:
                return RuleCheck(False, f"{self.name} must be one of {list(self.choices)}, got {value!r}")
            return RuleCheck(True)

        if self.kind == FieldKind.NUMERIC:
            try:
                number = _to_decimal(value)
            except ValueError as e:
                return RuleCheck(False, f"{self.name}: {e}")
            if self.minimum is not None and number < Decimal(str(self.minimum)):
                return RuleCheck(False, f"{self.name} must be >= {self.minimum}")
            if self.maximum is not None and number > Decimal(str(self.maximum)):
                return RuleCheck(False, f"{self.name} must be <= {self.maximum}")
            return RuleCheck(True)

        if not isinstance(value, str):
            return RuleCheck(False, f"{self.name} must be text, got {type(value).__name__}")

        if self.kind == FieldKind.PATTERN:
            if not re.fullmatch(self.pattern, value):
                return RuleCheck(False, f"{self.name} does not match the expected format")
            if self.date_format:
                try:
                    datetime.strptime(value, self.date_format)
                except ValueError:
                    return RuleCheck(False, f"{self.name} is not a valid calendar date")
        return RuleCheck(True)

    def validate(self, value: Any) -> Any:
        """Check a value and return its normalized form.

        Blank values normalize to None. NUMERIC values normalize to float.

        Raises:
            ValueError: If the value is rejected
        """
        verdict = self.check(value)
        if not verdict.accepted:
            raise ValueError(verdict.reason)
        if is_blank(value):
            return None
        if self.kind == FieldKind.NUMERIC:
            return float(_to_decimal(value))
        return value


def _to_decimal(value: Any) -> Decimal:
    # bool is an int subclass; a checkbox value is not a measurement
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"expected a number, got {value!r}")
    else:
        raise ValueError(f"expected a number, got {type(value).__name__}")
    if not number.is_finite():
        raise ValueError("expected a finite number")
    return number


def parse_decimal(value: Any) -> Decimal:
    """Parse a numeric boundary value into a Decimal.

    Raises:
        ValueError: For booleans, non-numeric text, NaN and infinity
    """
    return _to_decimal(value)


# ============================================================================
# Shared rules
# ============================================================================

CLINICAL_DATE = FieldRule(
    "date", FieldKind.PATTERN, pattern=CLINICAL_DATE_PATTERN, date_format=CLINICAL_DATE_FORMAT
)
QUIT_DATE = FieldRule(
    "quit_date", FieldKind.PATTERN, pattern=QUIT_DATE_PATTERN, date_format=QUIT_DATE_FORMAT
)
PHONE_CODE = FieldRule("country_code", FieldKind.PATTERN, pattern=PHONE_CODE_PATTERN)
PHONE_NUMBER = FieldRule("number", FieldKind.PATTERN, pattern=PHONE_NUMBER_PATTERN)
EMAIL = FieldRule("email", FieldKind.PATTERN, pattern=EMAIL_PATTERN)
NATIONAL_ID_PRIMARY = FieldRule("national_id_primary", FieldKind.PATTERN, pattern=NATIONAL_ID_PRIMARY_PATTERN)
NATIONAL_ID_SECONDARY = FieldRule("national_id_secondary", FieldKind.PATTERN, pattern=NATIONAL_ID_SECONDARY_PATTERN)
BLOOD_PRESSURE = FieldRule("blood_pressure", FieldKind.PATTERN, pattern=BLOOD_PRESSURE_PATTERN)
APPOINTMENT_TIME = FieldRule("appointment_time", FieldKind.PATTERN, pattern=APPOINTMENT_TIME_PATTERN)
MEASUREMENT = FieldRule("value", FieldKind.NUMERIC, minimum=0)


# ============================================================================
# Annotated types for pydantic models
# ============================================================================

ClinicalDate = Annotated[str, AfterValidator(CLINICAL_DATE.validate)]
QuitDate = Annotated[str, AfterValidator(QUIT_DATE.validate)]
PhoneCode = Annotated[str, AfterValidator(PHONE_CODE.validate)]
PhoneNumber = Annotated[str, AfterValidator(PHONE_NUMBER.validate)]
Email = Annotated[str, AfterValidator(EMAIL.validate)]
NationalIdPrimary = Annotated[str, AfterValidator(NATIONAL_ID_PRIMARY.validate)]
NationalIdSecondary = Annotated[str, AfterValidator(NATIONAL_ID_SECONDARY.validate)]
BloodPressure = Annotated[str, AfterValidator(BLOOD_PRESSURE.validate)]
AppointmentTime = Annotated[str, AfterValidator(APPOINTMENT_TIME.validate)]

# Optional non-negative measurement: blank -> None, "4" -> 4.0, "abc"/True -> error
Measurement = Annotated[Optional[float], BeforeValidator(MEASUREMENT.validate)]
