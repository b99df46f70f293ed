"""Patient Record Schema Definitions.

This module defines the Patient aggregate: the demographic core that must
exist before anything else, one strongly typed model per independently
written section, and the read-side shapes returned to callers.

Security Impact:
    - Every section is validated by its own model before persistence
    - Enum-typed fields reject arbitrary strings; blank optional values are
      stored as null rather than as empty strings
    - Date of birth cannot be in the future

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Section models are registered with their storage keys in sections.py
    - Scaffolds are derived from the section models, so a scaffold always
      has exactly the keys a completed section would have
"""

from datetime import datetime
from typing import Annotated, Any, Optional, get_origin

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from src.domain.enums import (
    BLOOD_GROUP_ALIASES,
    ActivityConsistency,
    ActivityDurationUnit,
    AlcoholStatus,
    AlcoholType,
    Allergen,
    AllergyCategory,
    AllergyCode,
    AllergyReaction,
    AllergySeverity,
    AllergyStatus,
    BloodGroup,
    ContactMethod,
    EducationLevel,
    EmploymentStatus,
    FamilyRelationship,
    FinancialSupport,
    Gender,
    GenderIdentity,
    GeneticTestResult,
    IncomeLevel,
    IsolationStatus,
    Occupation,
    PlanType,
    SectionState,
    SexualOrientation,
    SmokingStatus,
    SocialSupport,
    StressLevel,
    SupplementUsage,
    TobaccoDurationUnit,
    TobaccoUseStatus,
    ViolenceType,
)
from src.domain.validators import (
    CLINICAL_DATE_FORMAT,
    ClinicalDate,
    Email,
    Measurement,
    NationalIdPrimary,
    NationalIdSecondary,
    PhoneCode,
    PhoneNumber,
    QuitDate,
    blank_to_none,
    is_blank,
)


def _number_as_text(value: Any) -> Any:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


# Free text that the wizard sometimes sends as a bare number ("4" or 4)
LooseText = Annotated[str, BeforeValidator(_number_as_text)]


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class IntakeModel(BaseModel):
    """Base for every intake model.

    Blank strings at any level are treated as absent before field
    validation, so optional fields persist as null and required fields
    fail as missing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def blank_strings_to_none(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: blank_to_none(value) for key, value in data.items()}
        return data


# ============================================================================
# Demographic core
# ============================================================================

class PersonName(IntakeModel):
    first: str = Field(..., min_length=1, description="Given name")
    middle: Optional[str] = Field(None, description="Middle name")
    last: str = Field(..., min_length=1, description="Family name")


class Address(IntakeModel):
    street: Optional[str] = None
    street2: Optional[str] = None
    city: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    country: Optional[str] = None


class Demographics(IntakeModel):
    """Minimal-required core of the Patient aggregate.

    A patient cannot be created without name, date of birth, gender, blood
    group and an address with city, postal code, district and state.

    Parameters:
        name: Patient name (first and last required)
        date_of_birth: MM-DD-YYYY, a real calendar date not in the future
        gender: Gender literal
        blood_group: BloodGroup literal (wizard shorthand such as "O+" accepted)
        address: Address with the minimal required fields
        occupation: Optional Occupation literal
        national_id_primary: Optional 12-digit national identifier
        national_id_secondary: Optional AAAAA9999A tax identifier
    """

    name: PersonName
    date_of_birth: ClinicalDate
    gender: Gender
    blood_group: BloodGroup
    address: Address
    occupation: Optional[Occupation] = None
    national_id_primary: Optional[NationalIdPrimary] = None
    national_id_secondary: Optional[NationalIdSecondary] = None

    @field_validator("blood_group", mode="before")
    @classmethod
    def expand_blood_group_shorthand(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip() in BLOOD_GROUP_ALIASES:
            return BLOOD_GROUP_ALIASES[v.strip()]
        return v

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: str) -> str:
        """Reject dates of birth in the future.

        Security Impact: A future birth date indicates a form error (often a
        swapped month/day) and would corrupt age calculations downstream.
        """
        born = datetime.strptime(v, CLINICAL_DATE_FORMAT).date()
        if born > datetime.now().date():
            raise ValueError("date_of_birth cannot be in the future")
        return v


def merge_demographics(current: dict, changes: dict) -> dict:
    """Overlay a partial demographics update onto the stored core.

    Nested name/address dictionaries are merged key by key; every other
    provided field replaces the stored value. Blank values in the update are
    ignored so that an untouched form field does not erase stored data.

    Parameters:
        current: Stored demographics (JSON form)
        changes: Subset of demographic fields

    Returns:
        dict: Merged demographics, not yet validated
    """
    merged = dict(current)
    for key, value in changes.items():
        if is_blank(value):
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            nested = dict(merged[key])
            nested.update({k: v for k, v in value.items() if not is_blank(v)})
            merged[key] = nested
        else:
            merged[key] = value
    return merged


# ============================================================================
# Contact information
# ============================================================================

class Phone(IntakeModel):
    country_code: PhoneCode = Field(..., validation_alias=_alias("country_code", "code"))
    number: PhoneNumber


def _blank_object_to_none(value: Any) -> Any:
    # The wizard always posts optional sub-objects, with every value empty if unused
    if isinstance(value, dict) and all(is_blank(v) for v in value.values()):
        return None
    return value


class EmergencyContact(IntakeModel):
    name: PersonName
    relationship: str = Field(..., min_length=1)
    phone: Phone
    email: Email


class ContactInfo(IntakeModel):
    """Contact information section."""

    mobile: Phone
    home_phone: Annotated[Optional[Phone], BeforeValidator(_blank_object_to_none)] = None
    work_phone: Annotated[Optional[Phone], BeforeValidator(_blank_object_to_none)] = None
    email: Email
    preferred_contact_methods: list[ContactMethod] = Field(..., min_length=1)
    emergency_contact: list[EmergencyContact] = Field(default_factory=list)

    @field_validator("preferred_contact_methods")
    @classmethod
    def reject_duplicate_methods(cls, v: list[ContactMethod]) -> list[ContactMethod]:
        if len(set(v)) != len(v):
            raise ValueError("preferred_contact_methods must not repeat a method")
        return v


# ============================================================================
# Insurance
# ============================================================================

def _check_coverage_window(start: Optional[str], end: Optional[str]) -> None:
    if start and end:
        if datetime.strptime(end, CLINICAL_DATE_FORMAT) < datetime.strptime(start, CLINICAL_DATE_FORMAT):
            raise ValueError("effective_end must not precede effective_start")


class InsurancePlan(IntakeModel):
    company_name: str = Field(..., min_length=1)
    policy_number: str = Field(..., min_length=1)
    group_number: Optional[str] = None
    plan_type: PlanType
    effective_start: Optional[ClinicalDate] = None
    effective_end: Optional[ClinicalDate] = None

    @model_validator(mode="after")
    def check_window(self) -> "InsurancePlan":
        _check_coverage_window(self.effective_start, self.effective_end)
        return self


class SecondaryInsurancePlan(IntakeModel):
    company_name: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None
    plan_type: Optional[PlanType] = None
    effective_start: Optional[ClinicalDate] = None
    effective_end: Optional[ClinicalDate] = None

    @model_validator(mode="after")
    def check_window(self) -> "SecondaryInsurancePlan":
        _check_coverage_window(self.effective_start, self.effective_end)
        return self


class Insurance(IntakeModel):
    """Insurance section.

    insurance_card_reference is owned by the card-upload operation: section
    upserts keep whatever reference is already stored.
    """

    primary: InsurancePlan
    secondary: Annotated[Optional[SecondaryInsurancePlan], BeforeValidator(_blank_object_to_none)] = None
    insurance_contact_number: PhoneNumber
    insurance_card_reference: Optional[str] = None


# ============================================================================
# Allergies and family history
# ============================================================================

class Allergy(IntakeModel):
    allergen: Optional[Allergen] = None
    reaction: Optional[AllergyReaction] = None
    severity: Optional[AllergySeverity] = None
    category: Optional[AllergyCategory] = None
    code: Optional[AllergyCode] = None
    status: Optional[AllergyStatus] = None


class AllergyList(IntakeModel):
    """Allergies section; the persisted value is the bare list."""

    allergies: list[Allergy] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"allergies": data}
        return data


class GeneticCondition(IntakeModel):
    condition_name: str = Field(..., min_length=1)
    affected_family_member: FamilyRelationship
    genetic_testing_results: GeneticTestResult


class FamilyMember(IntakeModel):
    name: PersonName
    date_of_birth: ClinicalDate
    gender: Gender
    relationship: FamilyRelationship
    deceased: bool
    medical_conditions: list[str] = Field(default_factory=list)
    genetic_conditions: list[GeneticCondition] = Field(default_factory=list)


class FamilyHistory(IntakeModel):
    family_members: list[FamilyMember] = Field(default_factory=list)


# ============================================================================
# Social history topics
# ============================================================================

class TobaccoSmoking(IntakeModel):
    current_status: SmokingStatus = Field(..., validation_alias=_alias("current_status", "status"))
    average_daily_consumption: Measurement = Field(
        None, validation_alias=_alias("average_daily_consumption", "dailyConsumption")
    )
    duration_of_use: Optional[LooseText] = Field(None, validation_alias=_alias("duration_of_use", "duration"))
    duration_unit: Optional[TobaccoDurationUnit] = Field(
        None, validation_alias=_alias("duration_unit", "durationUnit")
    )
    quit_date: Optional[QuitDate] = Field(None, validation_alias=_alias("quit_date", "quitDate"))
    notes: Optional[str] = None


class TobaccoConsumption(IntakeModel):
    current_status: TobaccoUseStatus = Field(..., validation_alias=_alias("current_status", "status"))
    average_daily_consumption: Measurement = Field(
        None, validation_alias=_alias("average_daily_consumption", "dailyConsumption")
    )
    duration_of_use: Optional[LooseText] = Field(None, validation_alias=_alias("duration_of_use", "duration"))
    duration_unit: Optional[TobaccoDurationUnit] = Field(
        None, validation_alias=_alias("duration_unit", "durationUnit")
    )
    quit_date: Optional[QuitDate] = Field(None, validation_alias=_alias("quit_date", "quitDate"))
    notes: Optional[str] = None


class AlcoholUse(IntakeModel):
    current_status: AlcoholStatus = Field(..., validation_alias=_alias("current_status", "status"))
    average_weekly_consumption: Optional[LooseText] = Field(
        None, validation_alias=_alias("average_weekly_consumption", "weeklyConsumption")
    )
    type_of_alcohol: Optional[AlcoholType] = Field(None, validation_alias=_alias("type_of_alcohol", "alcoholType"))
    period_of_use: Optional[LooseText] = Field(None, validation_alias=_alias("period_of_use", "period"))
    notes: Optional[str] = None


class SocialHistoryFreeText(IntakeModel):
    notes: Optional[str] = None


class FinancialResources(IntakeModel):
    income_level: IncomeLevel = Field(..., validation_alias=_alias("income_level", "incomeLevel"))
    employment_status: EmploymentStatus = Field(
        ..., validation_alias=_alias("employment_status", "employmentStatus")
    )
    financial_support: FinancialSupport = Field(
        ..., validation_alias=_alias("financial_support", "financialSupport")
    )
    notes: Optional[str] = None


class Education(IntakeModel):
    highest_level_of_education: Optional[EducationLevel] = Field(
        None, validation_alias=_alias("highest_level_of_education", "highestEducation")
    )
    notes: Optional[str] = None


class PhysicalActivity(IntakeModel):
    frequency: Optional[LooseText] = None
    type_of_exercise: Optional[str] = Field(None, validation_alias=_alias("type_of_exercise", "type"))
    duration: Measurement = None
    duration_unit: Optional[ActivityDurationUnit] = Field(
        None, validation_alias=_alias("duration_unit", "durationUnit")
    )
    consistency: Optional[ActivityConsistency] = None
    notes: Optional[str] = None


class Stress(IntakeModel):
    perceived_stress_level: Optional[StressLevel] = Field(
        None, validation_alias=_alias("perceived_stress_level", "stressLevel")
    )
    major_stressors: Optional[str] = Field(None, validation_alias=_alias("major_stressors", "stressors"))
    coping_mechanisms: Optional[str] = Field(None, validation_alias=_alias("coping_mechanisms", "coping"))
    notes: Optional[str] = None


class SocialIsolation(IntakeModel):
    isolation_status: Optional[IsolationStatus] = Field(
        None, validation_alias=_alias("isolation_status", "isolationStatus")
    )
    social_support: Optional[SocialSupport] = Field(None, validation_alias=_alias("social_support", "socialSupport"))
    frequency_of_social_interactions: Optional[LooseText] = Field(
        None, validation_alias=_alias("frequency_of_social_interactions", "interactions")
    )
    notes: Optional[str] = None


class ExposureToViolence(IntakeModel):
    type_of_violence: Optional[ViolenceType] = Field(
        None, validation_alias=_alias("type_of_violence", "typeOfViolence")
    )
    date_of_last_exposure: Optional[ClinicalDate] = Field(
        None, validation_alias=_alias("date_of_last_exposure", "lastExposure")
    )
    support_or_intervention_received: Optional[str] = Field(
        None, validation_alias=_alias("support_or_intervention_received", "supportReceived")
    )
    notes: Optional[str] = None


class GenderIdentityTopic(IntakeModel):
    identity: Optional[GenderIdentity] = None
    notes: Optional[str] = None


class SexualOrientationTopic(IntakeModel):
    orientation: Optional[SexualOrientation] = None
    notes: Optional[str] = None


class NutrientsHistory(IntakeModel):
    dietary_preferences: Optional[str] = Field(
        None, validation_alias=_alias("dietary_preferences", "dietaryPreferences")
    )
    supplement_usage: Optional[SupplementUsage] = Field(
        None, validation_alias=_alias("supplement_usage", "supplementUsage")
    )
    notes: Optional[str] = None


# ============================================================================
# Scaffolds
# ============================================================================

def build_scaffold(model_cls: type[BaseModel]) -> dict:
    """Build the deterministic empty scaffold for a section model.

    Every field of the model is present; list fields are empty lists and
    all other fields are null. No placeholder values are invented.

    Parameters:
        model_cls: Section model class

    Returns:
        dict: Scaffold keyed by field name
    """
    scaffold = {}
    for name, info in model_cls.model_fields.items():
        scaffold[name] = [] if get_origin(info.annotation) is list else None
    return scaffold


# ============================================================================
# Read-side shapes
# ============================================================================

class PatientRecord(BaseModel):
    """Full Patient aggregate as returned to callers.

    Sections hold their persisted JSON value. A scaffolded section carries
    all keys with null values and is marked "incomplete" in section_status;
    a deleted or never-written section is null (or missing from
    social_history).
    """

    id: str
    name: PersonName
    date_of_birth: str
    gender: Gender
    blood_group: BloodGroup
    address: Address
    occupation: Optional[Occupation] = None
    national_id_primary: Optional[str] = None
    national_id_secondary: Optional[str] = None
    photo_reference: Optional[str] = None
    contact_info: Optional[dict] = None
    insurance: Optional[dict] = None
    allergies: Optional[list] = None
    family_history: Optional[dict] = None
    social_history: dict[str, dict] = Field(default_factory=dict)
    section_status: dict[str, SectionState] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatientSummary(BaseModel):
    """List-view projection of a patient."""

    id: str
    name: PersonName
    date_of_birth: str
    gender: Gender
    blood_group: BloodGroup
    email: Optional[str] = None
    mobile: Optional[dict] = None
    created_at: Optional[datetime] = None
