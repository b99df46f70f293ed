"""Registry of independently addressable Patient sections.

Each SectionSpec ties together the storage key of a section (the
path-scoped row written by the Section Update Service), the URL slug used
by the HTTP surface, the model that validates its payload and its
scaffolding rule.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ValidationError as PydanticValidationError

from src.domain.patient_record import (
    AlcoholUse,
    AllergyList,
    ContactInfo,
    Education,
    ExposureToViolence,
    FamilyHistory,
    FinancialResources,
    GenderIdentityTopic,
    Insurance,
    NutrientsHistory,
    PhysicalActivity,
    SexualOrientationTopic,
    SocialHistoryFreeText,
    SocialIsolation,
    Stress,
    TobaccoConsumption,
    TobaccoSmoking,
    build_scaffold,
)
from src.domain.ports import ValidationError

SOCIAL_HISTORY_PREFIX = "social_history."


@dataclass(frozen=True)
class SectionSpec:
    """One independently written section of the Patient aggregate.

    Attributes:
        key: Storage key ("contact_info", "social_history.stress", ...)
        slug: URL segment used by the HTTP surface
        model: Pydantic model validating the payload
        scaffolded: Whether an empty scaffold is written at patient creation
        list_field: For list-valued sections, the model field holding the list
    """
    key: str
    slug: str
    model: type[BaseModel]
    scaffolded: bool = True
    list_field: Optional[str] = None

    @property
    def is_social_history(self) -> bool:
        return self.key.startswith(SOCIAL_HISTORY_PREFIX)

    @property
    def topic(self) -> str:
        """Key within its parent document (the part after "social_history.")."""
        return self.key[len(SOCIAL_HISTORY_PREFIX):] if self.is_social_history else self.key

    def empty_value(self) -> Any:
        """Value reported for a section that was never written or was deleted."""
        return [] if self.list_field else {}

    def scaffold(self) -> dict:
        return build_scaffold(self.model)

    def validate(self, payload: Any) -> Any:
        """Validate a payload and return its persisted JSON form.

        Parameters:
            payload: Raw section payload (dict, or list for list sections)

        Returns:
            The section value to persist (dict, or list for list sections)

        Raises:
            ValidationError: With the offending field names
        """
        if payload is None:
            raise ValidationError(f"{self.key}: a payload is required", fields=[self.key])
        try:
            instance = self.model.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e, prefix=self.key, unwrap=self.list_field)
        document = instance.model_dump(mode="json")
        if self.list_field:
            return document[self.list_field]
        return document


SECTIONS: tuple[SectionSpec, ...] = (
    SectionSpec("contact_info", "contact-information", ContactInfo),
    SectionSpec("insurance", "insurance", Insurance),
    SectionSpec("allergies", "allergies", AllergyList, scaffolded=False, list_field="allergies"),
    SectionSpec("family_history", "family-history", FamilyHistory, scaffolded=False),
    SectionSpec("social_history.tobacco_smoking", "tobacco-smoking", TobaccoSmoking),
    SectionSpec("social_history.tobacco_consumption", "tobacco-consumption", TobaccoConsumption),
    SectionSpec("social_history.alcohol_use", "alcohol", AlcoholUse),
    SectionSpec("social_history.social_history_free_text", "social-text", SocialHistoryFreeText),
    SectionSpec("social_history.financial_resources", "financial-resources", FinancialResources),
    SectionSpec("social_history.education", "education", Education),
    SectionSpec("social_history.physical_activity", "physical-activity", PhysicalActivity),
    SectionSpec("social_history.stress", "stress", Stress),
    SectionSpec("social_history.social_isolation_connection", "social-isolation", SocialIsolation),
    SectionSpec("social_history.exposure_to_violence", "exposure-to-violence", ExposureToViolence),
    SectionSpec("social_history.gender_identity", "gender-identity", GenderIdentityTopic),
    SectionSpec("social_history.sexual_orientation", "sexual-orientation", SexualOrientationTopic),
    SectionSpec("social_history.nutrients_history", "nutrients-history", NutrientsHistory),
)

_BY_KEY = {spec.key: spec for spec in SECTIONS}
_SOCIAL_BY_SLUG = {spec.slug: spec for spec in SECTIONS if spec.is_social_history}
_SOCIAL_BY_TOPIC = {spec.topic: spec for spec in SECTIONS if spec.is_social_history}


def get_section_spec(key: str) -> SectionSpec:
    """Look up a section by storage key.

    Raises:
        KeyError: If the key is not a registered section
    """
    return _BY_KEY[key]


def social_history_topic(slug_or_topic: str) -> Optional[SectionSpec]:
    """Resolve a social-history URL slug ("alcohol") or topic name ("alcohol_use")."""
    return _SOCIAL_BY_SLUG.get(slug_or_topic) or _SOCIAL_BY_TOPIC.get(slug_or_topic)


def social_history_sections() -> list[SectionSpec]:
    return [spec for spec in SECTIONS if spec.is_social_history]


def scaffolded_sections() -> list[SectionSpec]:
    return [spec for spec in SECTIONS if spec.scaffolded]
