"""Tests for the section registry."""

import pytest

from src.domain.ports import ValidationError
from src.domain.sections import (
    SECTIONS,
    get_section_spec,
    scaffolded_sections,
    social_history_sections,
    social_history_topic,
)


class TestRegistry:

    def test_thirteen_social_history_topics(self):
        topics = [spec.topic for spec in social_history_sections()]
        assert len(topics) == 13
        assert "alcohol_use" in topics
        assert "social_isolation_connection" in topics

    def test_keys_and_slugs_unique(self):
        assert len({spec.key for spec in SECTIONS}) == len(SECTIONS)
        assert len({spec.slug for spec in SECTIONS}) == len(SECTIONS)

    def test_scaffolded_sections(self):
        keys = {spec.key for spec in scaffolded_sections()}
        assert "contact_info" in keys
        assert "insurance" in keys
        assert "allergies" not in keys
        assert "family_history" not in keys
        assert len(keys) == 15

    def test_topic_lookup_by_slug_or_name(self):
        assert social_history_topic("alcohol").key == "social_history.alcohol_use"
        assert social_history_topic("alcohol_use").key == "social_history.alcohol_use"
        assert social_history_topic("contact-information") is None
        assert social_history_topic("gardening") is None

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            get_section_spec("hobbies")


class TestSectionValidation:

    def test_returns_persisted_form(self, contact_info):
        value = get_section_spec("contact_info").validate(contact_info)
        assert value["mobile"] == {"country_code": "+91", "number": "9876543210"}
        assert value["home_phone"] is None

    def test_field_names_are_prefixed(self):
        with pytest.raises(ValidationError) as exc_info:
            get_section_spec("social_history.alcohol_use").validate({"notes": "x"})
        assert exc_info.value.fields == ["social_history.alcohol_use.current_status"]

    def test_missing_payload(self):
        with pytest.raises(ValidationError) as exc_info:
            get_section_spec("insurance").validate(None)
        assert exc_info.value.fields == ["insurance"]

    def test_allergies_persist_bare_list(self):
        spec = get_section_spec("allergies")
        value = spec.validate({"allergies": [{"allergen": "Eggs", "reaction": "Hives"}]})
        assert isinstance(value, list)
        assert value[0]["allergen"] == "Eggs"
        assert spec.empty_value() == []

    @pytest.mark.parametrize("payload", [
        [{"allergen": "Eggs"}, {"allergen": "Chalk"}],
        {"allergies": [{"allergen": "Eggs"}, {"allergen": "Chalk"}]},
    ])
    def test_allergy_error_names_the_row(self, payload):
        with pytest.raises(ValidationError) as exc_info:
            get_section_spec("allergies").validate(payload)
        assert exc_info.value.fields == ["allergies.1.allergen"]

    def test_empty_value_for_documents(self):
        assert get_section_spec("family_history").empty_value() == {}
