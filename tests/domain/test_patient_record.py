"""Tests for the Patient aggregate models."""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.domain.enums import BloodGroup, ContactMethod
from src.domain.patient_record import (
    AlcoholUse,
    AllergyList,
    ContactInfo,
    Demographics,
    FinancialResources,
    Insurance,
    PhysicalActivity,
    TobaccoSmoking,
    build_scaffold,
    merge_demographics,
)


class TestDemographics:

    def test_valid_core(self, demographics):
        core = Demographics.model_validate(demographics)
        assert core.name.first == "Asha"
        assert core.blood_group == BloodGroup.O_POSITIVE
        assert core.occupation is None

    def test_blood_group_full_literal(self, demographics):
        demographics["blood_group"] = "AB Negative (AB⁻)"
        assert Demographics.model_validate(demographics).blood_group == BloodGroup.AB_NEGATIVE

    @pytest.mark.parametrize("missing", ["name", "date_of_birth", "gender", "blood_group", "address"])
    def test_required_fields(self, demographics, missing):
        del demographics[missing]
        with pytest.raises(PydanticValidationError) as exc_info:
            Demographics.model_validate(demographics)
        assert missing in {e["loc"][0] for e in exc_info.value.errors()}

    def test_blank_required_field_is_missing(self, demographics):
        demographics["address"]["city"] = "   "
        with pytest.raises(PydanticValidationError) as exc_info:
            Demographics.model_validate(demographics)
        assert ("address", "city") in {e["loc"] for e in exc_info.value.errors()}

    def test_future_date_of_birth(self, demographics):
        demographics["date_of_birth"] = (datetime.now() + timedelta(days=2)).strftime("%m-%d-%Y")
        with pytest.raises(PydanticValidationError):
            Demographics.model_validate(demographics)

    def test_iso_date_of_birth_rejected(self, demographics):
        demographics["date_of_birth"] = "1990-03-14"
        with pytest.raises(PydanticValidationError):
            Demographics.model_validate(demographics)

    def test_invalid_gender_not_defaulted(self, demographics):
        demographics["gender"] = "Unknown"
        with pytest.raises(PydanticValidationError):
            Demographics.model_validate(demographics)

    def test_national_ids(self, demographics):
        demographics["national_id_primary"] = "123456789012"
        demographics["national_id_secondary"] = "ABCDE1234F"
        core = Demographics.model_validate(demographics)
        assert core.national_id_secondary == "ABCDE1234F"

        demographics["national_id_primary"] = "1234"
        with pytest.raises(PydanticValidationError):
            Demographics.model_validate(demographics)


class TestMergeDemographics:

    def test_nested_merge(self, demographics):
        merged = merge_demographics(demographics, {"name": {"middle": "K"}, "occupation": "Student"})
        assert merged["name"] == {"first": "Asha", "middle": "K", "last": "Rao"}
        assert merged["occupation"] == "Student"
        assert merged["address"] == demographics["address"]

    def test_blank_changes_ignored(self, demographics):
        merged = merge_demographics(demographics, {"gender": "", "address": {"city": " "}})
        assert merged["gender"] == "Female"
        assert merged["address"]["city"] == "Pune"


class TestContactInfo:

    def test_phone_code_alias(self, contact_info):
        model = ContactInfo.model_validate(contact_info)
        assert model.mobile.country_code == "+91"
        assert model.preferred_contact_methods == [ContactMethod.PHONE_CALL, ContactMethod.EMAIL]

    def test_unused_optional_phone_is_null(self, contact_info):
        contact_info["home_phone"] = {"code": "", "number": ""}
        assert ContactInfo.model_validate(contact_info).home_phone is None

    def test_duplicate_contact_methods(self, contact_info):
        contact_info["preferred_contact_methods"] = ["Email", "Email"]
        with pytest.raises(PydanticValidationError):
            ContactInfo.model_validate(contact_info)

    def test_at_least_one_contact_method(self, contact_info):
        contact_info["preferred_contact_methods"] = []
        with pytest.raises(PydanticValidationError):
            ContactInfo.model_validate(contact_info)


class TestInsurance:

    def test_coverage_window(self, insurance):
        insurance["primary"]["effective_end"] = "12-31-2023"
        with pytest.raises(PydanticValidationError):
            Insurance.model_validate(insurance)

    def test_blank_secondary(self, insurance):
        insurance["secondary"] = {"company_name": "", "policy_number": ""}
        assert Insurance.model_validate(insurance).secondary is None


class TestSocialHistoryTopics:

    def test_alcohol_wizard_aliases(self):
        model = AlcoholUse.model_validate(
            {"status": "Moderate Drinker", "weeklyConsumption": "4", "notes": "social only"}
        )
        assert model.current_status.value == "Moderate Drinker"
        assert model.average_weekly_consumption == "4"
        assert model.type_of_alcohol is None

    def test_alcohol_numeric_consumption_kept_as_text(self):
        model = AlcoholUse.model_validate({"current_status": "Heavy Drinker", "average_weekly_consumption": 12})
        assert model.average_weekly_consumption == "12"

    def test_tobacco_status_required(self):
        with pytest.raises(PydanticValidationError):
            TobaccoSmoking.model_validate({"dailyConsumption": "5"})

    def test_tobacco_measurement(self):
        model = TobaccoSmoking.model_validate(
            {"status": "Former Smoker", "dailyConsumption": "5", "quitDate": "2020-06-01"}
        )
        assert model.average_daily_consumption == 5.0

        with pytest.raises(PydanticValidationError):
            TobaccoSmoking.model_validate({"status": "Current Smoker", "dailyConsumption": "lots"})

    def test_financial_resources_required_fields(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            FinancialResources.model_validate({"incomeLevel": "Low"})
        locations = {e["loc"][0] for e in exc_info.value.errors()}
        assert "employment_status" in locations
        assert "financial_support" in locations

    def test_physical_activity_unit(self):
        model = PhysicalActivity.model_validate({"duration": "30", "durationUnit": "min"})
        assert model.duration == 30.0
        with pytest.raises(PydanticValidationError):
            PhysicalActivity.model_validate({"durationUnit": "days"})


class TestAllergyList:

    def test_bare_list(self):
        model = AllergyList.model_validate([{"allergen": "Penicillin", "severity": "Severe"}])
        assert len(model.allergies) == 1

    def test_invalid_allergen(self):
        with pytest.raises(PydanticValidationError):
            AllergyList.model_validate({"allergies": [{"allergen": "Cats"}]})


class TestScaffold:

    def test_all_keys_null(self):
        scaffold = build_scaffold(AlcoholUse)
        assert scaffold == {
            "current_status": None,
            "average_weekly_consumption": None,
            "type_of_alcohol": None,
            "period_of_use": None,
            "notes": None,
        }

    def test_list_fields_empty(self):
        scaffold = build_scaffold(ContactInfo)
        assert scaffold["preferred_contact_methods"] == []
        assert scaffold["emergency_contact"] == []
        assert scaffold["mobile"] is None
