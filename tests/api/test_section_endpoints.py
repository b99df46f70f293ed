"""Tests for the section and social-history endpoints."""

import hashlib
import uuid

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class TestContactInformation:

    def test_write_and_get(self, client, patient_id, contact_info):
        response = client.post(f"/api/contact-information/{patient_id}", json=contact_info)

        assert response.status_code == 200
        assert response.json()["message"] == "Contact information saved"

        stored = client.get(f"/api/contact-information/{patient_id}").json()["data"]
        assert stored["mobile"] == {"country_code": "+91", "number": "9876543210"}
        assert stored["emergency_contact"][0]["relationship"] == "Brother"

        record = client.get(f"/api/patient-demographics/{patient_id}").json()["data"]
        assert record["section_status"]["contact_info"] == "complete"
        assert record["name"]["first"] == "Asha"

    def test_invalid_email(self, client, patient_id, contact_info):
        contact_info["email"] = "not-an-email"
        response = client.put(f"/api/contact-information/{patient_id}", json=contact_info)

        assert response.status_code == 400
        assert response.json()["error"]["fields"] == ["contact_info.email"]
        assert client.get(f"/api/contact-information/{patient_id}").json()["data"]["email"] is None

    def test_non_object_body(self, client, patient_id):
        response = client.post(f"/api/contact-information/{patient_id}", json="hello")
        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "ValidationError"

    def test_delete_then_get_empty(self, client, patient_id):
        assert client.delete(f"/api/contact-information/{patient_id}").status_code == 200
        assert client.get(f"/api/contact-information/{patient_id}").json()["data"] == {}

    def test_unknown_patient(self, client, contact_info):
        response = client.post(f"/api/contact-information/{uuid.uuid4()}", json=contact_info)
        assert response.status_code == 404
        assert response.json()["error"]["kind"] == "NotFound"

    def test_malformed_patient_id(self, client, contact_info):
        response = client.post("/api/contact-information/patient-1", json=contact_info)
        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "InvalidIdentifier"


class TestInsurance:

    def test_write(self, client, patient_id, insurance):
        data = client.post(f"/api/insurance/{patient_id}", json=insurance).json()["data"]
        assert data["primary"]["company_name"] == "Star Health"
        assert data["insurance_card_reference"] is None

    def test_card_upload(self, client, patient_id, insurance):
        client.post(f"/api/insurance/{patient_id}", json=insurance)

        files = {"insuranceCard": ("card.png", PNG_BYTES, "image/png")}
        response = client.post(f"/api/insurance/{patient_id}/card", files=files)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["reference"] == hashlib.sha256(PNG_BYTES).hexdigest()
        assert data["insurance"]["primary"]["policy_number"] == "POL-123"

        card = client.get(f"/api/patient-demographics/file/{data['reference']}")
        assert card.content == PNG_BYTES

    def test_card_kept_on_rewrite(self, client, patient_id, insurance):
        files = {"insuranceCard": ("card.png", PNG_BYTES, "image/png")}
        reference = client.post(f"/api/insurance/{patient_id}/card", files=files).json()["data"]["reference"]

        data = client.put(f"/api/insurance/{patient_id}", json=insurance).json()["data"]

        assert data["insurance_card_reference"] == reference

    def test_card_missing_file(self, client, patient_id):
        response = client.post(f"/api/insurance/{patient_id}/card", data={"note": "x"})
        assert response.status_code == 400
        assert response.json()["error"]["fields"] == ["insuranceCard"]

    def test_delete_releases_card(self, client, patient_id):
        files = {"insuranceCard": ("card.png", PNG_BYTES, "image/png")}
        reference = client.post(f"/api/insurance/{patient_id}/card", files=files).json()["data"]["reference"]

        client.delete(f"/api/insurance/{patient_id}")

        assert client.get(f"/api/insurance/{patient_id}").json()["data"] == {}
        assert client.get(f"/api/patient-demographics/file/{reference}").status_code == 404


class TestAllergiesAndFamilyHistory:

    def test_allergies_bare_list(self, client, patient_id):
        assert client.get(f"/api/allergies/{patient_id}").json()["data"] == []

        body = [{"allergen": "Eggs", "severity": "Mild"}]
        data = client.post(f"/api/allergies/{patient_id}", json=body).json()["data"]

        assert data[0]["allergen"] == "Eggs"
        assert client.get(f"/api/allergies/{patient_id}").json()["data"] == data

    def test_allergies_wrapped(self, client, patient_id):
        client.post(f"/api/allergies/{patient_id}", json={"allergies": [{"allergen": "Eggs"}]})
        stored = client.get(f"/api/allergies/{patient_id}").json()["data"]
        assert [a["allergen"] for a in stored] == ["Eggs"]

    def test_family_history(self, client, patient_id):
        body = {
            "family_members": [{
                "name": {"first": "Meera", "last": "Rao"},
                "date_of_birth": "07-02-1962",
                "gender": "Female",
                "relationship": "Mother",
                "deceased": False,
                "medical_conditions": ["Diabetes"],
            }]
        }
        response = client.post(f"/api/family-history/{patient_id}", json=body)

        assert response.status_code == 200
        stored = client.get(f"/api/family-history/{patient_id}").json()["data"]
        assert stored["family_members"][0]["medical_conditions"] == ["Diabetes"]

    def test_family_history_invalid(self, client, patient_id):
        body = {"family_members": [{"name": {"first": "Meera", "last": "Rao"}}]}
        response = client.post(f"/api/family-history/{patient_id}", json=body)
        assert response.status_code == 400
        assert "family_history.family_members.0.date_of_birth" in response.json()["error"]["fields"]


class TestSocialHistory:

    def test_overview(self, client, patient_id):
        data = client.get(f"/api/social-history/{patient_id}").json()["data"]
        assert len(data) == 13
        assert data["alcohol_use"]["current_status"] is None

    def test_write_topic_leaves_others(self, client, patient_id):
        client.post(f"/api/social-history/{patient_id}/tobacco-smoking", json={"status": "Former Smoker"})

        response = client.put(f"/api/social-history/{patient_id}/alcohol", json={"status": "Non-Drinker"})
        assert response.status_code == 200
        assert response.json()["message"] == "Social history (alcohol) saved"

        overview = client.get(f"/api/social-history/{patient_id}").json()["data"]
        assert overview["alcohol_use"]["current_status"] == "Non-Drinker"
        assert overview["tobacco_smoking"]["current_status"] == "Former Smoker"

    def test_get_and_delete_topic(self, client, patient_id):
        client.post(f"/api/social-history/{patient_id}/stress", json={"stressLevel": "High"})
        data = client.get(f"/api/social-history/{patient_id}/stress").json()["data"]
        assert data["perceived_stress_level"] == "High"

        client.delete(f"/api/social-history/{patient_id}/stress")

        assert client.get(f"/api/social-history/{patient_id}/stress").json()["data"] == {}
        assert client.get(f"/api/social-history/{patient_id}").json()["data"]["stress"] == {}

    def test_unknown_topic(self, client, patient_id):
        response = client.post(f"/api/social-history/{patient_id}/hobbies", json={})
        assert response.status_code == 400
        assert response.json()["error"]["fields"] == ["topic"]

    def test_invalid_topic_value(self, client, patient_id):
        response = client.post(f"/api/social-history/{patient_id}/alcohol", json={"status": "Sometimes"})
        assert response.status_code == 400
        assert response.json()["error"]["fields"] == ["social_history.alcohol_use.status"]
