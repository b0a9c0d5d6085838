"""ABOUTME: End-to-end tests for donor login and registration
ABOUTME: Tests the donor send-otp, verify-otp and verify-token endpoints"""

from flask.testing import FlaskClient

from charityguard.domain.value_objects import ActivityEventType
from tests.e2e.helpers import auth_headers

DORA = "dora@example.com"
NADIA = "nadia@example.com"


class TestDonorLogin:
    def test_login_flow(self, client: FlaskClient, email_adapter):
        response = client.post("/api/donors/send-otp", json={"email": DORA, "isLogin": True})
        assert response.status_code == 200
        assert response.get_json()["expiresIn"] == "5 minutes"

        response = client.post(
            "/api/donors/verify-otp", json={"email": DORA, "code": email_adapter.last_code_for(DORA)}
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data["message"] == "Login successful"

        response = client.post("/api/donors/verify-token", headers=auth_headers(data["token"]))
        assert response.status_code == 200
        assert response.get_json()["name"] == "Dora Donor"

    def test_unknown_donor_is_told_to_register(self, client: FlaskClient):
        response = client.post("/api/donors/send-otp", json={"email": NADIA, "isLogin": True})

        assert response.status_code == 404
        data = response.get_json()
        assert data["success"] is False
        assert data["shouldRegister"] is True

    def test_wrong_code(self, client: FlaskClient, email_adapter):
        client.post("/api/donors/send-otp", json={"email": DORA, "isLogin": True})
        wrong = "000000" if email_adapter.last_code_for(DORA) != "000000" else "111111"

        response = client.post("/api/donors/verify-otp", json={"email": DORA, "code": wrong})

        assert response.status_code == 401

    def test_malformed_code_is_a_bad_request(self, client: FlaskClient, core):
        client.post("/api/donors/send-otp", json={"email": DORA, "isLogin": True})

        response = client.post("/api/donors/verify-otp", json={"email": DORA, "code": "not-a-code"})

        assert response.status_code == 400
        assert response.get_json()["success"] is False
        assert ActivityEventType.OTP_FAILED not in [e.event_type for e in core.monitor.get_recent_events()]

    def test_verify_token_without_header(self, client: FlaskClient):
        assert client.post("/api/donors/verify-token").status_code == 401


class TestDonorRegistration:
    """Test registering a new donor with a one-time code."""

    def test_registration_flow(self, client: FlaskClient, email_adapter, donor_directory):
        response = client.post(
            "/api/donors/send-otp",
            json={"email": NADIA, "isLogin": False, "name": "Nadia Noor", "phone": "+971 50 987 6543"},
        )
        assert response.status_code == 200
        assert response.get_json()["expiresIn"] == "10 minutes"
        assert donor_directory.get_by_email(NADIA) is None

        response = client.post(
            "/api/donors/verify-otp", json={"email": NADIA, "code": email_adapter.last_code_for(NADIA)}
        )

        assert response.status_code == 200
        assert response.get_json()["message"] == "Account created successfully"
        donor = donor_directory.get_by_email(NADIA)
        assert donor is not None
        assert donor.name == "Nadia Noor"
        assert donor.phone == "971509876543"

    def test_existing_donor_is_told_to_login(self, client: FlaskClient):
        response = client.post(
            "/api/donors/send-otp",
            json={"email": DORA, "isLogin": False, "name": "Dora Donor", "phone": "0501234567"},
        )

        assert response.status_code == 409
        assert response.get_json()["shouldLogin"] is True

    def test_registration_requires_name_and_phone(self, client: FlaskClient):
        response = client.post("/api/donors/send-otp", json={"email": NADIA, "isLogin": False})

        assert response.status_code == 400

    def test_registration_rejects_invalid_phone(self, client: FlaskClient):
        response = client.post(
            "/api/donors/send-otp",
            json={"email": NADIA, "isLogin": False, "name": "Nadia Noor", "phone": "call me"},
        )

        assert response.status_code == 400

    def test_arabic_name_is_accepted(self, client: FlaskClient, email_adapter, donor_directory):
        client.post(
            "/api/donors/send-otp",
            json={"email": NADIA, "isLogin": False, "name": "نادية نور", "phone": "0509876543"},
        )

        client.post("/api/donors/verify-otp", json={"email": NADIA, "code": email_adapter.last_code_for(NADIA)})

        assert donor_directory.get_by_email(NADIA).name == "نادية نور"
