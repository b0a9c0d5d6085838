"""ABOUTME: Helper functions for end-to-end tests
ABOUTME: Logs employees and donors in through the JSON API using the code captured by the fake mailer"""

from typing import Any

from flask.testing import FlaskClient

from tests.fakes import FakeEmailAdapter


def login_employee(
    client: FlaskClient, email_adapter: FakeEmailAdapter, email: str, headers: dict[str, str] | None = None
) -> dict[str, Any]:
    """Request and verify a code; returns the verify-otp response body."""
    response = client.post("/api/auth/send-otp", json={"email": email}, headers=headers)
    assert response.status_code == 200, response.get_json()

    response = client.post(
        "/api/auth/verify-otp",
        json={"email": email, "code": email_adapter.last_code_for(email)},
        headers=headers,
    )
    assert response.status_code == 200, response.get_json()
    data = response.get_json()
    assert data is not None
    return data


def auth_headers(token: str, session_id: str | None = None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {token}"}
    if session_id:
        headers["X-Session-Id"] = session_id
    return headers
