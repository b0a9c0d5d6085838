"""ABOUTME: JSON API endpoints for employee authentication
ABOUTME: One-time code login, bearer token verification and logout"""

from typing import Any

from flask import Blueprint, current_app, g, jsonify, request
from flask.typing import ResponseReturnValue

from charityguard.service_layer import auth_service
from charityguard.service_layer.exceptions import ServiceLayerError, status_for
from charityguard.translations import _

from ..decorators import bearer_token, require_bearer_token
from ..extensions import get_core
from ..guard import client_info

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def request_body() -> dict[str, Any]:
    """The HTML-encoded body, for free text that gets stored or echoed back."""
    body = g.get("sanitized_body")
    return body if isinstance(body, dict) else {}


def request_fields() -> dict[str, Any]:
    """The parsed JSON as sent. Emails and codes are compared exactly, and the guard has already scanned them."""
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def error_response(error: ServiceLayerError) -> ResponseReturnValue:
    return jsonify({"success": False, "message": str(error)}), status_for(error)


@auth_bp.route("/send-otp", methods=["POST"])
def send_otp() -> ResponseReturnValue:
    """Send a one-time login code to an employee."""
    try:
        return jsonify(auth_service.request_employee_otp(get_core(), request_fields().get("email"), client_info()))
    except ServiceLayerError as e:
        return error_response(e)


@auth_bp.route("/verify-otp", methods=["POST"])
def verify_otp() -> ResponseReturnValue:
    """Exchange a one-time code for a bearer token and a session."""
    data = request_fields()
    try:
        return jsonify(
            auth_service.verify_employee_otp(
                get_core(),
                data.get("email"),
                data.get("code"),
                client_info(),
                device_id=request_body().get("deviceId"),
            )
        )
    except ServiceLayerError as e:
        return error_response(e)


@auth_bp.route("/verify-token", methods=["POST"])
def verify_token() -> ResponseReturnValue:
    token = bearer_token()
    if not token:
        return jsonify({"success": False, "message": _("Unauthorized")}), 401
    try:
        return jsonify(auth_service.verify_employee_token(get_core(), token))
    except ServiceLayerError as e:
        return error_response(e)


@auth_bp.route("/logout", methods=["POST"])
@require_bearer_token
def logout() -> ResponseReturnValue:
    """Invalidate the token and destroy the caller's sessions."""
    try:
        destroyed = auth_service.logout(get_core(), g.token, client_info())
        return jsonify({"success": True, "message": _("Logout successful"), "sessionsDestroyed": destroyed})
    except Exception as e:
        current_app.logger.error(f"API logout error: {e}")
        return jsonify({"success": False, "message": _("An error occurred during logout")}), 500
