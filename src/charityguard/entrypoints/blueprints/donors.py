"""ABOUTME: JSON API endpoints for donor login and registration
ABOUTME: One-time codes for both flows, then a bearer token for the donor portal"""

from flask import Blueprint, jsonify
from flask.typing import ResponseReturnValue

from charityguard.service_layer import auth_service
from charityguard.service_layer.exceptions import (
    IdentityAlreadyExists,
    IdentityNotFound,
    ServiceLayerError,
    status_for,
)
from charityguard.translations import _

from ..decorators import bearer_token
from ..extensions import get_core
from ..guard import client_info
from .auth import error_response, request_body, request_fields

donors_bp = Blueprint("donors", __name__, url_prefix="/api/donors")


@donors_bp.route("/send-otp", methods=["POST"])
def send_otp() -> ResponseReturnValue:
    """Send a login code to a known donor, or a registration code to a new one."""
    data = request_fields()
    text = request_body()
    try:
        return jsonify(
            auth_service.request_donor_otp(
                get_core(),
                data.get("email"),
                client_info(),
                is_login=bool(data.get("isLogin")),
                name=text.get("name"),
                phone=text.get("phone"),
            )
        )
    except IdentityNotFound as e:
        return jsonify({"success": False, "message": str(e), "shouldRegister": True}), status_for(e)
    except IdentityAlreadyExists as e:
        return jsonify({"success": False, "message": str(e), "shouldLogin": True}), status_for(e)
    except ServiceLayerError as e:
        return error_response(e)


@donors_bp.route("/verify-otp", methods=["POST"])
def verify_otp() -> ResponseReturnValue:
    data = request_fields()
    try:
        return jsonify(auth_service.verify_donor_otp(get_core(), data.get("email"), data.get("code"), client_info()))
    except ServiceLayerError as e:
        return error_response(e)


@donors_bp.route("/verify-token", methods=["POST"])
def verify_token() -> ResponseReturnValue:
    token = bearer_token()
    if not token:
        return jsonify({"success": False, "message": _("Unauthorized")}), 401
    try:
        return jsonify(auth_service.verify_donor_token(get_core(), token))
    except ServiceLayerError as e:
        return error_response(e)
