"""ABOUTME: Health check endpoint for monitoring service status
ABOUTME: Reports database connectivity and whether one-time code login is enabled"""

from flask import Blueprint, jsonify
from flask.typing import ResponseReturnValue

from charityguard import config

from ..extensions import get_core

health_bp = Blueprint("health", __name__)


def check_database() -> bool:
    """True when a unit of work can be opened and the employees table read."""
    uow_factory = get_core().uow_factory
    if uow_factory is None:
        # running on in-memory collaborators only
        return True
    try:
        with uow_factory() as uow:
            list(uow.employees.filter(active=True))
        return True
    except Exception:
        return False


@health_bp.route("/health")
def health_check() -> ResponseReturnValue:
    """
    Health check endpoint returning JSON with system status.

    Returns:
        JSON response with:
        - database_ok: bool
        - otp_login_enabled: bool

    HTTP status 200 if the database is reachable, 500 otherwise.
    """
    db_ok = check_database()

    response_data = {
        "database_ok": db_ok,
        "otp_login_enabled": not config.is_otp_login_disabled(),
    }

    status_code = 200 if db_ok else 500

    return jsonify(response_data), status_code
