"""ABOUTME: Request guard installed as before/after request hooks on every route
ABOUTME: Rejects attack signatures, sanitises JSON bodies, times requests and tracks login outcomes"""

import json
import time
from typing import Any

import structlog
from flask import Flask, Response, g, jsonify, request
from flask.typing import ResponseReturnValue

from charityguard.domain.people import normalise_email
from charityguard.domain.threat_signatures import classify
from charityguard.domain.value_objects import ActivityEventType, ThreatType
from charityguard.service_layer.auth_service import ClientInfo
from charityguard.service_layer.exceptions import ThreatDetectedError
from charityguard.service_layer.security import deep_sanitize

from .extensions import get_core

logger = structlog.get_logger(__name__)

# successful verification on these routes counts as a login, anything else as a failed one
LOGIN_TRACKED_PATHS = frozenset({"/api/auth/verify-otp", "/api/donors/verify-otp"})

THREAT_EVENT_TYPES = {
    ThreatType.XSS: ActivityEventType.XSS_ATTEMPT,
    ThreatType.SQL_INJECTION: ActivityEventType.SQL_INJECTION_ATTEMPT,
}


def client_info() -> ClientInfo:
    return ClientInfo(
        ip_address=request.remote_addr or "unknown",
        user_agent=request.headers.get("User-Agent", ""),
    )


def _raw_body() -> Any:
    body = request.get_json(silent=True)
    if body is None:
        return request.get_data(as_text=True)
    return body


def _scannable_content(body: Any) -> str:
    parts = [json.dumps(body, ensure_ascii=False, default=str)]
    if request.args:
        parts.append(json.dumps(request.args.to_dict(flat=False), ensure_ascii=False))
    return "\n".join(parts)


class RequestGuard:
    """Holds no state of its own; everything is kept on `g` for the current request."""

    def __init__(self, app: Flask | None = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self.before_request)
        app.after_request(self.after_request)

    def before_request(self) -> ResponseReturnValue | None:
        g.request_started = time.perf_counter()

        body = _raw_body()
        threat_type = classify(_scannable_content(body))
        if threat_type is not None:
            return self._reject(threat_type)

        g.sanitized_body = deep_sanitize(body) if isinstance(body, dict | list) else {}
        return None

    def after_request(self, response: Response) -> Response:
        core = get_core()
        started = g.get("request_started")
        if started is not None:
            elapsed = time.perf_counter() - started
            if elapsed > core.settings.slow_request_threshold.total_seconds():
                logger.warning(
                    "slow request",
                    method=request.method,
                    path=request.path,
                    status=response.status_code,
                    duration_ms=round(elapsed * 1000),
                    ip_address=client_info().ip_address,
                )

        if request.method == "POST" and request.path in LOGIN_TRACKED_PATHS and not g.get("threat_rejected"):
            self._track_login(response.status_code == 200)
        return response

    def _reject(self, threat_type: ThreatType) -> ResponseReturnValue:
        g.threat_rejected = True
        client = client_info()
        get_core().monitor.log_event(
            THREAT_EVENT_TYPES.get(threat_type, ActivityEventType.SUSPICIOUS_ACTIVITY),
            "unknown",
            client.ip_address,
            client.user_agent,
            False,
            {"path": request.path},
        )
        error = ThreatDetectedError(threat_type.value)
        return jsonify({"success": False, "message": str(error)}), error.status_code

    def _track_login(self, success: bool) -> None:
        body = request.get_json(silent=True)
        email = body.get("email") if isinstance(body, dict) else None
        if not isinstance(email, str) or not email.strip():
            return
        client = client_info()
        get_core().monitor.log_login_attempt(normalise_email(email), client.ip_address, client.user_agent, success)
