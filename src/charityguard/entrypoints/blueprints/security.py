"""ABOUTME: JSON API endpoints for security monitoring
ABOUTME: Activity events, threat reports, statistics and the caller's own sessions, for audit:view holders"""

from flask import Blueprint, g, jsonify, request
from flask.typing import ResponseReturnValue

from charityguard.translations import _

from ..decorators import require_permission, require_session
from ..extensions import get_core

security_bp = Blueprint("security", __name__, url_prefix="/api/security")

AUDIT_VIEW = "audit:view"
DEFAULT_EVENT_LIMIT = 100
MAX_EVENT_LIMIT = 1000


def _limit(default: int = DEFAULT_EVENT_LIMIT) -> int:
    limit = request.args.get("limit", default, type=int)
    return max(1, min(limit or default, MAX_EVENT_LIMIT))


@security_bp.route("/events", methods=["GET"])
@require_permission(AUDIT_VIEW)
def events() -> ResponseReturnValue:
    """Most recent activity events, newest first. Filter with ?actor= or ?ip=."""
    monitor = get_core().monitor
    actor = request.args.get("actor", "").strip()
    ip_address = request.args.get("ip", "").strip()
    if actor:
        found = monitor.get_user_events(actor, _limit())
    elif ip_address:
        found = monitor.get_ip_events(ip_address, _limit())
    else:
        found = monitor.get_recent_events(_limit())
    return jsonify({"events": [e.to_dict() for e in found]})


@security_bp.route("/events/suspicious", methods=["GET"])
@require_permission(AUDIT_VIEW)
def suspicious_events() -> ResponseReturnValue:
    found = get_core().monitor.get_suspicious_events(_limit(default=50))
    return jsonify({"events": [e.to_dict() for e in found]})


@security_bp.route("/threats", methods=["GET"])
@require_permission(AUDIT_VIEW)
def threats() -> ResponseReturnValue:
    reports = get_core().monitor.get_active_threat_reports()
    return jsonify({"threats": [r.to_dict() for r in reports]})


@security_bp.route("/threats/<report_id>/resolve", methods=["POST"])
@require_permission(AUDIT_VIEW)
def resolve_threat(report_id: str) -> ResponseReturnValue:
    body = g.get("sanitized_body")
    actions = body.get("actions", []) if isinstance(body, dict) else []
    if not isinstance(actions, list) or not all(isinstance(a, str) for a in actions):
        return jsonify({"success": False, "message": _("Actions must be a list of strings")}), 400

    monitor = get_core().monitor
    if monitor.get_threat_report(report_id) is None:
        return jsonify({"success": False, "message": _("Threat report not found")}), 404
    if not monitor.resolve_threat(report_id, actions, resolved_by=g.identity):
        return jsonify({"success": False, "message": _("Threat report is already resolved")}), 409
    resolved = monitor.get_threat_report(report_id)
    assert resolved is not None
    return jsonify({"success": True, "threat": resolved.to_dict()})


@security_bp.route("/statistics", methods=["GET"])
@require_permission(AUDIT_VIEW)
def statistics() -> ResponseReturnValue:
    core = get_core()
    return jsonify({
        "activity": core.monitor.get_statistics().to_dict(),
        "sessions": core.sessions.get_statistics().to_dict(),
    })


@security_bp.route("/sessions", methods=["GET"])
@require_permission(AUDIT_VIEW)
@require_session
def sessions() -> ResponseReturnValue:
    """The caller's own live sessions."""
    found = get_core().sessions.get_user_sessions(g.identity)
    return jsonify({
        "currentSessionId": g.session_id,
        "sessions": [s.to_dict() for s in found],
    })
