"""ABOUTME: Authentication and authorization decorators for Flask routes
ABOUTME: Bearer token, employee permission and fingerprint-bound session checks for JSON endpoints"""

from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from flask import current_app, g, jsonify, request

from charityguard.domain.value_objects import ActivityEventType
from charityguard.service_layer.exceptions import ForbiddenError, UnauthorizedError
from charityguard.translations import _

from .extensions import get_core
from .guard import client_info

F = TypeVar("F", bound=Callable[..., Any])

SESSION_HEADER = "X-Session-Id"


def bearer_token() -> str:
    """The token of an `Authorization: Bearer <token>` header, or an empty string."""
    header = request.headers.get("Authorization", "")
    scheme, _sep, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()


def _error(error: UnauthorizedError | ForbiddenError) -> Any:
    return jsonify({"success": False, "message": str(error)}), error.status_code


def require_bearer_token(f: F) -> F:
    """Decorator that requires a valid bearer token; sets g.token and g.identity."""

    @wraps(f)
    def decorated_function(*args: Any, **kwargs: Any) -> Any:
        token = bearer_token()
        if not token:
            return _error(UnauthorizedError(_("Unauthorized")))

        identity = get_core().tokens.verify_durable(token)
        if identity is None:
            return _error(UnauthorizedError(_("The token is invalid or has expired")))

        g.token = token
        g.identity = identity
        return f(*args, **kwargs)

    return decorated_function  # type: ignore[return-value]


def require_permission(permission: str) -> Callable[[F], F]:
    """Decorator that requires an active employee holding `permission`.

    Args:
        permission: an `area:action` permission string

    Returns:
        Decorator function that enforces the permission; implies require_bearer_token
    """

    def decorator(f: F) -> F:
        @wraps(f)
        def decorated_function(*args: Any, **kwargs: Any) -> Any:
            core = get_core()
            employee = core.employees.get_by_email(g.identity)
            if employee is not None and employee.active and employee.has_permission(permission):
                g.employee = employee
                return f(*args, **kwargs)

            current_app.logger.warning(
                f"{g.identity} attempted to access {request.endpoint} without permission {permission}"
            )
            client = client_info()
            core.monitor.log_event(
                ActivityEventType.UNAUTHORIZED_ACCESS,
                g.identity,
                client.ip_address,
                client.user_agent,
                False,
                {"path": request.path, "permission": permission},
            )
            return _error(ForbiddenError(permission=permission))

        return require_bearer_token(decorated_function)  # type: ignore[return-value]

    return decorator


def require_session(f: F) -> F:
    """Decorator that requires a live session bound to this client; sets g.session_id.

    Must be applied inside require_bearer_token or require_permission.
    """

    @wraps(f)
    def decorated_function(*args: Any, **kwargs: Any) -> Any:
        core = get_core()
        session_id = request.headers.get(SESSION_HEADER, "")
        client = client_info()
        fingerprint = core.sessions.fingerprint_for(g.identity, client.ip_address, client.user_agent)
        if not session_id or not core.sessions.validate_session(session_id, fingerprint, client.ip_address):
            return _error(UnauthorizedError(_("Your session has expired. Please sign in again")))

        core.sessions.update_activity(session_id)
        g.session_id = session_id
        return f(*args, **kwargs)

    return decorated_function  # type: ignore[return-value]
