"""ABOUTME: Custom exceptions for the authentication and session-security services
ABOUTME: Each error carries a translatable message and maps to one HTTP status via status_for()"""

import math

from charityguard.translations import gettext as _


class CharityGuardError(Exception):
    """Base exception for all our custom errors."""


class ServiceLayerError(CharityGuardError):
    """Base exception for all service layer errors."""

    status_code = 500


def describe_wait(seconds: int) -> str:
    """Human readable wait time, rounded up to whole minutes past the first minute."""
    if seconds < 60:
        return _("%(seconds)s seconds", seconds=max(seconds, 1))
    minutes = math.ceil(seconds / 60)
    if minutes == 1:
        return _("1 minute")
    return _("%(minutes)s minutes", minutes=minutes)


class ValidationError(ServiceLayerError):
    """Malformed identity, code or payload."""

    status_code = 400

    def __init__(self, message: str = "", field: str = "") -> None:
        if not message:
            message = _("Invalid value for %(field)s", field=field) if field else _("Invalid request")
        super().__init__(message)
        self.field = field


class RateLimitError(ServiceLayerError):
    """Too many OTP requests within the rolling window."""

    status_code = 429

    def __init__(self, retry_after_seconds: int = 0) -> None:
        if retry_after_seconds:
            message = _(
                "Too many code requests. Please try again in %(wait)s",
                wait=describe_wait(retry_after_seconds),
            )
        else:
            message = _("Too many code requests. Please try again later")
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class LockoutError(ServiceLayerError):
    """Too many failed verifications; the identity is temporarily blocked."""

    status_code = 429

    def __init__(self, retry_after_seconds: int = 0) -> None:
        if retry_after_seconds:
            message = _(
                "Too many failed attempts. Please try again in %(wait)s",
                wait=describe_wait(retry_after_seconds),
            )
        else:
            message = _("Too many failed attempts. Please try again later")
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UnauthorizedError(ServiceLayerError):
    """Missing or invalid credential."""

    status_code = 401

    def __init__(self, message: str = "") -> None:
        super().__init__(message or _("Invalid or expired credentials"))


class ExpiredError(UnauthorizedError):
    """OTP, token or session past its lifetime.

    Rendered exactly like UnauthorizedError so callers cannot tell expired from invalid.
    """


class ForbiddenError(ServiceLayerError):
    """Valid credential but inactive identity or insufficient privilege."""

    status_code = 403

    def __init__(self, message: str = "", permission: str = "") -> None:
        if not message:
            message = (
                _("Permission required: %(permission)s", permission=permission)
                if permission
                else _("Access denied")
            )
        super().__init__(message)
        self.permission = permission


class OtpLoginDisabled(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(_("Login with one-time codes is currently disabled"))


class ThreatDetectedError(ServiceLayerError):
    """Request rejected before any handler ran. The message never names the signature."""

    status_code = 400

    def __init__(self, threat_type: str = "") -> None:
        super().__init__(_("Unsafe content detected"))
        self.threat_type = threat_type


class NotFoundError(ServiceLayerError):
    """General error to indicate something cannot be found"""

    status_code = 404


class IdentityNotFound(NotFoundError):
    def __init__(self, email: str = "") -> None:
        super().__init__(_("No account found for this email"))
        self.email = email


class IdentityAlreadyExists(ServiceLayerError):
    status_code = 409

    def __init__(self, email: str = "") -> None:
        super().__init__(_("An account already exists for this email"))
        self.email = email


class DeliveryError(ServiceLayerError):
    """The code could not be handed to the upstream email service."""

    status_code = 502

    def __init__(self, message: str = "") -> None:
        super().__init__(message or _("Could not send the verification code. Please try again later"))


def status_for(error: ServiceLayerError) -> int:
    return error.status_code
