"""ABOUTME: Employee and donor login flows built on the OTP, token and session services
ABOUTME: Framework independent; raises service layer errors which the HTTP layer maps to statuses"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from charityguard import config
from charityguard.domain.people import Donor, normalise_email
from charityguard.domain.value_objects import ActivityEventType
from charityguard.translations import gettext as _

from .exceptions import (
    DeliveryError,
    ForbiddenError,
    IdentityAlreadyExists,
    IdentityNotFound,
    OtpLoginDisabled,
    UnauthorizedError,
    ValidationError,
)
from .security import is_valid_email, is_valid_name, is_valid_otp_code, is_valid_phone, normalise_phone

if TYPE_CHECKING:
    from charityguard.bootstrap import SecurityCore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ClientInfo:
    """Where a request came from, used for sessions and activity events."""

    ip_address: str = "unknown"
    user_agent: str = ""


def _ensure_otp_login_enabled() -> None:
    if config.is_otp_login_disabled():
        raise OtpLoginDisabled()


def _clean_email(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(_("Email is required"), field="email")
    email = normalise_email(raw)
    if not is_valid_email(email):
        raise ValidationError(_("Invalid email address"), field="email")
    return email


def _clean_code(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError(_("Email and code are required"), field="code")
    code = raw.strip()
    if not is_valid_otp_code(code):
        raise ValidationError(_("The verification code must be 6 digits"), field="code")
    return code


def _expires_in(minutes: int) -> str:
    return _("%(minutes)s minutes", minutes=minutes)


def _send_code(core: "SecurityCore", email: str, code: str, minutes: int, greeting_name: str = "") -> None:
    subject = _("Your verification code")
    body = "\n".join([
        _("Hello %(name)s,", name=greeting_name) if greeting_name else _("Hello,"),
        "",
        _("Your verification code is: %(code)s", code=code),
        _("The code is valid for %(minutes)s minutes. Do not share it with anyone.", minutes=minutes),
        _("If you did not ask for this code you can ignore this message."),
    ])
    if not core.email.send_email(email, subject, body):
        core.otp.invalidate(email)
        logger.error("failed to deliver otp email", email=email)
        raise DeliveryError()


# -- employees ------------------------------------------------------------------


def request_employee_otp(core: "SecurityCore", raw_email: Any, client: ClientInfo) -> dict[str, Any]:
    """
    Send a login code to an active employee.

    Raises:
        OtpLoginDisabled: when the kill switch is set
        ValidationError: malformed email
        LockoutError, RateLimitError: too many failures or requests
        ForbiddenError: unknown or inactive employee
        DeliveryError: the email could not be handed over
    """
    _ensure_otp_login_enabled()
    email = _clean_email(raw_email)
    core.otp.reserve_request(email)

    employee = core.employees.get_by_email(email)
    if employee is None or not employee.active:
        logger.warning("otp requested for unregistered or inactive employee", email=email)
        raise ForbiddenError(_("This email is not registered as an active employee"))

    minutes = core.settings.employee_otp_ttl_minutes
    code = core.otp.issue(email, minutes)
    _send_code(core, email, code, minutes, greeting_name=employee.name)

    expires_in = _expires_in(minutes)
    core.audit.record(employee.email, "send_otp", {"expiresIn": expires_in})
    core.monitor.log_event(
        ActivityEventType.OTP_SENT, email, client.ip_address, client.user_agent, True, {"audience": "employee"}
    )
    return {"message": _("A verification code has been sent to your email"), "expiresIn": expires_in}


def verify_employee_otp(
    core: "SecurityCore", raw_email: Any, raw_code: Any, client: ClientInfo, device_id: str | None = None
) -> dict[str, Any]:
    """Exchange a valid code for a bearer token and a fingerprint-bound session."""
    _ensure_otp_login_enabled()
    email = _clean_email(raw_email)
    code = _clean_code(raw_code)

    if core.otp.verify(email, code) is None:
        raise UnauthorizedError(_("The verification code is invalid or has expired"))

    employee = core.employees.get_by_email(email)
    if employee is None or not employee.active:
        logger.warning("otp verified for unregistered or inactive employee", email=email)
        raise ForbiddenError(_("This employee account is not active"))

    token = core.tokens.issue(email)
    session = core.sessions.create_session(
        email, client.ip_address, client.user_agent, device_id=device_id, metadata={"role": employee.role}
    )
    core.audit.record(employee.email, "otp_verified", {"sessionId": session.session_id})
    return {
        "success": True,
        "token": token,
        "sessionId": session.session_id,
        "message": _("Verification successful"),
    }


def verify_employee_token(core: "SecurityCore", token: str) -> dict[str, Any]:
    email = core.tokens.verify_durable(token)
    if email is None:
        raise UnauthorizedError(_("The token is invalid or has expired"))

    employee = core.employees.get_by_email(email)
    if employee is None:
        # donor tokens share the store and stay valid for the donor routes
        raise ForbiddenError(_("This employee account is not active"))
    if not employee.active:
        revoked = core.tokens.invalidate_identity(email)
        logger.warning("token presented for inactive employee", email=email, tokens_revoked=revoked)
        raise ForbiddenError(_("This employee account is not active"))

    return {
        "success": True,
        "email": employee.email,
        "name": employee.name,
        "role": employee.role,
        "permissions": list(employee.permissions),
    }


def logout(core: "SecurityCore", token: str, client: ClientInfo) -> int:
    """Invalidate the token and every session of its holder. Returns the number of sessions destroyed."""
    email = core.tokens.verify(token)
    core.tokens.invalidate(token)
    if email is None:
        return 0
    destroyed = core.sessions.destroy_user_sessions(email)
    core.monitor.log_event(ActivityEventType.LOGOUT, email, client.ip_address, client.user_agent, True)
    core.audit.record(email, "logout", {"sessionsDestroyed": destroyed})
    return destroyed


# -- donors -----------------------------------------------------------------------


def request_donor_otp(
    core: "SecurityCore",
    raw_email: Any,
    client: ClientInfo,
    is_login: bool,
    name: Any = None,
    phone: Any = None,
) -> dict[str, Any]:
    """
    Send a login or registration code to a donor.

    Login requires an existing donor (IdentityNotFound otherwise); registration
    requires a new email (IdentityAlreadyExists otherwise) plus a valid name and phone,
    which travel with the code until it is verified.
    """
    _ensure_otp_login_enabled()
    email = _clean_email(raw_email)

    existing = core.donors.get_by_email(email)
    if is_login and existing is None:
        raise IdentityNotFound(email)
    if not is_login and existing is not None:
        raise IdentityAlreadyExists(email)

    metadata = None
    if not is_login:
        name = name.strip() if isinstance(name, str) else ""
        phone = phone.strip() if isinstance(phone, str) else ""
        if not name or not phone:
            raise ValidationError(_("Name and phone number are required to register"))
        if not is_valid_name(name):
            raise ValidationError(_("The name may only contain letters and spaces"), field="name")
        if not is_valid_phone(phone):
            raise ValidationError(_("The phone number must contain 9 to 15 digits"), field="phone")
        metadata = {"name": name, "phone": normalise_phone(phone), "isRegistration": True}

    core.otp.reserve_request(email)

    if is_login:
        minutes = core.settings.donor_login_otp_ttl_minutes
    else:
        minutes = core.settings.donor_registration_otp_ttl_minutes
    code = core.otp.issue(email, minutes, metadata=metadata)
    _send_code(core, email, code, minutes, greeting_name=existing.name if existing else (name or ""))

    expires_in = _expires_in(minutes)
    core.audit.record(
        f"donor:{email}", "donor_login_code" if is_login else "donor_registration_code", {"expiresIn": expires_in}
    )
    core.monitor.log_event(
        ActivityEventType.OTP_SENT, email, client.ip_address, client.user_agent, True, {"audience": "donor"}
    )
    return {"message": _("A verification code has been sent to your email"), "expiresIn": expires_in}


def verify_donor_otp(core: "SecurityCore", raw_email: Any, raw_code: Any, client: ClientInfo) -> dict[str, Any]:
    """Verify a donor code, creating the donor on registration or stamping the login otherwise."""
    _ensure_otp_login_enabled()
    email = _clean_email(raw_email)
    code = _clean_code(raw_code)

    result = core.otp.verify(email, code)
    core.monitor.log_otp_attempt(
        f"donor:{email}", client.ip_address, client.user_agent, result is not None, email=email
    )
    if result is None:
        raise UnauthorizedError(_("The verification code is invalid or has expired"))

    metadata = result if isinstance(result, dict) else {}
    is_registration = bool(metadata.get("isRegistration"))

    donor = core.donors.get_by_email(email)
    if donor is None:
        donor = Donor(email=email)
    if is_registration:
        donor.name = metadata.get("name", "") or donor.name
        donor.phone = metadata.get("phone", "") or donor.phone
    donor.record_login()
    donor = core.donors.save(donor)

    core.audit.record(
        f"donor:{email}",
        "donor_registration" if is_registration else "donor_login",
        {"email": donor.email, "name": donor.name, "phone": donor.phone},
    )
    if is_registration:
        core.monitor.log_sensitive_operation(
            email,
            "donor_registration",
            client.ip_address,
            client.user_agent,
            {"donorId": str(donor.id)},
            event_type=ActivityEventType.USER_CREATED,
        )

    token = core.tokens.issue(email)
    return {
        "success": True,
        "token": token,
        "message": _("Account created successfully") if is_registration else _("Login successful"),
    }


def verify_donor_token(core: "SecurityCore", token: str) -> dict[str, Any]:
    email = core.tokens.verify_durable(token)
    if email is None:
        raise UnauthorizedError(_("The token is invalid or has expired"))

    donor = core.donors.get_by_email(email)
    if donor is None:
        raise IdentityNotFound(email)
    return {"success": True, "email": donor.email, "name": donor.name, "message": _("Verification successful")}
