"""ABOUTME: Input sanitisation and validation helpers
ABOUTME: HTML-entity encodes request strings and validates email, phone, name and OTP shapes"""

import re
import unicodedata
from typing import Any

from markupsafe import escape

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_DIGITS_RE = re.compile(r"^\d{9,15}$")
OTP_CODE_RE = re.compile(r"^[0-9]{6}$")
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100


def sanitize_input(value: str) -> str:
    """Trim and HTML-entity encode the characters that matter in markup: < > " ' &"""
    return str(escape(value.strip()))


def deep_sanitize(data: Any) -> Any:
    """Sanitise every string found in a parsed JSON document, keys included."""
    if isinstance(data, str):
        return sanitize_input(data)
    if isinstance(data, list):
        return [deep_sanitize(item) for item in data]
    if isinstance(data, dict):
        return {
            deep_sanitize(key) if isinstance(key, str) else key: deep_sanitize(value) for key, value in data.items()
        }
    return data


def is_valid_email(email: str) -> bool:
    return bool(email) and len(email) <= 254 and EMAIL_RE.match(email) is not None


def normalise_phone(phone: str) -> str:
    return re.sub(r"[\s\-()+]", "", phone or "")


def is_valid_phone(phone: str) -> bool:
    return PHONE_DIGITS_RE.match(normalise_phone(phone)) is not None


def is_valid_name(name: str) -> bool:
    """Letters (any script, with their combining marks) and spaces, between 2 and 100 characters."""
    name = (name or "").strip()
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        return False
    return all(ch.isalpha() or ch == " " or unicodedata.category(ch).startswith("M") for ch in name)


def is_valid_otp_code(code: str) -> bool:
    return OTP_CODE_RE.match(code or "") is not None
