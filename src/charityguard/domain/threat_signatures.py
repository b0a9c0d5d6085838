"""ABOUTME: Versioned regex signatures for script injection and SQL injection payloads
ABOUTME: classify() maps any serialized content to the first matching threat type, or None"""

import re

from charityguard.domain.value_objects import ThreatType

SIGNATURES_VERSION = "2"

XSS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<script\b", re.IGNORECASE),
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE),
    re.compile(r"<iframe", re.IGNORECASE),
    re.compile(r"<svg[^>]*\bonload", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
)

SQL_INJECTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"['\"]\s*or\s*['\"]?\d+['\"]?\s*=\s*['\"]?\d+", re.IGNORECASE),
    re.compile(r"\bor\s+['\"]?1['\"]?\s*=\s*['\"]?1\b", re.IGNORECASE),
    re.compile(r"\bunion\s+(all\s+)?select\b", re.IGNORECASE),
    re.compile(r"\bdrop\s+table\b", re.IGNORECASE),
    re.compile(r"\bexec(ute)?\s*\(", re.IGNORECASE),
)

SIGNATURES: tuple[tuple[ThreatType, tuple[re.Pattern[str], ...]], ...] = (
    (ThreatType.XSS, XSS_PATTERNS),
    (ThreatType.SQL_INJECTION, SQL_INJECTION_PATTERNS),
)


def _normalise(content: str) -> str:
    # JSON serialization escapes embedded double quotes
    return content.replace('\\"', '"')


def scan(content: str) -> list[ThreatType]:
    """Every threat type whose signatures match `content`, in signature order."""
    if not content:
        return []
    normalised = _normalise(content)
    return [
        threat_type
        for threat_type, patterns in SIGNATURES
        if any(pattern.search(normalised) for pattern in patterns)
    ]


def classify(content: str) -> ThreatType | None:
    matches = scan(content)
    return matches[0] if matches else None
