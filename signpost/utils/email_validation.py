"""
Submission validation

Pure checks, applied in a fixed order and short-circuiting on the first
failure: request freshness, normalisation, control characters, shape,
domain extraction, disposable domain.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from signpost.errors import DisposableDomain, ExpiredRequest, InvalidEmail

MAX_EMAIL_LENGTH = 254
MAX_DOMAIN_LENGTH = 253
DEFAULT_MAX_SKEW_MS = 30_000

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

# trimmed from both ends; the C0 separators \x1c-\x1f and NEL stay so they fail the checks below
TRIM_CHARS = (
    " \t\n\x0b\x0c\r\xa0\u1680"
    + "".join(chr(c) for c in range(0x2000, 0x200B))
    + "\u2028\u2029\u202f\u205f\u3000\ufeff"
)


@dataclass(frozen=True)
class ValidatedEmail:
    email: str
    domain: str


def check_freshness(timestamp: Any, now: int, max_skew_ms: int = DEFAULT_MAX_SKEW_MS) -> None:
    """
    Reject replayed or stale submissions.

    Raises:
        ExpiredRequest: timestamp missing, not a finite number, or more than
            ``max_skew_ms`` away from ``now`` in either direction
    """
    if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
        raise ExpiredRequest()
    if not math.isfinite(timestamp) or abs(now - timestamp) > max_skew_ms:
        raise ExpiredRequest()


def normalize_email(raw: Any) -> str:
    """Lowercase and trim; non-strings normalise to the empty string"""
    if not isinstance(raw, str):
        return ""
    return raw.lower().strip(TRIM_CHARS)


def check_structure(email: str) -> None:
    """Length, control character and shape checks on a normalised email"""
    if not email or len(email) > MAX_EMAIL_LENGTH:
        raise InvalidEmail()
    if CONTROL_CHARS.search(email):
        raise InvalidEmail()
    if not EMAIL_PATTERN.fullmatch(email):
        raise InvalidEmail()


def extract_domain(email: str) -> str:
    domain = email.split("@", 1)[1].rstrip(".")
    if not domain or len(domain) > MAX_DOMAIN_LENGTH:
        raise InvalidEmail()
    return domain


def validate_submission(
    email: Any,
    timestamp: Any,
    now: int,
    blocked_domains: Iterable[str],
    max_skew_ms: int = DEFAULT_MAX_SKEW_MS,
) -> ValidatedEmail:
    """
    Run every admission check and return the normalised email and its domain.

    Raises:
        ExpiredRequest, InvalidEmail, DisposableDomain
    """
    check_freshness(timestamp, now, max_skew_ms)

    normalized = normalize_email(email)
    check_structure(normalized)
    domain = extract_domain(normalized)

    if domain in blocked_domains:
        raise DisposableDomain()

    return ValidatedEmail(email=normalized, domain=domain)


def lookup_email(raw: Any) -> Optional[str]:
    """
    Normalise an email for a position lookup.

    Returns None instead of raising so lookups never reveal why an input was
    rejected.
    """
    normalized = normalize_email(raw)
    try:
        check_structure(normalized)
    except InvalidEmail:
        return None
    return normalized
