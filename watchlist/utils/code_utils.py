"""One-time codes mailed for email verification and two-step login.

A code is stored next to its absolute expiry on the user row. It is accepted
only when it matches exactly and the current time is strictly before the
expiry; the caller clears both columns once it has been accepted.
"""

import enum
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

CODE_LENGTH = 6


class CodeCheck(enum.Enum):
    VALID = "VALID"
    INVALID = "INVALID"
    EXPIRED = "EXPIRED"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_code() -> str:
    return str(100000 + secrets.randbelow(900000))


def issue_code(ttl_minutes: int) -> Tuple[str, datetime]:
    """Return a fresh code and the moment it stops being valid."""
    return generate_code(), utcnow() + timedelta(minutes=ttl_minutes)


def check_code(
    stored: Optional[str],
    expiry: Optional[datetime],
    submitted: str,
    now: Optional[datetime] = None,
) -> CodeCheck:
    if not stored or expiry is None:
        return CodeCheck.INVALID
    if not hmac.compare_digest(stored.encode(), (submitted or "").encode()):
        return CodeCheck.INVALID
    if _as_utc(expiry) <= _as_utc(now or utcnow()):
        return CodeCheck.EXPIRED
    return CodeCheck.VALID
