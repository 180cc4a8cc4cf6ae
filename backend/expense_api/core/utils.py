"""
Small shared helpers: ids, timestamps and date-string validation
"""

import re
import secrets
from datetime import datetime, date
from zoneinfo import ZoneInfo

from expense_api.core.config import settings

NANOID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789_-"

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def generate_nanoid(size: int = 21) -> str:
    """Generate a URL-safe random id (nanoid compatible alphabet)"""
    return "".join(secrets.choice(NANOID_ALPHABET) for _ in range(size))


def now_local() -> datetime:
    return datetime.now(ZoneInfo(settings.TIMEZONE))


def now_rfc3339() -> str:
    """Current time as an RFC3339 string in the configured timezone"""
    return now_local().isoformat(timespec="seconds")


def is_valid_date(value: str) -> bool:
    """
    Check a YYYY-MM-DD string that is also a real calendar date
    """
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def is_valid_month(value: str) -> bool:
    return isinstance(value, str) and bool(_MONTH_PATTERN.match(value))
