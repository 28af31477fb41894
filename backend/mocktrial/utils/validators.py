"""
Custom validators
"""
import re
from datetime import date, datetime, time
from typing import Any, Optional, Union

TIME_PATTERN = re.compile(r"^([0-1][0-9]|2[0-3]):([0-5][0-9])(:[0-5][0-9])?$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SHORT_HOUR_PATTERN = re.compile(r"^\d:\d{2}(:\d{2})?$")


def normalize_time_text(value: str) -> str:
    """Strip and zero-pad a one-digit hour ("9:00" becomes "09:00")."""
    text = (value or "").strip()
    if SHORT_HOUR_PATTERN.match(text):
        text = f"0{text}"
    return text


def parse_time(value: Union[str, time]) -> time:
    """Parse HH:MM or HH:MM:SS into a ``time`` (seconds default to 0)."""
    if isinstance(value, time):
        return value.replace(microsecond=0)
    text = normalize_time_text(value)
    if not TIME_PATTERN.match(text):
        raise ValueError(f"Invalid time format: {value}")
    if text.count(":") == 1:
        text = f"{text}:00"
    return datetime.strptime(text, "%H:%M:%S").time()


def parse_date(value: Union[str, date]) -> date:
    """Parse YYYY-MM-DD into a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if not DATE_PATTERN.match(text):
        raise ValueError(f"Invalid date format: {value}")
    return datetime.strptime(text, "%Y-%m-%d").date()


def format_time(value: Optional[time]) -> Optional[str]:
    """Render a time as HH:MM:SS."""
    if value is None:
        return None
    return value.strftime("%H:%M:%S")


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Validate email format"""
    return bool(EMAIL_PATTERN.match(normalize_email(email)))


def clamp(value: Any, low: int, high: int, default: int) -> int:
    """Coerce ``value`` to int and clamp into [low, high]."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return max(low, min(high, number))
