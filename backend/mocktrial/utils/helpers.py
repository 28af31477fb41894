"""
Utility helper functions
"""
import json
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional


def to_uuid(value: Any) -> Optional[uuid.UUID]:
    """Parse a UUID; returns None for anything that isn't one."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def uuid_list(values) -> List[uuid.UUID]:
    """Keep only the parseable ids, preserving order and dropping repeats."""
    out: List[uuid.UUID] = []
    for value in values or []:
        parsed = to_uuid(value)
        if parsed is not None and parsed not in out:
            out.append(parsed)
    return out


def str_or_none(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def format_date(value: Optional[date]) -> Optional[str]:
    """Format date as YYYY-MM-DD"""
    if not value:
        return None
    return value.strftime("%Y-%m-%d")


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def coerce_json_list(value: Any) -> List[Any]:
    """Stored JSON that isn't a list (or won't parse) reads as []."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return []
    return value if isinstance(value, list) else []


def coerce_json_dict(value: Any) -> Dict[str, Any]:
    """Stored JSON that isn't an object (or won't parse) reads as {}."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            return {}
    return value if isinstance(value, dict) else {}


def enum_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def truncate_text(text: str, length: int = 100) -> str:
    """Truncate text to specified length"""
    if len(text) <= length:
        return text
    return text[:length] + "..."
