"""
Jurisdiction timezone helpers.

Case times are entered in the attorney's local clock and stored in UTC.
"Today" for a jurisdiction is resolved through the IANA database; states that
span several zones map to the zone covering most of their population.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mocktrial.core.config import settings

logger = logging.getLogger(__name__)

# (postal code, full name) -> IANA zone
_STATE_ZONES = {
    ("AL", "Alabama"): "America/Chicago",
    ("AK", "Alaska"): "America/Anchorage",
    ("AZ", "Arizona"): "America/Phoenix",
    ("AR", "Arkansas"): "America/Chicago",
    ("CA", "California"): "America/Los_Angeles",
    ("CO", "Colorado"): "America/Denver",
    ("CT", "Connecticut"): "America/New_York",
    ("DE", "Delaware"): "America/New_York",
    ("DC", "District of Columbia"): "America/New_York",
    ("FL", "Florida"): "America/New_York",
    ("GA", "Georgia"): "America/New_York",
    ("HI", "Hawaii"): "Pacific/Honolulu",
    ("ID", "Idaho"): "America/Boise",
    ("IL", "Illinois"): "America/Chicago",
    ("IN", "Indiana"): "America/Indiana/Indianapolis",
    ("IA", "Iowa"): "America/Chicago",
    ("KS", "Kansas"): "America/Chicago",
    ("KY", "Kentucky"): "America/New_York",
    ("LA", "Louisiana"): "America/Chicago",
    ("ME", "Maine"): "America/New_York",
    ("MD", "Maryland"): "America/New_York",
    ("MA", "Massachusetts"): "America/New_York",
    ("MI", "Michigan"): "America/Detroit",
    ("MN", "Minnesota"): "America/Chicago",
    ("MS", "Mississippi"): "America/Chicago",
    ("MO", "Missouri"): "America/Chicago",
    ("MT", "Montana"): "America/Denver",
    ("NE", "Nebraska"): "America/Chicago",
    ("NV", "Nevada"): "America/Los_Angeles",
    ("NH", "New Hampshire"): "America/New_York",
    ("NJ", "New Jersey"): "America/New_York",
    ("NM", "New Mexico"): "America/Denver",
    ("NY", "New York"): "America/New_York",
    ("NC", "North Carolina"): "America/New_York",
    ("ND", "North Dakota"): "America/Chicago",
    ("OH", "Ohio"): "America/New_York",
    ("OK", "Oklahoma"): "America/Chicago",
    ("OR", "Oregon"): "America/Los_Angeles",
    ("PA", "Pennsylvania"): "America/New_York",
    ("RI", "Rhode Island"): "America/New_York",
    ("SC", "South Carolina"): "America/New_York",
    ("SD", "South Dakota"): "America/Chicago",
    ("TN", "Tennessee"): "America/Chicago",
    ("TX", "Texas"): "America/Chicago",
    ("UT", "Utah"): "America/Denver",
    ("VT", "Vermont"): "America/New_York",
    ("VA", "Virginia"): "America/New_York",
    ("WA", "Washington"): "America/Los_Angeles",
    ("WV", "West Virginia"): "America/New_York",
    ("WI", "Wisconsin"): "America/Chicago",
    ("WY", "Wyoming"): "America/Denver",
    ("PR", "Puerto Rico"): "America/Puerto_Rico",
    (None, "India"): "Asia/Kolkata",
}

JURISDICTION_ZONES = {}
for (_code, _name), _zone in _STATE_ZONES.items():
    if _code:
        JURISDICTION_ZONES[_code.upper()] = _zone
    JURISDICTION_ZONES[_name.upper()] = _zone


def zone_for(jurisdiction: Optional[str]) -> ZoneInfo:
    """
    Resolve a state code, state name, or IANA id to a ``ZoneInfo``.

    Unknown values fall back to ``settings.DEFAULT_TIMEZONE`` with a warning
    rather than silently using offset 0.
    """
    key = (jurisdiction or "").strip()
    if key:
        mapped = JURISDICTION_ZONES.get(key.upper())
        if mapped:
            return ZoneInfo(mapped)
        if "/" in key:
            try:
                return ZoneInfo(key)
            except (ZoneInfoNotFoundError, ValueError):
                pass
    logger.warning(
        "No timezone known for jurisdiction %r, using %s",
        jurisdiction, settings.DEFAULT_TIMEZONE,
    )
    return ZoneInfo(settings.DEFAULT_TIMEZONE)


def is_valid_zone(name: Optional[str]) -> bool:
    if not name or ("/" not in name and name != "UTC"):
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def local_today(jurisdiction: Optional[str], now: Optional[datetime] = None) -> date:
    """Calendar date right now in the jurisdiction's local clock."""
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(zone_for(jurisdiction)).date()


def offset_minutes_for(zone_name: str, local_date: date, local_time: time) -> int:
    """UTC offset (minutes east) of ``zone_name`` at the given local wall time."""
    local = datetime.combine(local_date, local_time).replace(tzinfo=ZoneInfo(zone_name))
    return int(local.utcoffset().total_seconds() // 60)


def to_utc(local_date: date, local_time: time, offset_minutes: int) -> datetime:
    """
    Convert a local wall time to naive UTC.

    ``offset_minutes`` is minutes east of UTC (+330 for India), so
    2025-01-01 00:30 at +330 becomes 2024-12-31 19:00.
    """
    return datetime.combine(local_date, local_time) - timedelta(minutes=offset_minutes)
