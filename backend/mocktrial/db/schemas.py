"""
Pydantic validation schemas

Semi-structured columns (party groups, voir dire sets, reschedule slots,
verdict answers) are validated here once on the way in; services store the
resulting plain JSON.
"""
from datetime import date, time
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from mocktrial.utils.validators import DATE_PATTERN, TIME_PATTERN, parse_time

# ============================================================================
# Typed JSON values
# ============================================================================

class TimeSlot(BaseModel):
    """A (date, time) pair a trial can be scheduled at"""
    date: date
    time: str

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, v):
        if isinstance(v, str) and not DATE_PATTERN.match(v.strip()):
            raise ValueError("Invalid date format. Use YYYY-MM-DD")
        return v

    @field_validator("time", mode="before")
    @classmethod
    def check_time(cls, v):
        if isinstance(v, time):
            return v.strftime("%H:%M:%S")
        if not isinstance(v, str) or not TIME_PATTERN.match(v.strip()):
            raise ValueError("Invalid time format. Use HH:MM:SS or HH:MM")
        text = v.strip()
        return f"{text}:00" if text.count(":") == 1 else text

    def as_time(self) -> time:
        return parse_time(self.time)

    def to_json(self) -> Dict[str, str]:
        return {"date": self.date.isoformat(), "time": self.time}


class PartyGroup(BaseModel):
    """Plaintiff or defendant group; unknown keys are kept"""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    members: List[Any] = Field(default_factory=list)


class VoirDireResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    question: Optional[str] = None
    answer: Any = None


VerdictResponses = Dict[str, Any]

_slot_list = TypeAdapter(List[TimeSlot])
_group_list = TypeAdapter(List[PartyGroup])
_question_list = TypeAdapter(List[str])
_response_list = TypeAdapter(List[Union[VoirDireResponse, str]])
_verdict_responses = TypeAdapter(VerdictResponses)


def parse_slots(value: Any) -> List[TimeSlot]:
    return _slot_list.validate_python(value or [])


def parse_slot(value: Any) -> TimeSlot:
    """Single slot with the plain-language errors the reschedule screens show."""
    if not isinstance(value, dict):
        raise ValueError("Time slot must be an object")
    if not value.get("date") or not value.get("time"):
        raise ValueError("Time slot must have date and time")
    if isinstance(value["date"], str) and not DATE_PATTERN.match(value["date"].strip()):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    if isinstance(value["time"], str) and not TIME_PATTERN.match(value["time"].strip()):
        raise ValueError("Invalid time format. Use HH:MM:SS or HH:MM")
    return TimeSlot.model_validate(value)


def dump_slots(slots: List[TimeSlot]) -> List[Dict[str, str]]:
    return [s.to_json() for s in slots]


def parse_party_groups(value: Any) -> List[Dict[str, Any]]:
    return [g.model_dump(exclude_none=True) for g in _group_list.validate_python(value or [])]


def parse_question_set(value: Any) -> List[str]:
    return [q.strip() for q in _question_list.validate_python(value or []) if q and q.strip()]


def parse_voir_dire_responses(value: Any) -> List[Any]:
    parsed = _response_list.validate_python(value)
    return [r.model_dump() if isinstance(r, VoirDireResponse) else r for r in parsed]


def parse_verdict_responses(value: Any) -> Dict[str, Any]:
    """Question id -> answer. Keys are normalized to strings."""
    return {str(k): v for k, v in _verdict_responses.validate_python(value).items()}


# ============================================================================
# Shared request schemas
# ============================================================================

class CaseCreate(BaseModel):
    """
    Case submission. Field checks that must report every failure at once
    live in ``case_service.validate_case_data``, so most fields are optional
    here.
    """
    case_type: Optional[str] = None
    case_jurisdiction: Optional[str] = None
    case_tier: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    case_title: Optional[str] = None
    case_description: Optional[str] = None
    scheduled_date: Optional[str] = None
    scheduled_time: Optional[str] = None
    payment_method: Optional[str] = None
    payment_amount: Optional[float] = None
    required_jurors: Optional[int] = None
    plaintiff_groups: List[Dict[str, Any]] = Field(default_factory=list)
    defendant_groups: List[Dict[str, Any]] = Field(default_factory=list)
    voir_dire_1_questions: Optional[List[str]] = None
    voir_dire_2_questions: List[str] = Field(default_factory=list)
    timezone_offset: Optional[int] = Field(None, ge=-840, le=840)
    timezone_name: Optional[str] = None


class CaseDetailsUpdate(BaseModel):
    case_title: Optional[str] = Field(None, min_length=5)
    case_description: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    payment_amount: Optional[float] = Field(None, ge=0)
    payment_method: Optional[str] = None
    required_jurors: Optional[int] = Field(None, ge=6, le=12)
    plaintiff_groups: Optional[List[Dict[str, Any]]] = None
    defendant_groups: Optional[List[Dict[str, Any]]] = None
    voir_dire_1_questions: Optional[List[str]] = None
    voir_dire_2_questions: Optional[List[str]] = None
