"""
services/case_service.py

Case submission, scheduling and lifecycle.

Called by:
  - api/v1/endpoints/cases.py
  - services/application_service.py, verdict_service.py, reschedule services

Scheduling rules:
  - Attorneys enter a local date/time; it is stored in UTC using the
    client-reported offset (minutes east of UTC) or, failing that, the
    offset of the IANA zone they name.
  - A (date, time) slot belongs to at most one live case. The partial unique
    index ``uq_cases_active_slot`` is the guarantee; the availability query
    only exists to give a friendlier error first.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import (
    AdminApprovalStatus,
    ApplicationStatus,
    Attorney,
    AttorneyStatus,
    Case,
    CaseJurisdiction,
    CaseTier,
    CaseType,
    JuryChargeStatus,
    JurorApplication,
)
from mocktrial.db.schemas import (
    dump_slots,
    parse_party_groups,
    parse_question_set,
    parse_slots,
    TimeSlot,
)
from mocktrial.services import admin_calendar_service
from mocktrial.services.case_lifecycle import (
    AdminDecision,
    CaseState,
    DecisionKind,
    TransitionResult,
    apply_admin_decision,
    check_transition,
    decision_for,
)
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import notify
from mocktrial.utils.exceptions import (
    BusinessRuleError,
    CaseNotFoundError,
    NotFoundError,
    SlotUnavailableError,
    ValidationError,
)
from mocktrial.utils.helpers import enum_value, format_date, iso, str_or_none, to_uuid
from mocktrial.utils.timezones import local_today, offset_minutes_for, to_utc
from mocktrial.utils.validators import (
    DATE_PATTERN,
    TIME_PATTERN,
    clamp,
    format_time,
    normalize_time_text,
    parse_date,
    parse_time,
)

logger = logging.getLogger(__name__)

STANDARD_VOIR_DIRE_QUESTIONS = [
    "Do you know or recognize any of the parties involved in this case?",
    "Have you or a close family member ever had a dispute similar to the one in this case?",
    "Do you have any personal or financial interest in the outcome of this case?",
    "Do you have any bias, either for or against one of the parties, that could affect your ability to decide this case fairly?",
    "Is there any reason, personal, emotional, or otherwise, that would prevent you from being fair and impartial in this case?",
    "Do you have any health, time, or other personal issues that would prevent you from fully attending and completing your role as a juror in this case?",
    "Do you believe you can listen to all the evidence presented and base your decision solely on the facts and the law, regardless of personal feelings?",
]

UPDATABLE_DETAIL_FIELDS = (
    "case_title",
    "case_description",
    "scheduled_date",
    "scheduled_time",
    "payment_amount",
    "payment_method",
    "required_jurors",
    "plaintiff_groups",
    "defendant_groups",
    "voir_dire_1_questions",
    "voir_dire_2_questions",
)

_JSON_FIELDS = {
    "plaintiff_groups": parse_party_groups,
    "defendant_groups": parse_party_groups,
    "voir_dire_1_questions": parse_question_set,
    "voir_dire_2_questions": parse_question_set,
}

_JSON_LABELS = {
    "plaintiff_groups": "Plaintiff groups",
    "defendant_groups": "Defendant groups",
    "voir_dire_1_questions": "Voir dire 1 questions",
    "voir_dire_2_questions": "Voir dire 2 questions",
}


# ============================================================================
# Formatting
# ============================================================================

def _case_to_api(case: Case, **extra: Any) -> Dict[str, Any]:
    attorney = case.attorney
    out = {
        "id": str(case.id),
        "attorneyId": str(case.attorney_id),
        "attorneyName": attorney.full_name if attorney else None,
        "lawFirmName": attorney.law_firm_name if attorney else None,
        "caseType": enum_value(case.case_type),
        "caseJurisdiction": enum_value(case.case_jurisdiction),
        "caseTier": enum_value(case.case_tier),
        "state": case.state,
        "county": case.county,
        "caseTitle": case.case_title,
        "caseDescription": case.case_description,
        "scheduledDate": format_date(case.scheduled_date),
        "scheduledTime": format_time(case.scheduled_time),
        "timezoneOffsetMinutes": case.timezone_offset_minutes,
        "timezoneName": case.timezone_name,
        "paymentMethod": case.payment_method,
        "paymentAmount": case.payment_amount,
        "requiredJurors": case.required_jurors or settings.DEFAULT_REQUIRED_JURORS,
        "plaintiffGroups": case.plaintiff_groups or [],
        "defendantGroups": case.defendant_groups or [],
        "voirDire1Questions": case.voir_dire_1_questions or [],
        "voirDire2Questions": case.voir_dire_2_questions or [],
        "attorneyStatus": enum_value(case.attorney_status),
        "adminApprovalStatus": enum_value(case.admin_approval_status),
        "adminComments": case.admin_comments,
        "approvedAt": iso(case.approved_at),
        "approvedBy": str_or_none(case.approved_by),
        "rejectedAt": iso(case.rejected_at),
        "rejectedBy": str_or_none(case.rejected_by),
        "juryChargeStatus": enum_value(case.jury_charge_status),
        "juryChargeReleasedAt": iso(case.jury_charge_released_at),
        "rescheduleRequired": case.reschedule_required,
        "alternateSlots": case.alternate_slots or [],
        "originalScheduledDate": format_date(case.original_scheduled_date),
        "originalScheduledTime": format_time(case.original_scheduled_time),
        "rescheduleRequestedAt": iso(case.reschedule_requested_at),
        "isDeleted": case.is_deleted,
        "deletedAt": iso(case.deleted_at),
        "createdAt": iso(case.created_at),
        "updatedAt": iso(case.updated_at),
    }
    out.update(extra)
    return out


def _application_count(status: ApplicationStatus):
    return (
        select(func.count(JurorApplication.id))
        .where(JurorApplication.case_id == Case.id, JurorApplication.status == status)
        .correlate(Case)
        .scalar_subquery()
    )


# ============================================================================
# Validation
# ============================================================================

def _is_slot_conflict(exc: IntegrityError) -> bool:
    message = str(getattr(exc, "orig", exc))
    return "uq_cases_active_slot" in message or "cases.scheduled_date" in message


def _resolve_offset(
    local_date: date,
    local_time: time,
    timezone_offset: Optional[int],
    timezone_name: Optional[str],
) -> int:
    if timezone_offset is not None:
        return int(timezone_offset)
    if timezone_name and "/" in timezone_name:
        try:
            return offset_minutes_for(timezone_name, local_date, local_time)
        except Exception:
            logger.warning("Unknown timezone name %r, treating schedule as UTC", timezone_name)
    return 0


def _parse_json_fields(data: Dict[str, Any], errors: List[str]) -> Dict[str, Any]:
    parsed: Dict[str, Any] = {}
    for field, parser in _JSON_FIELDS.items():
        if field not in data or data[field] is None:
            continue
        try:
            parsed[field] = parser(data[field])
        except PydanticValidationError:
            errors.append(f"{_JSON_LABELS[field]} must be a list")
    return parsed


def validate_case_data(
    attorney_id: Optional[str],
    data: Dict[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Check a case submission and return the normalized values.

    Every failed check is collected so the attorney sees all problems at once;
    raises ``ValidationError`` if any failed.
    """
    errors: List[str] = []
    now = now or datetime.utcnow()

    if not attorney_id:
        errors.append("Attorney ID is required")

    case_type = data.get("case_type")
    if not case_type:
        errors.append("Case type is required")
    elif case_type not in CaseType._value2member_map_:
        errors.append("Invalid case type. Must be 'Civil' or 'Criminal'")

    jurisdiction = data.get("case_jurisdiction")
    if not jurisdiction:
        errors.append("Case jurisdiction is required")
    elif jurisdiction not in CaseJurisdiction._value2member_map_:
        errors.append("Invalid case jurisdiction. Must be 'State' or 'Federal'")

    tier = data.get("case_tier")
    if not tier:
        errors.append("Case tier is required")
    elif tier not in CaseTier._value2member_map_:
        errors.append("Invalid case tier. Must be Tier 1, 2, or 3")

    if not (data.get("state") or "").strip():
        errors.append("State is required")
    if not (data.get("county") or "").strip():
        errors.append("County is required")

    title = (data.get("case_title") or "").strip()
    if not title:
        errors.append("Case title is required")
    elif len(title) < 5:
        errors.append("Case title must be at least 5 characters")

    raw_date = data.get("scheduled_date")
    raw_time = data.get("scheduled_time")
    if isinstance(raw_date, date):
        raw_date = raw_date.isoformat()
    if isinstance(raw_time, time):
        raw_time = raw_time.strftime("%H:%M:%S")
    raw_date = (raw_date or "").strip()
    raw_time = normalize_time_text(raw_time or "")

    if not raw_date:
        errors.append("Scheduled date is required")
    if not raw_time:
        errors.append("Scheduled time is required")
    elif not TIME_PATTERN.match(raw_time):
        errors.append("Invalid time format. Expected HH:MM or HH:MM:SS (e.g., 09:00 or 14:30)")

    local_date = local_time = None
    offset = 0
    if raw_date and raw_time and TIME_PATTERN.match(raw_time):
        try:
            if not DATE_PATTERN.match(raw_date):
                raise ValueError(raw_date)
            local_date = parse_date(raw_date)
            local_time = parse_time(raw_time)
        except ValueError:
            errors.append("Invalid date/time format")
        else:
            offset = _resolve_offset(
                local_date, local_time, data.get("timezone_offset"), data.get("timezone_name")
            )
            utc_dt = to_utc(local_date, local_time, offset)
            if utc_dt <= now - timedelta(minutes=settings.SCHEDULE_GRACE_MINUTES):
                errors.append("Scheduled date/time must be in the future")

    amount = data.get("payment_amount")
    if amount is not None:
        try:
            if float(amount) < 0:
                errors.append("Payment amount must be a positive number")
        except (TypeError, ValueError):
            errors.append("Payment amount must be a positive number")

    required = data.get("required_jurors")
    if required is not None:
        try:
            required = int(required)
        except (TypeError, ValueError):
            required = -1
        if not settings.MIN_REQUIRED_JURORS <= required <= settings.MAX_REQUIRED_JURORS:
            errors.append(
                f"Required jurors must be between {settings.MIN_REQUIRED_JURORS} "
                f"and {settings.MAX_REQUIRED_JURORS}"
            )

    json_values = _parse_json_fields(data, errors)

    if errors:
        raise ValidationError(errors, prefix="Case validation failed")

    utc_dt = to_utc(local_date, local_time, offset)
    return {
        "case_type": CaseType(case_type),
        "case_jurisdiction": CaseJurisdiction(jurisdiction),
        "case_tier": CaseTier(tier),
        "state": data["state"].strip().upper(),
        "county": data["county"].strip(),
        "case_title": title,
        "case_description": (data.get("case_description") or "").strip() or None,
        "scheduled_date": utc_dt.date(),
        "scheduled_time": utc_dt.time(),
        "timezone_offset_minutes": offset,
        "timezone_name": data.get("timezone_name"),
        "payment_method": data.get("payment_method"),
        "payment_amount": float(amount) if amount is not None else 0.0,
        "required_jurors": required if required is not None else settings.DEFAULT_REQUIRED_JURORS,
        "plaintiff_groups": json_values.get("plaintiff_groups", []),
        "defendant_groups": json_values.get("defendant_groups", []),
        "voir_dire_1_questions": json_values.get("voir_dire_1_questions") or list(STANDARD_VOIR_DIRE_QUESTIONS),
        "voir_dire_2_questions": json_values.get("voir_dire_2_questions", []),
    }


# ============================================================================
# Create
# ============================================================================

def create_case(db: Session, attorney_id: str, data: Dict[str, Any]) -> Case:
    """
    Validate, convert the schedule to UTC and persist a new pending/pending case.

    ``data`` uses the ``CaseCreate`` field names, including the optional
    ``timezone_offset`` (minutes east of UTC) and ``timezone_name``.
    """
    values = validate_case_data(attorney_id, data)

    attorney_uuid = to_uuid(attorney_id)
    if attorney_uuid is None or db.get(Attorney, attorney_uuid) is None:
        raise NotFoundError("Attorney", attorney_id)

    availability = check_slot_availability(db, values["scheduled_date"], values["scheduled_time"])
    if not availability["available"]:
        raise SlotUnavailableError(
            "This time slot is already booked. Please choose another slot.",
            conflicting_case_id=availability["conflictingCaseId"],
        )

    case = Case(
        attorney_id=attorney_uuid,
        attorney_status=AttorneyStatus.pending,
        admin_approval_status=AdminApprovalStatus.pending,
        is_deleted=False,
        **values,
    )
    db.add(case)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_slot_conflict(e):
            raise SlotUnavailableError(
                "This time slot is already booked. Please choose another slot."
            ) from e
        raise
    db.refresh(case)

    logger.info(
        "Case created: %s (attorney=%s, slot=%s %s UTC, offset=%s)",
        case.id, attorney_id, case.scheduled_date, case.scheduled_time,
        case.timezone_offset_minutes,
    )
    record_event(
        db, str(case.id), "case_created",
        f"Case '{case.case_title}' submitted for review",
        triggered_by=attorney_id, user_type="attorney",
    )
    return case


# ============================================================================
# Read
# ============================================================================

def get_case(db: Session, case_id: str) -> Optional[Case]:
    """Direct lookup by id. Soft-deleted cases are returned too."""
    cid = to_uuid(case_id)
    if cid is None:
        return None
    return db.query(Case).filter(Case.id == cid).first()


def get_live_case(db: Session, case_id: str) -> Case:
    """Non-deleted case or ``CaseNotFoundError``."""
    case = get_case(db, case_id)
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    return case


def get_case_detail(db: Session, case_id: str) -> Optional[Dict[str, Any]]:
    case = get_case(db, case_id)
    if case is None:
        return None
    return _case_to_api(
        case,
        approvedJurors=get_approved_jurors_count(db, case_id),
    )


def get_cases_by_attorney(
    db:                    Session,
    attorney_id:           str,
    status:                Optional[str] = None,
    admin_approval_status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    approved = _application_count(ApplicationStatus.approved).label("approved_jurors")
    pending = _application_count(ApplicationStatus.pending).label("pending_applications")

    query = db.query(Case, approved, pending).filter(
        Case.attorney_id == to_uuid(attorney_id),
        Case.is_deleted == False,  # noqa: E712
    )
    if status:
        query = query.filter(Case.attorney_status == AttorneyStatus(status))
    if admin_approval_status:
        query = query.filter(Case.admin_approval_status == AdminApprovalStatus(admin_approval_status))

    rows = query.order_by(Case.scheduled_date.desc(), Case.created_at.desc()).all()
    return [
        _case_to_api(case, approvedJurors=a or 0, pendingApplications=p or 0)
        for case, a, p in rows
    ]


def get_cases_pending_admin_approval(db: Session, limit: int = 50) -> List[Dict[str, Any]]:
    limit = clamp(limit, 1, 100, 50)
    rows = (
        db.query(Case)
        .filter(
            Case.admin_approval_status == AdminApprovalStatus.pending,
            Case.is_deleted == False,  # noqa: E712
        )
        .order_by(Case.created_at.asc())
        .limit(limit)
        .all()
    )
    return [_case_to_api(c) for c in rows]


def get_available_cases_for_jurors(
    db:       Session,
    county:   Optional[str],
    juror_id: Optional[str] = None,
    state:    Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Cases a juror can apply to: war room open, admin approved, not deleted,
    matching state/county (trimmed, case-insensitive), not already applied
    to, fewer than ``CASE_FULL_JUROR_CAP`` approved jurors, and trial day not
    yet past in the attorney's local calendar.
    """
    approved_label = _application_count(ApplicationStatus.approved).label("approved_jurors")
    pending_label = _application_count(ApplicationStatus.pending).label("pending_applications")

    query = (
        db.query(Case, approved_label, pending_label)
        .filter(
            Case.attorney_status == AttorneyStatus.war_room,
            Case.admin_approval_status == AdminApprovalStatus.approved,
            Case.is_deleted == False,  # noqa: E712
            _application_count(ApplicationStatus.approved) < settings.CASE_FULL_JUROR_CAP,
        )
    )

    if state and state.strip():
        query = query.filter(func.upper(func.trim(Case.state)) == state.strip().upper())
    if county and county.strip():
        query = query.filter(func.lower(func.trim(Case.county)) == county.strip().lower())

    juror_uuid = to_uuid(juror_id)
    if juror_uuid is not None:
        applied = select(JurorApplication.case_id).where(JurorApplication.juror_id == juror_uuid)
        query = query.filter(~Case.id.in_(applied))

    rows = query.order_by(Case.scheduled_date.asc()).all()

    now = datetime.utcnow()
    available = []
    for case, approved, pending in rows:
        attorney = case.attorney
        zone_key = (attorney.timezone or attorney.state) if attorney else case.state
        if case.scheduled_date < local_today(zone_key, now):
            continue
        available.append(
            _case_to_api(case, approvedJurors=approved or 0, pendingApplications=pending or 0)
        )
    return available


def get_all_cases(
    db:                    Session,
    page:                  int           = 1,
    limit:                 int           = 20,
    admin_approval_status: Optional[str] = None,
    attorney_status:       Optional[str] = None,
    county:                Optional[str] = None,
    case_type:             Optional[str] = None,
    search:                Optional[str] = None,
) -> Dict[str, Any]:
    page = max(1, int(page or 1))
    limit = clamp(limit, 1, 100, 20)

    query = db.query(Case).filter(Case.is_deleted == False)  # noqa: E712
    if admin_approval_status:
        query = query.filter(Case.admin_approval_status == AdminApprovalStatus(admin_approval_status))
    if attorney_status:
        query = query.filter(Case.attorney_status == AttorneyStatus(attorney_status))
    if county:
        query = query.filter(func.lower(Case.county) == county.strip().lower())
    if case_type:
        query = query.filter(Case.case_type == CaseType(case_type))
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(Case.case_title.ilike(term), Case.case_description.ilike(term)))

    total = query.count()
    rows = (
        query.order_by(Case.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "cases": [_case_to_api(c) for c in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": (total + limit - 1) // limit,
    }


def get_approved_jurors_count(db: Session, case_id: str) -> int:
    return (
        db.query(func.count(JurorApplication.id))
        .filter(
            JurorApplication.case_id == to_uuid(case_id),
            JurorApplication.status == ApplicationStatus.approved,
        )
        .scalar()
        or 0
    )


def get_reschedule_cases_for_attorney(db: Session, attorney_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(Case)
        .filter(
            Case.attorney_id == to_uuid(attorney_id),
            Case.reschedule_required == True,  # noqa: E712
            Case.is_deleted == False,  # noqa: E712
        )
        .order_by(Case.reschedule_requested_at.desc())
        .all()
    )
    return [_case_to_api(c) for c in rows]


def get_case_statistics(db: Session) -> Dict[str, int]:
    live = db.query(Case).filter(Case.is_deleted == False)  # noqa: E712

    def _count(*criteria) -> int:
        return live.filter(*criteria).count()

    return {
        "total": live.count(),
        "pending": _count(Case.admin_approval_status == AdminApprovalStatus.pending),
        "approved": _count(Case.admin_approval_status == AdminApprovalStatus.approved),
        "rejected": _count(Case.admin_approval_status == AdminApprovalStatus.rejected),
        "warRoom": _count(Case.attorney_status == AttorneyStatus.war_room),
        "joinTrial": _count(Case.attorney_status == AttorneyStatus.join_trial),
        "completed": _count(Case.attorney_status == AttorneyStatus.completed),
        "cancelled": _count(Case.attorney_status == AttorneyStatus.cancelled),
    }


# ============================================================================
# Slots
# ============================================================================

def _parse_slot_query(scheduled_date, scheduled_time) -> tuple:
    errors = []
    slot_date = slot_time = None
    try:
        slot_date = parse_date(scheduled_date)
    except (TypeError, ValueError):
        errors.append("Invalid date format. Use YYYY-MM-DD")
    try:
        slot_time = parse_time(scheduled_time)
    except (TypeError, ValueError):
        errors.append("Invalid time format. Use HH:MM or HH:MM:SS")
    if errors:
        raise ValidationError(errors, prefix="Slot check failed")
    return slot_date, slot_time


def check_slot_availability(
    db:              Session,
    scheduled_date:  Union[str, date],
    scheduled_time:  Union[str, time],
    exclude_case_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Point query for another live case on exactly this (date, time).

    Times are normalized to whole seconds, so "09:00" and "09:00:00" are the
    same slot. Only non-deleted cases awaiting or holding approval block.
    """
    slot_date, slot_time = _parse_slot_query(scheduled_date, scheduled_time)

    query = db.query(Case.id, Case.case_title).filter(
        Case.scheduled_date == slot_date,
        Case.scheduled_time == slot_time,
        Case.is_deleted == False,  # noqa: E712
        Case.admin_approval_status.in_([AdminApprovalStatus.pending, AdminApprovalStatus.approved]),
    )
    exclude = to_uuid(exclude_case_id)
    if exclude is not None:
        query = query.filter(Case.id != exclude)

    conflict = query.first()
    return {
        "available": conflict is None,
        "conflictingCaseId": str(conflict.id) if conflict else None,
        "conflictingCaseTitle": conflict.case_title if conflict else None,
    }


# ============================================================================
# Update
# ============================================================================

def update_case_status(
    db:                      Session,
    case_id:                 str,
    attorney_status:         Optional[str]      = None,
    admin_approval_status:   Optional[str]      = None,
    admin_comments:          Optional[str]      = None,
    admin_id:                Optional[str]      = None,
    jury_charge_status:      Optional[str]      = None,
    jury_charge_released_at: Optional[datetime] = None,
    jury_charge_released_by: Optional[str]      = None,
) -> Case:
    """
    Field-level status updater used by admin tooling.

    An approval/rejection runs through ``apply_admin_decision`` so the war
    room opens and approver/rejecter stamps are set in the same write.
    """
    if all(
        v is None
        for v in (
            attorney_status, admin_approval_status, admin_comments,
            jury_charge_status, jury_charge_released_at, jury_charge_released_by,
        )
    ):
        raise ValidationError(["No valid fields to update"], prefix="Case update failed")

    errors = []
    if attorney_status is not None and attorney_status not in AttorneyStatus._value2member_map_:
        errors.append(f"Invalid attorney status: {attorney_status}")
    if admin_approval_status is not None and admin_approval_status not in AdminApprovalStatus._value2member_map_:
        errors.append(f"Invalid admin approval status: {admin_approval_status}")
    if jury_charge_status is not None and jury_charge_status not in JuryChargeStatus._value2member_map_:
        errors.append(f"Invalid jury charge status: {jury_charge_status}")
    if errors:
        raise ValidationError(errors, prefix="Case update failed")

    case = get_live_case(db, case_id)
    now = datetime.utcnow()
    previous_approval = AdminApprovalStatus(case.admin_approval_status)

    state = CaseState.from_case(case)
    if attorney_status is not None:
        state = replace(state, attorney_status=AttorneyStatus(attorney_status))
    decision = None
    if admin_approval_status is not None:
        decision = decision_for(AdminApprovalStatus(admin_approval_status), to_uuid(admin_id), admin_comments)
    if decision is not None:
        state = apply_admin_decision(state, decision, now)
    else:
        if admin_approval_status is not None:
            state = replace(state, admin_approval_status=AdminApprovalStatus(admin_approval_status))
        if admin_comments is not None:
            state = replace(state, admin_comments=admin_comments)
    state.apply_to(case)

    if jury_charge_status is not None:
        case.jury_charge_status = JuryChargeStatus(jury_charge_status)
    if jury_charge_released_at is not None:
        case.jury_charge_released_at = jury_charge_released_at
    if jury_charge_released_by is not None:
        case.jury_charge_released_by = to_uuid(jury_charge_released_by)

    try:
        db.commit()
    except IntegrityError as e:
        # Re-activating a rejected case can collide with a slot taken since
        db.rollback()
        if _is_slot_conflict(e):
            raise SlotUnavailableError() from e
        raise
    db.refresh(case)

    logger.info(
        "Case status updated: %s (attorney_status=%s, approval=%s)",
        case.id, enum_value(case.attorney_status), enum_value(case.admin_approval_status),
    )

    if decision is not None and previous_approval != case.admin_approval_status:
        _after_admin_decision(db, case, decision)

    return case


def _after_admin_decision(db: Session, case: Case, decision: AdminDecision) -> None:
    admin_id = str_or_none(decision.admin_id)
    if decision.kind == DecisionKind.approve:
        admin_calendar_service.reserve_slot_for_case(
            db, str(case.id), case.scheduled_date, case.scheduled_time
        )
        record_event(
            db, str(case.id), "admin_approved", "Case approved by admin",
            triggered_by=admin_id, user_type="admin",
        )
        notify(
            db,
            user_id=str(case.attorney_id),
            user_type="attorney",
            notification_type="case_approved",
            title="Case approved",
            message=f"Your case '{case.case_title}' was approved. The war room is open.",
            case_id=str(case.id),
        )
    else:
        admin_calendar_service.release_slots_for_case(db, str(case.id))
        record_event(
            db, str(case.id), "admin_rejected", "Case rejected by admin",
            triggered_by=admin_id, user_type="admin",
            metadata={"comments": decision.comments} if decision.comments else None,
        )
        notify(
            db,
            user_id=str(case.attorney_id),
            user_type="attorney",
            notification_type="case_rejected",
            title="Case rejected",
            message=decision.comments or f"Your case '{case.case_title}' was not approved.",
            case_id=str(case.id),
        )


def update_case_details(db: Session, case_id: str, updates: Dict[str, Any]) -> Case:
    """
    Update attorney-editable fields. A new date/time is read in the case's
    stored local offset and converted to UTC like at creation.
    """
    fields = {k: v for k, v in (updates or {}).items() if k in UPDATABLE_DETAIL_FIELDS and v is not None}
    if not fields:
        raise ValidationError(["No valid fields to update"], prefix="Case update failed")

    case = get_live_case(db, case_id)

    errors: List[str] = []
    json_values = _parse_json_fields(fields, errors)
    if "case_title" in fields and len(str(fields["case_title"]).strip()) < 5:
        errors.append("Case title must be at least 5 characters")
    if "required_jurors" in fields and not (
        settings.MIN_REQUIRED_JURORS <= int(fields["required_jurors"]) <= settings.MAX_REQUIRED_JURORS
    ):
        errors.append(
            f"Required jurors must be between {settings.MIN_REQUIRED_JURORS} "
            f"and {settings.MAX_REQUIRED_JURORS}"
        )
    if "payment_amount" in fields and float(fields["payment_amount"]) < 0:
        errors.append("Payment amount must be a positive number")

    new_date = new_time = None
    if "scheduled_date" in fields or "scheduled_time" in fields:
        offset = case.timezone_offset_minutes or 0
        local = datetime.combine(case.scheduled_date, case.scheduled_time) + timedelta(minutes=offset)
        try:
            local_date = parse_date(fields["scheduled_date"]) if "scheduled_date" in fields else local.date()
            local_time = parse_time(fields["scheduled_time"]) if "scheduled_time" in fields else local.time()
        except ValueError:
            errors.append("Invalid date/time format")
        else:
            utc_dt = to_utc(local_date, local_time, offset)
            if utc_dt <= datetime.utcnow() - timedelta(minutes=settings.SCHEDULE_GRACE_MINUTES):
                errors.append("Scheduled date/time must be in the future")
            else:
                new_date, new_time = utc_dt.date(), utc_dt.time()

    if errors:
        raise ValidationError(errors, prefix="Case validation failed")

    if new_date is not None:
        availability = check_slot_availability(db, new_date, new_time, exclude_case_id=str(case.id))
        if not availability["available"]:
            raise SlotUnavailableError(conflicting_case_id=availability["conflictingCaseId"])
        case.scheduled_date = new_date
        case.scheduled_time = new_time

    for field in ("case_title", "case_description", "payment_method"):
        if field in fields:
            setattr(case, field, str(fields[field]).strip())
    if "payment_amount" in fields:
        case.payment_amount = float(fields["payment_amount"])
    if "required_jurors" in fields:
        case.required_jurors = int(fields["required_jurors"])
    for field, value in json_values.items():
        setattr(case, field, value)

    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_slot_conflict(e):
            raise SlotUnavailableError() from e
        raise
    db.refresh(case)

    logger.info("Case details updated: %s (fields=%s)", case.id, sorted(fields))
    record_event(
        db, str(case.id), "case_updated", "Case details updated",
        triggered_by=str(case.attorney_id), user_type="attorney",
        metadata={"fields": sorted(fields)},
    )
    return case


def soft_delete_case(db: Session, case_id: str) -> bool:
    """Flag the case deleted; it stays readable by id. Frees its slot."""
    case = get_case(db, case_id)
    if case is None or case.is_deleted:
        return False
    case.is_deleted = True
    case.deleted_at = datetime.utcnow()
    db.commit()

    admin_calendar_service.release_slots_for_case(db, str(case.id))
    logger.info("Case soft-deleted: %s", case.id)
    return True


# ============================================================================
# Reschedule
# ============================================================================

def request_reschedule(
    db:              Session,
    case_id:         str,
    admin_id:        str,
    alternate_slots: List[Any],
) -> bool:
    """
    Admin asks the attorney to move the case. ``alternate_slots`` is empty
    (attorney picks freely) or exactly three admin suggestions.
    """
    if not isinstance(alternate_slots, list) or len(alternate_slots) not in (0, 3):
        raise BusinessRuleError(
            "Alternate slots must be either 0 (attorney picks) or 3 (admin suggests)",
            code="INVALID_ALTERNATE_SLOTS",
        )
    try:
        slots = parse_slots(alternate_slots)
    except PydanticValidationError as e:
        raise ValidationError(
            [err["msg"] for err in e.errors()], prefix="Reschedule validation failed"
        ) from e

    case = get_live_case(db, case_id)
    case.reschedule_required = True
    case.alternate_slots = dump_slots(slots)
    case.original_scheduled_date = case.scheduled_date
    case.original_scheduled_time = case.scheduled_time
    case.reschedule_requested_by = to_uuid(admin_id)
    case.reschedule_requested_at = datetime.utcnow()
    db.commit()

    logger.info("Reschedule requested: case=%s admin=%s slots=%s", case.id, admin_id, len(slots))
    record_event(
        db, str(case.id), "admin_requested_reschedule", "Admin requested a new trial slot",
        triggered_by=admin_id, user_type="admin",
        metadata={"alternateSlots": case.alternate_slots},
    )
    notify(
        db,
        user_id=str(case.attorney_id),
        user_type="attorney",
        notification_type="case_reschedule_requested",
        title="Please choose a new trial time",
        message=f"Your case '{case.case_title}' needs a new time slot.",
        case_id=str(case.id),
    )
    return True


def confirm_reschedule(db: Session, case_id: str, selected_slot: Union[TimeSlot, Dict[str, Any]]) -> bool:
    """
    Attorney picks a slot. Availability is re-checked, then the move and the
    approval happen in one conditional UPDATE guarded by
    ``reschedule_required``, so a second confirmation changes nothing and
    returns False.
    """
    try:
        slot = selected_slot if isinstance(selected_slot, TimeSlot) else TimeSlot.model_validate(selected_slot)
    except PydanticValidationError as e:
        raise ValidationError(
            ["Valid selected slot with date and time is required"], prefix="Reschedule validation failed"
        ) from e

    case = get_live_case(db, case_id)
    slot_time = slot.as_time()

    availability = check_slot_availability(db, slot.date, slot_time, exclude_case_id=str(case.id))
    if not availability["available"]:
        raise SlotUnavailableError(conflicting_case_id=availability["conflictingCaseId"])

    now = datetime.utcnow()
    approved = apply_admin_decision(
        CaseState.from_case(case),
        AdminDecision(DecisionKind.approve, admin_id=case.reschedule_requested_by),
        now,
    )

    try:
        updated = (
            db.query(Case)
            .filter(
                Case.id == case.id,
                Case.reschedule_required == True,  # noqa: E712
                Case.is_deleted == False,  # noqa: E712
            )
            .update(
                {
                    Case.scheduled_date: slot.date,
                    Case.scheduled_time: slot_time,
                    Case.reschedule_required: False,
                    Case.alternate_slots: None,
                    Case.admin_approval_status: approved.admin_approval_status,
                    Case.attorney_status: approved.attorney_status,
                    Case.approved_at: approved.approved_at,
                    Case.approved_by: approved.approved_by,
                    Case.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_slot_conflict(e):
            raise SlotUnavailableError() from e
        raise

    if not updated:
        logger.info("Reschedule confirm ignored, nothing pending: case=%s", case.id)
        return False

    db.refresh(case)
    logger.info("Reschedule confirmed: case=%s slot=%s %s", case.id, slot.date, slot.time)
    admin_calendar_service.release_slots_for_case(db, str(case.id))
    admin_calendar_service.reserve_slot_for_case(db, str(case.id), case.scheduled_date, case.scheduled_time)
    record_event(
        db, str(case.id), "war_room_opened", "Reschedule confirmed, war room opened",
        triggered_by=str(case.attorney_id), user_type="attorney",
        metadata={"slot": slot.to_json()},
    )
    return True


def move_case_to_slot(db: Session, case_id: str, new_date: date, new_time: time) -> Case:
    """
    Move an approved case to another slot without touching its approval.
    Used when an admin grants an attorney's reschedule request.
    """
    case = get_live_case(db, case_id)
    availability = check_slot_availability(db, new_date, new_time, exclude_case_id=str(case.id))
    if not availability["available"]:
        raise SlotUnavailableError(
            "Requested time slot is not available",
            conflicting_case_id=availability["conflictingCaseId"],
        )

    case.scheduled_date = new_date
    case.scheduled_time = new_time
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if _is_slot_conflict(e):
            raise SlotUnavailableError("Requested time slot is not available") from e
        raise
    db.refresh(case)

    admin_calendar_service.release_slots_for_case(db, str(case.id))
    if case.admin_approval_status == AdminApprovalStatus.approved:
        admin_calendar_service.reserve_slot_for_case(db, str(case.id), case.scheduled_date, case.scheduled_time)
    logger.info("Case %s moved to %s %s", case.id, new_date, new_time)
    return case


# ============================================================================
# Lifecycle
# ============================================================================

def validate_case_state_transition(db: Session, case_id: str, new_status: str) -> TransitionResult:
    """Never raises; the message explains a refusal."""
    case = get_case(db, case_id)
    if case is None or case.is_deleted:
        return TransitionResult(False, "Case not found")
    if new_status not in AttorneyStatus._value2member_map_:
        return TransitionResult(False, f"Invalid attorney status: {new_status}")

    return check_transition(
        AttorneyStatus(case.attorney_status),
        AttorneyStatus(new_status),
        AdminApprovalStatus(case.admin_approval_status),
        get_approved_jurors_count(db, case_id),
        case.required_jurors or settings.DEFAULT_REQUIRED_JURORS,
    )


def transition_case_status(db: Session, case_id: str, new_status: str, actor_id: Optional[str] = None) -> Case:
    """Validated attorney-status move; raises on a refused transition."""
    result = validate_case_state_transition(db, case_id, new_status)
    if not result.valid:
        if result.message == "Case not found":
            raise CaseNotFoundError(case_id)
        raise BusinessRuleError(result.message, code="INVALID_TRANSITION")

    case = get_live_case(db, case_id)
    case.attorney_status = AttorneyStatus(new_status)
    db.commit()
    db.refresh(case)

    logger.info("Case %s moved to %s", case.id, new_status)
    event_type = {
        AttorneyStatus.join_trial: "trial_started",
        AttorneyStatus.completed: "trial_completed",
    }.get(AttorneyStatus(new_status), "case_updated")
    record_event(
        db, str(case.id), event_type, f"Case moved to {new_status}",
        triggered_by=actor_id, user_type="attorney" if actor_id else "system",
    )
    return case


def case_to_api(case: Case) -> Dict[str, Any]:
    return _case_to_api(case)
