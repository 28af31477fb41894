"""
services/meeting_service.py

Virtual courtroom sessions and who is in them.

One open meeting (status ``created`` or ``active``) per case, enforced by the
partial unique index ``uq_trial_meetings_open_case``. A participant is
"in the room" while ``left_at`` is NULL.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.db.models import Case, MeetingStatus, TrialMeeting, TrialParticipant, UserType
from mocktrial.utils.exceptions import ActiveMeetingExistsError, CaseNotFoundError, NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, to_uuid
from mocktrial.utils.validators import clamp

logger = logging.getLogger(__name__)

OPEN_STATUSES = (MeetingStatus.created, MeetingStatus.active)


def _meeting_to_api(m: TrialMeeting, case: Optional[Case] = None) -> Dict[str, Any]:
    out = {
        "id": str(m.id),
        "caseId": str(m.case_id),
        "threadId": m.thread_id,
        "roomId": m.room_id,
        "chatThreadId": m.chat_thread_id,
        "chatServiceUserId": m.chat_service_user_id,
        "status": enum_value(m.status),
        "startedAt": iso(m.started_at),
        "endedAt": iso(m.ended_at),
        "createdAt": iso(m.created_at),
    }
    if case is not None:
        out["caseTitle"] = case.case_title
    return out


def _duration_minutes(joined_at: datetime, left_at: Optional[datetime], now: datetime) -> int:
    return int(((left_at or now) - joined_at).total_seconds() // 60)


def _participant_to_api(p: TrialParticipant, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    return {
        "id": str(p.id),
        "meetingId": str(p.meeting_id),
        "userId": str(p.user_id),
        "userType": enum_value(p.participant_type),
        "displayName": p.display_name,
        "joinedAt": iso(p.joined_at),
        "leftAt": iso(p.left_at),
        "isActive": p.left_at is None,
        "durationMinutes": _duration_minutes(p.joined_at, p.left_at, now),
    }


def _meeting_id(meeting_id: str):
    mid = to_uuid(meeting_id)
    if mid is None:
        raise ValidationError(["Valid meeting ID is required"], prefix="Meeting validation failed")
    return mid


# ============================================================================
# Meetings
# ============================================================================

def create_meeting(
    db:                   Session,
    case_id:              str,
    thread_id:            str,
    room_id:              str,
    chat_thread_id:       Optional[str] = None,
    chat_service_user_id: Optional[str] = None,
) -> TrialMeeting:
    errors = []
    cid = to_uuid(case_id)
    if cid is None:
        errors.append("Valid case ID is required")
    if not thread_id or not str(thread_id).strip():
        errors.append("Thread ID is required")
    if not room_id or not str(room_id).strip():
        errors.append("Room ID is required")
    if errors:
        raise ValidationError(errors, prefix="Meeting validation failed")

    case = db.get(Case, cid)
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)

    if get_open_meeting(db, case_id) is not None:
        raise ActiveMeetingExistsError()

    meeting = TrialMeeting(
        case_id=cid,
        thread_id=thread_id.strip(),
        room_id=room_id.strip(),
        chat_thread_id=(chat_thread_id or "").strip() or None,
        chat_service_user_id=(chat_service_user_id or "").strip() or None,
        status=MeetingStatus.created,
    )
    db.add(meeting)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ActiveMeetingExistsError() from e
    db.refresh(meeting)

    logger.info("Trial meeting created: %s (case=%s, room=%s)", meeting.id, case_id, meeting.room_id)
    return meeting


def get_open_meeting(db: Session, case_id: str) -> Optional[TrialMeeting]:
    return (
        db.query(TrialMeeting)
        .filter(TrialMeeting.case_id == to_uuid(case_id), TrialMeeting.status.in_(OPEN_STATUSES))
        .first()
    )


def get_meeting_by_case(db: Session, case_id: str) -> Optional[TrialMeeting]:
    """Most recent meeting for the case, open or not."""
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Meeting validation failed")
    return (
        db.query(TrialMeeting)
        .filter(TrialMeeting.case_id == cid)
        .order_by(TrialMeeting.created_at.desc())
        .first()
    )


def get_meeting(db: Session, meeting_id: str) -> Optional[TrialMeeting]:
    return db.get(TrialMeeting, _meeting_id(meeting_id))


def update_meeting_status(db: Session, meeting_id: str, status: str) -> TrialMeeting:
    """``active`` stamps started_at; ``ended``/``cancelled`` stamp ended_at."""
    mid = _meeting_id(meeting_id)
    if status not in MeetingStatus._value2member_map_:
        valid = ", ".join(s.value for s in MeetingStatus)
        raise ValidationError([f"Invalid status. Must be one of: {valid}"], prefix="Meeting validation failed")

    meeting = db.get(TrialMeeting, mid)
    if meeting is None:
        raise NotFoundError("Meeting", meeting_id)

    new_status = MeetingStatus(status)
    meeting.status = new_status
    if new_status == MeetingStatus.active:
        meeting.started_at = datetime.utcnow()
    elif new_status in (MeetingStatus.ended, MeetingStatus.cancelled):
        meeting.ended_at = datetime.utcnow()
    try:
        db.commit()
    except IntegrityError as e:
        # Re-opening an old meeting while another one is open
        db.rollback()
        raise ActiveMeetingExistsError() from e
    db.refresh(meeting)

    logger.info("Meeting %s -> %s", meeting.id, status)
    return meeting


def get_all_meetings(db: Session, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    query = db.query(TrialMeeting, Case).join(Case, TrialMeeting.case_id == Case.id)
    if status:
        query = query.filter(TrialMeeting.status == MeetingStatus(status))
    rows = query.order_by(TrialMeeting.created_at.desc()).limit(clamp(limit, 1, 100, 50)).all()
    return [_meeting_to_api(m, c) for m, c in rows]


def get_meeting_statistics(db: Session, meeting_id: str) -> Dict[str, Any]:
    mid = _meeting_id(meeting_id)
    participants = db.query(TrialParticipant).filter(TrialParticipant.meeting_id == mid).all()
    now = datetime.utcnow()
    by_type = {t.value: 0 for t in UserType}
    for p in participants:
        by_type[enum_value(p.participant_type)] += 1
    durations = [_duration_minutes(p.joined_at, p.left_at, now) for p in participants]
    return {
        "totalParticipants": len(participants),
        "activeParticipants": sum(1 for p in participants if p.left_at is None),
        "attorneys": by_type["attorney"],
        "jurors": by_type["juror"],
        "admins": by_type["admin"],
        "averageDurationMinutes": round(sum(durations) / len(durations), 2) if durations else 0,
    }


# ============================================================================
# Participants
# ============================================================================

def add_participant(
    db:           Session,
    meeting_id:   str,
    user_id:      str,
    user_type:    str,
    display_name: str,
) -> TrialParticipant:
    """Joining twice while still in the room returns the existing row."""
    errors = []
    mid, uid = to_uuid(meeting_id), to_uuid(user_id)
    if mid is None:
        errors.append("Valid meeting ID is required")
    if uid is None:
        errors.append("Valid user ID is required")
    if not user_type:
        errors.append("User type is required")
    elif user_type not in UserType._value2member_map_:
        errors.append(f"Invalid user type. Must be one of: {', '.join(t.value for t in UserType)}")
    if not display_name or not str(display_name).strip():
        errors.append("Display name is required")
    if errors:
        raise ValidationError(errors, prefix="Participant validation failed")

    existing = (
        db.query(TrialParticipant)
        .filter(
            TrialParticipant.meeting_id == mid,
            TrialParticipant.user_id == uid,
            TrialParticipant.participant_type == UserType(user_type),
            TrialParticipant.left_at.is_(None),
        )
        .first()
    )
    if existing is not None:
        return existing

    if db.get(TrialMeeting, mid) is None:
        raise NotFoundError("Meeting", meeting_id)

    participant = TrialParticipant(
        meeting_id=mid,
        user_id=uid,
        participant_type=UserType(user_type),
        display_name=display_name.strip(),
    )
    db.add(participant)
    db.commit()
    db.refresh(participant)
    return participant


def remove_participant(db: Session, participant_id: str, user_id: Optional[str] = None) -> bool:
    """Mark the participant as left. With ``user_id`` only their own row matches."""
    pid = to_uuid(participant_id)
    if pid is None:
        raise ValidationError(["Valid participant ID is required"], prefix="Participant validation failed")
    query = db.query(TrialParticipant).filter(TrialParticipant.id == pid, TrialParticipant.left_at.is_(None))
    if user_id is not None:
        query = query.filter(TrialParticipant.user_id == to_uuid(user_id))
    updated = query.update({"left_at": datetime.utcnow()}, synchronize_session=False)
    db.commit()
    return updated > 0


def get_participants(db: Session, meeting_id: str) -> List[Dict[str, Any]]:
    mid = _meeting_id(meeting_id)
    rows = (
        db.query(TrialParticipant)
        .filter(TrialParticipant.meeting_id == mid)
        .order_by(TrialParticipant.joined_at.desc())
        .all()
    )
    now = datetime.utcnow()
    return [_participant_to_api(p, now) for p in rows]


def get_active_participants(db: Session, meeting_id: str) -> List[Dict[str, Any]]:
    mid = _meeting_id(meeting_id)
    rows = (
        db.query(TrialParticipant)
        .filter(TrialParticipant.meeting_id == mid, TrialParticipant.left_at.is_(None))
        .order_by(TrialParticipant.joined_at.desc())
        .all()
    )
    now = datetime.utcnow()
    return [_participant_to_api(p, now) for p in rows]


def count_active_participants(db: Session, meeting_id: str) -> int:
    return (
        db.query(func.count(TrialParticipant.id))
        .filter(TrialParticipant.meeting_id == _meeting_id(meeting_id), TrialParticipant.left_at.is_(None))
        .scalar()
        or 0
    )


def meeting_to_api(meeting: TrialMeeting) -> Dict[str, Any]:
    return _meeting_to_api(meeting)


def participant_to_api(participant: TrialParticipant) -> Dict[str, Any]:
    return _participant_to_api(participant)
