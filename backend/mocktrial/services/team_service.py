"""
services/team_service.py

War room team: the people an attorney brings in to help prepare a case.
A member is identified within the case by email (stored lowercased); the
unique constraint ``uq_war_room_team_case_email`` backs the duplicate check.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import WarRoomTeamMember
from mocktrial.services import case_service
from mocktrial.services.event_service import record_event
from mocktrial.utils.exceptions import DuplicateTeamMemberError, NotFoundError, ValidationError
from mocktrial.utils.helpers import iso, to_uuid
from mocktrial.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

PREFIX = "Team member validation failed"
MAX_NAME_LENGTH = 100
MAX_ROLE_LENGTH = 100
MAX_EMAIL_LENGTH = 255


def _member_to_api(m: WarRoomTeamMember) -> Dict[str, Any]:
    return {
        "id": str(m.id),
        "caseId": str(m.case_id),
        "name": m.name,
        "role": m.role,
        "email": m.email,
        "addedAt": iso(m.added_at),
    }


def validate_member(name: Any, role: Any, email: Any) -> List[str]:
    errors = []
    if not isinstance(name, str) or not name.strip():
        errors.append("Valid name is required")
    elif len(name.strip()) > MAX_NAME_LENGTH:
        errors.append(f"Name too long (max {MAX_NAME_LENGTH} characters)")
    if not isinstance(role, str) or not role.strip():
        errors.append("Valid role is required")
    elif len(role.strip()) > MAX_ROLE_LENGTH:
        errors.append(f"Role too long (max {MAX_ROLE_LENGTH} characters)")
    if not isinstance(email, str) or not email.strip():
        errors.append("Valid email is required")
    elif not validate_email(email):
        errors.append("Invalid email format")
    elif len(email.strip()) > MAX_EMAIL_LENGTH:
        errors.append(f"Email too long (max {MAX_EMAIL_LENGTH} characters)")
    return errors


def _email_taken(db: Session, case_id, email: str, exclude_id=None) -> bool:
    query = db.query(WarRoomTeamMember.id).filter(
        WarRoomTeamMember.case_id == case_id,
        WarRoomTeamMember.email == email,
    )
    if exclude_id is not None:
        query = query.filter(WarRoomTeamMember.id != exclude_id)
    return query.first() is not None


def _commit_member(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateTeamMemberError() from e


# ============================================================================
# Write
# ============================================================================

def add_team_member(
    db:         Session,
    case_id:    str,
    name:       str,
    role:       str,
    email:      str,
    actor_id:   Optional[str] = None,
    actor_type: str           = "attorney",
) -> WarRoomTeamMember:
    errors = validate_member(name, role, email)
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    case = case_service.get_live_case(db, case_id)
    email = normalize_email(email)
    if _email_taken(db, case.id, email):
        raise DuplicateTeamMemberError()

    member = WarRoomTeamMember(case_id=case.id, name=name.strip(), role=role.strip(), email=email)
    db.add(member)
    _commit_member(db)
    db.refresh(member)

    logger.info("Team member %s added to case %s", member.id, case.id)
    record_event(
        db, str(case.id), "case_updated", f"Team member added: {member.name} ({member.role})",
        triggered_by=actor_id, user_type=actor_type,
    )
    return member


def add_team_members(
    db:         Session,
    case_id:    str,
    members:    List[Dict[str, Any]],
    actor_id:   Optional[str] = None,
    actor_type: str           = "attorney",
) -> Dict[str, Any]:
    """
    Add several members at once. Bad or duplicate entries are reported per
    member and skipped; the rest are saved together.
    """
    if not isinstance(members, list) or not members:
        raise ValidationError(["teamMembers array is required"], prefix=PREFIX)
    if len(members) > settings.TEAM_BATCH_LIMIT:
        raise ValidationError(
            [f"Cannot add more than {settings.TEAM_BATCH_LIMIT} team members at once"], prefix=PREFIX
        )

    case = case_service.get_live_case(db, case_id)
    added: List[WarRoomTeamMember] = []
    failures: List[Dict[str, Any]] = []
    seen = set()

    for entry in members:
        if not isinstance(entry, dict):
            failures.append({"member": entry, "error": "Team member must be an object"})
            continue
        name, role, email = entry.get("name"), entry.get("role"), entry.get("email")
        problems = validate_member(name, role, email)
        if problems:
            failures.append({"member": entry, "error": ", ".join(problems)})
            continue
        email = normalize_email(email)
        if email in seen or _email_taken(db, case.id, email):
            failures.append({"member": entry, "error": "Email already exists in team"})
            continue
        seen.add(email)
        member = WarRoomTeamMember(case_id=case.id, name=name.strip(), role=role.strip(), email=email)
        db.add(member)
        added.append(member)

    if added:
        _commit_member(db)
        for member in added:
            db.refresh(member)
        record_event(
            db, str(case.id), "case_updated", f"Added {len(added)} team member(s)",
            triggered_by=actor_id, user_type=actor_type,
        )

    return {
        "members": [_member_to_api(m) for m in added],
        "addedCount": len(added),
        "failedCount": len(failures),
        "errors": failures,
    }


def update_team_member(
    db:        Session,
    case_id:   str,
    member_id: str,
    name:      str,
    role:      str,
    email:     str,
) -> WarRoomTeamMember:
    errors = validate_member(name, role, email)
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    member = get_team_member(db, case_id, member_id)
    if member is None:
        raise NotFoundError("Team member", member_id)
    email = normalize_email(email)
    if _email_taken(db, member.case_id, email, exclude_id=member.id):
        raise DuplicateTeamMemberError()

    member.name = name.strip()
    member.role = role.strip()
    member.email = email
    _commit_member(db)
    db.refresh(member)
    return member


def remove_team_member(
    db:         Session,
    case_id:    str,
    member_id:  str,
    actor_id:   Optional[str] = None,
    actor_type: str           = "attorney",
) -> bool:
    member = get_team_member(db, case_id, member_id)
    if member is None:
        return False
    label = f"{member.name} ({member.role})"
    db.delete(member)
    db.commit()
    record_event(
        db, case_id, "case_updated", f"Team member removed: {label}",
        triggered_by=actor_id, user_type=actor_type,
    )
    return True


# ============================================================================
# Read
# ============================================================================

def get_team_member(db: Session, case_id: str, member_id: str) -> Optional[WarRoomTeamMember]:
    cid, mid = to_uuid(case_id), to_uuid(member_id)
    if cid is None or mid is None:
        raise ValidationError(["Valid case ID and member ID are required"], prefix=PREFIX)
    return (
        db.query(WarRoomTeamMember)
        .filter(WarRoomTeamMember.id == mid, WarRoomTeamMember.case_id == cid)
        .first()
    )


def get_team_members(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(WarRoomTeamMember)
        .filter(WarRoomTeamMember.case_id == to_uuid(case_id))
        .order_by(WarRoomTeamMember.added_at.asc())
        .all()
    )
    return [_member_to_api(m) for m in rows]


def get_team_stats(db: Session, case_id: str) -> Dict[str, Any]:
    rows = (
        db.query(WarRoomTeamMember.role, func.count(WarRoomTeamMember.id))
        .filter(WarRoomTeamMember.case_id == to_uuid(case_id))
        .group_by(WarRoomTeamMember.role)
        .order_by(func.count(WarRoomTeamMember.id).desc(), WarRoomTeamMember.role.asc())
        .all()
    )
    return {
        "totalMembers": sum(count for _, count in rows),
        "uniqueRoles": len(rows),
        "byRole": [{"role": role, "count": count} for role, count in rows],
    }


def member_to_api(member: WarRoomTeamMember) -> Dict[str, Any]:
    return _member_to_api(member)
