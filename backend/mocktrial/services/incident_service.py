"""
services/incident_service.py

Moderation incidents reported during a trial meeting.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.db.models import IncidentSeverity, IncidentType, TrialIncident, TrialMeeting, UserType
from mocktrial.utils.exceptions import NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none, to_uuid
from mocktrial.utils.validators import clamp

logger = logging.getLogger(__name__)


def _incident_to_api(i: TrialIncident) -> Dict[str, Any]:
    return {
        "id": str(i.id),
        "meetingId": str(i.meeting_id),
        "participantId": str_or_none(i.participant_id),
        "reportedBy": str(i.reported_by),
        "reporterType": enum_value(i.reporter_type),
        "incidentType": enum_value(i.incident_type),
        "severity": enum_value(i.severity),
        "description": i.description,
        "actionTaken": i.action_taken,
        "resolvedAt": iso(i.resolved_at),
        "createdAt": iso(i.created_at),
    }


def report_incident(
    db:             Session,
    meeting_id:     str,
    reported_by:    str,
    reporter_type:  str,
    incident_type:  str,
    description:    str,
    severity:       str           = "medium",
    participant_id: Optional[str] = None,
) -> TrialIncident:
    errors = []
    mid, reporter = to_uuid(meeting_id), to_uuid(reported_by)
    if mid is None:
        errors.append("Valid meeting ID is required")
    if reporter is None:
        errors.append("Valid reporter ID is required")
    if reporter_type not in UserType._value2member_map_:
        errors.append("Invalid reporter type")
    if incident_type not in IncidentType._value2member_map_:
        errors.append(f"Invalid incident type. Must be one of: {', '.join(t.value for t in IncidentType)}")
    if severity not in IncidentSeverity._value2member_map_:
        errors.append(f"Invalid severity. Must be one of: {', '.join(s.value for s in IncidentSeverity)}")
    if not description or not description.strip():
        errors.append("Description is required")
    if participant_id is not None and to_uuid(participant_id) is None:
        errors.append("Invalid participant ID")
    if errors:
        raise ValidationError(errors, prefix="Incident validation failed")

    if db.get(TrialMeeting, mid) is None:
        raise NotFoundError("Meeting", meeting_id)

    incident = TrialIncident(
        meeting_id=mid,
        participant_id=to_uuid(participant_id),
        reported_by=reporter,
        reporter_type=UserType(reporter_type),
        incident_type=IncidentType(incident_type),
        severity=IncidentSeverity(severity),
        description=description.strip(),
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)

    log = logger.warning if incident.severity in (IncidentSeverity.high, IncidentSeverity.critical) else logger.info
    log("Incident reported: %s (meeting=%s, type=%s, severity=%s)", incident.id, meeting_id, incident_type, severity)
    return incident


def get_incident(db: Session, incident_id: str) -> Optional[TrialIncident]:
    iid = to_uuid(incident_id)
    if iid is None:
        raise ValidationError(["Valid incident ID is required"], prefix="Incident validation failed")
    return db.get(TrialIncident, iid)


def get_incidents_by_meeting(db: Session, meeting_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(TrialIncident)
        .filter(TrialIncident.meeting_id == to_uuid(meeting_id))
        .order_by(TrialIncident.created_at.desc())
        .all()
    )
    return [_incident_to_api(i) for i in rows]


def update_action_taken(db: Session, incident_id: str, action_taken: str) -> TrialIncident:
    """Recording the action resolves the incident."""
    if not action_taken or not action_taken.strip():
        raise ValidationError(["Action taken is required"], prefix="Incident validation failed")
    incident = get_incident(db, incident_id)
    if incident is None:
        raise NotFoundError("Incident", incident_id)
    incident.action_taken = action_taken.strip()
    incident.resolved_at = datetime.utcnow()
    db.commit()
    db.refresh(incident)
    return incident


def get_incident_stats(db: Session, meeting_id: str) -> Dict[str, int]:
    def _count(condition):
        return func.coalesce(func.sum(sql_case((condition, 1), else_=0)), 0)

    row = (
        db.query(
            func.count(TrialIncident.id),
            _count(TrialIncident.severity == IncidentSeverity.critical),
            _count(TrialIncident.severity == IncidentSeverity.high),
            _count(TrialIncident.incident_type == IncidentType.disruptive),
            _count(TrialIncident.resolved_at.isnot(None)),
        )
        .filter(TrialIncident.meeting_id == to_uuid(meeting_id))
        .one()
    )
    total, critical, high, disruptive, resolved = (int(v or 0) for v in row)
    return {
        "total": total,
        "critical": critical,
        "high": high,
        "disruptive": disruptive,
        "resolved": resolved,
        "unresolved": total - resolved,
    }


def get_all_incidents(
    db:            Session,
    severity:      Optional[str]  = None,
    incident_type: Optional[str]  = None,
    start_date:    Optional[date] = None,
    end_date:      Optional[date] = None,
    limit:         int            = 100,
) -> List[Dict[str, Any]]:
    query = db.query(TrialIncident)
    if severity:
        query = query.filter(TrialIncident.severity == IncidentSeverity(severity))
    if incident_type:
        query = query.filter(TrialIncident.incident_type == IncidentType(incident_type))
    if start_date:
        query = query.filter(TrialIncident.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        query = query.filter(TrialIncident.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
    rows = query.order_by(TrialIncident.created_at.desc()).limit(clamp(limit, 1, 500, 100)).all()
    return [_incident_to_api(i) for i in rows]


def incident_to_api(incident: TrialIncident) -> Dict[str, Any]:
    return _incident_to_api(incident)
