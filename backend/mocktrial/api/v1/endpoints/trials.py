"""
Live trial endpoints: meetings, participants, incidents and recordings.

The video/chat provider is external; these routes only keep the
coordination records (room ids, who is in the room, what happened).
"""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    get_current_principal,
    load_case,
    require_admin,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.db.models import TrialMeeting
from mocktrial.services import (
    incident_service,
    jury_charge_service,
    meeting_service,
    recording_service,
)
from mocktrial.utils.exceptions import ForbiddenError, NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class MeetingCreate(BaseModel):
    case_id: str
    thread_id: str
    room_id: str
    chat_thread_id: Optional[str] = None
    chat_service_user_id: Optional[str] = None


class MeetingStatusUpdate(BaseModel):
    status: str


class JoinRequest(BaseModel):
    display_name: str


class IncidentCreate(BaseModel):
    incident_type: str
    description: str
    severity: str = "medium"
    participant_id: Optional[str] = None


class ActionTaken(BaseModel):
    action_taken: str


class RecordingStart(BaseModel):
    recording_id: Optional[str] = None


class RecordingStop(BaseModel):
    recording_url: Optional[str] = None
    file_size: Optional[int] = None


class RecordingFailure(BaseModel):
    error_message: str


def _meeting_for(db: Session, meeting_id: str, principal: Principal) -> TrialMeeting:
    meeting = meeting_service.get_meeting(db, meeting_id)
    if meeting is None:
        raise NotFoundError("Meeting", meeting_id)
    load_case(db, str(meeting.case_id), principal, allow_jurors=True)
    if principal.user_type == "juror" and not jury_charge_service.is_juror_approved_for_case(
        db, meeting.case_id, principal.id
    ):
        raise ForbiddenError("You are not approved for this case")
    return meeting


# ============================================================================
# Meetings
# ============================================================================

@router.post("/meetings", status_code=201)
def create_meeting(
    payload: MeetingCreate,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, payload.case_id, principal)
    meeting = meeting_service.create_meeting(
        db,
        payload.case_id,
        payload.thread_id,
        payload.room_id,
        chat_thread_id=payload.chat_thread_id,
        chat_service_user_id=payload.chat_service_user_id,
    )
    return {"success": True, "data": meeting_service.meeting_to_api(meeting)}


@router.get("/meetings")
def list_meetings(
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": meeting_service.get_all_meetings(db, status=status, limit=limit)}


@router.get("/cases/{case_id}/meeting")
def meeting_for_case(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal, allow_jurors=True)
    meeting = meeting_service.get_meeting_by_case(db, case_id)
    if meeting is None:
        raise NotFoundError("Meeting for case", case_id)
    _meeting_for(db, str(meeting.id), principal)
    return {"success": True, "data": meeting_service.meeting_to_api(meeting)}


@router.get("/meetings/{meeting_id}")
def get_meeting(
    meeting_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    meeting = _meeting_for(db, meeting_id, principal)
    return {"success": True, "data": meeting_service.meeting_to_api(meeting)}


@router.patch("/meetings/{meeting_id}/status")
def update_meeting_status(
    meeting_id: str,
    payload: MeetingStatusUpdate,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    meeting = meeting_service.update_meeting_status(db, meeting_id, payload.status)
    return {"success": True, "data": meeting_service.meeting_to_api(meeting)}


@router.get("/meetings/{meeting_id}/statistics")
def meeting_statistics(
    meeting_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    return {"success": True, "data": meeting_service.get_meeting_statistics(db, meeting_id)}


# ============================================================================
# Participants
# ============================================================================

@router.post("/meetings/{meeting_id}/participants", status_code=201)
def join_meeting(
    meeting_id: str,
    payload: JoinRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    participant = meeting_service.add_participant(
        db, meeting_id, principal.id, principal.user_type, payload.display_name
    )
    return {"success": True, "data": meeting_service.participant_to_api(participant)}


@router.delete("/participants/{participant_id}")
def leave_meeting(
    participant_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    user_id = None if principal.is_admin else principal.id
    if not meeting_service.remove_participant(db, participant_id, user_id=user_id):
        raise NotFoundError("Active participant", participant_id)
    return {"success": True, "message": "Participant removed"}


@router.get("/meetings/{meeting_id}/participants")
def list_participants(
    meeting_id: str,
    active_only: bool = Query(False),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    if active_only:
        data = meeting_service.get_active_participants(db, meeting_id)
    else:
        data = meeting_service.get_participants(db, meeting_id)
    return {"success": True, "data": data}


# ============================================================================
# Incidents
# ============================================================================

@router.post("/meetings/{meeting_id}/incidents", status_code=201)
def report_incident(
    meeting_id: str,
    payload: IncidentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    incident = incident_service.report_incident(
        db,
        meeting_id,
        principal.id,
        principal.user_type,
        payload.incident_type,
        payload.description,
        severity=payload.severity,
        participant_id=payload.participant_id,
    )
    return {"success": True, "data": incident_service.incident_to_api(incident)}


@router.get("/meetings/{meeting_id}/incidents")
def meeting_incidents(
    meeting_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    return {
        "success": True,
        "data": {
            "incidents": incident_service.get_incidents_by_meeting(db, meeting_id),
            "stats": incident_service.get_incident_stats(db, meeting_id),
        },
    }


@router.get("/incidents")
def all_incidents(
    severity: Optional[str] = Query(None),
    incident_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = incident_service.get_all_incidents(
        db,
        severity=severity,
        incident_type=incident_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
    )
    return {"success": True, "data": data}


@router.get("/incidents/{incident_id}")
def get_incident(
    incident_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    incident = incident_service.get_incident(db, incident_id)
    if incident is None:
        raise NotFoundError("Incident", incident_id)
    return {"success": True, "data": incident_service.incident_to_api(incident)}


@router.patch("/incidents/{incident_id}/action")
def record_action(
    incident_id: str,
    payload: ActionTaken,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    incident = incident_service.update_action_taken(db, incident_id, payload.action_taken)
    return {"success": True, "data": incident_service.incident_to_api(incident)}


# ============================================================================
# Recordings
# ============================================================================

@router.post("/meetings/{meeting_id}/recordings", status_code=201)
def start_recording(
    meeting_id: str,
    payload: RecordingStart,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    recording = recording_service.start_recording(
        db, meeting_id, started_by=principal.id, recording_id=payload.recording_id
    )
    return {"success": True, "data": recording_service.recording_to_api(recording)}


@router.get("/meetings/{meeting_id}/recordings")
def meeting_recordings(
    meeting_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _meeting_for(db, meeting_id, principal)
    return {
        "success": True,
        "data": {
            "recordings": recording_service.get_recordings_by_meeting(db, meeting_id),
            "isRecording": recording_service.is_recording(db, meeting_id),
        },
    }


@router.get("/cases/{case_id}/recordings")
def case_recordings(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": recording_service.get_recordings_by_case(db, case_id)}


@router.post("/recordings/{recording_id}/stop")
def stop_recording(
    recording_id: str,
    payload: RecordingStop,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    recording = recording_service.stop_recording(
        db, recording_id, recording_url=payload.recording_url, file_size=payload.file_size
    )
    return {"success": True, "data": recording_service.recording_to_api(recording)}


@router.patch("/recordings/{recording_id}/url")
def update_recording_url(
    recording_id: str,
    payload: RecordingStop,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    recording = recording_service.update_recording_url(
        db, recording_id, payload.recording_url or "", file_size=payload.file_size
    )
    return {"success": True, "data": recording_service.recording_to_api(recording)}


@router.post("/recordings/{recording_id}/failed")
def recording_failed(
    recording_id: str,
    payload: RecordingFailure,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    recording = recording_service.mark_failed(db, recording_id, payload.error_message)
    return {"success": True, "data": recording_service.recording_to_api(recording)}


@router.get("/recordings/{recording_id}")
def get_recording(
    recording_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    recording = recording_service.get_recording(db, recording_id)
    if recording is None:
        raise NotFoundError("Recording", recording_id)
    load_case(db, str(recording.case_id), principal)
    return {"success": True, "data": recording_service.recording_to_api(recording)}
