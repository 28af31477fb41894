"""
services/recording_service.py

Trial recordings. The media service does the capture; we only track the
lifecycle: processing -> ready (url, size, duration) or failed.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mocktrial.db.models import RecordingStatus, TrialMeeting, TrialRecording
from mocktrial.utils.exceptions import BusinessRuleError, NotFoundError, ValidationError
from mocktrial.utils.helpers import iso, enum_value, str_or_none, to_uuid

logger = logging.getLogger(__name__)


def _recording_to_api(r: TrialRecording) -> Dict[str, Any]:
    return {
        "id": str(r.id),
        "meetingId": str(r.meeting_id),
        "caseId": str(r.case_id),
        "recordingId": r.recording_id,
        "status": enum_value(r.status),
        "recordingUrl": r.recording_url,
        "fileSize": r.file_size,
        "durationSeconds": r.duration_seconds,
        "startedBy": str_or_none(r.started_by),
        "startedAt": iso(r.started_at),
        "stoppedAt": iso(r.stopped_at),
        "errorMessage": r.error_message,
    }


def _get_or_404(db: Session, recording_id: str) -> TrialRecording:
    recording = get_recording(db, recording_id)
    if recording is None:
        raise NotFoundError("Recording", recording_id)
    return recording


def get_active_recording(db: Session, meeting_id: str) -> Optional[TrialRecording]:
    """A recording that has started and not stopped yet."""
    return (
        db.query(TrialRecording)
        .filter(
            TrialRecording.meeting_id == to_uuid(meeting_id),
            TrialRecording.stopped_at.is_(None),
            TrialRecording.status == RecordingStatus.processing,
        )
        .order_by(TrialRecording.started_at.desc())
        .first()
    )


def is_recording(db: Session, meeting_id: str) -> bool:
    return get_active_recording(db, meeting_id) is not None


def start_recording(
    db:           Session,
    meeting_id:   str,
    started_by:   Optional[str] = None,
    recording_id: Optional[str] = None,
) -> TrialRecording:
    mid = to_uuid(meeting_id)
    if mid is None:
        raise ValidationError(["Valid meeting ID is required"], prefix="Recording validation failed")
    meeting = db.get(TrialMeeting, mid)
    if meeting is None:
        raise NotFoundError("Meeting", meeting_id)
    if is_recording(db, meeting_id):
        raise BusinessRuleError("Recording already in progress for this meeting", code="RECORDING_IN_PROGRESS")

    recording = TrialRecording(
        meeting_id=mid,
        case_id=meeting.case_id,
        recording_id=recording_id or f"rec_{uuid.uuid4().hex}",
        status=RecordingStatus.processing,
        started_by=to_uuid(started_by),
    )
    db.add(recording)
    db.commit()
    db.refresh(recording)
    logger.info("Recording started: %s (meeting=%s)", recording.recording_id, meeting_id)
    return recording


def stop_recording(
    db:            Session,
    recording_id:  str,
    recording_url: Optional[str] = None,
    file_size:     Optional[int] = None,
) -> TrialRecording:
    recording = _get_or_404(db, recording_id)
    if recording.stopped_at is not None:
        raise BusinessRuleError("Recording already stopped", code="RECORDING_STOPPED")

    now = datetime.utcnow()
    recording.stopped_at = now
    recording.duration_seconds = int((now - recording.started_at).total_seconds())
    if recording_url:
        recording.recording_url = recording_url
        recording.status = RecordingStatus.ready
    if file_size is not None:
        recording.file_size = int(file_size)
    db.commit()
    db.refresh(recording)
    logger.info("Recording stopped: %s (%ss)", recording.recording_id, recording.duration_seconds)
    return recording


def update_recording_url(db: Session, recording_id: str, recording_url: str,
                         file_size: Optional[int] = None) -> TrialRecording:
    if not recording_url or not recording_url.strip():
        raise ValidationError(["Recording URL is required"], prefix="Recording validation failed")
    recording = _get_or_404(db, recording_id)
    recording.recording_url = recording_url.strip()
    recording.status = RecordingStatus.ready
    if file_size is not None:
        recording.file_size = int(file_size)
    db.commit()
    db.refresh(recording)
    return recording


def mark_failed(db: Session, recording_id: str, error_message: str) -> TrialRecording:
    recording = _get_or_404(db, recording_id)
    recording.status = RecordingStatus.failed
    recording.error_message = error_message
    if recording.stopped_at is None:
        recording.stopped_at = datetime.utcnow()
    db.commit()
    db.refresh(recording)
    logger.error("Recording failed: %s - %s", recording.recording_id, error_message)
    return recording


def get_recording(db: Session, recording_id: str) -> Optional[TrialRecording]:
    rid = to_uuid(recording_id)
    if rid is None:
        raise ValidationError(["Valid recording ID is required"], prefix="Recording validation failed")
    return db.get(TrialRecording, rid)


def get_recordings_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(TrialRecording)
        .filter(TrialRecording.case_id == to_uuid(case_id))
        .order_by(TrialRecording.started_at.desc())
        .all()
    )
    return [_recording_to_api(r) for r in rows]


def get_recordings_by_meeting(db: Session, meeting_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(TrialRecording)
        .filter(TrialRecording.meeting_id == to_uuid(meeting_id))
        .order_by(TrialRecording.started_at.desc())
        .all()
    )
    return [_recording_to_api(r) for r in rows]


def recording_to_api(recording: TrialRecording) -> Dict[str, Any]:
    return _recording_to_api(recording)
