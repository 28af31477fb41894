"""
services/verdict_service.py

Juror verdicts: drafts, final submission and per-case reporting.

A verdict row is unique per (case, juror). A draft (``is_submitted=False``)
is promoted in place on submission; once submitted it can't be changed.
Submission is only possible after the jury charge is released.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.db.models import (
    ApplicationStatus,
    Case,
    JuryChargeStatus,
    Juror,
    JurorApplication,
    Verdict,
)
from mocktrial.db.schemas import parse_verdict_responses
from mocktrial.services import jury_charge_service
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import notify
from mocktrial.services.verdict_aggregation import aggregate_verdicts
from mocktrial.utils.exceptions import (
    BusinessRuleError,
    CaseNotFoundError,
    ForbiddenError,
    ValidationError,
    VerdictAlreadySubmittedError,
)
from mocktrial.utils.helpers import coerce_json_dict, iso, to_uuid

logger = logging.getLogger(__name__)


def _verdict_to_api(v: Verdict) -> Dict[str, Any]:
    return {
        "id": str(v.id),
        "caseId": str(v.case_id),
        "jurorId": str(v.juror_id),
        "jurorName": v.juror.name if v.juror else None,
        "responses": coerce_json_dict(v.responses),
        "isSubmitted": v.is_submitted,
        "submittedAt": iso(v.submitted_at),
        "createdAt": iso(v.created_at),
        "updatedAt": iso(v.updated_at),
    }


def _validate(case_id, juror_id, responses) -> Dict[str, Any]:
    errors = []
    if to_uuid(case_id) is None:
        errors.append("Valid case ID is required")
    if to_uuid(juror_id) is None:
        errors.append("Valid juror ID is required")
    parsed: Dict[str, Any] = {}
    if not isinstance(responses, dict):
        errors.append("Responses must be an object")
    else:
        try:
            parsed = parse_verdict_responses(responses)
        except PydanticValidationError:
            errors.append("Responses must be an object")
    if errors:
        raise ValidationError(errors, prefix="Verdict validation failed")
    return parsed


def _find(db: Session, case_id, juror_id) -> Optional[Verdict]:
    return (
        db.query(Verdict)
        .filter(Verdict.case_id == to_uuid(case_id), Verdict.juror_id == to_uuid(juror_id))
        .first()
    )


# ============================================================================
# Submit / drafts
# ============================================================================

def submit_verdict(db: Session, case_id: str, juror_id: str, responses: Dict[str, Any]) -> Verdict:
    parsed = _validate(case_id, juror_id, responses)

    existing = _find(db, case_id, juror_id)
    if existing is not None and existing.is_submitted:
        raise VerdictAlreadySubmittedError()

    case = db.get(Case, to_uuid(case_id))
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if case.jury_charge_status != JuryChargeStatus.completed:
        raise BusinessRuleError("Jury charge has not been released yet", code="JURY_CHARGE_NOT_RELEASED")
    if not jury_charge_service.is_juror_approved_for_case(db, case_id, juror_id):
        raise ForbiddenError("You are not approved for this case")

    now = datetime.utcnow()
    if existing is not None:
        # Promote the draft; the is_submitted guard stops a concurrent double submit
        updated = (
            db.query(Verdict)
            .filter(Verdict.id == existing.id, Verdict.is_submitted == False)  # noqa: E712
            .update(
                {"responses": parsed, "is_submitted": True, "submitted_at": now, "updated_at": now},
                synchronize_session=False,
            )
        )
        db.commit()
        if not updated:
            raise VerdictAlreadySubmittedError()
        verdict = existing
        db.refresh(verdict)
    else:
        verdict = Verdict(
            case_id=case.id,
            juror_id=to_uuid(juror_id),
            responses=parsed,
            is_submitted=True,
            submitted_at=now,
        )
        db.add(verdict)
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise VerdictAlreadySubmittedError() from e
        db.refresh(verdict)

    logger.info("Verdict submitted: case=%s juror=%s answers=%s", case_id, juror_id, len(parsed))
    record_event(
        db, case_id, "verdict_submitted", "Juror submitted a verdict",
        triggered_by=juror_id, user_type="juror",
        metadata={"verdictId": str(verdict.id)},
    )
    notify(
        db,
        user_id=str(case.attorney_id),
        user_type="attorney",
        notification_type="verdict_submitted",
        title="Verdict submitted",
        message=f"A juror submitted a verdict for '{case.case_title}'.",
        case_id=case_id,
    )
    return verdict


def save_draft(db: Session, case_id: str, juror_id: str, responses: Dict[str, Any]) -> Dict[str, Any]:
    if not case_id or not juror_id or responses is None:
        raise ValidationError(["Case ID, juror ID and responses are required"], prefix="Verdict validation failed")
    parsed = _validate(case_id, juror_id, responses)

    existing = _find(db, case_id, juror_id)
    if existing is not None:
        if existing.is_submitted:
            raise VerdictAlreadySubmittedError("Cannot update draft - verdict already submitted")
        existing.responses = parsed
        db.commit()
        return {"message": "Draft updated", "verdictId": str(existing.id)}

    draft = Verdict(
        case_id=to_uuid(case_id),
        juror_id=to_uuid(juror_id),
        responses=parsed,
        is_submitted=False,
    )
    db.add(draft)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise VerdictAlreadySubmittedError("Cannot update draft - verdict already submitted") from e
    db.refresh(draft)
    return {"message": "Draft saved", "verdictId": str(draft.id)}


def load_draft(db: Session, case_id: str, juror_id: str) -> Optional[Dict[str, Any]]:
    draft = (
        db.query(Verdict)
        .filter(
            Verdict.case_id == to_uuid(case_id),
            Verdict.juror_id == to_uuid(juror_id),
            Verdict.is_submitted == False,  # noqa: E712
        )
        .first()
    )
    if draft is None:
        return None
    return {
        "verdictId": str(draft.id),
        "responses": coerce_json_dict(draft.responses),
        "lastSaved": iso(draft.updated_at or draft.created_at),
    }


# ============================================================================
# Read
# ============================================================================

def get_verdict(db: Session, verdict_id: str) -> Optional[Verdict]:
    vid = to_uuid(verdict_id)
    if vid is None:
        raise ValidationError(["Valid verdict ID is required"], prefix="Verdict validation failed")
    return db.get(Verdict, vid)


def get_verdict_by_juror(db: Session, case_id: str, juror_id: str) -> Optional[Verdict]:
    return (
        db.query(Verdict)
        .filter(
            Verdict.case_id == to_uuid(case_id),
            Verdict.juror_id == to_uuid(juror_id),
            Verdict.is_submitted == True,  # noqa: E712
        )
        .first()
    )


def get_verdicts_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    rows = (
        db.query(Verdict)
        .filter(Verdict.case_id == to_uuid(case_id), Verdict.is_submitted == True)  # noqa: E712
        .order_by(Verdict.submitted_at.asc())
        .all()
    )
    return [_verdict_to_api(v) for v in rows]


def get_submission_status(db: Session, case_id: str) -> Dict[str, Any]:
    """Approved jurors of the case and whether each has submitted."""
    cid = to_uuid(case_id)
    rows = (
        db.query(Juror, Verdict)
        .join(JurorApplication, JurorApplication.juror_id == Juror.id)
        .outerjoin(
            Verdict,
            (Verdict.case_id == JurorApplication.case_id)
            & (Verdict.juror_id == Juror.id)
            & (Verdict.is_submitted == True),  # noqa: E712
        )
        .filter(
            JurorApplication.case_id == cid,
            JurorApplication.status == ApplicationStatus.approved,
        )
        .order_by(Juror.name.asc())
        .all()
    )
    jurors = [
        {
            "jurorId": str(juror.id),
            "name": juror.name,
            "email": juror.email,
            "status": "submitted" if verdict is not None else "pending",
            "submittedAt": iso(verdict.submitted_at) if verdict is not None else None,
        }
        for juror, verdict in rows
    ]
    submitted = sum(1 for j in jurors if j["status"] == "submitted")
    return {
        "totalJurors": len(jurors),
        "submitted": submitted,
        "pending": len(jurors) - submitted,
        "jurors": jurors,
    }


def get_aggregated_results(db: Session, case_id: str) -> Dict[str, Any]:
    verdicts = get_verdicts_by_case(db, case_id)
    questions = [
        jury_charge_service.question_definition(q)
        for q in jury_charge_service.get_question_rows(db, case_id)
    ]
    return aggregate_verdicts(questions, verdicts)


# ============================================================================
# Delete
# ============================================================================

def delete_verdict(db: Session, verdict_id: str) -> bool:
    """Admin correction: removes the verdict so the juror can resubmit."""
    verdict = get_verdict(db, verdict_id)
    if verdict is None:
        return False
    case_id = verdict.case_id
    db.delete(verdict)
    db.commit()
    logger.info("Verdict deleted: %s (case=%s)", verdict_id, case_id)
    return True


def verdict_to_api(verdict: Verdict) -> Dict[str, Any]:
    return _verdict_to_api(verdict)
