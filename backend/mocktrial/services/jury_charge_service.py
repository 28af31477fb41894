"""
services/jury_charge_service.py

Jury charge questions written by the attorney and released to jurors by an
admin. Once released (``jury_charge_status = completed``) the question set is
locked and jurors can submit verdicts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mocktrial.db.models import (
    ApplicationStatus,
    Case,
    JuryChargeQuestion,
    JuryChargeStatus,
    JurorApplication,
    QuestionType,
)
from mocktrial.services.notification_service import create_bulk_notifications
from mocktrial.utils.exceptions import (
    BusinessRuleError,
    CaseNotFoundError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from mocktrial.utils.helpers import coerce_json_list, enum_value, iso, str_or_none, to_uuid

logger = logging.getLogger(__name__)

MAX_QUESTION_LENGTH = 1000


def _question_to_api(q: JuryChargeQuestion) -> Dict[str, Any]:
    return {
        "id": str(q.id),
        "caseId": str(q.case_id),
        "questionText": q.question_text,
        "questionType": enum_value(q.question_type),
        "options": coerce_json_list(q.options),
        "orderIndex": q.order_index,
        "isRequired": q.is_required,
        "minValue": q.min_value,
        "maxValue": q.max_value,
        "createdAt": iso(q.created_at),
        "updatedAt": iso(q.updated_at),
    }


def question_definition(q: JuryChargeQuestion) -> Dict[str, Any]:
    """Shape consumed by ``verdict_aggregation``."""
    return {
        "id": str(q.id),
        "text": q.question_text,
        "type": enum_value(q.question_type),
        "isRequired": q.is_required,
    }


def validate_question(data: Dict[str, Any]) -> List[str]:
    errors = []
    text = (data.get("question_text") or "").strip()
    if not text:
        errors.append("Question text is required")
    elif len(text) > MAX_QUESTION_LENGTH:
        errors.append(f"Question text too long (max {MAX_QUESTION_LENGTH} characters)")

    qtype = data.get("question_type")
    if qtype not in QuestionType._value2member_map_:
        errors.append(f"Question type must be one of: {', '.join(t.value for t in QuestionType)}")
    elif qtype == QuestionType.multiple_choice.value:
        options = data.get("options")
        if not isinstance(options, list) or len(options) < 2:
            errors.append("Multiple choice questions must have at least 2 options")

    low, high = data.get("min_value"), data.get("max_value")
    if low is not None and high is not None and low > high:
        errors.append("Minimum value cannot exceed maximum value")
    return errors


def _default_options(qtype: QuestionType, options: Optional[List[Any]]) -> List[str]:
    if qtype == QuestionType.yes_no and not options:
        return ["Yes", "No"]
    if qtype in (QuestionType.multiple_choice, QuestionType.yes_no):
        return [str(o).strip() for o in options or [] if str(o).strip()]
    return []


def _editable_case(db: Session, case_id: str, attorney_id: Optional[str] = None) -> Case:
    """Case must exist, belong to ``attorney_id`` if given, and not be released yet."""
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Jury charge validation failed")
    case = db.get(Case, cid)
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if attorney_id is not None and case.attorney_id != to_uuid(attorney_id):
        raise ForbiddenError("Not authorized to modify this case")
    if case.jury_charge_status == JuryChargeStatus.completed:
        raise ForbiddenError("Jury charge is locked and cannot be edited")
    return case


def _build_question(case_id, data: Dict[str, Any], order_index: int) -> JuryChargeQuestion:
    qtype = QuestionType(data["question_type"])
    return JuryChargeQuestion(
        case_id=case_id,
        question_text=data["question_text"].strip(),
        question_type=qtype,
        options=_default_options(qtype, data.get("options")),
        order_index=order_index if data.get("order_index") is None else int(data["order_index"]),
        is_required=True if data.get("is_required") is None else bool(data["is_required"]),
        min_value=data.get("min_value"),
        max_value=data.get("max_value"),
    )


# ============================================================================
# Questions
# ============================================================================

def save_questions(
    db:          Session,
    case_id:     str,
    questions:   List[Dict[str, Any]],
    attorney_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Replace the whole question set in one transaction."""
    if not isinstance(questions, list):
        raise ValidationError(["Questions must be an array"], prefix="Jury charge validation failed")

    errors = []
    for index, question in enumerate(questions, start=1):
        errors.extend(f"Question {index}: {e}" for e in validate_question(question))
    if errors:
        raise ValidationError(errors, prefix="Jury charge validation failed")

    case = _editable_case(db, case_id, attorney_id)

    db.query(JuryChargeQuestion).filter(JuryChargeQuestion.case_id == case.id).delete(synchronize_session=False)
    rows = [_build_question(case.id, q, i) for i, q in enumerate(questions)]
    db.add_all(rows)
    if case.jury_charge_status == JuryChargeStatus.pending and rows:
        case.jury_charge_status = JuryChargeStatus.in_progress
    db.commit()

    logger.info("Saved %s jury charge questions for case %s", len(rows), case.id)
    return get_questions(db, case_id)


def add_question(
    db:          Session,
    case_id:     str,
    data:        Dict[str, Any],
    attorney_id: Optional[str] = None,
) -> JuryChargeQuestion:
    errors = validate_question(data)
    if errors:
        raise ValidationError(errors, prefix="Jury charge validation failed")

    case = _editable_case(db, case_id, attorney_id)
    next_index = (
        db.query(func.max(JuryChargeQuestion.order_index))
        .filter(JuryChargeQuestion.case_id == case.id)
        .scalar()
    )
    question = _build_question(case.id, data, 0 if next_index is None else next_index + 1)
    db.add(question)
    if case.jury_charge_status == JuryChargeStatus.pending:
        case.jury_charge_status = JuryChargeStatus.in_progress
    db.commit()
    db.refresh(question)
    return question


def get_question(db: Session, question_id: str) -> Optional[JuryChargeQuestion]:
    qid = to_uuid(question_id)
    if qid is None:
        return None
    return db.get(JuryChargeQuestion, qid)


def get_question_rows(db: Session, case_id: str) -> List[JuryChargeQuestion]:
    return (
        db.query(JuryChargeQuestion)
        .filter(JuryChargeQuestion.case_id == to_uuid(case_id))
        .order_by(JuryChargeQuestion.order_index.asc(), JuryChargeQuestion.created_at.asc())
        .all()
    )


def get_questions(db: Session, case_id: str) -> List[Dict[str, Any]]:
    return [_question_to_api(q) for q in get_question_rows(db, case_id)]


def update_question(
    db:          Session,
    question_id: str,
    data:        Dict[str, Any],
    attorney_id: Optional[str] = None,
) -> JuryChargeQuestion:
    question = get_question(db, question_id)
    if question is None:
        raise NotFoundError("Question", question_id)

    merged = {
        "question_text": question.question_text,
        "question_type": enum_value(question.question_type),
        "options": coerce_json_list(question.options),
        "min_value": question.min_value,
        "max_value": question.max_value,
    }
    merged.update({k: v for k, v in data.items() if v is not None})
    errors = validate_question(merged)
    if errors:
        raise ValidationError(errors, prefix="Jury charge validation failed")

    try:
        _editable_case(db, str(question.case_id), attorney_id)
    except ForbiddenError as e:
        if e.message == "Not authorized to modify this case":
            raise ForbiddenError("Not authorized to modify this question") from e
        raise

    qtype = QuestionType(merged["question_type"])
    question.question_text = merged["question_text"].strip()
    question.question_type = qtype
    question.options = _default_options(qtype, merged.get("options"))
    question.min_value = merged.get("min_value")
    question.max_value = merged.get("max_value")
    if data.get("order_index") is not None:
        question.order_index = int(data["order_index"])
    if data.get("is_required") is not None:
        question.is_required = bool(data["is_required"])
    db.commit()
    db.refresh(question)
    return question


def delete_question(db: Session, question_id: str, attorney_id: Optional[str] = None) -> bool:
    question = get_question(db, question_id)
    if question is None:
        return False
    try:
        _editable_case(db, str(question.case_id), attorney_id)
    except ForbiddenError as e:
        if e.message == "Not authorized to modify this case":
            raise ForbiddenError("Not authorized to delete this question") from e
        raise
    db.delete(question)
    db.commit()
    return True


def export_as_text(db: Session, case_id: str) -> str:
    questions = get_question_rows(db, case_id)
    if not questions:
        raise NotFoundError("Jury charge questions for case", case_id)

    lines = ["JURY CHARGE QUESTIONS", "======================", ""]
    for number, q in enumerate(questions, start=1):
        lines.append(f"Question {number}: {q.question_text}")
        lines.append(f"Type: {enum_value(q.question_type)}")
        options = coerce_json_list(q.options)
        if options:
            lines.append("Options:")
            lines.extend(f"  {i}. {opt}" for i, opt in enumerate(options, start=1))
        lines.extend(["", "---", ""])
    return "\n".join(lines) + "\n"


# ============================================================================
# Release
# ============================================================================

def release_jury_charge(db: Session, case_id: str, admin_id: str) -> Case:
    """Lock the question set and open verdict submission."""
    cid = to_uuid(case_id)
    case = db.get(Case, cid) if cid else None
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if case.jury_charge_status == JuryChargeStatus.completed:
        raise BusinessRuleError("Jury charge already released", code="JURY_CHARGE_ALREADY_RELEASED")

    count = db.query(func.count(JuryChargeQuestion.id)).filter(JuryChargeQuestion.case_id == cid).scalar() or 0
    if count == 0:
        raise BusinessRuleError("Cannot release jury charge with no questions", code="JURY_CHARGE_EMPTY")

    case.jury_charge_status = JuryChargeStatus.completed
    case.jury_charge_released_at = datetime.utcnow()
    case.jury_charge_released_by = to_uuid(admin_id)
    db.commit()
    db.refresh(case)
    logger.info("Jury charge released: case=%s questions=%s admin=%s", case.id, count, admin_id)

    juror_ids = [
        row[0]
        for row in db.query(JurorApplication.juror_id).filter(
            JurorApplication.case_id == cid,
            JurorApplication.status == ApplicationStatus.approved,
        )
    ]
    if juror_ids:
        try:
            create_bulk_notifications(db, [
                {
                    "user_id": str(jid),
                    "user_type": "juror",
                    "notification_type": "verdict_needed",
                    "title": "Jury charge released",
                    "message": f"The jury charge for '{case.case_title}' is ready. Please submit your verdict.",
                    "case_id": str(case.id),
                }
                for jid in juror_ids
            ])
        except Exception as e:
            db.rollback()
            logger.warning("Verdict reminders failed for case %s: %s", case.id, e)
    return case


def get_lock_status(db: Session, case_id: str) -> Dict[str, Any]:
    cid = to_uuid(case_id)
    case = db.get(Case, cid) if cid else None
    if case is None:
        raise CaseNotFoundError(case_id)
    return {
        "caseId": str(case.id),
        "isLocked": case.jury_charge_status == JuryChargeStatus.completed,
        "status": enum_value(case.jury_charge_status),
        "releasedAt": iso(case.jury_charge_released_at),
        "releasedBy": str_or_none(case.jury_charge_released_by),
    }


def is_juror_approved_for_case(db: Session, case_id, juror_id) -> bool:
    return (
        db.query(JurorApplication.id)
        .filter(
            JurorApplication.case_id == to_uuid(case_id),
            JurorApplication.juror_id == to_uuid(juror_id),
            JurorApplication.status == ApplicationStatus.approved,
        )
        .first()
        is not None
    )


def get_questions_for_juror(db: Session, case_id: str, juror_id: str) -> List[Dict[str, Any]]:
    cid = to_uuid(case_id)
    case = db.get(Case, cid) if cid else None
    if case is None or case.is_deleted:
        raise CaseNotFoundError(case_id)
    if case.jury_charge_status != JuryChargeStatus.completed:
        raise BusinessRuleError("Jury charge has not been released yet", code="JURY_CHARGE_NOT_RELEASED")
    if not is_juror_approved_for_case(db, case_id, juror_id):
        raise ForbiddenError("You are not approved for this case")
    return get_questions(db, case_id)


def question_to_api(question: JuryChargeQuestion) -> Dict[str, Any]:
    return _question_to_api(question)
