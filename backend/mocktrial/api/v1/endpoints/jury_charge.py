"""
Jury charge endpoints

Attorneys build the question set until an admin releases it; jurors only
ever see the released set.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    get_current_principal,
    load_case,
    require_admin,
    require_juror,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import case_service, jury_charge_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()

require_editor = require_roles("attorney", "admin")


class QuestionIn(BaseModel):
    question_text: str
    question_type: str
    options: Optional[List[Any]] = None
    order_index: Optional[int] = None
    is_required: Optional[bool] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    question_type: Optional[str] = None
    options: Optional[List[Any]] = None
    order_index: Optional[int] = None
    is_required: Optional[bool] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


class QuestionSet(BaseModel):
    questions: List[Dict[str, Any]] = Field(default_factory=list)


def _owner_id(principal: Principal) -> Optional[str]:
    return None if principal.is_admin else principal.id


@router.get("/{case_id}/questions")
def list_questions(
    case_id: str,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": jury_charge_service.get_questions(db, case_id)}


@router.put("/{case_id}/questions")
def replace_questions(
    case_id: str,
    payload: QuestionSet,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    questions = jury_charge_service.save_questions(
        db, case_id, payload.questions, attorney_id=_owner_id(principal)
    )
    return {"success": True, "data": questions}


@router.post("/{case_id}/questions", status_code=201)
def add_question(
    case_id: str,
    payload: QuestionIn,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    question = jury_charge_service.add_question(
        db, case_id, payload.model_dump(exclude_none=True), attorney_id=_owner_id(principal)
    )
    return {"success": True, "data": jury_charge_service.question_to_api(question)}


@router.patch("/questions/{question_id}")
def update_question(
    question_id: str,
    payload: QuestionUpdate,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    question = jury_charge_service.update_question(
        db, question_id, payload.model_dump(exclude_unset=True), attorney_id=_owner_id(principal)
    )
    return {"success": True, "data": jury_charge_service.question_to_api(question)}


@router.delete("/questions/{question_id}")
def delete_question(
    question_id: str,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    if not jury_charge_service.delete_question(db, question_id, attorney_id=_owner_id(principal)):
        raise NotFoundError("Question", question_id)
    return {"success": True, "message": "Question deleted"}


@router.get("/{case_id}/export", response_class=PlainTextResponse)
def export_questions(
    case_id: str,
    principal: Principal = Depends(require_editor),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    text = jury_charge_service.export_as_text(db, case_id)
    return PlainTextResponse(
        text,
        headers={"Content-Disposition": f'attachment; filename="jury-charge-{case_id}.txt"'},
    )


@router.post("/{case_id}/release")
def release(
    case_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    case = jury_charge_service.release_jury_charge(db, case_id, principal.id)
    return {"success": True, "data": case_service.case_to_api(case)}


@router.get("/{case_id}/status")
def lock_status(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal, allow_jurors=True)
    return {"success": True, "data": jury_charge_service.get_lock_status(db, case_id)}


@router.get("/{case_id}/juror-questions")
def juror_questions(
    case_id: str,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": jury_charge_service.get_questions_for_juror(db, case_id, principal.id)}
