"""
Juror application endpoints
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
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
from mocktrial.services import application_service
from mocktrial.utils.exceptions import ForbiddenError, NotFoundError

router = APIRouter()

require_reviewer = require_roles("attorney", "admin")


class ApplicationCreate(BaseModel):
    case_id: str
    voir_dire_1_responses: Optional[List[Any]] = None
    voir_dire_2_responses: Optional[List[Any]] = None


class ReviewRequest(BaseModel):
    decision: str
    comments: Optional[str] = None


class BatchReviewRequest(BaseModel):
    application_ids: List[str] = Field(default_factory=list)
    comments: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str
    comments: Optional[str] = None


@router.post("/", status_code=201)
def apply_to_case(
    payload: ApplicationCreate,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    application = application_service.create_application(
        db,
        principal.id,
        payload.case_id,
        voir_dire_1_responses=payload.voir_dire_1_responses,
        voir_dire_2_responses=payload.voir_dire_2_responses,
    )
    return {"success": True, "data": application_service.application_to_api(application)}


@router.get("/mine")
def my_applications(
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": application_service.get_applications_by_juror(db, principal.id)}


@router.get("/case/{case_id}")
def applications_for_case(
    case_id: str,
    status: Optional[str] = Query(None),
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": application_service.get_applications_by_case(db, case_id, status=status)}


@router.get("/case/{case_id}/approved")
def approved_jurors(
    case_id: str,
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": application_service.get_approved_jurors_for_case(db, case_id)}


@router.get("/case/{case_id}/stats")
def application_stats(
    case_id: str,
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": application_service.get_application_stats_by_case(db, case_id)}


@router.get("/case/{case_id}/applied")
def has_applied(
    case_id: str,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    applied = application_service.has_juror_applied_to_case(db, principal.id, case_id)
    return {"success": True, "data": {"hasApplied": applied}}


@router.post("/case/{case_id}/review/{application_id}")
def review_application(
    case_id: str,
    application_id: str,
    payload: ReviewRequest,
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    result = application_service.review_application(
        db, case_id, application_id, payload.decision, principal.id, comments=payload.comments
    )
    return {"success": True, "data": result}


def _owned_ids(db: Session, case_id: str, application_ids: List[str]) -> List[str]:
    owned = []
    for application_id in application_ids:
        application = application_service.get_application(db, application_id)
        if application is not None and str(application.case_id) == case_id:
            owned.append(application_id)
    return owned


@router.post("/case/{case_id}/batch-approve")
def batch_approve(
    case_id: str,
    payload: BatchReviewRequest,
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    case = load_case(db, case_id, principal)
    application_service.check_batch_size(payload.application_ids, "approve")
    ids = _owned_ids(db, str(case.id), payload.application_ids) if payload.application_ids else []
    approved = application_service.batch_approve_applications(
        db, ids, principal.id, comments=payload.comments
    )
    return {"success": True, "data": {"approved": approved}}


@router.post("/case/{case_id}/batch-reject")
def batch_reject(
    case_id: str,
    payload: BatchReviewRequest,
    principal: Principal = Depends(require_reviewer),
    db: Session = Depends(get_db),
):
    case = load_case(db, case_id, principal)
    application_service.check_batch_size(payload.application_ids, "reject")
    ids = _owned_ids(db, str(case.id), payload.application_ids) if payload.application_ids else []
    rejected = application_service.batch_reject_applications(
        db, ids, principal.id, comments=payload.comments
    )
    return {"success": True, "data": {"rejected": rejected}}


@router.get("/{application_id}")
def get_application(
    application_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    application = application_service.get_application(db, application_id)
    if application is None:
        raise NotFoundError("Application", application_id)
    if principal.user_type == "juror":
        if str(application.juror_id) != principal.id:
            raise ForbiddenError()
    else:
        load_case(db, str(application.case_id), principal)
    return {"success": True, "data": application_service.application_to_api(application)}


@router.post("/{application_id}/withdraw")
def withdraw(
    application_id: str,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    withdrawn = application_service.withdraw_application(db, application_id, principal.id)
    if not withdrawn:
        raise NotFoundError("Pending application", application_id)
    return {"success": True, "message": "Application withdrawn"}


@router.patch("/{application_id}/status")
def update_status(
    application_id: str,
    payload: StatusUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    updated = application_service.update_application_status(
        db, application_id, payload.status, reviewed_by=principal.id, comments=payload.comments
    )
    if not updated:
        raise NotFoundError("Application", application_id)
    return {"success": True, "message": "Application status updated"}
