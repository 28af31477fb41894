"""
Juror account endpoints
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    ensure_self_or_admin,
    get_current_principal,
    require_admin,
    require_juror,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import juror_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()


class JurorCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    phone_number: Optional[str] = None
    address_1: Optional[str] = None
    address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    county: Optional[str] = None
    criteria_responses: Optional[Dict[str, Any]] = None
    user_agreement_accepted: bool = False


class TaskUpdate(BaseModel):
    completed: bool = True


class CriteriaUpdate(BaseModel):
    responses: Dict[str, Any]


class VerificationUpdate(BaseModel):
    status: str


@router.post("/", status_code=201)
def create_juror(
    payload: JurorCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    juror = juror_service.create_juror(db, payload.model_dump(exclude_none=True))
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.get("/")
def list_jurors(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    county: Optional[str] = Query(None),
    verification_status: Optional[str] = Query(None),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = juror_service.get_all_jurors(
        db, page=page, limit=limit, search=search, county=county, verification_status=verification_status
    )
    return {"success": True, "data": data}


@router.get("/stats")
def juror_stats(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": juror_service.get_juror_statistics(db)}


@router.get("/county/{county}")
def active_by_county(
    county: str,
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_roles("attorney", "admin")),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": juror_service.get_active_jurors_by_county(db, county, limit=limit)}


@router.get("/me")
def me(
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    juror = juror_service.get_juror(db, principal.id)
    if juror is None:
        raise NotFoundError("Juror", principal.id)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.post("/me/login")
def record_login(
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    juror_service.update_last_login(db, principal.id)
    return {"success": True, "message": "Last login updated"}


@router.post("/me/tasks/{task}")
def complete_task(
    task: str,
    payload: TaskUpdate,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    """Onboarding checklist: intro_video, juror_quiz, onboarding, profile"""
    juror = juror_service.update_task_completion(db, principal.id, task, payload.completed)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.put("/me/criteria")
def update_criteria(
    payload: CriteriaUpdate,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    juror = juror_service.update_criteria_responses(db, principal.id, payload.responses)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.get("/{juror_id}")
def get_juror(
    juror_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(principal, juror_id)
    juror = juror_service.get_juror(db, juror_id)
    if juror is None:
        raise NotFoundError("Juror", juror_id)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.patch("/{juror_id}")
def update_profile(
    juror_id: str,
    payload: Dict[str, Any],
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(principal, juror_id)
    juror = juror_service.update_profile(db, juror_id, payload)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.patch("/{juror_id}/verification")
def update_verification(
    juror_id: str,
    payload: VerificationUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    juror = juror_service.update_verification_status(db, juror_id, payload.status)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.post("/{juror_id}/deactivate")
def deactivate(
    juror_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    juror = juror_service.deactivate(db, juror_id)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.post("/{juror_id}/reactivate")
def reactivate(
    juror_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    juror = juror_service.reactivate(db, juror_id)
    return {"success": True, "data": juror_service.juror_to_api(juror)}


@router.delete("/{juror_id}")
def delete_juror(
    juror_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not juror_service.soft_delete(db, juror_id):
        raise NotFoundError("Juror", juror_id)
    return {"success": True, "message": "Juror deleted"}
