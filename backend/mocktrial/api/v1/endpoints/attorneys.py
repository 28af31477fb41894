"""
Attorney account endpoints

Accounts are created by the auth service (or an admin) with an already
hashed password; this router never sees plain-text credentials.
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
    require_attorney,
)
from mocktrial.db.database import get_db
from mocktrial.services import attorney_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()


class AttorneyCreate(BaseModel):
    email: Optional[str] = None
    password_hash: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    law_firm_name: Optional[str] = None
    phone_number: Optional[str] = None
    office_address_1: Optional[str] = None
    office_address_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    county: Optional[str] = None
    zip_code: Optional[str] = None
    state_bar_number: Optional[str] = None
    timezone: Optional[str] = None


class TimezoneUpdate(BaseModel):
    timezone: str


class VerificationUpdate(BaseModel):
    status: str


class TierUpdate(BaseModel):
    tier_level: str


@router.post("/", status_code=201)
def create_attorney(
    payload: AttorneyCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.create_attorney(db, payload.model_dump(exclude_none=True))
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.get("/")
def list_attorneys(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    verification_status: Optional[str] = Query(None),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = attorney_service.get_all_attorneys(
        db, page=page, limit=limit, search=search, verification_status=verification_status
    )
    return {"success": True, "data": data}


@router.get("/stats")
def attorney_stats(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": attorney_service.get_attorney_stats(db)}


@router.get("/me")
def me(
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.get_attorney(db, principal.id)
    if attorney is None:
        raise NotFoundError("Attorney", principal.id)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.post("/me/login")
def record_login(
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    attorney_service.update_last_login(db, principal.id)
    return {"success": True, "message": "Last login updated"}


@router.patch("/me/timezone")
def update_timezone(
    payload: TimezoneUpdate,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.update_timezone(db, principal.id, payload.timezone)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.get("/{attorney_id}")
def get_attorney(
    attorney_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(principal, attorney_id)
    attorney = attorney_service.get_attorney(db, attorney_id)
    if attorney is None:
        raise NotFoundError("Attorney", attorney_id)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.patch("/{attorney_id}")
def update_profile(
    attorney_id: str,
    payload: Dict[str, Any],
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(principal, attorney_id)
    attorney = attorney_service.update_profile(db, attorney_id, payload)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.patch("/{attorney_id}/verification")
def update_verification(
    attorney_id: str,
    payload: VerificationUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.update_verification_status(db, attorney_id, payload.status)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.patch("/{attorney_id}/tier")
def update_tier(
    attorney_id: str,
    payload: TierUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.update_tier(db, attorney_id, payload.tier_level)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.post("/{attorney_id}/deactivate")
def deactivate(
    attorney_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.deactivate(db, attorney_id)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.post("/{attorney_id}/reactivate")
def reactivate(
    attorney_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    attorney = attorney_service.reactivate(db, attorney_id)
    return {"success": True, "data": attorney_service.attorney_to_api(attorney)}


@router.delete("/{attorney_id}")
def delete_attorney(
    attorney_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not attorney_service.soft_delete(db, attorney_id):
        raise NotFoundError("Attorney", attorney_id)
    return {"success": True, "message": "Attorney deleted"}
