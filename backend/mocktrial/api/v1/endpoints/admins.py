"""
Admin account and dashboard endpoints
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import admin_service
from mocktrial.utils.exceptions import BusinessRuleError, NotFoundError

router = APIRouter()


class AdminCreate(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password_hash: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    timezone: Optional[str] = None


class PermissionsUpdate(BaseModel):
    permissions: List[str]


class TimezoneUpdate(BaseModel):
    timezone: str


class ActiveUpdate(BaseModel):
    is_active: bool


@router.get("/dashboard")
def dashboard(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": admin_service.get_dashboard_stats(db)}


@router.post("/", status_code=201)
def create_admin(
    payload: AdminCreate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.create_admin(db, payload.model_dump(exclude_none=True))
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.get("/")
def list_admins(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": admin_service.get_all_admins(db, page=page, limit=limit, search=search)}


@router.get("/me")
def me(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.get_admin(db, principal.id)
    if admin is None:
        raise NotFoundError("Admin", principal.id)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.post("/me/login")
def record_login(
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin_service.update_last_login(db, principal.id)
    return {"success": True, "message": "Last login updated"}


@router.patch("/me/timezone")
def update_timezone(
    payload: TimezoneUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.update_timezone(db, principal.id, payload.timezone)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.get("/username/{username}")
def by_username(
    username: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.get_admin_by_username(db, username)
    if admin is None:
        raise NotFoundError("Admin", username)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.get("/{admin_id}")
def get_admin(
    admin_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.get_admin(db, admin_id)
    if admin is None:
        raise NotFoundError("Admin", admin_id)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.patch("/{admin_id}")
def update_profile(
    admin_id: str,
    payload: Dict[str, Any],
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.update_profile(db, admin_id, payload)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.put("/{admin_id}/permissions")
def update_permissions(
    admin_id: str,
    payload: PermissionsUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = admin_service.update_permissions(db, admin_id, payload.permissions)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.patch("/{admin_id}/active")
def set_active(
    admin_id: str,
    payload: ActiveUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if admin_id == principal.id and not payload.is_active:
        raise BusinessRuleError("You cannot deactivate your own account", code="SELF_DEACTIVATION")
    admin = admin_service.set_active_status(db, admin_id, payload.is_active)
    return {"success": True, "data": admin_service.admin_to_api(admin)}


@router.delete("/{admin_id}")
def delete_admin(
    admin_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if admin_id == principal.id:
        raise BusinessRuleError("You cannot delete your own account", code="SELF_DELETION")
    if not admin_service.soft_delete(db, admin_id):
        raise NotFoundError("Admin", admin_id)
    return {"success": True, "message": "Admin deleted"}
