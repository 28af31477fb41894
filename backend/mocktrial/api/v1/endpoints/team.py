"""
War room team endpoints (owning attorney or admin)
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, load_case, require_roles
from mocktrial.db.database import get_db
from mocktrial.services import team_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class TeamMemberIn(BaseModel):
    name: str
    role: str
    email: str


class TeamMemberBatch(BaseModel):
    team_members: List[Dict[str, Any]]


@router.get("/case/{case_id}")
def list_team(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": team_service.get_team_members(db, case_id)}


@router.get("/case/{case_id}/stats")
def team_stats(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": team_service.get_team_stats(db, case_id)}


@router.post("/case/{case_id}", status_code=201)
def add_member(
    case_id: str,
    payload: TeamMemberIn,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    member = team_service.add_team_member(
        db, case_id, payload.name, payload.role, payload.email,
        actor_id=principal.id, actor_type=principal.user_type,
    )
    return {"success": True, "data": team_service.member_to_api(member)}


@router.post("/case/{case_id}/batch", status_code=201)
def add_members(
    case_id: str,
    payload: TeamMemberBatch,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    result = team_service.add_team_members(
        db, case_id, payload.team_members,
        actor_id=principal.id, actor_type=principal.user_type,
    )
    return {"success": True, "data": result}


@router.put("/case/{case_id}/{member_id}")
def update_member(
    case_id: str,
    member_id: str,
    payload: TeamMemberIn,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    member = team_service.update_team_member(db, case_id, member_id, payload.name, payload.role, payload.email)
    return {"success": True, "data": team_service.member_to_api(member)}


@router.delete("/case/{case_id}/{member_id}")
def remove_member(
    case_id: str,
    member_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    if not team_service.remove_team_member(
        db, case_id, member_id, actor_id=principal.id, actor_type=principal.user_type
    ):
        raise NotFoundError("Team member", member_id)
    return {"success": True, "message": "Team member removed"}
