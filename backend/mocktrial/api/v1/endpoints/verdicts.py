"""
Verdict endpoints
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    load_case,
    require_admin,
    require_juror,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import verdict_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class VerdictIn(BaseModel):
    responses: Dict[str, Any]


@router.post("/{case_id}/submit", status_code=201)
def submit(
    case_id: str,
    payload: VerdictIn,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    verdict = verdict_service.submit_verdict(db, case_id, principal.id, payload.responses)
    return {"success": True, "data": verdict_service.verdict_to_api(verdict)}


@router.put("/{case_id}/draft")
def save_draft(
    case_id: str,
    payload: VerdictIn,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": verdict_service.save_draft(db, case_id, principal.id, payload.responses)}


@router.get("/{case_id}/draft")
def load_draft(
    case_id: str,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": verdict_service.load_draft(db, case_id, principal.id)}


@router.get("/{case_id}/mine")
def my_verdict(
    case_id: str,
    principal: Principal = Depends(require_juror),
    db: Session = Depends(get_db),
):
    verdict = verdict_service.get_verdict_by_juror(db, case_id, principal.id)
    if verdict is None:
        raise NotFoundError("Verdict")
    return {"success": True, "data": verdict_service.verdict_to_api(verdict)}


@router.get("/{case_id}")
def case_verdicts(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": verdict_service.get_verdicts_by_case(db, case_id)}


@router.get("/{case_id}/status")
def submission_status(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": verdict_service.get_submission_status(db, case_id)}


@router.get("/{case_id}/results")
def aggregated_results(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": verdict_service.get_aggregated_results(db, case_id)}


@router.delete("/entry/{verdict_id}")
def delete_verdict(
    verdict_id: str,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not verdict_service.delete_verdict(db, verdict_id):
        raise NotFoundError("Verdict", verdict_id)
    return {"success": True, "message": "Verdict deleted"}
