"""
Witness endpoints. Attorneys manage their own case's list; approved jurors
can read it and download the credibility sheet.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    get_current_principal,
    load_case,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import jury_charge_service, witness_service
from mocktrial.utils.exceptions import ForbiddenError, NotFoundError

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class WitnessIn(BaseModel):
    name: str
    side: str
    description: Optional[str] = None
    email: Optional[str] = None
    is_accepted: Optional[bool] = None


class WitnessList(BaseModel):
    witnesses: List[WitnessIn]


class AcceptedUpdate(BaseModel):
    accepted: bool


def _load_readable_case(db: Session, case_id: str, principal: Principal):
    case = load_case(db, case_id, principal, allow_jurors=True)
    if principal.user_type == "juror" and not jury_charge_service.is_juror_approved_for_case(
        db, case.id, principal.id
    ):
        raise ForbiddenError("You are not approved for this case")
    return case


def _load_witness(db: Session, witness_id: str, principal: Principal):
    witness = witness_service.get_witness(db, witness_id)
    if witness is None:
        raise NotFoundError("Witness", witness_id)
    load_case(db, str(witness.case_id), principal)
    return witness


@router.get("/case/{case_id}")
def list_witnesses(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _load_readable_case(db, case_id, principal)
    return {"success": True, "data": witness_service.get_witnesses(db, case_id)}


@router.post("/case/{case_id}")
def save_witnesses(
    case_id: str,
    payload: WitnessList,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    saved = witness_service.save_witnesses(
        db,
        case_id,
        [w.model_dump() for w in payload.witnesses],
        actor_id=principal.id,
        actor_type=principal.user_type,
    )
    return {"success": True, "data": [witness_service.witness_to_api(w) for w in saved]}


@router.get("/case/{case_id}/stats")
def witness_stats(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _load_readable_case(db, case_id, principal)
    return {"success": True, "data": witness_service.get_witness_stats(db, case_id)}


@router.get("/case/{case_id}/export", response_class=PlainTextResponse)
def export_witnesses(
    case_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    _load_readable_case(db, case_id, principal)
    body = witness_service.export_witnesses_text(db, case_id)
    return PlainTextResponse(
        body,
        headers={"Content-Disposition": f'attachment; filename="witnesses-case-{case_id}.txt"'},
    )


@router.get("/{witness_id}")
def get_witness(
    witness_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    witness = witness_service.get_witness(db, witness_id)
    if witness is None:
        raise NotFoundError("Witness", witness_id)
    _load_readable_case(db, str(witness.case_id), principal)
    return {"success": True, "data": witness_service.witness_to_api(witness)}


@router.put("/{witness_id}")
def update_witness(
    witness_id: str,
    payload: WitnessIn,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _load_witness(db, witness_id, principal)
    witness = witness_service.update_witness(db, witness_id, payload.model_dump())
    return {"success": True, "data": witness_service.witness_to_api(witness)}


@router.patch("/{witness_id}/accepted")
def set_witness_accepted(
    witness_id: str,
    payload: AcceptedUpdate,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _load_witness(db, witness_id, principal)
    witness = witness_service.set_accepted(db, witness_id, payload.accepted)
    return {"success": True, "data": witness_service.witness_to_api(witness)}


@router.delete("/{witness_id}")
def delete_witness(
    witness_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    _load_witness(db, witness_id, principal)
    witness_service.delete_witness(db, witness_id)
    return {"success": True, "message": "Witness deleted"}
