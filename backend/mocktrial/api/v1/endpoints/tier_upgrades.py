"""
Tier upgrade endpoints
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, load_case, require_attorney, require_roles
from mocktrial.db.database import get_db
from mocktrial.services import tier_upgrade_service

router = APIRouter()

require_case_staff = require_roles("attorney", "admin")


class TierUpgradeRequest(BaseModel):
    new_tier: str
    payment_method: str = "credit_card"
    transaction_id: Optional[str] = None


@router.get("/{case_id}/available")
def available_upgrades(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": tier_upgrade_service.get_available_upgrades(db, case_id)}


@router.get("/{case_id}/history")
def upgrade_history(
    case_id: str,
    principal: Principal = Depends(require_case_staff),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": tier_upgrade_service.get_upgrade_history(db, case_id)}


@router.post("/{case_id}")
def upgrade_tier(
    case_id: str,
    payload: TierUpgradeRequest,
    principal: Principal = Depends(require_attorney),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    result = tier_upgrade_service.upgrade_case_tier(
        db,
        case_id,
        principal.id,
        payload.new_tier,
        payment_method=payload.payment_method,
        transaction_id=payload.transaction_id,
    )
    return {"success": True, "data": result}
