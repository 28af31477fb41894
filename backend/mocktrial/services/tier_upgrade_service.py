"""
services/tier_upgrade_service.py

Paid move of a case to a longer trial tier. The card charge happens at the
payment processor; this records the completed ``tier_upgrade`` payment, the
``tier_upgrades`` history row and the new tier on the case.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mocktrial.db.models import Admin, AttorneyStatus, CaseTier, TierUpgrade
from mocktrial.services import case_service, payment_service
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import create_bulk_notifications
from mocktrial.utils.exceptions import BusinessRuleError, ForbiddenError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none

logger = logging.getLogger(__name__)

TIER_PRICING: Dict[str, Dict[str, Any]] = {
    CaseTier.tier_1.value: {"price": 3500.0, "duration": "2.5 hours"},
    CaseTier.tier_2.value: {"price": 4500.0, "duration": "3.5 hours"},
    CaseTier.tier_3.value: {"price": 5500.0, "duration": "4.5 hours"},
}

TIER_ORDER = [t.value for t in CaseTier]

# Once the trial is underway (or over) the tier is locked
LOCKED_STATUSES = {
    AttorneyStatus.join_trial,
    AttorneyStatus.view_details,
    AttorneyStatus.completed,
    AttorneyStatus.cancelled,
}


def _upgrade_to_api(u: TierUpgrade) -> Dict[str, Any]:
    return {
        "id": str(u.id),
        "caseId": str(u.case_id),
        "attorneyId": str(u.attorney_id),
        "fromTier": enum_value(u.from_tier),
        "toTier": enum_value(u.to_tier),
        "priceDifference": u.price_difference,
        "paymentId": str_or_none(u.payment_id),
        "createdAt": iso(u.created_at),
    }


def price_difference(from_tier: str, to_tier: str) -> float:
    return TIER_PRICING[to_tier]["price"] - TIER_PRICING[from_tier]["price"]


def get_available_upgrades(db: Session, case_id: str) -> Dict[str, Any]:
    case = case_service.get_live_case(db, case_id)
    current = enum_value(case.case_tier)
    locked = case.attorney_status in LOCKED_STATUSES
    upgrades = []
    if not locked:
        for tier in TIER_ORDER[TIER_ORDER.index(current) + 1:]:
            upgrades.append({
                "tier": tier,
                "price": TIER_PRICING[tier]["price"],
                "duration": TIER_PRICING[tier]["duration"],
                "priceDifference": price_difference(current, tier),
            })
    return {
        "caseId": str(case.id),
        "currentTier": current,
        "currentPrice": TIER_PRICING[current]["price"],
        "canUpgrade": bool(upgrades),
        "availableUpgrades": upgrades,
    }


def upgrade_case_tier(
    db:             Session,
    case_id:        str,
    attorney_id:    str,
    new_tier:       str,
    payment_method: str           = "credit_card",
    transaction_id: Optional[str] = None,
) -> Dict[str, Any]:
    if new_tier not in TIER_PRICING:
        raise ValidationError(
            [f"Invalid tier. Must be one of: {', '.join(TIER_ORDER)}"], prefix="Tier upgrade failed"
        )

    case = case_service.get_live_case(db, case_id)
    if str(case.attorney_id) != str(attorney_id):
        raise ForbiddenError("You can only upgrade your own cases")

    current = enum_value(case.case_tier)
    if new_tier == current:
        raise BusinessRuleError("Case is already on this tier", code="SAME_TIER")
    if TIER_ORDER.index(new_tier) < TIER_ORDER.index(current):
        raise BusinessRuleError("Tier downgrades are not allowed", code="INVALID_UPGRADE")
    if case.attorney_status in LOCKED_STATUSES:
        raise BusinessRuleError(
            f"Cannot upgrade tier while case is {enum_value(case.attorney_status)}",
            code="UPGRADE_NOT_ALLOWED",
        )

    difference = price_difference(current, new_tier)
    payment = payment_service.create_payment(
        db,
        user_id=str(case.attorney_id),
        user_type="attorney",
        amount=difference,
        payment_method=payment_method,
        payment_type="tier_upgrade",
        case_id=str(case.id),
        transaction_id=transaction_id,
        description=f"Tier upgrade: {current} to {new_tier}",
    )
    payment_service.update_payment_status(db, str(payment.id), "completed")

    upgrade = TierUpgrade(
        case_id=case.id,
        attorney_id=case.attorney_id,
        from_tier=CaseTier(current),
        to_tier=CaseTier(new_tier),
        price_difference=difference,
        payment_id=payment.id,
    )
    case.case_tier = CaseTier(new_tier)
    case.payment_amount = (case.payment_amount or 0.0) + difference
    db.add(upgrade)
    db.commit()
    db.refresh(upgrade)

    logger.info("Case %s upgraded %s -> %s (%.2f)", case.id, current, new_tier, difference)
    record_event(
        db, str(case.id), "case_updated", f"Tier upgraded from {current} to {new_tier}",
        triggered_by=str(case.attorney_id), user_type="attorney",
        metadata={"fromTier": current, "toTier": new_tier, "priceDifference": difference},
    )
    _notify_admins(db, case, current, new_tier, difference)

    return {
        "upgrade": _upgrade_to_api(upgrade),
        "case": case_service.case_to_api(case),
        "paymentId": str(payment.id),
    }


def _notify_admins(db: Session, case, from_tier: str, to_tier: str, difference: float) -> None:
    admins = (
        db.query(Admin.id)
        .filter(Admin.is_active == True, Admin.is_deleted == False)  # noqa: E712
        .all()
    )
    if not admins:
        return
    items = [
        {
            "user_id": str(admin_id),
            "user_type": "admin",
            "notification_type": "case_updated",
            "title": "Case tier upgraded",
            "message": f'"{case.case_title}" moved from {from_tier} to {to_tier} (${difference:.2f})',
            "case_id": str(case.id),
        }
        for (admin_id,) in admins
    ]
    try:
        create_bulk_notifications(db, items)
    except Exception as e:
        db.rollback()
        logger.warning("Tier upgrade admin notifications failed for case %s: %s", case.id, e)


def get_upgrade_history(db: Session, case_id: str) -> List[Dict[str, Any]]:
    case = case_service.get_live_case(db, case_id)
    rows = (
        db.query(TierUpgrade)
        .filter(TierUpgrade.case_id == case.id)
        .order_by(TierUpgrade.created_at.desc())
        .all()
    )
    return [_upgrade_to_api(u) for u in rows]
