import uuid

import pytest

from conftest import auth_headers
from mocktrial.db.models import (
    AttorneyStatus,
    CaseTier,
    Notification,
    NotificationType,
    Payment,
    PaymentStatus,
)
from mocktrial.services import tier_upgrade_service
from mocktrial.utils.exceptions import BusinessRuleError, ForbiddenError, ValidationError


def test_available_upgrades_from_tier_one(db, open_case):
    options = tier_upgrade_service.get_available_upgrades(db, str(open_case.id))
    assert options["currentTier"] == "Tier 1"
    assert options["canUpgrade"] is True
    assert [(u["tier"], u["priceDifference"]) for u in options["availableUpgrades"]] == [
        ("Tier 2", 1000.0),
        ("Tier 3", 2000.0),
    ]


def test_upgrade_charges_the_difference(db, open_case, attorney, admin):
    result = tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 2")
    assert result["upgrade"]["fromTier"] == "Tier 1"
    assert result["upgrade"]["toTier"] == "Tier 2"
    assert result["case"]["caseTier"] == "Tier 2"

    payment = db.get(Payment, uuid.UUID(result["paymentId"]))
    assert payment.amount == 1000.0
    assert payment.payment_type.value == "tier_upgrade"
    assert payment.status == PaymentStatus.completed

    history = tier_upgrade_service.get_upgrade_history(db, str(open_case.id))
    assert len(history) == 1
    assert history[0]["paymentId"] == result["paymentId"]

    note = (
        db.query(Notification)
        .filter(Notification.user_id == admin.id, Notification.notification_type == NotificationType.case_updated)
        .one()
    )
    assert "Tier 1 to Tier 2" in note.message

    options = tier_upgrade_service.get_available_upgrades(db, str(open_case.id))
    assert [u["tier"] for u in options["availableUpgrades"]] == ["Tier 3"]


def test_same_tier_and_downgrade_rejected(db, open_case, attorney):
    tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 3")
    with pytest.raises(BusinessRuleError) as exc:
        tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 3")
    assert exc.value.code == "SAME_TIER"
    with pytest.raises(BusinessRuleError) as exc:
        tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 2")
    assert exc.value.code == "INVALID_UPGRADE"
    with pytest.raises(ValidationError):
        tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 9")


def test_tier_locked_once_trial_begins(db, open_case, attorney):
    open_case.attorney_status = AttorneyStatus.join_trial
    db.commit()
    with pytest.raises(BusinessRuleError) as exc:
        tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(attorney.id), "Tier 2")
    assert exc.value.code == "UPGRADE_NOT_ALLOWED"
    assert tier_upgrade_service.get_available_upgrades(db, str(open_case.id))["canUpgrade"] is False
    db.refresh(open_case)
    assert open_case.case_tier == CaseTier.tier_1
    assert db.query(Payment).count() == 0


def test_only_the_owner_upgrades(db, open_case):
    with pytest.raises(ForbiddenError):
        tier_upgrade_service.upgrade_case_tier(db, str(open_case.id), str(uuid.uuid4()), "Tier 2")


async def test_upgrade_route(client, open_case, attorney):
    response = await client.post(
        f"/api/v1/tier-upgrades/{open_case.id}",
        json={"new_tier": "Tier 2"},
        headers=auth_headers(attorney.id, "attorney"),
    )
    assert response.status_code == 200
    assert response.json()["data"]["upgrade"]["priceDifference"] == 1000.0

    response = await client.get(
        f"/api/v1/tier-upgrades/{open_case.id}/history", headers=auth_headers(attorney.id, "attorney")
    )
    assert len(response.json()["data"]) == 1
