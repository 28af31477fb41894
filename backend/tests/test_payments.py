import pytest

from mocktrial.db.models import PaymentStatus
from mocktrial.services import payment_service
from mocktrial.utils.exceptions import BusinessRuleError, ValidationError


@pytest.fixture
def completed_payment(db, attorney, open_case):
    payment = payment_service.create_payment(
        db, str(attorney.id), "attorney", 100, "credit_card", case_id=str(open_case.id)
    )
    return payment_service.update_payment_status(db, str(payment.id), "completed", transaction_id="txn_1")


def test_payment_validation_collects_errors(db, attorney):
    with pytest.raises(ValidationError) as exc:
        payment_service.create_payment(db, str(attorney.id), "lawyer", "abc", "cash")
    assert "Invalid user type" in exc.value.errors
    assert "Valid payment amount is required" in exc.value.errors
    assert len(exc.value.errors) == 3


def test_completion_stamps_time(completed_payment):
    assert completed_payment.status == PaymentStatus.completed
    assert completed_payment.completed_at is not None
    assert completed_payment.transaction_id == "txn_1"


def test_partial_refunds_up_to_original(db, completed_payment):
    first = payment_service.process_refund(db, str(completed_payment.id), 60, "Partial")
    assert first.amount == -60
    assert first.status == PaymentStatus.refunded
    assert first.original_payment_id == completed_payment.id

    with pytest.raises(BusinessRuleError) as exc:
        payment_service.process_refund(db, str(completed_payment.id), 50, "Too much")
    assert "remaining refundable balance of 40.00" in exc.value.message

    payment_service.process_refund(db, str(completed_payment.id), 40, "Rest")
    assert payment_service.refunded_total(db, completed_payment.id) == 100

    db.refresh(completed_payment)
    assert completed_payment.status == PaymentStatus.completed
    assert completed_payment.amount == 100


def test_refund_larger_than_payment(db, completed_payment):
    with pytest.raises(BusinessRuleError) as exc:
        payment_service.process_refund(db, str(completed_payment.id), 150, "Oops")
    assert exc.value.message == "Refund amount cannot exceed original payment amount"


def test_only_completed_payments_refund(db, attorney):
    payment = payment_service.create_payment(db, str(attorney.id), "attorney", 25, "paypal")
    with pytest.raises(BusinessRuleError) as exc:
        payment_service.process_refund(db, str(payment.id), 5, "Early")
    assert exc.value.code == "REFUND_NOT_ALLOWED"
