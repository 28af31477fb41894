"""
services/payment_service.py

Payment bookkeeping. The payment processor itself is external; rows here
record what it reported.

Refunds are new rows with a negative amount and ``original_payment_id``
pointing at the charge. The original row is left as it was, and the sum of
its refunds can never exceed its amount.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from mocktrial.db.models import Case, Payment, PaymentMethod, PaymentStatus, PaymentType, UserType
from mocktrial.services.event_service import record_event
from mocktrial.services.notification_service import notify
from mocktrial.utils.exceptions import BusinessRuleError, NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, str_or_none, to_uuid
from mocktrial.utils.validators import clamp

logger = logging.getLogger(__name__)


def _payment_to_api(p: Payment) -> Dict[str, Any]:
    return {
        "id": str(p.id),
        "caseId": str_or_none(p.case_id),
        "userId": str(p.user_id),
        "userType": enum_value(p.user_type),
        "amount": p.amount,
        "paymentMethod": enum_value(p.payment_method),
        "paymentType": enum_value(p.payment_type),
        "status": enum_value(p.status),
        "transactionId": p.transaction_id,
        "description": p.description,
        "errorMessage": p.error_message,
        "originalPaymentId": str_or_none(p.original_payment_id),
        "completedAt": iso(p.completed_at),
        "createdAt": iso(p.created_at),
    }


def _to_amount(value: Any) -> Optional[float]:
    try:
        amount = round(float(value), 2)
    except (TypeError, ValueError):
        return None
    return amount if amount > 0 else None


def _payment_id(payment_id: str):
    pid = to_uuid(payment_id)
    if pid is None:
        raise ValidationError(["Valid payment ID is required"], prefix="Payment validation failed")
    return pid


# ============================================================================
# Create / update
# ============================================================================

def create_payment(
    db:             Session,
    user_id:        str,
    user_type:      str,
    amount:         Any,
    payment_method: str,
    payment_type:   str           = "case_filing",
    case_id:        Optional[str] = None,
    transaction_id: Optional[str] = None,
    description:    Optional[str] = None,
) -> Payment:
    errors = []
    if case_id is not None and to_uuid(case_id) is None:
        errors.append("Valid case ID is required")
    if to_uuid(user_id) is None:
        errors.append("Valid user ID is required")
    if user_type not in UserType._value2member_map_:
        errors.append("Invalid user type")
    parsed_amount = _to_amount(amount)
    if parsed_amount is None:
        errors.append("Valid payment amount is required")
    if not payment_method:
        errors.append("Payment method is required")
    elif payment_method not in PaymentMethod._value2member_map_:
        errors.append(f"Invalid payment method. Must be one of: {', '.join(m.value for m in PaymentMethod)}")
    if payment_type not in PaymentType._value2member_map_:
        errors.append(f"Invalid payment type. Must be one of: {', '.join(t.value for t in PaymentType)}")
    if errors:
        raise ValidationError(errors, prefix="Payment validation failed")

    if case_id is not None and db.get(Case, to_uuid(case_id)) is None:
        raise NotFoundError("Case", case_id)

    payment = Payment(
        case_id=to_uuid(case_id),
        user_id=to_uuid(user_id),
        user_type=UserType(user_type),
        amount=parsed_amount,
        payment_method=PaymentMethod(payment_method),
        payment_type=PaymentType(payment_type),
        status=PaymentStatus.pending,
        transaction_id=transaction_id,
        description=description,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    logger.info("Payment created: %s (%s %.2f)", payment.id, payment_type, parsed_amount)
    return payment


def update_payment_status(
    db:             Session,
    payment_id:     str,
    status:         str,
    transaction_id: Optional[str] = None,
    error_message:  Optional[str] = None,
) -> Payment:
    pid = _payment_id(payment_id)
    if status not in PaymentStatus._value2member_map_:
        valid = ", ".join(s.value for s in PaymentStatus)
        raise ValidationError([f"Invalid status. Must be one of: {valid}"], prefix="Payment validation failed")

    payment = db.get(Payment, pid)
    if payment is None:
        raise NotFoundError("Payment", payment_id)

    payment.status = PaymentStatus(status)
    if payment.status == PaymentStatus.completed:
        payment.completed_at = datetime.utcnow()
    if transaction_id:
        payment.transaction_id = transaction_id
    if error_message:
        payment.error_message = error_message
    db.commit()
    db.refresh(payment)

    if payment.status == PaymentStatus.completed:
        record_event(
            db, str_or_none(payment.case_id), "payment_processed",
            f"Payment of {payment.amount:.2f} completed",
            triggered_by=str(payment.user_id), user_type=enum_value(payment.user_type),
            metadata={"paymentId": str(payment.id)},
        )
        notify(
            db,
            user_id=str(payment.user_id),
            user_type=enum_value(payment.user_type),
            notification_type="payment_processed",
            title="Payment processed",
            message=f"Your payment of ${payment.amount:.2f} was processed.",
            case_id=str_or_none(payment.case_id),
        )
    elif payment.status == PaymentStatus.failed:
        logger.warning("Payment failed: %s - %s", payment.id, error_message)
        record_event(
            db, str_or_none(payment.case_id), "payment_failed",
            error_message or "Payment failed",
            triggered_by=str(payment.user_id), user_type=enum_value(payment.user_type),
            metadata={"paymentId": str(payment.id)},
        )
    return payment


# ============================================================================
# Read
# ============================================================================

def get_payment(db: Session, payment_id: str) -> Optional[Payment]:
    return db.get(Payment, _payment_id(payment_id))


def get_payments_by_case(db: Session, case_id: str) -> List[Dict[str, Any]]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix="Payment validation failed")
    rows = db.query(Payment).filter(Payment.case_id == cid).order_by(Payment.created_at.desc()).all()
    return [_payment_to_api(p) for p in rows]


def get_payments_by_user(db: Session, user_id: str, user_type: str) -> List[Dict[str, Any]]:
    uid = to_uuid(user_id)
    if uid is None:
        raise ValidationError(["Valid user ID is required"], prefix="Payment validation failed")
    rows = (
        db.query(Payment)
        .filter(Payment.user_id == uid, Payment.user_type == UserType(user_type))
        .order_by(Payment.created_at.desc())
        .all()
    )
    return [_payment_to_api(p) for p in rows]


def get_payment_statistics(db: Session, days: int = 30) -> List[Dict[str, Any]]:
    """Counts and amounts grouped by (status, payment type)."""
    since = datetime.utcnow() - timedelta(days=clamp(days, 1, 365, 30))
    rows = (
        db.query(
            Payment.status,
            Payment.payment_type,
            func.count(Payment.id),
            func.sum(Payment.amount),
            func.avg(Payment.amount),
            func.min(Payment.amount),
            func.max(Payment.amount),
        )
        .filter(Payment.created_at >= since)
        .group_by(Payment.status, Payment.payment_type)
        .order_by(Payment.status, Payment.payment_type)
        .all()
    )
    return [
        {
            "status": enum_value(status),
            "paymentType": enum_value(ptype),
            "count": count,
            "totalAmount": round(total or 0, 2),
            "avgAmount": round(avg or 0, 2),
            "minAmount": low,
            "maxAmount": high,
        }
        for status, ptype, count, total, avg, low, high in rows
    ]


def refunded_total(db: Session, payment_id) -> float:
    total = (
        db.query(func.coalesce(func.sum(Payment.amount), 0.0))
        .filter(Payment.original_payment_id == to_uuid(payment_id))
        .scalar()
    )
    return round(-float(total or 0), 2)


# ============================================================================
# Refunds
# ============================================================================

def process_refund(db: Session, payment_id: str, refund_amount: Any, reason: str) -> Payment:
    pid = _payment_id(payment_id)
    amount = _to_amount(refund_amount)
    if amount is None:
        raise ValidationError(["Valid refund amount is required"], prefix="Payment validation failed")

    # Row lock so two concurrent refunds can't both pass the cap check
    original = db.query(Payment).filter(Payment.id == pid).with_for_update().first()
    if original is None:
        db.rollback()
        raise NotFoundError("Payment", payment_id)
    if original.status != PaymentStatus.completed or original.original_payment_id is not None:
        db.rollback()
        raise BusinessRuleError("Can only refund completed payments", code="REFUND_NOT_ALLOWED")

    already = refunded_total(db, pid)
    if round(already + amount, 2) > round(original.amount, 2):
        db.rollback()
        if already == 0:
            message = "Refund amount cannot exceed original payment amount"
        else:
            message = f"Refund amount exceeds remaining refundable balance of {original.amount - already:.2f}"
        raise BusinessRuleError(message, code="REFUND_NOT_ALLOWED")

    now = datetime.utcnow()
    refund = Payment(
        case_id=original.case_id,
        user_id=original.user_id,
        user_type=original.user_type,
        amount=-amount,
        payment_method=original.payment_method,
        payment_type=original.payment_type,
        status=PaymentStatus.refunded,
        original_payment_id=original.id,
        description=f"Refund: {reason}" if reason else "Refund",
        completed_at=now,
    )
    db.add(refund)
    db.commit()
    db.refresh(refund)

    logger.info("Refund %s issued against payment %s (%.2f)", refund.id, original.id, amount)
    return refund


def payment_to_api(payment: Payment) -> Dict[str, Any]:
    return _payment_to_api(payment)
