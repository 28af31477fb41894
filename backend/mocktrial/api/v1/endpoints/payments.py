"""
Payment endpoints

Provider callbacks are out of scope: an admin (or a trusted integration
holding an admin token) moves payments between states.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import (
    Principal,
    ensure_self_or_admin,
    get_current_principal,
    load_case,
    require_admin,
    require_roles,
)
from mocktrial.db.database import get_db
from mocktrial.services import payment_service
from mocktrial.utils.exceptions import NotFoundError

router = APIRouter()


class PaymentCreate(BaseModel):
    amount: float
    payment_method: str
    payment_type: str = "case_filing"
    case_id: Optional[str] = None
    transaction_id: Optional[str] = None
    description: Optional[str] = None


class PaymentStatusUpdate(BaseModel):
    status: str
    transaction_id: Optional[str] = None
    error_message: Optional[str] = None


class RefundRequest(BaseModel):
    amount: float
    reason: str


@router.post("/", status_code=201)
def create_payment(
    payload: PaymentCreate,
    principal: Principal = Depends(require_roles("attorney", "juror")),
    db: Session = Depends(get_db),
):
    if payload.case_id:
        load_case(db, payload.case_id, principal, allow_jurors=True)
    payment = payment_service.create_payment(
        db,
        principal.id,
        principal.user_type,
        payload.amount,
        payload.payment_method,
        payment_type=payload.payment_type,
        case_id=payload.case_id,
        transaction_id=payload.transaction_id,
        description=payload.description,
    )
    return {"success": True, "data": payment_service.payment_to_api(payment)}


@router.get("/mine")
def my_payments(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": payment_service.get_payments_by_user(db, principal.id, principal.user_type)}


@router.get("/statistics")
def payment_statistics(
    days: int = Query(30, ge=1, le=365),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": payment_service.get_payment_statistics(db, days=days)}


@router.get("/case/{case_id}")
def case_payments(
    case_id: str,
    principal: Principal = Depends(require_roles("attorney", "admin")),
    db: Session = Depends(get_db),
):
    load_case(db, case_id, principal)
    return {"success": True, "data": payment_service.get_payments_by_case(db, case_id)}


@router.get("/{payment_id}")
def get_payment(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    payment = payment_service.get_payment(db, payment_id)
    if payment is None:
        raise NotFoundError("Payment", payment_id)
    ensure_self_or_admin(principal, str(payment.user_id))
    return {"success": True, "data": payment_service.payment_to_api(payment)}


@router.patch("/{payment_id}/status")
def update_status(
    payment_id: str,
    payload: PaymentStatusUpdate,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payment = payment_service.update_payment_status(
        db,
        payment_id,
        payload.status,
        transaction_id=payload.transaction_id,
        error_message=payload.error_message,
    )
    return {"success": True, "data": payment_service.payment_to_api(payment)}


@router.post("/{payment_id}/refund", status_code=201)
def refund(
    payment_id: str,
    payload: RefundRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    refund_row = payment_service.process_refund(db, payment_id, payload.amount, payload.reason)
    return {"success": True, "data": payment_service.payment_to_api(refund_row)}
