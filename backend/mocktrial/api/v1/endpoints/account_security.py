"""
Password reset tokens and login lockout bookkeeping.

Issuing a token and recording login failures are service-to-service calls
(the auth service holds an admin token and delivers the email itself).
Verifying and consuming a token only needs the token.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from mocktrial.api.v1.deps import Principal, require_admin
from mocktrial.db.database import get_db
from mocktrial.services import login_attempt_service, password_reset_service
from mocktrial.utils.exceptions import BusinessRuleError
from mocktrial.utils.helpers import iso

router = APIRouter()


class ResetTokenRequest(BaseModel):
    email: str
    user_type: str


class TokenIn(BaseModel):
    token: str
    user_type: str


AccountType = Literal["attorney", "juror", "admin"]


class AccountRef(BaseModel):
    email: str
    user_type: AccountType


class LoginFailure(BaseModel):
    email: str
    user_type: AccountType
    ip_address: Optional[str] = None


# ============================================================================
# Password reset
# ============================================================================

@router.post("/password-reset/tokens")
def issue_reset_token(
    payload: ResetTokenRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = password_reset_service.create_reset_token(db, payload.email, payload.user_type)
    return {"success": True, "data": data}


@router.post("/password-reset/verify")
def verify_reset_token(
    payload: TokenIn,
    db: Session = Depends(get_db),
):
    info = password_reset_service.verify_reset_token(db, payload.token, payload.user_type)
    if info is None:
        raise BusinessRuleError("Invalid or expired reset token", code="INVALID_RESET_TOKEN")
    return {"success": True, "data": info}


@router.post("/password-reset/consume")
def consume_reset_token(
    payload: TokenIn,
    db: Session = Depends(get_db),
):
    info = password_reset_service.verify_reset_token(db, payload.token, payload.user_type)
    if info is None or not password_reset_service.mark_token_used(db, payload.token, payload.user_type):
        raise BusinessRuleError("Invalid or expired reset token", code="INVALID_RESET_TOKEN")
    return {"success": True, "data": {"email": info["email"], "userType": payload.user_type}}


@router.post("/password-reset/invalidate")
def invalidate_tokens(
    payload: ResetTokenRequest,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    count = password_reset_service.invalidate_all_tokens(db, payload.email, payload.user_type)
    return {"success": True, "data": {"invalidated": count}}


@router.get("/password-reset/active")
def active_token(
    email: str = Query(...),
    user_type: str = Query(...),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    info = password_reset_service.get_active_token_info(db, email, user_type)
    return {
        "success": True,
        "data": {
            "token": info,
            "recentAttempts": password_reset_service.get_reset_attempt_count(db, email),
        },
    }


@router.get("/password-reset/statistics")
def reset_statistics(
    days: int = Query(7, ge=1, le=365),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": password_reset_service.get_reset_statistics(db, days=days)}


# ============================================================================
# Login attempts
# ============================================================================

def _lockout_status(db: Session, email: str, user_type: str) -> dict:
    locked = login_attempt_service.is_locked_out(db, email, user_type)
    return {
        "locked": locked,
        "failedAttempts": login_attempt_service.get_recent_failed_attempts(db, email, user_type),
        "lockedUntil": iso(login_attempt_service.get_lockout_time(db, email, user_type)) if locked else None,
    }


@router.post("/login-attempts/failed")
def record_failure(
    payload: LoginFailure,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    login_attempt_service.record_failed_attempt(db, payload.email, payload.user_type, payload.ip_address)
    return {"success": True, "data": _lockout_status(db, payload.email, payload.user_type)}


@router.get("/login-attempts/status")
def lockout_status(
    email: str = Query(...),
    user_type: AccountType = Query(...),
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return {"success": True, "data": _lockout_status(db, email, user_type)}


@router.post("/login-attempts/clear")
def clear_failures(
    payload: AccountRef,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    cleared = login_attempt_service.clear_failed_attempts(db, payload.email, payload.user_type)
    return {"success": True, "data": {"cleared": cleared}}
