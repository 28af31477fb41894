"""
services/password_reset_service.py

Password reset tokens. Only the sha256 of a token is stored; the plain token
is returned once, to whoever sends the reset email.

The response for an unknown email looks the same as for a known one so the
endpoint can't be used to enumerate accounts.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case as sql_case, func
from sqlalchemy.orm import Session

from mocktrial.core.config import settings
from mocktrial.db.models import Attorney, Juror, PasswordReset, UserType
from mocktrial.utils.exceptions import RateLimitedError, ValidationError
from mocktrial.utils.helpers import enum_value, iso
from mocktrial.utils.validators import clamp, normalize_email, validate_email

logger = logging.getLogger(__name__)

RESET_USER_TYPES = (UserType.attorney.value, UserType.juror.value)
GENERIC_RESPONSE = "If this email exists, a reset link has been sent"


def generate_token() -> str:
    """48 hex characters."""
    return secrets.token_hex(24)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _validate(email: str, user_type: str) -> tuple[str, UserType]:
    errors = []
    if not email:
        errors.append("Email is required")
    elif not validate_email(email):
        errors.append("Invalid email format")
    if not user_type:
        errors.append("User type is required")
    elif user_type not in RESET_USER_TYPES:
        errors.append(f"Invalid user type. Must be one of: {', '.join(RESET_USER_TYPES)}")
    if errors:
        raise ValidationError(errors, prefix="Password reset validation failed")
    return normalize_email(email), UserType(user_type)


def _user_exists(db: Session, email: str, user_type: UserType) -> bool:
    model = Attorney if user_type == UserType.attorney else Juror
    return (
        db.query(model.id)
        .filter(func.lower(model.email) == email, model.is_deleted == False)  # noqa: E712
        .first()
        is not None
    )


def get_reset_attempt_count(db: Session, email: str, window_minutes: Optional[int] = None) -> int:
    window = clamp(window_minutes or settings.PASSWORD_RESET_WINDOW_MINUTES, 1, 60, 15)
    since = datetime.utcnow() - timedelta(minutes=window)
    return (
        db.query(func.count(PasswordReset.id))
        .filter(PasswordReset.email == normalize_email(email), PasswordReset.created_at > since)
        .scalar()
        or 0
    )


def create_reset_token(db: Session, email: str, user_type: str) -> Dict[str, Any]:
    """
    Returns ``{token, expiresAt, expiresInMinutes}`` for a known account and
    ``{token: None, message}`` otherwise. Earlier unused tokens for the same
    account are invalidated.
    """
    email, utype = _validate(email, user_type)

    if not _user_exists(db, email, utype):
        logger.info("Password reset requested for unknown %s account", utype.value)
        return {"token": None, "message": GENERIC_RESPONSE}

    window = settings.PASSWORD_RESET_WINDOW_MINUTES
    if get_reset_attempt_count(db, email, window) >= settings.PASSWORD_RESET_MAX_ATTEMPTS:
        raise RateLimitedError(f"Too many password reset attempts. Please try again in {window} minutes")

    now = datetime.utcnow()
    (
        db.query(PasswordReset)
        .filter(PasswordReset.email == email, PasswordReset.user_type == utype, PasswordReset.used_at.is_(None))
        .update({"used_at": now}, synchronize_session=False)
    )

    token = generate_token()
    expires_at = now + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_MINUTES)
    db.add(PasswordReset(email=email, user_type=utype, token_hash=hash_token(token), expires_at=expires_at))
    db.commit()

    logger.info("Password reset token issued (%s)", utype.value)
    return {
        "token": token,
        "expiresAt": iso(expires_at),
        "expiresInMinutes": settings.PASSWORD_RESET_TOKEN_MINUTES,
        "message": GENERIC_RESPONSE,
    }


def verify_reset_token(db: Session, token: str, user_type: str) -> Optional[Dict[str, Any]]:
    if not token or user_type not in RESET_USER_TYPES:
        return None
    row = (
        db.query(PasswordReset)
        .filter(
            PasswordReset.token_hash == hash_token(token),
            PasswordReset.user_type == UserType(user_type),
            PasswordReset.expires_at > datetime.utcnow(),
            PasswordReset.used_at.is_(None),
        )
        .first()
    )
    if row is None:
        return None
    return {"email": row.email, "expiresAt": iso(row.expires_at), "createdAt": iso(row.created_at)}


def mark_token_used(db: Session, token: str, user_type: str) -> bool:
    """Single use: only the first call for a live token returns True."""
    if not token:
        raise ValidationError(["Valid token required"], prefix="Password reset validation failed")
    if user_type not in RESET_USER_TYPES:
        raise ValidationError(
            [f"Invalid user type. Must be one of: {', '.join(RESET_USER_TYPES)}"],
            prefix="Password reset validation failed",
        )
    now = datetime.utcnow()
    updated = (
        db.query(PasswordReset)
        .filter(
            PasswordReset.token_hash == hash_token(token),
            PasswordReset.user_type == UserType(user_type),
            PasswordReset.used_at.is_(None),
            PasswordReset.expires_at > now,
        )
        .update({"used_at": now}, synchronize_session=False)
    )
    db.commit()
    return updated > 0


def invalidate_all_tokens(db: Session, email: str, user_type: str) -> int:
    email, utype = _validate(email, user_type)
    updated = (
        db.query(PasswordReset)
        .filter(PasswordReset.email == email, PasswordReset.user_type == utype, PasswordReset.used_at.is_(None))
        .update({"used_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def cleanup_expired_tokens(db: Session) -> int:
    """Drop expired and used tokens. Never raises."""
    try:
        deleted = (
            db.query(PasswordReset)
            .filter((PasswordReset.expires_at < datetime.utcnow()) | PasswordReset.used_at.isnot(None))
            .delete(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Password reset cleanup failed")
        return 0
    logger.info("Cleaned up %s expired/used password reset tokens", deleted)
    return deleted


def get_active_token_info(db: Session, email: str, user_type: str) -> Optional[Dict[str, Any]]:
    email, utype = _validate(email, user_type)
    now = datetime.utcnow()
    row = (
        db.query(PasswordReset)
        .filter(
            PasswordReset.email == email,
            PasswordReset.user_type == utype,
            PasswordReset.expires_at > now,
            PasswordReset.used_at.is_(None),
        )
        .order_by(PasswordReset.created_at.desc())
        .first()
    )
    if row is None:
        return None
    return {
        "email": row.email,
        "userType": utype.value,
        "expiresAt": iso(row.expires_at),
        "createdAt": iso(row.created_at),
        "minutesUntilExpiry": int((row.expires_at - now).total_seconds() // 60),
    }


def get_reset_statistics(db: Session, days: int = 7) -> List[Dict[str, Any]]:
    now = datetime.utcnow()
    since = now - timedelta(days=clamp(days, 1, 365, 7))
    used = PasswordReset.used_at.isnot(None)
    unused = PasswordReset.used_at.is_(None)
    rows = (
        db.query(
            PasswordReset.user_type,
            func.count(PasswordReset.id),
            func.sum(sql_case((used, 1), else_=0)),
            func.sum(sql_case(((PasswordReset.expires_at < now) & unused, 1), else_=0)),
            func.sum(sql_case(((PasswordReset.expires_at > now) & unused, 1), else_=0)),
        )
        .filter(PasswordReset.created_at >= since)
        .group_by(PasswordReset.user_type)
        .all()
    )
    return [
        {
            "userType": enum_value(utype),
            "totalRequests": total,
            "successfulResets": int(ok or 0),
            "expiredTokens": int(expired or 0),
            "activeTokens": int(active or 0),
        }
        for utype, total, ok, expired, active in rows
    ]
