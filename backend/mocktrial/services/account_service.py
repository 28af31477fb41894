"""
services/account_service.py

Shared plumbing for the three account tables (admins, attorneys, jurors):
profile updates from an allow-list, activation flags, soft delete, email
checks and paging. Each account service wraps these with its own model.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Optional, Type

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from mocktrial.utils.exceptions import ConflictError, NotFoundError, ValidationError
from mocktrial.utils.helpers import to_uuid
from mocktrial.utils.validators import clamp, normalize_email

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[\d\s\-\+\(\)]+$")


def account_id(value: Any, label: str):
    uid = to_uuid(value)
    if uid is None:
        raise ValidationError([f"Valid {label} ID is required"], prefix=f"{label.capitalize()} validation failed")
    return uid


def get_live(db: Session, model: Type, value: Any, label: str):
    """Non-deleted row or None."""
    row = db.get(model, account_id(value, label))
    if row is None or row.is_deleted:
        return None
    return row


def get_live_or_404(db: Session, model: Type, value: Any, label: str):
    row = get_live(db, model, value, label)
    if row is None:
        raise NotFoundError(label.capitalize(), value)
    return row


def email_exists(db: Session, model: Type, email: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(model.id).filter(func.lower(model.email) == normalize_email(email))
    exclude = to_uuid(exclude_id)
    if exclude is not None:
        query = query.filter(model.id != exclude)
    return query.first() is not None


def commit_unique(db: Session, message: str, code: str) -> None:
    """Commit; a unique-constraint hit becomes a 409 with ``message``."""
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(message, code=code) from e


def update_fields(
    db:       Session,
    row:      Any,
    data:     Dict[str, Any],
    allowed:  Dict[str, Callable[[Any], Any]],
    label:    str,
) -> Any:
    """
    Apply the keys of ``data`` that appear in ``allowed``; each value goes
    through its converter first. Unknown keys are ignored.
    """
    changes = {key: convert(data[key]) for key, convert in allowed.items() if key in data}
    if not changes:
        raise ValidationError(["No valid fields to update"], prefix=f"{label.capitalize()} update failed")
    if "email" in changes:
        if not changes["email"]:
            raise ValidationError(["Email is required"], prefix=f"{label.capitalize()} update failed")
        changes["email"] = normalize_email(changes["email"])
    for key, value in changes.items():
        setattr(row, key, value)
    commit_unique(db, "Email is already registered", "DUPLICATE_EMAIL")
    db.refresh(row)
    return row


def text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def int_or_none(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def touch_last_login(db: Session, row: Any) -> None:
    row.last_login_at = datetime.utcnow()
    db.commit()


def set_active(db: Session, row: Any, is_active: bool) -> Any:
    row.is_active = is_active
    db.commit()
    db.refresh(row)
    return row


def soft_delete(db: Session, row: Any) -> bool:
    row.is_deleted = True
    row.is_active = False
    if hasattr(row, "deleted_at"):
        row.deleted_at = datetime.utcnow()
    db.commit()
    return True


def paginate(
    db:            Session,
    model:         Type,
    to_api:        Callable[[Any], Dict[str, Any]],
    page:          int                   = 1,
    limit:         int                   = 20,
    search:        Optional[str]         = None,
    search_fields: Iterable[Any]         = (),
    filters:       Iterable[Any]         = (),
    order_by:      Any                   = None,
) -> Dict[str, Any]:
    page = clamp(page, 1, 10_000, 1)
    limit = clamp(limit, 1, 100, 20)

    query = db.query(model).filter(model.is_deleted == False, *filters)  # noqa: E712
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(*[field.ilike(term) for field in search_fields]))

    total = query.count()
    rows = (
        query.order_by(order_by if order_by is not None else model.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [to_api(r) for r in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total else 0,
    }
