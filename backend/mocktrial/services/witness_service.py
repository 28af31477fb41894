"""
services/witness_service.py

Witnesses an attorney lines up for a case. Jurors later rate each one for
credibility, so the list order is kept in ``order_index``.

Called by:
  - api/v1/endpoints/witnesses.py
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from mocktrial.db.models import CaseWitness, WitnessSide
from mocktrial.services import case_service
from mocktrial.services.event_service import record_event
from mocktrial.utils.exceptions import NotFoundError, ValidationError
from mocktrial.utils.helpers import enum_value, iso, to_uuid
from mocktrial.utils.validators import normalize_email, validate_email

logger = logging.getLogger(__name__)

PREFIX = "Witness validation failed"
MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000


def _witness_to_api(w: CaseWitness) -> Dict[str, Any]:
    return {
        "id": str(w.id),
        "caseId": str(w.case_id),
        "name": w.witness_name,
        "side": enum_value(w.side),
        "description": w.description,
        "email": w.email,
        "isAccepted": w.is_accepted,
        "orderIndex": w.order_index,
        "createdAt": iso(w.created_at),
        "updatedAt": iso(w.updated_at),
    }


def validate_witness(data: Dict[str, Any]) -> List[str]:
    """Return the list of problems with one witness payload (empty when valid)."""
    errors = []
    name = (data.get("name") or "").strip()
    if not name:
        errors.append("Witness name is required")
    elif len(name) > MAX_NAME_LENGTH:
        errors.append(f"Witness name too long (max {MAX_NAME_LENGTH} characters)")

    side = data.get("side")
    if side not in WitnessSide._value2member_map_:
        errors.append(f"Witness side must be one of: {', '.join(s.value for s in WitnessSide)}")

    description = (data.get("description") or "").strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)")

    email = data.get("email")
    if email and not validate_email(email):
        errors.append("Invalid email format")
    return errors


def _apply(witness: CaseWitness, data: Dict[str, Any]) -> None:
    witness.witness_name = data["name"].strip()
    witness.side = WitnessSide(data["side"])
    witness.description = (data.get("description") or "").strip() or None
    witness.email = normalize_email(data["email"]) if data.get("email") else None
    if "is_accepted" in data and data["is_accepted"] is not None:
        witness.is_accepted = bool(data["is_accepted"])


# ============================================================================
# Write
# ============================================================================

def save_witnesses(
    db:         Session,
    case_id:    str,
    witnesses:  List[Dict[str, Any]],
    actor_id:   Optional[str] = None,
    actor_type: str           = "attorney",
) -> List[CaseWitness]:
    """
    Replace the whole witness list of a case in one transaction.

    Every witness is validated first; one bad entry rejects the batch and the
    stored list is left as it was.
    """
    if not isinstance(witnesses, list):
        raise ValidationError(["Witnesses must be an array"], prefix=PREFIX)
    errors = []
    for index, witness in enumerate(witnesses, start=1):
        errors.extend(f"Witness {index}: {e}" for e in validate_witness(witness))
    if errors:
        raise ValidationError(errors, prefix=PREFIX)

    case = case_service.get_live_case(db, case_id)

    db.query(CaseWitness).filter(CaseWitness.case_id == case.id).delete(synchronize_session=False)
    saved = []
    for index, data in enumerate(witnesses):
        witness = CaseWitness(case_id=case.id, order_index=index)
        _apply(witness, data)
        db.add(witness)
        saved.append(witness)
    db.commit()
    for witness in saved:
        db.refresh(witness)

    logger.info("Saved %s witnesses for case %s", len(saved), case.id)
    record_event(
        db, str(case.id), "case_updated", f"Witness list saved ({len(saved)} witnesses)",
        triggered_by=actor_id, user_type=actor_type,
    )
    return saved


def update_witness(db: Session, witness_id: str, data: Dict[str, Any]) -> CaseWitness:
    witness = get_witness(db, witness_id)
    if witness is None:
        raise NotFoundError("Witness", witness_id)
    errors = validate_witness(data)
    if errors:
        raise ValidationError(errors, prefix=PREFIX)
    _apply(witness, data)
    db.commit()
    db.refresh(witness)
    return witness


def set_accepted(db: Session, witness_id: str, accepted: bool) -> CaseWitness:
    witness = get_witness(db, witness_id)
    if witness is None:
        raise NotFoundError("Witness", witness_id)
    witness.is_accepted = bool(accepted)
    db.commit()
    db.refresh(witness)
    return witness


def delete_witness(db: Session, witness_id: str) -> bool:
    wid = to_uuid(witness_id)
    if wid is None:
        raise ValidationError(["Valid witness ID is required"], prefix=PREFIX)
    deleted = db.query(CaseWitness).filter(CaseWitness.id == wid).delete(synchronize_session=False)
    db.commit()
    return deleted > 0


# ============================================================================
# Read
# ============================================================================

def get_witness(db: Session, witness_id: str) -> Optional[CaseWitness]:
    wid = to_uuid(witness_id)
    if wid is None:
        raise ValidationError(["Valid witness ID is required"], prefix=PREFIX)
    return db.get(CaseWitness, wid)


def _case_witnesses(db: Session, case_id: str) -> List[CaseWitness]:
    cid = to_uuid(case_id)
    if cid is None:
        raise ValidationError(["Valid case ID is required"], prefix=PREFIX)
    return (
        db.query(CaseWitness)
        .filter(CaseWitness.case_id == cid)
        .order_by(CaseWitness.order_index.asc(), CaseWitness.created_at.asc())
        .all()
    )


def get_witnesses(db: Session, case_id: str) -> List[Dict[str, Any]]:
    return [_witness_to_api(w) for w in _case_witnesses(db, case_id)]


def get_witness_stats(db: Session, case_id: str) -> Dict[str, Any]:
    witnesses = _case_witnesses(db, case_id)
    return {
        "total": len(witnesses),
        "accepted": sum(1 for w in witnesses if w.is_accepted),
        "bySide": dict(Counter(enum_value(w.side) for w in witnesses)),
    }


def export_witnesses_text(db: Session, case_id: str, now: Optional[datetime] = None) -> str:
    """Plain-text witness sheet handed to jurors for credibility evaluation."""
    witnesses = _case_witnesses(db, case_id)
    now = now or datetime.utcnow()

    lines = [
        "WITNESSES FOR CREDIBILITY EVALUATION",
        "=====================================",
        f"Case ID: {case_id}",
        f"Generated: {now.strftime('%Y-%m-%d %H:%M')} UTC",
        "",
    ]
    if not witnesses:
        lines.append("No witnesses have been added for this case.")
    for index, witness in enumerate(witnesses, start=1):
        lines.append(f"Witness {index}: {witness.witness_name}")
        lines.append(f"Side: {enum_value(witness.side)}")
        if witness.description:
            lines.append(f"Description: {witness.description}")
        lines.extend(["", "---", ""])
    return "\n".join(lines) + "\n"


def witness_to_api(witness: CaseWitness) -> Dict[str, Any]:
    return _witness_to_api(witness)
