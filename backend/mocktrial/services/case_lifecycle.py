"""
services/case_lifecycle.py

Case status is two independent state machines stored on one row:

  - AdminApprovalStatus: pending -> approved | rejected (admin workflow)
  - AttorneyStatus:      pending -> war_room -> join_trial -> view_details
                         (client-facing trial progress, plus cancelled/completed)

The only cross-effect is an admin approval, which also opens the war room.
Everything here is pure; callers persist the returned state.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional
from uuid import UUID

from mocktrial.db.models import AdminApprovalStatus, AttorneyStatus

# ============================================================================
# Transition table
# ============================================================================

ATTORNEY_TRANSITIONS: dict[AttorneyStatus, frozenset[AttorneyStatus]] = {
    AttorneyStatus.pending: frozenset({AttorneyStatus.cancelled}),
    AttorneyStatus.war_room: frozenset({AttorneyStatus.join_trial, AttorneyStatus.cancelled}),
    AttorneyStatus.join_trial: frozenset({AttorneyStatus.view_details, AttorneyStatus.completed}),
    AttorneyStatus.view_details: frozenset({AttorneyStatus.completed}),
    AttorneyStatus.cancelled: frozenset(),
    AttorneyStatus.completed: frozenset(),
    AttorneyStatus.awaiting_trial: frozenset(),
}


def allowed_next(status: AttorneyStatus) -> frozenset[AttorneyStatus]:
    return ATTORNEY_TRANSITIONS.get(status, frozenset())


# ============================================================================
# State & decisions
# ============================================================================

class DecisionKind(str, enum.Enum):
    approve = "approve"
    reject = "reject"


@dataclass(frozen=True)
class AdminDecision:
    kind: DecisionKind
    admin_id: Optional[UUID] = None
    comments: Optional[str] = None


@dataclass(frozen=True)
class CaseState:
    attorney_status: AttorneyStatus
    admin_approval_status: AdminApprovalStatus
    admin_comments: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[UUID] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[UUID] = None

    @classmethod
    def from_case(cls, case) -> "CaseState":
        return cls(
            attorney_status=AttorneyStatus(case.attorney_status),
            admin_approval_status=AdminApprovalStatus(case.admin_approval_status),
            admin_comments=case.admin_comments,
            approved_at=case.approved_at,
            approved_by=case.approved_by,
            rejected_at=case.rejected_at,
            rejected_by=case.rejected_by,
        )

    def apply_to(self, case) -> None:
        case.attorney_status = self.attorney_status
        case.admin_approval_status = self.admin_approval_status
        case.admin_comments = self.admin_comments
        case.approved_at = self.approved_at
        case.approved_by = self.approved_by
        case.rejected_at = self.rejected_at
        case.rejected_by = self.rejected_by


def apply_admin_decision(state: CaseState, decision: AdminDecision, now: datetime) -> CaseState:
    """
    Approve: approval -> approved, attorney status -> war_room, stamp approver.
    Reject:  approval -> rejected, stamp rejecter; attorney status unchanged.
    Comments replace the previous ones only when provided.
    """
    comments = decision.comments if decision.comments is not None else state.admin_comments

    if decision.kind == DecisionKind.approve:
        return replace(
            state,
            admin_approval_status=AdminApprovalStatus.approved,
            attorney_status=AttorneyStatus.war_room,
            admin_comments=comments,
            approved_at=now,
            approved_by=decision.admin_id,
        )

    return replace(
        state,
        admin_approval_status=AdminApprovalStatus.rejected,
        admin_comments=comments,
        rejected_at=now,
        rejected_by=decision.admin_id,
    )


def decision_for(status: AdminApprovalStatus, admin_id=None, comments=None) -> Optional[AdminDecision]:
    """Map a requested approval status onto a decision (pending has none)."""
    if status == AdminApprovalStatus.approved:
        return AdminDecision(DecisionKind.approve, admin_id, comments)
    if status == AdminApprovalStatus.rejected:
        return AdminDecision(DecisionKind.reject, admin_id, comments)
    return None


# ============================================================================
# Transition checks
# ============================================================================

@dataclass(frozen=True)
class TransitionResult:
    valid: bool
    message: Optional[str] = None


def check_transition(
    current: AttorneyStatus,
    target: AttorneyStatus,
    admin_approval_status: AdminApprovalStatus,
    approved_jurors: int,
    required_jurors: int,
) -> TransitionResult:
    if target not in allowed_next(current):
        return TransitionResult(False, f"Cannot transition from {current.value} to {target.value}")

    if target == AttorneyStatus.join_trial:
        if admin_approval_status != AdminApprovalStatus.approved:
            return TransitionResult(False, "Case must be approved by admin")
        if approved_jurors < required_jurors:
            return TransitionResult(
                False, f"Need {required_jurors} jurors, only {approved_jurors} approved"
            )

    return TransitionResult(True)
