"""
SQLAlchemy ORM Models
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from mocktrial.db.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _enum(enum_cls, name: str) -> SQLEnum:
    """Persist enum *values* (e.g. "Tier 1") rather than member names."""
    return SQLEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
    )


# ============================================================================
# Enums
# ============================================================================

class AttorneyStatus(str, enum.Enum):
    """Client-facing case lifecycle"""
    pending = "pending"
    war_room = "war_room"
    awaiting_trial = "awaiting_trial"
    join_trial = "join_trial"
    view_details = "view_details"
    cancelled = "cancelled"
    completed = "completed"

class AdminApprovalStatus(str, enum.Enum):
    """Admin approval workflow"""
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class CaseType(str, enum.Enum):
    civil = "Civil"
    criminal = "Criminal"

class CaseJurisdiction(str, enum.Enum):
    state = "State"
    federal = "Federal"

class CaseTier(str, enum.Enum):
    tier_1 = "Tier 1"
    tier_2 = "Tier 2"
    tier_3 = "Tier 3"

class JuryChargeStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"

class ApplicationStatus(str, enum.Enum):
    """Juror application status"""
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    withdrawn = "withdrawn"

class QuestionType(str, enum.Enum):
    """Jury charge question types"""
    multiple_choice = "Multiple Choice"
    yes_no = "Yes/No"
    text_response = "Text Response"
    numeric_response = "Numeric Response"

class MeetingStatus(str, enum.Enum):
    created = "created"
    active = "active"
    ended = "ended"
    cancelled = "cancelled"

class UserType(str, enum.Enum):
    """Account kinds"""
    attorney = "attorney"
    juror = "juror"
    admin = "admin"

class ActorType(str, enum.Enum):
    """Who triggered an event"""
    attorney = "attorney"
    juror = "juror"
    admin = "admin"
    system = "system"

class PaymentStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"
    cancelled = "cancelled"

class PaymentMethod(str, enum.Enum):
    credit_card = "credit_card"
    paypal = "paypal"
    bank_transfer = "bank_transfer"
    check = "check"

class PaymentType(str, enum.Enum):
    case_filing = "case_filing"
    juror_payment = "juror_payment"
    attorney_fee = "attorney_fee"
    tier_upgrade = "tier_upgrade"

class NotificationType(str, enum.Enum):
    case_submitted = "case_submitted"
    case_approved = "case_approved"
    case_rejected = "case_rejected"
    case_reschedule_requested = "case_reschedule_requested"
    case_reschedule_needed = "case_reschedule_needed"
    application_received = "application_received"
    application_approved = "application_approved"
    application_rejected = "application_rejected"
    war_room_ready = "war_room_ready"
    trial_starting = "trial_starting"
    trial_started = "trial_started"
    verdict_needed = "verdict_needed"
    verdict_submitted = "verdict_submitted"
    verdict_published = "verdict_published"
    case_completed = "case_completed"
    payment_processed = "payment_processed"
    payment_received = "payment_received"
    account_verified = "account_verified"
    case_updated = "case_updated"
    trial_reminder = "trial_reminder"

class EventType(str, enum.Enum):
    case_created = "case_created"
    case_submitted = "case_submitted"
    case_updated = "case_updated"
    admin_approved = "admin_approved"
    admin_rejected = "admin_rejected"
    admin_requested_reschedule = "admin_requested_reschedule"
    juror_applied = "juror_applied"
    juror_approved = "juror_approved"
    juror_rejected = "juror_rejected"
    war_room_opened = "war_room_opened"
    war_room_submitted = "war_room_submitted"
    trial_started = "trial_started"
    trial_completed = "trial_completed"
    verdict_submitted = "verdict_submitted"
    verdict_published = "verdict_published"
    payment_processed = "payment_processed"
    payment_failed = "payment_failed"
    error = "error"

class RescheduleRequestStatus(str, enum.Enum):
    """Attorney-initiated reschedule request status"""
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

class RescheduleResponse(str, enum.Enum):
    """Attorney answer to an admin reschedule request"""
    pending = "pending"
    accepted = "accepted"
    requested_different = "requested_different"
    rejected = "rejected"
    resolved = "resolved"

class IncidentType(str, enum.Enum):
    disruptive = "disruptive"
    technical = "technical"
    inappropriate = "inappropriate"
    connection = "connection"
    other = "other"

class IncidentSeverity(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class DocumentType(str, enum.Enum):
    evidence = "evidence"
    exhibit = "exhibit"
    brief = "brief"
    motion = "motion"
    pleading = "pleading"
    other = "other"

class RecordingStatus(str, enum.Enum):
    processing = "processing"
    ready = "ready"
    failed = "failed"

class VerificationStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"


class WitnessSide(str, enum.Enum):
    plaintiff = "Plaintiff"
    defendant = "Defendant"
    prosecution = "Prosecution"
    defense = "Defense"
    neutral = "Neutral"


# ============================================================================
# Accounts
# ============================================================================

class Admin(Base):
    """Administrative staff"""
    __tablename__ = "admins"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(50), nullable=False, default="admin")
    permissions = Column(JSONType, nullable=False, default=list)
    timezone = Column(String(64), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class Attorney(Base):
    """Attorney account"""
    __tablename__ = "attorneys"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    law_firm_name = Column(String(255), nullable=True)
    phone_number = Column(String(30), nullable=True)

    # Jurisdiction
    state = Column(String(64), nullable=False)
    county = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    zip_code = Column(String(20), nullable=True)
    office_address_1 = Column(String(255), nullable=True)
    office_address_2 = Column(String(255), nullable=True)
    state_bar_number = Column(String(50), unique=True, nullable=False)

    # IANA zone id; falls back to a lookup on state
    timezone = Column(String(64), nullable=True)
    timezone_offset_minutes = Column(Integer, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)
    verification_status = Column(_enum(VerificationStatus, "verification_status"), nullable=False, default=VerificationStatus.pending)
    verified_at = Column(TIMESTAMP, nullable=True)
    tier_level = Column(String(30), nullable=False, default="free")
    user_agreement_accepted = Column(Boolean, nullable=False, default=False)
    agreement_accepted_at = Column(TIMESTAMP, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(TIMESTAMP, nullable=True)
    last_login_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases = relationship("Case", back_populates="attorney")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Juror(Base):
    """Paid juror account"""
    __tablename__ = "jurors"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(200), nullable=False)
    phone_number = Column(String(30), nullable=True)
    address_1 = Column(String(255), nullable=True)
    address_2 = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(64), nullable=False)
    zip_code = Column(String(20), nullable=True)
    county = Column(String(100), nullable=False, index=True)

    # Demographics used in voir dire
    marital_status = Column(String(50), nullable=True)
    spouse_employer = Column(String(255), nullable=True)
    employer_name = Column(String(255), nullable=True)
    employer_address = Column(String(255), nullable=True)
    years_in_county = Column(Integer, nullable=True)
    age_range = Column(String(30), nullable=True)
    gender = Column(String(30), nullable=True)
    education = Column(String(100), nullable=True)
    payment_method = Column(String(50), nullable=True)
    criteria_responses = Column(JSONType, nullable=True)

    # Onboarding
    intro_video_completed = Column(Boolean, nullable=False, default=False)
    juror_quiz_completed = Column(Boolean, nullable=False, default=False)
    onboarding_completed = Column(Boolean, nullable=False, default=False)
    profile_complete = Column(Boolean, nullable=False, default=False)

    is_verified = Column(Boolean, nullable=False, default=False)
    verification_status = Column(_enum(VerificationStatus, "verification_status"), nullable=False, default=VerificationStatus.pending)
    verified_at = Column(TIMESTAMP, nullable=True)
    user_agreement_accepted = Column(Boolean, nullable=False, default=False)
    agreement_accepted_at = Column(TIMESTAMP, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(TIMESTAMP, nullable=True)
    last_login_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    applications = relationship("JurorApplication", back_populates="juror")


class LoginAttempt(Base):
    """Failed login attempts used for lockout"""
    __tablename__ = "login_attempts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    user_type = Column(_enum(UserType, "user_type"), nullable=False)
    ip_address = Column(String(64), nullable=True)
    attempted_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class PasswordReset(Base):
    """Hashed password reset tokens"""
    __tablename__ = "password_resets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    user_type = Column(_enum(UserType, "user_type"), nullable=False)
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(TIMESTAMP, nullable=False)
    used_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


# ============================================================================
# Cases
# ============================================================================

# A slot is held by any live case that is awaiting or holding approval
ACTIVE_SLOT_PREDICATE = (
    "is_deleted = false AND admin_approval_status IN ('pending', 'approved')"
)


class Case(Base):
    """Mock trial submitted by an attorney"""
    __tablename__ = "cases"
    __table_args__ = (
        Index(
            "uq_cases_active_slot",
            "scheduled_date",
            "scheduled_time",
            unique=True,
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
            sqlite_where=text(ACTIVE_SLOT_PREDICATE),
        ),
        Index("ix_cases_listing", "attorney_status", "admin_approval_status", "is_deleted"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    attorney_id = Column(Uuid, ForeignKey("attorneys.id"), nullable=False, index=True)

    case_type = Column(_enum(CaseType, "case_type"), nullable=False)
    case_jurisdiction = Column(_enum(CaseJurisdiction, "case_jurisdiction"), nullable=False)
    case_tier = Column(_enum(CaseTier, "case_tier"), nullable=False)
    state = Column(String(64), nullable=False)
    county = Column(String(100), nullable=False)
    case_title = Column(String(255), nullable=False)
    case_description = Column(Text, nullable=True)

    # Schedule (UTC)
    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    timezone_offset_minutes = Column(Integer, nullable=False, default=0)
    timezone_name = Column(String(64), nullable=True)

    payment_method = Column(String(50), nullable=True)
    payment_amount = Column(Float, nullable=False, default=0.0)
    required_jurors = Column(Integer, nullable=False, default=7)

    plaintiff_groups = Column(JSONType, nullable=False, default=list)
    defendant_groups = Column(JSONType, nullable=False, default=list)
    voir_dire_1_questions = Column(JSONType, nullable=False, default=list)
    voir_dire_2_questions = Column(JSONType, nullable=False, default=list)

    # Dual status
    attorney_status = Column(_enum(AttorneyStatus, "attorney_status"), nullable=False, default=AttorneyStatus.pending)
    admin_approval_status = Column(_enum(AdminApprovalStatus, "admin_approval_status"), nullable=False, default=AdminApprovalStatus.pending)
    admin_comments = Column(Text, nullable=True)
    approved_at = Column(TIMESTAMP, nullable=True)
    approved_by = Column(Uuid, nullable=True)
    rejected_at = Column(TIMESTAMP, nullable=True)
    rejected_by = Column(Uuid, nullable=True)

    # Jury charge
    jury_charge_status = Column(_enum(JuryChargeStatus, "jury_charge_status"), nullable=False, default=JuryChargeStatus.pending)
    jury_charge_released_at = Column(TIMESTAMP, nullable=True)
    jury_charge_released_by = Column(Uuid, nullable=True)

    # Reschedule bookkeeping
    reschedule_required = Column(Boolean, nullable=False, default=False)
    alternate_slots = Column(JSONType, nullable=True)
    original_scheduled_date = Column(Date, nullable=True)
    original_scheduled_time = Column(Time, nullable=True)
    reschedule_requested_by = Column(Uuid, nullable=True)
    reschedule_requested_at = Column(TIMESTAMP, nullable=True)

    # Countdown reminders already sent
    reminder_4_days_sent = Column(Boolean, nullable=False, default=False)
    reminder_3_days_sent = Column(Boolean, nullable=False, default=False)
    reminder_2_days_sent = Column(Boolean, nullable=False, default=False)
    reminder_1_day_sent = Column(Boolean, nullable=False, default=False)

    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    attorney = relationship("Attorney", back_populates="cases")
    applications = relationship("JurorApplication", back_populates="case")


class JurorApplication(Base):
    """Juror application to sit on a case"""
    __tablename__ = "juror_applications"
    __table_args__ = (
        UniqueConstraint("juror_id", "case_id", name="uq_juror_applications_juror_case"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    juror_id = Column(Uuid, ForeignKey("jurors.id"), nullable=False, index=True)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    status = Column(_enum(ApplicationStatus, "application_status"), nullable=False, default=ApplicationStatus.pending)

    voir_dire_1_responses = Column(JSONType, nullable=False, default=list)
    voir_dire_2_responses = Column(JSONType, nullable=False, default=list)

    applied_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    reviewed_at = Column(TIMESTAMP, nullable=True)
    reviewed_by = Column(Uuid, nullable=True)
    review_comments = Column(Text, nullable=True)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    juror = relationship("Juror", back_populates="applications")
    case = relationship("Case", back_populates="applications")


class JuryChargeQuestion(Base):
    """Verdict question released to jurors"""
    __tablename__ = "jury_charge_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(String(1000), nullable=False)
    question_type = Column(_enum(QuestionType, "question_type"), nullable=False)
    options = Column(JSONType, nullable=False, default=list)
    order_index = Column(Integer, nullable=False, default=0)
    is_required = Column(Boolean, nullable=False, default=True)
    min_value = Column(Integer, nullable=True)
    max_value = Column(Integer, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=True, onupdate=datetime.utcnow)


class Verdict(Base):
    """One juror's answers to the jury charge"""
    __tablename__ = "verdicts"
    __table_args__ = (
        UniqueConstraint("case_id", "juror_id", name="uq_verdicts_case_juror"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    juror_id = Column(Uuid, ForeignKey("jurors.id"), nullable=False, index=True)
    responses = Column(JSONType, nullable=False, default=dict)
    is_submitted = Column(Boolean, nullable=False, default=False)
    submitted_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    juror = relationship("Juror")


class CaseDocument(Base):
    """Document metadata; file bytes live in external storage"""
    __tablename__ = "case_documents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    uploaded_by = Column(Uuid, nullable=False)
    uploader_type = Column(_enum(UserType, "user_type"), nullable=False, default=UserType.attorney)
    document_type = Column(_enum(DocumentType, "document_type"), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1024), nullable=False)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)

    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(Uuid, nullable=True)
    verified_at = Column(TIMESTAMP, nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    deleted_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class CaseWitness(Base):
    """Witness the jurors will rate for credibility"""
    __tablename__ = "case_witnesses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    witness_name = Column(String(200), nullable=False)
    side = Column(_enum(WitnessSide, "witness_side"), nullable=False)
    description = Column(String(1000), nullable=True)
    email = Column(String(255), nullable=True)
    is_accepted = Column(Boolean, nullable=False, default=False)
    order_index = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=True, onupdate=datetime.utcnow)


class WarRoomTeamMember(Base):
    """Attorney's helper with access to the war room of one case"""
    __tablename__ = "war_room_team_members"
    __table_args__ = (
        UniqueConstraint("case_id", "email", name="uq_war_room_team_case_email"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    role = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    added_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class TierUpgrade(Base):
    """Paid move of a case to a longer trial tier"""
    __tablename__ = "tier_upgrades"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    attorney_id = Column(Uuid, ForeignKey("attorneys.id"), nullable=False)
    from_tier = Column(_enum(CaseTier, "case_tier"), nullable=False)
    to_tier = Column(_enum(CaseTier, "case_tier"), nullable=False)
    price_difference = Column(Float, nullable=False)
    payment_id = Column(Uuid, ForeignKey("payments.id"), nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


# ============================================================================
# Scheduling
# ============================================================================

class AdminCalendarSlot(Base):
    """Admin calendar block"""
    __tablename__ = "admin_calendar"
    __table_args__ = (
        Index(
            "uq_admin_calendar_active_slot",
            "blocked_date",
            "blocked_time",
            unique=True,
            postgresql_where=text("is_active = true"),
            sqlite_where=text("is_active = true"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    blocked_date = Column(Date, nullable=False, index=True)
    blocked_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=480)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=True, index=True)
    reason = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    released_at = Column(TIMESTAMP, nullable=True)


class AttorneyRescheduleRequest(Base):
    """Attorney asks to move an approved case"""
    __tablename__ = "attorney_reschedule_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    attorney_id = Column(Uuid, ForeignKey("attorneys.id"), nullable=False, index=True)
    new_scheduled_date = Column(Date, nullable=False)
    new_scheduled_time = Column(Time, nullable=False)
    original_scheduled_date = Column(Date, nullable=False)
    original_scheduled_time = Column(Time, nullable=False)
    reason = Column(Text, nullable=True)
    attorney_comments = Column(Text, nullable=True)
    status = Column(_enum(RescheduleRequestStatus, "reschedule_request_status"), nullable=False, default=RescheduleRequestStatus.pending)
    admin_id = Column(Uuid, nullable=True)
    admin_comments = Column(Text, nullable=True)
    responded_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class CaseRescheduleRequest(Base):
    """Admin-initiated reschedule after a scheduling conflict"""
    __tablename__ = "case_reschedule_requests"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    rejection_reason = Column(Text, nullable=False)
    admin_comments = Column(Text, nullable=True)
    suggested_slots = Column(JSONType, nullable=False, default=list)
    selected_slot = Column(JSONType, nullable=True)
    attorney_response = Column(_enum(RescheduleResponse, "reschedule_response"), nullable=False, default=RescheduleResponse.pending)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# Trials
# ============================================================================

class TrialMeeting(Base):
    """Virtual courtroom session for a case"""
    __tablename__ = "trial_meetings"
    __table_args__ = (
        Index(
            "uq_trial_meetings_open_case",
            "case_id",
            unique=True,
            postgresql_where=text("status IN ('created', 'active')"),
            sqlite_where=text("status IN ('created', 'active')"),
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    thread_id = Column(String(255), nullable=True)
    room_id = Column(String(255), nullable=True)
    chat_thread_id = Column(String(255), nullable=True)
    chat_service_user_id = Column(String(255), nullable=True)
    status = Column(_enum(MeetingStatus, "meeting_status"), nullable=False, default=MeetingStatus.created)
    started_at = Column(TIMESTAMP, nullable=True)
    ended_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    participants = relationship("TrialParticipant", back_populates="meeting", cascade="all, delete-orphan")


class TrialParticipant(Base):
    """Join/leave record inside a meeting"""
    __tablename__ = "trial_participants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id = Column(Uuid, ForeignKey("trial_meetings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    participant_type = Column(_enum(UserType, "user_type"), nullable=False)
    display_name = Column(String(255), nullable=True)
    joined_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    left_at = Column(TIMESTAMP, nullable=True)

    meeting = relationship("TrialMeeting", back_populates="participants")


class TrialIncident(Base):
    """Moderation incident raised during a trial"""
    __tablename__ = "trial_incidents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id = Column(Uuid, ForeignKey("trial_meetings.id"), nullable=False, index=True)
    participant_id = Column(Uuid, ForeignKey("trial_participants.id"), nullable=True)
    reported_by = Column(Uuid, nullable=False)
    reporter_type = Column(_enum(UserType, "user_type"), nullable=False)
    incident_type = Column(_enum(IncidentType, "incident_type"), nullable=False)
    severity = Column(_enum(IncidentSeverity, "incident_severity"), nullable=False, default=IncidentSeverity.medium)
    description = Column(Text, nullable=False)
    action_taken = Column(Text, nullable=True)
    resolved_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


class TrialRecording(Base):
    """Recording of a trial meeting"""
    __tablename__ = "trial_recordings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    meeting_id = Column(Uuid, ForeignKey("trial_meetings.id"), nullable=False, index=True)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=False, index=True)
    recording_id = Column(String(255), nullable=False)
    status = Column(_enum(RecordingStatus, "recording_status"), nullable=False, default=RecordingStatus.processing)
    recording_url = Column(String(1024), nullable=True)
    file_size = Column(Integer, nullable=True)
    started_by = Column(Uuid, nullable=True)
    started_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    stopped_at = Column(TIMESTAMP, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)


# ============================================================================
# Payments
# ============================================================================

class Payment(Base):
    """Financial transaction; refunds are separate negative rows"""
    __tablename__ = "payments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, ForeignKey("cases.id"), nullable=True, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    user_type = Column(_enum(UserType, "user_type"), nullable=False)
    amount = Column(Float, nullable=False)
    payment_method = Column(_enum(PaymentMethod, "payment_method"), nullable=False)
    payment_type = Column(_enum(PaymentType, "payment_type"), nullable=False, default=PaymentType.case_filing)
    status = Column(_enum(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.pending)
    transaction_id = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    original_payment_id = Column(Uuid, ForeignKey("payments.id"), nullable=True, index=True)
    completed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow)
    updated_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# Notifications & Events
# ============================================================================

class Notification(Base):
    """In-app notification for one user"""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    user_type = Column(_enum(UserType, "user_type"), nullable=False)
    case_id = Column(Uuid, nullable=True, index=True)
    notification_type = Column(_enum(NotificationType, "notification_type"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)


class NotificationArchive(Base):
    """Shadow table for archived notifications"""
    __tablename__ = "notifications_archive"

    id = Column(Uuid, primary_key=True)
    user_id = Column(Uuid, nullable=False, index=True)
    user_type = Column(_enum(UserType, "user_type"), nullable=False)
    case_id = Column(Uuid, nullable=True)
    notification_type = Column(_enum(NotificationType, "notification_type"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=True)
    read_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False)
    archived_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)


class Event(Base):
    """Append-only case timeline"""
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id = Column(Uuid, nullable=True, index=True)
    event_type = Column(_enum(EventType, "event_type"), nullable=False, index=True)
    description = Column(Text, nullable=False)
    triggered_by = Column(Uuid, nullable=True, index=True)
    user_type = Column(_enum(ActorType, "actor_type"), nullable=False, default=ActorType.system)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)


class EventArchive(Base):
    """Shadow table for archived events"""
    __tablename__ = "events_archive"

    id = Column(Uuid, primary_key=True)
    case_id = Column(Uuid, nullable=True, index=True)
    event_type = Column(_enum(EventType, "event_type"), nullable=False)
    description = Column(Text, nullable=False)
    triggered_by = Column(Uuid, nullable=True)
    user_type = Column(_enum(ActorType, "actor_type"), nullable=False)
    event_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(TIMESTAMP, nullable=False)
    archived_at = Column(TIMESTAMP, nullable=False, default=datetime.utcnow, index=True)
