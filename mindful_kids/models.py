# mindful_kids/models.py
import enum
import uuid

from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Boolean, JSON, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


def _enum(enum_cls, name):
    # Stored as VARCHAR + CHECK so new states don't need a native enum migration
    return SQLAlchemyEnum(enum_cls, name=name, native_enum=False, validate_strings=True, length=32)


# ==================== ENUMS ====================

class UserRole(str, enum.Enum):
    parent = "parent"
    therapist = "therapist"
    clinic_admin = "clinic_admin"
    admin = "admin"


class ApplicationStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ClinicApplicationStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class VerificationStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    suspended = "suspended"
    expired = "expired"


class CredentialStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    expired = "expired"


class ClinicVerificationStatus(str, enum.Enum):
    pending = "pending"
    verified = "verified"


class AffiliationStatus(str, enum.Enum):
    active = "active"
    pending = "pending"
    removed = "removed"


class ReportReason(str, enum.Enum):
    misconduct = "misconduct"
    inaccurate_info = "inaccurate_info"
    inappropriate_behavior = "inappropriate_behavior"
    other = "other"


class ReportStatus(str, enum.Enum):
    open = "open"
    under_review = "under_review"
    resolved = "resolved"
    dismissed = "dismissed"


class ReportAction(str, enum.Enum):
    none = "none"
    warning = "warning"
    temporary_suspension = "temporary_suspension"
    verification_revoked = "verification_revoked"


class AgeGroup(str, enum.Enum):
    preschool = "3-5"
    early = "6-8"
    middle = "9-12"
    teen = "13+"


class ContentType(str, enum.Enum):
    article = "article"
    video = "video"
    activity = "activity"


class LegalDocumentType(str, enum.Enum):
    terms = "terms"
    privacy_policy = "privacy_policy"
    professional_disclaimer = "professional_disclaimer"


# ==================== USERS ====================

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index('idx_users_role', 'role'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(_enum(UserRole, 'user_role'), default=UserRole.parent, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    children = relationship("Child", back_populates="parent", cascade="all, delete-orphan")
    therapist_application = relationship("TherapistApplication", back_populates="user", uselist=False, foreign_keys="TherapistApplication.user_id")
    clinic_admin_links = relationship("ClinicAdmin", back_populates="user", cascade="all, delete-orphan")


class LegalAcceptance(Base):
    __tablename__ = "legal_acceptances"
    __table_args__ = (
        Index('idx_legal_user_type', 'user_id', 'document_type', 'accepted_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    document_type = Column(_enum(LegalDocumentType, 'legal_document_type'), nullable=False)
    document_version = Column(String(32), nullable=False, default="2026-02-01")
    accepted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


# ==================== CHILDREN / PROGRESS ====================

class Child(Base):
    __tablename__ = "children"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    parent_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    birth_date = Column(Date, nullable=True)
    age_group = Column(String(8), nullable=True)
    avatar_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    parent = relationship("User", back_populates="children")
    progress = relationship("Progress", back_populates="child", cascade="all, delete-orphan")
    emotion_logs = relationship("EmotionLog", back_populates="child", cascade="all, delete-orphan")


class Activity(Base):
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    activity_type = Column(String(50), nullable=True, index=True)
    age_groups = Column(JSON, nullable=False, default=list)
    psychology_basis = Column(JSON, nullable=False, default=list)
    for_parents_notes = Column(Text, nullable=True)
    instructions = Column(JSON, nullable=True)
    duration_minutes = Column(Integer, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Progress(Base):
    __tablename__ = "progress"
    __table_args__ = (
        UniqueConstraint('child_id', 'activity_id', name='uq_progress_child_activity'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    child_id = Column(String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_id = Column(String(36), ForeignKey("activities.id", ondelete="CASCADE"), nullable=False)
    stars = Column(Integer, nullable=False, default=0)
    streak_days = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSON, nullable=False, default=dict)
    completed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    child = relationship("Child", back_populates="progress")
    activity = relationship("Activity")


class EmotionLog(Base):
    __tablename__ = "emotion_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    child_id = Column(String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    emotion_id = Column(String(64), nullable=False)
    intensity = Column(Integer, nullable=True)
    note = Column(Text, nullable=True)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    child = relationship("Child", back_populates="emotion_logs")


# ==================== CATALOG ====================

class Advice(Base):
    __tablename__ = "advice"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String(100), nullable=True, index=True)
    psychology_basis = Column(JSON, nullable=False, default=list)
    age_range = Column(String(32), nullable=True)
    related_activity_id = Column(String(36), ForeignKey("activities.id", ondelete="SET NULL"), nullable=True)
    is_daily = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class ContentItem(Base):
    __tablename__ = "content_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    type = Column(_enum(ContentType, 'content_type'), nullable=False)
    title = Column(String(255), nullable=False)
    summary = Column(Text, nullable=True)
    body_markdown = Column(Text, nullable=True)
    video_url = Column(Text, nullable=True)
    age_range = Column(String(32), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    psychology_basis = Column(JSON, nullable=False, default=list)
    for_parents_notes = Column(Text, nullable=True)
    evidence_notes = Column(Text, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# ==================== PROFESSIONALS & CLINICS ====================

class Psychologist(Base):
    """Public-facing professional profile. Visible only while active and verified."""
    __tablename__ = "psychologists"
    __table_args__ = (
        Index('idx_psychologists_visibility', 'is_active', 'verification_status'),
        Index('idx_psychologists_expiry', 'verification_status', 'verification_expires_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    specialty = Column(String(255), nullable=True)
    specialization = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    languages = Column(JSON, nullable=False, default=list)
    profile_image = Column(Text, nullable=True)
    video_urls = Column(JSON, nullable=False, default=list)
    contact_info = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    verification_status = Column(_enum(VerificationStatus, 'verification_status'), nullable=False, default=VerificationStatus.pending)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    last_verification_review_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    credentials = relationship("ProfessionalCredential", back_populates="psychologist", cascade="all, delete-orphan")
    clinic_links = relationship("TherapistClinic", back_populates="psychologist")
    reviews = relationship("Review", back_populates="psychologist", cascade="all, delete-orphan")

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.verified


class ProfessionalCredential(Base):
    __tablename__ = "professional_credentials"
    __table_args__ = (
        Index('idx_credentials_expiry', 'verification_status', 'expires_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    psychologist_id = Column(String(36), ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False, index=True)
    credential_type = Column(String(100), nullable=False, default="license")
    issuing_country = Column(String(100), nullable=True)
    issuer = Column(String(255), nullable=True)
    license_number = Column(String(255), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    verification_status = Column(_enum(CredentialStatus, 'credential_status'), nullable=False, default=CredentialStatus.pending)
    verified_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    document_url = Column(Text, nullable=True)
    renewal_requested_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    psychologist = relationship("Psychologist", back_populates="credentials")


class Clinic(Base):
    __tablename__ = "clinics"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    country = Column(String(255), nullable=True, index=True)
    website = Column(Text, nullable=True)
    logo_url = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    verification_status = Column(_enum(ClinicVerificationStatus, 'clinic_verification_status'), nullable=False, default=ClinicVerificationStatus.pending)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    verified_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    therapist_links = relationship("TherapistClinic", back_populates="clinic")
    admin_links = relationship("ClinicAdmin", back_populates="clinic", cascade="all, delete-orphan")


class TherapistClinic(Base):
    """Psychologist <-> Clinic affiliation. Rows are never deleted; removal is a status."""
    __tablename__ = "therapist_clinics"
    __table_args__ = (
        UniqueConstraint('psychologist_id', 'clinic_id', name='uq_therapist_clinic'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    psychologist_id = Column(String(36), ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    role_label = Column(String(255), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    status = Column(_enum(AffiliationStatus, 'affiliation_status'), nullable=False, default=AffiliationStatus.active)
    removed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    psychologist = relationship("Psychologist", back_populates="clinic_links")
    clinic = relationship("Clinic", back_populates="therapist_links")


class ClinicAdmin(Base):
    __tablename__ = "clinic_admins"
    __table_args__ = (
        UniqueConstraint('user_id', 'clinic_id', name='uq_clinic_admin'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="clinic_admin_links")
    clinic = relationship("Clinic", back_populates="admin_links")


class ClinicInvite(Base):
    __tablename__ = "clinic_invites"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False)
    contact_email = Column(String(255), nullable=False)
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    clinic = relationship("Clinic")


# ==================== APPLICATIONS ====================

class TherapistApplication(Base):
    __tablename__ = "therapist_applications"
    __table_args__ = (
        Index('idx_therapist_applications_status', 'status', 'submitted_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    professional_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    specialty = Column(String(255), nullable=True)
    specialization = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    languages = Column(JSON, nullable=False, default=list)
    profile_image_url = Column(Text, nullable=True)
    video_urls = Column(JSON, nullable=False, default=list)
    contact_info = Column(JSON, nullable=False, default=dict)
    credentials = Column(JSON, nullable=False, default=list)
    status = Column(_enum(ApplicationStatus, 'application_status'), nullable=False, default=ApplicationStatus.draft)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    psychologist_id = Column(String(36), ForeignKey("psychologists.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="therapist_application", foreign_keys=[user_id])
    psychologist = relationship("Psychologist")
    clinic_affiliations = relationship(
        "TherapistApplicationClinic",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="TherapistApplicationClinic.created_at",
    )


class TherapistApplicationClinic(Base):
    """Clinic affiliations declared on a draft application."""
    __tablename__ = "therapist_application_clinics"
    __table_args__ = (
        UniqueConstraint('application_id', 'clinic_id', name='uq_application_clinic'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    application_id = Column(String(36), ForeignKey("therapist_applications.id", ondelete="CASCADE"), nullable=False)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False)
    role_label = Column(String(255), nullable=True)
    is_primary = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    application = relationship("TherapistApplication", back_populates="clinic_affiliations")
    clinic = relationship("Clinic")


class ClinicApplication(Base):
    __tablename__ = "clinic_applications"
    __table_args__ = (
        Index('idx_clinic_applications_status', 'status', 'submitted_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    clinic_name = Column(String(255), nullable=False)
    country = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=False)
    contact_phone = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    document_storage_path = Column(Text, nullable=True)
    status = Column(_enum(ClinicApplicationStatus, 'clinic_application_status'), nullable=False, default=ClinicApplicationStatus.pending)
    submitted_at = Column(DateTime(timezone=True), server_default=func.now())
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    invite_token = Column(String(128), nullable=True)
    clinic_id = Column(String(36), ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def has_document(self) -> bool:
        return bool(self.document_storage_path)


# ==================== MODERATION & REVIEWS ====================

class ProfessionalReport(Base):
    __tablename__ = "professional_reports"
    __table_args__ = (
        Index('idx_reports_status', 'status', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    psychologist_id = Column(String(36), ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False, index=True)
    reason = Column(_enum(ReportReason, 'report_reason'), nullable=False, default=ReportReason.other)
    details = Column(Text, nullable=True)
    status = Column(_enum(ReportStatus, 'report_status'), nullable=False, default=ReportStatus.open)
    action_taken = Column(_enum(ReportAction, 'report_action'), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    psychologist = relationship("Psychologist")


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint('user_id', 'psychologist_id', name='uq_review_user_psychologist'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    psychologist_id = Column(String(36), ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    psychologist = relationship("Psychologist", back_populates="reviews")
    user = relationship("User")


# ==================== AUDIT ====================

class AdminAuditLog(Base):
    """Append-only record of admin actions."""
    __tablename__ = "admin_audit_log"
    __table_args__ = (
        Index('idx_admin_audit_action_date', 'action_type', 'created_at'),
        Index('idx_admin_audit_target', 'target_type', 'target_id'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    admin_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action_type = Column(String(100), nullable=False)
    target_type = Column(String(100), nullable=True)
    target_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class TherapistAuditLog(Base):
    """Append-only record of therapist trust actions (credential uploads, renewals, report views)."""
    __tablename__ = "therapist_audit_log"
    __table_args__ = (
        Index('idx_therapist_audit_user_date', 'therapist_user_id', 'created_at'),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    therapist_user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    action_type = Column(String(100), nullable=False)
    target_type = Column(String(100), nullable=True)
    target_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
