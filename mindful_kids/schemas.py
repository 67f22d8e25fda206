# mindful_kids/schemas.py
from datetime import datetime, date
from typing import List, Optional, Dict, Any
from enum import Enum

from pydantic import (
    AliasChoices, BaseModel, EmailStr, Field, computed_field, field_validator, model_validator
)

from .models import (
    UserRole, ApplicationStatus, ClinicApplicationStatus, VerificationStatus, CredentialStatus,
    ClinicVerificationStatus, AffiliationStatus, ReportReason, ReportStatus, ReportAction,
    AgeGroup, ContentType, LegalDocumentType
)

DEFAULT_LEGAL_VERSION = "2026-02-01"


# --- Base Schemas ---
class BaseSchema(BaseModel):
    class Config:
        from_attributes = True


class ReviewDecision(str, Enum):
    approved = "approved"
    rejected = "rejected"


class MessageResponse(BaseModel):
    message: str


# --- Auth / User Schemas ---
class UserPublic(BaseSchema):
    id: str
    email: EmailStr
    name: str
    role: UserRole
    created_at: Optional[datetime] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=255)
    role: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator("role")
    @classmethod
    def self_service_role(cls, v):
        # Only professional roles can be self-selected; anything else signs up as a parent
        return v if v in ("therapist", "clinic_admin") else "parent"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class AuthResponse(BaseModel):
    message: str
    user: UserPublic
    token: str
    expires_in: int


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic


class SetPasswordFromInviteRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("token")
    @classmethod
    def strip_token(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Invite token is required")
        return v


class RoleUpdate(BaseModel):
    role: UserRole


class LegalAcceptanceCreate(BaseModel):
    document_type: LegalDocumentType
    version: Optional[str] = Field(None, max_length=32)


class LegalAcceptanceResponse(BaseSchema):
    document_type: LegalDocumentType
    document_version: str
    accepted_at: Optional[datetime] = None


# --- Children / Progress / Emotion Schemas ---
class ChildCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    birth_date: Optional[date] = None
    age_group: Optional[AgeGroup] = None
    avatar_url: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class ChildUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    birth_date: Optional[date] = None
    age_group: Optional[AgeGroup] = None
    avatar_url: Optional[str] = None


class ChildResponse(BaseSchema):
    id: str
    parent_id: str
    name: str
    birth_date: Optional[date] = None
    age_group: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProgressUpsert(BaseModel):
    stars: Optional[int] = Field(None, ge=0, le=5)
    streak_days: Optional[int] = Field(None, ge=0)
    metadata: Optional[Dict[str, Any]] = None


class ProgressResponse(BaseSchema):
    id: str
    child_id: str
    activity_id: str
    stars: int
    streak_days: int
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("metadata_", "metadata"))
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class RecentCompletion(BaseModel):
    id: str
    activity_id: str
    activity_title: Optional[str] = None
    stars: int
    completed_at: Optional[datetime] = None


class ProgressSummary(BaseModel):
    total_stars: int
    current_streak: int
    completed_count: int
    recent_completions: List[RecentCompletion]


class StreakResponse(BaseModel):
    child_id: str
    current_streak: int


class EmotionLogCreate(BaseModel):
    child_id: str
    emotion_id: str = Field(..., min_length=1, max_length=64)
    intensity: Optional[int] = Field(None, ge=1, le=5)
    note: Optional[str] = Field(None, max_length=1000)

    @field_validator("emotion_id")
    @classmethod
    def strip_emotion(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("emotion_id is required")
        return v


class EmotionLogResponse(BaseSchema):
    id: str
    child_id: str
    emotion_id: str
    intensity: Optional[int] = None
    note: Optional[str] = None
    recorded_at: Optional[datetime] = None


# --- Catalog Schemas ---
class ActivityResponse(BaseSchema):
    id: str
    title: str
    slug: str
    description: Optional[str] = None
    activity_type: Optional[str] = None
    age_groups: List[str] = Field(default_factory=list)
    psychology_basis: List[str] = Field(default_factory=list)
    for_parents_notes: Optional[str] = None
    instructions: Optional[Any] = None
    duration_minutes: Optional[int] = None
    sort_order: int = 0
    is_active: bool = True


class AdviceResponse(BaseSchema):
    id: str
    title: str
    content: str
    category: Optional[str] = None
    psychology_basis: List[str] = Field(default_factory=list)
    age_range: Optional[str] = None
    related_activity_id: Optional[str] = None
    is_daily: bool = False
    published_at: Optional[datetime] = None


class ContentItemBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: ContentType
    summary: Optional[str] = None
    body_markdown: Optional[str] = None
    video_url: Optional[str] = None
    age_range: Optional[str] = Field(None, max_length=32)
    tags: List[str] = Field(default_factory=list)
    psychology_basis: List[str] = Field(default_factory=list)
    for_parents_notes: Optional[str] = None
    evidence_notes: Optional[str] = None


class ContentItemCreate(ContentItemBase):
    is_published: bool = False


class ContentItemUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[ContentType] = None
    summary: Optional[str] = None
    body_markdown: Optional[str] = None
    video_url: Optional[str] = None
    age_range: Optional[str] = Field(None, max_length=32)
    tags: Optional[List[str]] = None
    psychology_basis: Optional[List[str]] = None
    for_parents_notes: Optional[str] = None
    evidence_notes: Optional[str] = None
    is_published: Optional[bool] = None


class ContentItemResponse(BaseSchema):
    id: str
    type: ContentType
    title: str
    summary: Optional[str] = None
    body_markdown: Optional[str] = None
    video_url: Optional[str] = None
    age_range: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    psychology_basis: List[str] = Field(default_factory=list)
    for_parents_notes: Optional[str] = None
    evidence_notes: Optional[str] = None
    is_published: bool = False
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Clinic Schemas ---
class ClinicCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = None
    logo_url: Optional[str] = None


class ClinicUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    country: Optional[str] = Field(None, max_length=255)
    website: Optional[str] = None
    logo_url: Optional[str] = None


class ClinicResponse(BaseSchema):
    id: str
    name: str
    slug: str
    description: Optional[str] = None
    address: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    is_active: bool = True
    verification_status: ClinicVerificationStatus = ClinicVerificationStatus.pending
    verified_at: Optional[datetime] = None


class ClinicDetail(ClinicResponse):
    therapist_count: int = 0


class ClinicAdminAssign(BaseModel):
    user_id: str


class ClinicAdminResponse(BaseSchema):
    id: str
    user_id: str
    clinic_id: str
    created_at: Optional[datetime] = None


# --- Affiliation Schemas ---
class ClinicAffiliationIn(BaseModel):
    clinic_id: str
    role_label: Optional[str] = Field(None, max_length=255)
    is_primary: bool = False


class ClinicAffiliationOut(BaseSchema):
    clinic_id: str
    role_label: Optional[str] = None
    is_primary: bool = False


class AffiliationCreate(BaseModel):
    psychologist_id: str
    role_label: Optional[str] = Field(None, max_length=255)
    is_primary: bool = False


class AffiliationResponse(BaseSchema):
    id: str
    psychologist_id: str
    clinic_id: str
    role_label: Optional[str] = None
    is_primary: bool = False
    status: AffiliationStatus
    removed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class TherapistClinicView(BaseModel):
    """Affiliation as seen by the therapist, including removed rows."""
    clinic_id: str
    clinic_name: str
    clinic_slug: str
    role_label: Optional[str] = None
    is_primary: bool = False
    status: AffiliationStatus


class ClinicTherapistView(BaseModel):
    id: str
    name: str
    specialty: Optional[str] = None
    specialization: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    location: Optional[str] = None
    profile_image: Optional[str] = None
    is_verified: bool = False
    role_label: Optional[str] = None
    is_primary: bool = False
    avg_rating: float = 0.0
    review_count: int = 0


# --- Therapist Application Schemas ---
class TherapistCredentialIn(BaseModel):
    type: str = Field("license", max_length=100)
    issuer: Optional[str] = Field(None, max_length=255)
    number: Optional[str] = Field(None, max_length=255)
    issuing_country: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    expires_at: Optional[datetime] = None
    document_url: Optional[str] = None


class TherapistApplicationUpsert(BaseModel):
    professional_name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    specialty: Optional[str] = Field(None, max_length=255)
    specialization: Optional[List[str]] = None
    bio: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    languages: Optional[List[str]] = None
    profile_image_url: Optional[str] = None
    video_urls: Optional[List[str]] = None
    contact_info: Optional[Dict[str, Any]] = None
    credentials: Optional[List[TherapistCredentialIn]] = None
    clinic_affiliations: Optional[List[ClinicAffiliationIn]] = None

    @field_validator("professional_name")
    @classmethod
    def strip_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Professional name is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if v else v


class TherapistApplicationResponse(BaseSchema):
    id: str
    user_id: str
    professional_name: str
    email: str
    phone: Optional[str] = None
    specialty: Optional[str] = None
    specialization: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    location: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    profile_image_url: Optional[str] = None
    video_urls: List[str] = Field(default_factory=list)
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    credentials: List[Dict[str, Any]] = Field(default_factory=list)
    status: ApplicationStatus
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    psychologist_id: Optional[str] = None
    clinic_affiliations: List[ClinicAffiliationOut] = Field(default_factory=list)
    psychologist_verification_status: Optional[VerificationStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminTherapistApplicationResponse(TherapistApplicationResponse):
    user_email: Optional[str] = None
    user_name: Optional[str] = None


class ApplicationReview(BaseModel):
    status: ReviewDecision
    rejection_reason: Optional[str] = Field(None, max_length=2000)


# --- Clinic Application Schemas ---
class ClinicApplicationResponse(BaseSchema):
    """Admin view. The storage path is never serialised, only whether a document exists."""
    id: str
    clinic_name: str
    country: str
    contact_email: str
    contact_phone: Optional[str] = None
    description: Optional[str] = None
    status: ClinicApplicationStatus
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    clinic_id: Optional[str] = None
    has_document: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ClinicApplicationReceipt(BaseSchema):
    id: str
    status: ClinicApplicationStatus
    submitted_at: Optional[datetime] = None


class ClinicApplicationSubmitted(BaseModel):
    message: str
    application: ClinicApplicationReceipt


class DocumentLinkResponse(BaseModel):
    url: str
    expires_in_seconds: int


class InviteDelivery(BaseModel):
    sent: bool
    link: Optional[str] = None


class ClinicApplicationReviewResult(BaseModel):
    message: str
    application: ClinicApplicationResponse
    clinic: Optional[ClinicResponse] = None
    invite: Optional[InviteDelivery] = None


# --- Psychologist / Credential Schemas ---
class CredentialResponse(BaseSchema):
    id: str
    psychologist_id: str
    credential_type: str
    issuing_country: Optional[str] = None
    issuer: Optional[str] = None
    license_number: Optional[str] = None
    expires_at: Optional[datetime] = None
    verification_status: CredentialStatus
    verified_at: Optional[datetime] = None
    document_url: Optional[str] = None
    renewal_requested_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def status(self) -> str:
        if self.verification_status == CredentialStatus.pending:
            return "pending_review"
        return self.verification_status.value


class CredentialSubmission(BaseModel):
    """One of three modes, picked by which fields are present:
    new document (no credential_id), renewal request (credential_id + renew),
    or document resubmission (credential_id + document_url)."""
    credential_id: Optional[str] = None
    document_url: Optional[str] = Field(None, min_length=1)
    renew: bool = False
    credential_type: Optional[str] = Field(None, max_length=100)
    issuer: Optional[str] = Field(None, max_length=255)
    issuing_country: Optional[str] = Field(None, max_length=100)
    license_number: Optional[str] = Field(None, max_length=255)
    expires_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_mode(self):
        if self.credential_id is None:
            if self.renew:
                raise ValueError("credential_id is required to request a renewal")
            if not self.document_url:
                raise ValueError("Provide document_url for a new credential, or credential_id to renew or resubmit")
        else:
            if self.renew and self.document_url:
                raise ValueError("Send either renew or document_url for an existing credential, not both")
            if not self.renew and not self.document_url:
                raise ValueError("Existing credential requires renew=true or a new document_url")
        return self

    @property
    def mode(self) -> str:
        if self.credential_id is None:
            return "new"
        return "renewal" if self.renew else "resubmit"


class CredentialSubmissionResult(BaseModel):
    message: str
    mode: str
    credential: CredentialResponse


class CredentialReview(BaseModel):
    status: CredentialStatus
    expires_at: Optional[datetime] = None


class DocumentUploadResponse(BaseModel):
    url: str


class PsychologistResponse(BaseSchema):
    id: str
    name: str
    specialty: Optional[str] = None
    specialization: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    location: Optional[str] = None
    languages: List[str] = Field(default_factory=list)
    profile_image: Optional[str] = None
    video_urls: List[str] = Field(default_factory=list)
    contact_info: Dict[str, Any] = Field(default_factory=dict)
    is_verified: bool = False
    verification_status: VerificationStatus
    verified_at: Optional[datetime] = None
    avg_rating: float = 0.0
    review_count: int = 0
    verified_country: Optional[str] = None


class PsychologistDetail(PsychologistResponse):
    clinics: List[ClinicResponse] = Field(default_factory=list)
    credentials: List[CredentialResponse] = Field(default_factory=list)


class PsychologistAdminView(PsychologistResponse):
    user_id: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True
    verification_expires_at: Optional[datetime] = None
    last_verification_review_at: Optional[datetime] = None


class PsychologistCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=50)
    specialty: Optional[str] = Field(None, max_length=255)
    specialization: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    location: Optional[str] = Field(None, max_length=255)
    languages: List[str] = Field(default_factory=list)
    profile_image: Optional[str] = None
    user_id: Optional[str] = None
    verification_status: VerificationStatus = VerificationStatus.pending
    verification_expires_at: Optional[datetime] = None


class PsychologistVerificationUpdate(BaseModel):
    verification_status: Optional[VerificationStatus] = None
    is_verified: Optional[bool] = None
    verification_expires_at: Optional[datetime] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def check_not_empty(self):
        changes = [self.verification_status, self.is_verified, self.is_active]
        # an explicit null expiry clears it
        if all(value is None for value in changes) and "verification_expires_at" not in self.model_fields_set:
            raise ValueError("Provide verification_status, is_verified, verification_expires_at or is_active")
        if self.verification_status is not None and self.is_verified is not None:
            expected = self.verification_status == VerificationStatus.verified
            if expected != self.is_verified:
                raise ValueError("verification_status and is_verified disagree")
        return self


class TherapistProfileResponse(BaseModel):
    profile: Optional[PsychologistDetail] = None
    message: Optional[str] = None


# --- Review Schemas ---
class ReviewCreate(BaseModel):
    psychologist_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)

    @field_validator("comment")
    @classmethod
    def strip_comment(cls, v):
        return v.strip() if v else v


class ReviewResponse(BaseSchema):
    id: str
    user_id: str
    psychologist_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# --- Report Schemas ---
class ReportCreate(BaseModel):
    psychologist_id: str
    reason: Optional[ReportReason] = None
    details: Optional[str] = Field(None, max_length=2000)

    @field_validator("reason", mode="before")
    @classmethod
    def blank_reason_is_other(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return ReportReason.other
        return v.strip() if isinstance(v, str) else v

    @field_validator("details")
    @classmethod
    def strip_details(cls, v):
        return v.strip() if v else None


class ReportResponse(BaseSchema):
    id: str
    reporter_id: Optional[str] = None
    psychologist_id: str
    reason: ReportReason
    details: Optional[str] = None
    status: ReportStatus
    action_taken: Optional[ReportAction] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AdminReportResponse(ReportResponse):
    psychologist_name: Optional[str] = None
    psychologist_verification_status: Optional[VerificationStatus] = None


class ReportUpdate(BaseModel):
    status: Optional[ReportStatus] = None
    action_taken: Optional[ReportAction] = None


class ReportSubmitted(BaseModel):
    message: str
    report: ReportResponse


class ReportUpdated(BaseModel):
    message: str
    report: AdminReportResponse


# --- Search Schemas ---
class TherapistSearchResult(BaseModel):
    id: str
    name: str
    specialty: Optional[str] = None
    country: Optional[str] = None
    verified_status: VerificationStatus
    verified_at: Optional[datetime] = None
    clinic_names: List[str] = Field(default_factory=list)
    profile_image_url: Optional[str] = None


class ClinicSearchResult(ClinicResponse):
    therapist_count: int = 0


# --- Admin Schemas ---
class AdminDashboardStats(BaseModel):
    pending_therapist_applications: int
    pending_clinic_applications: int
    verified_therapists_count: int
    verified_clinics_count: int
    reports_pending_review: int


class AdminAuditLogResponse(BaseSchema):
    id: str
    admin_user_id: Optional[str] = None
    action_type: str
    target_type: Optional[str] = None
    target_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class ExpiryReport(BaseModel):
    expiring: List[Dict[str, Any]]
    expired: List[Dict[str, Any]]
    applied: bool = False
    errors: List[Dict[str, Any]] = Field(default_factory=list)
