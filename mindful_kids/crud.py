# mindful_kids/crud.py - data access for accounts, family tracking, catalog, clinics and audit
import logging
import re
from datetime import timedelta
from typing import Optional, List, Dict, Any, Iterable, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models, schemas
from .core.timeutils import utcnow, utc_day
from .security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


class CRUDError(Exception):
    status_code = 400


class NotFoundError(CRUDError):
    status_code = 404


class InvalidStateError(CRUDError):
    status_code = 400


class ConflictError(CRUDError):
    status_code = 409


class UnauthorizedError(CRUDError):
    status_code = 401


class PermissionDeniedError(CRUDError):
    status_code = 403


def commit(db: Session, action: str) -> None:
    """Commit the unit of work, rolling back and logging on failure."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error while {action}: {e}")
        raise


# ==================== USERS ====================

def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.get(models.User, user_id)


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(func.lower(models.User.email) == email.strip().lower()).first()


def create_user(db: Session, email: str, password: str, name: str,
                role: models.UserRole = models.UserRole.parent, auto_commit: bool = True) -> models.User:
    if get_user_by_email(db, email):
        raise ConflictError("Email already registered")
    user = models.User(
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        name=name,
        role=role,
    )
    db.add(user)
    if auto_commit:
        commit(db, "creating user")
        db.refresh(user)
    else:
        db.flush()
    return user


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def set_user_role(db: Session, user_id: str, role: models.UserRole) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise NotFoundError("User not found")
    user.role = role
    return user


# ==================== LEGAL ACCEPTANCE ====================

def record_legal_acceptance(db: Session, user_id: str, document_type: models.LegalDocumentType,
                            version: Optional[str] = None) -> models.LegalAcceptance:
    acceptance = models.LegalAcceptance(
        user_id=user_id,
        document_type=document_type,
        document_version=version or schemas.DEFAULT_LEGAL_VERSION,
        accepted_at=utcnow(),
    )
    db.add(acceptance)
    commit(db, "recording legal acceptance")
    db.refresh(acceptance)
    return acceptance


def get_latest_legal_acceptances(db: Session, user_id: str) -> Dict[str, models.LegalAcceptance]:
    """Most recent acceptance per document type."""
    rows = db.query(models.LegalAcceptance).filter(
        models.LegalAcceptance.user_id == user_id
    ).order_by(models.LegalAcceptance.accepted_at.desc()).all()
    latest: Dict[str, models.LegalAcceptance] = {}
    for row in rows:
        latest.setdefault(row.document_type.value, row)
    return latest


# ==================== CHILDREN ====================

def get_children(db: Session, parent_id: str) -> List[models.Child]:
    return db.query(models.Child).filter(
        models.Child.parent_id == parent_id
    ).order_by(models.Child.created_at.asc()).all()


def get_child(db: Session, child_id: str, parent_id: str) -> models.Child:
    """Children of other parents are reported as missing."""
    child = db.query(models.Child).filter(
        models.Child.id == child_id, models.Child.parent_id == parent_id
    ).first()
    if not child:
        raise NotFoundError("Child not found")
    return child


def create_child(db: Session, parent_id: str, data: schemas.ChildCreate) -> models.Child:
    child = models.Child(
        parent_id=parent_id,
        name=data.name,
        birth_date=data.birth_date,
        age_group=data.age_group.value if data.age_group else None,
        avatar_url=data.avatar_url,
    )
    db.add(child)
    commit(db, "creating child")
    db.refresh(child)
    return child


def update_child(db: Session, child_id: str, parent_id: str, patch: schemas.ChildUpdate) -> models.Child:
    child = get_child(db, child_id, parent_id)
    for key, value in patch.model_dump(exclude_unset=True).items():
        if key == "name":
            if not value or not value.strip():
                raise CRUDError("Name is required")
            value = value.strip()
        if key == "age_group" and value is not None:
            value = models.AgeGroup(value).value
        setattr(child, key, value)
    commit(db, "updating child")
    db.refresh(child)
    return child


def delete_child(db: Session, child_id: str, parent_id: str) -> None:
    child = get_child(db, child_id, parent_id)
    db.delete(child)
    commit(db, "deleting child")


# ==================== PROGRESS ====================

def get_progress_for_child(db: Session, child_id: str) -> List[models.Progress]:
    return db.query(models.Progress).filter(
        models.Progress.child_id == child_id
    ).order_by(models.Progress.completed_at.desc()).all()


def upsert_progress(db: Session, child_id: str, activity_id: str, patch: schemas.ProgressUpsert) -> models.Progress:
    if not db.get(models.Activity, activity_id):
        raise NotFoundError("Activity not found")

    progress = db.query(models.Progress).filter(
        models.Progress.child_id == child_id, models.Progress.activity_id == activity_id
    ).first()
    if progress is None:
        progress = models.Progress(
            child_id=child_id,
            activity_id=activity_id,
            stars=patch.stars or 0,
            streak_days=patch.streak_days or 0,
            metadata_=dict(patch.metadata or {}),
            completed_at=utcnow(),
        )
        db.add(progress)
    else:
        if patch.stars is not None:
            progress.stars = patch.stars
        if patch.streak_days is not None:
            progress.streak_days = patch.streak_days
        if patch.metadata:
            # Reassign so the JSON column is flagged dirty
            progress.metadata_ = {**(progress.metadata_ or {}), **patch.metadata}
        progress.completed_at = utcnow()
    commit(db, "saving progress")
    db.refresh(progress)
    return progress


def compute_streak(days: Iterable, today) -> int:
    """Consecutive days with a completion, counted back from the latest one.
    A streak whose latest day is older than yesterday is broken."""
    ordered = sorted(set(days), reverse=True)
    if not ordered:
        return 0
    if (today - ordered[0]).days > 1:
        return 0
    streak = 1
    for previous, current in zip(ordered, ordered[1:]):
        if (previous - current).days != 1:
            break
        streak += 1
    return streak


def get_streak(db: Session, child_id: str) -> int:
    rows = db.query(models.Progress.completed_at).filter(models.Progress.child_id == child_id).all()
    days = [utc_day(completed_at) for (completed_at,) in rows if completed_at is not None]
    return compute_streak(days, utcnow().date())


def get_progress_summary(db: Session, child_id: str) -> Dict[str, Any]:
    rows = db.query(models.Progress, models.Activity.title).join(
        models.Activity, models.Activity.id == models.Progress.activity_id
    ).filter(models.Progress.child_id == child_id).order_by(models.Progress.completed_at.desc()).all()

    recent = [
        {
            "id": progress.id,
            "activity_id": progress.activity_id,
            "activity_title": title,
            "stars": progress.stars,
            "completed_at": progress.completed_at,
        }
        for progress, title in rows[:10]
    ]
    return {
        "total_stars": sum(progress.stars or 0 for progress, _ in rows),
        "current_streak": get_streak(db, child_id),
        "completed_count": len(rows),
        "recent_completions": recent,
    }


# ==================== EMOTION LOGS ====================

def create_emotion_log(db: Session, data: schemas.EmotionLogCreate) -> models.EmotionLog:
    log = models.EmotionLog(
        child_id=data.child_id,
        emotion_id=data.emotion_id,
        intensity=data.intensity,
        note=data.note,
        recorded_at=utcnow(),
    )
    db.add(log)
    commit(db, "recording emotion log")
    db.refresh(log)
    return log


def get_emotion_logs(db: Session, child_id: str, limit: int = 50) -> List[models.EmotionLog]:
    return db.query(models.EmotionLog).filter(
        models.EmotionLog.child_id == child_id
    ).order_by(models.EmotionLog.recorded_at.desc()).limit(limit).all()


# ==================== ACTIVITIES / ADVICE ====================

def get_activities(db: Session, active: Optional[bool] = True, activity_type: Optional[str] = None,
                   age_group: Optional[str] = None) -> List[models.Activity]:
    query = db.query(models.Activity)
    if active is not None:
        query = query.filter(models.Activity.is_active == active)
    if activity_type:
        query = query.filter(models.Activity.activity_type == activity_type)
    activities = query.order_by(models.Activity.sort_order.asc(), models.Activity.created_at.asc()).all()
    if age_group:
        # age_groups is a JSON list; filter portably in Python
        activities = [a for a in activities if age_group in (a.age_groups or [])]
    return activities


def get_activity(db: Session, activity_id: str) -> models.Activity:
    activity = db.get(models.Activity, activity_id)
    if not activity:
        raise NotFoundError("Activity not found")
    return activity


def get_activity_by_slug(db: Session, slug: str) -> models.Activity:
    activity = db.query(models.Activity).filter(
        models.Activity.slug == slug, models.Activity.is_active.is_(True)
    ).first()
    if not activity:
        raise NotFoundError("Activity not found")
    return activity


def get_advice_list(db: Session, category: Optional[str] = None, limit: int = 50,
                    daily_only: bool = False) -> List[models.Advice]:
    query = db.query(models.Advice)
    if category:
        query = query.filter(models.Advice.category == category)
    if daily_only:
        query = query.filter(models.Advice.is_daily.is_(True))
    return query.order_by(
        models.Advice.published_at.is_(None), models.Advice.published_at.desc(), models.Advice.created_at.desc()
    ).limit(limit).all()


def get_daily_advice(db: Session) -> models.Advice:
    advice = db.query(models.Advice).filter(
        models.Advice.is_daily.is_(True),
        or_(models.Advice.published_at.is_(None), models.Advice.published_at <= utcnow()),
    ).order_by(models.Advice.published_at.is_(None), models.Advice.published_at.desc()).first()
    if not advice:
        raise NotFoundError("No daily advice available")
    return advice


def get_advice(db: Session, advice_id: str) -> models.Advice:
    advice = db.get(models.Advice, advice_id)
    if not advice:
        raise NotFoundError("Advice not found")
    return advice


# ==================== CONTENT ====================

def get_published_content(db: Session, content_type: Optional[models.ContentType] = None,
                          age_range: Optional[str] = None, limit: int = 50) -> List[models.ContentItem]:
    query = db.query(models.ContentItem).filter(models.ContentItem.is_published.is_(True))
    if content_type:
        query = query.filter(models.ContentItem.type == content_type)
    if age_range:
        query = query.filter(models.ContentItem.age_range == age_range)
    return query.order_by(
        models.ContentItem.published_at.is_(None), models.ContentItem.published_at.desc(),
        models.ContentItem.created_at.desc()
    ).limit(limit).all()


def get_content_item(db: Session, item_id: str, published_only: bool = True) -> models.ContentItem:
    query = db.query(models.ContentItem).filter(models.ContentItem.id == item_id)
    if published_only:
        query = query.filter(models.ContentItem.is_published.is_(True))
    item = query.first()
    if not item:
        raise NotFoundError("Content not found")
    return item


def get_all_content(db: Session, content_type: Optional[models.ContentType] = None,
                    is_published: Optional[bool] = None, limit: int = 100) -> List[models.ContentItem]:
    query = db.query(models.ContentItem)
    if content_type:
        query = query.filter(models.ContentItem.type == content_type)
    if is_published is not None:
        query = query.filter(models.ContentItem.is_published == is_published)
    return query.order_by(models.ContentItem.updated_at.desc()).limit(limit).all()


def create_content_item(db: Session, data: schemas.ContentItemCreate) -> models.ContentItem:
    item = models.ContentItem(**data.model_dump())
    if item.is_published:
        item.published_at = utcnow()
    db.add(item)
    commit(db, "creating content item")
    db.refresh(item)
    return item


def update_content_item(db: Session, item_id: str, patch: schemas.ContentItemUpdate) -> models.ContentItem:
    item = get_content_item(db, item_id, published_only=False)
    changes = patch.model_dump(exclude_unset=True)
    for key, value in changes.items():
        if key == "is_published":
            continue
        setattr(item, key, value)
    if "is_published" in changes and changes["is_published"] is not None:
        item.is_published = changes["is_published"]
        # Publishing keeps the first publication time; unpublishing clears it
        item.published_at = (item.published_at or utcnow()) if item.is_published else None
    commit(db, "updating content item")
    db.refresh(item)
    return item


def delete_content_item(db: Session, item_id: str) -> None:
    item = get_content_item(db, item_id, published_only=False)
    db.delete(item)
    commit(db, "deleting content item")


# ==================== REVIEWS ====================

def upsert_review(db: Session, user_id: str, data: schemas.ReviewCreate) -> models.Review:
    if not db.get(models.Psychologist, data.psychologist_id):
        raise NotFoundError("Psychologist not found")
    review = db.query(models.Review).filter(
        models.Review.user_id == user_id, models.Review.psychologist_id == data.psychologist_id
    ).first()
    if review is None:
        review = models.Review(user_id=user_id, psychologist_id=data.psychologist_id)
        db.add(review)
    review.rating = data.rating
    review.comment = data.comment or None
    commit(db, "saving review")
    db.refresh(review)
    return review


def delete_review(db: Session, review_id: str, user_id: str) -> None:
    review = db.query(models.Review).filter(
        models.Review.id == review_id, models.Review.user_id == user_id
    ).first()
    if not review:
        raise NotFoundError("Review not found")
    db.delete(review)
    commit(db, "deleting review")


def get_rating_summary(db: Session, psychologist_ids: List[str]) -> Dict[str, Tuple[float, int]]:
    """Average rating (2 decimals) and review count per psychologist."""
    if not psychologist_ids:
        return {}
    rows = db.query(
        models.Review.psychologist_id,
        func.avg(models.Review.rating),
        func.count(models.Review.id),
    ).filter(models.Review.psychologist_id.in_(psychologist_ids)).group_by(models.Review.psychologist_id).all()
    return {pid: (round(float(avg or 0), 2), int(count)) for pid, avg, count in rows}


# ==================== CLINICS ====================

def slugify(value: str) -> str:
    slug = re.sub(r"\s+", "-", value.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


def get_clinics(db: Session, is_active: Optional[bool] = True, country: Optional[str] = None,
                search: Optional[str] = None, verified_only: bool = False, limit: int = 100,
                offset: int = 0) -> List[models.Clinic]:
    query = db.query(models.Clinic)
    if is_active is not None:
        query = query.filter(models.Clinic.is_active == is_active)
    if country:
        query = query.filter(func.lower(models.Clinic.country) == country.strip().lower())
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(models.Clinic.name.ilike(term), models.Clinic.location.ilike(term)))
    if verified_only:
        query = query.filter(models.Clinic.verification_status == models.ClinicVerificationStatus.verified)
    query = query.order_by(models.Clinic.name.asc(), models.Clinic.id.asc())
    return query.offset(offset).limit(min(limit, 100)).all()


def get_clinic(db: Session, clinic_id: str, active_only: bool = False) -> models.Clinic:
    clinic = db.get(models.Clinic, clinic_id)
    if not clinic or (active_only and not clinic.is_active):
        raise NotFoundError("Clinic not found")
    return clinic


def create_clinic(db: Session, data: schemas.ClinicCreate, verified_by: Optional[str] = None,
                  auto_commit: bool = True) -> models.Clinic:
    slug = data.slug or slugify(data.name)
    if db.query(models.Clinic).filter(models.Clinic.slug == slug).first():
        raise ConflictError("A clinic with this slug already exists")
    clinic = models.Clinic(**data.model_dump(exclude={"slug"}), slug=slug)
    if verified_by:
        clinic.verification_status = models.ClinicVerificationStatus.verified
        clinic.verified_by = verified_by
        clinic.verified_at = utcnow()
    db.add(clinic)
    if auto_commit:
        commit(db, "creating clinic")
        db.refresh(clinic)
    else:
        db.flush()
    return clinic


def update_clinic(db: Session, clinic_id: str, patch: schemas.ClinicUpdate) -> models.Clinic:
    clinic = get_clinic(db, clinic_id)
    for key, value in patch.model_dump(exclude_unset=True).items():
        if key == "name" and not value:
            raise CRUDError("name cannot be empty")
        setattr(clinic, key, value)
    commit(db, "updating clinic")
    db.refresh(clinic)
    return clinic


def count_active_therapists(db: Session, clinic_ids: List[str], visible_only: bool = False) -> Dict[str, int]:
    if not clinic_ids:
        return {}
    query = db.query(models.TherapistClinic.clinic_id, func.count(models.TherapistClinic.id)).join(
        models.Psychologist, models.Psychologist.id == models.TherapistClinic.psychologist_id
    ).filter(
        models.TherapistClinic.clinic_id.in_(clinic_ids),
        models.TherapistClinic.status == models.AffiliationStatus.active,
        models.Psychologist.is_active.is_(True),
    )
    if visible_only:
        query = query.filter(models.Psychologist.verification_status == models.VerificationStatus.verified)
    rows = query.group_by(models.TherapistClinic.clinic_id).all()
    return {clinic_id: int(count) for clinic_id, count in rows}


# ==================== CLINIC ADMINS ====================

def add_clinic_admin(db: Session, user_id: str, clinic_id: str, auto_commit: bool = True) -> models.ClinicAdmin:
    """Idempotent: an existing link is returned unchanged."""
    link = db.query(models.ClinicAdmin).filter(
        models.ClinicAdmin.user_id == user_id, models.ClinicAdmin.clinic_id == clinic_id
    ).first()
    if link is None:
        link = models.ClinicAdmin(user_id=user_id, clinic_id=clinic_id)
        db.add(link)
        if auto_commit:
            commit(db, "adding clinic admin")
            db.refresh(link)
        else:
            db.flush()
    return link


def remove_clinic_admin(db: Session, user_id: str, clinic_id: str) -> None:
    link = db.query(models.ClinicAdmin).filter(
        models.ClinicAdmin.user_id == user_id, models.ClinicAdmin.clinic_id == clinic_id
    ).first()
    if not link:
        raise NotFoundError("User is not an admin of this clinic")
    db.delete(link)
    commit(db, "removing clinic admin")


def get_clinics_for_admin_user(db: Session, user_id: str) -> List[models.Clinic]:
    return db.query(models.Clinic).join(
        models.ClinicAdmin, models.ClinicAdmin.clinic_id == models.Clinic.id
    ).filter(models.ClinicAdmin.user_id == user_id).order_by(models.Clinic.name.asc()).all()


def get_clinic_admins(db: Session, clinic_id: str) -> List[models.ClinicAdmin]:
    return db.query(models.ClinicAdmin).filter(models.ClinicAdmin.clinic_id == clinic_id).all()


# ==================== AFFILIATIONS ====================

def add_affiliation(db: Session, psychologist_id: str, clinic_id: str, role_label: Optional[str] = None,
                    is_primary: bool = False, auto_commit: bool = True) -> models.TherapistClinic:
    """Upsert a psychologist/clinic link. Removed or pending links are reactivated;
    a link that is already active is a conflict."""
    link = db.query(models.TherapistClinic).filter(
        models.TherapistClinic.psychologist_id == psychologist_id,
        models.TherapistClinic.clinic_id == clinic_id,
    ).first()
    if link is not None and link.status == models.AffiliationStatus.active:
        raise ConflictError("Therapist is already affiliated with this clinic")
    if link is None:
        link = models.TherapistClinic(psychologist_id=psychologist_id, clinic_id=clinic_id)
        db.add(link)
    link.role_label = role_label
    link.is_primary = bool(is_primary)
    link.status = models.AffiliationStatus.active
    link.removed_at = None
    if auto_commit:
        commit(db, "adding affiliation")
        db.refresh(link)
    else:
        db.flush()
    return link


def remove_affiliation(db: Session, clinic_id: str, psychologist_id: str) -> models.TherapistClinic:
    link = db.query(models.TherapistClinic).filter(
        models.TherapistClinic.psychologist_id == psychologist_id,
        models.TherapistClinic.clinic_id == clinic_id,
        models.TherapistClinic.status != models.AffiliationStatus.removed,
    ).first()
    if not link:
        raise NotFoundError("Therapist is not affiliated with this clinic")
    link.status = models.AffiliationStatus.removed
    link.removed_at = utcnow()
    commit(db, "removing affiliation")
    db.refresh(link)
    return link


def get_affiliations_for_psychologist(db: Session, psychologist_id: str,
                                      include_removed: bool = True) -> List[Tuple[models.TherapistClinic, models.Clinic]]:
    query = db.query(models.TherapistClinic, models.Clinic).join(
        models.Clinic, models.Clinic.id == models.TherapistClinic.clinic_id
    ).filter(models.TherapistClinic.psychologist_id == psychologist_id)
    if not include_removed:
        query = query.filter(
            models.TherapistClinic.status == models.AffiliationStatus.active,
            models.Clinic.is_active.is_(True),
        )
    return query.order_by(models.TherapistClinic.is_primary.desc(), models.Clinic.name.asc()).all()


def get_clinic_therapists(db: Session, clinic_id: str, visible_only: bool = False,
                          limit: int = 100) -> List[Tuple[models.TherapistClinic, models.Psychologist]]:
    """Active affiliations of a clinic. Removed rows never appear on clinic-facing lists."""
    query = db.query(models.TherapistClinic, models.Psychologist).join(
        models.Psychologist, models.Psychologist.id == models.TherapistClinic.psychologist_id
    ).filter(
        models.TherapistClinic.clinic_id == clinic_id,
        models.TherapistClinic.status == models.AffiliationStatus.active,
        models.Psychologist.is_active.is_(True),
    )
    if visible_only:
        query = query.filter(models.Psychologist.verification_status == models.VerificationStatus.verified)
    return query.order_by(
        models.TherapistClinic.is_primary.desc(), models.Psychologist.name.asc()
    ).limit(min(limit, 100)).all()


def clinic_therapist_views(db: Session, clinic_id: str, visible_only: bool = False) -> List[Dict[str, Any]]:
    rows = get_clinic_therapists(db, clinic_id, visible_only=visible_only)
    ratings = get_rating_summary(db, [p.id for _, p in rows])
    views = []
    for link, psychologist in rows:
        avg, count = ratings.get(psychologist.id, (0.0, 0))
        views.append({
            "id": psychologist.id,
            "name": psychologist.name,
            "specialty": psychologist.specialty,
            "specialization": psychologist.specialization or [],
            "bio": psychologist.bio,
            "location": psychologist.location,
            "profile_image": psychologist.profile_image,
            "is_verified": psychologist.is_verified,
            "role_label": link.role_label,
            "is_primary": link.is_primary,
            "avg_rating": avg,
            "review_count": count,
        })
    return views


# ==================== AUDIT LOGS ====================

def create_admin_audit_log(db: Session, admin_user_id: Optional[str], action_type: str,
                           target_type: Optional[str] = None, target_id: Optional[str] = None,
                           details: Optional[Dict[str, Any]] = None) -> models.AdminAuditLog:
    """Stage an audit entry in the caller's transaction. Entries are never updated."""
    entry = models.AdminAuditLog(
        admin_user_id=admin_user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        details=details,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


def create_therapist_audit_log(db: Session, therapist_user_id: str, action_type: str,
                               target_type: Optional[str] = None, target_id: Optional[str] = None,
                               details: Optional[Dict[str, Any]] = None) -> models.TherapistAuditLog:
    entry = models.TherapistAuditLog(
        therapist_user_id=therapist_user_id,
        action_type=action_type,
        target_type=target_type,
        target_id=target_id,
        details=details,
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


def get_admin_audit_logs(db: Session, action_type: Optional[str] = None, target_type: Optional[str] = None,
                         target_id: Optional[str] = None, limit: int = 100) -> List[models.AdminAuditLog]:
    query = db.query(models.AdminAuditLog)
    if action_type:
        query = query.filter(models.AdminAuditLog.action_type == action_type)
    if target_type:
        query = query.filter(models.AdminAuditLog.target_type == target_type)
    if target_id:
        query = query.filter(models.AdminAuditLog.target_id == target_id)
    return query.order_by(models.AdminAuditLog.created_at.desc()).limit(min(limit, 500)).all()


# ==================== DASHBOARD ====================

def get_admin_dashboard_stats(db: Session) -> Dict[str, int]:
    """Get admin dashboard counters"""
    try:
        return {
            "pending_therapist_applications": db.query(models.TherapistApplication).filter(
                models.TherapistApplication.status == models.ApplicationStatus.pending).count(),
            "pending_clinic_applications": db.query(models.ClinicApplication).filter(
                models.ClinicApplication.status == models.ClinicApplicationStatus.pending).count(),
            "verified_therapists_count": db.query(models.Psychologist).filter(
                models.Psychologist.is_active.is_(True),
                models.Psychologist.verification_status == models.VerificationStatus.verified).count(),
            "verified_clinics_count": db.query(models.Clinic).filter(
                models.Clinic.is_active.is_(True),
                models.Clinic.verification_status == models.ClinicVerificationStatus.verified).count(),
            "reports_pending_review": db.query(models.ProfessionalReport).filter(
                models.ProfessionalReport.status.in_([models.ReportStatus.open, models.ReportStatus.under_review])).count(),
        }
    except SQLAlchemyError as e:
        logger.error(f"Error fetching dashboard stats: {str(e)}")
        raise


# ==================== INVITES ====================

def get_valid_invite(db: Session, token: str) -> Optional[models.ClinicInvite]:
    return db.query(models.ClinicInvite).filter(
        models.ClinicInvite.token == token,
        models.ClinicInvite.expires_at > utcnow(),
    ).first()


def invite_expiry(days: int):
    return utcnow() + timedelta(days=days)
