# mindful_kids/services/directory_service.py
"""Public professional and clinic discovery. Only active, verified profiles are ever returned."""
from typing import Optional, List, Dict

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from .verification_service import list_credentials, verified_country_map


def visible_psychologists(db: Session):
    return db.query(models.Psychologist).filter(
        models.Psychologist.is_active.is_(True),
        models.Psychologist.verification_status == models.VerificationStatus.verified,
    )


def _json_list_contains(values, wanted: str) -> bool:
    wanted = wanted.strip().lower()
    return any(isinstance(v, str) and v.strip().lower() == wanted for v in (values or []))


def _with_ratings(db: Session, psychologists: List[models.Psychologist], schema=schemas.PsychologistResponse):
    ids = [p.id for p in psychologists]
    ratings = crud.get_rating_summary(db, ids)
    countries = verified_country_map(db, ids)
    results = []
    for psychologist in psychologists:
        data = schema.model_validate(psychologist)
        data.avg_rating, data.review_count = ratings.get(psychologist.id, (0.0, 0))
        data.verified_country = countries.get(psychologist.id)
        results.append(data)
    return results


def list_psychologists(db: Session, specialization: Optional[str] = None, search: Optional[str] = None,
                       min_rating: Optional[float] = None, limit: int = 50, offset: int = 0) -> List[schemas.PsychologistResponse]:
    query = visible_psychologists(db)
    if search:
        term = f"%{search.strip()}%"
        query = query.filter(or_(models.Psychologist.name.ilike(term), models.Psychologist.bio.ilike(term)))
    psychologists = query.order_by(models.Psychologist.name.asc()).all()
    if specialization:
        psychologists = [p for p in psychologists if _json_list_contains(p.specialization, specialization)]

    results = _with_ratings(db, psychologists)
    if min_rating is not None:
        results = [p for p in results if p.avg_rating >= min_rating]
    return results[offset:offset + limit]


def get_public_psychologist(db: Session, psychologist_id: str) -> schemas.PsychologistDetail:
    psychologist = visible_psychologists(db).filter(models.Psychologist.id == psychologist_id).first()
    if not psychologist:
        raise crud.NotFoundError("Psychologist not found")
    return psychologist_detail(db, psychologist)


def psychologist_detail(db: Session, psychologist: models.Psychologist) -> schemas.PsychologistDetail:
    detail = _with_ratings(db, [psychologist], schemas.PsychologistDetail)[0]
    detail.credentials = [schemas.CredentialResponse.model_validate(c) for c in list_credentials(db, psychologist.id)]
    detail.clinics = [
        schemas.ClinicResponse.model_validate(clinic)
        for _, clinic in crud.get_affiliations_for_psychologist(db, psychologist.id, include_removed=False)
    ]
    return detail


def search_therapists(db: Session, country: Optional[str] = None, language: Optional[str] = None,
                      specialty: Optional[str] = None, clinic_id: Optional[str] = None,
                      limit: int = 20, offset: int = 0) -> List[schemas.TherapistSearchResult]:
    query = visible_psychologists(db)
    if specialty:
        query = query.filter(models.Psychologist.specialty.ilike(f"%{specialty.strip()}%"))
    if clinic_id:
        query = query.join(
            models.TherapistClinic, models.TherapistClinic.psychologist_id == models.Psychologist.id
        ).filter(
            models.TherapistClinic.clinic_id == clinic_id,
            models.TherapistClinic.status == models.AffiliationStatus.active,
        )
    psychologists = query.order_by(models.Psychologist.verified_at.desc(), models.Psychologist.name.asc()).all()
    if language:
        psychologists = [p for p in psychologists if _json_list_contains(p.languages, language)]

    countries = verified_country_map(db, [p.id for p in psychologists])
    if country:
        wanted = country.strip().lower()
        psychologists = [p for p in psychologists if (countries.get(p.id) or "").lower() == wanted]
    psychologists = psychologists[offset:offset + limit]

    clinic_names: Dict[str, List[str]] = {}
    for psychologist in psychologists:
        clinic_names[psychologist.id] = [
            clinic.name for _, clinic in crud.get_affiliations_for_psychologist(db, psychologist.id, include_removed=False)
        ]

    return [
        schemas.TherapistSearchResult(
            id=p.id,
            name=p.name,
            specialty=p.specialty,
            country=countries.get(p.id),
            verified_status=p.verification_status,
            verified_at=p.verified_at,
            clinic_names=clinic_names.get(p.id, []),
            profile_image_url=p.profile_image,
        )
        for p in psychologists
    ]


def search_clinics(db: Session, country: Optional[str] = None, verified_only: bool = True,
                   limit: int = 20, offset: int = 0) -> List[schemas.ClinicSearchResult]:
    clinics = crud.get_clinics(db, is_active=True, country=country, verified_only=verified_only,
                               limit=limit, offset=offset)
    counts = crud.count_active_therapists(db, [c.id for c in clinics], visible_only=True)
    results = []
    for clinic in clinics:
        data = schemas.ClinicSearchResult.model_validate(clinic)
        data.therapist_count = counts.get(clinic.id, 0)
        results.append(data)
    return results


def clinic_detail(db: Session, clinic: models.Clinic, visible_only: bool = False) -> schemas.ClinicDetail:
    data = schemas.ClinicDetail.model_validate(clinic)
    data.therapist_count = crud.count_active_therapists(db, [clinic.id], visible_only).get(clinic.id, 0)
    return data


def clinic_views(db: Session, clinics: List[models.Clinic], visible_only: bool = False) -> List[schemas.ClinicDetail]:
    counts = crud.count_active_therapists(db, [c.id for c in clinics], visible_only)
    views = []
    for clinic in clinics:
        data = schemas.ClinicDetail.model_validate(clinic)
        data.therapist_count = counts.get(clinic.id, 0)
        views.append(data)
    return views
