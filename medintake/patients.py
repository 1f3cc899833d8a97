# medintake/patients.py
import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import database, models, schemas
from .deps import CurrentUser, get_current_user, require_role
from .errors import Conflict, NotFound
from .pagination import PageParams, page_params, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["patients"])

# columns that may not be cleared by an update
REQUIRED_FIELDS = {"first_name", "last_name", "date_of_birth", "gender"}


def active_patient(db: Session, patient_id: uuid.UUID) -> models.Patient:
    """Fetch a patient that has not been soft deleted, or raise NotFound."""
    patient = (
        db.query(models.Patient)
        .filter(models.Patient.id == patient_id, models.Patient.is_deleted.is_(False))
        .first()
    )
    if not patient:
        raise NotFound("Patient record not found", "Patient not found")
    return patient


def _detail(patient: models.Patient) -> schemas.PatientDetail:
    out = schemas.PatientDetail.model_validate(patient)
    if patient.creator is not None:
        out.created_by_user = schemas.PersonnelSummary.model_validate(patient.creator)
    return out


# ---- Stats (declared before /{patient_id} so the path is not shadowed)
@router.get("/stats/overview")
def patient_stats(
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    live = db.query(models.Patient).filter(models.Patient.is_deleted.is_(False))
    genders = Counter(
        g.value for (g,) in live.with_entities(models.Patient.gender).all()
    )
    since = datetime.utcnow() - timedelta(days=30)
    stats = schemas.PatientStats(
        total_patients=live.count(),
        gender_distribution=dict(genders),
        recent_patients=live.filter(models.Patient.created_at >= since).count(),
        last_updated=datetime.utcnow(),
    )
    return {"stats": stats}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_patient(
    payload: schemas.PatientIn,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    # read-then-write duplicate probe; concurrent identical creates can both pass
    existing = (
        db.query(models.Patient.id)
        .filter(
            models.Patient.first_name == payload.first_name,
            models.Patient.last_name == payload.last_name,
            models.Patient.date_of_birth == payload.date_of_birth,
            models.Patient.is_deleted.is_(False),
        )
        .first()
    )
    if existing:
        raise Conflict(
            "A patient with these details already exists in the system",
            "Patient already exists",
        )

    now = datetime.utcnow()
    patient = models.Patient(
        **payload.model_dump(),
        created_by=current.id,
        created_at=now,
        updated_at=now,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    logger.info("Patient %s created by %s", patient.id, current.id)

    return {
        "message": "Patient created successfully",
        "patient": schemas.PatientOut.model_validate(patient),
    }


@router.get("")
def list_patients(
    params: PageParams = Depends(page_params(20)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    q = db.query(models.Patient).filter(models.Patient.is_deleted.is_(False))
    if params.search:
        like = f"%{params.search}%"
        q = q.filter(or_(
            models.Patient.first_name.ilike(like),
            models.Patient.last_name.ilike(like),
            models.Patient.email.ilike(like),
        ))

    rows, meta = paginate(q, params, models.Patient.created_at.desc(), models.Patient.id)
    return {
        "patients": [schemas.PatientOut.model_validate(p) for p in rows],
        "pagination": meta,
    }


@router.get("/{patient_id}")
def get_patient(
    patient_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return {"patient": _detail(active_patient(db, patient_id))}


@router.put("/{patient_id}")
def update_patient(
    patient_id: uuid.UUID,
    payload: schemas.PatientUpdate,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    patient = active_patient(db, patient_id)

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(patient, field, value)
    patient.updated_at = datetime.utcnow()
    patient.updated_by = current.id

    db.add(patient)
    db.commit()
    db.refresh(patient)

    return {
        "message": "Patient updated successfully",
        "patient": schemas.PatientOut.model_validate(patient),
    }


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(require_role(models.Role.admin)),
):
    patient = active_patient(db, patient_id)
    patient.is_deleted = True
    patient.deleted_at = datetime.utcnow()
    patient.deleted_by = current.id
    db.add(patient)
    db.commit()
    logger.info("Patient %s soft deleted by %s", patient.id, current.id)

    return {
        "message": "Patient deleted successfully",
        "note": "Patient record has been soft deleted",
    }
