# medintake/symptoms.py
import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import database, models, schemas
from .deps import CurrentUser, get_current_user
from .errors import NotFound
from .pagination import PageParams, page_params, paginate
from .patients import active_patient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/symptoms", tags=["symptoms"])

# columns that may not be cleared by an update
REQUIRED_FIELDS = {"name", "severity"}


def _personnel_summary(person: Optional[models.MedicalPersonnel]):
    return schemas.PersonnelSummary.model_validate(person) if person is not None else None


def _list_item(symptom: models.Symptom, with_patient: bool = True) -> schemas.SymptomListItem:
    return schemas.SymptomListItem(
        **schemas.SymptomOut.model_validate(symptom).model_dump(),
        patient=schemas.PatientBrief.model_validate(symptom.patient) if with_patient else None,
        recorded_by=_personnel_summary(symptom.recorder),
    )


def _get_symptom(db: Session, symptom_id: uuid.UUID) -> models.Symptom:
    symptom = db.get(models.Symptom, symptom_id)
    if not symptom:
        raise NotFound("Symptom record not found", "Symptom not found")
    return symptom


@router.get("/stats/overview")
def symptom_stats(
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    severities = Counter(
        s.value for (s,) in db.query(models.Symptom.severity).all()
    )
    since = datetime.utcnow() - timedelta(days=30)
    recent = db.query(models.Symptom).filter(models.Symptom.recorded_at >= since).count()

    hits = func.count(models.Symptom.id)
    top = (
        db.query(models.Symptom.name, hits)
        .group_by(models.Symptom.name)
        .order_by(hits.desc(), models.Symptom.name)
        .limit(5)
        .all()
    )
    stats = schemas.SymptomStats(
        total_symptoms=sum(severities.values()),
        severity_distribution=dict(severities),
        recent_symptoms=recent,
        top_symptoms=[schemas.TopSymptom(name=name, count=count) for name, count in top],
        last_updated=datetime.utcnow(),
    )
    return {"stats": stats}


@router.post("", status_code=status.HTTP_201_CREATED)
def record_symptoms(
    payload: schemas.SymptomBatchIn,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    patient = active_patient(db, payload.patient_id)

    now = datetime.utcnow()
    rows = [
        models.Symptom(
            patient_id=patient.id,
            name=item.name,
            severity=item.severity,
            duration=item.duration,
            notes=item.notes or None,
            recorded_by=current.id,
            recorded_at=now,
            updated_at=now,
        )
        for item in payload.symptoms
    ]
    db.add_all(rows)
    db.commit()
    for row in rows:
        db.refresh(row)

    # The session row is written separately; losing it does not undo the symptoms.
    try:
        session = models.SymptomSession(
            patient_id=patient.id,
            notes=payload.notes,
            recorded_by=current.id,
            recorded_at=now,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Symptom session insert failed for patient %s", patient.id, exc_info=True)
        session = None

    logger.info("Recorded %d symptoms for patient %s", len(rows), patient.id)
    return {
        "message": "Symptoms recorded successfully",
        "patient": schemas.PatientBrief.model_validate(patient),
        "symptoms": [schemas.SymptomOut.model_validate(r) for r in rows],
        "session": schemas.SessionOut.model_validate(session) if session else None,
    }


@router.get("/patient/{patient_id}")
def list_patient_symptoms(
    patient_id: uuid.UUID,
    params: PageParams = Depends(page_params(50)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    patient = active_patient(db, patient_id)

    q = db.query(models.Symptom).filter(models.Symptom.patient_id == patient.id)
    rows, meta = paginate(q, params, models.Symptom.recorded_at.desc(), models.Symptom.id)
    sessions = (
        db.query(models.SymptomSession)
        .filter(models.SymptomSession.patient_id == patient.id)
        .order_by(models.SymptomSession.recorded_at.desc())
        .all()
    )
    return {
        "patient": schemas.PatientBrief.model_validate(patient),
        "symptoms": [_list_item(r, with_patient=False) for r in rows],
        "sessions": [schemas.SessionOut.model_validate(s) for s in sessions],
        "pagination": meta,
    }


@router.get("")
def list_symptoms(
    severity: Optional[models.Severity] = None,
    patient_id: Optional[uuid.UUID] = Query(None, alias="patientId"),
    params: PageParams = Depends(page_params(50)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    q = db.query(models.Symptom)
    if params.search:
        like = f"%{params.search}%"
        q = q.filter(or_(models.Symptom.name.ilike(like), models.Symptom.notes.ilike(like)))
    if severity is not None:
        q = q.filter(models.Symptom.severity == severity)
    if patient_id is not None:
        q = q.filter(models.Symptom.patient_id == patient_id)

    rows, meta = paginate(q, params, models.Symptom.recorded_at.desc(), models.Symptom.id)
    return {
        "symptoms": [_list_item(r) for r in rows],
        "pagination": meta,
    }


@router.get("/{symptom_id}")
def get_symptom(
    symptom_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return {"symptom": _list_item(_get_symptom(db, symptom_id))}


@router.put("/{symptom_id}")
def update_symptom(
    symptom_id: uuid.UUID,
    payload: schemas.SymptomUpdate,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    symptom = _get_symptom(db, symptom_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(symptom, field, value)
    symptom.updated_at = datetime.utcnow()
    symptom.updated_by = current.id

    db.add(symptom)
    db.commit()
    db.refresh(symptom)

    return {
        "message": "Symptom updated successfully",
        "symptom": schemas.SymptomOut.model_validate(symptom),
    }


@router.delete("/{symptom_id}")
def delete_symptom(
    symptom_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    symptom = _get_symptom(db, symptom_id)
    db.delete(symptom)
    db.commit()
    logger.info("Symptom %s deleted by %s", symptom_id, current.id)
    return {"message": "Symptom deleted successfully"}
