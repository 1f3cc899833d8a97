# medintake/personnel.py
import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import database, models, schemas
from .deps import CurrentUser, require_role
from .errors import NotFound, ValidationFailed
from .pagination import PageParams, page_params, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/personnel", tags=["personnel"])

admin_only = require_role(models.Role.admin)


def _get_personnel(db: Session, personnel_id: uuid.UUID) -> models.MedicalPersonnel:
    user = db.get(models.MedicalPersonnel, personnel_id)
    if not user:
        raise NotFound("Medical personnel record not found", "User not found")
    return user


@router.get("")
def list_personnel(
    role: Optional[models.Role] = None,
    active: Optional[bool] = None,
    params: PageParams = Depends(page_params(20)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(admin_only),
):
    q = db.query(models.MedicalPersonnel)
    if params.search:
        like = f"%{params.search}%"
        q = q.filter(or_(
            models.MedicalPersonnel.first_name.ilike(like),
            models.MedicalPersonnel.last_name.ilike(like),
            models.MedicalPersonnel.email.ilike(like),
        ))
    if role is not None:
        q = q.filter(models.MedicalPersonnel.role == role)
    if active is not None:
        q = q.filter(models.MedicalPersonnel.is_active.is_(active))

    rows, meta = paginate(q, params, models.MedicalPersonnel.created_at.desc())
    return {
        "personnel": [schemas.PersonnelOut.model_validate(r) for r in rows],
        "pagination": meta,
    }


@router.get("/{personnel_id}")
def get_personnel(
    personnel_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(admin_only),
):
    return {"user": schemas.PersonnelOut.model_validate(_get_personnel(db, personnel_id))}


@router.put("/{personnel_id}/activate")
def set_active(
    personnel_id: uuid.UUID,
    active: bool = Query(True),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(admin_only),
):
    user = _get_personnel(db, personnel_id)
    if user.id == current.id and not active:
        raise ValidationFailed("You cannot deactivate your own account", "Invalid operation")

    user.is_active = active
    user.updated_at = datetime.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Personnel %s %s by %s", user.id, "activated" if active else "deactivated", current.id)

    return {
        "message": f"User {'activated' if active else 'deactivated'}",
        "user": schemas.PersonnelOut.model_validate(user),
    }
