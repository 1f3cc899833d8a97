# medintake/uploads.py
import logging
import uuid
from collections import Counter
from datetime import datetime, timedelta
from io import BytesIO
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from . import database, models, schemas
from .deps import CurrentUser, get_blob_store, get_current_user, get_intake
from .errors import NotFound
from .intake import XrayIntake
from .pagination import PageParams, page_params, paginate
from .patients import active_patient
from .storage import BlobStoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/upload", tags=["upload"])

REQUIRED_FIELDS = {"image_type", "body_part"}


def _get_image(db: Session, image_id: uuid.UUID) -> models.XrayImage:
    image = db.get(models.XrayImage, image_id)
    if not image:
        raise NotFound("X-ray image not found", "Image not found")
    return image


def _detail(image: models.XrayImage, with_patient: bool = True) -> schemas.ImageDetail:
    return schemas.ImageDetail(
        **schemas.ImageOut.model_validate(image).model_dump(),
        patient=schemas.PatientBrief.model_validate(image.patient) if with_patient else None,
        uploaded_by_user=(
            schemas.PersonnelSummary.model_validate(image.uploader) if image.uploader else None
        ),
    )


@router.get("/stats/overview")
def upload_stats(
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    types = Counter(t for (t,) in db.query(models.XrayImage.image_type).all())
    since = datetime.utcnow() - timedelta(days=30)
    recent = db.query(models.XrayImage).filter(models.XrayImage.uploaded_at >= since).count()
    total_bytes = db.query(func.coalesce(func.sum(models.XrayImage.file_size), 0)).scalar()

    stats = schemas.ImageStats(
        total_images=sum(types.values()),
        type_distribution=dict(types),
        recent_uploads=recent,
        total_storage_bytes=int(total_bytes),
        total_storage_mb=round(int(total_bytes) / (1024 * 1024), 2),
        last_updated=datetime.utcnow(),
    )
    return {"stats": stats}


@router.post("/xray", status_code=status.HTTP_201_CREATED)
async def upload_xray(
    patient_id: uuid.UUID = Form(..., alias="patientId"),
    image_type: Optional[str] = Form(default=None, alias="imageType", max_length=50),
    body_part: Optional[str] = Form(default=None, alias="bodyPart", max_length=100),
    notes: Optional[str] = Form(default=None),
    image: Optional[UploadFile] = File(default=None),
    db: Session = Depends(database.get_db),
    intake: XrayIntake = Depends(get_intake),
    current: CurrentUser = Depends(get_current_user),
):
    data = await image.read() if image is not None else b""
    filename = image.filename if image is not None else None
    content_type = image.content_type if image is not None else None
    intake.validate(filename, content_type, data)

    patient = await run_in_threadpool(active_patient, db, patient_id)
    record = await run_in_threadpool(
        intake.store,
        db,
        patient,
        filename=filename,
        content_type=content_type,
        data=data,
        uploaded_by=current.id,
        image_type=image_type,
        body_part=body_part,
        notes=notes,
    )
    return {
        "message": "X-ray image uploaded successfully",
        "image": schemas.ImageOut.model_validate(record),
        "patient": schemas.PatientBrief.model_validate(patient),
    }


@router.get("/xray/patient/{patient_id}")
def list_patient_images(
    patient_id: uuid.UUID,
    params: PageParams = Depends(page_params(20)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    patient = active_patient(db, patient_id)
    q = db.query(models.XrayImage).filter(models.XrayImage.patient_id == patient.id)
    rows, meta = paginate(q, params, models.XrayImage.uploaded_at.desc(), models.XrayImage.id)
    return {
        "patient": schemas.PatientBrief.model_validate(patient),
        "images": [_detail(r, with_patient=False) for r in rows],
        "pagination": meta,
    }


@router.get("/xray")
def list_images(
    image_type: Optional[str] = Query(None, alias="imageType"),
    body_part: Optional[str] = Query(None, alias="bodyPart"),
    patient_id: Optional[uuid.UUID] = Query(None, alias="patientId"),
    params: PageParams = Depends(page_params(20)),
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    q = db.query(models.XrayImage)
    if params.search:
        like = f"%{params.search}%"
        q = q.filter(or_(models.XrayImage.notes.ilike(like), models.XrayImage.body_part.ilike(like)))
    if image_type:
        q = q.filter(models.XrayImage.image_type == image_type)
    if body_part:
        q = q.filter(models.XrayImage.body_part == body_part)
    if patient_id is not None:
        q = q.filter(models.XrayImage.patient_id == patient_id)

    rows, meta = paginate(q, params, models.XrayImage.uploaded_at.desc(), models.XrayImage.id)
    return {"images": [_detail(r) for r in rows], "pagination": meta}


@router.get("/xray/{image_id}")
def get_image(
    image_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    return {"image": _detail(_get_image(db, image_id))}


@router.get("/xray/{image_id}/file")
def get_image_file(
    image_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    blob_store=Depends(get_blob_store),
    current: CurrentUser = Depends(get_current_user),
):
    image = _get_image(db, image_id)
    try:
        blob = blob_store.download(image.file_path)
    except BlobStoreError:
        logger.exception("Blob %s missing for image %s", image.file_path, image.id)
        raise NotFound("X-ray image file not found in storage", "Image not found")

    return StreamingResponse(
        BytesIO(blob),
        media_type=image.mime_type,
        headers={"Content-Disposition": f'inline; filename="{image.file_name}"'},
    )


@router.put("/xray/{image_id}")
def update_image(
    image_id: uuid.UUID,
    payload: schemas.ImageUpdate,
    db: Session = Depends(database.get_db),
    current: CurrentUser = Depends(get_current_user),
):
    image = _get_image(db, image_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in REQUIRED_FIELDS:
            continue
        setattr(image, field, value)
    image.updated_at = datetime.utcnow()
    image.updated_by = current.id

    db.add(image)
    db.commit()
    db.refresh(image)
    return {
        "message": "Image metadata updated successfully",
        "image": schemas.ImageOut.model_validate(image),
    }


@router.delete("/xray/{image_id}")
def delete_image(
    image_id: uuid.UUID,
    db: Session = Depends(database.get_db),
    blob_store=Depends(get_blob_store),
    current: CurrentUser = Depends(get_current_user),
):
    image = _get_image(db, image_id)

    # blob first, then row; a failed blob removal leaves an orphaned blob, never an orphaned row
    try:
        blob_store.remove([image.file_path])
    except BlobStoreError:
        logger.warning("Could not remove blob %s; deleting record anyway", image.file_path, exc_info=True)

    db.delete(image)
    db.commit()
    logger.info("X-ray %s deleted by %s", image_id, current.id)
    return {"message": "X-ray image deleted successfully"}
