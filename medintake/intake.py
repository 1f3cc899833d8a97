# medintake/intake.py
import logging
import os
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .config import Settings
from .errors import InternalFailure, InvalidFileType, PayloadTooLarge, ValidationFailed
from .storage import BlobStoreError

logger = logging.getLogger(__name__)


class XrayIntake:
    """Validates uploaded X-ray images and stores blob plus metadata row."""

    def __init__(self, settings: Settings, blob_store):
        self.max_file_size = settings.max_file_size
        self.allowed_types = list(settings.allowed_file_types)
        self.blob_store = blob_store

    def validate(self, filename: Optional[str], content_type: Optional[str], data: bytes) -> None:
        if not filename:
            raise ValidationFailed("Please upload an X-ray image", "No file uploaded")
        if content_type not in self.allowed_types:
            raise InvalidFileType(
                f"Invalid file type. Allowed types: {', '.join(self.allowed_types)}"
            )
        if len(data) > self.max_file_size:
            raise PayloadTooLarge(
                f"Image too large (max {self.max_file_size // (1024 * 1024)}MB)"
            )

    @staticmethod
    def storage_key(patient_id: uuid.UUID, filename: str):
        ext = os.path.splitext(filename)[1].lower()
        file_name = f"xray_{patient_id}_{uuid.uuid4()}{ext}"
        return file_name, f"{patient_id}/{file_name}"

    def store(
        self,
        db: Session,
        patient: models.Patient,
        filename: str,
        content_type: str,
        data: bytes,
        uploaded_by: uuid.UUID,
        image_type: Optional[str] = None,
        body_part: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> models.XrayImage:
        image_type = image_type or "xray"
        body_part = body_part or "unknown"
        file_name, file_path = self.storage_key(patient.id, filename)

        try:
            self.blob_store.upload(
                file_path,
                data,
                content_type,
                metadata={
                    "originalName": filename,
                    "uploadedBy": str(uploaded_by),
                    "patientId": str(patient.id),
                    "imageType": image_type,
                    "bodyPart": body_part,
                },
            )
        except BlobStoreError:
            logger.exception("Blob upload failed for patient %s", patient.id)
            raise InternalFailure("Failed to upload X-ray image to storage", "File upload failed")

        record = models.XrayImage(
            patient_id=patient.id,
            file_name=file_name,
            file_path=file_path,
            file_size=len(data),
            mime_type=content_type,
            image_type=image_type,
            body_part=body_part,
            notes=notes or None,
            uploaded_by=uploaded_by,
            uploaded_at=datetime.utcnow(),
            public_url=self.blob_store.public_url(file_path),
        )
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Image record insert failed; removing blob %s", file_path)
            try:
                self.blob_store.remove([file_path])
            except BlobStoreError:
                logger.exception("Could not remove orphaned blob %s", file_path)
            raise InternalFailure("Failed to create image record in database", "Record creation failed")

        logger.info("Stored X-ray %s (%d bytes) for patient %s", file_path, len(data), patient.id)
        return record
