# medintake/models.py
import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    BigInteger, Boolean, Column, Date, DateTime, Enum, ForeignKey, String, Text, Uuid,
)
from sqlalchemy.orm import relationship

from .database import Base


class Role(str, enum.Enum):
    doctor = "doctor"
    nurse = "nurse"
    radiologist = "radiologist"
    admin = "admin"


class Gender(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


class Severity(str, enum.Enum):
    mild = "mild"
    moderate = "moderate"
    severe = "severe"


def _enum(cls, name):
    return Enum(cls, name=name, native_enum=False, validate_strings=True,
                values_callable=lambda e: [m.value for m in e])


class MedicalPersonnel(Base):
    __tablename__ = "medical_personnel"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(_enum(Role, "personnel_role"), nullable=False, index=True)
    license_number = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    last_login = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=True)


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(_enum(Gender, "patient_gender"), nullable=False)
    phone_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    address = Column(Text, nullable=True)
    medical_history = Column(Text, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    created_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=True)

    creator = relationship("MedicalPersonnel", foreign_keys=[created_by])


class Symptom(Base):
    __tablename__ = "symptoms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid, ForeignKey("patients.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    severity = Column(_enum(Severity, "symptom_severity"), nullable=False)
    duration = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=False, index=True)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=True)

    patient = relationship("Patient")
    recorder = relationship("MedicalPersonnel", foreign_keys=[recorded_by])


class SymptomSession(Base):
    __tablename__ = "symptom_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid, ForeignKey("patients.id"), nullable=False, index=True)
    notes = Column(Text, nullable=True)
    recorded_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class XrayImage(Base):
    __tablename__ = "xray_images"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid, ForeignKey("patients.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(BigInteger, nullable=False)
    mime_type = Column(String(100), nullable=False)
    image_type = Column(String(50), nullable=False, default="xray", index=True)
    body_part = Column(String(100), nullable=False, default="unknown")
    notes = Column(Text, nullable=True)
    public_url = Column(Text, nullable=True)
    uploaded_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=False, index=True)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by = Column(Uuid, ForeignKey("medical_personnel.id"), nullable=True)

    patient = relationship("Patient")
    uploader = relationship("MedicalPersonnel", foreign_keys=[uploaded_by])
