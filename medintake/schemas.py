# medintake/schemas.py
import re
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import Gender, Role, Severity

PHONE_RE = re.compile(r"^\+?[\d\s\-()]+$")


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
        str_strip_whitespace = True


# Personnel / auth
class SignupIn(CamelModel):
    email: EmailStr
    password: str = Field(min_length=8)
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    role: Role
    license_number: Optional[str] = Field(default=None, min_length=5, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v


class SigninIn(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if isinstance(v, str) else v


class PersonnelOut(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str
    role: Role
    license_number: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class PersonnelSummary(CamelModel):
    first_name: str
    last_name: str
    role: Role


class AuthOut(CamelModel):
    message: str
    user: PersonnelOut
    token: str


class TokenOut(CamelModel):
    message: str
    token: str


# Pagination
class PaginationOut(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int
    has_next: bool
    has_prev: bool


# Patients
class PatientIn(CamelModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    date_of_birth: date
    gender: Gender
    phone_number: Optional[str] = Field(default=None, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = Field(default=None, max_length=200)
    medical_history: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("phone_number")
    @classmethod
    def phone_format(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PHONE_RE.match(v):
            raise ValueError("Please provide a valid phone number")
        return v


class PatientUpdate(PatientIn):
    first_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None


class PatientBrief(CamelModel):
    id: UUID
    first_name: str
    last_name: str


class PatientOut(PatientBrief):
    date_of_birth: date
    gender: Gender
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    medical_history: Optional[str] = None
    created_at: Optional[datetime] = None
    created_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[UUID] = None


class PatientDetail(PatientOut):
    created_by_user: Optional[PersonnelSummary] = None


class PatientStats(CamelModel):
    total_patients: int
    gender_distribution: Dict[str, int]
    recent_patients: int
    last_updated: datetime


# Symptoms
class SymptomItemIn(CamelModel):
    name: str = Field(min_length=2, max_length=100)
    severity: Severity
    duration: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class SymptomBatchIn(CamelModel):
    patient_id: UUID
    symptoms: List[SymptomItemIn] = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)


class SymptomUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    severity: Optional[Severity] = None
    duration: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class SymptomOut(CamelModel):
    id: UUID
    patient_id: UUID
    name: str
    severity: Severity
    duration: Optional[str] = None
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[UUID] = None


class SymptomListItem(SymptomOut):
    patient: Optional[PatientBrief] = None
    recorded_by: Optional[PersonnelSummary] = None


class SessionOut(CamelModel):
    id: UUID
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None
    recorded_by: Optional[UUID] = None


class TopSymptom(CamelModel):
    name: str
    count: int


class SymptomStats(CamelModel):
    total_symptoms: int
    severity_distribution: Dict[str, int]
    recent_symptoms: int
    top_symptoms: List[TopSymptom]
    last_updated: datetime


# Images
class ImageUpdate(CamelModel):
    notes: Optional[str] = None
    image_type: Optional[str] = Field(default=None, min_length=1, max_length=50)
    body_part: Optional[str] = Field(default=None, min_length=1, max_length=100)


class ImageOut(CamelModel):
    id: UUID
    patient_id: UUID
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    image_type: str
    body_part: str
    notes: Optional[str] = None
    public_url: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    uploaded_by: UUID
    updated_at: Optional[datetime] = None
    updated_by: Optional[UUID] = None


class ImageDetail(ImageOut):
    patient: Optional[PatientBrief] = None
    uploaded_by_user: Optional[PersonnelSummary] = None


class ImageStats(CamelModel):
    total_images: int
    type_distribution: Dict[str, int]
    recent_uploads: int
    total_storage_bytes: int
    total_storage_mb: float = Field(serialization_alias="totalStorageMB")
    last_updated: datetime
