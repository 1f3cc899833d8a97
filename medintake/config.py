# medintake/config.py
import os
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medintake.db")

JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))
ALLOWED_FILE_TYPES = os.getenv("ALLOWED_FILE_TYPES", "image/jpeg,image/png,image/jpg")

XRAY_BUCKET = os.getenv("XRAY_BUCKET", "xray-images")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "./uploads")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@diagnosis.com")
DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _split(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """Process-wide configuration, built once at startup and never mutated."""

    jwt_secret: str = JWT_SECRET
    jwt_algorithm: str = JWT_ALGORITHM
    jwt_expire_hours: int = JWT_EXPIRE_HOURS
    bcrypt_rounds: int = BCRYPT_ROUNDS

    max_file_size: int = MAX_FILE_SIZE
    allowed_file_types: List[str] = _split(ALLOWED_FILE_TYPES)

    xray_bucket: str = XRAY_BUCKET
    supabase_url: Optional[str] = SUPABASE_URL
    supabase_key: Optional[str] = SUPABASE_KEY
    upload_dir: str = UPLOAD_DIR

    cors_origins: List[str] = _split(CORS_ORIGINS)

    default_admin_email: str = DEFAULT_ADMIN_EMAIL
    default_admin_password: Optional[str] = DEFAULT_ADMIN_PASSWORD

    class Config:
        frozen = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls()

    @property
    def uses_supabase_storage(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
