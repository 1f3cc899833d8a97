# medintake/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import auth as auth_router
from . import patients as patients_router
from . import personnel as personnel_router
from . import symptoms as symptoms_router
from . import uploads as uploads_router
from . import config, database, models
from .config import Settings
from .deps import CurrentUser, get_optional_user
from .errors import register_error_handlers
from .intake import XrayIntake
from .storage import build_blob_store
from .tokens import TokenService

logger = logging.getLogger(__name__)


def seed_default_admin(settings: Settings) -> None:
    if not settings.default_admin_password:
        return
    db = database.SessionLocal()
    try:
        exists = (
            db.query(models.MedicalPersonnel.id)
            .filter(models.MedicalPersonnel.email == settings.default_admin_email)
            .first()
        )
        if exists:
            return
        db.add(models.MedicalPersonnel(
            email=settings.default_admin_email,
            password_hash=auth_router.hash_password(settings.default_admin_password, settings.bcrypt_rounds),
            first_name="System",
            last_name="Administrator",
            role=models.Role.admin,
            license_number="ADMIN001",
            is_active=True,
        ))
        db.commit()
        logger.info("Seeded default admin %s", settings.default_admin_email)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.init_db:
        database.init_db()
        seed_default_admin(app.state.settings)
    yield


def create_app(
    settings: Optional[Settings] = None,
    blob_store=None,
    init_db: bool = True,
) -> FastAPI:
    settings = settings or Settings.from_env()
    blob_store = blob_store or build_blob_store(settings)

    app = FastAPI(title="Medical Intake API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.init_db = init_db
    app.state.token_service = TokenService(settings)
    app.state.blob_store = blob_store
    app.state.intake = XrayIntake(settings, blob_store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    app.include_router(auth_router.router)
    app.include_router(personnel_router.router)
    app.include_router(patients_router.router)
    app.include_router(symptoms_router.router)
    app.include_router(uploads_router.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.get("/api")
    def index(user: Optional[CurrentUser] = Depends(get_optional_user)):
        return {
            "message": "Medical Intake API",
            "status": "running",
            "authenticated": user is not None,
            "user": user.email if user else None,
        }

    return app


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
