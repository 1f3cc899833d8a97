import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medintake import database, models
from medintake.auth import hash_password
from medintake.config import Settings
from medintake.main import create_app
from medintake.storage import LocalBlobStore

PASSWORD = "Secret123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "blobs"),
        cors_origins=["*"],
        supabase_url=None,
        supabase_key=None,
        default_admin_password=None,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    database.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def blob_store(settings):
    return LocalBlobStore(settings.upload_dir, settings.xray_bucket)


@pytest.fixture
def app(settings, blob_store, session_factory):
    app = create_app(settings, blob_store=blob_store, init_db=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[database.get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_personnel(db, settings):
    def _make(role=models.Role.doctor, email=None, active=True, password=PASSWORD):
        user = models.MedicalPersonnel(
            email=email or f"{role.value}-{uuid.uuid4().hex[:8]}@hospital.org",
            password_hash=hash_password(password, settings.bcrypt_rounds),
            first_name="Test",
            last_name=role.value.title(),
            role=role,
            is_active=active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def auth_headers(app):
    tokens = app.state.token_service

    def _headers(user):
        return {"Authorization": f"Bearer {tokens.issue(user)}"}

    return _headers


@pytest.fixture
def doctor(make_personnel):
    return make_personnel(models.Role.doctor)


@pytest.fixture
def admin(make_personnel):
    return make_personnel(models.Role.admin)


@pytest.fixture
def make_patient(db):
    counter = {"n": 0}

    def _make(creator, first_name=None, last_name="Doe", gender=models.Gender.female, **extra):
        counter["n"] += 1
        patient = models.Patient(
            first_name=first_name or f"Jane{counter['n']:03d}",
            last_name=last_name,
            date_of_birth=date(1985, 3, 14),
            gender=gender,
            created_by=creator.id,
            **extra,
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        return patient

    return _make
