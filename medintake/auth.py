# medintake/auth.py
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from . import database, models, schemas
from .config import Settings
from .deps import CurrentUser, get_current_user, get_settings, get_token_service
from .errors import Conflict, Forbidden, NotFound, Unauthenticated
from .tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def hash_password(password: str, rounds: int) -> str:
    return bcrypt.using(rounds=rounds).hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.verify(password, password_hash)
    except ValueError:
        # malformed stored hash
        return False


@router.post("/signup", response_model=schemas.AuthOut, status_code=status.HTTP_201_CREATED)
def signup(
    payload: schemas.SignupIn,
    db: Session = Depends(database.get_db),
    settings: Settings = Depends(get_settings),
    tokens: TokenService = Depends(get_token_service),
):
    existing = (
        db.query(models.MedicalPersonnel.id)
        .filter(models.MedicalPersonnel.email == payload.email)
        .first()
    )
    if existing:
        raise Conflict("An account with this email already exists", "User already exists")

    user = models.MedicalPersonnel(
        email=payload.email,
        password_hash=hash_password(payload.password, settings.bcrypt_rounds),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        license_number=payload.license_number,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account %s", user.role.value, user.id)

    return {
        "message": "User account created successfully",
        "user": schemas.PersonnelOut.model_validate(user),
        "token": tokens.issue(user),
    }


@router.post("/signin", response_model=schemas.AuthOut)
def signin(
    payload: schemas.SigninIn,
    db: Session = Depends(database.get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = (
        db.query(models.MedicalPersonnel)
        .filter(models.MedicalPersonnel.email == payload.email)
        .first()
    )
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Failed signin attempt")
        raise Unauthenticated("Email or password is incorrect", "Invalid credentials")

    if not user.is_active:
        raise Forbidden(
            "Your account has been deactivated. Please contact administrator.",
            "Account deactivated",
        )

    token = tokens.issue(user)
    user.last_login = datetime.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Personnel %s signed in", user.id)

    return {
        "message": "Login successful",
        "user": schemas.PersonnelOut.model_validate(user),
        "token": token,
    }


@router.get("/profile")
def profile(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(database.get_db),
):
    user = db.get(models.MedicalPersonnel, current.id)
    if not user:
        raise NotFound("User profile not found", "User not found")
    return {"user": schemas.PersonnelOut.model_validate(user)}


@router.post("/refresh", response_model=schemas.TokenOut)
def refresh(
    current: CurrentUser = Depends(get_current_user),
    tokens: TokenService = Depends(get_token_service),
):
    # no rotation: the active flag re-checked by get_current_user is the only revocation
    return {"message": "Token refreshed successfully", "token": tokens.issue(current)}


@router.post("/logout")
def logout(current: CurrentUser = Depends(get_current_user)):
    return {
        "message": "Logout successful",
        "note": "Please remove the token from your client storage",
    }
