# medintake/deps.py
import logging
import uuid
from typing import Iterable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import database, models
from .config import Settings
from .errors import Forbidden, Unauthenticated
from .tokens import ExpiredToken, InvalidToken, TokenService

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    id: uuid.UUID
    email: str
    role: models.Role


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_blob_store(request: Request):
    return request.app.state.blob_store


def get_intake(request: Request):
    return request.app.state.intake


def _authenticate(token: str, tokens: TokenService, db: Session) -> CurrentUser:
    try:
        claims = tokens.verify(token)
    except ExpiredToken:
        raise Unauthenticated("Your session has expired. Please login again.", "Token expired")
    except InvalidToken:
        raise Unauthenticated("The provided token is invalid or expired", "Invalid token")

    try:
        subject = uuid.UUID(claims.sub)
    except ValueError:
        raise Unauthenticated("The provided token is invalid or expired", "Invalid token")

    user = db.get(models.MedicalPersonnel, subject)
    if user is None:
        raise Unauthenticated("User not found or account deactivated", "Invalid token")
    if not user.is_active:
        raise Forbidden(
            "Your account has been deactivated. Please contact administrator.",
            "Account deactivated",
        )
    return CurrentUser(id=user.id, email=user.email, role=user.role)


def get_current_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(database.get_db),
) -> CurrentUser:
    if not creds or not creds.credentials:
        raise Unauthenticated("Please provide a valid authentication token", "Access token required")
    user = _authenticate(creds.credentials, tokens, db)
    request.state.user = user
    return user


def get_optional_user(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(database.get_db),
) -> Optional[CurrentUser]:
    request.state.user = None
    if not creds or not creds.credentials:
        return None
    try:
        user = _authenticate(creds.credentials, tokens, db)
    except (Unauthenticated, Forbidden) as exc:
        logger.debug("Optional auth ignored a bad token: %s", exc.error)
        return None
    except SQLAlchemyError:
        logger.warning("Optional auth could not load the identity", exc_info=True)
        return None
    request.state.user = user
    return user


def check_role(user: Optional[CurrentUser], allowed: Iterable[models.Role]) -> CurrentUser:
    if user is None:
        raise Unauthenticated()
    if user.role not in set(allowed):
        raise Forbidden()
    return user


def require_role(*roles: models.Role):
    def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        return check_role(user, roles)

    return dependency
