# medintake/tokens.py
from datetime import datetime, timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import Settings
from .models import Role


class InvalidToken(Exception):
    pass


class ExpiredToken(InvalidToken):
    pass


class SessionClaims(BaseModel):
    sub: str
    email: str
    role: Role
    iat: int
    exp: int


class TokenService:
    """Signs and verifies the bearer tokens handed out at signin."""

    def __init__(self, settings: Settings):
        self.secret = settings.jwt_secret
        self.algorithm = settings.jwt_algorithm
        self.lifetime = timedelta(hours=settings.jwt_expire_hours)

    def issue(self, identity, issued_at: Optional[datetime] = None) -> str:
        # identity is anything with id, email and role (a personnel row or CurrentUser)
        issued_at = issued_at or datetime.utcnow()
        role = identity.role.value if isinstance(identity.role, Role) else str(identity.role)
        payload = {
            "sub": str(identity.id),
            "email": identity.email,
            "role": role,
            "iat": issued_at,
            "exp": issued_at + self.lifetime,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> SessionClaims:
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredToken("token has expired") from exc
        except JWTError as exc:
            raise InvalidToken(str(exc)) from exc
        try:
            return SessionClaims(**payload)
        except ValidationError as exc:
            raise InvalidToken("token is missing required claims") from exc
