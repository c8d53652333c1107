from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from jose import jwt
from passlib.context import CryptContext

from workcafe.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"


@dataclass(frozen=True)
class Identity:
    """Caller identity decoded from a bearer token.

    Built once per request by the auth dependencies and handed to service
    functions as an explicit argument.
    """

    id: str
    username: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(
    subject: str,
    *,
    username: str,
    email: str,
    role: str = "user",
    expires_minutes: int | None = None,
) -> str:
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes or settings.access_token_exp_minutes)
    to_encode = {"sub": subject, "username": username, "email": email, "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])


def identity_from_claims(payload: dict) -> Identity | None:
    user_id = payload.get("sub")
    if not user_id:
        return None
    return Identity(
        id=str(user_id),
        username=str(payload.get("username") or ""),
        email=str(payload.get("email") or ""),
        role=str(payload.get("role") or "user"),
    )
