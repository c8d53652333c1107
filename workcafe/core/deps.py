from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session

from workcafe.core.security import Identity, decode_access_token, identity_from_claims
from workcafe.db.session import get_db
from workcafe.models.enums import UserRole
from workcafe.models.users import UserAuth

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/token", auto_error=False)


def _decode(token: str) -> Identity | None:
    try:
        return identity_from_claims(decode_access_token(token))
    except JWTError:
        return None


def get_current_identity(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Identity:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    identity = _decode(token)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    # a token stays valid after its account is deleted or deactivated
    user = db.get(UserAuth, identity.id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User inactive or not found")
    return identity


def get_optional_identity(token: str | None = Depends(oauth2_scheme)) -> Identity | None:
    """Like get_current_identity, but anonymous callers get None instead of a 401."""
    if not token:
        return None
    identity = _decode(token)
    if identity is None:
        logger.debug("Ignoring invalid bearer token on optional-auth route")
    return identity


def require_role(*allowed: UserRole):
    allowed_values = {r.value for r in allowed}

    def _dep(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed_values:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
        return identity

    return _dep


require_admin = require_role(UserRole.admin)
