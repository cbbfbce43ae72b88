from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from drumforge.core.config import settings

logger = logging.getLogger(__name__)

# auto_error=False so optional-auth routes can serve anonymous callers
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


@dataclass(frozen=True)
class Identity:
    """Caller resolved from the identity provider's bearer token."""

    user_id: str
    email: Optional[str] = None


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_identity(token: str) -> Identity:
    """Decode a bearer token or raise 401."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as exc:
        logger.info("[auth] Rejected bearer token: %s", exc)
        raise _credentials_exception()
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise _credentials_exception()
    email = payload.get("email")
    return Identity(user_id=user_id, email=email if isinstance(email, str) else None)


async def get_optional_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[Identity]:
    """Anonymous when no token is sent; a token that fails to verify is still a 401."""
    if not token:
        return None
    return decode_identity(token)


async def get_current_identity(identity: Optional[Identity] = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise _credentials_exception()
    return identity
