"""Authentication for the designer API: bearer JWTs and bcrypt password hashes.

Tokens are issued by ``/api/auth/signup`` and ``/api/auth/login`` and are
only accepted when they carry this service's issuer and audience, so a token
signed with the same secret for another app is rejected.
"""
import logging
import os
from datetime import datetime, timezone, timedelta
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.errors import Unauthorized
from backend.models_db import User

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "lumiere-dev-secret-change-in-production")
ALGORITHM = "HS256"
TOKEN_ISSUER = "lumiere"
TOKEN_AUDIENCE = "lumiere-designer"
ACCESS_TOKEN_TTL_HOURS = int(os.getenv("ACCESS_TOKEN_TTL_HOURS", "24"))

# bcrypt only reads the first 72 bytes of a password
_BCRYPT_MAX_BYTES = 72

security = HTTPBearer(auto_error=False)


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain), hashed.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash (e.g. an account seeded without a password)
        return False


def create_access_token(user_id: str, ttl: Optional[timedelta] = None, now: Optional[datetime] = None) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iss": TOKEN_ISSUER,
        "aud": TOKEN_AUDIENCE,
        "iat": issued,
        "exp": issued + (ttl or timedelta(hours=ACCESS_TOKEN_TTL_HOURS)),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    """Return the user id a token was issued for, or None if it is not acceptable."""
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            audience=TOKEN_AUDIENCE,
            issuer=TOKEN_ISSUER,
        )
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        return None
    return payload.get("sub") or None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer token to a user; every designer route depends on this."""
    if not credentials:
        raise Unauthorized("Not authenticated")

    user_id = decode_token(credentials.credentials)
    if not user_id:
        raise Unauthorized("Invalid or expired token")

    user = db.get(User, user_id)
    if not user:
        raise Unauthorized("User not found")

    return user
