"""
MemoHub Backend — Authentication (Password Hashing + Session Tokens)
=====================================================================

What:  bcrypt password hashing, JWT issue/verify, and the FastAPI
       dependency that resolves the session user.
How:   Clients send `Authorization: Bearer <jwt>`. The token carries
       `sub` (user id), `email` and `exp`; it is signed with SECRET_KEY.
Who:   `get_current_user` is a dependency of every session-scoped route.
       Invitation token routes (details, decline) do not
       depend on it: possessing the invitation token is their credential.

Failure Mode:
    Anything wrong with the credentials (missing header, bad signature,
    expired, unknown user) is the same AuthenticationRequiredError → 401.
    The reason is logged at DEBUG but never returned.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.config import settings
from memohub.database import get_db_session
from memohub.exceptions import AuthenticationRequiredError
from memohub.models.user import User

logger = logging.getLogger(__name__)

# auto_error=False: a missing header becomes our 401 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)

# bcrypt only looks at the first 72 bytes of the password
BCRYPT_MAX_PASSWORD_BYTES = 72


class CurrentUser(BaseModel):
    """The resolved session: who is calling."""
    id: uuid.UUID
    email: str
    name: str


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash, or a password over bcrypt's byte limit
        return False


# ── Tokens ────────────────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims = {"sub": str(user_id), "email": email, "exp": expire}
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """Verified claims, or None for any invalid/expired token."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.debug("JWT verification failed: %s", e)
        return None


# ── Dependency ────────────────────────────────────────────────────────────

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    """
    Resolve the caller from the bearer token.

    The user row is re-read on every request so a deleted account stops
    working immediately, and so the email in the session always matches
    the stored one (the invitation inbox is keyed by it).
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationRequiredError()

    payload = decode_access_token(credentials.credentials)
    if payload is None or not payload.get("sub"):
        raise AuthenticationRequiredError(message="Invalid or expired session token")

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise AuthenticationRequiredError(message="Invalid or expired session token")

    user = await db.get(User, user_id)
    if user is None:
        raise AuthenticationRequiredError(message="Invalid or expired session token")

    return CurrentUser(id=user.id, email=user.email, name=user.name)
