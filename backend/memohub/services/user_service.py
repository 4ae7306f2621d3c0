"""
MemoHub Backend — User Service (Registration, Login, Profile)
==============================================================

Email policy:
    Every email is stripped and lower-cased before it is stored or looked
    up (`normalize_email`). Invitations use the same function, so an
    invitation to " Alice@Example.com" lands in alice@example.com's inbox.
"""

import logging
import re
import uuid
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from memohub.config import settings
from memohub.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from memohub.models.user import User
from memohub.schemas.user import TokenResponse, UserResponse
from memohub.security import (
    BCRYPT_MAX_PASSWORD_BYTES,
    create_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_email(email: str, field: str = "email") -> str:
    """Normalize and shape-check an email; raises ValidationError."""
    normalized = normalize_email(email or "")
    if not normalized:
        raise ValidationError(message="Email is required", field=field)
    if not EMAIL_PATTERN.match(normalized):
        raise ValidationError(message="Email address is not valid", field=field)
    return normalized


class UserService:
    """Account lifecycle. Stateless; the session is passed per call."""

    async def get_by_email(self, db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def register(self, db: AsyncSession, name: str, email: str, password: str) -> UserResponse:
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Name is required", field="name")
        email = validate_email(email)
        if not password:
            raise ValidationError(message="Password is required", field="password")
        if len(password) < settings.password_min_length:
            raise ValidationError(
                message=f"Password must be at least {settings.password_min_length} characters",
                field="password",
            )
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValidationError(
                message=f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes",
                field="password",
            )

        if await self.get_by_email(db, email) is not None:
            raise ConflictError(message="An account with this email already exists",
                                context={"field": "email"})

        user = User(name=name, email=email, password_hash=hash_password(password))
        try:
            async with db.begin_nested():
                db.add(user)
                await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            raise ConflictError(message="An account with this email already exists",
                                context={"field": "email"})

        logger.info("User registered: %s", user.id)
        return UserResponse.model_validate(user)

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> TokenResponse:
        """Verify credentials and issue a session token."""
        user = await self.get_by_email(db, email or "")
        if user is None or not verify_password(password or "", user.password_hash):
            logger.info("Failed login for %s", normalize_email(email or ""))
            raise AuthenticationRequiredError(message="Invalid email or password")

        lifetime = timedelta(minutes=settings.access_token_expire_minutes)
        token = create_access_token(user.id, user.email, expires_delta=lifetime)
        return TokenResponse(
            access_token=token,
            expires_in=int(lifetime.total_seconds()),
            user=UserResponse.model_validate(user),
        )

    async def get_profile(self, db: AsyncSession, user_id: uuid.UUID) -> UserResponse:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))
        return UserResponse.model_validate(user)

    async def update_profile(
        self,
        db: AsyncSession,
        user_id: uuid.UUID,
        name: str,
        avatar: str | None,
    ) -> UserResponse:
        name = (name or "").strip()
        if not name:
            raise ValidationError(message="Name is required", field="name")

        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(resource="user", resource_id=str(user_id))

        user.name = name
        user.avatar = (avatar or "").strip() or None
        await db.flush()
        logger.info("Profile updated: %s", user.id)
        return UserResponse.model_validate(user)


user_service = UserService()
