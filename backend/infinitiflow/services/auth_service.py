"""
Auth Service - credential store operations

Handles:
- Registration (user + free subscription in one unit of work)
- Credential verification with account lockout
- Password change and one-time token consumption
- Refresh-token exchange

Methods flush but never commit, except where a failed login must persist
its attempt counter before the error propagates.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from datetime import datetime
from typing import Optional, Tuple

from infinitiflow.core.database import generate_uuid
from infinitiflow.core.exceptions import (
    AccountDeactivatedError,
    AccountLockedError,
    ConflictError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
)
from infinitiflow.core.logging_config import logger
from infinitiflow.core.security import decode_refresh_token, hash_token
from infinitiflow.models.plans import PlanType
from infinitiflow.models.subscription import Subscription
from infinitiflow.models.user import User
from infinitiflow.schemas.auth import UserRegister


class AuthService:
    """Service for user credentials and account lifecycle"""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get_by_id(self, db: AsyncSession, user_id: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.id == str(user_id)))
        return result.scalar_one_or_none()

    # ==================== REGISTRATION ====================

    async def register(self, db: AsyncSession, data: UserRegister) -> Tuple[User, str]:
        """
        Create a user with a free subscription.

        Returns the user and the plain e-mail verification token.
        Raises ConflictError when the e-mail is taken.
        """
        if await self.get_by_email(db, data.email):
            raise ConflictError("User with this email already exists", field="email")

        user = User(
            id=generate_uuid(),
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
        )
        if data.company:
            user.company_name = data.company.name
            user.company_position = data.company.position
            user.company_size = data.company.size
            user.company_industry = data.company.industry
        user.set_password(data.password, is_new=True)
        verification_token = user.create_email_verification_token()

        db.add(user)
        db.add(Subscription(user_id=user.id, plan=PlanType.FREE))
        try:
            await db.flush()
        except IntegrityError:
            # A concurrent registration took the e-mail between check and insert
            await db.rollback()
            logger.warning(f"[Auth] Duplicate registration race for {data.email}")
            raise ConflictError("User with this email already exists", field="email")

        return user, verification_token

    # ==================== LOGIN ====================

    async def verify_credentials(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Check e-mail + password.

        Order: unknown e-mail (401), active lock (423, whatever the password),
        wrong password (counted, 401), deactivated (401), success.
        """
        user = await self.get_by_email(db, email)
        if not user:
            raise InvalidCredentialsError()

        if user.is_locked:
            raise AccountLockedError()

        if not user.correct_password(password):
            user.register_failed_login()
            # The counter must survive the rollback triggered by the error
            await db.commit()
            logger.info(f"[Auth] Failed login {user.login_attempts} for {user.email}")
            raise InvalidCredentialsError()

        if not user.active:
            raise AccountDeactivatedError()

        user.register_successful_login()
        await db.flush()
        return user

    # ==================== PASSWORDS ====================

    async def change_password(self, db: AsyncSession, user: User, current_password: str,
                              new_password: str) -> User:
        if not user.correct_password(current_password):
            raise IncorrectPasswordError()

        user.set_password(new_password)
        await db.flush()
        return user

    async def consume_reset_token(self, db: AsyncSession, plain_token: str, new_password: str) -> User:
        """Single use: clears the token and sets the new password"""
        result = await db.execute(
            select(User).where(
                User.password_reset_token == hash_token(plain_token),
                User.password_reset_expires > datetime.utcnow(),
            )
        )
        user = result.scalar_one_or_none()
        if not user:
            raise InvalidOrExpiredTokenError()

        user.set_password(new_password)
        user.clear_password_reset_token()
        await db.flush()
        return user

    # ==================== E-MAIL VERIFICATION ====================

    async def consume_verification_token(self, db: AsyncSession, plain_token: str) -> User:
        result = await db.execute(
            select(User).where(
                User.email_verification_token == hash_token(plain_token),
                User.email_verification_expires > datetime.utcnow(),
            )
        )
        user = result.scalar_one_or_none()
        if not user:
            raise InvalidOrExpiredTokenError()

        user.is_email_verified = True
        user.clear_email_verification_token()
        await db.flush()
        return user

    # ==================== REFRESH ====================

    async def user_for_refresh_token(self, db: AsyncSession, refresh_token: str) -> User:
        """Resolve the owner of a refresh token; every failure is a 401"""
        payload = decode_refresh_token(refresh_token)

        user = await self.get_by_id(db, payload["id"])
        if not user or not user.active:
            raise InvalidTokenError("Invalid refresh token")

        if user.changed_password_after(payload["iat"]):
            raise InvalidTokenError("User recently changed password! Please log in again.")

        return user


# Singleton instance
auth_service = AuthService()
