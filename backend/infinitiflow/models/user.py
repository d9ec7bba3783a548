from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, Integer, Text, JSON
from sqlalchemy.orm import validates
from datetime import datetime, timedelta
from typing import Dict, Optional
import enum

from infinitiflow.core.config import settings
from infinitiflow.core.database import Base, generate_uuid
from infinitiflow.core.security import (
    PASSWORD_CHANGE_GRACE,
    generate_one_time_token,
    get_password_hash,
    to_timestamp,
    verify_password,
)
from infinitiflow.models.plans import USER_USAGE_LIMITS, PlanType, limit_reached, plan_value


class UserRole(str, enum.Enum):
    """User roles"""
    USER = "user"
    ADMIN = "admin"
    MODERATOR = "moderator"


class PaymentMethod(str, enum.Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"
    FREE = "free"


class CompanySize(str, enum.Enum):
    XS = "1-10"
    S = "11-50"
    M = "51-200"
    L = "201-1000"
    XL = "1000+"


def default_preferences() -> Dict:
    return {
        "language": "en",
        "timezone": "UTC",
        "emailNotifications": {
            "marketing": True,
            "updates": True,
            "security": True,
        },
        "theme": "light",
    }


# Public usage key -> User column
USER_USAGE_COLUMNS: Dict[str, str] = {
    "contentGenerated": "usage_content_generated",
    "wordsGenerated": "usage_words_generated",
    "templatesUsed": "usage_templates_used",
    "apiCalls": "usage_api_calls",
}


class User(Base):
    """User model

    Holds credentials, lockout state, one-time token hashes, a summary of the
    user's subscription and the monthly usage counters.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=False)  # bcrypt hash, never serialized

    role = Column(SQLEnum(UserRole), default=UserRole.USER, nullable=False)
    avatar = Column(Text, nullable=True)

    # Company profile
    company_name = Column(String(100), nullable=True)
    company_position = Column(String(100), nullable=True)
    company_size = Column(SQLEnum(CompanySize), nullable=True)
    company_industry = Column(String(100), nullable=True)

    # E-mail verification (hash of the token sent by mail)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verification_token = Column(String(64), index=True, nullable=True)
    email_verification_expires = Column(DateTime, nullable=True)

    # Password reset (hash of the token sent by mail)
    password_reset_token = Column(String(64), index=True, nullable=True)
    password_reset_expires = Column(DateTime, nullable=True)
    password_changed_at = Column(DateTime, nullable=True)

    # Lockout
    login_attempts = Column(Integer, default=0, nullable=False)
    lock_until = Column(DateTime, nullable=True)
    last_login_at = Column(DateTime, nullable=True)

    # Soft delete flag, never serialized
    active = Column(Boolean, default=True, nullable=False)

    # Subscription summary (authoritative record lives in subscriptions)
    subscription_plan = Column(SQLEnum(PlanType), default=PlanType.FREE, nullable=False)
    subscription_is_active = Column(Boolean, default=True, nullable=False)
    subscription_start_date = Column(DateTime, default=datetime.utcnow)
    subscription_end_date = Column(DateTime, nullable=True)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    payment_method = Column(SQLEnum(PaymentMethod), default=PaymentMethod.FREE, nullable=False)

    # Monthly usage
    usage_content_generated = Column(Integer, default=0, nullable=False)
    usage_words_generated = Column(Integer, default=0, nullable=False)
    usage_templates_used = Column(Integer, default=0, nullable=False)
    usage_api_calls = Column(Integer, default=0, nullable=False)
    usage_last_reset_date = Column(DateTime, default=datetime.utcnow)

    preferences = Column(JSON, default=default_preferences)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User {self.email}>"

    @validates("email")
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    # ------------------------------------------------------------------
    # Computed fields
    # ------------------------------------------------------------------

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_locked(self) -> bool:
        return bool(self.lock_until and self.lock_until > datetime.utcnow())

    @property
    def subscription_status(self) -> str:
        if not self.subscription_is_active:
            return "inactive"
        if self.subscription_end_date and self.subscription_end_date < datetime.utcnow():
            return "expired"
        return "active"

    @property
    def role_name(self) -> str:
        role = self.role or UserRole.USER
        return role.value if isinstance(role, UserRole) else str(role)

    @property
    def plan(self) -> str:
        return plan_value(self.subscription_plan or PlanType.FREE)

    # ------------------------------------------------------------------
    # Password lifecycle
    # ------------------------------------------------------------------

    def set_password(self, plain_password: str, is_new: bool = False) -> None:
        """Hash and store a password.

        For an existing user passwordChangedAt is stamped one grace period in
        the past, so tokens issued right after the change stay valid while
        every earlier token is rejected.
        """
        self.password = get_password_hash(plain_password)
        if not is_new:
            self.password_changed_at = datetime.utcnow() - PASSWORD_CHANGE_GRACE

    def correct_password(self, candidate: str) -> bool:
        return verify_password(candidate, self.password)

    def changed_password_after(self, jwt_issued_at: int) -> bool:
        """True if the password changed after a token with this iat was issued"""
        if not self.password_changed_at:
            return False
        return jwt_issued_at < to_timestamp(self.password_changed_at)

    # ------------------------------------------------------------------
    # One-time tokens
    # ------------------------------------------------------------------

    def create_password_reset_token(self) -> str:
        """Store hash + 10 minute expiry, return the plain token for the e-mail"""
        plain, hashed, expires = generate_one_time_token(
            timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
        )
        self.password_reset_token = hashed
        self.password_reset_expires = expires
        return plain

    def create_email_verification_token(self) -> str:
        """Store hash + 24 hour expiry, return the plain token for the e-mail"""
        plain, hashed, expires = generate_one_time_token(
            timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS)
        )
        self.email_verification_token = hashed
        self.email_verification_expires = expires
        return plain

    def clear_password_reset_token(self) -> None:
        self.password_reset_token = None
        self.password_reset_expires = None

    def clear_email_verification_token(self) -> None:
        self.email_verification_token = None
        self.email_verification_expires = None

    # ------------------------------------------------------------------
    # Lockout
    # ------------------------------------------------------------------

    def register_failed_login(self, now: Optional[datetime] = None) -> None:
        """Count a failed login; lock the account when the threshold is reached.

        An expired lock restarts the count at 1.
        """
        now = now or datetime.utcnow()
        if self.lock_until and self.lock_until < now:
            self.login_attempts = 1
            self.lock_until = None
            return

        attempts = (self.login_attempts or 0) + 1
        already_locked = bool(self.lock_until and self.lock_until > now)
        self.login_attempts = attempts
        if attempts >= settings.MAX_LOGIN_ATTEMPTS and not already_locked:
            self.lock_until = now + timedelta(minutes=settings.LOCK_TIME_MINUTES)

    def register_successful_login(self) -> None:
        self.login_attempts = 0
        self.lock_until = None
        self.last_login_at = datetime.utcnow()

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def reset_usage_if_due(self, now: Optional[datetime] = None) -> bool:
        """Zero the monthly counters when the calendar month/year has rolled over"""
        now = now or datetime.utcnow()
        last = self.usage_last_reset_date
        if last and last.month == now.month and last.year == now.year:
            return False
        self.usage_content_generated = 0
        self.usage_words_generated = 0
        self.usage_templates_used = 0
        self.usage_api_calls = 0
        self.usage_last_reset_date = now
        return True

    def has_reached_limit(self, limit_type: str) -> bool:
        """Compare a monthly counter with the ceiling for the user's plan"""
        self.reset_usage_if_due()
        limits = USER_USAGE_LIMITS.get(self.plan, USER_USAGE_LIMITS[PlanType.FREE.value])
        if limit_type not in limits:
            raise ValueError(f"Unknown limit type: {limit_type}")
        current = getattr(self, USER_USAGE_COLUMNS[limit_type]) or 0
        return limit_reached(current, limits[limit_type])

    @property
    def usage(self) -> Dict:
        return {
            "contentGenerated": self.usage_content_generated or 0,
            "wordsGenerated": self.usage_words_generated or 0,
            "templatesUsed": self.usage_templates_used or 0,
            "apiCalls": self.usage_api_calls or 0,
            "lastResetDate": self.usage_last_reset_date,
        }
