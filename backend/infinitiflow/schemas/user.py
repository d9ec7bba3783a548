from pydantic import EmailStr, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime

from infinitiflow.models.plans import PlanType
from infinitiflow.models.user import User, UserRole, CompanySize, PaymentMethod
from infinitiflow.schemas.common import CamelModel, RequestModel


class CompanyInfo(RequestModel):
    name: Optional[str] = Field(None, max_length=100)
    position: Optional[str] = Field(None, max_length=100)
    size: Optional[CompanySize] = None
    industry: Optional[str] = Field(None, max_length=100)


class EmailNotifications(RequestModel):
    marketing: bool = True
    updates: bool = True
    security: bool = True


class Preferences(RequestModel):
    language: str = "en"
    timezone: str = "UTC"
    email_notifications: EmailNotifications = Field(default_factory=EmailNotifications)
    theme: str = Field("light", pattern=r"^(light|dark|auto)$")


class SubscriptionSummary(CamelModel):
    plan: PlanType
    is_active: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    payment_method: PaymentMethod


class UsageStats(CamelModel):
    content_generated: int = 0
    words_generated: int = 0
    templates_used: int = 0
    api_calls: int = 0
    last_reset_date: Optional[datetime] = None


class UserResponse(CamelModel):
    """Public view of a user; password and the soft-delete flag are never included"""
    id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    role: UserRole
    avatar: Optional[str] = None
    company: Optional[CompanyInfo] = None
    is_email_verified: bool
    subscription: SubscriptionSummary
    subscription_status: str
    usage_stats: UsageStats
    preferences: Dict[str, Any] = {}
    login_attempts: int = 0
    is_locked: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        company = None
        if any([user.company_name, user.company_position, user.company_size, user.company_industry]):
            company = CompanyInfo(
                name=user.company_name,
                position=user.company_position,
                size=user.company_size,
                industry=user.company_industry,
            )
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            email=user.email,
            role=user.role,
            avatar=user.avatar,
            company=company,
            is_email_verified=bool(user.is_email_verified),
            subscription=SubscriptionSummary(
                plan=user.plan,
                is_active=bool(user.subscription_is_active),
                start_date=user.subscription_start_date,
                end_date=user.subscription_end_date,
                stripe_customer_id=user.stripe_customer_id,
                stripe_subscription_id=user.stripe_subscription_id,
                payment_method=user.payment_method or PaymentMethod.FREE,
            ),
            subscription_status=user.subscription_status,
            usage_stats=UsageStats(**{
                "content_generated": user.usage_content_generated or 0,
                "words_generated": user.usage_words_generated or 0,
                "templates_used": user.usage_templates_used or 0,
                "api_calls": user.usage_api_calls or 0,
                "last_reset_date": user.usage_last_reset_date,
            }),
            preferences=user.preferences or {},
            login_attempts=user.login_attempts or 0,
            is_locked=user.is_locked,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class ProfileUpdate(RequestModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    company: Optional[CompanyInfo] = None

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class PreferencesUpdate(RequestModel):
    preferences: Preferences


class UsageLimits(CamelModel):
    content: bool
    words: bool
    api: bool
