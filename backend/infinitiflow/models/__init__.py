# Re-export all models for convenient imports
from infinitiflow.models.plans import PlanType, PLAN_FEATURES, PLAN_HIERARCHY, USER_USAGE_LIMITS
from infinitiflow.models.user import User, UserRole, PaymentMethod, CompanySize
from infinitiflow.models.subscription import (
    Subscription,
    SubscriptionStatus,
    BillingRecord,
    BillingStatus,
    BillingInterval,
)
from infinitiflow.models.content import Content, ContentType, ContentCategory, ContentStatus

__all__ = [
    # Plans
    "PlanType",
    "PLAN_FEATURES",
    "PLAN_HIERARCHY",
    "USER_USAGE_LIMITS",
    # User
    "User",
    "UserRole",
    "PaymentMethod",
    "CompanySize",
    # Subscription
    "Subscription",
    "SubscriptionStatus",
    "BillingRecord",
    "BillingStatus",
    "BillingInterval",
    # Content
    "Content",
    "ContentType",
    "ContentCategory",
    "ContentStatus",
]
