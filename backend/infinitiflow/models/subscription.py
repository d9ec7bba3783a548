from sqlalchemy import (
    Column, String, DateTime, Enum as SQLEnum, Integer, Boolean, ForeignKey, JSON, Text, Numeric, event,
)
from sqlalchemy.orm import validates
from datetime import datetime
from typing import Any, Dict, Optional
import math
import enum

from infinitiflow.core.database import Base, generate_uuid
from infinitiflow.models.plans import PlanType, get_plan_features, limit_reached, plan_value


class SubscriptionStatus(str, enum.Enum):
    """Subscription status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"


class BillingStatus(str, enum.Enum):
    """Billing record status"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class BillingInterval(str, enum.Enum):
    MONTH = "month"
    YEAR = "year"


# Public usage key -> Subscription column
SUBSCRIPTION_USAGE_COLUMNS: Dict[str, str] = {
    "contentGenerated": "usage_content_generated",
    "wordsGenerated": "usage_words_generated",
    "apiCalls": "usage_api_calls",
    "templatesUsed": "usage_templates_used",
    "collaboratorsActive": "usage_collaborators_active",
}

# limit type -> (usage column, feature key holding the numeric ceiling)
SUBSCRIPTION_LIMITS: Dict[str, tuple] = {
    "contentGenerated": ("usage_content_generated", "contentLimit"),
    "wordsGenerated": ("usage_words_generated", "wordsLimit"),
    "collaboratorsActive": ("usage_collaborators_active", "collaborators"),
}


class Subscription(Base):
    """User subscription (one per user)"""
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True, nullable=False)

    plan = Column(SQLEnum(PlanType), default=PlanType.FREE, nullable=False)
    status = Column(SQLEnum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, index=True, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Stripe identifiers (stored only)
    stripe_customer_id = Column(String(255), index=True, nullable=True)
    stripe_subscription_id = Column(String(255), index=True, nullable=True)
    stripe_price_id = Column(String(255), nullable=True)
    stripe_product_id = Column(String(255), nullable=True)

    # Period
    start_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_date = Column(DateTime, index=True, nullable=True)
    trial_start = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, index=True, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)

    # Price
    price_amount = Column(Numeric(10, 2), default=0)
    price_currency = Column(String(3), default="USD")
    price_interval = Column(SQLEnum(BillingInterval), default=BillingInterval.MONTH)

    # Feature set copied from the plan table whenever plan is assigned
    features = Column(JSON, nullable=False, default=dict)

    # Current period usage
    usage_content_generated = Column(Integer, default=0, nullable=False)
    usage_words_generated = Column(Integer, default=0, nullable=False)
    usage_api_calls = Column(Integer, default=0, nullable=False)
    usage_templates_used = Column(Integer, default=0, nullable=False)
    usage_collaborators_active = Column(Integer, default=0, nullable=False)

    # {source, coupon, discountPercent, referralCode, upgradeFrom, notes}
    extra_metadata = Column(JSON, default=dict)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Subscription {self.user_id} - {self.plan}>"

    @validates("plan")
    def apply_plan(self, key, value):
        """Every plan assignment recomputes the feature set"""
        plan = PlanType(plan_value(value))
        self.features = get_plan_features(plan)
        return plan

    # ------------------------------------------------------------------
    # Computed fields
    # ------------------------------------------------------------------

    @property
    def is_expired(self) -> bool:
        return bool(self.end_date and self.end_date < datetime.utcnow())

    @property
    def days_until_expiry(self) -> Optional[int]:
        if not self.end_date:
            return None
        diff = self.end_date - datetime.utcnow()
        return math.ceil(diff.total_seconds() / 86400)

    @property
    def is_trialing(self) -> bool:
        now = datetime.utcnow()
        return bool(self.trial_start and self.trial_end and self.trial_start <= now <= self.trial_end)

    @property
    def current_usage(self) -> Dict[str, int]:
        return {key: getattr(self, column) or 0 for key, column in SUBSCRIPTION_USAGE_COLUMNS.items()}

    @property
    def usage_percentages(self) -> Dict[str, float]:
        features = self.features or {}

        def pct(current: int, limit: int) -> float:
            if not limit or limit == -1:
                return 0
            return (current or 0) / limit * 100

        return {
            "content": pct(self.usage_content_generated, features.get("contentLimit", 0)),
            "words": pct(self.usage_words_generated, features.get("wordsLimit", 0)),
            "collaborators": pct(self.usage_collaborators_active, features.get("collaborators", 0)),
        }

    # ------------------------------------------------------------------
    # Behaviour
    # ------------------------------------------------------------------

    def can_use_feature(self, feature_name: str) -> bool:
        value = (self.features or {}).get(feature_name)
        return value is True or (not isinstance(value, bool) and value == -1)

    def has_reached_limit(self, limit_type: str) -> bool:
        if limit_type == "apiCalls":
            return not self.can_use_feature("apiAccess")
        if limit_type not in SUBSCRIPTION_LIMITS:
            raise ValueError(f"Unknown limit type: {limit_type}")
        column, feature_key = SUBSCRIPTION_LIMITS[limit_type]
        limit = (self.features or {}).get(feature_key, 0)
        return limit_reached(getattr(self, column) or 0, limit)

    def reset_usage(self) -> None:
        for column in SUBSCRIPTION_USAGE_COLUMNS.values():
            setattr(self, column, 0)

    def cancel(self, reason: Optional[str] = None) -> None:
        self.status = SubscriptionStatus.CANCELLED
        self.is_active = False
        self.cancelled_at = datetime.utcnow()
        self.cancel_reason = reason

    def reactivate(self) -> None:
        self.status = SubscriptionStatus.ACTIVE
        self.is_active = True
        self.cancelled_at = None
        self.cancel_reason = None

    def sync_status(self, now: Optional[datetime] = None) -> None:
        """An active subscription whose end date has passed becomes inactive"""
        now = now or datetime.utcnow()
        if self.end_date and self.end_date < now and self.status == SubscriptionStatus.ACTIVE:
            self.status = SubscriptionStatus.INACTIVE
            self.is_active = False

    def add_billing_record(self, **data: Any) -> "BillingRecord":
        """Build a billing-history row for this subscription (caller adds it to the session)"""
        return BillingRecord(subscription_id=self.id, user_id=self.user_id, **data)


@event.listens_for(Subscription, "before_insert")
@event.listens_for(Subscription, "before_update")
def _sync_subscription_status(mapper, connection, target: Subscription) -> None:
    if not target.features:
        target.features = get_plan_features(target.plan or PlanType.FREE)
    target.sync_status()


class BillingRecord(Base):
    """Billing history entry"""
    __tablename__ = "billing_records"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    subscription_id = Column(String(36), ForeignKey("subscriptions.id", ondelete="CASCADE"), index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)

    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    status = Column(SQLEnum(BillingStatus), default=BillingStatus.PENDING, nullable=False)

    invoice_id = Column(String(255), nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)
    payment_method = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<BillingRecord {self.amount} {self.currency} - {self.status}>"
