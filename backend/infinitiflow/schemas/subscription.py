from pydantic import Field
from typing import Optional, Dict, Any, List
from datetime import datetime

from infinitiflow.models.plans import PlanType
from infinitiflow.models.subscription import Subscription, BillingRecord, SubscriptionStatus, BillingStatus
from infinitiflow.schemas.common import CamelModel, RequestModel


class PriceInfo(CamelModel):
    amount: float = 0
    currency: str = "USD"
    interval: Optional[str] = "month"


class SubscriptionResponse(CamelModel):
    id: str
    user_id: str
    plan: PlanType
    status: SubscriptionStatus
    is_active: bool
    features: Dict[str, Any]
    current_usage: Dict[str, int]
    usage_percentages: Dict[str, float]
    price: PriceInfo
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    is_expired: bool = False
    is_trialing: bool = False
    days_until_expiry: Optional[int] = None
    metadata: Dict[str, Any] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_subscription(cls, sub: Subscription) -> "SubscriptionResponse":
        interval = sub.price_interval
        return cls(
            id=sub.id,
            user_id=sub.user_id,
            plan=sub.plan,
            status=sub.status,
            is_active=bool(sub.is_active),
            features=sub.features or {},
            current_usage=sub.current_usage,
            usage_percentages=sub.usage_percentages,
            price=PriceInfo(
                amount=float(sub.price_amount or 0),
                currency=sub.price_currency or "USD",
                interval=interval.value if interval is not None else None,
            ),
            start_date=sub.start_date,
            end_date=sub.end_date,
            trial_start=sub.trial_start,
            trial_end=sub.trial_end,
            next_billing_date=sub.next_billing_date,
            cancelled_at=sub.cancelled_at,
            cancel_reason=sub.cancel_reason,
            is_expired=sub.is_expired,
            is_trialing=sub.is_trialing,
            days_until_expiry=sub.days_until_expiry,
            metadata=sub.extra_metadata or {},
            created_at=sub.created_at,
            updated_at=sub.updated_at,
        )


class BillingRecordResponse(CamelModel):
    id: str
    amount: float
    currency: str
    status: BillingStatus
    invoice_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    description: Optional[str] = None
    paid_at: Optional[datetime] = None
    next_billing_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: BillingRecord) -> "BillingRecordResponse":
        return cls(
            id=record.id,
            amount=float(record.amount or 0),
            currency=record.currency,
            status=record.status,
            invoice_id=record.invoice_id,
            stripe_payment_intent_id=record.stripe_payment_intent_id,
            payment_method=record.payment_method,
            description=record.description,
            paid_at=record.paid_at,
            next_billing_date=record.next_billing_date,
            created_at=record.created_at,
        )


class BillingHistoryResponse(CamelModel):
    status: str = "success"
    results: int
    data: Dict[str, List[BillingRecordResponse]]


class CancelSubscriptionRequest(RequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class ChangePlanRequest(RequestModel):
    plan: PlanType
