from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional

from infinitiflow.core.database import get_db
from infinitiflow.core.exceptions import ResourceNotFoundError, ValidationError
from infinitiflow.core.logging_config import logger
from infinitiflow.models.subscription import BillingRecord, Subscription, SubscriptionStatus
from infinitiflow.models.user import User
from infinitiflow.modules.auth.dependencies import get_current_admin, get_current_user, user_rate_limit
from infinitiflow.modules.auth.usage_limits import get_subscription
from infinitiflow.schemas.subscription import (
    BillingHistoryResponse,
    BillingRecordResponse,
    CancelSubscriptionRequest,
    ChangePlanRequest,
    SubscriptionResponse,
)
from infinitiflow.services.auth_service import auth_service


router = APIRouter(dependencies=[Depends(user_rate_limit())])


async def _require_subscription(db: AsyncSession, user_id: str) -> Subscription:
    subscription = await get_subscription(db, user_id)
    if not subscription:
        raise ResourceNotFoundError("No subscription found", resource_type="subscription")
    return subscription


def _subscription_payload(subscription: Subscription, message: str = None) -> dict:
    payload = {
        "status": "success",
        "data": {"subscription": SubscriptionResponse.from_subscription(subscription).to_json()},
    }
    if message:
        payload["message"] = message
    return payload


@router.get("")
async def get_my_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _require_subscription(db, current_user.id)
    return _subscription_payload(subscription)


@router.get("/billing-history")
async def get_billing_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(BillingRecord)
        .where(BillingRecord.user_id == current_user.id)
        .order_by(BillingRecord.created_at.desc())
    )
    records = [BillingRecordResponse.from_record(r) for r in result.scalars().all()]
    return BillingHistoryResponse(results=len(records), data={"billingHistory": records}).to_json()


@router.patch("/cancel")
async def cancel_subscription(
    body: Optional[CancelSubscriptionRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _require_subscription(db, current_user.id)
    if subscription.status == SubscriptionStatus.CANCELLED:
        raise ValidationError("Subscription is already cancelled")

    subscription.cancel(body.reason if body else None)
    current_user.subscription_is_active = False
    await db.commit()
    await db.refresh(subscription)

    logger.info(f"[Subscriptions] {current_user.id} cancelled {subscription.plan.value}")
    return _subscription_payload(subscription, "Subscription cancelled successfully")


@router.patch("/reactivate")
async def reactivate_subscription(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    subscription = await _require_subscription(db, current_user.id)
    if subscription.is_active and subscription.status == SubscriptionStatus.ACTIVE:
        raise ValidationError("Subscription is already active")

    subscription.reactivate()
    current_user.subscription_is_active = True
    await db.commit()
    await db.refresh(subscription)

    logger.info(f"[Subscriptions] {current_user.id} reactivated {subscription.plan.value}")
    return _subscription_payload(subscription, "Subscription reactivated successfully")


@router.patch("/{user_id}/plan")
async def change_plan(
    user_id: str,
    body: ChangePlanRequest,
    admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Admin: move a user to another plan (features follow the plan)"""
    user = await auth_service.get_by_id(db, user_id)
    if not user:
        raise ResourceNotFoundError("User not found", resource_type="user")

    subscription = await get_subscription(db, user.id)
    if not subscription:
        subscription = Subscription(user_id=user.id)
        db.add(subscription)

    previous = user.plan
    subscription.plan = body.plan
    user.subscription_plan = body.plan
    await db.commit()
    await db.refresh(subscription)

    logger.info(f"[Subscriptions] Admin {admin.id} moved {user.id} from {previous} to {body.plan.value}")
    return _subscription_payload(subscription, "Plan updated successfully")
