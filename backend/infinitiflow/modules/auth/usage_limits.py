"""
Usage Limits Module
===================
Tracks user usage against plan limits.

Counters live on two rows: the User (monthly, reset lazily when the
calendar month changes) and the Subscription (current billing period).
Increments are issued as ``UPDATE ... SET col = col + :delta`` so
concurrent requests never lose an increment. Callers commit.
"""

from dataclasses import dataclass
from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from infinitiflow.core.exceptions import PaymentRequiredError
from infinitiflow.core.logging_config import logger
from infinitiflow.models.plans import USER_USAGE_LIMITS, UNLIMITED, PlanType
from infinitiflow.models.user import User, USER_USAGE_COLUMNS
from infinitiflow.models.subscription import Subscription, SUBSCRIPTION_USAGE_COLUMNS


CONTENT_LIMIT_MESSAGE = "Content limit reached for your plan"


@dataclass
class UsageLimitCheck:
    """Result of a usage limit check"""
    allowed: bool
    limit_type: str
    current_usage: int = 0
    limit: Optional[int] = None  # None = unlimited
    reason: Optional[str] = None


async def get_subscription(db: AsyncSession, user_id: str) -> Optional[Subscription]:
    """Load the (single) subscription row for a user"""
    result = await db.execute(select(Subscription).where(Subscription.user_id == str(user_id)))
    return result.scalar_one_or_none()


def check_user_limit(user: User, limit_type: str) -> UsageLimitCheck:
    """
    Check a monthly counter on the user against the plan active right now.

    Resets stale counters first, so the first check of a new month sees zero.
    Raises ValueError for an unknown limit type.
    """
    user.reset_usage_if_due()
    reached = user.has_reached_limit(limit_type)

    limits = USER_USAGE_LIMITS.get(user.plan, USER_USAGE_LIMITS[PlanType.FREE.value])
    limit = limits[limit_type]
    return UsageLimitCheck(
        allowed=not reached,
        limit_type=limit_type,
        current_usage=getattr(user, USER_USAGE_COLUMNS[limit_type]) or 0,
        limit=None if limit == UNLIMITED else limit,
        reason=f"{limit_type} limit reached for the {user.plan} plan" if reached else None,
    )


def require_user_limit(user: User, limit_type: str, message: str = CONTENT_LIMIT_MESSAGE) -> UsageLimitCheck:
    """Raise 402 when the user's counter has met its ceiling"""
    check = check_user_limit(user, limit_type)
    if not check.allowed:
        raise PaymentRequiredError(
            message,
            details={"limit_type": limit_type, "current_usage": check.current_usage, "limit": check.limit},
        )
    return check


def get_usage_limits(user: User) -> Dict[str, bool]:
    """Limit flags shown on the usage page"""
    user.reset_usage_if_due()
    return {
        "content": user.has_reached_limit("contentGenerated"),
        "words": user.has_reached_limit("wordsGenerated"),
        "api": user.has_reached_limit("apiCalls"),
    }


async def update_usage(db: AsyncSession, user: User, usage: Dict[str, int]) -> None:
    """
    Atomically add positive deltas to the user's monthly counters.

    Unknown keys are ignored.
    """
    values = {}
    for key, delta in usage.items():
        column_name = USER_USAGE_COLUMNS.get(key)
        if column_name is None or not delta or delta < 0:
            continue
        column = getattr(User, column_name)
        values[column_name] = column + int(delta)

    if not values:
        return

    # Persist a pending lazy reset before incrementing on top of it
    user.reset_usage_if_due()
    await db.flush()
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(**values)
    )
    await db.refresh(user)
    for key, delta in usage.items():
        if key in USER_USAGE_COLUMNS:
            logger.log_usage_event(user.id, key, delta, scope="user")


async def record_usage(db: AsyncSession, user_id: str, usage_type: str, amount: int = 1) -> bool:
    """
    Atomically increment one counter on the user's subscription.

    Returns False when the user has no subscription row.
    Raises ValueError for an unknown usage type.
    """
    column_name = SUBSCRIPTION_USAGE_COLUMNS.get(usage_type)
    if column_name is None:
        raise ValueError(f"Unknown usage type: {usage_type}")
    if amount <= 0:
        return True

    await db.flush()
    column = getattr(Subscription, column_name)
    result = await db.execute(
        update(Subscription)
        .where(Subscription.user_id == str(user_id))
        .values(**{column_name: column + int(amount)})
    )
    logger.log_usage_event(str(user_id), usage_type, amount, scope="subscription")
    return result.rowcount > 0


async def record_content_usage(db: AsyncSession, user: User, word_count: int) -> None:
    """One piece of content plus its words, on both the user and the subscription"""
    await update_usage(db, user, {"contentGenerated": 1, "wordsGenerated": word_count})
    await record_usage(db, user.id, "contentGenerated", 1)
    await record_usage(db, user.id, "wordsGenerated", word_count)
