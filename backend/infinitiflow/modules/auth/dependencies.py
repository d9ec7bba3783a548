from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Any, Awaitable, Callable, Optional
import itertools

from infinitiflow.core.config import settings
from infinitiflow.core.database import get_db
from infinitiflow.core.exceptions import (
    AccountDeactivatedError,
    AuthorizationError,
    InfinitiFlowError,
    InvalidTokenError,
    NotAuthenticatedError,
    PaymentRequiredError,
    ResourceNotFoundError,
    TooManyRequestsError,
)
from infinitiflow.core.logging_config import logger, set_user_id
from infinitiflow.core.security import decode_access_token
from infinitiflow.models.plans import PLAN_HIERARCHY, PlanType, get_plan_rank, plan_value
from infinitiflow.models.user import User, UserRole
from infinitiflow.modules.auth.rate_limit import UserRateLimiter

# auto_error=False so a missing header reaches our own 401 message
security = HTTPBearer(auto_error=False)


async def _load_user_from_token(token: str, db: AsyncSession) -> User:
    """Steps shared by protect and optional auth: verify, load, active, password age"""
    payload = decode_access_token(token)

    result = await db.execute(select(User).where(User.id == str(payload["id"])))
    user = result.scalar_one_or_none()

    if not user:
        raise InvalidTokenError("The user belonging to this token does no longer exist.")

    if not user.active:
        raise AccountDeactivatedError()

    if user.changed_password_after(payload["iat"]):
        raise InvalidTokenError("User recently changed password! Please log in again.")

    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user (protect)"""
    if not credentials or not credentials.credentials:
        raise NotAuthenticatedError()

    user = await _load_user_from_token(credentials.credentials, db)
    set_user_id(user.id)
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> Optional[User]:
    """Attach the user when a valid token is present, otherwise continue anonymously"""
    if not credentials or not credentials.credentials:
        return None

    try:
        user = await _load_user_from_token(credentials.credentials, db)
    except InfinitiFlowError as e:
        logger.warning(f"Invalid token in optional auth: {e.message}")
        return None

    set_user_id(user.id)
    return user


def restrict_to(*roles: UserRole) -> Callable[..., Awaitable[User]]:
    """Allow only the given roles"""
    allowed = {role.value if isinstance(role, UserRole) else str(role) for role in roles}

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role_name not in allowed:
            raise AuthorizationError()
        return current_user

    return dependency


async def get_current_admin(
    current_user: User = Depends(restrict_to(UserRole.ADMIN))
) -> User:
    """Get current admin user"""
    return current_user


def check_subscription(required_plan: PlanType = PlanType.FREE) -> Callable[..., Awaitable[User]]:
    """
    Require at least `required_plan`, judged from the user's subscription summary.

    Usage:
        @router.get("/export/{id}", dependencies=[Depends(check_subscription(PlanType.BASIC))])
    """
    required = plan_value(required_plan)
    if required not in PLAN_HIERARCHY:
        raise ValueError(f"Unknown plan: {required}")

    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not current_user.subscription_is_active and required != PlanType.FREE.value:
            raise PaymentRequiredError("Active subscription required for this feature")

        if get_plan_rank(current_user.plan) < PLAN_HIERARCHY[required]:
            raise PaymentRequiredError(f"{required} plan or higher required for this feature")

        return current_user

    return dependency


ResourceLoader = Callable[[AsyncSession, str], Awaitable[Optional[Any]]]


def check_ownership(
    loader: ResourceLoader,
    id_param: str = "id",
    owner_field: str = "user_id"
) -> Callable[..., Awaitable[Any]]:
    """
    Load a resource by path parameter and make sure the caller may touch it.

    404 when absent, admins pass, everyone else must own it (403).
    Returns the loaded resource.
    """

    async def dependency(
        request: Request,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db)
    ) -> Any:
        resource_id = request.path_params.get(id_param)
        resource = await loader(db, resource_id) if resource_id else None

        if resource is None:
            raise ResourceNotFoundError("Resource not found")

        if current_user.role_name == UserRole.ADMIN.value:
            return resource

        owner_id = getattr(resource, owner_field, None)
        if owner_id is not None and str(owner_id) != str(current_user.id):
            raise AuthorizationError("You can only access your own resources")

        return resource

    return dependency


_rate_limit_scopes = itertools.count(1)


def get_user_rate_limiter(request: Request) -> UserRateLimiter:
    """The limiter constructed at app start"""
    return request.app.state.user_rate_limiter


def user_rate_limit(
    max_requests: int = settings.USER_RATE_LIMIT_MAX_REQUESTS,
    window_ms: int = settings.USER_RATE_LIMIT_WINDOW_MS
) -> Callable[..., Awaitable[None]]:
    """
    Per-user sliding-window throttle. Each call creates an independent budget.

    Anonymous requests pass through untouched; pair it with get_current_user
    or get_optional_user so the user is known.
    """
    scope = f"user-rate-limit-{next(_rate_limit_scopes)}"

    async def dependency(
        current_user: Optional[User] = Depends(get_optional_user),
        limiter: UserRateLimiter = Depends(get_user_rate_limiter)
    ) -> None:
        if current_user is None:
            return

        result = limiter.hit(scope, current_user.id, max_requests, window_ms)
        if not result.allowed:
            logger.warning(
                f"User rate limit exceeded for {current_user.id}",
                extra={"event_type": "rate_limit", "scope": scope}
            )
            raise TooManyRequestsError(retry_after=result.retry_after)

    return dependency
