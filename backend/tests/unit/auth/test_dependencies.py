"""
Unit Tests for Auth Dependencies
Tests for: protect, optional auth, roles, plan gates, ownership, per-user throttling
"""
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace
from fastapi.security import HTTPAuthorizationCredentials

from infinitiflow.core.exceptions import (
    AccountDeactivatedError,
    AuthorizationError,
    InvalidTokenError,
    NotAuthenticatedError,
    PaymentRequiredError,
    ResourceNotFoundError,
    TooManyRequestsError,
)
from infinitiflow.core.security import create_access_token, create_refresh_token, to_timestamp
from infinitiflow.models.plans import PlanType
from infinitiflow.models.user import User, UserRole
from infinitiflow.modules.auth.dependencies import (
    check_ownership,
    check_subscription,
    get_current_user,
    get_optional_user,
    restrict_to,
    user_rate_limit,
)
from infinitiflow.modules.auth.rate_limit import UserRateLimiter


def creds(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def member(role=UserRole.USER, plan=PlanType.FREE, active=True, user_id='u-1') -> User:
    return User(id=user_id, first_name='A', last_name='B', email=f'{user_id}@x.io', password='x',
                role=role, subscription_plan=plan, subscription_is_active=active)


class TestProtect:
    """Test get_current_user"""

    @pytest.mark.asyncio
    async def test_missing_token(self, db_session):
        with pytest.raises(NotAuthenticatedError) as exc_info:
            await get_current_user(credentials=None, db=db_session)

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == 'You are not logged in! Please log in to get access.'

    @pytest.mark.asyncio
    async def test_valid_token(self, db_session, test_user):
        user = await get_current_user(credentials=creds(create_access_token(test_user.id)), db=db_session)

        assert user.id == test_user.id

    @pytest.mark.asyncio
    async def test_garbage_token(self, db_session):
        with pytest.raises(InvalidTokenError):
            await get_current_user(credentials=creds('not-a-jwt'), db=db_session)

    @pytest.mark.asyncio
    async def test_refresh_token_rejected(self, db_session, test_user):
        with pytest.raises(InvalidTokenError):
            await get_current_user(credentials=creds(create_refresh_token(test_user.id)), db=db_session)

    @pytest.mark.asyncio
    async def test_user_no_longer_exists(self, db_session):
        with pytest.raises(InvalidTokenError) as exc_info:
            await get_current_user(credentials=creds(create_access_token('ghost')), db=db_session)

        assert exc_info.value.message == 'The user belonging to this token does no longer exist.'

    @pytest.mark.asyncio
    async def test_deactivated_user(self, db_session, test_user):
        test_user.active = False
        await db_session.commit()

        with pytest.raises(AccountDeactivatedError):
            await get_current_user(credentials=creds(create_access_token(test_user.id)), db=db_session)

    @pytest.mark.asyncio
    async def test_password_changed_after_token(self, db_session, test_user):
        token = create_access_token(test_user.id, issued_at=datetime.utcnow() - timedelta(hours=1))
        test_user.set_password('n3w-password!')
        await db_session.commit()

        with pytest.raises(InvalidTokenError) as exc_info:
            await get_current_user(credentials=creds(token), db=db_session)

        assert exc_info.value.message == 'User recently changed password! Please log in again.'

    @pytest.mark.asyncio
    async def test_token_after_password_change_accepted(self, db_session, test_user):
        test_user.set_password('n3w-password!')
        await db_session.commit()
        token = create_access_token(test_user.id)

        user = await get_current_user(credentials=creds(token), db=db_session)

        assert user.id == test_user.id
        assert to_timestamp(user.password_changed_at) <= to_timestamp(datetime.utcnow())


class TestOptionalAuth:
    """Test get_optional_user"""

    @pytest.mark.asyncio
    async def test_no_token_is_anonymous(self, db_session):
        assert await get_optional_user(credentials=None, db=db_session) is None

    @pytest.mark.asyncio
    async def test_bad_token_is_anonymous(self, db_session):
        assert await get_optional_user(credentials=creds('nope'), db=db_session) is None

    @pytest.mark.asyncio
    async def test_valid_token_attaches_user(self, db_session, test_user):
        user = await get_optional_user(credentials=creds(create_access_token(test_user.id)), db=db_session)

        assert user.id == test_user.id


class TestRestrictTo:

    @pytest.mark.asyncio
    async def test_allowed_role(self):
        dependency = restrict_to(UserRole.ADMIN, UserRole.MODERATOR)
        moderator = member(role=UserRole.MODERATOR)

        assert await dependency(current_user=moderator) is moderator

    @pytest.mark.asyncio
    async def test_forbidden_role(self):
        dependency = restrict_to(UserRole.ADMIN)

        with pytest.raises(AuthorizationError) as exc_info:
            await dependency(current_user=member())

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == 'You do not have permission to perform this action'


class TestCheckSubscription:

    @pytest.mark.asyncio
    async def test_free_passes_everyone(self):
        dependency = check_subscription(PlanType.FREE)

        assert await dependency(current_user=member(active=False))

    @pytest.mark.asyncio
    async def test_inactive_subscription(self):
        dependency = check_subscription(PlanType.BASIC)

        with pytest.raises(PaymentRequiredError) as exc_info:
            await dependency(current_user=member(plan=PlanType.PREMIUM, active=False))

        assert exc_info.value.message == 'Active subscription required for this feature'

    @pytest.mark.asyncio
    async def test_plan_too_low(self):
        dependency = check_subscription(PlanType.PREMIUM)

        with pytest.raises(PaymentRequiredError) as exc_info:
            await dependency(current_user=member(plan=PlanType.BASIC))

        assert exc_info.value.status_code == 402
        assert exc_info.value.message == 'premium plan or higher required for this feature'

    @pytest.mark.asyncio
    async def test_higher_plan_passes(self):
        dependency = check_subscription(PlanType.PREMIUM)
        user = member(plan=PlanType.ENTERPRISE)

        assert await dependency(current_user=user) is user

    def test_unknown_plan(self):
        with pytest.raises(ValueError):
            check_subscription('platinum')


class TestCheckOwnership:

    @staticmethod
    def loader_for(resource):
        async def loader(db, resource_id):
            return resource if resource and resource.id == resource_id else None
        return loader

    @pytest.mark.asyncio
    async def test_missing_resource(self):
        dependency = check_ownership(self.loader_for(None))
        request = SimpleNamespace(path_params={'id': 'r-1'})

        with pytest.raises(ResourceNotFoundError) as exc_info:
            await dependency(request=request, current_user=member(), db=None)

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_owner_gets_resource(self):
        resource = SimpleNamespace(id='r-1', user_id='u-1')
        dependency = check_ownership(self.loader_for(resource))

        result = await dependency(request=SimpleNamespace(path_params={'id': 'r-1'}), current_user=member(), db=None)

        assert result is resource

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self):
        resource = SimpleNamespace(id='r-1', user_id='someone-else')
        dependency = check_ownership(self.loader_for(resource))

        with pytest.raises(AuthorizationError) as exc_info:
            await dependency(request=SimpleNamespace(path_params={'id': 'r-1'}), current_user=member(), db=None)

        assert exc_info.value.message == 'You can only access your own resources'

    @pytest.mark.asyncio
    async def test_admin_bypasses_ownership(self):
        resource = SimpleNamespace(id='r-1', user_id='someone-else')
        dependency = check_ownership(self.loader_for(resource))
        admin = member(role=UserRole.ADMIN)

        result = await dependency(request=SimpleNamespace(path_params={'id': 'r-1'}), current_user=admin, db=None)

        assert result is resource

    @pytest.mark.asyncio
    async def test_custom_id_param(self):
        resource = SimpleNamespace(id='r-1', user_id='u-1')
        dependency = check_ownership(self.loader_for(resource), id_param='content_id')

        result = await dependency(
            request=SimpleNamespace(path_params={'content_id': 'r-1'}), current_user=member(), db=None
        )

        assert result is resource


class TestUserRateLimit:

    @pytest.mark.asyncio
    async def test_anonymous_passes(self):
        dependency = user_rate_limit(max_requests=1, window_ms=60000)
        limiter = UserRateLimiter()

        for _ in range(5):
            await dependency(current_user=None, limiter=limiter)

        assert len(limiter) == 0

    @pytest.mark.asyncio
    async def test_budget_per_user(self):
        dependency = user_rate_limit(max_requests=2, window_ms=60000)
        limiter = UserRateLimiter()
        alice, bob = member(user_id='alice'), member(user_id='bob')

        await dependency(current_user=alice, limiter=limiter)
        await dependency(current_user=alice, limiter=limiter)
        with pytest.raises(TooManyRequestsError) as exc_info:
            await dependency(current_user=alice, limiter=limiter)

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == 'Too many requests. Please try again later.'
        await dependency(current_user=bob, limiter=limiter)

    @pytest.mark.asyncio
    async def test_each_limiter_has_its_own_budget(self):
        first = user_rate_limit(max_requests=1, window_ms=60000)
        second = user_rate_limit(max_requests=1, window_ms=60000)
        limiter = UserRateLimiter()
        alice = member(user_id='alice')

        await first(current_user=alice, limiter=limiter)
        await second(current_user=alice, limiter=limiter)

        with pytest.raises(TooManyRequestsError):
            await first(current_user=alice, limiter=limiter)
