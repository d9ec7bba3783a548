"""
Unit Tests for the Subscription model and plan table
"""
import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import select

from infinitiflow.models.plans import (
    PLAN_FEATURES,
    PlanType,
    get_plan_features,
    get_plan_rank,
    limit_reached,
)
from infinitiflow.models.subscription import BillingRecord, BillingStatus, Subscription, SubscriptionStatus


class TestPlanTable:
    """Test the fixed plan reference data"""

    def test_free_plan(self):
        features = PLAN_FEATURES['free']

        assert features['contentLimit'] == 10
        assert features['wordsLimit'] == 5000
        assert features['apiAccess'] is False
        assert features['exportOptions'] == ['txt']

    def test_enterprise_is_unlimited(self):
        features = PLAN_FEATURES['enterprise']

        assert features['contentLimit'] == -1
        assert features['wordsLimit'] == -1
        assert features['collaborators'] == -1

    def test_hierarchy(self):
        ranks = [get_plan_rank(p) for p in ('free', 'basic', 'premium', 'enterprise')]

        assert ranks == sorted(ranks)
        assert get_plan_rank(PlanType.PREMIUM) == 2

    def test_features_are_copies(self):
        features = get_plan_features('basic')
        features['exportOptions'].append('exe')

        assert 'exe' not in PLAN_FEATURES['basic']['exportOptions']

    def test_unknown_plan_falls_back_to_free(self):
        assert get_plan_features('platinum') == PLAN_FEATURES['free']

    @pytest.mark.parametrize('current,limit,expected', [
        (0, 10, False),
        (9, 10, False),
        (10, 10, True),
        (11, 10, True),
        (10 ** 9, -1, False),
    ])
    def test_limit_reached(self, current, limit, expected):
        assert limit_reached(current, limit) is expected


class TestApplyPlan:
    """Every plan assignment recomputes features"""

    def test_features_follow_plan(self):
        sub = Subscription(user_id='u1', plan=PlanType.FREE)
        assert sub.features['contentLimit'] == 10

        sub.plan = PlanType.PREMIUM

        assert sub.features == PLAN_FEATURES['premium']

    def test_plan_accepts_string(self):
        sub = Subscription(user_id='u1', plan='basic')

        assert sub.plan == PlanType.BASIC
        assert sub.features['wordsLimit'] == 50000


class TestFeatureChecks:
    """Test can_use_feature and has_reached_limit"""

    def test_boolean_features(self):
        free = Subscription(user_id='u1', plan=PlanType.FREE)
        premium = Subscription(user_id='u2', plan=PlanType.PREMIUM)

        assert free.can_use_feature('apiAccess') is False
        assert premium.can_use_feature('apiAccess') is True

    def test_unlimited_numeric_feature_is_usable(self):
        enterprise = Subscription(user_id='u1', plan=PlanType.ENTERPRISE)

        assert enterprise.can_use_feature('collaborators') is True

    def test_finite_numeric_feature_is_not_a_flag(self):
        basic = Subscription(user_id='u1', plan=PlanType.BASIC)

        assert basic.can_use_feature('collaborators') is False
        assert basic.can_use_feature('doesNotExist') is False

    def test_content_limit(self):
        sub = Subscription(user_id='u1', plan=PlanType.FREE, usage_content_generated=9)
        assert sub.has_reached_limit('contentGenerated') is False

        sub.usage_content_generated = 10
        assert sub.has_reached_limit('contentGenerated') is True

    def test_words_limit(self):
        sub = Subscription(user_id='u1', plan=PlanType.BASIC, usage_words_generated=50000)

        assert sub.has_reached_limit('wordsGenerated') is True

    def test_collaborators_limit(self):
        sub = Subscription(user_id='u1', plan=PlanType.FREE, usage_collaborators_active=0)

        # free plan allows zero collaborators
        assert sub.has_reached_limit('collaboratorsActive') is True

    def test_api_calls_follow_api_access(self):
        assert Subscription(user_id='u1', plan=PlanType.FREE).has_reached_limit('apiCalls') is True
        assert Subscription(user_id='u1', plan=PlanType.PREMIUM).has_reached_limit('apiCalls') is False

    def test_unknown_limit_type(self):
        with pytest.raises(ValueError):
            Subscription(user_id='u1', plan=PlanType.FREE).has_reached_limit('templatesUsed')


class TestLifecycle:
    """Test cancel / reactivate / expiry"""

    def test_cancel(self):
        sub = Subscription(user_id='u1', plan=PlanType.BASIC, status=SubscriptionStatus.ACTIVE, is_active=True)

        sub.cancel('too expensive')

        assert sub.status == SubscriptionStatus.CANCELLED
        assert sub.is_active is False
        assert sub.cancelled_at is not None
        assert sub.cancel_reason == 'too expensive'

    def test_reactivate(self):
        sub = Subscription(user_id='u1', plan=PlanType.BASIC)
        sub.cancel()

        sub.reactivate()

        assert sub.status == SubscriptionStatus.ACTIVE
        assert sub.is_active is True
        assert sub.cancelled_at is None
        assert sub.cancel_reason is None

    def test_sync_status_expires_active_subscription(self):
        now = datetime.utcnow()
        sub = Subscription(
            user_id='u1', plan=PlanType.BASIC, status=SubscriptionStatus.ACTIVE,
            is_active=True, end_date=now - timedelta(days=1),
        )

        sub.sync_status(now)

        assert sub.status == SubscriptionStatus.INACTIVE
        assert sub.is_active is False
        assert sub.is_expired is True

    def test_sync_status_leaves_cancelled_alone(self):
        now = datetime.utcnow()
        sub = Subscription(user_id='u1', plan=PlanType.BASIC, end_date=now - timedelta(days=1))
        sub.cancel()

        sub.sync_status(now)

        assert sub.status == SubscriptionStatus.CANCELLED

    def test_days_until_expiry(self):
        sub = Subscription(user_id='u1', plan=PlanType.BASIC, end_date=datetime.utcnow() + timedelta(days=2, hours=1))

        assert sub.days_until_expiry == 3
        assert Subscription(user_id='u1', plan=PlanType.BASIC).days_until_expiry is None

    def test_reset_usage(self):
        sub = Subscription(user_id='u1', plan=PlanType.BASIC, usage_content_generated=4, usage_api_calls=2)

        sub.reset_usage()

        assert all(value == 0 for value in sub.current_usage.values())

    def test_usage_percentages(self):
        sub = Subscription(
            user_id='u1', plan=PlanType.FREE,
            usage_content_generated=5, usage_words_generated=1000, usage_collaborators_active=0,
        )

        assert sub.usage_percentages['content'] == pytest.approx(50)
        assert sub.usage_percentages['words'] == pytest.approx(20)
        assert sub.usage_percentages['collaborators'] == 0


class TestPersistence:
    """Listener and billing history against the database"""

    @pytest.mark.asyncio
    async def test_insert_fills_features_and_status(self, db_session, test_user):
        result = await db_session.execute(select(Subscription).where(Subscription.user_id == test_user.id))
        sub = result.scalar_one()

        assert sub.features == PLAN_FEATURES['free']
        assert sub.status == SubscriptionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_expired_subscription_goes_inactive_on_save(self, db_session, test_user):
        result = await db_session.execute(select(Subscription).where(Subscription.user_id == test_user.id))
        sub = result.scalar_one()

        sub.end_date = datetime.utcnow() - timedelta(minutes=5)
        await db_session.commit()
        await db_session.refresh(sub)

        assert sub.status == SubscriptionStatus.INACTIVE
        assert sub.is_active is False

    @pytest.mark.asyncio
    async def test_add_billing_record(self, db_session, test_user):
        result = await db_session.execute(select(Subscription).where(Subscription.user_id == test_user.id))
        sub = result.scalar_one()

        record = sub.add_billing_record(amount=Decimal('19.99'), status=BillingStatus.PAID, description='Basic plan')
        db_session.add(record)
        await db_session.commit()

        rows = (await db_session.execute(select(BillingRecord))).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id == test_user.id
        assert rows[0].subscription_id == sub.id
        assert rows[0].currency == 'USD'
