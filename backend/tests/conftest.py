"""
InfinitiFlow - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator, Any, Dict, List, Optional
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession
from faker import Faker

# Set testing environment (before any infinitiflow import reads settings)
TEST_DB_PATH = os.path.join(tempfile.gettempdir(), f'infinitiflow_test_{os.getpid()}.db')
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = f'sqlite+aiosqlite:///{TEST_DB_PATH}'
os.environ['JWT_SECRET'] = 'test-jwt-secret-for-testing-only'
os.environ['JWT_REFRESH_SECRET'] = 'test-jwt-refresh-secret-for-testing-only'
os.environ['JWT_EXPIRE'] = '7d'
os.environ['JWT_REFRESH_EXPIRE'] = '30d'
os.environ['BCRYPT_SALT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['CLIENT_URL'] = 'http://client.test'
os.environ['SENDGRID_API_KEY'] = ''
os.environ['SMTP_USER'] = ''

from infinitiflow.main import app
from infinitiflow.core.database import Base, get_engine, get_session_local, close_db
from infinitiflow.core.security import create_access_token
from infinitiflow.models import PlanType, Subscription, User, UserRole
from infinitiflow.services.email_service import get_email_service

fake = Faker()

TEST_PASSWORD = 'testpassword123'


class RecordingEmailService:
    """Stands in for EmailService; remembers every message instead of sending it"""

    def __init__(self):
        self.sent: List[Dict[str, Any]] = []
        self.fail = False

    async def send_email(self, to_email: str, template: str, data: Dict[str, Any],
                         subject: Optional[str] = None) -> bool:
        if self.fail:
            return False
        self.sent.append({'to': to_email, 'template': template, 'data': data})
        return True

    def last(self, template: str) -> Dict[str, Any]:
        matches = [m for m in self.sent if m['template'] == template]
        assert matches, f'no {template} email was sent'
        return matches[-1]


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    import infinitiflow.models  # noqa: F401

    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with get_session_local()() as session:
        yield session
        await session.rollback()

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
async def client(db_session: AsyncSession, email_service: RecordingEmailService) -> AsyncGenerator[AsyncClient, None]:
    """Test client over the real app; requests get their own sessions"""
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.state.user_rate_limiter.clear()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(
    db: AsyncSession,
    email: Optional[str] = None,
    password: str = TEST_PASSWORD,
    role: UserRole = UserRole.USER,
    plan: PlanType = PlanType.FREE,
    **fields: Any
) -> User:
    """Persist a user together with its subscription row"""
    fields.setdefault('is_email_verified', True)
    user = User(
        first_name=fake.first_name(),
        last_name=fake.last_name(),
        email=email or fake.unique.email(),
        role=role,
        subscription_plan=plan,
        **fields
    )
    user.set_password(password, is_new=True)
    db.add(user)
    await db.flush()
    db.add(Subscription(user_id=user.id, plan=plan))
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user on the free plan"""
    return await make_user(db_session)


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    """Create an admin test user"""
    return await make_user(db_session, role=UserRole.ADMIN)


def bearer(user: User) -> Dict[str, str]:
    return {'Authorization': f'Bearer {create_access_token(user.id)}'}


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    return bearer(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict:
    """Generate authentication headers for admin user"""
    return bearer(admin_user)


@pytest.fixture
def user_factory(db_session: AsyncSession):
    """Build extra users inside a test: await user_factory(plan=PlanType.BASIC)"""
    async def factory(**kwargs: Any) -> User:
        return await make_user(db_session, **kwargs)
    return factory


@pytest.fixture
def headers_for():
    """Bearer headers for any user"""
    return bearer
