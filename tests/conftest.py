import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.core.config import Settings
from app.core.security import build_password_context
from app.main import create_app
from tests.helpers import RecordingNotifier, register


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        database_url_sync="sqlite://",
        bcrypt_rounds=10,
        jwt_secret="test-secret",
        notifications_backend="noop",
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest_asyncio.fixture
async def app(test_settings, notifier):
    application = create_app(test_settings, notifier=notifier)
    await application.state.database.create_all()
    yield application
    await application.state.database.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(app):
    async with app.state.database.sessionmaker() as session:
        yield session


@pytest.fixture
def pwd_context():
    return build_password_context(10)


@pytest_asyncio.fixture
async def alice(client):
    return await register(client, "alice")


@pytest_asyncio.fixture
async def bob(client):
    return await register(client, "bob")
