import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from unittest.mock import MagicMock

from app.core.auth import get_current_user
from app.db.mongo import get_db
from app.main import app
from app.models.user import UserResponse
from tests.factories import make_collection, make_user


@pytest.fixture
def mock_db() -> MagicMock:
    """Database whose collections are created on first access."""
    db = MagicMock()
    collections = {}

    def get_collection(name):
        if name not in collections:
            collections[name] = make_collection()
        return collections[name]

    db.__getitem__.side_effect = get_collection
    return db


@pytest.fixture
def alice() -> UserResponse:
    return make_user("alice")


@pytest.fixture
def bob() -> UserResponse:
    return make_user("bob")


@pytest.fixture
def carol() -> UserResponse:
    return make_user("carol")


@pytest.fixture
def login_as():
    """Authenticate API requests as the given user."""
    def _login(user: UserResponse):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login


@pytest_asyncio.fixture
async def client(mock_db, alice, login_as):
    """API client bound to mock_db, logged in as alice by default."""
    app.dependency_overrides[get_db] = lambda: mock_db
    login_as(alice)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
