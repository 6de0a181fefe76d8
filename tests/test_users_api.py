"""
Test user registration, login and token-authenticated profile routes.
"""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from bson import ObjectId
from unittest.mock import MagicMock

from app.core.auth import create_access_token, get_current_user
from app.core.security import hash_password
from app.main import app


def _user_doc(**overrides):
    now = datetime.now(timezone.utc)
    doc = {
        "_id": ObjectId("507f1f77bcf86cd799439011"),
        "email": "test@example.com",
        "username": "testuser",
        "first_name": "Test",
        "last_name": "User",
        "password_hash": hash_password("Test@1234"),
        "created_at": now,
        "updated_at": now
    }
    doc.update(overrides)
    return doc


@pytest_asyncio.fixture
async def anon_client(client):
    """Client that goes through real JWT authentication."""
    app.dependency_overrides.pop(get_current_user, None)
    yield client


@pytest.fixture
def users(mock_db):
    return mock_db["users"]


@pytest.mark.asyncio
async def test_register(anon_client, users):
    users.find_one.return_value = None
    users.insert_one.return_value = MagicMock(inserted_id=ObjectId("507f1f77bcf86cd799439011"))

    response = await anon_client.post("/users/register", json={
        "email": "test@example.com",
        "password": "Test@1234",
        "firstName": "Test",
        "lastName": "User",
        "username": "testuser"
    })

    assert response.status_code == 201
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == "507f1f77bcf86cd799439011"
    assert data["user"]["firstName"] == "Test"
    assert "password_hash" not in data["user"]

    stored = users.insert_one.call_args[0][0]
    assert stored["password_hash"] != "Test@1234"


@pytest.mark.asyncio
async def test_register_duplicate_email(anon_client, users):
    users.find_one.return_value = _user_doc()

    response = await anon_client.post("/users/register", json={
        "email": "test@example.com",
        "password": "Test@1234",
        "firstName": "Other",
        "lastName": "User",
        "username": "someoneelse"
    })

    assert response.status_code == 400
    assert response.json() == {
        "error": "Validation failed",
        "details": {"email": "This email is already registered"}
    }
    users.insert_one.assert_not_called()


@pytest.mark.asyncio
async def test_register_duplicate_username(anon_client, users):
    users.find_one.return_value = _user_doc(email="first@example.com")

    response = await anon_client.post("/users/register", json={
        "email": "second@example.com",
        "password": "Test@1234",
        "firstName": "Other",
        "lastName": "User",
        "username": "testuser"
    })

    assert response.status_code == 400
    assert response.json()["details"] == {"username": "This username is already registered"}


@pytest.mark.asyncio
async def test_register_short_password(anon_client, users):
    response = await anon_client.post("/users/register", json={
        "email": "test@example.com",
        "password": "short",
        "firstName": "Test",
        "lastName": "User",
        "username": "testuser"
    })

    assert response.status_code == 400
    assert "password" in response.json()["details"]


@pytest.mark.asyncio
async def test_login(anon_client, users):
    users.find_one.return_value = _user_doc()

    response = await anon_client.post("/users/login", json={
        "email": "test@example.com",
        "password": "Test@1234"
    })

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "test@example.com"


@pytest.mark.asyncio
async def test_login_wrong_password(anon_client, users):
    users.find_one.return_value = _user_doc()

    response = await anon_client.post("/users/login", json={
        "email": "test@example.com",
        "password": "WrongPassword"
    })

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_with_token(anon_client, users):
    doc = _user_doc()
    users.find_one.return_value = doc
    token = create_access_token(str(doc["_id"]))

    response = await anon_client.get("/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["username"] == "testuser"


@pytest.mark.asyncio
async def test_me_with_expired_token(anon_client, users):
    token = create_access_token(str(ObjectId()), expires_delta=timedelta(minutes=-1))

    response = await anon_client.get("/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


@pytest.mark.asyncio
async def test_me_with_garbage_token(anon_client):
    response = await anon_client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid token"


@pytest.mark.asyncio
async def test_me_for_deleted_user(anon_client, users):
    users.find_one.return_value = None
    token = create_access_token(str(ObjectId()))

    response = await anon_client.get("/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


@pytest.mark.asyncio
async def test_expenditures_require_token(anon_client):
    response = await anon_client.get("/expenditures")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_update_profile(client, users, alice):
    doc = _user_doc(_id=ObjectId(alice.id))
    users.find_one.side_effect = [doc, None]
    users.find_one_and_update.return_value = dict(doc, first_name="Alicia")

    response = await client.patch("/users/me", json={"firstName": "Alicia"})

    assert response.status_code == 200
    assert response.json()["firstName"] == "Alicia"


@pytest.mark.asyncio
async def test_update_profile_rejects_unknown_fields(client, users):
    response = await client.patch("/users/me", json={"isAdmin": True})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid updates"


@pytest.mark.asyncio
async def test_logout(client):
    response = await client.post("/users/logout")

    assert response.status_code == 200
    assert response.json() == {"message": "Logged out successfully"}
