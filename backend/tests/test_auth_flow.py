"""
Integration tests for the authentication flow.

Verifies Register -> Login -> Me -> Logout, and that self sign-up
always yields a parent account.
"""

import pytest

from backend.app.models.enums import UserRole


def _registration(**overrides):
    payload = {
        "email": "mariam@example.com",
        "username": "mariam",
        "password": "password123",
        "full_name": "Mariam Al Balushi",
        "full_name_ar": "مريم البلوشي",
        "phone": "+968 9000 0000",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_register_creates_parent(client):
    response = await client.post("/v1/auth/register", json=_registration())

    assert response.status_code == 201
    data = response.json()
    assert data["role"] == "parent"
    assert data["token_type"] == "bearer"
    assert data["parent_user_id"] is None


@pytest.mark.asyncio
async def test_register_ignores_requested_role(client):
    """Staff roles are assigned by an admin, never self-selected."""
    response = await client.post("/v1/auth/register", json=_registration(role="admin"))

    assert response.status_code == 201
    assert response.json()["role"] == "parent"


@pytest.mark.asyncio
async def test_duplicate_registration_rejected(client):
    await client.post("/v1/auth/register", json=_registration())

    same_username = await client.post("/v1/auth/register", json=_registration(email="other@example.com"))
    same_email = await client.post("/v1/auth/register", json=_registration(username="other"))

    assert same_username.status_code == 400
    assert "Username" in same_username.json()["message"]
    assert same_email.status_code == 400
    assert "Email" in same_email.json()["message"]


@pytest.mark.asyncio
async def test_login_with_username_or_email_then_me(client):
    await client.post("/v1/auth/register", json=_registration())

    by_username = await client.post("/v1/auth/login", json={"username": "mariam", "password": "password123"})
    by_email = await client.post("/v1/auth/login", json={"username": "mariam@example.com", "password": "password123"})

    assert by_username.status_code == 200
    assert by_email.status_code == 200

    token = by_username.json()["access_token"]
    me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["full_name_ar"] == "مريم البلوشي"
    assert me.json()["role"] == "parent"


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    await client.post("/v1/auth/register", json=_registration())

    response = await client.post("/v1/auth/login", json={"username": "mariam", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_logout_revokes_token(client):
    registered = await client.post("/v1/auth/register", json=_registration())
    headers = {"Authorization": f"Bearer {registered.json()['access_token']}"}

    logout = await client.post("/v1/auth/logout", headers=headers)
    assert logout.status_code == 204

    me = await client.get("/v1/auth/me", headers=headers)
    assert me.status_code == 401
    assert "revoked" in me.json()["message"].lower()


@pytest.mark.asyncio
async def test_new_login_after_logout_works(client):
    registered = await client.post("/v1/auth/register", json=_registration())
    await client.post(
        "/v1/auth/logout",
        headers={"Authorization": f"Bearer {registered.json()['access_token']}"}
    )

    login = await client.post("/v1/auth/login", json={"username": "mariam", "password": "password123"})
    me = await client.get("/v1/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})

    assert me.status_code == 200


@pytest.mark.asyncio
async def test_role_change_applies_to_existing_token(client, db_session, make_profile, auth_headers):
    profile = await make_profile(UserRole.PARENT)
    headers = auth_headers(profile)

    profile.role = UserRole.FINANCE
    await db_session.commit()

    views = await client.get("/v1/me/views", headers=headers)
    assert views.json()["role"] == "finance"
