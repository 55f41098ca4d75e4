"""
Tests for account administration and the admin bootstrap command.
"""

from contextlib import asynccontextmanager

import pytest
from httpx import AsyncClient

from shuttle.core.exceptions import ConflictError
from shuttle.models.user import UserRole
from shuttle.services.user_service import ensure_admin
from shuttle.tasks import create_admin


async def _login(client: AsyncClient, email: str, password: str):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password})


@pytest.mark.asyncio
async def test_admin_creates_staff_with_settlement_access(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/admin/users/", json={
        "email": "Desk.Agent@Example.com",
        "full_name": "Desk Agent",
        "password": "deskpassword123",
        "role": "staff",
    }, headers=admin_headers)
    assert response.status_code == 201, response.text
    data = response.json()
    assert data["email"] == "desk.agent@example.com"
    assert data["role"] == "staff"
    assert "hashed_password" not in data

    login = await _login(client, "desk.agent@example.com", "deskpassword123")
    assert login.status_code == 200
    staff_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    queue = await client.get("/api/v1/staff/bookings/", headers=staff_headers)
    assert queue.status_code == 200


@pytest.mark.asyncio
async def test_created_accounts_default_to_passengers(client: AsyncClient, admin_headers):
    response = await client.post("/api/v1/admin/users/", json={
        "email": "rider@example.com",
        "full_name": "Plain Rider",
        "password": "riderpassword123",
    }, headers=admin_headers)
    assert response.status_code == 201
    assert response.json()["role"] == "user"


@pytest.mark.asyncio
async def test_admin_accounts_cannot_be_created_over_the_api(client: AsyncClient, admin_headers, test_user):
    promoted = await client.post("/api/v1/admin/users/", json={
        "email": "second.admin@example.com",
        "full_name": "Second Admin",
        "password": "adminpassword123",
        "role": "admin",
    }, headers=admin_headers)
    assert promoted.status_code == 400

    duplicate = await client.post("/api/v1/admin/users/", json={
        "email": "TEST@example.com",
        "full_name": "Someone Else",
        "password": "securepassword123",
        "role": "staff",
    }, headers=admin_headers)
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_list_users_by_role(client: AsyncClient, admin_headers, test_user, staff_user):
    everyone = await client.get("/api/v1/admin/users/", headers=admin_headers)
    assert everyone.status_code == 200
    assert everyone.json()["total"] == 3

    staff = await client.get("/api/v1/admin/users/", params={"role": "staff"}, headers=admin_headers)
    body = staff.json()
    assert body["total"] == 1
    assert [u["email"] for u in body["results"]] == ["staff@example.com"]


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient, admin_headers, test_user):
    user_id = test_user.id
    response = await client.get(f"/api/v1/admin/users/{user_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["email"] == "test@example.com"

    missing = await client.get("/api/v1/admin/users/999999", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_update_user(client: AsyncClient, admin_headers, test_user, other_user):
    # Failed requests roll back the shared session and expire the fixtures
    other_id = other_user.id

    response = await client.put(f"/api/v1/admin/users/{other_id}", json={
        "full_name": "Other Promoted",
        "role": "staff",
        "password": "brandnewpassword1",
    }, headers=admin_headers)
    assert response.status_code == 200, response.text
    data = response.json()
    assert data["full_name"] == "Other Promoted"
    assert data["role"] == "staff"
    assert data["email"] == "other@example.com"

    assert (await _login(client, "other@example.com", "brandnewpassword1")).status_code == 200
    assert (await _login(client, "other@example.com", "testpassword123")).status_code == 401

    taken = await client.put(
        f"/api/v1/admin/users/{other_id}", json={"email": "test@example.com"}, headers=admin_headers
    )
    assert taken.status_code == 409

    to_admin = await client.put(f"/api/v1/admin/users/{other_id}", json={"role": "admin"}, headers=admin_headers)
    assert to_admin.status_code == 400


@pytest.mark.asyncio
async def test_admin_accounts_are_read_only(client: AsyncClient, admin_headers, admin_user):
    admin_id = admin_user.id

    update = await client.put(
        f"/api/v1/admin/users/{admin_id}", json={"full_name": "Renamed"}, headers=admin_headers
    )
    assert update.status_code == 403

    delete = await client.delete(f"/api/v1/admin/users/{admin_id}", headers=admin_headers)
    assert delete.status_code == 403


@pytest.mark.asyncio
async def test_deactivated_user_is_locked_out(client: AsyncClient, admin_headers, auth_headers, test_user):
    user_id = test_user.id

    response = await client.delete(f"/api/v1/admin/users/{user_id}", headers=admin_headers)
    assert response.status_code == 204

    assert (await client.get("/api/v1/auth/me", headers=auth_headers)).status_code == 401
    assert (await _login(client, "test@example.com", "testpassword123")).status_code == 403

    # The account is kept for its booking history
    kept = await client.get(f"/api/v1/admin/users/{user_id}", headers=admin_headers)
    assert kept.status_code == 200
    assert kept.json()["is_active"] is False


@pytest.mark.asyncio
async def test_user_administration_is_admin_only(client: AsyncClient, auth_headers, staff_headers):
    assert (await client.get("/api/v1/admin/users/", headers=auth_headers)).status_code == 403
    assert (await client.get("/api/v1/admin/users/", headers=staff_headers)).status_code == 403
    assert (await client.get("/api/v1/admin/users/")).status_code == 401

    create = await client.post("/api/v1/admin/users/", json={
        "email": "sneaky@example.com",
        "full_name": "Sneaky Staff",
        "password": "sneakypassword1",
        "role": "staff",
    }, headers=staff_headers)
    assert create.status_code == 403


# --- bootstrap --------------------------------------------------------------


@pytest.mark.asyncio
async def test_ensure_admin_is_idempotent(db_session):
    user, created = await ensure_admin(db_session, "Root@Example.com", "rootpassword123", "Root Admin")
    assert created is True
    assert user.role == UserRole.ADMIN
    assert user.email == "root@example.com"

    again, created = await ensure_admin(db_session, "root@example.com", "different-password", "Renamed")
    assert created is False
    assert again.id == user.id
    assert again.full_name == "Root Admin"


@pytest.mark.asyncio
async def test_ensure_admin_never_promotes_existing_accounts(db_session, test_user):
    with pytest.raises(ConflictError):
        await ensure_admin(db_session, "test@example.com", "rootpassword123", "Root Admin")


@pytest.mark.asyncio
async def test_bootstrapped_admin_can_log_in(client: AsyncClient, session_factory, monkeypatch):
    @asynccontextmanager
    async def scope():
        async with session_factory() as session:
            yield session

    monkeypatch.setattr(create_admin, "session_scope", scope)
    assert await create_admin.create_admin("ops@example.com", "opspassword123", "Ops Admin") is True
    assert await create_admin.create_admin("ops@example.com", "opspassword123", "Ops Admin") is False

    login = await _login(client, "ops@example.com", "opspassword123")
    assert login.status_code == 200
    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {login.json()['access_token']}"})
    assert me.json()["role"] == "admin"


def test_create_admin_requires_credentials(monkeypatch):
    monkeypatch.setattr(create_admin.settings, "ADMIN_EMAIL", None)
    monkeypatch.setattr(create_admin.settings, "ADMIN_PASSWORD", None)
    with pytest.raises(SystemExit):
        create_admin.main([])
