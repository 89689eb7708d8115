import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from app.core.config import settings
from app.schemas import RoleEnum, UserCreate
from app.services.auth_service import auth_service
from main import app


@pytest.mark.asyncio
async def test_register_assigns_roles(db, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_EMAILS", "boss@example.com, other@example.com")

    user = await auth_service.register_user(UserCreate(email="alice@example.com", full_name="Alice", password="password123"))
    admin = await auth_service.register_user(UserCreate(email="Boss@example.com", full_name="Boss", password="password123"))
    assert user["role"] == "user"
    assert admin["role"] == "admin"

    with pytest.raises(HTTPException) as exc:
        await auth_service.register_user(UserCreate(email="alice@example.com", full_name="Again", password="password123"))
    assert exc.value.status_code == 400


@pytest.mark.asyncio
async def test_set_user_role(db):
    created = await auth_service.register_user(UserCreate(email="sec@example.com", full_name="Sec", password="password123"))

    updated = await auth_service.set_user_role(created["id"], RoleEnum.secretary)
    assert updated["role"] == "secretary"

    with pytest.raises(HTTPException) as exc:
        await auth_service.set_user_role(created["id"], RoleEnum.system)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await auth_service.set_user_role("missing", RoleEnum.notary)
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_login_and_token_round_trip(db):
    await auth_service.register_user(UserCreate(email="notary@example.com", full_name="Nora", password="password123"))
    client = TestClient(app)

    resp = client.post("/auth/login", data={"username": "notary@example.com", "password": "wrong-password"})
    assert resp.status_code == 401

    resp = client.post("/auth/login", data={"username": "notary@example.com", "password": "password123"})
    assert resp.status_code == 200
    token = resp.json()["access_token"]

    resp = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["email"] == "notary@example.com"
    assert resp.json()["role"] == "user"

    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
