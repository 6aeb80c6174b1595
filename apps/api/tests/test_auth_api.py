from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update

from conftest import PASSWORD, login, register
from jira_lite.db import SessionLocal
from jira_lite.models import Session, User, utcnow
from jira_lite.routers import auth as auth_router


@pytest.mark.anyio
async def test_register_login_me_logout(client: AsyncClient) -> None:
  user = await register(client, "Ada@Example.com", "Ada")
  assert user["email"] == "ada@example.com"

  me = await client.get("/auth/me")
  assert me.status_code == 200, me.text
  assert me.json()["name"] == "Ada"

  out = await client.post("/auth/logout")
  assert out.status_code == 200
  client.cookies.clear()
  assert (await client.get("/auth/me")).status_code == 401

  await login(client, "ada@example.com")
  assert (await client.get("/auth/me")).status_code == 200


@pytest.mark.anyio
async def test_duplicate_registration_conflicts(client: AsyncClient) -> None:
  await register(client, "ada@example.com")
  res = await client.post("/auth/register", json={"email": "ADA@example.com", "name": "Again", "password": PASSWORD})
  assert res.status_code == 409


@pytest.mark.anyio
async def test_bad_credentials(client: AsyncClient) -> None:
  await register(client, "ada@example.com")
  client.cookies.clear()
  res = await client.post("/auth/login", json={"email": "ada@example.com", "password": "wrong-password"})
  assert res.status_code == 401
  res = await client.post("/auth/login", json={"email": "nobody@example.com", "password": PASSWORD})
  assert res.status_code == 401


@pytest.mark.anyio
async def test_expired_session_is_rejected_and_removed(client: AsyncClient) -> None:
  await register(client, "ada@example.com")
  async with SessionLocal() as db:
    await db.execute(update(Session).values(expires_at=utcnow() - timedelta(minutes=1)))
    await db.commit()

  res = await client.get("/auth/me")
  assert res.status_code == 401
  assert res.json()["detail"] == "Session expired"
  async with SessionLocal() as db:
    res = await db.execute(select(Session))
    assert res.scalars().all() == []


@pytest.mark.anyio
async def test_login_rate_limited(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setattr(auth_router.settings, "rate_limit_login_email_per_minute", 2)
  await register(client, "ada@example.com")
  for _ in range(2):
    await login(client, "ada@example.com")
  res = await client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
  assert res.status_code == 429
  assert res.json()["detail"]["code"] == "rate_limited"
  assert int(res.headers["retry-after"]) >= 1


@pytest.mark.anyio
async def test_password_reset_flow(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
  sent: list[dict] = []

  async def _fake_send(**kwargs) -> bool:
    sent.append(kwargs)
    return True

  monkeypatch.setattr(auth_router, "send_password_reset_email", _fake_send)
  await register(client, "ada@example.com")
  client.cookies.clear()

  res = await client.post("/auth/password-reset/request", json={"email": "nobody@example.com"})
  assert res.status_code == 200 and res.json() == {"ok": True}
  assert sent == []

  res = await client.post("/auth/password-reset/request", json={"email": "ada@example.com"})
  assert res.status_code == 200 and res.json() == {"ok": True}
  assert [m["to_addr"] for m in sent] == ["ada@example.com"]
  token = sent[0]["token"]

  bad = await client.post("/auth/password-reset/confirm", json={"token": "nope", "newPassword": "another-secret"})
  assert bad.status_code == 400

  ok = await client.post("/auth/password-reset/confirm", json={"token": token, "newPassword": "another-secret"})
  assert ok.status_code == 200, ok.text
  reused = await client.post("/auth/password-reset/confirm", json={"token": token, "newPassword": "third-secret"})
  assert reused.status_code == 400

  old = await client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
  assert old.status_code == 401
  await login(client, "ada@example.com", "another-secret")


@pytest.mark.anyio
async def test_health_and_security_headers(client: AsyncClient) -> None:
  res = await client.get("/health")
  assert res.status_code == 200
  assert res.json()["ok"] is True
  assert res.headers["x-content-type-options"] == "nosniff"
  assert res.headers["x-frame-options"] == "DENY"


@pytest.mark.anyio
async def test_update_profile(client: AsyncClient) -> None:
  await register(client, "ada@example.com", "Ada")
  res = await client.patch("/auth/me", json={"name": " Ada L. ", "image": "https://cdn.example.com/ada.png"})
  assert res.status_code == 200, res.text
  assert (res.json()["name"], res.json()["image"]) == ("Ada L.", "https://cdn.example.com/ada.png")

  res = await client.patch("/auth/me", json={"name": "Ada", "image": ""})
  assert res.status_code == 200
  assert (await client.get("/auth/me")).json()["image"] is None

  assert (await client.patch("/auth/me", json={"name": "Ada", "image": "not a url"})).status_code == 422
  assert (await client.patch("/auth/me", json={"name": "x" * 51})).status_code == 422


@pytest.mark.anyio
async def test_change_password_requires_current_password(client: AsyncClient) -> None:
  await register(client, "ada@example.com", "Ada")
  res = await client.post("/auth/change-password", json={"currentPassword": "wrong-password", "newPassword": "another-secret"})
  assert res.status_code == 400
  assert res.json()["detail"] == "Current password is incorrect"

  res = await client.post("/auth/change-password", json={"currentPassword": PASSWORD, "newPassword": "another-secret"})
  assert res.status_code == 200, res.text
  assert (await client.get("/auth/me")).status_code == 200

  client.cookies.clear()
  old = await client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
  assert old.status_code == 401
  await login(client, "ada@example.com", "another-secret")


@pytest.mark.anyio
async def test_change_password_revokes_other_sessions(client: AsyncClient) -> None:
  await register(client, "ada@example.com", "Ada")
  await login(client, "ada@example.com")
  async with SessionLocal() as db:
    assert len((await db.execute(select(Session))).scalars().all()) == 2

  res = await client.post("/auth/change-password", json={"currentPassword": PASSWORD, "newPassword": "another-secret"})
  assert res.status_code == 200, res.text
  async with SessionLocal() as db:
    assert len((await db.execute(select(Session))).scalars().all()) == 1
  assert (await client.get("/auth/me")).status_code == 200


@pytest.mark.anyio
async def test_team_owner_cannot_delete_account(client: AsyncClient) -> None:
  await register(client, "ada@example.com", "Ada")
  team = await client.post("/teams", json={"name": "Core"})
  assert team.status_code == 201

  res = await client.request("DELETE", "/auth/me", json={"password": PASSWORD})
  assert res.status_code == 400
  assert res.json()["detail"]["code"] == "invalid_operation"
  assert (await client.get("/auth/me")).status_code == 200

  assert (await client.delete(f"/teams/{team.json()['id']}")).status_code == 200
  res = await client.request("DELETE", "/auth/me", json={"password": "wrong-password"})
  assert res.status_code == 400
  assert res.json()["detail"] == "Invalid password"


@pytest.mark.anyio
async def test_delete_account(client: AsyncClient) -> None:
  await register(client, "ada@example.com", "Ada")
  res = await client.request("DELETE", "/auth/me", json={"password": PASSWORD})
  assert res.status_code == 200, res.text

  assert (await client.get("/auth/me")).status_code == 401
  res = await client.post("/auth/login", json={"email": "ada@example.com", "password": PASSWORD})
  assert res.status_code == 401
  async with SessionLocal() as db:
    assert (await db.execute(select(Session))).scalars().all() == []
    u = (await db.execute(select(User).where(User.email == "ada@example.com"))).scalar_one()
    assert u.deleted_at is not None
    assert u.password_hash is None
