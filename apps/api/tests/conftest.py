from __future__ import annotations

import os
import sys
from functools import lru_cache
from pathlib import Path
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{ROOT / 'jira_lite_test.db'}")
os.environ.setdefault("MAIL_ENABLED", "false")
os.environ.setdefault("APP_SECRET", "test-secret")

from jira_lite.config import settings
from jira_lite.db import SessionLocal, engine
from jira_lite.main import app
from jira_lite.models import Base, TeamMember, TeamRole, User
from jira_lite.projects.service import create_project
from jira_lite.projects.statuses import list_statuses
from jira_lite.rate_limit import limiter
from jira_lite.security import hash_password
from jira_lite.teams.service import create_team

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def schema() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. jira_lite_test)."
    )
  limiter.reset()
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
    await conn.run_sync(Base.metadata.create_all)
  yield
  await engine.dispose()


@pytest.fixture
async def db(schema) -> AsyncSession:
  async with SessionLocal() as session:
    yield session


@pytest.fixture
async def client(schema) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@lru_cache(maxsize=1)
def _password_hash() -> str:
  return hash_password(PASSWORD)


async def create_user(db, email: str, name: str | None = None) -> User:
  u = User(email=email, name=name or email.split("@", 1)[0], password_hash=_password_hash())
  db.add(u)
  await db.flush()
  return u


async def add_member(db, team_id: str, user_id: str, role: TeamRole = TeamRole.MEMBER) -> TeamMember:
  m = TeamMember(team_id=team_id, user_id=user_id, role=role.value)
  db.add(m)
  await db.flush()
  return m


async def make_board(db, *, owner_email: str = "owner@example.com") -> SimpleNamespace:
  """Owner, team and project with the three default columns."""
  owner = await create_user(db, owner_email, "Owner")
  team = await create_team(db, owner.id, "Core")
  project = await create_project(db, owner.id, team.id, "Board")
  backlog, in_progress, done = await list_statuses(db, project.id, owner.id)
  return SimpleNamespace(owner=owner, team=team, project=project, backlog=backlog, in_progress=in_progress, done=done)


async def register(client: AsyncClient, email: str, name: str = "User", password: str = PASSWORD) -> dict:
  res = await client.post("/auth/register", json={"email": email, "name": name, "password": password})
  assert res.status_code == 201, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "jl_session=" in cookie
  return res.json()


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "jl_session=" in cookie
  return res.json()


async def api_board(client: AsyncClient) -> dict:
  """Create a team and project as the logged-in user; returns ids and statuses."""
  team = await client.post("/teams", json={"name": "Core"})
  assert team.status_code == 201, team.text
  project = await client.post("/projects", json={"teamId": team.json()["id"], "name": "Board"})
  assert project.status_code == 201, project.text
  statuses = await client.get(f"/projects/{project.json()['id']}/statuses")
  assert statuses.status_code == 200, statuses.text
  return {"teamId": team.json()["id"], "projectId": project.json()["id"], "statuses": statuses.json()}
