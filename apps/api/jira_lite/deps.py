from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Cookie, Depends, HTTPException, Request, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.db import SessionLocal
from jira_lite.models import Session as DbSession, User, as_utc, utcnow
from jira_lite.security import SESSION_COOKIE_NAME


async def get_db() -> AsyncIterator[AsyncSession]:
  async with SessionLocal() as session:
    try:
      yield session
    except Exception:
      await session.rollback()
      raise


async def get_current_user(
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> User:
  if not session_id:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

  res = await db.execute(select(DbSession).where(DbSession.id == session_id))
  s = res.scalar_one_or_none()
  if not s:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
  if as_utc(s.expires_at) < utcnow():
    await db.execute(delete(DbSession).where(DbSession.id == s.id))
    await db.commit()
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")

  ures = await db.execute(select(User).where(User.id == s.user_id, User.deleted_at.is_(None)))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
  return u


def client_ip(request: Request) -> str | None:
  return request.client.host if request.client else None
