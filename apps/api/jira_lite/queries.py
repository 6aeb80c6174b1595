from __future__ import annotations

from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession


def active(model: Any, *criteria: Any) -> Select:
  """select() over a soft-deletable model with the tombstone filter applied."""
  return select(model).where(model.deleted_at.is_(None), *criteria)


async def count_active(db: AsyncSession, model: Any, *criteria: Any) -> int:
  res = await db.execute(select(func.count()).select_from(model).where(model.deleted_at.is_(None), *criteria))
  return int(res.scalar_one() or 0)


async def first_active(db: AsyncSession, model: Any, *criteria: Any) -> Any | None:
  res = await db.execute(active(model, *criteria).limit(1))
  return res.scalar_one_or_none()
