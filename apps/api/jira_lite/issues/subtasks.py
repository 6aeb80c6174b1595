from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_edit_subtask
from jira_lite.errors import Forbidden, NotFound, SubtaskLimit
from jira_lite.membership import require_issue_access
from jira_lite.models import Subtask

logger = logging.getLogger("jira-lite.subtasks")

SUBTASK_LIMIT = 20


async def create_subtask(db: AsyncSession, issue_id: str, user_id: str, title: str) -> Subtask:
  # Any active team member may add a checklist entry.
  issue, _project, _membership = await require_issue_access(db, issue_id, user_id)
  res = await db.execute(select(func.count()).select_from(Subtask).where(Subtask.issue_id == issue.id))
  count = int(res.scalar_one() or 0)
  if count >= SUBTASK_LIMIT:
    raise SubtaskLimit()
  st = Subtask(issue_id=issue.id, title=title, position=count)
  db.add(st)
  await db.flush()
  logger.info("subtask %s added to issue %s", st.id, issue.id)
  return st


async def update_subtask(
  db: AsyncSession,
  subtask_id: str,
  user_id: str,
  *,
  title: str | None = None,
  completed: bool | None = None,
  issue_id: str | None = None,
) -> Subtask:
  res = await db.execute(select(Subtask).where(Subtask.id == subtask_id))
  st = res.scalar_one_or_none()
  if not st or (issue_id is not None and st.issue_id != issue_id):
    raise NotFound("Subtask not found")
  try:
    _issue, _project, membership = await require_issue_access(db, st.issue_id, user_id)
  except NotFound:
    raise NotFound("Subtask not found") from None
  if not can_edit_subtask(membership.role):
    raise Forbidden()

  if title is not None:
    st.title = title
  if completed is not None:
    st.completed = completed
  await db.flush()
  return st


async def reorder_subtasks(db: AsyncSession, issue_id: str, user_id: str, ordered_ids: Sequence[str]) -> list[Subtask]:
  issue, _project, _membership = await require_issue_access(db, issue_id, user_id)
  res = await db.execute(select(Subtask).where(Subtask.issue_id == issue.id))
  by_id = {st.id: st for st in res.scalars().all()}
  for sid in ordered_ids:
    if sid not in by_id:
      raise NotFound("Subtask not found")
  for idx, sid in enumerate(ordered_ids):
    by_id[sid].position = idx
  await db.flush()
  return sorted(by_id.values(), key=lambda st: st.position)
