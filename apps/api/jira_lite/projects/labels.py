from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_manage_labels
from jira_lite.errors import Forbidden, LabelLimit
from jira_lite.membership import require_project_access
from jira_lite.models import ProjectLabel
from jira_lite.projects.statuses import normalize_color

LABEL_LIMIT = 20


async def list_labels(db: AsyncSession, project_id: str, user_id: str) -> list[ProjectLabel]:
  project, _membership = await require_project_access(db, project_id, user_id)
  res = await db.execute(select(ProjectLabel).where(ProjectLabel.project_id == project.id).order_by(ProjectLabel.created_at.asc()))
  return list(res.scalars().all())


async def create_label(db: AsyncSession, project_id: str, user_id: str, name: str, color: str) -> ProjectLabel:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_manage_labels(membership.role):
    raise Forbidden()
  res = await db.execute(select(func.count()).select_from(ProjectLabel).where(ProjectLabel.project_id == project.id))
  if int(res.scalar_one() or 0) >= LABEL_LIMIT:
    raise LabelLimit()
  label = ProjectLabel(project_id=project.id, name=name, color=normalize_color(color))
  db.add(label)
  await db.flush()
  return label
