from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_change_wip, can_manage_statuses
from jira_lite.errors import Forbidden, InvalidStatus, StatusLimit
from jira_lite.membership import require_project_access
from jira_lite.models import Status, StatusKind
from jira_lite.queries import active, count_active, first_active

logger = logging.getLogger("jira-lite.statuses")

CUSTOM_STATUS_LIMIT = 5
WIP_LIMIT_MAX = 50

DEFAULT_STATUSES: list[tuple[str, StatusKind, str]] = [
  ("Backlog", StatusKind.BACKLOG, "#9CA3AF"),
  ("In Progress", StatusKind.IN_PROGRESS, "#2563EB"),
  ("Done", StatusKind.DONE, "#10B981"),
]


def normalize_color(color: str) -> str:
  c = (color or "").strip()
  return c if c.startswith("#") else f"#{c}"


def provision_default_statuses(db: AsyncSession, project_id: str) -> list[Status]:
  out = []
  for idx, (name, kind, color) in enumerate(DEFAULT_STATUSES):
    s = Status(project_id=project_id, name=name, kind=kind.value, color=color, position=idx, wip_limit=0)
    db.add(s)
    out.append(s)
  return out


async def list_statuses(db: AsyncSession, project_id: str, user_id: str) -> list[Status]:
  project, _membership = await require_project_access(db, project_id, user_id)
  res = await db.execute(active(Status, Status.project_id == project.id).order_by(Status.position.asc(), Status.created_at.asc()))
  return list(res.scalars().all())


async def create_status(db: AsyncSession, project_id: str, user_id: str, name: str, color: str, wip_limit: int = 0) -> Status:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_manage_statuses(membership.role):
    raise Forbidden()

  custom = await count_active(db, Status, Status.project_id == project.id, Status.kind == StatusKind.CUSTOM.value)
  if custom >= CUSTOM_STATUS_LIMIT:
    raise StatusLimit()

  position = await count_active(db, Status, Status.project_id == project.id)
  s = Status(
    project_id=project.id,
    name=name,
    color=normalize_color(color),
    position=position,
    kind=StatusKind.CUSTOM.value,
    wip_limit=int(wip_limit or 0),
  )
  db.add(s)
  await db.flush()
  logger.info("status %s created in project %s", s.id, project.id)
  return s


async def update_status_wip(db: AsyncSession, project_id: str, status_id: str, user_id: str, wip_limit: int) -> Status:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_change_wip(membership.role):
    raise Forbidden()
  if wip_limit < 0 or wip_limit > WIP_LIMIT_MAX:
    raise InvalidStatus(f"wipLimit must be between 0 and {WIP_LIMIT_MAX}")
  s = await first_active(db, Status, Status.id == status_id, Status.project_id == project.id)
  if not s:
    raise InvalidStatus()
  # Lowering below the current count is allowed; only entering is capped.
  s.wip_limit = wip_limit
  await db.flush()
  logger.info("status %s wip limit set to %s", s.id, wip_limit)
  return s


async def reorder_statuses(db: AsyncSession, project_id: str, user_id: str, order: Iterable[tuple[str, int]]) -> None:
  """Apply ``(status_id, position)`` pairs as given.

  Positions are not checked for being a permutation of the project's
  columns; duplicates or gaps supplied by the caller are stored as-is.
  """
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_manage_statuses(membership.role):
    raise Forbidden()
  for status_id, position in order:
    s = await first_active(db, Status, Status.id == status_id, Status.project_id == project.id)
    if not s:
      raise InvalidStatus()
    s.position = int(position)
  await db.flush()
