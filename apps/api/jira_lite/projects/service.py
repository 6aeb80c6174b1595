from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_delete_project, can_manage_projects
from jira_lite.errors import Forbidden, ProjectLimit
from jira_lite.membership import require_project_access, require_team_membership
from jira_lite.models import Project, ProjectFavorite, Team, TeamMember, utcnow
from jira_lite.projects.statuses import provision_default_statuses
from jira_lite.queries import active, count_active

logger = logging.getLogger("jira-lite.projects")

PROJECT_LIMIT = 15


async def create_project(db: AsyncSession, user_id: str, team_id: str, name: str, description: str | None = None) -> Project:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_manage_projects(membership.role):
    raise Forbidden()
  if await count_active(db, Project, Project.team_id == team.id) >= PROJECT_LIMIT:
    raise ProjectLimit()

  project = Project(team_id=team.id, name=name, description=description)
  db.add(project)
  await db.flush()
  provision_default_statuses(db, project.id)
  await db.flush()
  logger.info("project %s created in team %s", project.id, team.id)
  return project


async def list_projects(db: AsyncSession, user_id: str, team_id: str | None = None) -> list[tuple[Project, bool]]:
  q = (
    active(Project)
    .join(Team, Team.id == Project.team_id)
    .join(TeamMember, TeamMember.team_id == Team.id)
    .where(Team.deleted_at.is_(None), TeamMember.user_id == user_id, TeamMember.deleted_at.is_(None))
    .order_by(Project.created_at.asc())
  )
  if team_id:
    q = q.where(Project.team_id == team_id)
  res = await db.execute(q)
  projects = list(res.scalars().all())
  fres = await db.execute(select(ProjectFavorite.project_id).where(ProjectFavorite.user_id == user_id))
  favorites = set(fres.scalars().all())
  return [(p, p.id in favorites) for p in projects]


async def _editable(db: AsyncSession, project_id: str, user_id: str) -> Project:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_manage_projects(membership.role):
    raise Forbidden()
  return project


async def update_project(db: AsyncSession, project_id: str, user_id: str, *, name: str, description: str | None = None) -> Project:
  project = await _editable(db, project_id, user_id)
  project.name = name
  project.description = description
  await db.flush()
  return project


async def toggle_archive(db: AsyncSession, project_id: str, user_id: str) -> Project:
  project = await _editable(db, project_id, user_id)
  project.archived_at = None if project.archived_at else utcnow()
  await db.flush()
  return project


async def soft_delete_project(db: AsyncSession, project_id: str, user_id: str) -> None:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_delete_project(membership.role):
    raise Forbidden("Only owner can delete")
  project.deleted_at = utcnow()
  await db.flush()
  logger.info("project %s deleted by %s", project.id, user_id)


async def toggle_favorite(db: AsyncSession, project_id: str, user_id: str) -> bool:
  project, _membership = await require_project_access(db, project_id, user_id)
  res = await db.execute(select(ProjectFavorite).where(ProjectFavorite.project_id == project.id, ProjectFavorite.user_id == user_id))
  existing = res.scalar_one_or_none()
  if existing:
    await db.delete(existing)
    await db.flush()
    return False
  db.add(ProjectFavorite(project_id=project.id, user_id=user_id))
  await db.flush()
  return True
