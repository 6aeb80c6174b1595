from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.errors import NotFound
from jira_lite.models import Issue, Project, Team, TeamMember
from jira_lite.queries import first_active


async def find_active_member(db: AsyncSession, team_id: str, user_id: str) -> TeamMember | None:
  return await first_active(db, TeamMember, TeamMember.team_id == team_id, TeamMember.user_id == user_id)


async def require_team_membership(db: AsyncSession, team_id: str, user_id: str) -> tuple[Team, TeamMember]:
  team = await first_active(db, Team, Team.id == team_id)
  if not team:
    raise NotFound("Team not found")
  membership = await find_active_member(db, team.id, user_id)
  if not membership:
    raise NotFound("Team not found")
  return team, membership


async def require_project_access(db: AsyncSession, project_id: str, user_id: str) -> tuple[Project, TeamMember]:
  # Missing, deleted and not-a-member all look the same to the caller.
  project = await first_active(db, Project, Project.id == project_id)
  if not project:
    raise NotFound("Project not found")
  team = await first_active(db, Team, Team.id == project.team_id)
  if not team:
    raise NotFound("Project not found")
  membership = await find_active_member(db, team.id, user_id)
  if not membership:
    raise NotFound("Project not found")
  return project, membership


async def require_issue_access(db: AsyncSession, issue_id: str, user_id: str) -> tuple[Issue, Project, TeamMember]:
  issue = await first_active(db, Issue, Issue.id == issue_id)
  if not issue:
    raise NotFound("Issue not found")
  try:
    project, membership = await require_project_access(db, issue.project_id, user_id)
  except NotFound:
    raise NotFound("Issue not found") from None
  return issue, project, membership
