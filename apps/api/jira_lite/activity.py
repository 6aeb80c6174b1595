from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.models import TeamActivity


async def log_team_activity(db: AsyncSession, *, team_id: str, actor_id: str, type: str, message: str) -> None:
  db.add(TeamActivity(team_id=team_id, actor_id=actor_id, type=type, message=message))
