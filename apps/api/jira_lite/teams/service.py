from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_change_roles, can_delete_team, can_manage_team, can_remove_admin
from jira_lite.activity import log_team_activity
from jira_lite.config import settings
from jira_lite.errors import Forbidden, InvalidInvite, InvalidOperation, NotFound
from jira_lite.membership import require_team_membership
from jira_lite.models import Team, TeamActivity, TeamInvite, TeamMember, TeamRole, User, as_utc, utcnow
from jira_lite.queries import active, first_active

logger = logging.getLogger("jira-lite.teams")

ACTIVITY_PAGE = 100


async def _user_email(db: AsyncSession, user_id: str) -> str:
  res = await db.execute(select(User.email).where(User.id == user_id))
  return res.scalar_one_or_none() or user_id


async def create_team(db: AsyncSession, user_id: str, name: str) -> Team:
  team = Team(name=name, owner_id=user_id)
  db.add(team)
  await db.flush()
  db.add(TeamMember(team_id=team.id, user_id=user_id, role=TeamRole.OWNER.value))
  email = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="team_created", message=f"{email} created the team")
  await db.flush()
  logger.info("team %s created by %s", team.id, user_id)
  return team


async def list_teams(db: AsyncSession, user_id: str) -> list[tuple[Team, TeamMember]]:
  res = await db.execute(
    active(TeamMember, TeamMember.user_id == user_id)
    .add_columns(Team)
    .join(Team, Team.id == TeamMember.team_id)
    .where(Team.deleted_at.is_(None))
    .order_by(Team.created_at.asc())
  )
  return [(t, m) for m, t in res.all()]


async def list_members(db: AsyncSession, team_id: str, user_id: str) -> list[tuple[TeamMember, User]]:
  team, _membership = await require_team_membership(db, team_id, user_id)
  res = await db.execute(
    active(TeamMember, TeamMember.team_id == team.id)
    .add_columns(User)
    .join(User, User.id == TeamMember.user_id)
    .order_by(TeamMember.created_at.asc())
  )
  return [(m, u) for m, u in res.all()]


async def rename_team(db: AsyncSession, team_id: str, user_id: str, name: str) -> Team:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_manage_team(membership.role):
    raise Forbidden()
  team.name = name
  email = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="team_renamed", message=f"{email} renamed the team to {name}")
  await db.flush()
  return team


async def delete_team(db: AsyncSession, team_id: str, user_id: str) -> None:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_delete_team(membership.role):
    raise Forbidden("Only owner can delete")
  now = utcnow()
  team.deleted_at = now
  await db.execute(update(TeamMember).where(TeamMember.team_id == team.id).values(deleted_at=now))
  await db.execute(delete(TeamInvite).where(TeamInvite.team_id == team.id))
  await db.flush()
  logger.info("team %s deleted by %s", team.id, user_id)


async def invite_member(db: AsyncSession, team_id: str, user_id: str, email: str) -> tuple[Team, TeamInvite]:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_manage_team(membership.role):
    raise Forbidden()
  normalized = email.strip().lower()
  token = secrets.token_hex(24)
  expires_at = utcnow() + timedelta(days=settings.invite_ttl_days)

  res = await db.execute(select(TeamInvite).where(TeamInvite.team_id == team.id, TeamInvite.email == normalized))
  invite = res.scalar_one_or_none()
  if invite:
    invite.token = token
    invite.expires_at = expires_at
    invite.accepted_at = None
    invite.created_by_id = user_id
  else:
    invite = TeamInvite(team_id=team.id, email=normalized, token=token, expires_at=expires_at, created_by_id=user_id)
    db.add(invite)

  actor = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="invite_sent", message=f"{actor} invited {normalized}")
  await db.flush()
  return team, invite


async def resend_invite(db: AsyncSession, team_id: str, invite_id: str, user_id: str) -> tuple[Team, TeamInvite]:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_manage_team(membership.role):
    raise Forbidden()
  res = await db.execute(select(TeamInvite).where(TeamInvite.id == invite_id, TeamInvite.team_id == team.id))
  invite = res.scalar_one_or_none()
  if not invite:
    raise NotFound("Invite not found")
  invite.token = secrets.token_hex(24)
  invite.expires_at = utcnow() + timedelta(days=settings.invite_ttl_days)
  invite.accepted_at = None

  actor = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="invite_resent", message=f"{actor} re-sent the invite to {invite.email}")
  await db.flush()
  return team, invite


async def get_invite(db: AsyncSession, token: str) -> tuple[TeamInvite, Team]:
  res = await db.execute(select(TeamInvite).where(TeamInvite.token == token))
  invite = res.scalar_one_or_none()
  if not invite or as_utc(invite.expires_at) < utcnow():
    raise InvalidInvite()
  team = await first_active(db, Team, Team.id == invite.team_id)
  if not team:
    raise InvalidInvite()
  return invite, team


async def accept_invite(db: AsyncSession, token: str, user_id: str) -> Team:
  invite, team = await get_invite(db, token)
  invite.accepted_at = utcnow()

  res = await db.execute(select(TeamMember).where(TeamMember.team_id == team.id, TeamMember.user_id == user_id))
  existing = res.scalar_one_or_none()
  if existing:
    # Rejoining keeps the previous role.
    existing.deleted_at = None
  else:
    db.add(TeamMember(team_id=team.id, user_id=user_id, role=TeamRole.MEMBER.value))

  email = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="invite_accepted", message=f"{email} joined {team.name}")
  await db.flush()
  return team


async def _target_member(db: AsyncSession, team_id: str, member_id: str) -> TeamMember:
  target = await first_active(db, TeamMember, TeamMember.id == member_id, TeamMember.team_id == team_id)
  if not target:
    raise NotFound("Member not found")
  return target


async def change_role(db: AsyncSession, team_id: str, member_id: str, user_id: str, role: TeamRole | str) -> TeamRole:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_change_roles(membership.role):
    raise Forbidden("Only owner can change roles")
  new_role = TeamRole(role)
  target = await _target_member(db, team.id, member_id)
  actor = await _user_email(db, user_id)
  target_email = await _user_email(db, target.user_id)

  if target.user_id == membership.user_id and new_role != TeamRole.OWNER:
    raise InvalidOperation("Transfer ownership to another member first")

  if new_role == TeamRole.OWNER:
    if target.id != membership.id:
      target.role = TeamRole.OWNER.value
      team.owner_id = target.user_id
      membership.role = TeamRole.ADMIN.value
      await log_team_activity(
        db, team_id=team.id, actor_id=user_id, type="ownership_transferred", message=f"{actor} transferred ownership to {target_email}"
      )
    await db.flush()
    return TeamRole.OWNER

  target.role = new_role.value
  await log_team_activity(
    db, team_id=team.id, actor_id=user_id, type="role_changed", message=f"{actor} set {target_email} role to {new_role.value}"
  )
  await db.flush()
  return new_role


async def leave_team(db: AsyncSession, team_id: str, user_id: str) -> None:
  team, membership = await require_team_membership(db, team_id, user_id)
  if membership.role == TeamRole.OWNER.value:
    raise InvalidOperation("Owner cannot leave. Transfer or delete team.")
  membership.deleted_at = utcnow()
  email = await _user_email(db, user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="member_left", message=f"{email} left the team")
  await db.flush()


async def kick_member(db: AsyncSession, team_id: str, member_id: str, user_id: str) -> None:
  team, membership = await require_team_membership(db, team_id, user_id)
  if not can_manage_team(membership.role):
    raise Forbidden()
  target = await _target_member(db, team.id, member_id)
  if target.role == TeamRole.OWNER.value:
    raise InvalidOperation("Cannot kick owner")
  if target.role == TeamRole.ADMIN.value and not can_remove_admin(membership.role):
    raise Forbidden("Only owner can remove admins")
  target.deleted_at = utcnow()
  actor = await _user_email(db, user_id)
  target_email = await _user_email(db, target.user_id)
  await log_team_activity(db, team_id=team.id, actor_id=user_id, type="member_removed", message=f"{actor} removed {target_email}")
  await db.flush()


async def list_activity(db: AsyncSession, team_id: str, user_id: str) -> list[TeamActivity]:
  team, _membership = await require_team_membership(db, team_id, user_id)
  res = await db.execute(
    select(TeamActivity).where(TeamActivity.team_id == team.id).order_by(TeamActivity.created_at.desc()).limit(ACTIVITY_PAGE)
  )
  return list(res.scalars().all())
