from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.deps import get_current_user, get_db
from jira_lite.membership import require_team_membership
from jira_lite.models import Team, TeamActivity, TeamMember, User
from jira_lite.notifications.mailer import send_team_invite_email
from jira_lite.schemas import (
  InviteCreateIn,
  InviteOut,
  RoleChangeIn,
  TeamActivityOut,
  TeamCreateIn,
  TeamMemberOut,
  TeamOut,
  TeamUpdateIn,
)
from jira_lite.teams import service as teams

router = APIRouter(tags=["teams"])


def _team_out(t: Team, m: TeamMember) -> TeamOut:
  return TeamOut(id=t.id, name=t.name, ownerId=t.owner_id, role=m.role, createdAt=t.created_at)


def _member_out(m: TeamMember, u: User) -> TeamMemberOut:
  return TeamMemberOut(id=m.id, userId=u.id, email=u.email, name=u.name, role=m.role, joinedAt=m.created_at)


def _activity_out(a: TeamActivity) -> TeamActivityOut:
  return TeamActivityOut(id=a.id, actorId=a.actor_id, type=a.type, message=a.message, createdAt=a.created_at)


async def _team_for(db: AsyncSession, team_id: str, user_id: str) -> TeamOut:
  t, m = await require_team_membership(db, team_id, user_id)
  return _team_out(t, m)


@router.post("/teams", response_model=TeamOut, status_code=201)
async def create_team(payload: TeamCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TeamOut:
  team = await teams.create_team(db, user.id, payload.name.strip())
  await db.commit()
  return await _team_for(db, team.id, user.id)


@router.get("/teams", response_model=list[TeamOut])
async def list_teams(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TeamOut]:
  return [_team_out(t, m) for t, m in await teams.list_teams(db, user.id)]


@router.patch("/teams/{team_id}", response_model=TeamOut)
async def rename_team(
  team_id: str,
  payload: TeamUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TeamOut:
  team = await teams.rename_team(db, team_id, user.id, payload.name.strip())
  await db.commit()
  return await _team_for(db, team.id, user.id)


@router.delete("/teams/{team_id}")
async def delete_team(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await teams.delete_team(db, team_id, user.id)
  await db.commit()
  return {"ok": True}


@router.get("/teams/{team_id}/members", response_model=list[TeamMemberOut])
async def list_members(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TeamMemberOut]:
  return [_member_out(m, u) for m, u in await teams.list_members(db, team_id, user.id)]


@router.get("/teams/{team_id}/activity", response_model=list[TeamActivityOut])
async def list_activity(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TeamActivityOut]:
  return [_activity_out(a) for a in await teams.list_activity(db, team_id, user.id)]


@router.post("/teams/{team_id}/invites", response_model=InviteOut, status_code=201)
async def invite_member(
  team_id: str,
  payload: InviteCreateIn,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InviteOut:
  team, invite = await teams.invite_member(db, team_id, user.id, payload.email)
  await db.commit()
  background.add_task(
    send_team_invite_email, to_addr=invite.email, team_name=team.name, inviter_name=user.name, token=invite.token
  )
  return InviteOut(id=invite.id, teamId=team.id, teamName=team.name, email=invite.email, expiresAt=invite.expires_at)


@router.post("/teams/{team_id}/invites/{invite_id}/resend", response_model=InviteOut)
async def resend_invite(
  team_id: str,
  invite_id: str,
  background: BackgroundTasks,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> InviteOut:
  team, invite = await teams.resend_invite(db, team_id, invite_id, user.id)
  await db.commit()
  background.add_task(
    send_team_invite_email, to_addr=invite.email, team_name=team.name, inviter_name=user.name, token=invite.token
  )
  return InviteOut(id=invite.id, teamId=team.id, teamName=team.name, email=invite.email, expiresAt=invite.expires_at)


@router.get("/invites/{token}", response_model=InviteOut)
async def get_invite(token: str, db: AsyncSession = Depends(get_db)) -> InviteOut:
  invite, team = await teams.get_invite(db, token)
  return InviteOut(id=invite.id, teamId=team.id, teamName=team.name, email=invite.email, expiresAt=invite.expires_at)


@router.post("/invites/{token}/accept", response_model=TeamOut)
async def accept_invite(token: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TeamOut:
  team = await teams.accept_invite(db, token, user.id)
  await db.commit()
  return await _team_for(db, team.id, user.id)


@router.post("/teams/{team_id}/members/{member_id}/role")
async def change_role(
  team_id: str,
  member_id: str,
  payload: RoleChangeIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  role = await teams.change_role(db, team_id, member_id, user.id, payload.role)
  await db.commit()
  return {"ok": True, "role": role.value}


@router.post("/teams/{team_id}/members/{member_id}/kick")
async def kick_member(team_id: str, member_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await teams.kick_member(db, team_id, member_id, user.id)
  await db.commit()
  return {"ok": True}


@router.post("/teams/{team_id}/leave")
async def leave_team(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await teams.leave_team(db, team_id, user.id)
  await db.commit()
  return {"ok": True}
