from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Cookie, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.config import settings
from jira_lite.deps import client_ip, get_current_user, get_db
from jira_lite.errors import InvalidOperation
from jira_lite.models import PasswordResetToken, Session as DbSession, Team, TeamMember, User, as_utc, utcnow
from jira_lite.notifications.mailer import send_password_reset_email
from jira_lite.queries import count_active
from jira_lite.rate_limit import limiter
from jira_lite.schemas import (
  AccountDeleteIn,
  LoginIn,
  PasswordChangeIn,
  PasswordResetConfirmIn,
  PasswordResetRequestIn,
  ProfileUpdateIn,
  RegisterIn,
  UserOut,
)
from jira_lite.security import (
  SESSION_COOKIE_NAME,
  hash_password,
  new_reset_expires_at,
  new_reset_token,
  new_session_expires_at,
  new_session_token,
  reset_token_hash,
  verify_password,
)

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger("jira-lite.auth")


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, name=u.name, image=u.image)


def _rate_limit_or_429(*, key: str, limit: int, window_seconds: int) -> None:
  allowed, retry_after = limiter.hit(key, limit=limit, window_seconds=window_seconds)
  if allowed:
    return
  raise HTTPException(
    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
    detail={"code": "rate_limited", "message": "Too many requests", "retryAfterSeconds": retry_after},
    headers={"Retry-After": str(retry_after)},
  )


async def _start_session(db: AsyncSession, u: User, request: Request, response: Response) -> None:
  s = DbSession(
    id=new_session_token(),
    user_id=u.id,
    expires_at=new_session_expires_at(),
    created_ip=client_ip(request),
    user_agent=request.headers.get("user-agent"),
  )
  db.add(s)
  await db.commit()
  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(settings.session_ttl_days * 86400),
    expires=s.expires_at,
    path="/",
  )


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  email = payload.email.strip().lower()
  res = await db.execute(select(User).where(User.email == email))
  if res.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
  u = User(email=email, name=payload.name.strip(), password_hash=hash_password(payload.password))
  db.add(u)
  await db.flush()
  await _start_session(db, u, request, response)
  logger.info("user %s registered", u.id)
  return _user_out(u)


@router.post("/login", response_model=UserOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  ip = client_ip(request) or "unknown"
  email = (payload.email or "").strip().lower()
  _rate_limit_or_429(key=f"auth:login:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  if email:
    _rate_limit_or_429(key=f"auth:login:email:{email}", limit=int(settings.rate_limit_login_email_per_minute), window_seconds=60)

  res = await db.execute(select(User).where(User.email == email, User.deleted_at.is_(None)))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    logger.info("failed login for %s from %s", email, ip)
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

  await _start_session(db, u, request, response)
  return _user_out(u)


@router.post("/logout")
async def logout(
  response: Response,
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> dict:
  if session_id:
    await db.execute(delete(DbSession).where(DbSession.id == session_id))
    await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  return {"ok": True}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return _user_out(user)


@router.patch("/me", response_model=UserOut)
async def update_profile(payload: ProfileUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> UserOut:
  user.name = payload.name
  user.image = payload.image
  await db.commit()
  return _user_out(user)


@router.post("/change-password")
async def change_password(
  payload: PasswordChangeIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  session_id: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> dict:
  if not verify_password(payload.currentPassword, user.password_hash):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
  user.password_hash = hash_password(payload.newPassword)
  # The session making the change stays signed in.
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id, DbSession.id != session_id))
  await db.commit()
  logger.info("password changed for %s", user.id)
  return {"ok": True}


@router.delete("/me")
async def delete_account(
  payload: AccountDeleteIn,
  response: Response,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  if await count_active(db, Team, Team.owner_id == user.id):
    raise InvalidOperation("Transfer or delete owned teams first")
  if not verify_password(payload.password, user.password_hash):
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid password")

  now = utcnow()
  user.deleted_at = now
  user.password_hash = None
  await db.execute(update(TeamMember).where(TeamMember.user_id == user.id, TeamMember.deleted_at.is_(None)).values(deleted_at=now))
  await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
  await db.execute(delete(DbSession).where(DbSession.user_id == user.id))
  await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  logger.info("account %s deleted", user.id)
  return {"ok": True}


@router.post("/password-reset/request")
async def password_reset_request(
  payload: PasswordResetRequestIn,
  request: Request,
  background: BackgroundTasks,
  db: AsyncSession = Depends(get_db),
) -> dict:
  ip = client_ip(request) or "unknown"
  email = (payload.email or "").strip().lower()
  _rate_limit_or_429(key=f"auth:pwreset:ip:{ip}", limit=int(settings.rate_limit_login_ip_per_minute), window_seconds=60)
  if email:
    _rate_limit_or_429(key=f"auth:pwreset:email:{email}", limit=int(settings.rate_limit_password_reset_email_per_minute), window_seconds=60)

  # Always ok so the response does not reveal which emails exist.
  res = await db.execute(select(User).where(User.email == email, User.deleted_at.is_(None)))
  u = res.scalar_one_or_none()
  if not u:
    return {"ok": True}

  token = new_reset_token()
  await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == u.id))
  db.add(PasswordResetToken(user_id=u.id, token_hash=reset_token_hash(token), expires_at=new_reset_expires_at()))
  await db.commit()

  background.add_task(send_password_reset_email, to_addr=u.email, token=token)
  return {"ok": True}


@router.post("/password-reset/confirm")
async def password_reset_confirm(payload: PasswordResetConfirmIn, db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(select(PasswordResetToken).where(PasswordResetToken.token_hash == reset_token_hash(payload.token)))
  t = res.scalar_one_or_none()
  if not t or as_utc(t.expires_at) < utcnow():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")

  ures = await db.execute(select(User).where(User.id == t.user_id, User.deleted_at.is_(None)))
  u = ures.scalar_one_or_none()
  if not u:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")

  u.password_hash = hash_password(payload.newPassword)
  await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == u.id))
  # Existing sessions die with the old password.
  await db.execute(delete(DbSession).where(DbSession.user_id == u.id))
  await db.commit()
  logger.info("password reset completed for %s", u.id)
  return {"ok": True}
