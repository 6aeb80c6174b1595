from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext

from jira_lite.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE_NAME = "jl_session"


def hash_password(password: str) -> str:
  return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
  # Deleted accounts have no hash and never verify.
  if not password_hash:
    return False
  return pwd_context.verify(password, password_hash)


def new_session_token() -> str:
  return secrets.token_urlsafe(32)


def new_session_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(days=settings.session_ttl_days)


def new_reset_token() -> str:
  return secrets.token_urlsafe(32)


def reset_token_hash(token: str) -> str:
  # HMAC-SHA256 keyed with app_secret; only the digest is stored.
  key = (settings.app_secret or "").encode("utf-8")
  msg = (token or "").strip().encode("utf-8")
  return hmac.new(key, msg, hashlib.sha256).hexdigest()


def new_reset_expires_at() -> datetime:
  return datetime.now(timezone.utc) + timedelta(minutes=settings.password_reset_ttl_minutes)
