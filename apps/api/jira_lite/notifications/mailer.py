from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from jira_lite.config import settings

logger = logging.getLogger("jira-lite.mail")


def _send_sync(*, to_addr: str, subject: str, body: str) -> None:
  m = EmailMessage()
  m["Subject"] = subject
  m["From"] = settings.mail_from
  m["To"] = to_addr
  m.set_content(body)
  with smtplib.SMTP(host=settings.smtp_host, port=int(settings.smtp_port), timeout=15) as s:
    s.ehlo()
    if settings.smtp_starttls:
      s.starttls()
      s.ehlo()
    if settings.smtp_username and settings.smtp_password:
      s.login(settings.smtp_username, settings.smtp_password)
    s.send_message(m)


async def send_mail(*, to_addr: str, subject: str, body: str) -> bool:
  """Deliver a plain-text message. Returns False instead of raising on failure."""
  if not settings.mail_enabled:
    logger.info("mail disabled; dropping %r to %s", subject, to_addr)
    return False
  try:
    await asyncio.to_thread(_send_sync, to_addr=to_addr, subject=subject, body=body)
  except (OSError, smtplib.SMTPException):
    logger.warning("failed to send %r to %s", subject, to_addr, exc_info=True)
    return False
  logger.info("sent %r to %s", subject, to_addr)
  return True


async def send_password_reset_email(*, to_addr: str, token: str) -> bool:
  base = settings.app_url.rstrip("/")
  reset_url = f"{base}/reset-password?token={token}"
  body = (
    "A password reset was requested for your account.\n\n"
    f"Reset link: {reset_url}\n\n"
    "If you did not request this, you can ignore this email."
  )
  return await send_mail(to_addr=to_addr, subject="Jira Lite password reset", body=body)


async def send_team_invite_email(*, to_addr: str, team_name: str, inviter_name: str, token: str) -> bool:
  base = settings.app_url.rstrip("/")
  invite_url = f"{base}/invite/{token}"
  body = (
    f"{inviter_name} invited you to join {team_name} on Jira Lite.\n\n"
    f"Accept the invite: {invite_url}\n\n"
    f"This link expires in {settings.invite_ttl_days} days."
  )
  return await send_mail(to_addr=to_addr, subject=f"Join {team_name} on Jira Lite", body=body)
