from __future__ import annotations

import logging
from time import monotonic

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import delete
from starlette.middleware.trustedhost import TrustedHostMiddleware

from jira_lite.config import settings
from jira_lite.db import SessionLocal
from jira_lite.errors import BoardError
from jira_lite.models import PasswordResetToken, Session as DbSession, utcnow
from jira_lite.routers.auth import router as auth_router
from jira_lite.routers.comments import router as comments_router
from jira_lite.routers.issues import router as issues_router
from jira_lite.routers.projects import router as projects_router
from jira_lite.routers.teams import router as teams_router

logging.basicConfig(
  level=getattr(logging, settings.log_level.upper(), logging.INFO),
  format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("jira-lite")

app = FastAPI(title="Jira Lite API", version=settings.app_version)


@app.exception_handler(BoardError)
async def _board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
  if exc.status_code >= 500:
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)
  else:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.code)
  return JSONResponse(status_code=exc.status_code, content={"detail": {"code": exc.code, "message": exc.message}})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(teams_router)
app.include_router(projects_router)
app.include_router(issues_router)
app.include_router(comments_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  start = monotonic()
  response = await call_next(request)
  elapsed_ms = (monotonic() - start) * 1000.0
  logger.debug("%s %s -> %s in %.1fms", request.method, request.url.path, response.status_code, elapsed_ms)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True, "version": settings.app_version}


def _is_test_db() -> bool:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  return "test" in db_name


async def _purge_expired_credentials() -> None:
  now = utcnow()
  async with SessionLocal() as db:
    await db.execute(delete(DbSession).where(DbSession.expires_at < now))
    await db.execute(delete(PasswordResetToken).where(PasswordResetToken.expires_at < now))
    await db.commit()


@app.on_event("startup")
async def _startup() -> None:
  if _is_test_db():
    return
  if not settings.app_secret or settings.app_secret.strip().lower() in {"dev-secret-change-me", "replace_with_strong_random_secret"}:
    raise RuntimeError("APP_SECRET is required and must not be a placeholder")
  await _purge_expired_credentials()
  logger.info("jira-lite api %s started", settings.app_version)
