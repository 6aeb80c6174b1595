from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.comments import service as comments
from jira_lite.deps import get_current_user, get_db
from jira_lite.models import User
from jira_lite.routers.issues import comment_out
from jira_lite.schemas import CommentOut, CommentUpdateIn

router = APIRouter(tags=["comments"])


@router.patch("/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
  comment_id: str,
  payload: CommentUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  c = await comments.update_comment(db, comment_id, user.id, payload.content)
  await db.commit()
  return comment_out(c)


@router.delete("/comments/{comment_id}")
async def delete_comment(comment_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await comments.soft_delete_comment(db, comment_id, user.id)
  await db.commit()
  return {"ok": True}
