from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_comment, can_manage_comment
from jira_lite.errors import Forbidden, NotFound
from jira_lite.membership import find_active_member, require_issue_access
from jira_lite.models import Comment, Issue, Project, User, utcnow
from jira_lite.queries import active, count_active, first_active


async def create_comment(db: AsyncSession, issue_id: str, user_id: str, content: str) -> Comment:
  issue, _project, membership = await require_issue_access(db, issue_id, user_id)
  if not can_comment(membership.role):
    raise Forbidden()
  c = Comment(issue_id=issue.id, author_id=user_id, content=content)
  db.add(c)
  await db.flush()
  return c


async def list_comments(
  db: AsyncSession, issue_id: str, user_id: str, *, page: int = 1, page_size: int = 20
) -> tuple[list[tuple[Comment, User]], int]:
  issue, _project, _membership = await require_issue_access(db, issue_id, user_id)
  page = max(1, int(page))
  page_size = min(max(1, int(page_size)), 100)
  total = await count_active(db, Comment, Comment.issue_id == issue.id)
  res = await db.execute(
    active(Comment, Comment.issue_id == issue.id)
    .add_columns(User)
    .join(User, User.id == Comment.author_id)
    .order_by(Comment.created_at.asc(), Comment.id.asc())
    .offset((page - 1) * page_size)
    .limit(page_size)
  )
  return [(c, u) for c, u in res.all()], total


async def _manageable(db: AsyncSession, comment_id: str, user_id: str) -> Comment:
  comment = await first_active(db, Comment, Comment.id == comment_id)
  if not comment:
    raise NotFound("Comment not found")
  issue = await first_active(db, Issue, Issue.id == comment.issue_id)
  if not issue:
    raise NotFound("Comment not found")
  project = await first_active(db, Project, Project.id == issue.project_id)
  if not project:
    raise NotFound("Comment not found")
  membership = await find_active_member(db, project.team_id, user_id)
  role = membership.role if membership else None
  if not can_manage_comment(role, comment.author_id, user_id):
    raise Forbidden()
  return comment


async def update_comment(db: AsyncSession, comment_id: str, user_id: str, content: str) -> Comment:
  comment = await _manageable(db, comment_id, user_id)
  comment.content = content
  await db.flush()
  return comment


async def soft_delete_comment(db: AsyncSession, comment_id: str, user_id: str) -> None:
  comment = await _manageable(db, comment_id, user_id)
  comment.deleted_at = utcnow()
  await db.flush()
