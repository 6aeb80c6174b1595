from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.comments import service as comments
from jira_lite.deps import get_current_user, get_db
from jira_lite.issues import service as issues
from jira_lite.issues import subtasks as subtask_service
from jira_lite.issues.service import IssueBundle
from jira_lite.models import Comment, IssueHistory, Subtask, User
from jira_lite.schemas import (
  CommentCreateIn,
  CommentOut,
  CommentPageOut,
  HistoryOut,
  IssueCreateIn,
  IssueDetailOut,
  IssueMoveIn,
  IssueOut,
  IssuePageOut,
  IssueUpdateIn,
  LabelOut,
  SubtaskCreateIn,
  SubtaskOut,
  SubtaskReorderIn,
  SubtaskUpdateIn,
)

router = APIRouter(tags=["issues"])


def _subtask_out(st: Subtask) -> SubtaskOut:
  return SubtaskOut(id=st.id, issueId=st.issue_id, title=st.title, completed=st.completed, position=st.position)


def _history_out(h: IssueHistory) -> HistoryOut:
  return HistoryOut(id=h.id, actorId=h.actor_id, field=h.field, oldValue=h.old_value, newValue=h.new_value, createdAt=h.created_at)


def comment_out(c: Comment, author: User | None = None) -> CommentOut:
  return CommentOut(
    id=c.id,
    issueId=c.issue_id,
    authorId=c.author_id,
    authorName=author.name if author else None,
    content=c.content,
    createdAt=c.created_at,
    updatedAt=c.updated_at,
  )


def _issue_fields(b: IssueBundle) -> dict:
  i = b.issue
  return {
    "id": i.id,
    "projectId": i.project_id,
    "statusId": i.status_id,
    "statusName": b.status.name,
    "title": i.title,
    "description": i.description,
    "priority": i.priority,
    "dueDate": i.due_date,
    "assigneeId": i.assignee_id,
    "ownerId": i.owner_id,
    "statusOrder": i.status_order,
    "labels": [LabelOut(id=l.id, projectId=l.project_id, name=l.name, color=l.color) for l in b.labels],
    "subtasks": [_subtask_out(st) for st in b.subtasks],
    "createdAt": i.created_at,
    "updatedAt": i.updated_at,
  }


def issue_out(b: IssueBundle) -> IssueOut:
  return IssueOut(**_issue_fields(b))


def _issue_detail_out(b: IssueBundle) -> IssueDetailOut:
  return IssueDetailOut(**_issue_fields(b), history=[_history_out(h) for h in b.history])


@router.get("/issues", response_model=IssuePageOut)
async def list_issues(
  projectId: str,
  search: str | None = None,
  statusId: list[str] | None = Query(default=None),
  assigneeId: str | None = None,
  priority: Literal["HIGH", "MEDIUM", "LOW"] | None = None,
  labelId: list[str] | None = Query(default=None),
  dueFrom: datetime | None = None,
  dueTo: datetime | None = None,
  hasDue: bool | None = None,
  sort: Literal["createdAt", "updatedAt", "dueDate", "priority"] = "createdAt",
  page: int = Query(default=1, ge=1),
  pageSize: int = Query(default=20, ge=1, le=100),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> IssuePageOut:
  bundles, total = await issues.list_issues(
    db,
    user.id,
    project_id=projectId,
    search=search,
    status_ids=statusId,
    assignee_id=assigneeId,
    priority=priority,
    label_ids=labelId,
    due_from=dueFrom,
    due_to=dueTo,
    has_due=hasDue,
    sort=sort,
    page=page,
    page_size=pageSize,
  )
  return IssuePageOut(items=[issue_out(b) for b in bundles], total=total, page=page, pageSize=pageSize)


@router.post("/issues", response_model=IssueOut, status_code=201)
async def create_issue(payload: IssueCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> IssueOut:
  issue = await issues.create_issue(
    db,
    project_id=payload.projectId,
    user_id=user.id,
    title=payload.title.strip(),
    description=payload.description,
    assignee_id=payload.assigneeId,
    due_date=payload.dueDate,
    priority=payload.priority,
    labels=payload.labels,
  )
  await db.commit()
  return issue_out(await issues.load_issue_bundle(db, issue.id))


@router.get("/issues/{issue_id}", response_model=IssueDetailOut)
async def get_issue(issue_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> IssueDetailOut:
  return _issue_detail_out(await issues.get_issue_detail(db, issue_id, user.id))


@router.patch("/issues/{issue_id}", response_model=IssueOut)
async def update_issue(
  issue_id: str,
  payload: IssueUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> IssueOut:
  bundle = await issues.update_issue(db, issue_id, user.id, payload.model_dump(exclude_unset=True))
  await db.commit()
  return issue_out(bundle)


@router.delete("/issues/{issue_id}")
async def delete_issue(issue_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await issues.soft_delete_issue(db, issue_id, user.id)
  await db.commit()
  return {"ok": True}


@router.post("/issues/{issue_id}/move", response_model=IssueOut)
async def move_issue(
  issue_id: str,
  payload: IssueMoveIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> IssueOut:
  issue = await issues.move_issue(db, issue_id, user.id, payload.toStatusId, payload.toOrder)
  await db.commit()
  return issue_out(await issues.load_issue_bundle(db, issue.id))


@router.post("/issues/{issue_id}/subtasks", response_model=SubtaskOut, status_code=201)
async def create_subtask(
  issue_id: str,
  payload: SubtaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  st = await subtask_service.create_subtask(db, issue_id, user.id, payload.title.strip())
  await db.commit()
  return _subtask_out(st)


@router.patch("/issues/{issue_id}/subtasks", response_model=SubtaskOut)
async def update_subtask(
  issue_id: str,
  payload: SubtaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  st = await subtask_service.update_subtask(
    db, payload.subtaskId, user.id, title=payload.title, completed=payload.completed, issue_id=issue_id
  )
  await db.commit()
  return _subtask_out(st)


@router.post("/issues/{issue_id}/subtasks/reorder", response_model=list[SubtaskOut])
async def reorder_subtasks(
  issue_id: str,
  payload: SubtaskReorderIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[SubtaskOut]:
  ordered = await subtask_service.reorder_subtasks(db, issue_id, user.id, payload.subtaskIds)
  await db.commit()
  return [_subtask_out(st) for st in ordered]


@router.get("/issues/{issue_id}/comments", response_model=CommentPageOut)
async def list_comments(
  issue_id: str,
  page: int = Query(default=1, ge=1),
  pageSize: int = Query(default=20, ge=1, le=100),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentPageOut:
  rows, total = await comments.list_comments(db, issue_id, user.id, page=page, page_size=pageSize)
  return CommentPageOut(items=[comment_out(c, u) for c, u in rows], total=total)


@router.post("/issues/{issue_id}/comments", response_model=CommentOut, status_code=201)
async def create_comment(
  issue_id: str,
  payload: CommentCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  c = await comments.create_comment(db, issue_id, user.id, payload.content)
  await db.commit()
  return comment_out(c, user)
