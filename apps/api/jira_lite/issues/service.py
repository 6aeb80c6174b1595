from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from dateutil import parser as dateparser
from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jira_lite.access import can_create_issue, can_delete_issue, can_edit_issue, can_move_issue
from jira_lite.errors import (
  Forbidden,
  InvalidAssignee,
  InvalidLabels,
  InvalidStatus,
  IssueLimit,
  MissingDefaultStatus,
  WipLimitReached,
)
from jira_lite.issues.ordering import reposition, without
from jira_lite.membership import find_active_member, require_issue_access, require_project_access
from jira_lite.models import (
  Issue,
  IssueHistory,
  IssueLabel,
  IssuePriority,
  ProjectLabel,
  Status,
  StatusKind,
  Subtask,
  as_utc,
  new_id,
  utcnow,
)
from jira_lite.queries import active, count_active, first_active

logger = logging.getLogger("jira-lite.issues")

ISSUE_LIMIT = 200
LABELS_PER_ISSUE_LIMIT = 5
HISTORY_PAGE = 50

# update payload key -> (model attribute, history field)
_TRACKED_FIELDS: dict[str, tuple[str, str]] = {
  "title": ("title", "title"),
  "description": ("description", "description"),
  "assigneeId": ("assignee_id", "assignee"),
  "dueDate": ("due_date", "dueDate"),
  "priority": ("priority", "priority"),
}

_PRIORITY_RANK = {IssuePriority.HIGH.value: 0, IssuePriority.MEDIUM.value: 1, IssuePriority.LOW.value: 2}


@dataclass
class IssueBundle:
  issue: Issue
  status: Status
  labels: list[ProjectLabel] = field(default_factory=list)
  subtasks: list[Subtask] = field(default_factory=list)
  history: list[IssueHistory] = field(default_factory=list)


def parse_optional_date(value: Any) -> datetime | None:
  """Lenient due-date parsing: blank or unparseable input yields None."""
  if value is None:
    return None
  if isinstance(value, datetime):
    return as_utc(value)
  s = str(value).strip()
  if not s:
    return None
  try:
    dt = dateparser.isoparse(s)
  except ValueError:
    try:
      dt = dateparser.parse(s)
    except (ValueError, OverflowError):
      return None
  return as_utc(dt)


def _history_value(value: Any) -> str | None:
  if value is None:
    return None
  if isinstance(value, datetime):
    return as_utc(value).isoformat()
  if isinstance(value, IssuePriority):
    return value.value
  return str(value)


def _priority_value(value: Any) -> str:
  if isinstance(value, IssuePriority):
    return value.value
  return IssuePriority(str(value)).value


async def record_history(
  db: AsyncSession,
  issue_id: str,
  actor_id: str,
  field_name: str,
  old_value: Any,
  new_value: Any,
) -> IssueHistory | None:
  old = _history_value(old_value)
  new = _history_value(new_value)
  if old == new:
    return None
  row = IssueHistory(issue_id=issue_id, actor_id=actor_id, field=field_name, old_value=old, new_value=new)
  db.add(row)
  return row


async def _backlog_status(db: AsyncSession, project_id: str) -> Status:
  res = await db.execute(
    active(Status, Status.project_id == project_id, Status.kind == StatusKind.BACKLOG.value).order_by(Status.position.asc()).limit(1)
  )
  backlog = res.scalar_one_or_none()
  if not backlog:
    logger.error("project %s has no BACKLOG status", project_id)
    raise MissingDefaultStatus()
  return backlog


async def _validate_labels(db: AsyncSession, project_id: str, label_ids: Sequence[str]) -> None:
  if len(label_ids) > LABELS_PER_ISSUE_LIMIT:
    raise InvalidLabels("Too many labels")
  if not label_ids:
    return
  res = await db.execute(
    select(func.count()).select_from(ProjectLabel).where(ProjectLabel.id.in_(list(label_ids)), ProjectLabel.project_id == project_id)
  )
  if int(res.scalar_one() or 0) != len(label_ids):
    raise InvalidLabels()


async def _validate_assignee(db: AsyncSession, team_id: str, assignee_id: str | None) -> None:
  if not assignee_id:
    return
  if not await find_active_member(db, team_id, assignee_id):
    raise InvalidAssignee()


async def _column(db: AsyncSession, status_id: str) -> list[Issue]:
  res = await db.execute(
    active(Issue, Issue.status_id == status_id).order_by(Issue.status_order.asc(), Issue.created_at.asc(), Issue.id.asc())
  )
  return list(res.scalars().all())


def _write_column(issues_by_id: Mapping[str, Issue], ordered_ids: Sequence[str], status_id: str) -> None:
  # Unchanged values produce no UPDATE, so a no-op move writes nothing.
  for idx, iid in enumerate(ordered_ids):
    x = issues_by_id[iid]
    x.status_id = status_id
    x.status_order = idx


async def _renumber_column(db: AsyncSession, status_id: str, *, exclude_id: str | None = None) -> None:
  col = [x for x in await _column(db, status_id) if x.id != exclude_id]
  _write_column({x.id: x for x in col}, [x.id for x in col], status_id)


async def create_issue(
  db: AsyncSession,
  *,
  project_id: str,
  user_id: str,
  title: str,
  description: str | None = None,
  assignee_id: str | None = None,
  due_date: str | datetime | None = None,
  priority: IssuePriority | str = IssuePriority.MEDIUM,
  labels: Sequence[str] | None = None,
) -> Issue:
  project, membership = await require_project_access(db, project_id, user_id)
  if not can_create_issue(membership.role):
    raise Forbidden()

  if await count_active(db, Issue, Issue.project_id == project.id) >= ISSUE_LIMIT:
    raise IssueLimit()

  backlog = await _backlog_status(db, project.id)

  label_ids = list(labels or [])
  await _validate_labels(db, project.id, label_ids)
  await _validate_assignee(db, project.team_id, assignee_id)

  order = await count_active(db, Issue, Issue.status_id == backlog.id)
  issue = Issue(
    id=new_id(),
    project_id=project.id,
    status_id=backlog.id,
    title=title,
    description=description,
    priority=_priority_value(priority or IssuePriority.MEDIUM),
    due_date=parse_optional_date(due_date),
    assignee_id=assignee_id or None,
    owner_id=user_id,
    status_order=order,
  )
  db.add(issue)
  await db.flush()
  for lid in label_ids:
    db.add(IssueLabel(issue_id=issue.id, label_id=lid))
  await db.flush()
  logger.info("issue %s created in project %s by %s", issue.id, project.id, user_id)
  return issue


async def update_issue(db: AsyncSession, issue_id: str, user_id: str, changes: Mapping[str, Any]) -> IssueBundle:
  """Apply a partial update; ``changes`` holds only the keys the caller supplied."""
  issue, project, membership = await require_issue_access(db, issue_id, user_id)
  if not can_edit_issue(membership.role):
    raise Forbidden()

  label_ids = changes.get("labels")
  if label_ids is not None:
    label_ids = list(label_ids)
    await _validate_labels(db, issue.project_id, label_ids)
  if changes.get("assigneeId"):
    await _validate_assignee(db, project.team_id, changes["assigneeId"])

  new_status_id = changes.get("statusId")
  if new_status_id and new_status_id != issue.status_id:
    dest = await first_active(db, Status, Status.id == new_status_id, Status.project_id == issue.project_id)
    if not dest:
      raise InvalidStatus()
    dest_count = await count_active(db, Issue, Issue.status_id == dest.id)
    if dest.wip_limit > 0 and dest_count >= dest.wip_limit:
      raise WipLimitReached()
    from_status_id = issue.status_id
    issue.status_id = dest.id
    issue.status_order = dest_count
    await _renumber_column(db, from_status_id, exclude_id=issue.id)
    await record_history(db, issue.id, user_id, "status", from_status_id, dest.id)

  for key, (attr, history_field) in _TRACKED_FIELDS.items():
    if key not in changes:
      continue
    value = changes[key]
    if key == "title" and value is None:
      continue
    if key == "dueDate":
      value = parse_optional_date(value)
    elif key == "priority":
      if value is None:
        continue
      value = _priority_value(value)
    elif key == "assigneeId":
      value = value or None
    old = getattr(issue, attr)
    setattr(issue, attr, value)
    await record_history(db, issue.id, user_id, history_field, old, value)

  if label_ids is not None:
    await db.execute(delete(IssueLabel).where(IssueLabel.issue_id == issue.id))
    for lid in label_ids:
      db.add(IssueLabel(issue_id=issue.id, label_id=lid))

  await db.flush()
  logger.info("issue %s updated by %s", issue.id, user_id)
  return await load_issue_bundle(db, issue.id)


async def move_issue(db: AsyncSession, issue_id: str, user_id: str, to_status_id: str, to_order: int) -> Issue:
  """Relocate an issue to ``to_order`` within ``to_status_id``.

  Both affected columns are rewritten in full as 0..n-1. Every read and
  write happens on ``db``; the caller commits, and any error raised here
  leaves the previous ordering untouched once the session rolls back.
  """
  issue, _project, membership = await require_issue_access(db, issue_id, user_id)
  if not can_move_issue(membership.role):
    raise Forbidden()

  dest = await first_active(db, Status, Status.id == to_status_id, Status.project_id == issue.project_id)
  if not dest:
    raise InvalidStatus()

  from_status_id = issue.status_id
  same_column = dest.id == from_status_id

  # Entering a column is capped; reordering inside it never is.
  if not same_column and dest.wip_limit > 0:
    if await count_active(db, Issue, Issue.status_id == dest.id) >= dest.wip_limit:
      raise WipLimitReached()

  if same_column:
    col = await _column(db, dest.id)
    by_id = {x.id: x for x in col}
    by_id[issue.id] = issue
    _write_column(by_id, reposition([x.id for x in col], issue.id, to_order), dest.id)
  else:
    origin = await _column(db, from_status_id)
    by_id = {x.id: x for x in origin}
    _write_column(by_id, without([x.id for x in origin], issue.id), from_status_id)

    target = await _column(db, dest.id)
    by_id = {x.id: x for x in target}
    by_id[issue.id] = issue
    _write_column(by_id, reposition([x.id for x in target], issue.id, to_order), dest.id)

    await record_history(db, issue.id, user_id, "status", from_status_id, dest.id)

  await db.flush()
  logger.info("issue %s moved to status %s at %s by %s", issue.id, dest.id, issue.status_order, user_id)
  return issue


async def soft_delete_issue(db: AsyncSession, issue_id: str, user_id: str) -> None:
  issue, _project, membership = await require_issue_access(db, issue_id, user_id)
  if not can_delete_issue(membership.role):
    raise Forbidden()
  issue.deleted_at = utcnow()
  await db.flush()
  await _renumber_column(db, issue.status_id)
  await db.flush()
  logger.info("issue %s deleted by %s", issue.id, user_id)


async def _bundles(db: AsyncSession, issues: Sequence[Issue]) -> list[IssueBundle]:
  if not issues:
    return []
  ids = [i.id for i in issues]
  sres = await db.execute(select(Status).where(Status.id.in_(list({i.status_id for i in issues}))))
  statuses = {s.id: s for s in sres.scalars().all()}

  labels: dict[str, list[ProjectLabel]] = {iid: [] for iid in ids}
  lres = await db.execute(
    select(IssueLabel.issue_id, ProjectLabel)
    .join(ProjectLabel, ProjectLabel.id == IssueLabel.label_id)
    .where(IssueLabel.issue_id.in_(ids))
    .order_by(ProjectLabel.created_at.asc(), ProjectLabel.name.asc())
  )
  for iid, label in lres.all():
    labels[iid].append(label)

  subtasks: dict[str, list[Subtask]] = {iid: [] for iid in ids}
  tres = await db.execute(select(Subtask).where(Subtask.issue_id.in_(ids)).order_by(Subtask.position.asc(), Subtask.created_at.asc()))
  for st in tres.scalars().all():
    subtasks[st.issue_id].append(st)

  return [IssueBundle(issue=i, status=statuses[i.status_id], labels=labels[i.id], subtasks=subtasks[i.id]) for i in issues]


async def load_issue_bundle(db: AsyncSession, issue_id: str, *, with_history: bool = False) -> IssueBundle:
  res = await db.execute(select(Issue).where(Issue.id == issue_id).execution_options(populate_existing=True))
  issue = res.scalar_one()
  bundle = (await _bundles(db, [issue]))[0]
  if with_history:
    hres = await db.execute(
      select(IssueHistory)
      .where(IssueHistory.issue_id == issue.id)
      .order_by(IssueHistory.created_at.desc(), IssueHistory.id.desc())
      .limit(HISTORY_PAGE)
    )
    bundle.history = list(hres.scalars().all())
  return bundle


async def get_issue_detail(db: AsyncSession, issue_id: str, user_id: str) -> IssueBundle:
  issue, _project, _membership = await require_issue_access(db, issue_id, user_id)
  return await load_issue_bundle(db, issue.id, with_history=True)


async def list_issues(
  db: AsyncSession,
  user_id: str,
  *,
  project_id: str,
  search: str | None = None,
  status_ids: Sequence[str] | None = None,
  assignee_id: str | None = None,
  priority: IssuePriority | str | None = None,
  label_ids: Sequence[str] | None = None,
  due_from: datetime | None = None,
  due_to: datetime | None = None,
  has_due: bool | None = None,
  sort: str = "createdAt",
  page: int = 1,
  page_size: int = 20,
) -> tuple[list[IssueBundle], int]:
  project, _membership = await require_project_access(db, project_id, user_id)

  criteria: list[Any] = [Issue.project_id == project.id]
  if status_ids:
    criteria.append(Issue.status_id.in_(list(status_ids)))
  if assignee_id:
    criteria.append(Issue.assignee_id == assignee_id)
  if priority:
    criteria.append(Issue.priority == _priority_value(priority))
  if has_due is not None:
    criteria.append(Issue.due_date.is_not(None) if has_due else Issue.due_date.is_(None))
  if due_from is not None:
    criteria.append(Issue.due_date >= as_utc(due_from))
  if due_to is not None:
    criteria.append(Issue.due_date <= as_utc(due_to))
  if label_ids:
    criteria.append(Issue.id.in_(select(IssueLabel.issue_id).where(IssueLabel.label_id.in_(list(label_ids)))))
  if search:
    criteria.append(func.lower(Issue.title).contains(search.strip().lower(), autoescape=True))

  total = await count_active(db, Issue, *criteria)

  sort_columns = {
    "createdAt": Issue.created_at,
    "updatedAt": Issue.updated_at,
    "dueDate": Issue.due_date,
    "priority": case(_PRIORITY_RANK, value=Issue.priority, else_=len(_PRIORITY_RANK)),
  }
  order_col = sort_columns.get(sort, Issue.created_at)
  page = max(1, int(page))
  page_size = min(max(1, int(page_size)), 100)
  res = await db.execute(
    active(Issue, *criteria).order_by(order_col.asc(), Issue.id.asc()).offset((page - 1) * page_size).limit(page_size)
  )
  return await _bundles(db, list(res.scalars().all())), total


async def board_columns(db: AsyncSession, project_id: str, user_id: str) -> list[tuple[Status, list[IssueBundle]]]:
  project, _membership = await require_project_access(db, project_id, user_id)
  sres = await db.execute(active(Status, Status.project_id == project.id).order_by(Status.position.asc(), Status.created_at.asc()))
  statuses = list(sres.scalars().all())
  ires = await db.execute(active(Issue, Issue.project_id == project.id).order_by(Issue.status_order.asc(), Issue.created_at.asc()))
  bundles = await _bundles(db, list(ires.scalars().all()))
  by_status: dict[str, list[IssueBundle]] = {s.id: [] for s in statuses}
  for b in bundles:
    if b.issue.status_id in by_status:
      by_status[b.issue.status_id].append(b)
  return [(s, by_status[s.id]) for s in statuses]
