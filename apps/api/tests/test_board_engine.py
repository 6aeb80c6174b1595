from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import add_member, create_user, make_board
from jira_lite.errors import (
  Forbidden,
  InvalidAssignee,
  InvalidLabels,
  InvalidStatus,
  IssueLimit,
  MissingDefaultStatus,
  NotFound,
  WipLimitReached,
)
from jira_lite.issues.service import (
  board_columns,
  create_issue,
  get_issue_detail,
  list_issues,
  move_issue,
  soft_delete_issue,
  update_issue,
)
from jira_lite.models import Issue, IssueHistory, IssueLabel, Status, TeamRole
from jira_lite.projects.labels import create_label
from jira_lite.projects.service import create_project
from jira_lite.projects.statuses import update_status_wip


async def _column(db: AsyncSession, status_id: str) -> list[tuple[str, int]]:
  res = await db.execute(
    select(Issue.title, Issue.status_order)
    .where(Issue.status_id == status_id, Issue.deleted_at.is_(None))
    .order_by(Issue.status_order.asc())
  )
  return [(t, o) for t, o in res.all()]


async def _history_count(db: AsyncSession, issue_id: str) -> int:
  res = await db.execute(select(func.count()).select_from(IssueHistory).where(IssueHistory.issue_id == issue_id))
  return int(res.scalar_one())


async def _issue(db: AsyncSession, board, title: str, **kwargs) -> Issue:
  return await create_issue(db, project_id=board.project.id, user_id=board.owner.id, title=title, **kwargs)


async def _assert_contiguous(db: AsyncSession, project_id: str) -> None:
  res = await db.execute(select(Status).where(Status.project_id == project_id, Status.deleted_at.is_(None)))
  for s in res.scalars().all():
    orders = [o for _t, o in await _column(db, s.id)]
    assert sorted(orders) == list(range(len(orders))), (s.name, orders)


@pytest.mark.anyio
async def test_create_appends_to_backlog(db: AsyncSession) -> None:
  board = await make_board(db)
  for title in ("A", "B", "C"):
    issue = await _issue(db, board, title)
    assert issue.status_id == board.backlog.id
    assert issue.owner_id == board.owner.id
    assert issue.priority == "MEDIUM"

  assert await _column(db, board.backlog.id) == [("A", 0), ("B", 1), ("C", 2)]


@pytest.mark.anyio
async def test_scenario_a_wip_limit_blocks_entry_and_leaves_orders(db: AsyncSession) -> None:
  board = await make_board(db)
  x = await _issue(db, board, "X")
  await move_issue(db, x.id, board.owner.id, board.in_progress.id, 0)
  await update_status_wip(db, board.project.id, board.in_progress.id, board.owner.id, 1)
  y = await _issue(db, board, "Y")
  await db.commit()

  with pytest.raises(WipLimitReached):
    await move_issue(db, y.id, board.owner.id, board.in_progress.id, 0)

  assert await _column(db, board.in_progress.id) == [("X", 0)]
  assert await _column(db, board.backlog.id) == [("Y", 0)]
  assert await _history_count(db, y.id) == 0


@pytest.mark.anyio
async def test_scenario_b_reorder_within_backlog(db: AsyncSession) -> None:
  board = await make_board(db)
  await _issue(db, board, "A")
  b = await _issue(db, board, "B")
  await _issue(db, board, "C")

  await move_issue(db, b.id, board.owner.id, board.backlog.id, 0)

  assert await _column(db, board.backlog.id) == [("B", 0), ("A", 1), ("C", 2)]
  assert await _history_count(db, b.id) == 0


@pytest.mark.anyio
async def test_scenario_c_move_across_columns(db: AsyncSession) -> None:
  board = await make_board(db)
  c = await _issue(db, board, "C")
  await move_issue(db, c.id, board.owner.id, board.in_progress.id, 0)
  a = await _issue(db, board, "A")
  await _issue(db, board, "B")

  await move_issue(db, a.id, board.owner.id, board.in_progress.id, 0)

  assert await _column(db, board.backlog.id) == [("B", 0)]
  assert await _column(db, board.in_progress.id) == [("A", 0), ("C", 1)]
  res = await db.execute(select(IssueHistory).where(IssueHistory.issue_id == a.id))
  rows = res.scalars().all()
  assert len(rows) == 1
  assert (rows[0].field, rows[0].old_value, rows[0].new_value) == ("status", board.backlog.id, board.in_progress.id)


@pytest.mark.anyio
async def test_scenario_d_issue_limit(db: AsyncSession) -> None:
  board = await make_board(db)
  db.add_all(
    [
      Issue(project_id=board.project.id, status_id=board.backlog.id, title=f"I{i}", owner_id=board.owner.id, status_order=i)
      for i in range(200)
    ]
  )
  await db.commit()

  with pytest.raises(IssueLimit):
    await _issue(db, board, "one too many")

  res = await db.execute(select(func.count()).select_from(Issue).where(Issue.project_id == board.project.id))
  assert res.scalar_one() == 200


@pytest.mark.anyio
async def test_no_op_move_keeps_orders(db: AsyncSession) -> None:
  board = await make_board(db)
  ids = [(await _issue(db, board, t)).id for t in ("A", "B", "C")]
  before = await _column(db, board.backlog.id)

  await move_issue(db, ids[1], board.owner.id, board.backlog.id, 1)

  assert await _column(db, board.backlog.id) == before
  assert await _history_count(db, ids[1]) == 0


@pytest.mark.anyio
async def test_reorder_inside_full_column_is_allowed(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A")
  b = await _issue(db, board, "B")
  for issue in (a, b):
    await move_issue(db, issue.id, board.owner.id, board.in_progress.id, 99)
  await update_status_wip(db, board.project.id, board.in_progress.id, board.owner.id, 2)

  await move_issue(db, b.id, board.owner.id, board.in_progress.id, 0)

  assert await _column(db, board.in_progress.id) == [("B", 0), ("A", 1)]


@pytest.mark.anyio
async def test_lowering_wip_below_count_only_blocks_new_entries(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A")
  b = await _issue(db, board, "B")
  c = await _issue(db, board, "C")
  for issue in (a, b):
    await move_issue(db, issue.id, board.owner.id, board.in_progress.id, 99)
  await update_status_wip(db, board.project.id, board.in_progress.id, board.owner.id, 1)
  await db.commit()

  with pytest.raises(WipLimitReached):
    await move_issue(db, c.id, board.owner.id, board.in_progress.id, 0)
  assert await _column(db, board.in_progress.id) == [("A", 0), ("B", 1)]
  assert await _column(db, board.backlog.id) == [("C", 0)]


@pytest.mark.anyio
async def test_contiguity_after_mixed_operations(db: AsyncSession) -> None:
  board = await make_board(db)
  issues = [await _issue(db, board, f"T{i}") for i in range(6)]

  await move_issue(db, issues[0].id, board.owner.id, board.in_progress.id, 0)
  await move_issue(db, issues[3].id, board.owner.id, board.in_progress.id, 0)
  await move_issue(db, issues[5].id, board.owner.id, board.backlog.id, 0)
  await soft_delete_issue(db, issues[2].id, board.owner.id)
  await move_issue(db, issues[4].id, board.owner.id, board.done.id, 7)
  await move_issue(db, issues[0].id, board.owner.id, board.backlog.id, 1)
  await update_issue(db, issues[1].id, board.owner.id, {"statusId": board.done.id})
  await _issue(db, board, "late")
  await soft_delete_issue(db, issues[3].id, board.owner.id)

  await _assert_contiguous(db, board.project.id)
  assert await _column(db, board.backlog.id) == [("T5", 0), ("T0", 1), ("late", 2)]
  assert await _column(db, board.done.id) == [("T4", 0), ("T1", 1)]
  assert await _column(db, board.in_progress.id) == []


@pytest.mark.anyio
async def test_move_to_status_of_other_project_is_invalid(db: AsyncSession) -> None:
  board = await make_board(db)
  other = await create_project(db, board.owner.id, board.team.id, "Other")
  res = await db.execute(select(Status).where(Status.project_id == other.id))
  foreign = res.scalars().first()
  a = await _issue(db, board, "A")

  with pytest.raises(InvalidStatus):
    await move_issue(db, a.id, board.owner.id, foreign.id, 0)
  with pytest.raises(InvalidStatus):
    await move_issue(db, a.id, board.owner.id, "missing", 0)


@pytest.mark.anyio
async def test_members_cannot_create_or_move(db: AsyncSession) -> None:
  board = await make_board(db)
  member = await create_user(db, "member@example.com")
  await add_member(db, board.team.id, member.id)
  a = await _issue(db, board, "A")

  with pytest.raises(Forbidden):
    await create_issue(db, project_id=board.project.id, user_id=member.id, title="nope")
  with pytest.raises(Forbidden):
    await move_issue(db, a.id, member.id, board.in_progress.id, 0)


@pytest.mark.anyio
async def test_outsiders_see_not_found(db: AsyncSession) -> None:
  board = await make_board(db)
  outsider = await create_user(db, "outsider@example.com")
  a = await _issue(db, board, "A")

  with pytest.raises(NotFound):
    await get_issue_detail(db, a.id, outsider.id)
  with pytest.raises(NotFound):
    await move_issue(db, a.id, outsider.id, board.in_progress.id, 0)
  with pytest.raises(NotFound):
    await create_issue(db, project_id=board.project.id, user_id=outsider.id, title="x")


@pytest.mark.anyio
async def test_foreign_label_is_rejected_without_writes(db: AsyncSession) -> None:
  board = await make_board(db)
  other = await create_project(db, board.owner.id, board.team.id, "Other")
  foreign = await create_label(db, other.id, board.owner.id, "bug", "#ff0000")
  own = await create_label(db, board.project.id, board.owner.id, "feat", "00ff00")
  a = await _issue(db, board, "A", labels=[own.id])
  await db.commit()

  with pytest.raises(InvalidLabels):
    await _issue(db, board, "B", labels=[foreign.id])
  with pytest.raises(InvalidLabels):
    await update_issue(db, a.id, board.owner.id, {"labels": [own.id, foreign.id], "title": "changed"})

  res = await db.execute(select(Issue.title).where(Issue.project_id == board.project.id))
  assert res.scalars().all() == ["A"]
  lres = await db.execute(select(IssueLabel.label_id).where(IssueLabel.issue_id == a.id))
  assert lres.scalars().all() == [own.id]
  assert await _history_count(db, a.id) == 0


@pytest.mark.anyio
async def test_more_than_five_labels_rejected(db: AsyncSession) -> None:
  board = await make_board(db)
  labels = [await create_label(db, board.project.id, board.owner.id, f"l{i}", "#123456") for i in range(6)]

  with pytest.raises(InvalidLabels):
    await _issue(db, board, "A", labels=[l.id for l in labels])


@pytest.mark.anyio
async def test_assignee_must_be_active_member(db: AsyncSession) -> None:
  board = await make_board(db)
  outsider = await create_user(db, "outsider@example.com")
  member = await create_user(db, "member@example.com")
  await add_member(db, board.team.id, member.id)

  with pytest.raises(InvalidAssignee):
    await _issue(db, board, "A", assignee_id=outsider.id)
  issue = await _issue(db, board, "B", assignee_id=member.id)
  assert issue.assignee_id == member.id


@pytest.mark.anyio
async def test_history_only_for_changed_values(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A", priority="LOW")

  await update_issue(db, a.id, board.owner.id, {"title": "A", "priority": "LOW"})
  assert await _history_count(db, a.id) == 0

  await update_issue(db, a.id, board.owner.id, {"title": "Renamed"})
  assert await _history_count(db, a.id) == 1

  await update_issue(db, a.id, board.owner.id, {"dueDate": "2026-05-01", "priority": "HIGH"})
  assert await _history_count(db, a.id) == 3

  await update_issue(db, a.id, board.owner.id, {"dueDate": "2026-05-01T00:00:00Z"})
  assert await _history_count(db, a.id) == 3

  detail = await get_issue_detail(db, a.id, board.owner.id)
  assert {h.field for h in detail.history} == {"title", "dueDate", "priority"}
  assert detail.issue.title == "Renamed"


@pytest.mark.anyio
async def test_update_status_appends_to_destination(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A")
  b = await _issue(db, board, "B")
  await move_issue(db, a.id, board.owner.id, board.done.id, 0)

  bundle = await update_issue(db, b.id, board.owner.id, {"statusId": board.done.id})

  assert bundle.status.id == board.done.id
  assert await _column(db, board.done.id) == [("A", 0), ("B", 1)]
  assert await _column(db, board.backlog.id) == []


@pytest.mark.anyio
async def test_update_status_respects_wip_limit(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A")
  b = await _issue(db, board, "B")
  await move_issue(db, a.id, board.owner.id, board.done.id, 0)
  await update_status_wip(db, board.project.id, board.done.id, board.owner.id, 1)
  await db.commit()

  with pytest.raises(WipLimitReached):
    await update_issue(db, b.id, board.owner.id, {"statusId": board.done.id})
  assert await _column(db, board.backlog.id) == [("B", 0)]


@pytest.mark.anyio
async def test_missing_backlog_status(db: AsyncSession) -> None:
  board = await make_board(db)
  board.backlog.kind = "CUSTOM"
  await db.flush()

  with pytest.raises(MissingDefaultStatus):
    await _issue(db, board, "A")


@pytest.mark.anyio
async def test_list_issues_filters_and_sorts(db: AsyncSession) -> None:
  board = await make_board(db)
  label = await create_label(db, board.project.id, board.owner.id, "bug", "#ff0000")
  await _issue(db, board, "Fix login", priority="LOW", labels=[label.id])
  await _issue(db, board, "Write docs", priority="HIGH", due_date="2026-04-01")
  await _issue(db, board, "fix 100% cpu", priority="MEDIUM")

  items, total = await list_issues(db, board.owner.id, project_id=board.project.id, search="FIX")
  assert total == 2
  assert {b.issue.title for b in items} == {"Fix login", "fix 100% cpu"}

  items, total = await list_issues(db, board.owner.id, project_id=board.project.id, search="100%")
  assert [b.issue.title for b in items] == ["fix 100% cpu"]

  items, _ = await list_issues(db, board.owner.id, project_id=board.project.id, sort="priority")
  assert [b.issue.priority for b in items] == ["HIGH", "MEDIUM", "LOW"]

  items, _ = await list_issues(db, board.owner.id, project_id=board.project.id, label_ids=[label.id])
  assert [b.issue.title for b in items] == ["Fix login"]
  assert [l.name for l in items[0].labels] == ["bug"]

  items, total = await list_issues(db, board.owner.id, project_id=board.project.id, has_due=True)
  assert total == 1 and items[0].issue.title == "Write docs"

  items, total = await list_issues(db, board.owner.id, project_id=board.project.id, page=2, page_size=2)
  assert total == 3 and len(items) == 1


@pytest.mark.anyio
async def test_board_columns_group_by_status(db: AsyncSession) -> None:
  board = await make_board(db)
  a = await _issue(db, board, "A")
  await _issue(db, board, "B")
  await move_issue(db, a.id, board.owner.id, board.done.id, 0)

  columns = await board_columns(db, board.project.id, board.owner.id)

  assert [s.name for s, _ in columns] == ["Backlog", "In Progress", "Done"]
  assert [[b.issue.title for b in bundles] for _, bundles in columns] == [["B"], [], ["A"]]


@pytest.mark.anyio
async def test_admin_can_edit_but_member_cannot(db: AsyncSession) -> None:
  board = await make_board(db)
  admin = await create_user(db, "admin@example.com")
  member = await create_user(db, "member@example.com")
  await add_member(db, board.team.id, admin.id, TeamRole.ADMIN)
  await add_member(db, board.team.id, member.id)
  a = await _issue(db, board, "A")

  bundle = await update_issue(db, a.id, admin.id, {"title": "By admin"})
  assert bundle.issue.title == "By admin"
  with pytest.raises(Forbidden):
    await update_issue(db, a.id, member.id, {"title": "By member"})
  with pytest.raises(Forbidden):
    await soft_delete_issue(db, a.id, member.id)
