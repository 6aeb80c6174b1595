from __future__ import annotations

from jira_lite.models import TeamRole

_EDITORS = frozenset({TeamRole.OWNER, TeamRole.ADMIN})
_OWNER_ONLY = frozenset({TeamRole.OWNER})
_EVERYONE = frozenset({TeamRole.OWNER, TeamRole.ADMIN, TeamRole.MEMBER})

# action -> roles allowed to perform it
CAPABILITIES: dict[str, frozenset[TeamRole]] = {
  "edit_project": _EDITORS,
  "create_issue": _EDITORS,
  "edit_issue": _EDITORS,
  "move_issue": _EDITORS,
  "delete_issue": _EDITORS,
  "manage_statuses": _EDITORS,
  "change_wip": _EDITORS,
  "manage_labels": _EDITORS,
  "edit_subtask": _EDITORS,
  "manage_projects": _EDITORS,
  "manage_team": _EDITORS,
  "delete_project": _OWNER_ONLY,
  "delete_team": _OWNER_ONLY,
  "change_roles": _OWNER_ONLY,
  "remove_admin": _OWNER_ONLY,
  "comment": _EVERYONE,
}


def _role(value: TeamRole | str | None) -> TeamRole | None:
  if value is None:
    return None
  if isinstance(value, TeamRole):
    return value
  try:
    return TeamRole(str(value))
  except ValueError:
    return None


def can(role: TeamRole | str | None, action: str) -> bool:
  r = _role(role)
  if r is None:
    return False
  return r in CAPABILITIES[action]


def can_edit_project(role: TeamRole | str | None) -> bool:
  return can(role, "edit_project")


def can_create_issue(role: TeamRole | str | None) -> bool:
  return can(role, "create_issue")


def can_edit_issue(role: TeamRole | str | None) -> bool:
  return can(role, "edit_issue")


def can_move_issue(role: TeamRole | str | None) -> bool:
  return can(role, "move_issue")


def can_delete_issue(role: TeamRole | str | None) -> bool:
  return can(role, "delete_issue")


def can_manage_statuses(role: TeamRole | str | None) -> bool:
  return can(role, "manage_statuses")


def can_change_wip(role: TeamRole | str | None) -> bool:
  return can(role, "change_wip")


def can_manage_labels(role: TeamRole | str | None) -> bool:
  return can(role, "manage_labels")


def can_edit_subtask(role: TeamRole | str | None) -> bool:
  return can(role, "edit_subtask")


def can_manage_projects(role: TeamRole | str | None) -> bool:
  return can(role, "manage_projects")


def can_delete_project(role: TeamRole | str | None) -> bool:
  return can(role, "delete_project")


def can_manage_team(role: TeamRole | str | None) -> bool:
  return can(role, "manage_team")


def can_delete_team(role: TeamRole | str | None) -> bool:
  return can(role, "delete_team")


def can_change_roles(role: TeamRole | str | None) -> bool:
  return can(role, "change_roles")


def can_remove_admin(role: TeamRole | str | None) -> bool:
  return can(role, "remove_admin")


def can_comment(role: TeamRole | str | None) -> bool:
  return can(role, "comment")


def can_manage_comment(role: TeamRole | str | None, author_id: str, user_id: str) -> bool:
  """Authors always manage their own comments; editors manage anyone's."""
  if user_id == author_id:
    return True
  return can_edit_project(role)
