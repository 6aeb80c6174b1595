from __future__ import annotations


class BoardError(Exception):
  """Base for every business-rule failure raised by the service layer.

  Each subclass carries a stable ``code`` and the HTTP status the API
  renders it with. Raising inside a unit of work aborts it; the request
  session is rolled back before the response is produced.
  """

  code = "board_error"
  status_code = 400
  default_message = "Request could not be completed"

  def __init__(self, message: str | None = None) -> None:
    self.message = message or self.default_message
    super().__init__(self.message)


class NotFound(BoardError):
  # Also used when the caller has no membership path to the entity.
  code = "not_found"
  status_code = 404
  default_message = "Not found"


class Forbidden(BoardError):
  code = "forbidden"
  status_code = 403
  default_message = "Forbidden"


class InvalidStatus(BoardError):
  code = "invalid_status"
  default_message = "Invalid status"


class InvalidLabels(BoardError):
  code = "invalid_labels"
  default_message = "Invalid labels for project"


class InvalidAssignee(BoardError):
  code = "invalid_assignee"
  default_message = "Assignee must be a team member"


class IssueLimit(BoardError):
  code = "issue_limit"
  default_message = "Issue limit reached"


class LabelLimit(BoardError):
  code = "label_limit"
  default_message = "Label limit reached"


class SubtaskLimit(BoardError):
  code = "subtask_limit"
  default_message = "Subtask limit reached"


class StatusLimit(BoardError):
  code = "status_limit"
  default_message = "Status limit reached"


class ProjectLimit(BoardError):
  code = "project_limit"
  default_message = "Project limit reached"


class WipLimitReached(BoardError):
  code = "wip_limit_reached"
  status_code = 409
  default_message = "WIP limit reached"


class InvalidInvite(BoardError):
  code = "invalid_invite"
  default_message = "Invite invalid or expired"


class InvalidOperation(BoardError):
  code = "invalid_operation"
  default_message = "Operation not allowed"


class MissingDefaultStatus(BoardError):
  """A project without a BACKLOG status; a provisioning bug, not user error."""

  code = "missing_default_status"
  status_code = 500
  default_message = "Missing default status"
