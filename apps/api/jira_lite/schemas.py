from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

COLOR_PATTERN = r"^#?[0-9A-Fa-f]{6}$"

Priority = Literal["HIGH", "MEDIUM", "LOW"]
Role = Literal["OWNER", "ADMIN", "MEMBER"]


def _blank_to_none(value: object) -> object:
  if isinstance(value, str) and not value.strip():
    return None
  return value


class UserOut(BaseModel):
  id: str
  email: str
  name: str
  image: str | None = None


class RegisterIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  name: str = Field(min_length=1, max_length=100)
  password: str = Field(min_length=6, max_length=100)


class LoginIn(BaseModel):
  email: str
  password: str


class PasswordResetRequestIn(BaseModel):
  email: str


class PasswordResetConfirmIn(BaseModel):
  token: str
  newPassword: str = Field(min_length=6, max_length=100)


class ProfileUpdateIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)
  image: str | None = Field(default=None, max_length=2048, pattern=r"^https?://\S+$")

  @field_validator("name", mode="before")
  @classmethod
  def _strip_name(cls, v: object) -> object:
    return v.strip() if isinstance(v, str) else v

  @field_validator("image", mode="before")
  @classmethod
  def _blank_image(cls, v: object) -> object:
    return _blank_to_none(v)


class PasswordChangeIn(BaseModel):
  currentPassword: str = Field(min_length=6, max_length=100)
  newPassword: str = Field(min_length=6, max_length=100)


class AccountDeleteIn(BaseModel):
  password: str = Field(min_length=6, max_length=100)


class TeamCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)


class TeamUpdateIn(BaseModel):
  name: str = Field(min_length=1, max_length=50)


class TeamOut(BaseModel):
  id: str
  name: str
  ownerId: str
  role: Role
  createdAt: datetime


class TeamMemberOut(BaseModel):
  id: str
  userId: str
  email: str
  name: str
  role: Role
  joinedAt: datetime


class TeamActivityOut(BaseModel):
  id: str
  actorId: str
  type: str
  message: str
  createdAt: datetime


class InviteCreateIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)


class InviteOut(BaseModel):
  id: str
  teamId: str
  teamName: str
  email: str
  expiresAt: datetime


class RoleChangeIn(BaseModel):
  role: Role


class ProjectCreateIn(BaseModel):
  teamId: str
  name: str = Field(min_length=1, max_length=100)
  description: str | None = Field(default=None, max_length=5000)


class ProjectUpdateIn(BaseModel):
  name: str = Field(min_length=1, max_length=100)
  description: str | None = Field(default=None, max_length=5000)


class ProjectOut(BaseModel):
  id: str
  teamId: str
  name: str
  description: str | None
  archived: bool
  favorite: bool = False
  createdAt: datetime
  updatedAt: datetime


class StatusCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=40)
  color: str = Field(pattern=COLOR_PATTERN)
  wipLimit: int = Field(default=0, ge=0, le=50)


class StatusWipIn(BaseModel):
  wipLimit: int = Field(ge=0, le=50)


class StatusPositionIn(BaseModel):
  statusId: str
  position: int


class StatusReorderIn(BaseModel):
  order: list[StatusPositionIn]


class StatusOut(BaseModel):
  id: str
  projectId: str
  name: str
  color: str
  position: int
  kind: str
  wipLimit: int


class LabelCreateIn(BaseModel):
  name: str = Field(min_length=1, max_length=40)
  color: str = Field(pattern=COLOR_PATTERN)


class LabelOut(BaseModel):
  id: str
  projectId: str
  name: str
  color: str


class IssueCreateIn(BaseModel):
  projectId: str
  title: str = Field(min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=5000)
  assigneeId: str | None = None
  dueDate: str | None = None
  priority: Priority = "MEDIUM"
  labels: list[str] = Field(default_factory=list, max_length=5)

  @field_validator("assigneeId", "dueDate", mode="before")
  @classmethod
  def _blank(cls, v: object) -> object:
    return _blank_to_none(v)


class IssueUpdateIn(BaseModel):
  """Partial update; only the keys present in the request body are applied."""

  title: str | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = Field(default=None, max_length=5000)
  assigneeId: str | None = None
  dueDate: str | None = None
  priority: Priority | None = None
  statusId: str | None = None
  labels: list[str] | None = Field(default=None, max_length=5)

  @field_validator("assigneeId", "dueDate", mode="before")
  @classmethod
  def _blank(cls, v: object) -> object:
    return _blank_to_none(v)

  @field_validator("title", mode="before")
  @classmethod
  def _strip_title(cls, v: object) -> object:
    return v.strip() if isinstance(v, str) else v


class IssueMoveIn(BaseModel):
  toStatusId: str
  toOrder: int = Field(ge=0)


class SubtaskOut(BaseModel):
  id: str
  issueId: str
  title: str
  completed: bool
  position: int


class SubtaskCreateIn(BaseModel):
  title: str = Field(min_length=1, max_length=200)


class SubtaskUpdateIn(BaseModel):
  subtaskId: str
  title: str | None = Field(default=None, min_length=1, max_length=200)
  completed: bool | None = None


class SubtaskReorderIn(BaseModel):
  subtaskIds: list[str] = Field(max_length=20)


class HistoryOut(BaseModel):
  id: str
  actorId: str
  field: str
  oldValue: str | None
  newValue: str | None
  createdAt: datetime


class IssueOut(BaseModel):
  id: str
  projectId: str
  statusId: str
  statusName: str
  title: str
  description: str | None
  priority: Priority
  dueDate: datetime | None
  assigneeId: str | None
  ownerId: str
  statusOrder: int
  labels: list[LabelOut] = []
  subtasks: list[SubtaskOut] = []
  createdAt: datetime
  updatedAt: datetime


class IssueDetailOut(IssueOut):
  history: list[HistoryOut] = []


class IssuePageOut(BaseModel):
  items: list[IssueOut]
  total: int
  page: int
  pageSize: int


class BoardColumnOut(BaseModel):
  status: StatusOut
  issues: list[IssueOut]


class BoardOut(BaseModel):
  projectId: str
  columns: list[BoardColumnOut]


class CommentCreateIn(BaseModel):
  content: str = Field(min_length=1, max_length=5000)


class CommentUpdateIn(BaseModel):
  content: str = Field(min_length=1, max_length=5000)


class CommentOut(BaseModel):
  id: str
  issueId: str
  authorId: str
  authorName: str | None = None
  content: str
  createdAt: datetime
  updatedAt: datetime


class CommentPageOut(BaseModel):
  items: list[CommentOut]
  total: int
