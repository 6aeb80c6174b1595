"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
  return sa.Column("id", sa.String(36), primary_key=True)


def _fk(name: str, target: str, nullable: bool = False) -> sa.Column:
  return sa.Column(name, sa.String(36), sa.ForeignKey(target), nullable=nullable)


def _ts(name: str, nullable: bool = False) -> sa.Column:
  return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
  op.create_table(
    "users",
    _id(),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("password_hash", sa.String(), nullable=True),
    sa.Column("image", sa.String(), nullable=True),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_users_email", "users", ["email"], unique=True)

  op.create_table(
    "sessions",
    sa.Column("id", sa.String(64), primary_key=True),
    _fk("user_id", "users.id"),
    sa.Column("created_ip", sa.String(), nullable=True),
    sa.Column("user_agent", sa.String(), nullable=True),
    _ts("created_at"),
    _ts("expires_at"),
  )
  op.create_index("ix_sessions_user_id", "sessions", ["user_id"], unique=False)

  op.create_table(
    "password_reset_tokens",
    _id(),
    _fk("user_id", "users.id"),
    sa.Column("token_hash", sa.String(), nullable=False),
    _ts("expires_at"),
    _ts("created_at"),
  )
  op.create_index("ix_password_reset_tokens_user_id", "password_reset_tokens", ["user_id"], unique=False)
  op.create_index("ix_password_reset_tokens_token_hash", "password_reset_tokens", ["token_hash"], unique=True)

  op.create_table(
    "teams",
    _id(),
    sa.Column("name", sa.String(), nullable=False),
    _fk("owner_id", "users.id"),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_teams_owner_id", "teams", ["owner_id"], unique=False)

  op.create_table(
    "team_members",
    _id(),
    _fk("team_id", "teams.id"),
    _fk("user_id", "users.id"),
    sa.Column("role", sa.String(), nullable=False),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    sa.UniqueConstraint("team_id", "user_id", name="ux_team_members_team_user"),
  )
  op.create_index("ix_team_members_team_id", "team_members", ["team_id"], unique=False)
  op.create_index("ix_team_members_user_id", "team_members", ["user_id"], unique=False)

  op.create_table(
    "team_invites",
    _id(),
    _fk("team_id", "teams.id"),
    sa.Column("email", sa.String(), nullable=False),
    sa.Column("token", sa.String(), nullable=False),
    _fk("created_by_id", "users.id"),
    _ts("expires_at"),
    _ts("accepted_at", nullable=True),
    _ts("created_at"),
    sa.UniqueConstraint("team_id", "email", name="ux_team_invites_team_email"),
  )
  op.create_index("ix_team_invites_team_id", "team_invites", ["team_id"], unique=False)
  op.create_index("ix_team_invites_token", "team_invites", ["token"], unique=True)

  op.create_table(
    "team_activity",
    _id(),
    _fk("team_id", "teams.id"),
    _fk("actor_id", "users.id"),
    sa.Column("type", sa.String(), nullable=False),
    sa.Column("message", sa.Text(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_team_activity_team_id", "team_activity", ["team_id"], unique=False)

  op.create_table(
    "projects",
    _id(),
    _fk("team_id", "teams.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    _ts("archived_at", nullable=True),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_projects_team_id", "projects", ["team_id"], unique=False)

  op.create_table(
    "project_favorites",
    _id(),
    _fk("project_id", "projects.id"),
    _fk("user_id", "users.id"),
    _ts("created_at"),
    sa.UniqueConstraint("project_id", "user_id", name="ux_project_favorites_project_user"),
  )
  op.create_index("ix_project_favorites_user_id", "project_favorites", ["user_id"], unique=False)

  op.create_table(
    "statuses",
    _id(),
    _fk("project_id", "projects.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("color", sa.String(), nullable=False),
    sa.Column("position", sa.Integer(), nullable=False),
    sa.Column("kind", sa.String(), nullable=False),
    sa.Column("wip_limit", sa.Integer(), nullable=False, server_default="0"),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
  )
  op.create_index("ix_statuses_project_id", "statuses", ["project_id"], unique=False)

  op.create_table(
    "issues",
    _id(),
    _fk("project_id", "projects.id"),
    _fk("status_id", "statuses.id"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("description", sa.Text(), nullable=True),
    sa.Column("priority", sa.String(), nullable=False),
    _ts("due_date", nullable=True),
    _fk("assignee_id", "users.id", nullable=True),
    _fk("owner_id", "users.id"),
    sa.Column("status_order", sa.Integer(), nullable=False, server_default="0"),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_issues_project_id", "issues", ["project_id"], unique=False)
  op.create_index("ix_issues_status_id", "issues", ["status_id"], unique=False)

  op.create_table(
    "project_labels",
    _id(),
    _fk("project_id", "projects.id"),
    sa.Column("name", sa.String(), nullable=False),
    sa.Column("color", sa.String(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_project_labels_project_id", "project_labels", ["project_id"], unique=False)

  op.create_table(
    "issue_labels",
    sa.Column("issue_id", sa.String(36), sa.ForeignKey("issues.id"), primary_key=True),
    sa.Column("label_id", sa.String(36), sa.ForeignKey("project_labels.id"), primary_key=True),
  )

  op.create_table(
    "subtasks",
    _id(),
    _fk("issue_id", "issues.id"),
    sa.Column("title", sa.String(), nullable=False),
    sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("position", sa.Integer(), nullable=False),
    _ts("created_at"),
  )
  op.create_index("ix_subtasks_issue_id", "subtasks", ["issue_id"], unique=False)

  op.create_table(
    "comments",
    _id(),
    _fk("issue_id", "issues.id"),
    _fk("author_id", "users.id"),
    sa.Column("content", sa.Text(), nullable=False),
    _ts("deleted_at", nullable=True),
    _ts("created_at"),
    _ts("updated_at"),
  )
  op.create_index("ix_comments_issue_id", "comments", ["issue_id"], unique=False)

  op.create_table(
    "issue_history",
    _id(),
    _fk("issue_id", "issues.id"),
    _fk("actor_id", "users.id"),
    sa.Column("field", sa.String(), nullable=False),
    sa.Column("old_value", sa.Text(), nullable=True),
    sa.Column("new_value", sa.Text(), nullable=True),
    _ts("created_at"),
  )
  op.create_index("ix_issue_history_issue_id", "issue_history", ["issue_id"], unique=False)


def downgrade() -> None:
  for table in (
    "issue_history",
    "comments",
    "subtasks",
    "issue_labels",
    "project_labels",
    "issues",
    "statuses",
    "project_favorites",
    "projects",
    "team_activity",
    "team_invites",
    "team_members",
    "teams",
    "password_reset_tokens",
    "sessions",
    "users",
  ):
    op.drop_table(table)
