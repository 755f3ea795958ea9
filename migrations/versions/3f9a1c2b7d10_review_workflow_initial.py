"""review_workflow_initial

Creates the review workflow schema:
  - profiles                — identity/profile lookup
  - review_workflows        — mutable per-item review state
  - review_workflow_notes   — append-only notes, cascade-deleted with the workflow
  - review_history          — immutable per-transition ledger
  - notifications           — in-app notifications, one row per recipient
  - employee_activity_logs  — best-effort employee activity trail

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: 3f9a1c2b7d10
Revises:
Create Date: 2026-10-19 09:12:44.218305
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '3f9a1c2b7d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Profiles ──────────────────────────────────────────────────────────
    if "profiles" not in existing:
        op.create_table(
            "profiles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=True),
            sa.Column("email", sa.String(length=200), nullable=True),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="employee"),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)
        op.create_index("ix_profiles_role", "profiles", ["role"])

    # ── Review workflows ──────────────────────────────────────────────────
    if "review_workflows" not in existing:
        op.create_table(
            "review_workflows",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("item_type", sa.String(length=30), nullable=False,
                      comment="procedure | planning-procedure | document-request | checklist-item | pbc | kyc | ..."),
            sa.Column("item_id", sa.String(length=64), nullable=False),
            sa.Column("engagement_id", sa.String(length=64), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="in-progress"),
            sa.Column("assigned_reviewer", sa.String(length=64), nullable=True),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_for_review_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_by", sa.String(length=64), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reviewed_by", sa.String(length=64), nullable=True),
            sa.Column("review_comments", sa.Text(), nullable=True),
            sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("approved_by", sa.String(length=64), nullable=True),
            sa.Column("signed_off_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("signed_off_by", sa.String(length=64), nullable=True),
            sa.Column("sign_off_comments", sa.Text(), nullable=True),
            sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("locked_by", sa.String(length=64), nullable=True),
            sa.Column("reopened_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("reopened_by", sa.String(length=64), nullable=True),
            sa.Column("reopen_reason", sa.Text(), nullable=True),
            sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
            sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
            sa.Column("tags", sa.JSON(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("previous_version", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("item_type", "item_id", name="uq_review_workflow_item"),
        )
        op.create_index("ix_review_workflows_item_type", "review_workflows", ["item_type"])
        op.create_index("ix_review_workflows_item_id", "review_workflows", ["item_id"])
        op.create_index("ix_review_workflows_engagement_id", "review_workflows", ["engagement_id"])
        op.create_index("ix_review_workflows_status", "review_workflows", ["status"])
        op.create_index("ix_review_workflows_assigned_reviewer", "review_workflows", ["assigned_reviewer"])
        op.create_index("ix_review_workflow_engagement_status", "review_workflows", ["engagement_id", "status"])
        op.create_index("ix_review_workflow_reviewer_status", "review_workflows", ["assigned_reviewer", "status"])
        op.create_index("ix_review_workflow_status_priority", "review_workflows", ["status", "priority"])
        op.create_index("ix_review_workflow_due_date", "review_workflows", ["due_date"])
        op.create_index("ix_review_workflow_created", "review_workflows", ["created_at"])

    if "review_workflow_notes" not in existing:
        op.create_table(
            "review_workflow_notes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("workflow_id", sa.String(length=36), nullable=False),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("added_by", sa.String(length=64), nullable=False),
            sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["workflow_id"], ["review_workflows.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_review_workflow_notes_workflow_id", "review_workflow_notes", ["workflow_id"])

    # ── Review history ledger ─────────────────────────────────────────────
    if "review_history" not in existing:
        op.create_table(
            "review_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("item_type", sa.String(length=30), nullable=False),
            sa.Column("item_id", sa.String(length=64), nullable=False),
            sa.Column("engagement_id", sa.String(length=64), nullable=False),
            sa.Column("action", sa.String(length=30), nullable=False),
            sa.Column("performed_by", sa.String(length=64), nullable=False),
            sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("previous_status", sa.String(length=20), nullable=True),
            sa.Column("new_status", sa.String(length=20), nullable=True),
            sa.Column("comments", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("user_agent", sa.String(length=512), nullable=True),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("session_id", sa.String(length=128), nullable=True),
            sa.Column("system_version", sa.String(length=30), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_review_history_item_type", "review_history", ["item_type"])
        op.create_index("ix_review_history_item_id", "review_history", ["item_id"])
        op.create_index("ix_review_history_engagement_id", "review_history", ["engagement_id"])
        op.create_index("ix_review_history_action", "review_history", ["action"])
        op.create_index("ix_review_history_performed_by", "review_history", ["performed_by"])
        op.create_index("ix_review_history_performed_at", "review_history", ["performed_at"])
        op.create_index("ix_review_history_item_ts", "review_history", ["item_type", "item_id", "performed_at"])
        op.create_index("ix_review_history_engagement_ts", "review_history", ["engagement_id", "performed_at"])
        op.create_index("ix_review_history_actor_ts", "review_history", ["performed_by", "performed_at"])
        op.create_index("ix_review_history_action_ts", "review_history", ["action", "performed_at"])

    # ── Notifications ─────────────────────────────────────────────────────
    if "notifications" not in existing:
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=30), nullable=True),
            sa.Column("category", sa.String(length=60), nullable=True),
            sa.Column("module", sa.String(length=30), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=True),
            sa.Column("data", sa.JSON(), nullable=True),
            sa.Column("action_url", sa.String(length=500), nullable=True),
            sa.Column("engagement_id", sa.String(length=64), nullable=True),
            sa.Column("document_id", sa.String(length=64), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=True),
            sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
        op.create_index("ix_notifications_engagement_id", "notifications", ["engagement_id"])

    # ── Employee activity log ─────────────────────────────────────────────
    if "employee_activity_logs" not in existing:
        op.create_table(
            "employee_activity_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("employee_id", sa.String(length=64), nullable=False),
            sa.Column("employee_name", sa.String(length=200), nullable=False),
            sa.Column("employee_email", sa.String(length=200), nullable=False),
            sa.Column("action", sa.String(length=40), nullable=False),
            sa.Column("details", sa.Text(), nullable=True),
            sa.Column("ip_address", sa.String(length=45), nullable=True),
            sa.Column("location", sa.String(length=255), nullable=True),
            sa.Column("device_info", sa.String(length=512), nullable=True),
            sa.Column("status", sa.String(length=10), nullable=False, server_default="SUCCESS"),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_employee_activity_logs_employee_id", "employee_activity_logs", ["employee_id"])
        op.create_index("idx_activity_employee_ts", "employee_activity_logs", ["employee_id", "timestamp"])
        op.create_index("idx_activity_action", "employee_activity_logs", ["action"])


def downgrade():
    op.drop_table("employee_activity_logs")
    op.drop_table("notifications")
    op.drop_table("review_history")
    op.drop_table("review_workflow_notes")
    op.drop_table("review_workflows")
    op.drop_table("profiles")
