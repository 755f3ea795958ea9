"""
Audit Portal
Review history ledger model.

Models:
    - ReviewHistory: immutable, append-only record of every review transition.

Rows are written once and never updated or deleted; the mapper guards below
raise on any ORM-level UPDATE or DELETE so the ledger stays an audit trail
independent of the mutable ReviewWorkflow row.
"""

from datetime import datetime, timezone

from sqlalchemy import event

from audit_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────

HISTORY_ACTIONS = (
    "submitted-for-review",
    "assigned-reviewer",
    "review-started",
    "review-completed",
    "review-approved",
    "review-rejected",
    "signed-off",
    "reopened",
    "status-changed",
    "comment-added",
    "priority-changed",
    "due-date-changed",
)


class ReviewHistory(db.Model):
    """
    One row per transition performed against a review workflow.

    ``previous_status`` / ``new_status`` capture the workflow status on each
    side of the transition.  ``extra_data`` is serialised as ``metadata``
    (the attribute name ``metadata`` is reserved by declarative models).
    """

    __tablename__ = "review_history"
    __table_args__ = (
        db.Index("ix_review_history_item_ts", "item_type", "item_id", "performed_at"),
        db.Index("ix_review_history_engagement_ts", "engagement_id", "performed_at"),
        db.Index("ix_review_history_actor_ts", "performed_by", "performed_at"),
        db.Index("ix_review_history_action_ts", "action", "performed_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    item_type = db.Column(db.String(30), nullable=False, index=True)
    item_id = db.Column(db.String(64), nullable=False, index=True)
    engagement_id = db.Column(db.String(64), nullable=False, index=True)

    action = db.Column(db.String(30), nullable=False, index=True)
    performed_by = db.Column(db.String(64), nullable=False, index=True)
    performed_at = db.Column(
        db.DateTime(timezone=True), nullable=False, index=True,
        default=lambda: datetime.now(timezone.utc),
    )

    previous_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=True)
    comments = db.Column(db.Text, nullable=True)
    extra_data = db.Column("metadata", db.JSON, nullable=True)

    # Audit context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    session_id = db.Column(db.String(128), nullable=True)
    system_version = db.Column(db.String(30), nullable=True)

    def get_metadata(self, key, default=None):
        return (self.extra_data or {}).get(key, default)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "itemType": self.item_type,
            "itemId": self.item_id,
            "engagement": self.engagement_id,
            "action": self.action,
            "performedBy": self.performed_by,
            "performedAt": self.performed_at.isoformat() if self.performed_at else None,
            "previousStatus": self.previous_status,
            "newStatus": self.new_status,
            "comments": self.comments,
            "metadata": dict(self.extra_data or {}),
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "location": self.location,
            "sessionId": self.session_id,
            "systemVersion": self.system_version,
        }

    def __repr__(self):
        return f"<ReviewHistory {self.id}: {self.action} on {self.item_type}/{self.item_id}>"


# ── Write-once guards ────────────────────────────────────────────────────────


@event.listens_for(ReviewHistory, "before_insert")
def _stamp_system_version(mapper, connection, target) -> None:  # noqa: ANN001
    if target.system_version:
        return
    from flask import current_app, has_app_context

    if has_app_context():
        target.system_version = current_app.config.get("APP_VERSION", "1.0.0")
    else:
        target.system_version = "1.0.0"


@event.listens_for(ReviewHistory, "before_update")
def _block_history_update(mapper, connection, target) -> None:  # noqa: ANN001
    raise RuntimeError(f"review_history rows are immutable (id={target.id})")


@event.listens_for(ReviewHistory, "before_delete")
def _block_history_delete(mapper, connection, target) -> None:  # noqa: ANN001
    raise RuntimeError(f"review_history rows cannot be deleted (id={target.id})")
