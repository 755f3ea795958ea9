"""
Audit Portal
Review workflow domain model.

Models:
    - ReviewWorkflow: mutable review state, one row per reviewable item.
    - ReviewWorkflowNote: append-only free-text notes attached to a workflow.

The (item_type, item_id) pair is unique: an item has at most one workflow.
Lock state is kept consistent with status by the mapper hooks at the bottom
of this module, so every flush of a ReviewWorkflow passes through them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import event

from audit_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────

ITEM_TYPES = (
    "procedure",
    "planning-procedure",
    "document-request",
    "checklist-item",
    "pbc",
    "kyc",
    "isqm-document",
    "working-paper",
)

STATUS_IN_PROGRESS = "in-progress"
STATUS_READY_FOR_REVIEW = "ready-for-review"
STATUS_UNDER_REVIEW = "under-review"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_SIGNED_OFF = "signed-off"
STATUS_REOPENED = "re-opened"

WORKFLOW_STATUSES = (
    STATUS_IN_PROGRESS,
    STATUS_READY_FOR_REVIEW,
    STATUS_UNDER_REVIEW,
    STATUS_APPROVED,
    STATUS_REJECTED,
    STATUS_SIGNED_OFF,
    STATUS_REOPENED,
)

# Statuses that put an item in front of a reviewer
PENDING_REVIEW_STATUSES = (STATUS_READY_FOR_REVIEW, STATUS_UNDER_REVIEW)

PRIORITIES = ("low", "medium", "high", "critical")
PRIORITY_RANK = {"low": 1, "medium": 2, "high": 3, "critical": 4}
DEFAULT_PRIORITY = "medium"


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class ReviewWorkflow(db.Model):
    """
    Review lifecycle state for one reviewable item.

    Mutated only through the review service.  Identity is the
    (item_type, item_id) pair; ``engagement_id`` is the owning engagement.
    ``version`` starts at 1 and is bumped on every reopen.
    """

    __tablename__ = "review_workflows"
    __table_args__ = (
        db.UniqueConstraint("item_type", "item_id", name="uq_review_workflow_item"),
        db.Index("ix_review_workflow_engagement_status", "engagement_id", "status"),
        db.Index("ix_review_workflow_reviewer_status", "assigned_reviewer", "status"),
        db.Index("ix_review_workflow_status_priority", "status", "priority"),
        db.Index("ix_review_workflow_due_date", "due_date"),
        db.Index("ix_review_workflow_created", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Item identification
    item_type = db.Column(
        db.String(30), nullable=False, index=True,
        comment="procedure | planning-procedure | document-request | checklist-item | pbc | kyc | ...",
    )
    item_id = db.Column(db.String(64), nullable=False, index=True)
    engagement_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default=STATUS_IN_PROGRESS, index=True)

    # Assignment
    assigned_reviewer = db.Column(db.String(64), nullable=True, index=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Submission
    submitted_for_review_at = db.Column(db.DateTime(timezone=True), nullable=True)
    submitted_by = db.Column(db.String(64), nullable=True)

    # Review outcome
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reviewed_by = db.Column(db.String(64), nullable=True)
    review_comments = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    approved_by = db.Column(db.String(64), nullable=True)

    # Sign-off
    signed_off_at = db.Column(db.DateTime(timezone=True), nullable=True)
    signed_off_by = db.Column(db.String(64), nullable=True)
    sign_off_comments = db.Column(db.Text, nullable=True)

    # Locking
    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    locked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    locked_by = db.Column(db.String(64), nullable=True)

    # Reopening
    reopened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reopened_by = db.Column(db.String(64), nullable=True)
    reopen_reason = db.Column(db.Text, nullable=True)

    # Planning metadata
    priority = db.Column(db.String(10), nullable=False, default=DEFAULT_PRIORITY)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    tags = db.Column(db.JSON, nullable=True)

    # Versioning
    version = db.Column(db.Integer, nullable=False, default=1)
    previous_version = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    notes = db.relationship(
        "ReviewWorkflowNote",
        backref="workflow",
        cascade="all, delete-orphan",
        order_by="ReviewWorkflowNote.added_at",
        lazy="select",
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    def actor_ids(self) -> set[str]:
        """Users who performed a recorded action on this workflow."""
        candidates = (
            self.reviewed_by,
            self.approved_by,
            self.signed_off_by,
            self.reopened_by,
            self.assigned_reviewer,
        )
        return {c for c in candidates if c}

    def to_dict(self, include_notes: bool = True) -> dict:
        data = {
            "id": self.id,
            "itemType": self.item_type,
            "itemId": self.item_id,
            "engagement": self.engagement_id,
            "status": self.status,
            "assignedReviewer": self.assigned_reviewer,
            "assignedAt": _iso(self.assigned_at),
            "submittedForReviewAt": _iso(self.submitted_for_review_at),
            "submittedBy": self.submitted_by,
            "reviewedAt": _iso(self.reviewed_at),
            "reviewedBy": self.reviewed_by,
            "reviewComments": self.review_comments,
            "approvedAt": _iso(self.approved_at),
            "approvedBy": self.approved_by,
            "signedOffAt": _iso(self.signed_off_at),
            "signedOffBy": self.signed_off_by,
            "signOffComments": self.sign_off_comments,
            "isLocked": bool(self.is_locked),
            "lockedAt": _iso(self.locked_at),
            "lockedBy": self.locked_by,
            "reopenedAt": _iso(self.reopened_at),
            "reopenedBy": self.reopened_by,
            "reopenReason": self.reopen_reason,
            "priority": self.priority,
            "dueDate": _iso(self.due_date),
            "tags": list(self.tags or []),
            "version": self.version,
            "previousVersion": self.previous_version,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
        if include_notes:
            data["notes"] = [n.to_dict() for n in self.notes]
        return data

    def __repr__(self):
        return f"<ReviewWorkflow {self.id}: {self.item_type}/{self.item_id} {self.status}>"


class ReviewWorkflowNote(db.Model):
    """Append-only note on a workflow.  Deleted only with its workflow."""

    __tablename__ = "review_workflow_notes"

    id = db.Column(db.Integer, primary_key=True)
    workflow_id = db.Column(
        db.String(36),
        db.ForeignKey("review_workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = db.Column(db.Text, nullable=False)
    added_by = db.Column(db.String(64), nullable=False)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "addedBy": self.added_by,
            "addedAt": _iso(self.added_at),
        }

    def __repr__(self):
        return f"<ReviewWorkflowNote {self.id} on {self.workflow_id}>"


# ── Lock invariant ───────────────────────────────────────────────────────────


@event.listens_for(ReviewWorkflow, "before_insert")
@event.listens_for(ReviewWorkflow, "before_update")
def _sync_lock_with_status(mapper, connection, target) -> None:  # noqa: ANN001
    """Signed-off rows are always locked; re-opened rows are never locked."""
    if target.status == STATUS_SIGNED_OFF and not target.is_locked:
        target.is_locked = True
        target.locked_at = _utcnow()
        target.locked_by = target.signed_off_by
    elif target.status == STATUS_REOPENED and target.is_locked:
        target.is_locked = False
        target.locked_at = None
        target.locked_by = None
