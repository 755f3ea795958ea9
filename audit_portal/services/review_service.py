"""
Review Workflow Service — submit / assign / review / sign-off / reopen.

Owns every mutation of ReviewWorkflow.  Blueprints parse input, build a
Caller and call in here; this module never reads request globals.

Design decisions:
    - Transitions are strict single steps.  A guard violation raises
      PreconditionFailedError carrying the current status; nothing is saved.
    - The workflow change commits first.  The history append, the activity
      log and the notifications follow it and are best-effort: their failure
      is logged and never rolls back or fails the transition.
    - Notifications are handed to the task dispatcher with a plain dict
      snapshot of the workflow (at-most-once, no retry).
    - ``update_workflow`` is an override that bypasses the state machine.  It
      requires both an ownership match and the ``override_workflow`` capability.
    - Every operation starts with ``check_capability(caller, <action>)``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError

from audit_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from audit_portal.models import db
from audit_portal.models.activity_log import ActivityAction
from audit_portal.models.review import (
    PENDING_REVIEW_STATUSES,
    PRIORITIES,
    PRIORITY_RANK,
    STATUS_APPROVED,
    STATUS_IN_PROGRESS,
    STATUS_READY_FOR_REVIEW,
    STATUS_REJECTED,
    STATUS_REOPENED,
    STATUS_SIGNED_OFF,
    STATUS_UNDER_REVIEW,
    WORKFLOW_STATUSES,
    ReviewWorkflow,
    ReviewWorkflowNote,
)
from audit_portal.services import review_history_service as history
from audit_portal.services.activity_log_service import log_activity
from audit_portal.services.item_registry import ItemType, get_handler
from audit_portal.services.notification import NotificationService
from audit_portal.services.permission import Caller, can, check_capability
from audit_portal.services.task_dispatcher import dispatcher

logger = logging.getLogger(__name__)

SUBMITTABLE_STATUSES = (STATUS_IN_PROGRESS, STATUS_REJECTED, STATUS_REOPENED)

# Roles whose unfiltered queue is scoped to their own assignments
SELF_SCOPED_QUEUE_ROLES = ("reviewer", "partner", "admin")

MAX_ENGAGEMENT_ID_LENGTH = 64


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Private helpers ────────────────────────────────────────────────────────────


def _get_workflow_or_404(workflow_id: str) -> ReviewWorkflow:
    wf = find_by_id(workflow_id)
    if wf is None:
        raise NotFoundError(resource="ReviewWorkflow", resource_id=workflow_id)
    return wf


def _require_status(wf: ReviewWorkflow, expected: str, operation: str) -> None:
    if wf.status != expected:
        raise PreconditionFailedError(
            f"Cannot {operation}: item must be '{expected}' but is '{wf.status}'",
            current_status=wf.status,
        )


def _require_unlocked(wf: ReviewWorkflow, operation: str) -> None:
    if wf.is_locked:
        raise PreconditionFailedError(
            f"Cannot {operation}: item is locked after sign-off",
            current_status=wf.status,
        )


def _is_owner(wf: ReviewWorkflow, user_id: str) -> bool:
    return bool(user_id) and str(user_id) in wf.actor_ids()


def _require_owner(wf: ReviewWorkflow, caller: Caller, action: str) -> None:
    if not _is_owner(wf, caller.user_id):
        raise ForbiddenError(
            "Only users who have acted on this workflow may modify it",
            user_id=caller.user_id,
            action=action,
        )


def _validate_engagement_id(engagement_id) -> str:
    value = (str(engagement_id) if engagement_id is not None else "").strip()
    if not value:
        raise ValidationError("engagementId is required", details={"engagementId": engagement_id})
    if len(value) > MAX_ENGAGEMENT_ID_LENGTH:
        raise ValidationError(
            f"engagementId must be at most {MAX_ENGAGEMENT_ID_LENGTH} characters",
            details={"engagementId": value[:MAX_ENGAGEMENT_ID_LENGTH]},
        )
    return value


def _validate_priority(priority) -> str:
    if priority not in PRIORITIES:
        raise ValidationError(
            "Invalid priority",
            details={"priority": priority, "validPriorities": list(PRIORITIES)},
        )
    return priority


def _validate_status(status) -> str:
    if status not in WORKFLOW_STATUSES:
        raise ValidationError(
            "Invalid status",
            details={"status": status, "validStatuses": list(WORKFLOW_STATUSES)},
        )
    return status


def _validate_tags(tags) -> list[str]:
    if tags is None:
        return []
    if not isinstance(tags, (list, tuple)) or not all(isinstance(t, str) for t in tags):
        raise ValidationError("tags must be a list of strings", details={"tags": tags})
    return [t.strip() for t in tags if t.strip()]


def _validate_text(value, field: str) -> str | None:
    """Free-text body fields must be a string or absent."""
    if value is not None and not isinstance(value, str):
        raise ValidationError(
            f"{field} must be a string",
            details={field: repr(value)[:100]},
        )
    return value


def _parse_statuses(status) -> list[str]:
    """Accept a single status, a comma list or a list; validate each."""
    if not status:
        return []
    if isinstance(status, str):
        status = [s.strip() for s in status.split(",") if s.strip()]
    return [_validate_status(s) for s in status]


def _item_label(wf: ReviewWorkflow) -> str:
    return f"{get_handler(wf.item_type).label} {wf.item_id}"


def _record(
    wf: ReviewWorkflow,
    caller: Caller,
    *,
    action: str,
    previous_status: str | None,
    activity: str,
    details: str,
    comments: str | None = None,
    metadata: dict | None = None,
) -> None:
    """Best-effort post-commit bookkeeping: ledger entry then activity row."""
    history.append(
        workflow=wf,
        action=action,
        caller=caller,
        previous_status=previous_status,
        new_status=wf.status,
        comments=comments,
        metadata=metadata,
    )
    log_activity(caller, activity, details)


def _log_transition(message: str, wf: ReviewWorkflow, caller: Caller, action: str) -> None:
    logger.info(
        message,
        extra={
            "workflow_id": wf.id,
            "item_type": wf.item_type,
            "user_id": caller.user_id,
            "action": action,
        },
    )


# ── Workflow record store ──────────────────────────────────────────────────────


def get_or_create(item_type: str, item_id: str, engagement_id: str | None) -> tuple[ReviewWorkflow, bool]:
    """Return the workflow for (item_type, item_id), creating it at in-progress.

    Flushes but does not commit; the caller owns the transaction.  A
    concurrent insert of the same pair is resolved by re-reading the row.
    """
    stmt = select(ReviewWorkflow).where(
        ReviewWorkflow.item_type == item_type,
        ReviewWorkflow.item_id == item_id,
    )
    wf = db.session.execute(stmt).scalar_one_or_none()
    if wf is not None:
        return wf, False

    wf = ReviewWorkflow(
        item_type=item_type,
        item_id=item_id,
        engagement_id=_validate_engagement_id(engagement_id),
        status=STATUS_IN_PROGRESS,
    )
    db.session.add(wf)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        existing = db.session.execute(stmt).scalar_one_or_none()
        if existing is None:
            raise ConflictError("ReviewWorkflow", "item_id", item_id) from exc
        return existing, False
    return wf, True


def find_by_id(workflow_id: str) -> ReviewWorkflow | None:
    return db.session.get(ReviewWorkflow, str(workflow_id)) if workflow_id else None


# ── Transitions ───────────────────────────────────────────────────────────────


def submit_for_review(
    caller: Caller,
    item_type: str,
    item_id: str,
    engagement_id: str | None = None,
    comments: str | None = None,
) -> ReviewWorkflow:
    """in-progress / rejected / re-opened → ready-for-review.

    Creates the workflow on first submission for the item.
    """
    check_capability(caller, "submit")
    _validate_text(comments, "comments")
    handler = get_handler(ItemType.parse(item_type))
    item_id = handler.validate_id(item_id)
    handler.ensure_exists(item_id)

    wf, created = get_or_create(handler.item_type.value, item_id, engagement_id)

    if wf.status in PENDING_REVIEW_STATUSES:
        db.session.rollback()
        raise PreconditionFailedError(
            f"Item is already in review ({wf.status})", current_status=wf.status,
        )
    if wf.is_locked:
        db.session.rollback()
        raise PreconditionFailedError(
            "Item is locked after sign-off and must be re-opened first",
            current_status=wf.status,
        )
    if wf.status not in SUBMITTABLE_STATUSES:
        db.session.rollback()
        raise PreconditionFailedError(
            f"Cannot submit for review from status '{wf.status}'",
            current_status=wf.status,
        )

    previous_status = wf.status
    wf.status = STATUS_READY_FOR_REVIEW
    wf.submitted_for_review_at = _utcnow()
    wf.submitted_by = caller.user_id
    db.session.commit()

    _log_transition("Item submitted for review", wf, caller, "submitted-for-review")
    _record(
        wf, caller,
        action="submitted-for-review",
        previous_status=previous_status,
        comments=comments,
        metadata={"createdWorkflow": created},
        activity=ActivityAction.SUBMIT_FOR_REVIEW,
        details=f"Submitted {_item_label(wf)} for review",
    )
    dispatcher.dispatch(
        NotificationService.notify_review_submitted,
        wf.to_dict(include_notes=False), caller.user_id, _item_label(wf),
        description="notify_review_submitted",
    )
    return wf


def assign_reviewer(caller: Caller, workflow_id: str, reviewer_id: str | None, comments: str | None = None) -> ReviewWorkflow:
    """ready-for-review → under-review."""
    check_capability(caller, "assign")
    if not reviewer_id:
        raise ValidationError("reviewerId is required", details={"reviewerId": reviewer_id})
    _validate_text(reviewer_id, "reviewerId")
    _validate_text(comments, "comments")
    wf = _get_workflow_or_404(workflow_id)
    _require_status(wf, STATUS_READY_FOR_REVIEW, "assign reviewer")

    previous_status = wf.status
    wf.assigned_reviewer = str(reviewer_id)
    wf.assigned_at = _utcnow()
    wf.status = STATUS_UNDER_REVIEW
    db.session.commit()

    _log_transition("Reviewer assigned", wf, caller, "assigned-reviewer")
    _record(
        wf, caller,
        action="assigned-reviewer",
        previous_status=previous_status,
        comments=comments,
        metadata={"assignedReviewer": wf.assigned_reviewer},
        activity=ActivityAction.ASSIGN_REVIEWER,
        details=f"Assigned reviewer {wf.assigned_reviewer} to {_item_label(wf)}",
    )
    dispatcher.dispatch(
        NotificationService.notify_reviewer_assigned,
        wf.to_dict(include_notes=False), wf.assigned_reviewer, caller.user_id, _item_label(wf),
        description="notify_reviewer_assigned",
    )
    return wf


def perform_review(caller: Caller, workflow_id: str, approved, comments: str | None = None) -> ReviewWorkflow:
    """under-review → approved | rejected."""
    check_capability(caller, "review")
    if not isinstance(approved, bool):
        raise ValidationError("approved must be a boolean", details={"approved": approved})
    _validate_text(comments, "comments")
    wf = _get_workflow_or_404(workflow_id)
    _require_status(wf, STATUS_UNDER_REVIEW, "perform review")

    now = _utcnow()
    previous_status = wf.status
    wf.reviewed_at = now
    wf.reviewed_by = caller.user_id
    wf.review_comments = comments
    if approved:
        wf.status = STATUS_APPROVED
        wf.approved_at = now
        wf.approved_by = caller.user_id
    else:
        wf.status = STATUS_REJECTED
    db.session.commit()

    action = "review-approved" if approved else "review-rejected"
    _log_transition("Review completed", wf, caller, action)
    _record(
        wf, caller,
        action=action,
        previous_status=previous_status,
        comments=comments,
        metadata={"approved": approved},
        activity=ActivityAction.REVIEW_APPROVED if approved else ActivityAction.REVIEW_REJECTED,
        details=f"{'Approved' if approved else 'Rejected'} {_item_label(wf)}",
    )
    dispatcher.dispatch(
        NotificationService.notify_review_completed,
        wf.to_dict(include_notes=False), caller.user_id, approved, _item_label(wf),
        description="notify_review_completed",
    )
    return wf


def sign_off(caller: Caller, workflow_id: str, comments: str | None = None) -> ReviewWorkflow:
    """approved → signed-off (locked)."""
    check_capability(caller, "sign_off")
    _validate_text(comments, "comments")
    wf = _get_workflow_or_404(workflow_id)
    _require_status(wf, STATUS_APPROVED, "sign off")

    now = _utcnow()
    previous_status = wf.status
    wf.status = STATUS_SIGNED_OFF
    wf.signed_off_at = now
    wf.signed_off_by = caller.user_id
    wf.sign_off_comments = comments
    wf.is_locked = True
    wf.locked_at = now
    wf.locked_by = caller.user_id
    db.session.commit()

    _log_transition("Item signed off", wf, caller, "signed-off")
    _record(
        wf, caller,
        action="signed-off",
        previous_status=previous_status,
        comments=comments,
        activity=ActivityAction.SIGN_OFF,
        details=f"Signed off {_item_label(wf)}",
    )
    return wf


def reopen(caller: Caller, workflow_id: str, reason: str | None) -> ReviewWorkflow:
    """signed-off → re-opened; unlocks and bumps the version."""
    check_capability(caller, "reopen")
    reason = (_validate_text(reason, "reason") or "").strip()
    if not reason:
        raise ValidationError("reason is required to reopen an item", details={"reason": reason})
    wf = _get_workflow_or_404(workflow_id)
    _require_status(wf, STATUS_SIGNED_OFF, "reopen")

    previous_status = wf.status
    _apply_reopen(wf, caller.user_id, reason)
    db.session.commit()

    _log_transition("Item re-opened", wf, caller, "reopened")
    _record(
        wf, caller,
        action="reopened",
        previous_status=previous_status,
        comments=reason,
        metadata={"version": wf.version, "previousVersion": wf.previous_version},
        activity=ActivityAction.REOPEN_ITEM,
        details=f"Re-opened {_item_label(wf)} (version {wf.version})",
    )
    return wf


def _apply_reopen(wf: ReviewWorkflow, user_id: str, reason: str | None) -> None:
    wf.status = STATUS_REOPENED
    wf.reopened_at = _utcnow()
    wf.reopened_by = user_id
    wf.reopen_reason = reason
    wf.is_locked = False
    wf.locked_at = None
    wf.locked_by = None
    wf.previous_version = wf.version
    wf.version = (wf.version or 1) + 1


# ── Planning metadata and notes ────────────────────────────────────────────────


def create_workflow(
    caller: Caller,
    item_type: str,
    item_id: str,
    engagement_id: str | None,
    priority: str | None = None,
    due_date: datetime | None = None,
    tags=None,
) -> tuple[ReviewWorkflow, bool]:
    """Explicit get-or-create.  Returns (workflow, created).

    An existing workflow is returned unchanged.
    """
    check_capability(caller, "create_workflow")
    handler = get_handler(ItemType.parse(item_type))
    item_id = handler.validate_id(item_id)
    engagement_id = _validate_engagement_id(engagement_id)
    if priority is not None:
        _validate_priority(priority)
    tags = _validate_tags(tags)
    handler.ensure_exists(item_id)

    wf, created = get_or_create(handler.item_type.value, item_id, engagement_id)
    if not created:
        db.session.rollback()
        return wf, False

    if priority is not None:
        wf.priority = priority
    wf.due_date = due_date
    wf.tags = tags
    db.session.commit()

    _log_transition("Review workflow created", wf, caller, "create")
    log_activity(caller, ActivityAction.CREATE_REVIEW_WORKFLOW, f"Created review workflow for {_item_label(wf)}")
    return wf, True


def get_workflow(caller: Caller, workflow_id: str) -> ReviewWorkflow:
    check_capability(caller, "view_queue")
    return _get_workflow_or_404(workflow_id)


def add_note(caller: Caller, workflow_id: str, text: str | None) -> ReviewWorkflow:
    """Append a note.  Allowed in every status, including locked."""
    check_capability(caller, "annotate")
    text = (_validate_text(text, "text") or "").strip()
    if not text:
        raise ValidationError("Note text is required", details={"text": text})
    wf = _get_workflow_or_404(workflow_id)

    note = ReviewWorkflowNote(workflow_id=wf.id, text=text, added_by=caller.user_id)
    wf.notes.append(note)
    db.session.commit()

    _log_transition("Review note added", wf, caller, "comment-added")
    _record(
        wf, caller,
        action="comment-added",
        previous_status=wf.status,
        comments=text,
        metadata={"noteId": note.id},
        activity=ActivityAction.ADD_REVIEW_NOTE,
        details=f"Added note to {_item_label(wf)}",
    )
    return wf


def change_priority(caller: Caller, workflow_id: str, priority: str | None) -> ReviewWorkflow:
    check_capability(caller, "plan")
    _validate_priority(priority)
    wf = _get_workflow_or_404(workflow_id)
    _require_unlocked(wf, "change priority")

    old_priority = wf.priority
    wf.priority = priority
    db.session.commit()

    _log_transition("Review priority changed", wf, caller, "priority-changed")
    _record(
        wf, caller,
        action="priority-changed",
        previous_status=wf.status,
        metadata={"previousPriority": old_priority, "newPriority": priority},
        activity=ActivityAction.CHANGE_REVIEW_PRIORITY,
        details=f"Changed priority of {_item_label(wf)} from {old_priority} to {priority}",
    )
    return wf


def change_due_date(caller: Caller, workflow_id: str, due_date: datetime | None) -> ReviewWorkflow:
    """Set or clear (``None``) the due date."""
    check_capability(caller, "plan")
    wf = _get_workflow_or_404(workflow_id)
    _require_unlocked(wf, "change due date")

    old_due = wf.due_date.isoformat() if wf.due_date else None
    wf.due_date = due_date
    db.session.commit()

    new_due = due_date.isoformat() if due_date else None
    _log_transition("Review due date changed", wf, caller, "due-date-changed")
    _record(
        wf, caller,
        action="due-date-changed",
        previous_status=wf.status,
        metadata={"previousDueDate": old_due, "newDueDate": new_due},
        activity=ActivityAction.CHANGE_REVIEW_DUE_DATE,
        details=f"Changed due date of {_item_label(wf)} to {new_due or 'none'}",
    )
    return wf


# ── Ownership-gated override / delete ──────────────────────────────────────────


def update_workflow(
    caller: Caller,
    workflow_id: str,
    *,
    status: str | None = None,
    review_comments: str | None = None,
    sign_off_comments: str | None = None,
    reopen_reason: str | None = None,
) -> ReviewWorkflow:
    """Override update that bypasses the transition guards.

    The caller must have acted on the workflow before and hold
    ``override_workflow``.  The caller becomes the reviewer of record and the
    side fields of the requested status are set to match it.
    """
    wf = _get_workflow_or_404(workflow_id)
    _require_owner(wf, caller, "override_workflow")
    check_capability(caller, "override_workflow")
    _validate_text(review_comments, "reviewComments")
    _validate_text(sign_off_comments, "signOffComments")
    _validate_text(reopen_reason, "reopenReason")

    fields = {
        "status": status,
        "reviewComments": review_comments,
        "signOffComments": sign_off_comments,
        "reopenReason": reopen_reason,
    }
    changed = [k for k, v in fields.items() if v is not None]
    if not changed:
        raise ValidationError(
            "No updatable fields supplied",
            details={"allowedFields": list(fields)},
        )
    if status is not None:
        _validate_status(status)

    now = _utcnow()
    previous_status = wf.status
    if review_comments is not None:
        wf.review_comments = review_comments
    if sign_off_comments is not None:
        wf.sign_off_comments = sign_off_comments
    if reopen_reason is not None:
        wf.reopen_reason = reopen_reason

    wf.reviewed_by = caller.user_id
    wf.reviewed_at = now
    wf.assigned_reviewer = caller.user_id

    if status is not None and status != previous_status:
        if status == STATUS_REOPENED:
            _apply_reopen(wf, caller.user_id, wf.reopen_reason)
        else:
            wf.status = status
            if previous_status == STATUS_SIGNED_OFF:
                wf.is_locked = False
                wf.locked_at = None
                wf.locked_by = None
            if status == STATUS_READY_FOR_REVIEW:
                wf.submitted_for_review_at = now
                wf.submitted_by = caller.user_id
            elif status == STATUS_UNDER_REVIEW:
                wf.assigned_at = now
            elif status == STATUS_APPROVED:
                wf.approved_at = now
                wf.approved_by = caller.user_id
            elif status == STATUS_SIGNED_OFF:
                wf.signed_off_at = now
                wf.signed_off_by = caller.user_id
    db.session.commit()

    logger.warning(
        "Review workflow overridden",
        extra={
            "workflow_id": wf.id,
            "item_type": wf.item_type,
            "user_id": caller.user_id,
            "action": "status-changed",
        },
    )
    _record(
        wf, caller,
        action="status-changed",
        previous_status=previous_status,
        comments=review_comments or sign_off_comments or reopen_reason,
        metadata={"override": True, "fields": changed},
        activity=ActivityAction.UPDATE_REVIEW_WORKFLOW,
        details=f"Override update of {_item_label(wf)}: {', '.join(changed)}",
    )
    return wf


def delete_workflow(caller: Caller, workflow_id: str) -> None:
    """Hard-delete a workflow and its notes.  The ledger keeps prior entries."""
    check_capability(caller, "delete_workflow")
    wf = _get_workflow_or_404(workflow_id)
    _require_owner(wf, caller, "delete_workflow")

    label = _item_label(wf)
    wf_id = wf.id
    item_type = wf.item_type
    db.session.delete(wf)
    db.session.commit()

    logger.info(
        "Review workflow deleted",
        extra={"workflow_id": wf_id, "item_type": item_type, "user_id": caller.user_id, "action": "delete"},
    )
    log_activity(caller, ActivityAction.DELETE_REVIEW_WORKFLOW, f"Deleted review workflow for {label}")


def purge_item_type(item_type: str) -> int:
    """Delete every workflow of one item type.  Returns the number deleted.

    Maintenance path for the CLI; history rows are kept.
    """
    item_type = ItemType.parse(item_type).value
    rows = db.session.execute(
        select(ReviewWorkflow).where(ReviewWorkflow.item_type == item_type)
    ).scalars().all()
    for wf in rows:
        db.session.delete(wf)
    db.session.commit()
    logger.info("Purged review workflows", extra={"item_type": item_type, "action": "purge"})
    return len(rows)


def count_by_item_type(item_type: str) -> int:
    item_type = ItemType.parse(item_type).value
    return db.session.execute(
        select(func.count(ReviewWorkflow.id)).where(ReviewWorkflow.item_type == item_type)
    ).scalar_one()


# ── Read operations ───────────────────────────────────────────────────────────


def get_review_queue(caller: Caller, reviewer_id: str | None = None, status=None) -> list[ReviewWorkflow]:
    """Pending items ordered by priority desc, due date asc (nulls last), created asc.

    Without ``status`` the queue holds ready-for-review and under-review items.
    A reviewer id other than the caller's own requires ``view_any_queue``; an
    unfiltered call by a reviewer, partner or admin is scoped to their own
    assignments.
    """
    check_capability(caller, "view_queue")
    if reviewer_id and str(reviewer_id) != caller.user_id:
        check_capability(caller, "view_any_queue")
    elif not reviewer_id and caller.role in SELF_SCOPED_QUEUE_ROLES:
        reviewer_id = caller.user_id

    statuses = _parse_statuses(status) or list(PENDING_REVIEW_STATUSES)
    priority_rank = case(PRIORITY_RANK, value=ReviewWorkflow.priority, else_=0)

    stmt = select(ReviewWorkflow).where(ReviewWorkflow.status.in_(statuses))
    if reviewer_id:
        stmt = stmt.where(ReviewWorkflow.assigned_reviewer == str(reviewer_id))
    stmt = stmt.order_by(
        priority_rank.desc(),
        ReviewWorkflow.due_date.is_(None),
        ReviewWorkflow.due_date.asc(),
        ReviewWorkflow.created_at.asc(),
        ReviewWorkflow.id.asc(),
    )
    return list(db.session.execute(stmt).scalars().all())


def get_review_stats(caller: Caller, engagement_id: str | None = None) -> dict:
    """Counts by status plus aggregate totals, optionally for one engagement."""
    check_capability(caller, "view_stats")
    stmt = select(ReviewWorkflow.status, func.count(ReviewWorkflow.id)).group_by(ReviewWorkflow.status)
    if engagement_id:
        stmt = stmt.where(ReviewWorkflow.engagement_id == str(engagement_id))
    breakdown = {s: 0 for s in WORKFLOW_STATUSES}
    for status, count in db.session.execute(stmt).all():
        breakdown[status] = count

    return {
        "engagementId": engagement_id,
        "totalItems": sum(breakdown.values()),
        "signedOffItems": breakdown[STATUS_SIGNED_OFF],
        "pendingReview": sum(breakdown[s] for s in PENDING_REVIEW_STATUSES),
        "statusBreakdown": breakdown,
    }


def list_workflows(
    caller: Caller,
    *,
    page: int,
    limit: int,
    status=None,
    engagement_id: str | None = None,
    reviewer_id: str | None = None,
    item_type: str | None = None,
):
    """Paginated workflow listing, newest first.  Returns a Pagination."""
    check_capability(caller, "view_queue")
    if reviewer_id and str(reviewer_id) != caller.user_id and not can(caller.role, "view_any_queue"):
        raise ForbiddenError(
            "Not permitted to list another reviewer's workflows",
            user_id=caller.user_id,
            action="view_any_queue",
        )
    q = ReviewWorkflow.query
    statuses = _parse_statuses(status)
    if statuses:
        q = q.filter(ReviewWorkflow.status.in_(statuses))
    if engagement_id:
        q = q.filter(ReviewWorkflow.engagement_id == str(engagement_id))
    if reviewer_id:
        q = q.filter(ReviewWorkflow.assigned_reviewer == str(reviewer_id))
    if item_type:
        q = q.filter(ReviewWorkflow.item_type == ItemType.parse(item_type).value)
    q = q.order_by(ReviewWorkflow.created_at.desc(), ReviewWorkflow.id.desc())
    return q.paginate(page=page, per_page=limit, error_out=False)


def list_history(
    caller: Caller,
    *,
    page: int,
    limit: int,
    engagement_id: str | None = None,
    action: str | None = None,
    performed_by: str | None = None,
    item_type: str | None = None,
):
    """Paginated history listing, newest first."""
    check_capability(caller, "view_history")
    if item_type:
        item_type = ItemType.parse(item_type).value
    return history.paginate(
        page=page,
        limit=limit,
        engagement_id=engagement_id,
        action=action,
        performed_by=performed_by,
        item_type=item_type,
    )


def get_workflow_history(caller: Caller, workflow_id: str, limit: int = 50):
    """Return (workflow, entries) for one workflow's item, newest first."""
    check_capability(caller, "view_history")
    wf = _get_workflow_or_404(workflow_id)
    return wf, history.list_by_item(wf.item_type, wf.item_id, limit=limit)
