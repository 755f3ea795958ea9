"""
Review History Ledger Service.

Write-once audit trail of review transitions, queryable by item,
engagement, user, action or recency.

Design decisions:
    - ``append`` is called after the workflow change has committed and never
      raises: a failed append is logged and rolled back, the transition stands.
    - Every listing is newest first (performed_at desc, id desc as tiebreak).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from audit_portal.core.exceptions import ValidationError
from audit_portal.models import db
from audit_portal.models.review_history import HISTORY_ACTIONS, ReviewHistory

logger = logging.getLogger(__name__)


def _newest_first(query):
    return query.order_by(ReviewHistory.performed_at.desc(), ReviewHistory.id.desc())


# ── Write ─────────────────────────────────────────────────────────────────────


def append(
    *,
    workflow,
    action: str,
    caller,
    previous_status: str | None,
    new_status: str | None,
    comments: str | None = None,
    metadata: dict | None = None,
) -> ReviewHistory | None:
    """Append one history entry for ``workflow``.

    Returns the committed entry, or None when the write failed (the failure
    is logged, never propagated).
    """
    try:
        if action not in HISTORY_ACTIONS:
            raise ValueError(f"Unknown history action '{action}'")
        entry = ReviewHistory(
            item_type=workflow.item_type,
            item_id=workflow.item_id,
            engagement_id=workflow.engagement_id,
            action=action,
            performed_by=caller.user_id,
            previous_status=previous_status,
            new_status=new_status,
            comments=comments,
            extra_data=metadata or {},
            ip_address=caller.ip_address,
            user_agent=(caller.user_agent or None) and caller.user_agent[:512],
            location=caller.location,
            session_id=caller.session_id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        logger.exception(
            "Failed to append review history",
            extra={"workflow_id": getattr(workflow, "id", None), "action": action},
        )
        return None


# ── Read ──────────────────────────────────────────────────────────────────────


def list_by_item(item_type: str, item_id: str, limit: int | None = None) -> list[ReviewHistory]:
    q = _newest_first(ReviewHistory.query.filter_by(item_type=item_type, item_id=str(item_id)))
    if limit:
        q = q.limit(limit)
    return q.all()


def list_by_engagement(engagement_id: str, limit: int = 100) -> list[ReviewHistory]:
    q = ReviewHistory.query.filter_by(engagement_id=str(engagement_id))
    return _newest_first(q).limit(limit).all()


def list_by_user(user_id: str, limit: int = 50) -> list[ReviewHistory]:
    q = ReviewHistory.query.filter_by(performed_by=str(user_id))
    return _newest_first(q).limit(limit).all()


def list_by_action(action: str, limit: int = 100) -> list[ReviewHistory]:
    if action not in HISTORY_ACTIONS:
        raise ValidationError("Invalid history action", details={"action": action, "validActions": list(HISTORY_ACTIONS)})
    q = ReviewHistory.query.filter_by(action=action)
    return _newest_first(q).limit(limit).all()


def list_recent(hours: int = 24, limit: int = 100) -> list[ReviewHistory]:
    """Entries performed within the last ``hours`` hours."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    q = ReviewHistory.query.filter(ReviewHistory.performed_at >= since)
    return _newest_first(q).limit(limit).all()


def paginate(
    *,
    page: int,
    limit: int,
    engagement_id: str | None = None,
    action: str | None = None,
    performed_by: str | None = None,
    item_type: str | None = None,
):
    """Filtered, paginated listing.  Returns a Flask-SQLAlchemy Pagination."""
    q = ReviewHistory.query
    if engagement_id:
        q = q.filter(ReviewHistory.engagement_id == str(engagement_id))
    if action:
        if action not in HISTORY_ACTIONS:
            raise ValidationError("Invalid history action", details={"action": action, "validActions": list(HISTORY_ACTIONS)})
        q = q.filter(ReviewHistory.action == action)
    if performed_by:
        q = q.filter(ReviewHistory.performed_by == str(performed_by))
    if item_type:
        q = q.filter(ReviewHistory.item_type == item_type)
    return _newest_first(q).paginate(page=page, per_page=limit, error_out=False)
