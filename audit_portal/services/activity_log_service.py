"""
Employee activity log writer.

``log_activity`` is called after a review transition has committed.  It
snapshots the employee's name and email from the profile table and never
raises: a failure is logged and the session rolled back, leaving the
already-committed business change untouched.
"""

from __future__ import annotations

import logging

from audit_portal.models import db
from audit_portal.models.activity_log import EmployeeActivityLog
from audit_portal.services.profile_service import get_user_info

logger = logging.getLogger(__name__)


def log_activity(caller, action: str, details: str | None = None, status: str = "SUCCESS") -> EmployeeActivityLog | None:
    """Append one activity row for ``caller``.  Returns None on failure."""
    try:
        info = get_user_info(caller.user_id)
        entry = EmployeeActivityLog(
            employee_id=caller.user_id,
            employee_name=info["name"],
            employee_email=info["email"],
            action=action,
            details=details,
            ip_address=caller.ip_address,
            location=caller.location or "Unknown",
            device_info=(caller.user_agent or "Unknown")[:512],
            status=status,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    except Exception:
        db.session.rollback()
        logger.exception(
            "Failed to log employee activity",
            extra={"user_id": caller.user_id, "action": action},
        )
        return None
