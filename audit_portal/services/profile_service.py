"""
Profile lookup service.

Resolves a user id to ``{"name", "email", "role"}`` and fans a role set out
to user ids for notifications.  Lookups never raise for unknown users; they
resolve to the "Unknown User" placeholder instead.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from audit_portal.models import db
from audit_portal.models.profile import Profile

logger = logging.getLogger(__name__)

UNKNOWN_USER = {"name": "Unknown User", "email": "unknown@example.com", "role": "unknown"}


def get_user_info(user_id: str | None) -> dict:
    """Return name/email/role for ``user_id`` or the Unknown User placeholder."""
    if not user_id:
        return dict(UNKNOWN_USER)
    profile = db.session.execute(
        select(Profile).where(Profile.user_id == str(user_id))
    ).scalar_one_or_none()
    if profile is None:
        return dict(UNKNOWN_USER)
    return {
        "name": profile.name or UNKNOWN_USER["name"],
        "email": profile.email or UNKNOWN_USER["email"],
        "role": profile.role or UNKNOWN_USER["role"],
    }


def get_user_role(user_id: str | None) -> str | None:
    """Return the profile role for ``user_id`` or None when no profile exists."""
    if not user_id:
        return None
    return db.session.execute(
        select(Profile.role).where(Profile.user_id == str(user_id))
    ).scalar_one_or_none()


def list_user_ids_by_roles(roles) -> list[str]:
    """Return the user ids of every profile whose role is in ``roles``."""
    roles = [r for r in (roles or []) if r]
    if not roles:
        return []
    rows = db.session.execute(
        select(Profile.user_id).where(Profile.role.in_(roles)).order_by(Profile.user_id)
    ).scalars().all()
    return list(rows)
