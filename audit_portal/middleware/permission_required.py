"""
Role Decorators — JWT-aware role gate for route protection.

Usage:
    @bp.route("/submit/<item_type>/<item_id>", methods=["POST"])
    @require_roles("employee", "reviewer", "partner", "admin")
    def submit(item_type, item_id):
        ...

No authenticated caller → 401.  Caller role outside the allowed set → 403.
Finer-grained checks (capabilities, ownership) happen in the services.
"""

import functools
import logging

from flask import g

from audit_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def require_roles(*roles: str):
    """
    Decorator: require an authenticated JWT caller whose role is in ``roles``.

    Args:
        roles: Allowed role names, e.g. "reviewer", "partner".
    """
    allowed = frozenset(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id = getattr(g, "jwt_user_id", None)
            if user_id is None:
                return api_error(E.AUTH_REQUIRED, "Authentication required")

            role = getattr(g, "jwt_role", None)
            if role not in allowed:
                logger.warning(
                    "User %s denied: role '%s' not in %s on %s",
                    user_id, role, sorted(allowed), f.__name__,
                )
                return api_error(
                    E.FORBIDDEN,
                    "Insufficient role for this operation",
                    details={"role": role, "allowedRoles": sorted(allowed)},
                )

            return f(*args, **kwargs)
        return decorated
    return decorator
