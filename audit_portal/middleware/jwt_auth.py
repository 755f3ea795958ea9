"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

  Authorization: Bearer <token>  →  g.jwt_user_id, g.jwt_role

Invalid or expired tokens leave the context empty; the route decorators in
``permission_required`` decide whether that is a 401.  A token without a
``role`` claim falls back to the caller's profile role.
"""

import logging

import jwt as pyjwt
from flask import g, request

from audit_portal.services.jwt_service import decode_access_token
from audit_portal.services.profile_service import get_user_role

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # Clear JWT context
        g.jwt_user_id = None
        g.jwt_role = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError:
            logger.info("Invalid access token on %s", path)
            return

        user_id = payload.get("sub")
        if not user_id:
            return
        g.jwt_user_id = str(user_id)
        g.jwt_role = payload.get("role") or get_user_role(g.jwt_user_id)
