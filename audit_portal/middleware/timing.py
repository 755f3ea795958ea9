"""
Request timing middleware.

Records request duration, tags the log record with the workflow the URL
addresses, and adds X-Request-Duration-Ms and X-Request-ID headers to all
responses.

Log levels:
    slow (> SLOW_REQUEST_MS)  → WARNING
    5xx                       → ERROR
    4xx                       → INFO  (rejected transitions, auth failures)
    everything else           → DEBUG
"""

import logging
import time
import uuid

from flask import Flask, current_app, g, request

logger = logging.getLogger(__name__)

# Endpoints excluded from timing logs (high frequency, low value)
_SKIP_LOG = frozenset({"/api/v1/health/live", "/api/v1/health/ready"})

DEFAULT_SLOW_REQUEST_MS = 1000

# URL parameters copied onto the log record
_ROUTE_KEYS = ("workflow_id", "item_type", "item_id", "engagement_id")


def _log_extra(response, duration_ms: float) -> dict:
    extra = {
        "method": request.method,
        "path": request.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
        "remote_addr": request.remote_addr,
        "request_id": getattr(g, "request_id", ""),
        "user_id": getattr(g, "jwt_user_id", None),
    }
    view_args = request.view_args or {}
    for key in _ROUTE_KEYS:
        if key in view_args:
            extra[key] = view_args[key]
    return extra


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex[:12])

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        if request.path in _SKIP_LOG or request.path.startswith("/static"):
            return response

        extra = _log_extra(response, duration_ms)
        slow_ms = current_app.config.get("SLOW_REQUEST_MS", DEFAULT_SLOW_REQUEST_MS)
        status = response.status_code
        if duration_ms > slow_ms:
            level, label = logging.WARNING, "Slow request"
        elif status >= 500:
            level, label = logging.ERROR, "Server error"
        elif status >= 400:
            level, label = logging.INFO, "Rejected request"
        else:
            level, label = logging.DEBUG, "Request"
        logger.log(level, "%s: %s %s %d (%.0fms)",
                   label, request.method, request.path, status, duration_ms, extra=extra)

        return response
