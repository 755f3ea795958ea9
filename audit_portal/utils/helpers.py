"""Shared request-parsing helpers for the API blueprints.

parse_datetime:   ISO date/datetime strings → aware UTC datetime
parse_pagination: page/limit query args → clamped ints
pagination_meta:  Flask-SQLAlchemy Pagination → response block
"""
from datetime import date, datetime, time, timezone

from flask import current_app

from audit_portal.core.exceptions import ValidationError


def parse_datetime(value, field="date"):
    """Parse an ISO date or datetime string to an aware UTC datetime.

    Returns None for empty input.  Raises ValidationError on bad input.
    Supports:
    - YYYY-MM-DD (midnight UTC)
    - YYYY-MM-DDTHH:MM:SS[.ffffff][+HH:MM | Z]
    - DD.MM.YYYY
    Naive datetimes are taken as UTC.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            try:
                parsed = datetime.strptime(text, "%d.%m.%Y")
            except ValueError as exc:
                raise ValidationError(
                    f"Invalid {field}. Use an ISO date (YYYY-MM-DD) or datetime.",
                    details={field: value},
                ) from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _positive_int(value, field, default):
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value}) from None
    if number < 1:
        raise ValidationError(f"{field} must be at least 1", details={field: value})
    return number


def parse_pagination(args):
    """Return (page, limit) from query args.

    ``limit`` defaults to REVIEW_PAGE_SIZE and is capped at REVIEW_MAX_PAGE_SIZE.
    """
    default_size = current_app.config.get("REVIEW_PAGE_SIZE", 20)
    max_size = current_app.config.get("REVIEW_MAX_PAGE_SIZE", 100)
    page = _positive_int(args.get("page"), "page", 1)
    limit = _positive_int(args.get("limit"), "limit", default_size)
    return page, min(limit, max_size)


def parse_limit(args, default, maximum=None):
    """Return a single ``limit`` arg clamped to ``maximum`` (REVIEW_MAX_PAGE_SIZE)."""
    maximum = maximum or current_app.config.get("REVIEW_MAX_PAGE_SIZE", 100)
    return min(_positive_int(args.get("limit"), "limit", default), maximum)


def pagination_meta(paginated):
    """Build the pagination block returned by every listing endpoint."""
    return {
        "currentPage": paginated.page,
        "totalPages": paginated.pages,
        "totalCount": paginated.total,
        "limit": paginated.per_page,
        "hasNext": paginated.has_next,
        "hasPrev": paginated.has_prev,
    }
