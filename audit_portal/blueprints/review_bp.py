"""
Review Workflow Blueprint.

Routes under /api/v1/review:
    POST   /submit/<item_type>/<item_id>          — submit item for review
    POST   /assign/<workflow_id>                  — assign reviewer
    POST   /perform/<workflow_id>                 — approve / reject
    POST   /signoff/<workflow_id>                 — sign off (locks)
    POST   /reopen/<workflow_id>                  — reopen a signed-off item
    GET    /queue                                 — pending review queue
    GET    /history/<workflow_id>                 — history of one workflow
    GET    /stats                                 — counts by status
    GET    /workflows                             — paginated workflows
    GET    /workflows/engagement/<engagement_id>  — paginated, one engagement
    POST   /workflows                             — explicit create
    GET    /workflows/<workflow_id>               — single workflow
    PUT    /workflows/<workflow_id>               — owner override update
    DELETE /workflows/<workflow_id>               — owner delete
    POST   /workflows/<workflow_id>/notes         — add note
    PUT    /workflows/<workflow_id>/priority      — change priority
    PUT    /workflows/<workflow_id>/due-date      — change / clear due date
    GET    /history                               — paginated history
    GET    /engagement/<engagement_id>            — paginated history, one engagement

All business logic lives in review_service; this module parses input,
builds the Caller and shapes responses.
"""

import logging

from flask import Blueprint, g, jsonify, request
from werkzeug.exceptions import HTTPException

from audit_portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from audit_portal.middleware.permission_required import require_roles
from audit_portal.services import review_service
from audit_portal.services.permission import REVIEW_ROUTE_ROLES, Caller
from audit_portal.utils.errors import E, api_error, code_for_status
from audit_portal.utils.helpers import pagination_meta, parse_datetime, parse_limit, parse_pagination

logger = logging.getLogger(__name__)

review_bp = Blueprint("review", __name__, url_prefix="/api/v1/review")

WORKFLOW_HISTORY_LIMIT = 50


# ── Error handlers ───────────────────────────────────────────────────────────


@review_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, f"{error.resource} not found")


@review_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@review_bp.errorhandler(PreconditionFailedError)
def _handle_precondition(error: PreconditionFailedError):
    return api_error(E.PRECONDITION_FAILED, str(error), current_status=error.current_status)


@review_bp.errorhandler(ForbiddenError)
def _handle_forbidden(error: ForbiddenError):
    logger.warning(
        "Forbidden review action",
        extra={"user_id": error.user_id, "action": error.action},
    )
    return api_error(E.FORBIDDEN, str(error))


@review_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_DUPLICATE, str(error))


@review_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return api_error(code_for_status(error.code), error.description or error.name, status=error.code)
    logger.exception("Unexpected error in review_bp endpoint=%s", request.endpoint)
    return api_error(E.INTERNAL, "Internal server error")


# ── Helpers ──────────────────────────────────────────────────────────────────


def _client_ip() -> str | None:
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr


def _caller() -> Caller:
    return Caller(
        user_id=g.jwt_user_id,
        role=g.jwt_role,
        ip_address=_client_ip(),
        user_agent=request.headers.get("User-Agent"),
        location=request.headers.get("X-Client-Location"),
        session_id=request.headers.get("X-Session-ID"),
    )


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _workflow_response(wf, message, status=200, **extra):
    body = {"success": True, "message": message, "workflow": wf.to_dict()}
    body.update(extra)
    return jsonify(body), status


# ═════════════════════════════════════════════════════════════════════════════
# State transitions
# ═════════════════════════════════════════════════════════════════════════════


@review_bp.route("/submit/<item_type>/<item_id>", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def submit_for_review(item_type, item_id):
    data = _body()
    wf = review_service.submit_for_review(
        _caller(),
        item_type,
        item_id,
        engagement_id=data.get("engagementId"),
        comments=data.get("comments"),
    )
    return _workflow_response(wf, "Item submitted for review")


@review_bp.route("/assign/<workflow_id>", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def assign_reviewer(workflow_id):
    data = _body()
    wf = review_service.assign_reviewer(
        _caller(), workflow_id, data.get("reviewerId"), comments=data.get("comments"),
    )
    return _workflow_response(wf, "Reviewer assigned")


@review_bp.route("/perform/<workflow_id>", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def perform_review(workflow_id):
    data = _body()
    wf = review_service.perform_review(
        _caller(), workflow_id, data.get("approved"), comments=data.get("comments"),
    )
    outcome = "approved" if wf.status == "approved" else "rejected"
    return _workflow_response(wf, f"Review completed: item {outcome}")


@review_bp.route("/signoff/<workflow_id>", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def sign_off(workflow_id):
    data = _body()
    wf = review_service.sign_off(_caller(), workflow_id, comments=data.get("comments"))
    return _workflow_response(wf, "Item signed off")


@review_bp.route("/reopen/<workflow_id>", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def reopen(workflow_id):
    data = _body()
    wf = review_service.reopen(_caller(), workflow_id, data.get("reason"))
    return _workflow_response(wf, "Item re-opened")


# ═════════════════════════════════════════════════════════════════════════════
# Queue / stats / history
# ═════════════════════════════════════════════════════════════════════════════


@review_bp.route("/queue", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def review_queue():
    workflows = review_service.get_review_queue(
        _caller(),
        reviewer_id=request.args.get("reviewerId"),
        status=request.args.get("status"),
    )
    return jsonify({
        "success": True,
        "count": len(workflows),
        "workflows": [wf.to_dict(include_notes=False) for wf in workflows],
    })


@review_bp.route("/stats", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def review_stats():
    stats = review_service.get_review_stats(_caller(), engagement_id=request.args.get("engagementId"))
    return jsonify({"success": True, "stats": stats})


@review_bp.route("/history/<workflow_id>", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def workflow_history(workflow_id):
    limit = parse_limit(request.args, WORKFLOW_HISTORY_LIMIT)
    wf, entries = review_service.get_workflow_history(_caller(), workflow_id, limit=limit)
    return jsonify({
        "success": True,
        "workflowId": wf.id,
        "itemType": wf.item_type,
        "itemId": wf.item_id,
        "count": len(entries),
        "history": [e.to_dict() for e in entries],
    })


def _history_listing(engagement_id=None):
    page, limit = parse_pagination(request.args)
    paginated = review_service.list_history(
        _caller(),
        page=page,
        limit=limit,
        engagement_id=engagement_id or request.args.get("engagementId"),
        action=request.args.get("action"),
        performed_by=request.args.get("performedBy"),
        item_type=request.args.get("itemType"),
    )
    return jsonify({
        "success": True,
        "history": [e.to_dict() for e in paginated.items],
        "pagination": pagination_meta(paginated),
    })


@review_bp.route("/history", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def list_history():
    return _history_listing()


@review_bp.route("/engagement/<engagement_id>", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def engagement_history(engagement_id):
    return _history_listing(engagement_id)


# ═════════════════════════════════════════════════════════════════════════════
# Workflow records
# ═════════════════════════════════════════════════════════════════════════════


def _workflow_listing(engagement_id=None):
    page, limit = parse_pagination(request.args)
    paginated = review_service.list_workflows(
        _caller(),
        page=page,
        limit=limit,
        status=request.args.get("status"),
        engagement_id=engagement_id or request.args.get("engagementId"),
        reviewer_id=request.args.get("reviewerId"),
        item_type=request.args.get("itemType"),
    )
    return jsonify({
        "success": True,
        "workflows": [wf.to_dict(include_notes=False) for wf in paginated.items],
        "pagination": pagination_meta(paginated),
    })


@review_bp.route("/workflows", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def list_workflows():
    return _workflow_listing()


@review_bp.route("/workflows/engagement/<engagement_id>", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def engagement_workflows(engagement_id):
    return _workflow_listing(engagement_id)


@review_bp.route("/workflows", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def create_workflow():
    data = _body()
    wf, created = review_service.create_workflow(
        _caller(),
        data.get("itemType"),
        data.get("itemId"),
        data.get("engagementId"),
        priority=data.get("priority"),
        due_date=parse_datetime(data.get("dueDate"), "dueDate"),
        tags=data.get("tags"),
    )
    if created:
        return _workflow_response(wf, "Review workflow created", 201, created=True)
    return _workflow_response(wf, "Review workflow already exists", created=False)


@review_bp.route("/workflows/<workflow_id>", methods=["GET"])
@require_roles(*REVIEW_ROUTE_ROLES)
def get_workflow(workflow_id):
    wf = review_service.get_workflow(_caller(), workflow_id)
    return jsonify({"success": True, "workflow": wf.to_dict()})


@review_bp.route("/workflows/<workflow_id>", methods=["PUT"])
@require_roles(*REVIEW_ROUTE_ROLES)
def update_workflow(workflow_id):
    data = _body()
    wf = review_service.update_workflow(
        _caller(),
        workflow_id,
        status=data.get("status"),
        review_comments=data.get("reviewComments"),
        sign_off_comments=data.get("signOffComments"),
        reopen_reason=data.get("reopenReason"),
    )
    return _workflow_response(wf, "Review workflow updated")


@review_bp.route("/workflows/<workflow_id>", methods=["DELETE"])
@require_roles(*REVIEW_ROUTE_ROLES)
def delete_workflow(workflow_id):
    review_service.delete_workflow(_caller(), workflow_id)
    return jsonify({"success": True, "message": "Review workflow deleted", "workflowId": workflow_id})


@review_bp.route("/workflows/<workflow_id>/notes", methods=["POST"])
@require_roles(*REVIEW_ROUTE_ROLES)
def add_note(workflow_id):
    data = _body()
    wf = review_service.add_note(_caller(), workflow_id, data.get("text"))
    return _workflow_response(wf, "Note added", 201)


@review_bp.route("/workflows/<workflow_id>/priority", methods=["PUT"])
@require_roles(*REVIEW_ROUTE_ROLES)
def change_priority(workflow_id):
    data = _body()
    wf = review_service.change_priority(_caller(), workflow_id, data.get("priority"))
    return _workflow_response(wf, "Priority updated")


@review_bp.route("/workflows/<workflow_id>/due-date", methods=["PUT"])
@require_roles(*REVIEW_ROUTE_ROLES)
def change_due_date(workflow_id):
    data = _body()
    if "dueDate" not in data:
        raise ValidationError("dueDate is required (null clears it)", details={"field": "dueDate"})
    due_date = parse_datetime(data.get("dueDate"), "dueDate")
    wf = review_service.change_due_date(_caller(), workflow_id, due_date)
    return _workflow_response(wf, "Due date updated")
