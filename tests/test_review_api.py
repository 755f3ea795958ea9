"""
Tests: review workflow HTTP API (/api/v1/review).

Drives the blueprint through the Flask test client with real JWTs:
    - end-to-end lifecycle over HTTP
    - 401 / 403 role gate, 400 / 404 / 409 error mapping
    - listings and pagination metadata
    - explicit create, notes, priority, due date, override, delete
"""

import pytest
from werkzeug.exceptions import Conflict, RequestEntityTooLarge

import audit_portal.blueprints.review_bp as review_bp_module
from audit_portal.models.notification import Notification
from audit_portal.models.review_history import ReviewHistory

BASE = "/api/v1/review"


# ── Helpers ──────────────────────────────────────────────────────────────────


def _submit(client, auth_headers, item_id="proc-1", user="E1", item_type="procedure", **body):
    payload = {"engagementId": "EG1"}
    payload.update(body)
    return client.post(f"{BASE}/submit/{item_type}/{item_id}", json=payload, headers=auth_headers(user))


def _signed_off_id(client, auth_headers, item_id="proc-1"):
    wf_id = _submit(client, auth_headers, item_id).get_json()["workflow"]["id"]
    client.post(f"{BASE}/assign/{wf_id}", json={"reviewerId": "R1"}, headers=auth_headers("E1"))
    client.post(f"{BASE}/perform/{wf_id}", json={"approved": True}, headers=auth_headers("R1"))
    client.post(f"{BASE}/signoff/{wf_id}", json={"comments": "final"}, headers=auth_headers("P1"))
    return wf_id


# ── Lifecycle ────────────────────────────────────────────────────────────────


class TestLifecycle:
    def test_full_lifecycle_over_http(self, client, auth_headers, profiles):
        res = _submit(client, auth_headers, comments="ready")
        assert res.status_code == 200
        body = res.get_json()
        assert body["success"] is True
        wf_id = body["workflow"]["id"]
        assert body["workflow"]["status"] == "ready-for-review"

        res = client.post(f"{BASE}/assign/{wf_id}", json={"reviewerId": "R1"}, headers=auth_headers("E1"))
        assert res.status_code == 200
        assert res.get_json()["workflow"]["status"] == "under-review"

        res = client.post(
            f"{BASE}/perform/{wf_id}",
            json={"approved": True, "comments": "looks good"},
            headers=auth_headers("R1"),
        )
        assert res.status_code == 200
        assert res.get_json()["message"] == "Review completed: item approved"

        res = client.post(f"{BASE}/signoff/{wf_id}", json={"comments": "final"}, headers=auth_headers("P1"))
        assert res.status_code == 200
        wf = res.get_json()["workflow"]
        assert wf["status"] == "signed-off"
        assert wf["isLocked"] is True

        res = client.post(f"{BASE}/reopen/{wf_id}", json={"reason": "needs fix"}, headers=auth_headers("P1"))
        assert res.status_code == 200
        wf = res.get_json()["workflow"]
        assert wf["status"] == "re-opened"
        assert wf["isLocked"] is False
        assert wf["version"] == 2
        assert wf["previousVersion"] == 1

        res = client.get(f"{BASE}/history/{wf_id}", headers=auth_headers("E1"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["workflowId"] == wf_id
        assert body["count"] == 5
        assert [e["action"] for e in body["history"]] == [
            "reopened",
            "signed-off",
            "review-approved",
            "assigned-reviewer",
            "submitted-for-review",
        ]

    def test_audit_context_comes_from_request_headers(self, client, auth_headers):
        headers = auth_headers(
            "E1",
            **{
                "X-Forwarded-For": "203.0.113.7, 10.0.0.2",
                "X-Client-Location": "Nairobi",
                "X-Session-ID": "sess-42",
                "User-Agent": "portal-ui/2.1",
            },
        )
        res = client.post(f"{BASE}/submit/kyc/kyc-1", json={"engagementId": "EG1"}, headers=headers)
        assert res.status_code == 200

        entry = ReviewHistory.query.one()
        assert entry.ip_address == "203.0.113.7"
        assert entry.location == "Nairobi"
        assert entry.session_id == "sess-42"
        assert entry.user_agent == "portal-ui/2.1"

    def test_submit_creates_notifications(self, client, auth_headers, profiles):
        _submit(client, auth_headers)
        recipients = sorted(n.user_id for n in Notification.query.all())
        assert recipients == ["M1", "P1", "R1", "R2"]


# ── Authentication and roles ─────────────────────────────────────────────────


class TestAuth:
    def test_missing_token_is_401(self, client):
        res = client.post(f"{BASE}/submit/procedure/proc-1", json={"engagementId": "EG1"})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_AUTH_REQUIRED"

    def test_invalid_token_is_401(self, client):
        res = client.get(f"{BASE}/queue", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    @pytest.mark.parametrize("user", ["M1", "C1"])
    def test_roles_outside_review_set_are_403(self, client, auth_headers, user):
        res = client.get(f"{BASE}/queue", headers=auth_headers(user))
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert "reviewer" in body["details"]["allowedRoles"]

    def test_role_falls_back_to_profile(self, client, auth_headers, profiles):
        res = client.get(f"{BASE}/queue", headers=auth_headers("R1", include_role=False))
        assert res.status_code == 200

    def test_role_less_token_without_profile_is_403(self, client, auth_headers):
        res = client.get(f"{BASE}/queue", headers=auth_headers("ghost", include_role=False))
        assert res.status_code == 403

    def test_capability_failure_is_403(self, client, auth_headers):
        res = client.get(f"{BASE}/queue?reviewerId=R2", headers=auth_headers("R1"))
        assert res.status_code == 403
        assert res.get_json()["success"] is False


# ── Error mapping ────────────────────────────────────────────────────────────


class TestErrors:
    def test_invalid_item_type_is_400(self, client, auth_headers):
        res = _submit(client, auth_headers, item_type="spreadsheet")
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "procedure" in body["details"]["validTypes"]

    def test_unknown_workflow_is_404(self, client, auth_headers):
        res = client.post(f"{BASE}/assign/does-not-exist", json={"reviewerId": "R1"}, headers=auth_headers("E1"))
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_skipping_a_state_is_409_with_current_status(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        res = client.post(f"{BASE}/signoff/{wf_id}", json={}, headers=auth_headers("P1"))
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_PRECONDITION_FAILED"
        assert body["currentStatus"] == "ready-for-review"

    def test_double_submit_is_409(self, client, auth_headers):
        _submit(client, auth_headers)
        res = _submit(client, auth_headers)
        assert res.status_code == 409
        assert res.get_json()["currentStatus"] == "ready-for-review"

    def test_non_boolean_approved_is_400(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        client.post(f"{BASE}/assign/{wf_id}", json={"reviewerId": "R1"}, headers=auth_headers("E1"))
        res = client.post(f"{BASE}/perform/{wf_id}", json={"approved": "yes"}, headers=auth_headers("R1"))
        assert res.status_code == 400

    def test_bad_page_is_400(self, client, auth_headers):
        res = client.get(f"{BASE}/workflows?page=0", headers=auth_headers("E1"))
        assert res.status_code == 400

    def test_unknown_api_path_is_json_404(self, client):
        res = client.get("/api/v1/review-nothing")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_wrong_method_is_405(self, client, auth_headers):
        res = client.get(f"{BASE}/submit/procedure/proc-1", headers=auth_headers("E1"))
        assert res.status_code == 405
        assert res.get_json()["code"] == "ERR_METHOD_NOT_ALLOWED"

    def test_non_string_reopen_reason_is_400(self, client, auth_headers):
        wf_id = _signed_off_id(client, auth_headers)
        res = client.post(f"{BASE}/reopen/{wf_id}", json={"reason": 123}, headers=auth_headers("P1"))
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "reason" in body["details"]

    def test_non_string_note_text_is_400(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        res = client.post(f"{BASE}/workflows/{wf_id}/notes", json={"text": 5}, headers=auth_headers("E1"))
        assert res.status_code == 400

    def test_non_string_review_comments_is_400_and_status_unchanged(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        client.post(f"{BASE}/assign/{wf_id}", json={"reviewerId": "R1"}, headers=auth_headers("E1"))

        res = client.post(
            f"{BASE}/perform/{wf_id}",
            json={"approved": True, "comments": {"x": 1}},
            headers=auth_headers("R1"),
        )
        assert res.status_code == 400

        res = client.get(f"{BASE}/workflows/{wf_id}", headers=auth_headers("R1"))
        assert res.get_json()["workflow"]["status"] == "under-review"

    @pytest.mark.parametrize("field", ["reviewComments", "signOffComments", "reopenReason"])
    def test_non_string_override_fields_are_400(self, client, auth_headers, field):
        wf_id = _signed_off_id(client, auth_headers)
        res = client.put(f"{BASE}/workflows/{wf_id}", json={field: ["a"]}, headers=auth_headers("P1"))
        assert res.status_code == 400
        assert field in res.get_json()["details"]

    def test_non_string_reviewer_id_is_400(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        res = client.post(f"{BASE}/assign/{wf_id}", json={"reviewerId": 42}, headers=auth_headers("E1"))
        assert res.status_code == 400

    def test_http_exception_code_matches_status(self, app):
        with app.test_request_context(f"{BASE}/submit/procedure/proc-1", method="POST"):
            body, status = review_bp_module._handle_unexpected(Conflict())
        assert status == 409
        assert body.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_oversized_body_code(self, app):
        with app.test_request_context(f"{BASE}/submit/procedure/proc-1", method="POST"):
            body, status = review_bp_module._handle_unexpected(RequestEntityTooLarge())
        assert status == 413
        assert body.get_json()["code"] == "ERR_PAYLOAD_TOO_LARGE"


# ── Queue, stats, listings ───────────────────────────────────────────────────


class TestReads:
    def test_queue_and_stats(self, client, auth_headers):
        _submit(client, auth_headers, "proc-1")
        _submit(client, auth_headers, "proc-2")

        res = client.get(f"{BASE}/queue", headers=auth_headers("E1"))
        assert res.status_code == 200
        body = res.get_json()
        assert body["count"] == 2
        assert "notes" not in body["workflows"][0]

        res = client.get(f"{BASE}/stats?engagementId=EG1", headers=auth_headers("E1"))
        stats = res.get_json()["stats"]
        assert stats["engagementId"] == "EG1"
        assert stats["totalItems"] == 2
        assert stats["pendingReview"] == 2
        assert stats["statusBreakdown"]["ready-for-review"] == 2

    def test_workflow_listing_paginates(self, client, auth_headers):
        for i in range(5):
            _submit(client, auth_headers, f"proc-{i}")

        res = client.get(f"{BASE}/workflows?page=2&limit=2", headers=auth_headers("E1"))
        assert res.status_code == 200
        body = res.get_json()
        assert len(body["workflows"]) == 2
        assert body["pagination"] == {
            "currentPage": 2,
            "totalPages": 3,
            "totalCount": 5,
            "limit": 2,
            "hasNext": True,
            "hasPrev": True,
        }

    def test_limit_is_capped(self, client, auth_headers):
        res = client.get(f"{BASE}/workflows?limit=1000", headers=auth_headers("E1"))
        assert res.get_json()["pagination"]["limit"] == 100

    def test_engagement_workflow_listing(self, client, auth_headers):
        _submit(client, auth_headers, "proc-1")
        _submit(client, auth_headers, "proc-2", engagementId="EG2")

        res = client.get(f"{BASE}/workflows/engagement/EG2", headers=auth_headers("E1"))
        body = res.get_json()
        assert [w["itemId"] for w in body["workflows"]] == ["proc-2"]
        assert body["pagination"]["totalCount"] == 1

    def test_history_listings(self, client, auth_headers):
        _submit(client, auth_headers, "proc-1")
        _submit(client, auth_headers, "proc-2", engagementId="EG2")

        res = client.get(f"{BASE}/history?action=submitted-for-review", headers=auth_headers("E1"))
        assert res.get_json()["pagination"]["totalCount"] == 2

        res = client.get(f"{BASE}/engagement/EG2", headers=auth_headers("E1"))
        body = res.get_json()
        assert [e["itemId"] for e in body["history"]] == ["proc-2"]


# ── Workflow records ─────────────────────────────────────────────────────────


class TestWorkflowRecords:
    def test_create_returns_201_then_200(self, client, auth_headers):
        payload = {
            "itemType": "pbc",
            "itemId": "pbc-9",
            "engagementId": "EG1",
            "priority": "high",
            "dueDate": "2026-12-31",
            "tags": ["year-end"],
        }
        res = client.post(f"{BASE}/workflows", json=payload, headers=auth_headers("E1"))
        assert res.status_code == 201
        body = res.get_json()
        assert body["created"] is True
        assert body["workflow"]["status"] == "in-progress"
        assert body["workflow"]["dueDate"].startswith("2026-12-31")

        res = client.post(f"{BASE}/workflows", json=payload, headers=auth_headers("E1"))
        assert res.status_code == 200
        assert res.get_json()["created"] is False

    def test_create_rejects_bad_due_date(self, client, auth_headers):
        payload = {"itemType": "pbc", "itemId": "pbc-9", "engagementId": "EG1", "dueDate": "tomorrow"}
        res = client.post(f"{BASE}/workflows", json=payload, headers=auth_headers("E1"))
        assert res.status_code == 400

    def test_get_single_workflow_includes_notes(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        res = client.post(f"{BASE}/workflows/{wf_id}/notes", json={"text": "see WP 4.2"}, headers=auth_headers("E1"))
        assert res.status_code == 201

        res = client.get(f"{BASE}/workflows/{wf_id}", headers=auth_headers("E1"))
        notes = res.get_json()["workflow"]["notes"]
        assert [n["text"] for n in notes] == ["see WP 4.2"]
        assert notes[0]["addedBy"] == "E1"

    def test_priority_and_due_date(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]

        res = client.put(f"{BASE}/workflows/{wf_id}/priority", json={"priority": "critical"}, headers=auth_headers("E1"))
        assert res.status_code == 200
        assert res.get_json()["workflow"]["priority"] == "critical"

        res = client.put(
            f"{BASE}/workflows/{wf_id}/due-date",
            json={"dueDate": "2026-11-01T09:30:00Z"},
            headers=auth_headers("E1"),
        )
        assert res.status_code == 200
        assert res.get_json()["workflow"]["dueDate"].startswith("2026-11-01")

        res = client.put(f"{BASE}/workflows/{wf_id}/due-date", json={"dueDate": None}, headers=auth_headers("E1"))
        assert res.get_json()["workflow"]["dueDate"] is None

    def test_due_date_key_is_required(self, client, auth_headers):
        wf_id = _submit(client, auth_headers).get_json()["workflow"]["id"]
        res = client.put(f"{BASE}/workflows/{wf_id}/due-date", json={}, headers=auth_headers("E1"))
        assert res.status_code == 400

    def test_planning_changes_on_locked_item_are_409(self, client, auth_headers):
        wf_id = _signed_off_id(client, auth_headers)
        res = client.put(f"{BASE}/workflows/{wf_id}/priority", json={"priority": "low"}, headers=auth_headers("E1"))
        assert res.status_code == 409
        assert res.get_json()["currentStatus"] == "signed-off"

        res = client.post(f"{BASE}/workflows/{wf_id}/notes", json={"text": "filed"}, headers=auth_headers("E1"))
        assert res.status_code == 201

    def test_override_requires_owner_with_capability(self, client, auth_headers):
        wf_id = _signed_off_id(client, auth_headers)

        # R1 acted on it but lacks the override capability
        res = client.put(f"{BASE}/workflows/{wf_id}", json={"reviewComments": "x"}, headers=auth_headers("R1"))
        assert res.status_code == 403
        # A1 holds the capability but never acted on it
        res = client.put(f"{BASE}/workflows/{wf_id}", json={"reviewComments": "x"}, headers=auth_headers("A1"))
        assert res.status_code == 403

        res = client.put(
            f"{BASE}/workflows/{wf_id}",
            json={"status": "approved", "reviewComments": "rolled back"},
            headers=auth_headers("P1"),
        )
        assert res.status_code == 200
        wf = res.get_json()["workflow"]
        assert wf["status"] == "approved"
        assert wf["isLocked"] is False
        assert wf["reviewedBy"] == "P1"
        assert wf["reviewComments"] == "rolled back"

    def test_delete_requires_owner(self, client, auth_headers):
        wf_id = _signed_off_id(client, auth_headers)

        res = client.delete(f"{BASE}/workflows/{wf_id}", headers=auth_headers("E2"))
        assert res.status_code == 403

        res = client.delete(f"{BASE}/workflows/{wf_id}", headers=auth_headers("R1"))
        assert res.status_code == 200
        assert res.get_json()["workflowId"] == wf_id

        res = client.get(f"{BASE}/workflows/{wf_id}", headers=auth_headers("R1"))
        assert res.status_code == 404
