"""
Tests: health endpoints, request timing headers and CLI commands.
"""

import logging

from audit_portal.models import db as _db
from audit_portal.models.review import ReviewWorkflow
from audit_portal.services.jwt_service import decode_access_token


class TestHealth:
    def test_health_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_health_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["status"] == "ok"
        assert data["checks"]["app"]["testing"] is True
        assert data["checks"]["app"]["version"]

    def test_health_no_auth_required(self, client):
        for path in ("/api/v1/health/ready", "/api/v1/health/live"):
            res = client.get(path, headers={"Authorization": "Bearer garbage"})
            assert res.status_code == 200


class TestRequestTiming:
    def test_duration_header_present(self, client):
        res = client.get("/api/v1/health/ready")
        assert "X-Request-Duration-Ms" in res.headers
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0

    def test_request_id_header(self, client):
        res = client.get("/api/v1/health/ready")
        assert len(res.headers["X-Request-ID"]) == 12

    def test_custom_request_id_passthrough(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "test-123"})
        assert res.headers["X-Request-ID"] == "test-123"

    def test_rejected_request_logged_with_workflow_id(self, client, auth_headers, caplog):
        caplog.set_level(logging.INFO, logger="audit_portal.middleware.timing")

        res = client.post("/api/v1/review/assign/does-not-exist", json={"reviewerId": "R1"}, headers=auth_headers("E1"))

        assert res.status_code == 404
        records = [r for r in caplog.records if r.name == "audit_portal.middleware.timing"]
        assert records
        assert records[-1].levelno == logging.INFO
        assert records[-1].getMessage().startswith("Rejected request")
        assert records[-1].workflow_id == "does-not-exist"
        assert records[-1].status == 404

    def test_slow_request_logged_as_warning(self, app, client, auth_headers, caplog, monkeypatch):
        monkeypatch.setitem(app.config, "SLOW_REQUEST_MS", -1)
        caplog.set_level(logging.INFO, logger="audit_portal.middleware.timing")

        client.post("/api/v1/review/assign/does-not-exist", json={"reviewerId": "R1"}, headers=auth_headers("E1"))

        records = [r for r in caplog.records if r.name == "audit_portal.middleware.timing"]
        assert records[-1].levelno == logging.WARNING
        assert records[-1].getMessage().startswith("Slow request")


class TestCli:
    def _seed(self, *items):
        for item_type, item_id in items:
            _db.session.add(ReviewWorkflow(item_type=item_type, item_id=item_id, engagement_id="EG1"))
        _db.session.commit()

    def test_purge_item_reviews(self, app):
        self._seed(("planning-procedure", "pp-1"), ("planning-procedure", "pp-2"), ("kyc", "kyc-1"))

        result = app.test_cli_runner().invoke(
            args=["purge-item-reviews", "--item-type", "planning-procedure", "--yes"],
        )

        assert result.exit_code == 0, result.output
        assert "Found 2 planning-procedure" in result.output
        assert "Deleted 2; 0 remaining." in result.output
        _db.session.expire_all()
        assert ReviewWorkflow.query.filter_by(item_type="kyc").count() == 1

    def test_purge_aborts_without_confirmation(self, app):
        self._seed(("kyc", "kyc-1"))

        result = app.test_cli_runner().invoke(args=["purge-item-reviews", "--item-type", "kyc"], input="n\n")

        assert result.exit_code != 0
        _db.session.expire_all()
        assert ReviewWorkflow.query.count() == 1

    def test_purge_rejects_unknown_item_type(self, app):
        result = app.test_cli_runner().invoke(args=["purge-item-reviews", "--item-type", "spreadsheet"])
        assert result.exit_code != 0

    def test_issue_token(self, app):
        result = app.test_cli_runner().invoke(args=["issue-token", "--user-id", "R1", "--role", "reviewer"])

        assert result.exit_code == 0, result.output
        payload = decode_access_token(result.output.strip())
        assert payload["sub"] == "R1"
        assert payload["role"] == "reviewer"
