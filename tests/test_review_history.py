"""
Tests: review history ledger service.

Covers best-effort append semantics and the newest-first query helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from audit_portal.core.exceptions import ValidationError
from audit_portal.models import db as _db
from audit_portal.models.review import ReviewWorkflow
from audit_portal.models.review_history import ReviewHistory
from audit_portal.services import review_history_service as history


def _workflow(item_id="proc-1", engagement_id="EG1", item_type="procedure"):
    wf = ReviewWorkflow(item_type=item_type, item_id=item_id, engagement_id=engagement_id)
    _db.session.add(wf)
    _db.session.commit()
    return wf


def _entry(performed_at, **kwargs):
    defaults = {
        "item_type": "procedure",
        "item_id": "proc-1",
        "engagement_id": "EG1",
        "action": "comment-added",
        "performed_by": "E1",
        "performed_at": performed_at,
    }
    defaults.update(kwargs)
    e = ReviewHistory(**defaults)
    _db.session.add(e)
    _db.session.commit()
    return e


class TestAppend:
    def test_append_copies_identity_and_audit_context(self, make_caller):
        wf = _workflow()
        caller = make_caller("E1", location="Lagos", session_id="sess-9")

        entry = history.append(
            workflow=wf,
            action="submitted-for-review",
            caller=caller,
            previous_status="in-progress",
            new_status="ready-for-review",
            comments="please review",
            metadata={"createdWorkflow": True},
        )

        assert entry is not None
        assert entry.item_type == "procedure"
        assert entry.item_id == "proc-1"
        assert entry.engagement_id == "EG1"
        assert entry.performed_by == "E1"
        assert entry.ip_address == "10.0.0.1"
        assert entry.user_agent == "pytest"
        assert entry.location == "Lagos"
        assert entry.session_id == "sess-9"
        assert entry.get_metadata("createdWorkflow") is True

    def test_unknown_action_is_swallowed(self, make_caller):
        wf = _workflow()
        entry = history.append(
            workflow=wf,
            action="teleported",
            caller=make_caller("E1"),
            previous_status="in-progress",
            new_status="in-progress",
        )
        assert entry is None
        assert ReviewHistory.query.count() == 0

    def test_write_failure_is_swallowed_and_logged(self, make_caller, monkeypatch, caplog):
        wf = _workflow()

        def _boom(**kwargs):
            raise RuntimeError("ledger unavailable")

        monkeypatch.setattr(history, "ReviewHistory", _boom)

        entry = history.append(
            workflow=wf,
            action="signed-off",
            caller=make_caller("P1"),
            previous_status="approved",
            new_status="signed-off",
        )
        assert entry is None
        assert "Failed to append review history" in caplog.text
        # Session is still usable afterwards
        assert ReviewWorkflow.query.count() == 1


class TestQueries:
    def test_list_by_item_is_newest_first(self):
        now = datetime.now(timezone.utc)
        old = _entry(now - timedelta(hours=2), comments="old")
        new = _entry(now, comments="new")
        _entry(now, item_id="proc-2")

        result = history.list_by_item("procedure", "proc-1")
        assert [e.id for e in result] == [new.id, old.id]

    def test_list_by_engagement_respects_limit(self):
        now = datetime.now(timezone.utc)
        for i in range(5):
            _entry(now - timedelta(minutes=i))
        _entry(now, engagement_id="EG2")

        assert len(history.list_by_engagement("EG1", limit=3)) == 3
        assert len(history.list_by_engagement("EG2")) == 1

    def test_list_by_user(self):
        now = datetime.now(timezone.utc)
        _entry(now, performed_by="R1")
        _entry(now, performed_by="R1")
        _entry(now, performed_by="E1")
        assert len(history.list_by_user("R1")) == 2

    def test_list_by_action(self):
        now = datetime.now(timezone.utc)
        _entry(now, action="signed-off")
        _entry(now, action="reopened")
        result = history.list_by_action("signed-off")
        assert [e.action for e in result] == ["signed-off"]

    def test_list_by_action_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            history.list_by_action("teleported")

    def test_list_recent_excludes_older_entries(self):
        now = datetime.now(timezone.utc)
        recent = _entry(now - timedelta(hours=1))
        _entry(now - timedelta(days=3))

        result = history.list_recent(hours=24)
        assert [e.id for e in result] == [recent.id]

    def test_paginate_filters_and_counts(self):
        now = datetime.now(timezone.utc)
        for i in range(7):
            _entry(now - timedelta(minutes=i), performed_by="R1")
        _entry(now, performed_by="E1")

        page = history.paginate(page=2, limit=5, performed_by="R1")
        assert page.total == 7
        assert page.pages == 2
        assert len(page.items) == 2
        assert page.has_prev is True
        assert page.has_next is False
