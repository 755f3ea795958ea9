"""
Tests: role capability table.
"""

import pytest

from audit_portal.core.exceptions import ForbiddenError
from audit_portal.services.permission import (
    ALL_ACTIONS,
    REVIEW_ROUTE_ROLES,
    Caller,
    can,
    check_capability,
    get_role_capabilities,
)

NORMAL_ACTIONS = (
    "submit", "assign", "review", "sign_off", "reopen",
    "view_queue", "view_history", "view_stats",
    "annotate", "plan", "create_workflow", "delete_workflow",
)


@pytest.mark.parametrize("role", REVIEW_ROUTE_ROLES)
@pytest.mark.parametrize("action", NORMAL_ACTIONS)
def test_every_review_role_holds_normal_actions(role, action):
    assert can(role, action) is True


@pytest.mark.parametrize("action", ["view_any_queue", "override_workflow"])
def test_elevated_actions_belong_to_partner_and_admin(action):
    assert can("partner", action) is True
    assert can("admin", action) is True
    assert can("employee", action) is False
    assert can("reviewer", action) is False


def test_unknown_role_and_missing_role_hold_nothing():
    assert can("client", "submit") is False
    assert can("manager", "submit") is False
    assert can(None, "submit") is False
    assert get_role_capabilities("client") == set()


def test_unknown_action_is_denied():
    assert can("admin", "launch_rockets") is False
    assert "launch_rockets" not in ALL_ACTIONS


def test_check_capability_raises_forbidden_with_context():
    caller = Caller(user_id="E1", role="employee")
    with pytest.raises(ForbiddenError) as exc_info:
        check_capability(caller, "override_workflow")
    assert exc_info.value.user_id == "E1"
    assert exc_info.value.action == "override_workflow"


def test_check_capability_passes_silently():
    check_capability(Caller(user_id="P1", role="partner"), "override_workflow")
