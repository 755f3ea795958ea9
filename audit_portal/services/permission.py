"""
Review Workflow — Role-Based Capability Table

A single declarative ROLE_CAPABILITIES table answers "may this role perform
this action?".  The review service calls ``check_capability`` at the top of
every operation; blueprints only gate on the coarse route role set.

Usage:
    from audit_portal.services.permission import Caller, can, check_capability

    if can("reviewer", "sign_off"):
        ...

    check_capability(caller, "override_workflow")   # raises ForbiddenError
"""

from dataclasses import dataclass

from audit_portal.core.exceptions import ForbiddenError

# Roles allowed through the review blueprint at all
REVIEW_ROUTE_ROLES = ("employee", "reviewer", "partner", "admin")

# Normal transition / read actions held by every review role
_BASE_ACTIONS = frozenset({
    "submit",
    "assign",
    "review",
    "sign_off",
    "reopen",
    "view_queue",
    "view_history",
    "view_stats",
    "annotate",
    "plan",
    "create_workflow",
    "delete_workflow",
})

ROLE_CAPABILITIES: dict[str, frozenset[str]] = {
    "employee": _BASE_ACTIONS,
    "reviewer": _BASE_ACTIONS,
    "partner": _BASE_ACTIONS | {"view_any_queue", "override_workflow"},
    "admin": _BASE_ACTIONS | {"view_any_queue", "override_workflow"},
}

ALL_ACTIONS = frozenset().union(*ROLE_CAPABILITIES.values())


@dataclass(frozen=True)
class Caller:
    """Explicit identity of whoever invokes a review operation.

    ``ip_address``, ``user_agent``, ``location`` and ``session_id`` are audit
    context copied onto history and activity rows.
    """

    user_id: str
    role: str
    ip_address: str | None = None
    user_agent: str | None = None
    location: str | None = None
    session_id: str | None = None


def can(role: str | None, action: str) -> bool:
    """Return True if ``role`` holds ``action`` in the capability table."""
    if not role:
        return False
    return action in ROLE_CAPABILITIES.get(role, frozenset())


def check_capability(caller: Caller, action: str) -> None:
    """Assert the caller's role holds ``action``; raise ForbiddenError if not."""
    if not can(caller.role, action):
        raise ForbiddenError(
            f"Role '{caller.role}' is not permitted to perform '{action}'",
            user_id=caller.user_id,
            action=action,
        )


def get_role_capabilities(role: str) -> set[str]:
    """Return the actions granted to a role (empty for unknown roles)."""
    return set(ROLE_CAPABILITIES.get(role, frozenset()))
