"""
Audit Portal
Notification Service.

Central service for creating in-app notifications, plus the review
workflow triggers.  Triggers receive plain values (never ORM instances)
because they run after commit, possibly on a worker thread.
"""

import logging

from flask import current_app

from audit_portal.models import db
from audit_portal.models.notification import Notification
from audit_portal.services.profile_service import get_user_info, list_user_ids_by_roles

logger = logging.getLogger(__name__)

DEFAULT_NOTIFY_ROLES = ("manager", "partner", "reviewer")


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def send(*, user_id, title, message="", type="system", category="",
             module=None, priority="normal", data=None, action_url=None,
             engagement_id=None, document_id=None):
        """
        Create one notification per recipient.

        Args:
            user_id: a single user id or a list of user ids. Empty ids are skipped.

        Returns:
            List of created Notification instances (already committed).
        """
        targets = user_id if isinstance(user_id, (list, tuple, set)) else [user_id]
        recipients = []
        for uid in targets:
            if uid and str(uid) not in recipients:
                recipients.append(str(uid))

        notifications = []
        for uid in recipients:
            notif = Notification(
                user_id=uid,
                title=title,
                message=message,
                type=type,
                category=category,
                module=module or type,
                priority=priority,
                data=data or {},
                action_url=action_url,
                engagement_id=engagement_id,
                document_id=document_id,
            )
            db.session.add(notif)
            notifications.append(notif)
        if notifications:
            db.session.commit()
        return notifications

    # ── Review workflow triggers ──────────────────────────────────────────

    @staticmethod
    def notify_review_submitted(workflow, submitted_by, item_label):
        """Tell managers, partners and reviewers an item awaits review."""
        roles = current_app.config.get("REVIEW_NOTIFY_ROLES") or DEFAULT_NOTIFY_ROLES
        recipients = [uid for uid in list_user_ids_by_roles(roles) if uid != submitted_by]
        if not recipients:
            logger.info("No reviewers to notify for workflow %s", workflow["id"])
            return []
        submitter = get_user_info(submitted_by)
        return NotificationService.send(
            user_id=recipients,
            title="Item Submitted for Review",
            message=f'{submitter["name"]} submitted {item_label} for review.',
            type="review",
            category="review_submitted",
            module="review",
            priority="normal",
            data={
                "workflowId": workflow["id"],
                "itemType": workflow["itemType"],
                "itemId": workflow["itemId"],
                "submittedBy": submitted_by,
            },
            action_url=f'/review/{workflow["id"]}',
            engagement_id=workflow["engagement"],
            document_id=workflow["itemId"],
        )

    @staticmethod
    def notify_reviewer_assigned(workflow, reviewer_id, assigned_by, item_label):
        """Tell the assignee they have a review to perform."""
        if not reviewer_id:
            return []
        assigner = get_user_info(assigned_by)
        return NotificationService.send(
            user_id=reviewer_id,
            title="Review Requested",
            message=f'{assigner["name"]} assigned you to review {item_label}.',
            type="review",
            category="review_requested",
            module="review",
            priority="high",
            data={
                "workflowId": workflow["id"],
                "itemType": workflow["itemType"],
                "itemId": workflow["itemId"],
                "assignedBy": assigned_by,
            },
            action_url=f'/review/{workflow["id"]}',
            engagement_id=workflow["engagement"],
            document_id=workflow["itemId"],
        )

    @staticmethod
    def notify_review_completed(workflow, reviewer_id, approved, item_label):
        """Tell the original submitter how the review ended."""
        submitter_id = workflow.get("submittedBy")
        if not submitter_id:
            return []
        reviewer = get_user_info(reviewer_id)
        outcome = "approved" if approved else "rejected"
        return NotificationService.send(
            user_id=submitter_id,
            title=f"Review {outcome.capitalize()}",
            message=f'{reviewer["name"]} {outcome} {item_label}.',
            type="review",
            category=f"review_{outcome}",
            module="review",
            priority="normal" if approved else "high",
            data={
                "workflowId": workflow["id"],
                "itemType": workflow["itemType"],
                "itemId": workflow["itemId"],
                "approved": bool(approved),
                "comments": workflow.get("reviewComments"),
            },
            action_url=f'/review/{workflow["id"]}',
            engagement_id=workflow["engagement"],
            document_id=workflow["itemId"],
        )
