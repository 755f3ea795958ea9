"""
Audit Portal
Notification domain model.

Models:
    - Notification: in-app notification record with read tracking
"""

from datetime import datetime, timezone

from audit_portal.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"engagement", "document", "task", "user", "system", "review"}
NOTIFICATION_PRIORITIES = {"low", "normal", "high", "urgent"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event.
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    type = db.Column(db.String(30), default="system")
    category = db.Column(db.String(60), default="")
    module = db.Column(db.String(30), default="")
    priority = db.Column(db.String(20), default="normal")
    data = db.Column(db.JSON, nullable=True)
    action_url = db.Column(db.String(500), nullable=True)

    # Links to source entities
    engagement_id = db.Column(db.String(64), nullable=True, index=True)
    document_id = db.Column(db.String(64), nullable=True)

    # Read tracking
    is_read = db.Column(db.Boolean, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "category": self.category,
            "module": self.module,
            "priority": self.priority,
            "data": dict(self.data or {}),
            "actionUrl": self.action_url,
            "engagementId": self.engagement_id,
            "documentId": self.document_id,
            "isRead": bool(self.is_read),
            "readAt": self.read_at.isoformat() if self.read_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"
