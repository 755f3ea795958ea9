"""
Profile Model — identity/profile lookup table.

One row per portal user.  ``user_id`` is the identity-provider subject
(the ``sub`` claim of the access token); ``role`` is the portal role used
by the capability table and by notification fan-out.
"""

from datetime import datetime, timezone

from audit_portal.models import db

PROFILE_ROLES = ("employee", "reviewer", "manager", "partner", "admin", "client")


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200))
    email = db.Column(db.String(200))
    role = db.Column(db.String(30), nullable=False, default="employee", index=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "userId": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }

    def __repr__(self):
        return f"<Profile {self.user_id} ({self.role})>"
