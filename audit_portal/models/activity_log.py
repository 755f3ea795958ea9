"""
Audit Portal
Employee activity log model.

Models:
    - EmployeeActivityLog: one row per user-initiated action, with the
      employee's name/email snapshotted at write time.
"""

from datetime import UTC, datetime

from audit_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────


class ActivityAction:
    """Activity action codes written by the review service."""

    SUBMIT_FOR_REVIEW = "SUBMIT_FOR_REVIEW"
    ASSIGN_REVIEWER = "ASSIGN_REVIEWER"
    REVIEW_APPROVED = "REVIEW_APPROVED"
    REVIEW_REJECTED = "REVIEW_REJECTED"
    SIGN_OFF = "SIGN_OFF"
    REOPEN_ITEM = "REOPEN_ITEM"
    CREATE_REVIEW_WORKFLOW = "CREATE_REVIEW_WORKFLOW"
    UPDATE_REVIEW_WORKFLOW = "UPDATE_REVIEW_WORKFLOW"
    DELETE_REVIEW_WORKFLOW = "DELETE_REVIEW_WORKFLOW"
    ADD_REVIEW_NOTE = "ADD_REVIEW_NOTE"
    CHANGE_REVIEW_PRIORITY = "CHANGE_REVIEW_PRIORITY"
    CHANGE_REVIEW_DUE_DATE = "CHANGE_REVIEW_DUE_DATE"


ACTIVITY_STATUSES = {"SUCCESS", "FAIL"}


class EmployeeActivityLog(db.Model):
    """
    Append-only employee activity trail.

    Written best-effort after the business transaction has committed;
    never consulted by the review state machine.
    """

    __tablename__ = "employee_activity_logs"
    __table_args__ = (
        db.Index("idx_activity_employee_ts", "employee_id", "timestamp"),
        db.Index("idx_activity_action", "action"),
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.String(64), nullable=False, index=True)
    employee_name = db.Column(db.String(200), nullable=False)
    employee_email = db.Column(db.String(200), nullable=False)

    action = db.Column(db.String(40), nullable=False)
    details = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    device_info = db.Column(db.String(512), nullable=True)
    status = db.Column(db.String(10), nullable=False, default="SUCCESS")

    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(UTC),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employeeId": self.employee_id,
            "employeeName": self.employee_name,
            "employeeEmail": self.employee_email,
            "action": self.action,
            "details": self.details,
            "ipAddress": self.ip_address,
            "location": self.location,
            "deviceInfo": self.device_info,
            "status": self.status,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<EmployeeActivityLog {self.id}: {self.action} by {self.employee_id}>"
