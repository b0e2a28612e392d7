"""
College Administration Platform
Notification domain model.

Models:
    - Notification: in-app notification, addressed to one student or to "all"
    - NotificationRead: one reader having read one notification

Read state lives per reader, so a broadcast read by one user stays unread
for everyone else.
"""

from datetime import datetime, timezone

from college_admin.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_CATEGORIES = {"certificate", "system"}
NOTIFICATION_SEVERITIES = {"info", "important", "warning", "success"}


def student_recipient(student_id: int) -> str:
    """Recipient key for a student's inbox."""
    return f"student:{student_id}"


def user_reader(user_id: int) -> str:
    """Reader key for staff, who only receive broadcasts."""
    return f"user:{user_id}"


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event; broadcasts use recipient "all".
    """

    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient = db.Column(db.String(150), default="all", index=True, comment="'student:<id>' or 'all'")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    category = db.Column(db.String(30), default="system")
    severity = db.Column(db.String(20), default="info")

    # Link to source entity
    entity_type = db.Column(db.String(30), default="", comment="certificate_request/...")
    entity_id = db.Column(db.Integer, nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self, read_at=None):
        """Serialise for one reader; *read_at* is that reader's read time, if any."""
        return {
            "id": self.id,
            "recipient": self.recipient,
            "title": self.title,
            "message": self.message,
            "category": self.category,
            "severity": self.severity,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "is_read": read_at is not None,
            "read_at": read_at.isoformat() if read_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"


class NotificationRead(db.Model):
    """Marks *notification* as read by *reader* ('student:<id>' or 'user:<id>')."""

    __tablename__ = "notification_reads"
    __table_args__ = (
        db.UniqueConstraint("notification_id", "reader", name="uq_notification_reader"),
    )

    id = db.Column(db.Integer, primary_key=True)
    notification_id = db.Column(
        db.Integer, db.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    reader = db.Column(db.String(150), nullable=False, index=True)
    read_at = db.Column(db.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<NotificationRead {self.notification_id} by {self.reader}>"
