"""
College Administration Platform
Notification Service.

Central service for creating and querying in-app notifications.
The certificate helpers only flush, so the notification commits (or rolls
back) together with the workflow change that caused it.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from college_admin.models import db
from college_admin.models.notification import (
    NOTIFICATION_CATEGORIES,
    NOTIFICATION_SEVERITIES,
    Notification,
    NotificationRead,
    student_recipient,
)

# Certificate notifications stay visible for 30 days
CERTIFICATE_NOTICE_TTL = timedelta(days=30)


def _format_type(certificate_type: str) -> str:
    """BONAFIDE → Bonafide, COURSE_COMPLETION → Course Completion."""
    return " ".join(word.capitalize() for word in certificate_type.split("_"))


def _live_query(recipient):
    """Unexpired notifications addressed to *recipient* or broadcast to all."""
    now = datetime.now(timezone.utc)
    return Notification.query.filter(
        or_(Notification.recipient == recipient, Notification.recipient == "all"),
        or_(Notification.expires_at.is_(None), Notification.expires_at > now),
    )


def _read_ids(reader):
    return select(NotificationRead.notification_id).where(NotificationRead.reader == reader)


class NotificationService:
    """Stateless service class for notification operations.

    ``recipient`` selects the inbox ('student:<id>' or 'all'); ``reader``
    is whose read marks apply and defaults to the recipient.
    """

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message="", category="system", severity="info",
               recipient="all", entity_type="", entity_id=None,
               expires_at=None, commit=True):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (committed unless commit=False,
            in which case it is only flushed).
        """
        if category not in NOTIFICATION_CATEGORIES:
            raise ValueError(f"Unknown notification category: {category}")
        if severity not in NOTIFICATION_SEVERITIES:
            raise ValueError(f"Unknown notification severity: {severity}")

        notif = Notification(
            recipient=recipient,
            title=title,
            message=message,
            category=category,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
            expires_at=expires_at,
        )
        db.session.add(notif)
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return notif

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_recipient(recipient="all", reader=None, unread_only=False, limit=50, offset=0):
        """
        Live notifications for a recipient, newest first, serialised with
        the reader's read state.

        Returns:
            Tuple of (list of dicts, total count).
        """
        reader = reader or recipient
        q = _live_query(recipient)
        if unread_only:
            q = q.filter(Notification.id.not_in(_read_ids(reader)))
        total = q.count()
        notifs = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )

        read_at = dict(db.session.execute(
            select(NotificationRead.notification_id, NotificationRead.read_at).where(
                NotificationRead.reader == reader,
                NotificationRead.notification_id.in_([n.id for n in notifs]),
            )
        ).all())
        return [n.to_dict(read_at=read_at.get(n.id)) for n in notifs], total

    @staticmethod
    def unread_count(recipient="all", reader=None):
        """Return count of live notifications the reader has not read."""
        reader = reader or recipient
        return _live_query(recipient).filter(Notification.id.not_in(_read_ids(reader))).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_read(notification_id, reader):
        """
        Mark a notification as read by *reader*.  Idempotent.

        Returns:
            The notification serialised for the reader, or None if it does
            not exist.
        """
        notif = db.session.get(Notification, notification_id)
        if notif is None:
            return None

        read = NotificationRead.query.filter_by(notification_id=notif.id, reader=reader).first()
        if read is None:
            read = NotificationRead(notification_id=notif.id, reader=reader,
                                    read_at=datetime.now(timezone.utc))
            db.session.add(read)
            try:
                db.session.commit()
            except IntegrityError:
                # Marked read by a concurrent request
                db.session.rollback()
                read = NotificationRead.query.filter_by(notification_id=notif.id, reader=reader).one()
        return notif.to_dict(read_at=read.read_at)

    # ── Certificate Integration Helpers ───────────────────────────────────

    @staticmethod
    def notify_certificate_generated(certificate):
        """Tell the student their certificate is ready for download."""
        return NotificationService.create(
            title="Certificate Generated",
            message=(
                f"Your {_format_type(certificate.type)} certificate has been "
                f"generated and is ready for download."
            ),
            category="certificate",
            severity="important",
            recipient=student_recipient(certificate.student_id),
            entity_type="certificate_request",
            entity_id=certificate.id,
            expires_at=datetime.now(timezone.utc) + CERTIFICATE_NOTICE_TTL,
            commit=False,
        )

    @staticmethod
    def notify_certificate_rejected(certificate, role, remarks):
        """Tell the student which reviewer rejected their request and why."""
        return NotificationService.create(
            title="Certificate Request Rejected",
            message=(
                f"Your {_format_type(certificate.type)} certificate request "
                f"{certificate.reference} was rejected by the {role.upper()}: {remarks}"
            ),
            category="certificate",
            severity="warning",
            recipient=student_recipient(certificate.student_id),
            entity_type="certificate_request",
            entity_id=certificate.id,
            expires_at=datetime.now(timezone.utc) + CERTIFICATE_NOTICE_TTL,
            commit=False,
        )
