"""
College Administration Platform
Notification Blueprint.

Endpoints:
    GET   /api/v1/notifications                — caller's live notifications
    GET   /api/v1/notifications/unread-count   — badge counter
    POST  /api/v1/notifications/<id>/read      — mark one as read

Students see their own inbox plus broadcasts; staff see broadcasts only.
Read marks are kept per reader.
"""

from __future__ import annotations

import logging

from flask import Blueprint, g, jsonify, request

from college_admin.core.exceptions import ValidationError
from college_admin.middleware.role_required import require_auth
from college_admin.models import db
from college_admin.models.notification import Notification, student_recipient, user_reader
from college_admin.services.notification import NotificationService
from college_admin.utils.errors import E, api_error
from college_admin.utils.helpers import parse_pagination

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__, url_prefix="/api/v1")


@notification_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


def _caller_keys() -> tuple[str, str]:
    """(inbox recipient, reader) for the caller."""
    if g.current_role == "student" and g.jwt_student_id is not None:
        key = student_recipient(g.jwt_student_id)
        return key, key
    return "all", user_reader(g.jwt_user_id)


@notification_bp.route("/notifications", methods=["GET"])
@require_auth
def list_notifications():
    """Query params: unread_only (bool), page, per_page."""
    unread_only = request.args.get("unread_only", "false").lower() in ("1", "true", "yes")
    page, per_page = parse_pagination()
    recipient, reader = _caller_keys()
    items, total = NotificationService.list_for_recipient(
        recipient,
        reader=reader,
        unread_only=unread_only,
        limit=per_page,
        offset=(page - 1) * per_page,
    )
    return jsonify({
        "items": items,
        "total": total,
        "page": page,
        "per_page": per_page,
    })


@notification_bp.route("/notifications/unread-count", methods=["GET"])
@require_auth
def unread_count():
    recipient, reader = _caller_keys()
    return jsonify({"unread_count": NotificationService.unread_count(recipient, reader=reader)})


@notification_bp.route("/notifications/<int:nid>/read", methods=["POST"])
@require_auth
def mark_notification_read(nid):
    recipient, reader = _caller_keys()
    notif = db.session.get(Notification, nid)
    if not notif or notif.recipient not in (recipient, "all"):
        return api_error(E.NOT_FOUND, "Notification not found")
    return jsonify(NotificationService.mark_read(nid, reader))
