"""
College Administration Platform
Audit blueprint.

Endpoints:
    GET  /api/v1/audit               — list / filter audit logs (admin)
    GET  /api/v1/audit/<int:log_id>  — single audit entry (admin)
"""

from flask import Blueprint, jsonify, request

from college_admin.core.exceptions import ValidationError
from college_admin.middleware.role_required import require_roles
from college_admin.models import db
from college_admin.models.audit import AuditLog
from college_admin.utils.errors import E, api_error
from college_admin.utils.helpers import parse_pagination

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")


@audit_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("/audit", methods=["GET"])
@require_roles("admin")
def list_audit_logs():
    """
    Return paginated audit logs with optional filters.

    Query params:
        entity_type  — filter by entity type
        entity_id    — filter by entity PK
        action       — filter by action string (prefix match)
        actor        — filter by actor role
        page         — page number (default 1)
        per_page     — items per page (default 10, max 100)
    """
    q = AuditLog.query

    entity_type = request.args.get("entity_type")
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)

    entity_id = request.args.get("entity_id")
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)

    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action.startswith(action))

    actor = request.args.get("actor")
    if actor:
        q = q.filter(AuditLog.actor == actor)

    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    page, per_page = parse_pagination()
    paginated = q.paginate(page=page, per_page=per_page, error_out=False)

    return jsonify({
        "items": [log.to_dict() for log in paginated.items],
        "pagination": {
            "total": paginated.total,
            "page": paginated.page,
            "per_page": paginated.per_page,
            "total_pages": paginated.pages,
        },
    })


# ── Single entry ─────────────────────────────────────────────────────────────

@audit_bp.route("/audit/<int:log_id>", methods=["GET"])
@require_roles("admin")
def get_audit_log(log_id):
    log = db.session.get(AuditLog, log_id)
    if not log:
        return api_error(E.NOT_FOUND, "Audit log not found")
    return jsonify(log.to_dict())
