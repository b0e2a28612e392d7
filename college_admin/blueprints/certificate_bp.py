"""
College Administration Platform
Certificate Workflow Blueprint.

Endpoints (all under /api/v1):
    POST   /certificates                          — student submits a request
    GET    /certificates/student/<student_id>     — a student's requests
    GET    /certificates/review                   — reviewer dashboard
    GET    /certificates/workflow-definition      — the reviewer chain as JSON
    POST   /certificates/<id>/process             — APPROVE | FORWARD | REJECT
    GET    /certificates/<id>/workflow            — request + approval history
    POST   /certificates/<id>/generate            — office produces the certificate
    GET    /certificates/<id>/download            — generated certificate as text

The acting role always comes from the access token, never from the body.
Business rules live in certificate_service; this module only parses input,
checks who is calling and maps service exceptions to HTTP responses.
"""

from __future__ import annotations

import logging

from flask import Blueprint, Response, g, jsonify, request

from college_admin.core.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from college_admin.middleware.role_required import require_any_role, require_auth, require_roles
from college_admin.models.certificate import REVIEWER_ROLES, acting_role, workflow_definition
from college_admin.services import certificate_service
from college_admin.services.jwt_service import normalize_role
from college_admin.utils.errors import E, api_error
from college_admin.utils.helpers import parse_int_arg, parse_pagination

logger = logging.getLogger(__name__)

certificate_bp = Blueprint("certificates", __name__, url_prefix="/api/v1/certificates")

STAFF_ROLES = (*REVIEWER_ROLES, "admin")


# ── Error handlers ───────────────────────────────────────────────────────────

@certificate_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@certificate_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@certificate_bp.errorhandler(InvalidTransitionError)
def _handle_invalid_transition(error: InvalidTransitionError):
    return api_error(
        E.INVALID_TRANSITION, str(error),
        details={"current_status": error.current_status, "role": error.role},
    )


@certificate_bp.errorhandler(InvalidStateError)
def _handle_invalid_state(error: InvalidStateError):
    return api_error(E.INVALID_STATE, str(error))


@certificate_bp.errorhandler(UpstreamFailureError)
def _handle_upstream(error: UpstreamFailureError):
    return api_error(E.UPSTREAM, str(error), details={"collaborator": error.collaborator})


# ── Ownership ────────────────────────────────────────────────────────────────

def _forbid_other_student(student_id):
    """Students may only see their own records; staff are unrestricted."""
    if g.current_role == "student" and g.jwt_student_id != student_id:
        return api_error(E.FORBIDDEN, "You can only access your own certificate requests")
    return None


# ═════════════════════════════════════════════════════════════════════════════
# Student endpoints
# ═════════════════════════════════════════════════════════════════════════════


@certificate_bp.route("", methods=["POST"])
@require_roles("student", "admin")
def submit_certificate():
    """Submit a certificate request.

    Body: {"type": "BONAFIDE", "reason": "...", "student_id": 42}
    ``student_id`` defaults to the student on the token.
    """
    data = request.get_json(silent=True) or {}

    student_id = data.get("student_id", g.jwt_student_id)
    if student_id is None:
        return api_error(E.VALIDATION_REQUIRED, "student_id is required")
    try:
        student_id = int(student_id)
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "student_id must be an integer")

    err = _forbid_other_student(student_id)
    if err:
        return err

    cert = certificate_service.submit_request(
        student_id,
        data.get("type"),
        data.get("reason"),
        actor_user_id=g.jwt_user_id,
    )
    return jsonify(cert), 201


@certificate_bp.route("/student/<int:student_id>", methods=["GET"])
@require_auth
def list_student_certificates(student_id):
    err = _forbid_other_student(student_id)
    if err:
        return err
    items = certificate_service.list_student_requests(student_id)
    return jsonify({"items": items, "total": len(items)})


# ═════════════════════════════════════════════════════════════════════════════
# Reviewer endpoints
# ═════════════════════════════════════════════════════════════════════════════


def _review_role():
    """Dashboard role: the ``role`` query parameter if the token holds it, else the primary role."""
    requested = request.args.get("role")
    if not requested:
        return g.current_role, None
    role = normalize_role(requested)
    if role not in g.jwt_roles or role not in STAFF_ROLES:
        return None, api_error(
            E.FORBIDDEN, "Your token does not carry that reviewer role",
            details={"role": requested, "held": list(g.jwt_roles)},
        )
    return role, None


@certificate_bp.route("/review", methods=["GET"])
@require_any_role(*STAFF_ROLES)
def review_dashboard():
    """
    Requests for the caller's role.

    Query params:
        role           which of the token's roles to list for (default: primary)
        status         omitted → awaiting my action, "all" → my whole queue,
                       or a single workflow status
        search         student name / admission number
        department_id, semester, page, per_page
    """
    role, err = _review_role()
    if err:
        return err
    page, per_page = parse_pagination()
    result = certificate_service.list_for_role(
        role,
        status=request.args.get("status"),
        search=request.args.get("search"),
        page=page,
        per_page=per_page,
        user_id=g.jwt_user_id,
        department_id=parse_int_arg("department_id"),
        semester=parse_int_arg("semester", minimum=1),
    )
    return jsonify(result)


@certificate_bp.route("/workflow-definition", methods=["GET"])
def get_workflow_definition():
    return jsonify({"states": workflow_definition()})


@certificate_bp.route("/<int:certificate_id>/process", methods=["POST"])
@require_any_role(*REVIEWER_ROLES)
def process_certificate(certificate_id):
    """Body: {"action": "FORWARD" | "APPROVE" | "REJECT", "remarks": "..."}

    A caller holding several reviewer roles acts as the one whose turn it is.
    """
    data = request.get_json(silent=True) or {}
    current = certificate_service.get_request(certificate_id)
    cert = certificate_service.process_request(
        certificate_id,
        role=acting_role(current.workflow_status, g.jwt_roles, default=g.current_role),
        action=data.get("action"),
        remarks=data.get("remarks"),
        actor_id=g.jwt_user_id,
    )
    return jsonify(cert)


@certificate_bp.route("/<int:certificate_id>/workflow", methods=["GET"])
@require_auth
def get_certificate_workflow(certificate_id):
    cert = certificate_service.get_workflow(certificate_id)
    err = _forbid_other_student(cert["student_id"])
    if err:
        return err
    return jsonify(cert)


# ═════════════════════════════════════════════════════════════════════════════
# Generation & download
# ═════════════════════════════════════════════════════════════════════════════


@certificate_bp.route("/<int:certificate_id>/generate", methods=["POST"])
@require_roles("office", "admin")
def generate_certificate(certificate_id):
    cert = certificate_service.generate_certificate(
        certificate_id, actor_role=g.current_role, actor_id=g.jwt_user_id,
    )
    return jsonify(cert)


@certificate_bp.route("/<int:certificate_id>/download", methods=["GET"])
@require_auth
def download_certificate(certificate_id):
    cert = certificate_service.get_request(certificate_id)
    err = _forbid_other_student(cert.student_id)
    if err:
        return err
    filename, body = certificate_service.render_download(certificate_id)
    return Response(
        body,
        mimetype="text/plain",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
