"""
Certificate Workflow Service.

Owns every state change of a CertificateRequest:
  - submit:   student creates a request (SUBMITTED)
  - process:  the reviewer whose turn it is forwards/approves or rejects
  - generate: office produces the artifact once the principal has signed off

plus the read-only query surface used by the student and reviewer dashboards.

Transition rules come from CERTIFICATE_WORKFLOW (models/certificate.py).  The
only role-specific code is reviewer scoping: advisors act for their own
advisees and HODs for their own department.  All db.session.commit() calls live
here; blueprints never commit.

Concurrency:
    The status write in process()/generate() is a guarded UPDATE
    (``WHERE workflow_status = <state we validated>``).  When a concurrent
    call has already moved the request the UPDATE matches no row, the
    transaction is rolled back and InvalidTransitionError/InvalidStateError
    is raised, so one prior state never yields two approval events.

Usage:
    from college_admin.services import certificate_service

    cert = certificate_service.submit_request(42, "BONAFIDE", "bank loan")
    certificate_service.process_request(cert["id"], role="advisor", action="FORWARD")
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from college_admin.core.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    UpstreamFailureError,
    ValidationError,
)
from college_admin.models import db
from college_admin.models.audit import write_audit
from college_admin.models.certificate import (
    APPROVAL_ACTIONS,
    CERTIFICATE_TYPES,
    REVIEWER_ROLES,
    WORKFLOW_STATUSES,
    ApprovalEvent,
    CertificateRequest,
    actionable_states,
    authorized_role,
    is_terminal,
    next_state,
    visible_states,
)
from college_admin.models.student import Department, Student
from college_admin.services.document_generator import get_document_generator
from college_admin.services.notification import NotificationService
from college_admin.utils.helpers import DEFAULT_PER_PAGE, MAX_PER_PAGE

logger = logging.getLogger(__name__)

NO_DEPARTMENT = "Cannot forward: the student is not assigned to any department"
NO_HOD = "Cannot forward: no HOD is assigned to the student's department"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _commit() -> None:
    """Commit the session, rolling back before re-raising on database errors."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise


def get_request(certificate_id: int) -> CertificateRequest:
    cert = db.session.get(CertificateRequest, certificate_id)
    if cert is None:
        raise NotFoundError(resource="CertificateRequest", resource_id=certificate_id)
    return cert


def paginate_query(query, page: int = 1, per_page: int = DEFAULT_PER_PAGE) -> tuple[list, int]:
    """Apply offset/limit pagination to a SQLAlchemy query.

    Returns:
        Tuple of (items list, total count).
    """
    total = query.count()
    items = query.offset((page - 1) * per_page).limit(per_page).all()
    return items, total


# ═════════════════════════════════════════════════════════════════════════════
# Submit
# ═════════════════════════════════════════════════════════════════════════════


def submit_request(
    student_id: int,
    cert_type: str,
    reason: str,
    *,
    actor_user_id: int | None = None,
) -> dict:
    """
    Create a new certificate request for an active student.

    Raises:
        ValidationError: unknown type, empty reason, inactive student.
        NotFoundError:   no such student.
    """
    cert_type = (cert_type or "").strip().upper()
    reason = (reason or "").strip()

    errors = {}
    if cert_type not in CERTIFICATE_TYPES:
        errors["type"] = f"must be one of {', '.join(CERTIFICATE_TYPES)}"
    if not reason:
        errors["reason"] = "is required"
    if errors:
        raise ValidationError(
            "; ".join(f"{field} {msg}" for field, msg in errors.items()),
            details=errors,
        )

    student = db.session.get(Student, student_id)
    if student is None:
        raise NotFoundError(resource="Student", resource_id=student_id)
    if not student.is_active:
        raise ValidationError(
            "Only active students can request certificates",
            details={"student_id": f"student status is '{student.status}'"},
        )

    cert = CertificateRequest(
        student_id=student.id,
        type=cert_type,
        reason=reason,
        workflow_status="SUBMITTED",
        requested_at=_utcnow(),
    )
    db.session.add(cert)
    db.session.flush()

    write_audit(
        entity_type="certificate_request",
        entity_id=cert.id,
        action="certificate.submit",
        actor="student",
        actor_user_id=actor_user_id,
        diff={"workflow_status": {"old": None, "new": "SUBMITTED"}, "type": cert_type},
    )
    _commit()

    logger.info(
        "Certificate request %s submitted by student %s",
        cert.reference, student.id,
        extra={"certificate_id": cert.id, "event_type": "certificate.submit"},
    )
    return cert.to_dict()


# ═════════════════════════════════════════════════════════════════════════════
# Process (reviewer actions)
# ═════════════════════════════════════════════════════════════════════════════


def _is_assigned(student: Student, role: str, actor_id: int | None) -> bool:
    """Advisors act for their advisees and HODs for their department only."""
    if actor_id is None:
        return True
    if role == "advisor":
        return student.advisor_id == actor_id
    if role == "hod":
        return student.department is not None and student.department.hod_id == actor_id
    return True


def _require_hod(student: Student) -> None:
    # A request forwarded without a HOD would sit on no dashboard
    if student.department is None:
        raise ValidationError(NO_DEPARTMENT, details={"next_approver": "hod"})
    if student.department.hod_id is None:
        raise ValidationError(NO_HOD, details={"next_approver": "hod"})


def process_request(
    certificate_id: int,
    role: str,
    action: str,
    remarks: str | None = None,
    *,
    actor_id: int | None = None,
) -> dict:
    """
    Apply one reviewer action to a certificate request.

    Args:
        certificate_id: Request PK.
        role:     Reviewer role resolved from the caller's token.
        action:   APPROVE | FORWARD | REJECT (case-insensitive).
        remarks:  Required for REJECT.
        actor_id: Acting user's id, recorded on the approval event.

    Returns:
        The updated request with its approval history.

    Raises:
        ValidationError:        bad action, missing remarks, or no HOD to forward to.
        NotFoundError:          no such request.
        InvalidTransitionError: terminal state, not this role's turn, or the
                                student belongs to another advisor or HOD.
    """
    action = (action or "").strip().upper()
    remarks = (remarks or "").strip() or None
    if action not in APPROVAL_ACTIONS:
        raise ValidationError(
            f"action must be one of {', '.join(APPROVAL_ACTIONS)}",
            details={"action": action or "missing"},
        )

    cert = get_request(certificate_id)
    previous = cert.workflow_status

    if is_terminal(previous):
        raise InvalidTransitionError(cert.id, previous, role, InvalidTransitionError.TERMINAL)
    if role not in REVIEWER_ROLES or authorized_role(previous) != role:
        raise InvalidTransitionError(cert.id, previous, role, InvalidTransitionError.WRONG_ROLE)
    if action == "REJECT" and not remarks:
        raise ValidationError(
            "Remarks are required to reject a request",
            details={"remarks": "required when action is REJECT"},
        )

    if not _is_assigned(cert.student, role, actor_id):
        raise InvalidTransitionError(cert.id, previous, role, InvalidTransitionError.NOT_ASSIGNED)

    target = next_state(previous, action)
    if target == "WITH_HOD":
        _require_hod(cert.student)

    values = {"workflow_status": target, "updated_at": _utcnow()}
    if target == "REJECTED":
        values["rejection_reason"] = remarks

    result = db.session.execute(
        update(CertificateRequest)
        .where(
            CertificateRequest.id == cert.id,
            CertificateRequest.workflow_status == previous,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        fresh = get_request(certificate_id)
        db.session.refresh(fresh)
        logger.warning(
            "Concurrent transition on certificate %s: expected %s, found %s",
            certificate_id, previous, fresh.workflow_status,
            extra={"certificate_id": certificate_id, "event_type": "certificate.conflict"},
        )
        reason = (
            InvalidTransitionError.TERMINAL
            if is_terminal(fresh.workflow_status)
            else InvalidTransitionError.WRONG_ROLE
        )
        raise InvalidTransitionError(certificate_id, fresh.workflow_status, role, reason)

    db.session.add(ApprovalEvent(
        certificate_request_id=cert.id,
        role=role,
        action=action,
        remarks=remarks,
        from_status=previous,
        to_status=target,
        actor_id=actor_id,
    ))

    diff = {"workflow_status": {"old": previous, "new": target}}
    if target == "REJECTED":
        diff["rejection_reason"] = {"old": None, "new": remarks}
    write_audit(
        entity_type="certificate_request",
        entity_id=cert.id,
        action=f"certificate.{action.lower()}",
        actor=role,
        actor_user_id=actor_id,
        diff=diff,
    )

    if target == "REJECTED":
        NotificationService.notify_certificate_rejected(cert, role, remarks)

    _commit()

    logger.info(
        "Certificate %s: %s by %s (%s → %s)",
        cert.id, action, role, previous, target,
        extra={"certificate_id": cert.id, "event_type": f"certificate.{action.lower()}"},
    )
    return cert.to_dict(include_history=True)


# ═════════════════════════════════════════════════════════════════════════════
# Generate / download
# ═════════════════════════════════════════════════════════════════════════════


def generate_certificate(
    certificate_id: int,
    *,
    actor_role: str = "office",
    actor_id: int | None = None,
) -> dict:
    """
    Produce the certificate artifact for a request the principal has approved.

    Generator failures leave the request COMPLETED/APPROVED; the failure is
    logged and audited and the call may be retried.

    Raises:
        NotFoundError, InvalidStateError, UpstreamFailureError
    """
    cert = get_request(certificate_id)

    if cert.workflow_status != "COMPLETED":
        raise InvalidStateError(
            cert.id,
            "A certificate can only be generated after the principal has approved the request",
        )
    if cert.certificate_url:
        raise InvalidStateError(cert.id, "This certificate has already been generated")

    generator = get_document_generator()
    try:
        url = generator.generate(cert)
    except Exception as exc:
        db.session.rollback()
        logger.exception(
            "Document generation failed for certificate %s", certificate_id,
            extra={"certificate_id": certificate_id, "event_type": "certificate.generate_failed"},
        )
        write_audit(
            entity_type="certificate_request",
            entity_id=certificate_id,
            action="certificate.generate_failed",
            actor=actor_role,
            actor_user_id=actor_id,
            diff={"error": str(exc)},
        )
        _commit()
        raise UpstreamFailureError(
            "document_generator",
            "Certificate generation failed. The request is unchanged and can be retried.",
        ) from exc

    now = _utcnow()
    result = db.session.execute(
        update(CertificateRequest)
        .where(
            CertificateRequest.id == cert.id,
            CertificateRequest.workflow_status == "COMPLETED",
            CertificateRequest.certificate_url.is_(None),
        )
        .values(certificate_url=url, generated_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.rollback()
        raise InvalidStateError(cert.id, "This certificate has already been generated")

    write_audit(
        entity_type="certificate_request",
        entity_id=cert.id,
        action="certificate.generate",
        actor=actor_role,
        actor_user_id=actor_id,
        diff={"status": {"old": "APPROVED", "new": "GENERATED"}, "certificate_url": url},
    )
    NotificationService.notify_certificate_generated(cert)
    _commit()

    logger.info(
        "Certificate %s generated", cert.id,
        extra={"certificate_id": cert.id, "event_type": "certificate.generate"},
    )
    return cert.to_dict()


def render_download(certificate_id: int) -> tuple[str, str]:
    """
    Return ``(filename, body)`` for a generated certificate.

    Raises:
        NotFoundError, InvalidStateError
    """
    cert = get_request(certificate_id)
    if cert.status != "GENERATED":
        raise InvalidStateError(cert.id, "This certificate has not been generated yet")
    body = get_document_generator().render(cert)
    return f"certificate-{cert.id}.txt", body


# ═════════════════════════════════════════════════════════════════════════════
# Queries (read-only)
# ═════════════════════════════════════════════════════════════════════════════


def list_student_requests(student_id: int) -> list[dict]:
    """All requests of one student, newest first, each with its history."""
    if db.session.get(Student, student_id) is None:
        raise NotFoundError(resource="Student", resource_id=student_id)
    certs = (
        CertificateRequest.query
        .filter_by(student_id=student_id)
        .order_by(CertificateRequest.requested_at.desc(), CertificateRequest.id.desc())
        .all()
    )
    return [c.to_dict(include_history=True) for c in certs]


def get_workflow(certificate_id: int) -> dict:
    """A request with its full approval history, oldest event first."""
    return get_request(certificate_id).to_dict(include_history=True)


def _resolve_status_filter(role: str, status: str | None) -> set[str]:
    """
    Turn the dashboard ``status`` parameter into the set of workflow states
    to show:  omitted → actionable now, "all" → everything the role may see,
    a single state → that state if the role may see it.
    """
    visible = visible_states(role)
    if status is None or status == "":
        return set(WORKFLOW_STATUSES) if role == "admin" else actionable_states(role)
    status = status.strip().upper()
    if status == "ALL":
        return visible
    if status not in WORKFLOW_STATUSES:
        raise ValidationError(
            f"status must be 'all' or one of {', '.join(WORKFLOW_STATUSES)}",
            details={"status": status},
        )
    return {status} & visible


def list_for_role(
    role: str,
    *,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    per_page: int = DEFAULT_PER_PAGE,
    user_id: int | None = None,
    department_id: int | None = None,
    semester: int | None = None,
) -> dict:
    """
    Paginated dashboard listing for a reviewer role (or admin).

    Advisors only see their own advisees and HODs only their department
    when the caller's user id is known.

    Returns:
        {"items": [...], "pagination": {total, page, per_page, total_pages}}
    """
    if role not in REVIEWER_ROLES and role != "admin":
        raise ValidationError(f"Role '{role}' has no review dashboard", details={"role": role})

    states = _resolve_status_filter(role, status)
    per_page = max(1, min(per_page, MAX_PER_PAGE))
    page = max(1, page)

    q = (
        CertificateRequest.query
        .join(Student, CertificateRequest.student_id == Student.id)
        .filter(CertificateRequest.workflow_status.in_(sorted(states)))
        .filter(Student.status != "deleted")
    )

    if user_id is not None and role == "advisor":
        q = q.filter(Student.advisor_id == user_id)
    elif user_id is not None and role == "hod":
        hod_departments = select(Department.id).where(Department.hod_id == user_id)
        q = q.filter(Student.department_id.in_(hod_departments))

    if department_id is not None:
        q = q.filter(Student.department_id == department_id)
    if semester is not None:
        q = q.filter(Student.current_semester == semester)

    search = (search or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Student.name.ilike(pattern), Student.admission_number.ilike(pattern)))

    q = q.order_by(CertificateRequest.requested_at.desc(), CertificateRequest.id.desc())
    items, total = paginate_query(q, page, per_page)

    return {
        "items": [c.to_dict(include_history=True) for c in items],
        "pagination": {
            "total": total,
            "page": page,
            "per_page": per_page,
            "total_pages": math.ceil(total / per_page) if total else 0,
        },
    }
