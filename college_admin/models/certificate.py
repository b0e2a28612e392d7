"""
College Administration Platform
Certificate workflow domain model.

Models:
    - CertificateRequest: a student's request for a certificate, routed through
      the reviewer chain advisor → hod → office → principal.
    - ApprovalEvent: immutable, append-only record of one reviewer action.

The reviewer chain is defined once in CERTIFICATE_WORKFLOW and read through
the pure helpers below; services never branch on roles or states themselves.
"""

from datetime import datetime, timezone

from college_admin.models import db


# ── Constants ────────────────────────────────────────────────────────────────

CERTIFICATE_TYPES = ("BONAFIDE", "COURSE_COMPLETION", "TRANSFER", "CHARACTER", "OTHER")

# Short codes used in the human-readable reference (CERT-BON-000042)
CERTIFICATE_TYPE_CODES = {
    "BONAFIDE": "BON",
    "COURSE_COMPLETION": "CCP",
    "TRANSFER": "TRF",
    "CHARACTER": "CHR",
    "OTHER": "OTH",
}

WORKFLOW_STATUSES = (
    "SUBMITTED",
    "WITH_ADVISOR",
    "WITH_HOD",
    "WITH_OFFICE",
    "WITH_PRINCIPAL",
    "COMPLETED",
    "REJECTED",
)

TERMINAL_STATUSES = frozenset({"COMPLETED", "REJECTED"})

REVIEWER_ROLES = ("advisor", "hod", "office", "principal")

APPROVAL_ACTIONS = ("APPROVE", "FORWARD", "REJECT")

# Current state → who may act, and where APPROVE/FORWARD leads.
# REJECT always leads to REJECTED.  Terminal states have no row.
CERTIFICATE_WORKFLOW = {
    "SUBMITTED": {"role": "advisor", "forward": "WITH_HOD"},
    "WITH_ADVISOR": {"role": "advisor", "forward": "WITH_HOD"},
    "WITH_HOD": {"role": "hod", "forward": "WITH_OFFICE"},
    "WITH_OFFICE": {"role": "office", "forward": "WITH_PRINCIPAL"},
    "WITH_PRINCIPAL": {"role": "principal", "forward": "COMPLETED"},
}

# Chain order used for dashboards ("everything at or after my stage")
_CHAIN_ORDER = (
    "SUBMITTED",
    "WITH_ADVISOR",
    "WITH_HOD",
    "WITH_OFFICE",
    "WITH_PRINCIPAL",
    "COMPLETED",
)


# ── State-table helpers ──────────────────────────────────────────────────────

def is_terminal(workflow_status: str) -> bool:
    return workflow_status in TERMINAL_STATUSES


def authorized_role(workflow_status: str) -> str | None:
    """Role whose turn it is in *workflow_status*, or None when terminal."""
    rule = CERTIFICATE_WORKFLOW.get(workflow_status)
    return rule["role"] if rule else None


def acting_role(workflow_status: str, roles, default: str | None = None) -> str | None:
    """
    Which of the caller's *roles* acts on a request in *workflow_status*.

    A user holding several reviewer roles acts as the one whose turn it is;
    *default* is returned when none of them matches.
    """
    expected = authorized_role(workflow_status)
    return expected if expected in roles else default


def next_state(workflow_status: str, action: str) -> str:
    """
    Target state for *action* taken in *workflow_status*.

    Raises:
        ValueError: unknown action, unknown state or terminal state.
    """
    if action not in APPROVAL_ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    rule = CERTIFICATE_WORKFLOW.get(workflow_status)
    if rule is None:
        raise ValueError(f"No transitions out of '{workflow_status}'")
    if action == "REJECT":
        return "REJECTED"
    return rule["forward"]


def derive_status(workflow_status: str, generated: bool = False) -> str:
    """Coarse outcome shown to students, computed from the workflow position."""
    if workflow_status == "REJECTED":
        return "REJECTED"
    if workflow_status == "COMPLETED":
        return "GENERATED" if generated else "APPROVED"
    return "PENDING"


def actionable_states(role: str) -> set[str]:
    """States in which *role* is the authorised reviewer."""
    return {state for state, rule in CERTIFICATE_WORKFLOW.items() if rule["role"] == role}


def visible_states(role: str) -> set[str]:
    """
    States a role's dashboard shows: what it can act on plus every later
    stage of the chain.  Admin sees everything.
    """
    if role == "admin":
        return set(WORKFLOW_STATUSES)
    actionable = actionable_states(role)
    if not actionable:
        return set()
    first = min(_CHAIN_ORDER.index(s) for s in actionable)
    return set(_CHAIN_ORDER[first:])


def workflow_definition() -> list[dict]:
    """Serialisable view of the state table, one row per state."""
    rows = []
    for state in WORKFLOW_STATUSES:
        rule = CERTIFICATE_WORKFLOW.get(state)
        rows.append({
            "state": state,
            "terminal": is_terminal(state),
            "role": rule["role"] if rule else None,
            "on_forward": rule["forward"] if rule else None,
            "on_reject": "REJECTED" if rule else None,
        })
    return rows


def _utcnow():
    return datetime.now(timezone.utc)


class CertificateRequest(db.Model):
    """
    A student's certificate request.

    ``workflow_status`` is the only stored state; ``status`` is derived from
    it plus whether a certificate has been generated.
    Lifecycle: SUBMITTED → WITH_HOD → WITH_OFFICE → WITH_PRINCIPAL → COMPLETED,
    with REJECTED reachable from every non-terminal stage.
    """

    __tablename__ = "certificate_requests"
    __table_args__ = (
        db.Index("idx_cert_workflow_status", "workflow_status"),
        db.Index("idx_cert_student", "student_id"),
        db.Index("idx_cert_requested_at", "requested_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(
        db.Integer, db.ForeignKey("students.id", ondelete="RESTRICT"), nullable=False,
    )
    type = db.Column(
        db.String(30), nullable=False,
        comment="BONAFIDE | COURSE_COMPLETION | TRANSFER | CHARACTER | OTHER",
    )
    reason = db.Column(db.Text, nullable=False)
    workflow_status = db.Column(
        db.String(20), nullable=False, default="SUBMITTED",
        comment="SUBMITTED | WITH_ADVISOR | WITH_HOD | WITH_OFFICE | WITH_PRINCIPAL | COMPLETED | REJECTED",
    )
    rejection_reason = db.Column(db.Text, nullable=True)
    certificate_url = db.Column(db.String(500), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    student = db.relationship("Student", lazy="joined")
    approvals = db.relationship(
        "ApprovalEvent",
        back_populates="certificate_request",
        order_by=lambda: [ApprovalEvent.created_at, ApprovalEvent.id],
        lazy="selectin",
    )

    # ── Derived fields ───────────────────────────────────────────────────

    @property
    def status(self) -> str:
        return derive_status(self.workflow_status, generated=bool(self.certificate_url))

    @property
    def reference(self) -> str | None:
        if self.id is None:
            return None
        code = CERTIFICATE_TYPE_CODES.get(self.type, "OTH")
        return f"CERT-{code}-{self.id:06d}"

    @property
    def pending_with(self) -> str | None:
        """Role whose turn it currently is."""
        return authorized_role(self.workflow_status)

    def to_dict(self, include_history: bool = False) -> dict:
        data = {
            "id": self.id,
            "reference": self.reference,
            "student_id": self.student_id,
            "student": self.student.to_summary() if self.student else None,
            "type": self.type,
            "reason": self.reason,
            "status": self.status,
            "workflow_status": self.workflow_status,
            "pending_with": self.pending_with,
            "rejection_reason": self.rejection_reason,
            "certificate_url": self.certificate_url,
            "requested_at": self.requested_at.isoformat() if self.requested_at else None,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_history:
            data["approvals"] = [a.to_dict() for a in self.approvals]
        return data

    def __repr__(self):
        return f"<CertificateRequest {self.id}: {self.type} [{self.workflow_status}]>"


class ApprovalEvent(db.Model):
    """
    One reviewer action on a certificate request.

    Rows are never updated or deleted; ordered by ``created_at`` they
    reconstruct the request's path through the reviewer chain.
    """

    __tablename__ = "certificate_approval_events"
    __table_args__ = (
        db.Index("idx_approval_event_request", "certificate_request_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    certificate_request_id = db.Column(
        db.Integer,
        db.ForeignKey("certificate_requests.id", ondelete="RESTRICT"),
        nullable=False,
    )
    role = db.Column(db.String(20), nullable=False, comment="advisor | hod | office | principal")
    action = db.Column(db.String(20), nullable=False, comment="APPROVE | FORWARD | REJECT")
    remarks = db.Column(db.Text, nullable=True)
    from_status = db.Column(db.String(20), nullable=False)
    to_status = db.Column(db.String(20), nullable=False)
    actor_id = db.Column(db.Integer, nullable=True, comment="User id from the access token")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    certificate_request = db.relationship("CertificateRequest", back_populates="approvals")

    def to_dict(self):
        return {
            "id": self.id,
            "certificate_request_id": self.certificate_request_id,
            "role": self.role,
            "action": self.action,
            "remarks": self.remarks,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<ApprovalEvent {self.id}: {self.role} {self.action} on #{self.certificate_request_id}>"
