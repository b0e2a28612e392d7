"""
Certificate Document Generator.

The workflow engine treats generation as an opaque call: given a completed
request, return a reference to a downloadable artifact.  The generator object
lives on the Flask app (``app.extensions["document_generator"]``) so a
deployment can swap in a different backend without touching the workflow.

TemplateDocumentGenerator (default):
    - generate(): returns the download URL for the request
    - render():   produces the certificate body as plain text from the
                  per-type templates below

Usage:
    from college_admin.services.document_generator import get_document_generator

    url = get_document_generator().generate(certificate)
"""

from __future__ import annotations

import logging
from datetime import date

from flask import current_app

logger = logging.getLogger(__name__)

EXTENSION_KEY = "document_generator"


class DocumentGenerationError(Exception):
    """Raised by a generator when the artifact could not be produced."""


# ── Templates ─────────────────────────────────────────────────────────────────
# Each template is a list of (alignment, text) lines.  None entries are
# dropped so optional fields vanish cleanly.

def _bonafide(d: dict) -> tuple[str, list]:
    return "BONAFIDE CERTIFICATE", [
        ("center", "This is to certify that"),
        ("center", d["student_name"]),
        ("center", f"Admission Number: {d['admission_number']}"),
        ("center", f"Program: {d['program']}") if d["program"] else None,
        ("center", f"Department: {d['department']}") if d["department"] else None,
        ("center", f"is a bonafide student of this institution for the academic year {d['academic_year']}."),
        ("center", f"Purpose: {d['reason']}") if d["reason"] else None,
        ("center", "This certificate is issued on request of the student for whatever purpose it may serve."),
        ("right", f"Date: {d['issued_date']}"),
        ("right", "Principal/Registrar"),
    ]


def _transfer(d: dict) -> tuple[str, list]:
    return "TRANSFER CERTIFICATE", [
        ("center", "This is to certify that"),
        ("center", d["student_name"]),
        ("center", f"Admission Number: {d['admission_number']}"),
        ("center", f"Date of Birth: {d['date_of_birth']}") if d["date_of_birth"] else None,
        ("center", f"Program: {d['program']}") if d["program"] else None,
        ("center", f"Department: {d['department']}") if d["department"] else None,
        ("center", f"has studied in {d['institution']}."),
        ("center", "The student has paid all dues and there is no objection to the transfer."),
        ("center", "The student bore a good moral character during the stay in this institution."),
        ("right", f"Date: {d['issued_date']}"),
        ("right", "Principal"),
    ]


def _course_completion(d: dict) -> tuple[str, list]:
    return "COURSE COMPLETION CERTIFICATE", [
        ("center", "This is to certify that"),
        ("center", d["student_name"]),
        ("center", f"Admission Number: {d['admission_number']}"),
        ("center", f"has successfully completed the {d['program']} program") if d["program"] else None,
        ("center", f"in the Department of {d['department']}") if d["department"] else None,
        ("center", "The student has satisfactorily completed all the requirements of the course."),
        ("right", f"Date: {d['issued_date']}"),
        ("right", "Head of Department"),
    ]


def _character(d: dict) -> tuple[str, list]:
    return "CHARACTER CERTIFICATE", [
        ("center", "This is to certify that"),
        ("center", d["student_name"]),
        ("center", f"Admission Number: {d['admission_number']}"),
        ("center", f"Program: {d['program']}") if d["program"] else None,
        ("center", f"was a student of this institution during the academic year {d['academic_year']}."),
        ("center", "During the period of study in this institution, the student's conduct and character were satisfactory."),
        ("right", f"Date: {d['issued_date']}"),
        ("right", "Principal"),
    ]


def _other(d: dict) -> tuple[str, list]:
    return "CERTIFICATE", [
        ("center", "This is to certify that"),
        ("center", d["student_name"]),
        ("center", f"Admission Number: {d['admission_number']}"),
        ("center", f"Department: {d['department']}") if d["department"] else None,
        ("center", f"is a student of {d['institution']}."),
        ("center", f"Purpose: {d['reason']}") if d["reason"] else None,
        ("right", f"Date: {d['issued_date']}"),
        ("right", "Principal"),
    ]


CERTIFICATE_TEMPLATES = {
    "BONAFIDE": _bonafide,
    "TRANSFER": _transfer,
    "COURSE_COMPLETION": _course_completion,
    "CHARACTER": _character,
    "OTHER": _other,
}


def academic_year(today: date) -> str:
    """Academic year label; years roll over in June (2024-25 runs Jun 2024 – May 2025)."""
    start = today.year if today.month >= 6 else today.year - 1
    return f"{start}-{str(start + 1)[-2:]}"


# ── Generators ────────────────────────────────────────────────────────────────


class TemplateDocumentGenerator:
    """Default generator: URL reference on generate, text body on render."""

    LINE_WIDTH = 78

    def __init__(self, base_url: str, institution: str = "College"):
        self.base_url = base_url.rstrip("/")
        self.institution = institution

    def generate(self, certificate) -> str:
        """Return the artifact reference for a completed request."""
        if certificate.type not in CERTIFICATE_TEMPLATES:
            raise DocumentGenerationError(f"No template for certificate type {certificate.type}")
        if certificate.student is None:
            raise DocumentGenerationError(f"Certificate {certificate.id} has no student record")
        return f"{self.base_url}/api/v1/certificates/{certificate.id}/download"

    def template_data(self, certificate, today: date | None = None) -> dict:
        today = today or date.today()
        student = certificate.student
        return {
            "student_name": student.name,
            "admission_number": student.admission_number,
            "program": student.program or "",
            "department": student.department.name if student.department else "",
            "date_of_birth": student.date_of_birth.strftime("%d/%m/%Y") if student.date_of_birth else "",
            "reason": certificate.reason,
            "issued_date": today.strftime("%d/%m/%Y"),
            "academic_year": academic_year(today),
            "institution": self.institution,
        }

    def render(self, certificate, today: date | None = None) -> str:
        """Render the certificate as fixed-width plain text."""
        template = CERTIFICATE_TEMPLATES.get(certificate.type)
        if template is None:
            raise DocumentGenerationError(f"No template for certificate type {certificate.type}")
        title, lines = template(self.template_data(certificate, today))

        out = [self.institution.upper().center(self.LINE_WIDTH), "", title.center(self.LINE_WIDTH), ""]
        for line in lines:
            if line is None:
                continue
            alignment, text = line
            if alignment == "right":
                out.append(text.rjust(self.LINE_WIDTH))
            else:
                out.append(text.center(self.LINE_WIDTH))
        out.append("")
        out.append(f"Ref: {certificate.reference}")
        return "\n".join(out) + "\n"


def init_document_generator(app, generator=None):
    """Register the document generator on *app* (default: template-based)."""
    if generator is None:
        generator = TemplateDocumentGenerator(
            base_url=app.config.get("CERTIFICATE_BASE_URL", ""),
            institution=app.config.get("INSTITUTION_NAME", "College"),
        )
    app.extensions[EXTENSION_KEY] = generator
    return generator


def get_document_generator():
    return current_app.extensions[EXTENSION_KEY]
