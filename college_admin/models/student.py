"""
College Administration Platform
Student directory models.

Models:
    - Department: academic department with its head (HOD)
    - Student: enrolled student, owned by a department and a class advisor

Only the fields the certificate workflow reads are modelled here; admissions,
fees and promotion data live elsewhere.
"""

from datetime import datetime, timezone

from college_admin.models import db


# ── Constants ────────────────────────────────────────────────────────────────

STUDENT_STATUSES = {"active", "inactive", "deleted"}


class Department(db.Model):
    """Academic department. ``hod_id`` is the user id of its head."""

    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    code = db.Column(db.String(20), nullable=False, unique=True)
    hod_id = db.Column(
        db.Integer, nullable=True, index=True,
        comment="User id of the head of department (identity provider)",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    students = db.relationship("Student", back_populates="department", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "hod_id": self.hod_id,
        }

    def __repr__(self):
        return f"<Department {self.id}: {self.code}>"


class Student(db.Model):
    """
    Enrolled student.

    ``advisor_id`` is the user id of the class advisor who reviews the
    student's certificate requests first.
    """

    __tablename__ = "students"
    __table_args__ = (
        db.Index("idx_student_dept_semester", "department_id", "current_semester"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    admission_number = db.Column(db.String(40), nullable=False, unique=True)
    department_id = db.Column(
        db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    advisor_id = db.Column(
        db.Integer, nullable=True, index=True,
        comment="User id of the class advisor (identity provider)",
    )
    program = db.Column(db.String(100), default="")
    current_semester = db.Column(db.Integer, default=1)
    date_of_birth = db.Column(db.Date, nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="active",
        comment="active | inactive | deleted",
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    department = db.relationship("Department", back_populates="students")

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def to_summary(self) -> dict:
        """Compact representation embedded in certificate payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "admission_number": self.admission_number,
            "program": self.program,
            "current_semester": self.current_semester,
            "department": (
                {"id": self.department.id, "name": self.department.name}
                if self.department else None
            ),
        }

    def to_dict(self):
        return {
            **self.to_summary(),
            "department_id": self.department_id,
            "advisor_id": self.advisor_id,
            "date_of_birth": self.date_of_birth.isoformat() if self.date_of_birth else None,
            "status": self.status,
        }

    def __repr__(self):
        return f"<Student {self.id}: {self.admission_number}>"
