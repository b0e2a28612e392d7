"""
Demo data for local development (``flask seed-demo``).

Idempotent: departments are matched on ``code`` and students on
``admission_number``, so running it twice creates nothing new.
"""

import logging
from datetime import date

from college_admin.models import db
from college_admin.models.student import Department, Student

logger = logging.getLogger(__name__)

# Identity-provider user ids the demo data refers to; office and principal
# (4 and 5) are never a department head or advisor
DEMO_USER_IDS = {
    "admin": 1,
    "cse_advisor": 2,
    "cse_hod": 3,
    "office": 4,
    "principal": 5,
    "ece_advisor": 6,
    "ece_hod": 7,
}

DEMO_DEPARTMENTS = [
    {"code": "CSE", "name": "Computer Science and Engineering", "hod_id": DEMO_USER_IDS["cse_hod"]},
    {"code": "ECE", "name": "Electronics and Communication Engineering", "hod_id": DEMO_USER_IDS["ece_hod"]},
]

DEMO_STUDENTS = [
    {"admission_number": "CSE2023001", "name": "Anjali Menon", "department": "CSE",
     "advisor_id": DEMO_USER_IDS["cse_advisor"], "program": "B.Tech", "current_semester": 5,
     "date_of_birth": date(2004, 3, 14)},
    {"admission_number": "CSE2023002", "name": "Rahul Nair", "department": "CSE",
     "advisor_id": DEMO_USER_IDS["cse_advisor"], "program": "B.Tech", "current_semester": 5,
     "date_of_birth": date(2003, 11, 2)},
    {"admission_number": "ECE2022014", "name": "Fathima Rasheed", "department": "ECE",
     "advisor_id": DEMO_USER_IDS["ece_advisor"], "program": "B.Tech", "current_semester": 7,
     "date_of_birth": date(2002, 7, 21)},
    {"admission_number": "ECE2019007", "name": "Vivek Kumar", "department": "ECE",
     "advisor_id": DEMO_USER_IDS["ece_advisor"], "program": "B.Tech", "current_semester": 8,
     "status": "inactive"},
]


def seed_demo_data() -> dict:
    """Create demo departments and students. Caller commits."""
    created = {"departments": 0, "students": 0}

    departments = {}
    for row in DEMO_DEPARTMENTS:
        dept = Department.query.filter_by(code=row["code"]).first()
        if dept is None:
            dept = Department(**row)
            db.session.add(dept)
            created["departments"] += 1
        departments[row["code"]] = dept
    db.session.flush()

    for row in DEMO_STUDENTS:
        row = dict(row)
        if Student.query.filter_by(admission_number=row["admission_number"]).first():
            continue
        dept = departments[row.pop("department")]
        db.session.add(Student(department_id=dept.id, **row))
        created["students"] += 1

    db.session.flush()
    logger.info("Seeded %d departments and %d students", created["departments"], created["students"])
    return created
