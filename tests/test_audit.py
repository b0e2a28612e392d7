"""
Audit trail tests — write_audit payloads and the admin audit endpoint.
"""

import pytest

from college_admin.models import db
from college_admin.models.audit import AuditLog, write_audit
from college_admin.services import certificate_service


class TestWriteAudit:

    def test_flush_only(self):
        log = write_audit(entity_type="student", entity_id=5, action="update",
                          diff={"status": {"old": "active", "new": "inactive"}})
        assert log.id is not None
        db.session.rollback()
        assert AuditLog.query.count() == 0

    def test_diff_round_trip(self):
        write_audit(entity_type="student", entity_id=5, action="update", diff={"a": 1})
        db.session.commit()
        log = AuditLog.query.one()
        assert log.entity_id == "5"
        assert log.actor == "system"
        assert log.diff == {"a": 1}

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError, match="audit action"):
            write_audit(entity_type="certificate_request", entity_id=1, action="certificate.download")

    def test_unknown_entity_type_rejected(self):
        with pytest.raises(ValueError, match="entity type"):
            write_audit(entity_type="invoice", entity_id=1, action="create")

    def test_captures_request_origin(self, client, auth_headers, student):
        client.post(
            "/api/v1/certificates",
            json={"type": "BONAFIDE", "reason": "Visa"},
            headers={
                **auth_headers("student", student_id=student.id),
                "X-Forwarded-For": "203.0.113.9, 10.0.0.1",
                "User-Agent": "pytest-agent",
            },
        )
        log = AuditLog.query.one()
        assert log.ip_address == "203.0.113.9"
        assert log.user_agent == "pytest-agent"
        assert log.actor_user_id == 100


class TestAuditApi:

    def _history(self, student):
        cert = certificate_service.submit_request(student.id, "BONAFIDE", "Visa")
        certificate_service.process_request(cert["id"], role="advisor", action="FORWARD", actor_id=2)
        certificate_service.process_request(cert["id"], role="hod", action="REJECT", remarks="No", actor_id=3)
        return cert

    def test_admin_lists_newest_first(self, client, auth_headers, student):
        self._history(student)
        res = client.get("/api/v1/audit", headers=auth_headers("admin"))
        assert res.status_code == 200
        body = res.get_json()
        assert [i["action"] for i in body["items"]] == [
            "certificate.reject", "certificate.forward", "certificate.submit",
        ]
        assert body["pagination"]["total"] == 3

    def test_filters(self, client, auth_headers, student):
        cert = self._history(student)
        res = client.get(
            f"/api/v1/audit?entity_type=certificate_request&entity_id={cert['id']}&actor=hod",
            headers=auth_headers("admin"),
        )
        items = res.get_json()["items"]
        assert len(items) == 1
        assert items[0]["diff"]["workflow_status"] == {"old": "WITH_HOD", "new": "REJECTED"}

    def test_single_entry(self, client, auth_headers, student):
        self._history(student)
        log_id = AuditLog.query.first().id
        res = client.get(f"/api/v1/audit/{log_id}", headers=auth_headers("admin"))
        assert res.status_code == 200
        assert client.get("/api/v1/audit/9999", headers=auth_headers("admin")).status_code == 404
