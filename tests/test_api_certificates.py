"""
Certificate API tests — end-to-end over HTTP with signed tokens.

Covers:
  - full approval chain through generation and download
  - rejection mid-chain and follow-up attempts
  - wrong-role and unauthenticated callers
  - student ownership of records
  - reviewer dashboard parameters and validation
  - error body shape {"error", "code"}
"""

import pytest

from college_admin.models import db
from college_admin.models.certificate import CertificateRequest
from college_admin.services.jwt_service import generate_access_token


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

CHAIN = ("advisor", "hod", "office", "principal")


@pytest.fixture()
def student_headers(auth_headers, student):
    return auth_headers("student", student_id=student.id)


def _submit(client, headers, **body):
    payload = {"type": "BONAFIDE", "reason": "Bank loan application", **body}
    return client.post("/api/v1/certificates", json=payload, headers=headers)


def _process(client, headers, cert_id, action="FORWARD", remarks=None):
    body = {"action": action}
    if remarks is not None:
        body["remarks"] = remarks
    return client.post(f"/api/v1/certificates/{cert_id}/process", json=body, headers=headers)


def _walk(client, auth_headers, cert_id, roles=CHAIN):
    for role in roles:
        res = _process(client, auth_headers(role), cert_id)
        assert res.status_code == 200, res.get_json()
    return res.get_json()


# ═══════════════════════════════════════════════════════════════════════════
# Scenarios
# ═══════════════════════════════════════════════════════════════════════════


class TestHappyPath:

    def test_submit_approve_generate_download(self, client, auth_headers, student_headers, student):
        res = _submit(client, student_headers)
        assert res.status_code == 201
        cert = res.get_json()
        assert cert["status"] == "PENDING"
        assert cert["workflow_status"] == "SUBMITTED"

        done = _walk(client, auth_headers, cert["id"])
        assert done["workflow_status"] == "COMPLETED"
        assert done["status"] == "APPROVED"
        assert len(done["approvals"]) == 4

        res = client.post(f"/api/v1/certificates/{cert['id']}/generate", headers=auth_headers("office"))
        assert res.status_code == 200
        generated = res.get_json()
        assert generated["status"] == "GENERATED"
        assert generated["certificate_url"].endswith(f"/api/v1/certificates/{cert['id']}/download")

        res = client.get(f"/api/v1/certificates/{cert['id']}/download", headers=student_headers)
        assert res.status_code == 200
        assert res.mimetype == "text/plain"
        assert f'filename="certificate-{cert["id"]}.txt"' in res.headers["Content-Disposition"]
        body = res.get_data(as_text=True)
        assert "BONAFIDE CERTIFICATE" in body
        assert student.name in body
        assert "Test College".upper() in body

    def test_history_endpoint(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, cert["id"], roles=("advisor", "hod"))

        res = client.get(f"/api/v1/certificates/{cert['id']}/workflow", headers=student_headers)
        assert res.status_code == 200
        approvals = res.get_json()["approvals"]
        assert [(a["from_status"], a["to_status"]) for a in approvals] == [
            ("SUBMITTED", "WITH_HOD"),
            ("WITH_HOD", "WITH_OFFICE"),
        ]

    def test_admin_can_generate(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, cert["id"])
        res = client.post(f"/api/v1/certificates/{cert['id']}/generate", headers=auth_headers("admin"))
        assert res.status_code == 200


class TestRejection:

    def test_hod_rejects_then_office_cannot_act(self, client, auth_headers, student_headers, student):
        cert = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, cert["id"], roles=("advisor",))

        res = _process(client, auth_headers("hod"), cert["id"], "REJECT", remarks="Incomplete")
        assert res.status_code == 200
        rejected = res.get_json()
        assert rejected["status"] == "REJECTED"
        assert rejected["rejection_reason"] == "Incomplete"

        res = _process(client, auth_headers("office"), cert["id"])
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_INVALID_TRANSITION"
        assert body["error"] == "This request has already been finalised and cannot be acted on"

        res = client.post(f"/api/v1/certificates/{cert['id']}/generate", headers=auth_headers("office"))
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_INVALID_STATE"

    def test_reject_without_remarks(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        res = _process(client, auth_headers("advisor"), cert["id"], "REJECT")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert db.session.get(CertificateRequest, cert["id"]).workflow_status == "SUBMITTED"


class TestWrongActor:

    def test_out_of_turn_reviewer(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        res = _process(client, auth_headers("principal"), cert["id"])
        assert res.status_code == 409
        body = res.get_json()
        assert body["error"] == "It is not your turn to act on this request"
        assert body["details"]["current_status"] == "SUBMITTED"

    def test_student_cannot_process(self, client, student_headers):
        cert = _submit(client, student_headers).get_json()
        res = _process(client, student_headers, cert["id"])
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_hod_cannot_generate(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, cert["id"])
        res = client.post(f"/api/v1/certificates/{cert['id']}/generate", headers=auth_headers("hod"))
        assert res.status_code == 403

    def test_missing_token(self, client, student):
        res = client.post("/api/v1/certificates", json={"type": "BONAFIDE", "reason": "x"})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token(self, client):
        res = client.get("/api/v1/certificates/review", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_unknown_request(self, client, auth_headers):
        res = _process(client, auth_headers("advisor"), 4040)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_invalid_action(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        res = _process(client, auth_headers("advisor"), cert["id"], "ESCALATE")
        assert res.status_code == 400


class TestSubmitEndpoint:

    def test_student_id_defaults_to_token(self, client, student_headers, student):
        res = _submit(client, student_headers)
        assert res.get_json()["student_id"] == student.id

    def test_student_cannot_submit_for_someone_else(self, client, student_headers, make_student):
        other = make_student("Rahul Nair", "CSE2023002")
        res = _submit(client, student_headers, student_id=other.id)
        assert res.status_code == 403

    def test_admin_submits_on_behalf(self, client, auth_headers, student):
        res = _submit(client, auth_headers("admin"), student_id=student.id)
        assert res.status_code == 201

    def test_admin_must_name_student(self, client, auth_headers):
        res = _submit(client, auth_headers("admin"))
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_validation_details(self, client, student_headers):
        res = _submit(client, student_headers, type="PASSPORT", reason="")
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert set(details) == {"type", "reason"}

    def test_reviewer_cannot_submit(self, client, auth_headers, student):
        res = _submit(client, auth_headers("advisor"), student_id=student.id)
        assert res.status_code == 403


class TestStudentOwnership:

    def test_list_own_requests(self, client, student_headers, student):
        _submit(client, student_headers)
        _submit(client, student_headers, type="CHARACTER")
        res = client.get(f"/api/v1/certificates/student/{student.id}", headers=student_headers)
        assert res.status_code == 200
        assert res.get_json()["total"] == 2

    def test_cannot_list_other_student(self, client, student_headers, make_student):
        other = make_student("Rahul Nair", "CSE2023002")
        res = client.get(f"/api/v1/certificates/student/{other.id}", headers=student_headers)
        assert res.status_code == 403

    def test_staff_can_list_any_student(self, client, auth_headers, student_headers, student):
        _submit(client, student_headers)
        res = client.get(f"/api/v1/certificates/student/{student.id}", headers=auth_headers("office"))
        assert res.status_code == 200

    def test_cannot_download_other_students_certificate(
        self, client, auth_headers, student_headers, make_student
    ):
        other = make_student("Rahul Nair", "CSE2023002")
        other_headers = auth_headers("student", user_id=101, student_id=other.id)
        cert = _submit(client, other_headers).get_json()
        _walk(client, auth_headers, cert["id"])
        client.post(f"/api/v1/certificates/{cert['id']}/generate", headers=auth_headers("office"))

        res = client.get(f"/api/v1/certificates/{cert['id']}/download", headers=student_headers)
        assert res.status_code == 403

    def test_download_before_generation(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, cert["id"])
        res = client.get(f"/api/v1/certificates/{cert['id']}/download", headers=student_headers)
        assert res.status_code == 409


class TestReviewDashboard:

    def test_default_shows_awaiting_my_action(self, client, auth_headers, student_headers):
        waiting = _submit(client, student_headers).get_json()
        moved = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, moved["id"], roles=("advisor",))

        res = client.get("/api/v1/certificates/review", headers=auth_headers("advisor"))
        assert res.status_code == 200
        body = res.get_json()
        assert [i["id"] for i in body["items"]] == [waiting["id"]]
        assert body["pagination"]["total"] == 1

    def test_status_all(self, client, auth_headers, student_headers):
        a = _submit(client, student_headers).get_json()
        b = _submit(client, student_headers).get_json()
        _walk(client, auth_headers, b["id"], roles=("advisor",))
        res = client.get("/api/v1/certificates/review?status=all", headers=auth_headers("advisor"))
        assert {i["id"] for i in res.get_json()["items"]} == {a["id"], b["id"]}

    def test_invalid_status(self, client, auth_headers):
        res = client.get("/api/v1/certificates/review?status=LOST", headers=auth_headers("office"))
        assert res.status_code == 400

    def test_invalid_page(self, client, auth_headers):
        res = client.get("/api/v1/certificates/review?page=zero", headers=auth_headers("office"))
        assert res.status_code == 400
        res = client.get("/api/v1/certificates/review?page=0", headers=auth_headers("office"))
        assert res.status_code == 400

    def test_search(self, client, auth_headers, student_headers, make_student):
        other = make_student("Rahul Nair", "CSE2023002")
        _submit(client, student_headers)
        _submit(client, auth_headers("admin"), student_id=other.id)
        res = client.get("/api/v1/certificates/review?search=NAIR", headers=auth_headers("advisor"))
        items = res.get_json()["items"]
        assert len(items) == 1
        assert items[0]["student"]["name"] == "Rahul Nair"

    def test_students_have_no_dashboard(self, client, student_headers):
        res = client.get("/api/v1/certificates/review", headers=student_headers)
        assert res.status_code == 403


class TestWorkflowDefinition:

    def test_public_state_table(self, client):
        res = client.get("/api/v1/certificates/workflow-definition")
        assert res.status_code == 200
        states = {row["state"]: row for row in res.get_json()["states"]}
        assert states["SUBMITTED"]["role"] == "advisor"
        assert states["WITH_PRINCIPAL"]["on_forward"] == "COMPLETED"


class TestMultipleRoles:
    """One user who is both a class advisor and the department's HOD."""

    @pytest.fixture()
    def dual_headers(self, department):
        department.hod_id = 2
        db.session.commit()
        token = generate_access_token(2, ["advisor", "hod"])
        return {"Authorization": f"Bearer {token}"}

    def test_acts_as_whichever_role_has_the_turn(self, client, dual_headers, student_headers):
        cert = _submit(client, student_headers).get_json()

        res = _process(client, dual_headers, cert["id"])
        assert res.status_code == 200, res.get_json()
        assert res.get_json()["workflow_status"] == "WITH_HOD"

        res = _process(client, dual_headers, cert["id"])
        assert res.status_code == 200, res.get_json()
        body = res.get_json()
        assert body["workflow_status"] == "WITH_OFFICE"
        assert [a["role"] for a in body["approvals"]] == ["advisor", "hod"]

    def test_out_of_turn_reports_primary_role(self, client, dual_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        _process(client, dual_headers, cert["id"])
        _process(client, dual_headers, cert["id"])
        res = _process(client, dual_headers, cert["id"])
        assert res.status_code == 409
        assert res.get_json()["details"]["role"] == "hod"

    def test_review_role_parameter(self, client, dual_headers, student_headers):
        cert = _submit(client, student_headers).get_json()

        res = client.get("/api/v1/certificates/review?role=advisor", headers=dual_headers)
        assert res.status_code == 200
        assert [i["id"] for i in res.get_json()["items"]] == [cert["id"]]

        res = client.get("/api/v1/certificates/review", headers=dual_headers)
        assert res.get_json()["items"] == []

    def test_review_role_must_be_held(self, client, dual_headers):
        res = client.get("/api/v1/certificates/review?role=principal", headers=dual_headers)
        assert res.status_code == 403
        assert res.get_json()["details"]["held"] == ["advisor", "hod"]


class TestReviewerAssignment:

    def test_other_advisor_gets_conflict(self, client, auth_headers, student_headers):
        cert = _submit(client, student_headers).get_json()
        res = _process(client, auth_headers("advisor", user_id=77), cert["id"])
        assert res.status_code == 409
        assert res.get_json()["error"] == "This request is assigned to another reviewer"

    def test_forward_without_hod_is_refused(self, client, auth_headers, student_headers, department):
        department.hod_id = None
        db.session.commit()
        cert = _submit(client, student_headers).get_json()
        res = _process(client, auth_headers("advisor"), cert["id"])
        assert res.status_code == 400
        assert res.get_json()["details"] == {"next_approver": "hod"}
