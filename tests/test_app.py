"""
Application wiring tests — health probes, request headers, config, CLI.
"""

import json
import logging

import pytest
from flask import g

from college_admin.config import ProductionConfig
from college_admin.middleware.logging_config import JSONFormatter, ReadableFormatter, RequestContextFilter
from college_admin.models.student import Department, Student
from college_admin.services.seed_service import DEMO_USER_IDS


class TestHealth:

    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").get_json() == {"status": "ok"}

    def test_live_reports_dependencies(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        checks = res.get_json()["checks"]
        assert checks["database"]["status"] == "ok"
        assert checks["document_generator"]["backend"] == "TemplateDocumentGenerator"


class TestRequestTiming:

    def test_headers_present(self, client):
        res = client.get("/api/v1/certificates/workflow-definition")
        assert "X-Request-Duration-Ms" in res.headers
        assert res.headers["X-Request-ID"]

    def test_request_id_echoed(self, client):
        res = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"


class TestErrors:

    def test_unknown_api_route(self, client):
        res = client.get("/api/v1/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_method_not_allowed(self, client):
        res = client.delete("/api/v1/certificates/workflow-definition")
        assert res.status_code == 405


class TestConfig:

    def test_production_requires_database_url(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            ProductionConfig()

    def test_production_requires_secret_key(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/college")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            ProductionConfig()


class TestSeedCommand:

    def test_seed_demo_is_idempotent(self, app):
        runner = app.test_cli_runner()
        first = runner.invoke(args=["seed-demo"])
        assert first.exit_code == 0
        assert "Seeded 2 departments and 4 students." in first.output
        second = runner.invoke(args=["seed-demo"])
        assert "Seeded 0 departments and 0 students." in second.output
        assert Department.query.count() == 2
        assert Student.query.count() == 4

    def test_demo_reviewers_do_not_reuse_office_or_principal_ids(self, app):
        app.test_cli_runner().invoke(args=["seed-demo"])
        reviewer_ids = {d.hod_id for d in Department.query} | {s.advisor_id for s in Student.query}
        assert reviewer_ids.isdisjoint({DEMO_USER_IDS["office"], DEMO_USER_IDS["principal"]})


class TestRateLimitConfig:

    def test_storage_comes_from_config(self, app):
        assert app.config["RATELIMIT_STORAGE_URI"] == "memory://"


class TestLogging:

    def _record(self, **extra):
        record = logging.LogRecord(
            "college_admin.services.certificate_service", logging.INFO, __file__, 1,
            "Certificate %s: %s by %s", (7, "FORWARD", "hod"), None,
        )
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_lines_carry_extra_fields(self):
        body = json.loads(JSONFormatter().format(self._record(certificate_id=7, event_type="certificate.forward")))
        assert body["message"] == "Certificate 7: FORWARD by hod"
        assert body["level"] == "INFO"
        assert body["certificate_id"] == 7
        assert body["event_type"] == "certificate.forward"
        assert "args" not in body
        assert "msg" not in body

    def test_records_are_stamped_with_request_context(self, app):
        record = self._record()
        with app.test_request_context("/api/v1/certificates/7/process"):
            g.request_id = "req-42"
            g.jwt_user_id = 3
            g.current_role = "hod"
            assert RequestContextFilter().filter(record)
        assert record.request_id == "req-42"
        assert record.user_id == 3
        assert record.role == "hod"

    def test_readable_format_shows_context(self):
        line = ReadableFormatter().format(self._record(request_id="req-42", certificate_id=7))
        assert "Certificate 7: FORWARD by hod" in line
        assert "request_id=req-42" in line
        assert "certificate_id=7" in line
