"""
College Administration Platform
Flask Application Factory.

Usage:
    from college_admin import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from college_admin.config import config
from college_admin.middleware.jwt_auth import init_jwt_middleware
from college_admin.middleware.logging_config import configure_logging
from college_admin.middleware.rate_limiter import init_rate_limits
from college_admin.middleware.timing import init_request_timing
from college_admin.models import db
from college_admin.services.document_generator import init_document_generator
from college_admin.utils.errors import E, api_error

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────
@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
# Storage comes from RATELIMIT_STORAGE_URI at init_app time
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, limits are per route
)


def create_app(config_name=None, document_generator=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        document_generator: Optional generator object replacing the default
                     template-based one (must provide generate() and render()).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id / g.current_role) ────────
    init_jwt_middleware(app)

    # ── Document generator ───────────────────────────────────────────────
    init_document_generator(app, document_generator)

    # ── Import all models so Alembic can detect them ─────────────────────
    from college_admin.models import audit as _audit_models                # noqa: F401
    from college_admin.models import certificate as _certificate_models    # noqa: F401
    from college_admin.models import notification as _notification_models  # noqa: F401
    from college_admin.models import student as _student_models            # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name != "testing":
        with app.app_context():
            if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///"):
                os.makedirs(app.instance_path, exist_ok=True)
            db.create_all()
            app.logger.info("db.create_all() completed successfully")

    # ── Blueprints ───────────────────────────────────────────────────────
    from college_admin.blueprints.audit_bp import audit_bp
    from college_admin.blueprints.certificate_bp import certificate_bp
    from college_admin.blueprints.health_bp import health_bp
    from college_admin.blueprints.notification_bp import notification_bp

    app.register_blueprint(certificate_bp)
    app.register_blueprint(notification_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(health_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Seed demo departments and students."""
        from college_admin.services.seed_service import seed_demo_data
        created = seed_demo_data()
        db.session.commit()
        click.echo(
            f"Seeded {created['departments']} departments and {created['students']} students."
        )

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(SQLAlchemyError)
    def database_error(e):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"limit": e.description})

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error on %s %s", request.method, request.path,
                     exc_info=getattr(e, "original_exception", None) or e)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
