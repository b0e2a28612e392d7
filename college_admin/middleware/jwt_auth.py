"""
JWT Auth Middleware — Parses JWT from Authorization header, sets g.jwt_*.

Context set on every /api/v1/ request:
  g.jwt_user_id     int user id from "sub" (None when unauthenticated)
  g.jwt_roles       canonical roles carried by the token
  g.current_role    primary role, the most privileged one on the token;
                    process and /review may act as another held role
  g.jwt_student_id  student record id, student tokens only
  g.jwt_error       why a presented token was refused, for the 401 body

Nothing is blocked here; role_required decides per endpoint.
"""

import logging

import jwt as pyjwt
from flask import g, request

from college_admin.services.jwt_service import (
    decode_access_token,
    primary_role,
    roles_from_payload,
)

logger = logging.getLogger(__name__)

# Paths that skip JWT auth entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def _as_int(value):
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        # Clear JWT context
        g.jwt_user_id = None
        g.jwt_roles = []
        g.current_role = None
        g.jwt_student_id = None
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:].strip()  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Token has expired"
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Rejected access token on %s: %s", path, exc,
                        extra={"path": path, "event_type": "auth.invalid_token"})
            g.jwt_error = "Invalid token"
            return

        g.jwt_user_id = _as_int(payload.get("sub"))
        g.jwt_roles = roles_from_payload(payload)
        g.current_role = primary_role(g.jwt_roles)
        g.jwt_student_id = _as_int(payload.get("student_id"))
        if g.jwt_user_id is None:
            g.jwt_error = "Token has no subject"
