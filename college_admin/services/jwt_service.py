"""
JWT Service — access token generation and verification.

Identity is issued elsewhere; this service only signs tokens for tooling
(seed CLI, tests) and verifies incoming ones.

Access token:  60 minutes (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload (access):
{
    "sub": "<user_id>",
    "roles": ["advisor", ...],        # or "role": "advisor"
    "student_id": <student_id>,       # student tokens only
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 3600      # 60 minutes
ALGORITHM = "HS256"

# Canonical roles and the spellings other identity providers use for them
CANONICAL_ROLES = ("student", "advisor", "hod", "office", "principal", "admin")

ROLE_ALIASES = {
    "head_of_department": "hod",
    "head-of-department": "hod",
    "office_staff": "office",
    "office-staff": "office",
    "staff": "office",
    "class_advisor": "advisor",
    "faculty_advisor": "advisor",
    "administrator": "admin",
}

# When a token carries several roles, the most privileged wins
_ROLE_PRIORITY = ("admin", "principal", "office", "hod", "advisor", "student")


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Role normalisation
# ═══════════════════════════════════════════════════════════════
def normalize_role(role) -> str | None:
    """'HOD' → 'hod', 'office_staff' → 'office'; unknown roles → None."""
    if not isinstance(role, str):
        return None
    key = role.strip().lower()
    key = ROLE_ALIASES.get(key, key)
    return key if key in CANONICAL_ROLES else None


def roles_from_payload(payload: dict) -> list[str]:
    """Collect canonical roles from either a ``roles`` list or a ``role`` string."""
    raw = payload.get("roles")
    if isinstance(raw, str):
        raw = [raw]
    if not raw:
        raw = [payload.get("role")] if payload.get("role") else []
    roles = []
    for r in raw:
        canonical = normalize_role(r)
        if canonical and canonical not in roles:
            roles.append(canonical)
    return roles


def primary_role(roles: list[str]) -> str | None:
    for candidate in _ROLE_PRIORITY:
        if candidate in roles:
            return candidate
    return None


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: int, roles: list[str], student_id: int | None = None) -> str:
    """Generate a signed access token."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "roles": roles,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    if student_id is not None:
        payload["student_id"] = student_id
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_token(token: str, expected_type: str = "access") -> dict:
    """
    Decode and verify a JWT token.

    Returns the payload dict on success.
    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])

    # Tokens from external issuers may omit "type"; only reject a mismatch
    token_type = payload.get("type")
    if token_type is not None and token_type != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {token_type}")

    return payload


def decode_access_token(token: str) -> dict:
    """Decode an access token — convenience wrapper."""
    return decode_token(token, expected_type="access")
