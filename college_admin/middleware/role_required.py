"""
Role Decorators — JWT-aware role checks for route protection.

Usage:
    @bp.route("/certificates/<int:certificate_id>/generate", methods=["POST"])
    @require_roles("office", "admin")
    def generate(certificate_id):
        ...

    @bp.route("/notifications", methods=["GET"])
    @require_auth
    def list_notifications():
        ...

Unauthenticated requests get 401; authenticated callers whose role is not
listed get 403.  require_roles checks the primary role on the token,
require_any_role accepts any of them.
"""

import functools
import logging

from flask import g

from college_admin.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _unauthenticated():
    if getattr(g, "jwt_user_id", None) is None or getattr(g, "current_role", None) is None:
        reason = getattr(g, "jwt_error", None) or "Authentication required"
        return api_error(E.UNAUTHORIZED, reason)
    return None


def require_auth(f):
    """Decorator: require a valid access token with a recognised role."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        err = _unauthenticated()
        if err:
            return err
        return f(*args, **kwargs)
    return decorated


def _forbidden(f, roles):
    logger.warning(
        "User %d (%s) denied on %s: requires one of %s",
        g.jwt_user_id, ",".join(g.jwt_roles), f.__name__, roles,
    )
    return api_error(
        E.FORBIDDEN, "You do not have permission to perform this action",
        details={"required_any": list(roles)},
    )


def require_roles(*roles: str):
    """
    Decorator: require the caller's role to be one of *roles*.

    Args:
        roles: canonical role names, e.g. "office", "admin"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            err = _unauthenticated()
            if err:
                return err
            if g.current_role not in roles:
                return _forbidden(f, roles)
            return f(*args, **kwargs)
        return decorated
    return decorator


def require_any_role(*roles: str):
    """
    Decorator: like require_roles, but any role on the token qualifies.

    For endpoints that pick the acting role per request, e.g. a user who is
    both advisor and HOD processing an advisee's request.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            err = _unauthenticated()
            if err:
                return err
            if not any(role in roles for role in g.jwt_roles):
                return _forbidden(f, roles)
            return f(*args, **kwargs)
        return decorated
    return decorator
