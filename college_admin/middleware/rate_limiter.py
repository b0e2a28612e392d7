"""
Rate limiting configuration.

The Limiter instance is created in college_admin/__init__.py with no default
limits; this module applies limits per route category.

Usage:
    from college_admin.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)


def rate_limit_key():
    """Authenticated callers are limited per user, everyone else per IP."""
    user_id = getattr(g, "jwt_user_id", None)
    if user_id is not None:
        return f"user:{user_id}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits:
        - Certificate submission: CERTIFICATE_SUBMIT_RATE_LIMIT per user
        - Certificate routes:     120/minute
        - Health check:           exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    submit_limit = app.config.get("CERTIFICATE_SUBMIT_RATE_LIMIT", "10/hour")
    submit_view = app.view_functions.get("certificates.submit_certificate")
    if submit_view:
        app.view_functions["certificates.submit_certificate"] = limiter.limit(
            submit_limit, key_func=rate_limit_key,
        )(submit_view)

    bp = app.blueprints.get("certificates")
    if bp:
        limiter.limit("120/minute", key_func=rate_limit_key)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — submit: %s, certificates: 120/min", submit_limit,
    )
