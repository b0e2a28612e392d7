"""Shared request-parsing helpers for blueprints.

parse_int_arg:    optional integer query parameter, ValidationError on junk
parse_pagination: page / per_page with defaults and the per_page cap
"""
from flask import request

from college_admin.core.exceptions import ValidationError

DEFAULT_PER_PAGE = 10
MAX_PER_PAGE = 100


def parse_int_arg(name, default=None, *, minimum=None):
    """Read an integer query parameter.

    Returns *default* when absent; raises ValidationError when present but
    not an integer or below *minimum*.
    """
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", details={name: raw}) from None
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", details={name: raw})
    return value


def parse_pagination():
    """Return ``(page, per_page)``; per_page above the cap is clamped, not rejected."""
    page = parse_int_arg("page", 1, minimum=1)
    per_page = parse_int_arg("per_page", DEFAULT_PER_PAGE, minimum=1)
    return page, min(per_page, MAX_PER_PAGE)

