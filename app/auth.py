"""
Request authentication helpers.

Provides:
    - ``require_user``: decorator rejecting calls without a valid JWT (401)
    - ``current_user_id``: the authenticated user id for the request
    - ``init_auth``: Content-Type check for state-changing API requests

The JWT itself is parsed by app.middleware.jwt_auth, which sets
``g.jwt_user_id``.
"""

import functools
import logging

from flask import g, jsonify, request

from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def current_user_id() -> int | None:
    return getattr(g, "jwt_user_id", None)


# ── Authentication decorator ─────────────────────────────────────────────────

def require_user(f):
    """
    Decorator: require an authenticated user for the endpoint.

    Usage:
        @bp.route("/projects")
        @require_user
        def list_projects(): ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if current_user_id() is None:
            logger.info("Unauthenticated request to %s", request.path)
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return f(*args, **kwargs)

    return decorated


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE), require
    Content-Type: application/json. HTML forms cannot send that content
    type, which makes it a lightweight CSRF mitigation.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return jsonify({
                "error": "Content-Type must be application/json for state-changing requests"
            }), 415
    return None


def init_auth(app):
    """Install the API Content-Type check as a before_request hook."""

    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/v1/"):
            return None
        if request.method == "OPTIONS":
            return None
        return _check_content_type()
