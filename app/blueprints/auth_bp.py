"""
Auth Blueprint — JWT authentication endpoints.

  POST /api/v1/auth/register    — Create account → access token
  POST /api/v1/auth/login       — Email + password → access token
  GET  /api/v1/auth/me          — Current user profile
"""

import logging

from flask import Blueprint, jsonify

from app.auth import current_user_id, require_user
from app.services.jwt_service import token_response
from app.services.user_service import (
    UserServiceError,
    authenticate_user,
    create_user,
    get_user_by_id,
)
from app.utils.errors import E, api_error, register_service_error_handlers
from app.utils.helpers import db_commit_or_error, json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


@auth_bp.errorhandler(UserServiceError)
def _handle_user_service_error(error: UserServiceError):
    return jsonify({"error": error.message}), error.status_code


register_service_error_handlers(auth_bp, logger)


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create an account and return an access token.

    Body: { "email": "...", "password": "...", "full_name": "..." }
    """
    data, err = json_body()
    if err:
        return err
    email = str(data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")
    if not isinstance(password, str):
        return api_error(E.VALIDATION_INVALID, "password must be a string")

    user = create_user(email, password, data.get("full_name"))
    err = db_commit_or_error()
    if err:
        return err

    body = token_response(user.id, user.email)
    body["user"] = user.to_dict()
    return jsonify(body), 201


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return an access token.

    Body: { "email": "...", "password": "..." }
    """
    data, err = json_body()
    if err:
        return err
    email = str(data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")

    user = authenticate_user(email, str(password))
    err = db_commit_or_error()
    if err:
        return err

    logger.info("User logged in id=%s", user.id)
    body = token_response(user.id, user.email)
    body["user"] = user.to_dict()
    return jsonify(body), 200


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_user
def me():
    """Return the authenticated user's profile."""
    user = get_user_by_id(current_user_id())
    if user is None or user.status != "active":
        return api_error(E.UNAUTHORIZED, "Authentication required")
    return jsonify(user.to_dict()), 200
