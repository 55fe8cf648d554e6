"""Shared helpers for blueprints.

json_body:           request JSON as a dict, or a 400 error tuple
parse_step_id:       path/body step id → int in 1..9, or a 400 error tuple
db_commit_or_error:  commit with uniform IntegrityError / DB error mapping
"""
import logging

from flask import jsonify, request

from app.models import db
from app.models.workflow import FIRST_STEP, LAST_STEP
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def json_body():
    """Return ``(data, None)`` for a JSON object body, else ``(None, error)``.

    Same tuple-return shape as the other helpers here:

        data, err = json_body()
        if err:
            return err
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


def parse_step_id(value, field="step_id"):
    """Coerce ``value`` to a step id in FIRST_STEP..LAST_STEP.

    Returns ``(step_id, None)`` or ``(None, error_response)``. Booleans are
    rejected even though ``bool`` is an ``int`` subclass.
    """
    if value is None or value == "":
        return None, api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    if isinstance(value, bool):
        return None, api_error(E.VALIDATION_INVALID, f"{field} must be an integer")
    try:
        step_id = int(value)
    except (TypeError, ValueError):
        return None, api_error(E.VALIDATION_INVALID, f"{field} must be an integer")
    if isinstance(value, float) and value != step_id:
        return None, api_error(E.VALIDATION_INVALID, f"{field} must be an integer")
    if not FIRST_STEP <= step_id <= LAST_STEP:
        return None, api_error(
            E.VALIDATION_INVALID,
            f"{field} must be between {FIRST_STEP} and {LAST_STEP}",
            details={field: value},
        )
    return step_id, None


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return jsonify({"error": "Duplicate or constraint violation", "code": E.CONFLICT_DUPLICATE}), 409
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return jsonify({"error": "Database error", "code": E.DATABASE}), 500
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return jsonify({"error": "Database error", "code": E.DATABASE}), 500
