"""Standardised API error bodies.

    {"error": "<message>", "code": "ERR_...", "details": {...}}

Blueprints call ``register_service_error_handlers(bp)`` once; services
then raise the exceptions in app.core.exceptions and never build
responses themselves.
"""

from __future__ import annotations

import logging

from flask import jsonify

from app.core.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class E:
    """Machine-readable error codes."""

    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"        # 400
    VALIDATION_CONSTRAINT = "ERR_VALIDATION_CONSTRAINT"  # 422
    NOT_FOUND = "ERR_NOT_FOUND"                          # 404
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"        # 409


_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_INVALID: 400,
    E.VALIDATION_CONSTRAINT: 422,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
}


def api_error(code: str, message: str, *, status: int | None = None, details: dict | None = None):
    """``(jsonify(body), status)``; status defaults from ``code``, then 400."""
    body: dict = {"error": message, "code": code}
    if details:
        body["details"] = details
    return jsonify(body), status or _DEFAULT_STATUS.get(code, 400)


def register_service_error_handlers(bp):
    @bp.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, str(error))

    @bp.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        code = E.VALIDATION_CONSTRAINT if error.status == 422 else E.VALIDATION_INVALID
        logger.debug("Validation failed on %s: %s %s", bp.name, error, error.details)
        return api_error(code, str(error), status=error.status, details=error.details)

    @bp.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})
