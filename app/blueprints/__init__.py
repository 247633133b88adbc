"""
Resource Capacity Planner
Blueprint registry and shared request helpers.
"""

import logging

from flask import jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from app.models import db
from app.services.periods import parse_period

logger = logging.getLogger(__name__)


def pagination_args(default_limit=200, max_limit=1000):
    """Read limit/offset query params.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def paged(items, total, limit, offset):
    return {"items": items, "total": total, "limit": limit, "offset": offset}


def department_arg():
    """``department`` query param; ``all`` or blank means no filter."""
    value = (request.args.get("department") or "").strip()
    return None if not value or value.lower() == "all" else value


def period_args():
    """Period from ``start_date``/``end_date`` query params (None when both absent)."""
    return parse_period(request.args.get("start_date"), request.args.get("end_date"))


def bool_arg(name, default=False):
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def with_fallback(compute, fallback, label):
    """Run a dashboard computation; on a database error answer 200 with
    the zeroed payload from ``fallback`` instead of failing the page.

    Only SQLAlchemyError is absorbed. Validation errors and programming
    errors still reach the blueprint and app error handlers.
    """
    try:
        return jsonify(compute()), 200
    except SQLAlchemyError:
        logger.exception("Dashboard %s failed, serving fallback", label)
        db.session.rollback()
        payload = fallback()
        return jsonify(payload), 200
