"""Shared utility functions used by services and blueprints.

get_or_raise:      primary-key lookup that raises NotFoundError
parse_date:        lenient (returns None on bad input)
parse_date_input:  strict (raises ValueError on bad input)
parse_hours:       numeric hours within a closed range
commit_or_raise:   session commit with IntegrityError → ConflictError
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, OperationalError

from app.core.exceptions import ConflictError, NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError.

    Soft-deleted rows (``is_deleted`` True) count as missing.
    """
    label = label or model.__name__
    obj = db.session.get(model, pk)
    if obj is None or getattr(obj, "is_deleted", False):
        raise NotFoundError(label, pk)
    return obj


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises instead of returning None, so callers
    can turn the failure into a 400 with a field-level message.
    """
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


def parse_hours(value, *, minimum=0.0, maximum=168.0):
    """Coerce ``value`` to float hours in [minimum, maximum].

    Raises ValueError for non-numeric or out-of-range values.
    Booleans are rejected even though bool is an int subclass.
    """
    if isinstance(value, bool):
        raise ValueError("must be a number")
    try:
        hours = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("must be a number") from exc
    if hours != hours or hours < minimum or hours > maximum:  # NaN check first
        raise ValueError(f"must be between {minimum:g} and {maximum:g}")
    return hours


# ── Database commit helper ───────────────────────────────────────────────────

def commit_or_raise(resource="Record", field="id", value=None):
    """Commit the current session.

    IntegrityError → rollback + ConflictError(resource, field, value) (409)
    OperationalError → rollback + re-raise (500 via app error handler)
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError(resource, field, value) from exc
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        raise
