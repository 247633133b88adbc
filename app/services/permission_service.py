"""
Permission Service — DB-driven RBAC resolution with an in-process cache.

Effective permissions of a user:

    roles of active, unexpired user_roles → role_permissions → codename
  ∪ unexpired user_permissions (direct grants)           → codename

Evaluation is deny-by-default. Members of SUPERUSER_ROLES pass every
check without consulting the permission set.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Optional

from app.models import db
from app.models.auth import (
    Permission,
    Role,
    RolePermission,
    User,
    UserPermission,
    UserRole,
)

logger = logging.getLogger(__name__)

CACHE_TTL = 300  # 5 minutes

# Cache key: user_id
_permission_cache: dict[int, tuple[float, set[str]]] = {}
_cache_lock = threading.Lock()

SUPERUSER_ROLES = {"admin"}


def _get_cached(user_id: int) -> Optional[set[str]]:
    with _cache_lock:
        entry = _permission_cache.get(user_id)
        if entry is None:
            return None
        cached_at, perms = entry
        if time.time() - cached_at > CACHE_TTL:
            del _permission_cache[user_id]
            return None
        return perms


def _set_cached(user_id: int, perms: set[str]) -> None:
    with _cache_lock:
        _permission_cache[user_id] = (time.time(), perms)


def invalidate_cache(user_id: int) -> None:
    with _cache_lock:
        _permission_cache.pop(user_id, None)


def invalidate_all_cache() -> None:
    with _cache_lock:
        _permission_cache.clear()


def _is_expired(expires_at: datetime | None, now: datetime) -> bool:
    if expires_at is None:
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at <= now


def _active_role_rows(user_id: int) -> list[tuple[int, str]]:
    rows = (
        db.session.query(Role.id, Role.name, UserRole.expires_at, UserRole.is_active)
        .join(UserRole, UserRole.role_id == Role.id)
        .filter(UserRole.user_id == user_id)
        .all()
    )
    now = datetime.now(timezone.utc)
    return [
        (role_id, name)
        for role_id, name, expires_at, is_active in rows
        if is_active and not _is_expired(expires_at, now)
    ]


def get_user_role_names(user_id: int) -> list[str]:
    return sorted({name for _, name in _active_role_rows(user_id)})


def get_role_permissions(user_id: int) -> set[str]:
    """Codenames reachable through the user's active role assignments."""
    role_ids = sorted({rid for rid, _ in _active_role_rows(user_id)})
    if not role_ids:
        return set()
    rows = (
        db.session.query(Permission.codename)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .filter(RolePermission.role_id.in_(role_ids))
        .distinct()
        .all()
    )
    return {r[0] for r in rows}


def get_direct_permissions(user_id: int) -> set[str]:
    """Codenames granted directly to the user and not yet expired."""
    rows = (
        db.session.query(Permission.codename, UserPermission.expires_at)
        .join(UserPermission, UserPermission.permission_id == Permission.id)
        .filter(UserPermission.user_id == user_id)
        .all()
    )
    now = datetime.now(timezone.utc)
    return {codename for codename, expires_at in rows if not _is_expired(expires_at, now)}


def get_user_permissions(user_id: int) -> set[str]:
    cached = _get_cached(user_id)
    if cached is not None:
        return cached

    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        _set_cached(user_id, set())
        return set()

    perms = get_role_permissions(user_id) | get_direct_permissions(user_id)
    _set_cached(user_id, perms)
    return perms


def _is_active_user(user_id: int) -> bool:
    user = db.session.get(User, user_id)
    return user is not None and bool(user.is_active)


def _is_superuser(user_id: int) -> bool:
    if not _is_active_user(user_id):
        return False
    return any(r in SUPERUSER_ROLES for r in get_user_role_names(user_id))


def has_permission(user_id: int, codename: str) -> bool:
    if _is_superuser(user_id):
        return True
    return codename in get_user_permissions(user_id)


def has_any_permission(user_id: int, codenames: list[str]) -> bool:
    if _is_superuser(user_id):
        return True
    return bool(get_user_permissions(user_id) & set(codenames))


def evaluate_permission(user_id: int, codename: str) -> dict:
    role_names = get_user_role_names(user_id)
    if not _is_active_user(user_id):
        return {
            "allowed": False,
            "decision": "deny_inactive_user",
            "roles": role_names,
            "permission": codename,
        }
    if any(r in SUPERUSER_ROLES for r in role_names):
        return {
            "allowed": True,
            "decision": "allow_superuser",
            "roles": role_names,
            "permission": codename,
        }
    if codename in get_role_permissions(user_id):
        decision = "allow_role_grant"
    elif codename in get_direct_permissions(user_id):
        decision = "allow_direct_grant"
    else:
        decision = "deny_by_default"
    return {
        "allowed": decision != "deny_by_default",
        "decision": decision,
        "roles": role_names,
        "permission": codename,
    }


def effective_permissions_report(user_id: int) -> dict:
    """Breakdown used by the effective-permissions endpoint."""
    role_perms = get_role_permissions(user_id)
    direct = get_direct_permissions(user_id)
    return {
        "user_id": user_id,
        "roles": get_user_role_names(user_id),
        "role_permissions": sorted(role_perms),
        "direct_permissions": sorted(direct),
        "effective_permissions": sorted(get_user_permissions(user_id)),
    }


def expire_temporary_assignments(now: datetime | None = None) -> dict:
    """
    Deactivate role assignments whose expires_at has passed and drop
    expired direct grants.
    """
    now = now or datetime.now(timezone.utc)
    naive_now = now.replace(tzinfo=None)
    rows = (
        UserRole.query
        .filter(
            UserRole.is_active.is_(True),
            UserRole.expires_at.isnot(None),
            UserRole.expires_at < naive_now,
        )
        .all()
    )
    touched = set()
    for ur in rows:
        ur.is_active = False
        touched.add(ur.user_id)
        logger.info(
            "Role assignment expired user_id=%s role_id=%s expires_at=%s",
            ur.user_id, ur.role_id, ur.expires_at,
        )

    grants = (
        UserPermission.query
        .filter(UserPermission.expires_at.isnot(None), UserPermission.expires_at < naive_now)
        .all()
    )
    for grant in grants:
        touched.add(grant.user_id)
        db.session.delete(grant)

    if rows or grants:
        db.session.commit()
    for user_id in touched:
        invalidate_cache(user_id)
    return {"expired_assignments": len(rows), "expired_grants": len(grants)}
