"""
RBAC Administration Service — roles, permissions and their assignments.

Functions:
    - seed_defaults:             idempotent default permissions and roles
    - list_roles / list_permissions / list_users_with_roles
    - assign_role / remove_role: user ↔ role, optional expiry
    - get_user_roles:            assignments of one user
    - get_role_permissions:      codenames of one role
    - update_role_permissions:   replace a role's permission set
    - grant_permission / revoke_permission: direct user grants

Every change to an assignment invalidates the affected users' entries in
permission_service's cache.
"""

import logging
from datetime import datetime, timezone

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.auth import Permission, Role, RolePermission, User, UserPermission, UserRole
from app.services import permission_service
from app.utils.helpers import commit_or_raise, parse_date

logger = logging.getLogger(__name__)

# codename → (category, display name)
DEFAULT_PERMISSIONS = {
    "time_logging": ("core", "Time Logging"),
    "dashboard": ("core", "Dashboard"),
    "calendar": ("core", "Calendar"),
    "reports": ("reporting", "Reports"),
    "change_lead_reports": ("reporting", "Change Lead Reports"),
    "submission_overview": ("reporting", "Submission Overview"),
    "resource_management": ("management", "Resource Management"),
    "project_management": ("management", "Project Management"),
    "user_management": ("administration", "User Management"),
    "system_admin": ("administration", "System Administration"),
    "settings": ("administration", "Settings"),
    "role_management": ("administration", "Role Management"),
}

_USER_PERMISSIONS = ["time_logging", "dashboard", "calendar"]
_MANAGER_PERMISSIONS = _USER_PERMISSIONS + [
    "reports",
    "change_lead_reports",
    "resource_management",
    "project_management",
    "submission_overview",
]

# name → (display name, level, description, codenames)
DEFAULT_ROLES = {
    "user": ("User", 1, "Logs time and views the dashboard", _USER_PERMISSIONS),
    "manager": ("Manager", 2, "Plans resources and projects, runs reports", _MANAGER_PERMISSIONS),
    "admin": ("Administrator", 3, "Full access", list(DEFAULT_PERMISSIONS)),
}


def _naive_utc(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError:
            day = parse_date(value)
            if day is None:
                raise ValidationError("Invalid expires_at", details={"expires_at": value}) from None
            parsed = datetime(day.year, day.month, day.day)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def _get_role(role_name: str) -> Role:
    role = Role.query.filter_by(name=role_name).first()
    if role is None:
        raise NotFoundError("Role", role_name)
    return role


def _get_permission(codename: str) -> Permission:
    perm = Permission.query.filter_by(codename=codename).first()
    if perm is None:
        raise NotFoundError("Permission", codename)
    return perm


# ═══════════════════════════════════════════════════════════════
# Seeding
# ═══════════════════════════════════════════════════════════════
def seed_defaults() -> dict:
    """Create missing default permissions, roles and grants. Safe to rerun."""
    created = {"permissions": 0, "roles": 0, "grants": 0}
    perms = {p.codename: p for p in Permission.query.all()}
    for codename, (category, display_name) in DEFAULT_PERMISSIONS.items():
        if codename not in perms:
            perm = Permission(codename=codename, category=category, display_name=display_name)
            db.session.add(perm)
            perms[codename] = perm
            created["permissions"] += 1
    db.session.flush()

    for name, (display_name, level, description, codenames) in DEFAULT_ROLES.items():
        role = Role.query.filter_by(name=name).first()
        if role is None:
            role = Role(
                name=name, display_name=display_name, description=description,
                level=level, is_system=True,
            )
            db.session.add(role)
            db.session.flush()
            created["roles"] += 1
        existing = {rp.permission_id for rp in role.role_permissions.all()}
        for codename in codenames:
            if perms[codename].id not in existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=perms[codename].id))
                created["grants"] += 1
    commit_or_raise("Role", "name")
    permission_service.invalidate_all_cache()
    logger.info("RBAC defaults seeded: %s", created)
    return created


# ═══════════════════════════════════════════════════════════════
# Read models
# ═══════════════════════════════════════════════════════════════
def list_roles() -> list[dict]:
    roles = Role.query.order_by(Role.level, Role.name).all()
    return [r.to_dict(include_permissions=True) for r in roles]


def list_permissions() -> list[dict]:
    perms = Permission.query.order_by(Permission.category, Permission.codename).all()
    return [p.to_dict() for p in perms]


def list_users_with_roles() -> list[dict]:
    users = User.query.order_by(User.email).all()
    return [u.to_dict(include_roles=True) for u in users]


def get_user_roles(user_id: int) -> list[dict]:
    user = _get_user(user_id)
    return [ur.to_dict() for ur in user.user_roles.order_by(UserRole.id).all()]


def get_role_permissions(role_name: str) -> list[str]:
    role = _get_role(role_name)
    return sorted(rp.permission.codename for rp in role.role_permissions.all())


# ═══════════════════════════════════════════════════════════════
# Role assignment
# ═══════════════════════════════════════════════════════════════
def assign_role(user_id: int, role_name: str, assigned_by: int | None = None, expires_at=None) -> dict:
    """Assign (or re-activate) a role; an existing row gets the new expiry."""
    user = _get_user(user_id)
    role = _get_role(role_name)
    expiry = _naive_utc(expires_at)
    if expiry is not None and expiry <= datetime.now(timezone.utc).replace(tzinfo=None):
        raise ValidationError("expires_at must be in the future", details={"expires_at": str(expires_at)})

    assignment = UserRole.query.filter_by(user_id=user.id, role_id=role.id).first()
    if assignment is None:
        assignment = UserRole(user_id=user.id, role_id=role.id)
        db.session.add(assignment)
    assignment.assigned_by = assigned_by
    assignment.assigned_at = datetime.now(timezone.utc)
    assignment.expires_at = expiry
    assignment.is_active = True
    commit_or_raise("UserRole", "role", role_name)
    permission_service.invalidate_cache(user.id)
    logger.info("Role assigned user_id=%s role=%s by=%s", user.id, role_name, assigned_by)
    return assignment.to_dict()


def remove_role(user_id: int, role_name: str) -> None:
    user = _get_user(user_id)
    role = _get_role(role_name)
    assignment = UserRole.query.filter_by(user_id=user.id, role_id=role.id).first()
    if assignment is None:
        raise NotFoundError("Role assignment", f"{user_id}:{role_name}")
    db.session.delete(assignment)
    commit_or_raise("UserRole")
    permission_service.invalidate_cache(user.id)
    logger.info("Role removed user_id=%s role=%s", user.id, role_name)


def update_role_permissions(role_name: str, codenames) -> list[str]:
    """Replace the permission set of a role."""
    if not isinstance(codenames, list) or not all(isinstance(c, str) for c in codenames):
        raise ValidationError("permissions must be a list of codenames", details={"permissions": "invalid"})
    role = _get_role(role_name)
    wanted = set(codenames)
    perms = {p.codename: p for p in Permission.query.filter(Permission.codename.in_(wanted)).all()} if wanted else {}
    unknown = sorted(wanted - set(perms))
    if unknown:
        raise ValidationError("Unknown permissions", details={"permissions": unknown})

    current = {rp.permission.codename: rp for rp in role.role_permissions.all()}
    for codename, rp in current.items():
        if codename not in wanted:
            db.session.delete(rp)
    for codename in wanted - set(current):
        db.session.add(RolePermission(role_id=role.id, permission_id=perms[codename].id))
    commit_or_raise("RolePermission")

    user_ids = [ur.user_id for ur in role.user_roles.all()]
    for uid in user_ids:
        permission_service.invalidate_cache(uid)
    logger.info("Role permissions replaced role=%s count=%d", role_name, len(wanted))
    return sorted(wanted)


# ═══════════════════════════════════════════════════════════════
# Direct grants
# ═══════════════════════════════════════════════════════════════
def grant_permission(user_id: int, codename: str, granted_by: int | None = None, expires_at=None) -> dict:
    user = _get_user(user_id)
    perm = _get_permission(codename)
    grant = UserPermission.query.filter_by(user_id=user.id, permission_id=perm.id).first()
    if grant is None:
        grant = UserPermission(user_id=user.id, permission_id=perm.id)
        db.session.add(grant)
    grant.granted_by = granted_by
    grant.granted_at = datetime.now(timezone.utc)
    grant.expires_at = _naive_utc(expires_at)
    commit_or_raise("UserPermission", "permission", codename)
    permission_service.invalidate_cache(user.id)
    logger.info("Permission granted user_id=%s permission=%s", user.id, codename)
    return grant.to_dict()


def revoke_permission(user_id: int, codename: str) -> None:
    user = _get_user(user_id)
    perm = _get_permission(codename)
    grant = UserPermission.query.filter_by(user_id=user.id, permission_id=perm.id).first()
    if grant is None:
        raise NotFoundError("Permission grant", f"{user_id}:{codename}")
    db.session.delete(grant)
    commit_or_raise("UserPermission")
    permission_service.invalidate_cache(user.id)
    logger.info("Permission revoked user_id=%s permission=%s", user.id, codename)
