"""
Auth Models — logins and role-based access control.

Tables:
    user_profiles     — login accounts, optionally linked to a resource
    roles             — admin / manager / user plus custom roles
    permissions       — feature codenames grouped by category
    role_permissions  — role → permission
    user_roles        — user → role, may be deactivated or expire
    user_permissions  — direct user → permission grants, may expire
    sessions          — refresh-token sessions (hash only)

Effective permissions (union of the role and direct paths) are resolved
in app.services.permission_service, never on the models.
"""

import uuid
from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


def _user_fk(ondelete="CASCADE", nullable=False):
    return db.Column(db.Integer, db.ForeignKey("user_profiles.id", ondelete=ondelete), nullable=nullable)


# ═══════════════════════════════════════════════════════════════
# 1. USER PROFILES
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "user_profiles"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(200), unique=True, nullable=False)
    password_hash = db.Column(db.String(256))
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    # The resource this login books time for
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id", ondelete="SET NULL"))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    user_roles = db.relationship(
        "UserRole", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="UserRole.user_id",
    )
    user_permissions = db.relationship(
        "UserPermission", back_populates="user", lazy="dynamic",
        cascade="all, delete-orphan", foreign_keys="UserPermission.user_id",
    )
    sessions = db.relationship("Session", back_populates="user", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return " ".join(p for p in (self.first_name, self.last_name) if p) or None

    @property
    def role_names(self):
        """Active role assignments; expiry is checked by permission_service."""
        return sorted(ur.role.name for ur in self.user_roles if ur.is_active)

    def to_dict(self, include_roles=False):
        data = {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "resource_id": self.resource_id,
            "is_active": self.is_active,
            "last_login_at": _iso(self.last_login_at),
            "created_at": _iso(self.created_at),
        }
        if include_roles:
            data["roles"] = self.role_names
        return data


# ═══════════════════════════════════════════════════════════════
# 2. ROLES & PERMISSIONS
# ═══════════════════════════════════════════════════════════════
class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    display_name = db.Column(db.String(200))
    description = db.Column(db.Text)
    is_system = db.Column(db.Boolean, default=False)  # seeded by seed-rbac
    level = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=_utcnow)

    role_permissions = db.relationship(
        "RolePermission", back_populates="role", lazy="dynamic", cascade="all, delete-orphan",
    )
    user_roles = db.relationship("UserRole", back_populates="role", lazy="dynamic")

    def to_dict(self, include_permissions=False):
        data = {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "is_system": self.is_system,
            "level": self.level,
        }
        if include_permissions:
            data["permissions"] = sorted(rp.permission.codename for rp in self.role_permissions)
        return data


class Permission(db.Model):
    __tablename__ = "permissions"

    id = db.Column(db.Integer, primary_key=True)
    codename = db.Column(db.String(100), unique=True, nullable=False)
    category = db.Column(db.String(50), nullable=False)  # core | reporting | management | administration
    display_name = db.Column(db.String(200))
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=_utcnow)

    role_permissions = db.relationship("RolePermission", back_populates="permission", lazy="dynamic")

    def to_dict(self):
        return {
            "id": self.id,
            "codename": self.codename,
            "category": self.category,
            "display_name": self.display_name,
            "description": self.description,
        }


class RolePermission(db.Model):
    __tablename__ = "role_permissions"
    __table_args__ = (db.UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    id = db.Column(db.Integer, primary_key=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)

    role = db.relationship("Role", back_populates="role_permissions")
    permission = db.relationship("Permission", back_populates="role_permissions")


# ═══════════════════════════════════════════════════════════════
# 3. ASSIGNMENTS
# ═══════════════════════════════════════════════════════════════
class UserRole(db.Model):
    __tablename__ = "user_roles"
    __table_args__ = (db.UniqueConstraint("user_id", "role_id", name="uq_user_role"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = _user_fk()
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="CASCADE"), nullable=False)
    assigned_by = _user_fk(ondelete="SET NULL", nullable=True)
    assigned_at = db.Column(db.DateTime, default=_utcnow)
    expires_at = db.Column(db.DateTime)  # naive UTC, None = permanent
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    user = db.relationship("User", back_populates="user_roles", foreign_keys=[user_id])
    role = db.relationship("Role", back_populates="user_roles")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "role": self.role.name if self.role else None,
            "assigned_by": self.assigned_by,
            "assigned_at": _iso(self.assigned_at),
            "expires_at": _iso(self.expires_at),
            "is_active": self.is_active,
        }


class UserPermission(db.Model):
    __tablename__ = "user_permissions"
    __table_args__ = (db.UniqueConstraint("user_id", "permission_id", name="uq_user_permission"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = _user_fk()
    permission_id = db.Column(db.Integer, db.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    granted_by = _user_fk(ondelete="SET NULL", nullable=True)
    granted_at = db.Column(db.DateTime, default=_utcnow)
    expires_at = db.Column(db.DateTime)

    user = db.relationship("User", back_populates="user_permissions", foreign_keys=[user_id])
    permission = db.relationship("Permission")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "permission": self.permission.codename if self.permission else None,
            "granted_by": self.granted_by,
            "granted_at": _iso(self.granted_at),
            "expires_at": _iso(self.expires_at),
        }


# ═══════════════════════════════════════════════════════════════
# 4. SESSIONS
# ═══════════════════════════════════════════════════════════════
class Session(db.Model):
    """One row per issued refresh token; rotated on every refresh."""

    __tablename__ = "sessions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = _user_fk()
    token_hash = db.Column(db.String(64), nullable=False, index=True)  # sha256 hex
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)

    user = db.relationship("User", back_populates="sessions")
