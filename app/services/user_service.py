"""
User Service — user profiles, login and account creation.

A user profile is the login identity; the resource it books time for is
linked through ``resource_id``. ``create_user_with_resource`` creates both
in one transaction.
"""

import logging
import secrets
from datetime import datetime, timezone

from email_validator import EmailNotValidError, validate_email

from app.models import db
from app.models.auth import User
from app.models.resource import Resource
from app.services import permission_service, rbac_service
from app.services.jwt_service import revoke_user_sessions
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
RESET_PASSWORD_LENGTH = 16
NAME_MAX = 50

# Characters easily misread when a password is passed on by hand
_AMBIGUOUS = set("0OIl1")


class UserServiceError(Exception):
    """Custom exception for user service errors."""
    def __init__(self, message, status_code=400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def normalize_email(email: str) -> str:
    try:
        return validate_email(email or "", check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise UserServiceError(f"Invalid email: {e}")


def _generate_password() -> str:
    return secrets.token_urlsafe(9)


def generate_reset_password(length: int = RESET_PASSWORD_LENGTH) -> str:
    """Random password with lower, upper and digit characters and no ambiguous ones."""
    while True:
        candidate = "".join(c for c in secrets.token_urlsafe(length * 2) if c not in _AMBIGUOUS)[:length]
        if (
            len(candidate) == length
            and any(c.islower() for c in candidate)
            and any(c.isupper() for c in candidate)
            and any(c.isdigit() for c in candidate)
        ):
            return candidate


# ═══════════════════════════════════════════════════════════════
# User CRUD
# ═══════════════════════════════════════════════════════════════
def get_user_by_email(email: str) -> User | None:
    return User.query.filter_by(email=(email or "").strip().lower()).first()


def get_user_by_id(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def create_user(
    email: str,
    password: str = None,
    first_name: str = None,
    last_name: str = None,
    resource_id: int = None,
    role_names: list[str] = None,
    assigned_by: int = None,
) -> User:
    """Create a login for ``email``; roles are assigned after the insert."""
    email = normalize_email(email)
    if get_user_by_email(email):
        raise UserServiceError(f"User with email {email} already exists", 409)
    if password is not None and len(password) < MIN_PASSWORD_LENGTH:
        raise UserServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = User(
        email=email,
        password_hash=hash_password(password) if password else None,
        first_name=first_name,
        last_name=last_name,
        resource_id=resource_id,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    for role_name in role_names or []:
        rbac_service.assign_role(user.id, role_name, assigned_by=assigned_by)
    logger.info("User created id=%s email=%s roles=%s", user.id, email, role_names or [])
    return user


def create_user_with_resource(data: dict, assigned_by: int = None) -> dict:
    """
    Create a resource and its login in one go.

    Body: {name, email, role?, department?, weekly_capacity?, password?}
    A password is generated when none is supplied and returned once.
    """
    name = (data.get("name") or "").strip()
    if not name:
        raise UserServiceError("Name and email are required")
    email = normalize_email(data.get("email"))
    if get_user_by_email(email):
        raise UserServiceError(f"User with email {email} already exists", 409)

    role_name = data.get("role") or None
    if role_name and role_name not in {r["name"] for r in rbac_service.list_roles()}:
        raise UserServiceError(f"Unknown role: {role_name}")

    resource = Resource.query.filter_by(email=email).first()
    if resource is None:
        resource = Resource(
            name=name[:200],
            email=email,
            role=data.get("job_role") or "Employee",
            department=data.get("department") or "General",
            weekly_capacity=40.0,
            is_active=True,
        )
        db.session.add(resource)
        db.session.flush()

    password = data.get("password") or _generate_password()
    first, _, last = name.partition(" ")
    user = create_user(
        email,
        password=password,
        first_name=first or None,
        last_name=last or None,
        resource_id=resource.id,
        role_names=[role_name] if role_name else None,
        assigned_by=assigned_by,
    )
    result = {
        "user": user.to_dict(include_roles=True),
        "resource": resource.to_dict(),
    }
    if not data.get("password"):
        result["default_password"] = password
    return result


def ensure_user_for_resource(resource_id: int) -> User:
    """Login for a resource, created with a random password when missing."""
    resource = db.session.get(Resource, resource_id)
    if resource is None or resource.is_deleted:
        raise UserServiceError("Resource not found", 404)
    user = User.query.filter_by(resource_id=resource.id).first() or get_user_by_email(resource.email)
    if user is None:
        user = create_user(resource.email, password=_generate_password(), resource_id=resource.id)
    return user


def change_user_password(user_id: int, new_password: str) -> None:
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise UserServiceError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    user = get_user_by_id(user_id)
    if not user:
        raise UserServiceError("User not found", 404)
    user.password_hash = hash_password(new_password)
    db.session.commit()
    logger.info("Password changed user_id=%s", user_id)


# ═══════════════════════════════════════════════════════════════
# Administration
# ═══════════════════════════════════════════════════════════════
def _clean_name(data: dict, field: str) -> str:
    value = data[field]
    if not isinstance(value, str) or not value.strip():
        raise UserServiceError(f"{field} must be a non-empty string")
    value = value.strip()
    if len(value) > NAME_MAX:
        raise UserServiceError(f"{field} must be at most {NAME_MAX} characters")
    return value


def _shut_out(user: User) -> int:
    """Revoke every session of ``user`` and forget its cached permissions."""
    permission_service.invalidate_cache(user.id)
    return revoke_user_sessions(user.id)


def update_user(user_id: int, data: dict, acting_user_id: int = None) -> User:
    """
    Edit a login. Body: {first_name?, last_name?, email?, is_active?,
    department?, job_role?}; the last two go to the linked resource.
    """
    user = get_user_by_id(user_id)
    if not user:
        raise UserServiceError("User not found", 404)

    if "is_active" in data and not isinstance(data["is_active"], bool):
        raise UserServiceError("is_active must be a boolean")
    if data.get("is_active") is False and user.id == acting_user_id:
        raise UserServiceError("You cannot deactivate your own account")

    for field in ("first_name", "last_name"):
        if field in data:
            setattr(user, field, _clean_name(data, field))

    if "email" in data:
        email = normalize_email(data["email"] if isinstance(data["email"], str) else "")
        other = get_user_by_email(email)
        if other is not None and other.id != user.id:
            raise UserServiceError(f"User with email {email} already exists", 409)
        user.email = email

    resource = db.session.get(Resource, user.resource_id) if user.resource_id else None
    for field, column in (("department", "department"), ("job_role", "role")):
        if field not in data:
            continue
        value = data[field]
        if not isinstance(value, str) or len(value.strip()) > 100:
            raise UserServiceError(f"{field} must be a string of at most 100 characters")
        if resource is not None:
            setattr(resource, column, value.strip())

    was_active = user.is_active
    if "is_active" in data:
        user.is_active = data["is_active"]
    db.session.commit()

    if was_active and not user.is_active:
        _shut_out(user)
    else:
        permission_service.invalidate_cache(user.id)
    logger.info(
        "User updated id=%s by=%s fields=%s",
        user.id, acting_user_id, sorted(k for k in data if k != "password"),
    )
    return user


def deactivate_user(user_id: int, acting_user_id: int = None) -> User:
    """Soft delete: the row and its history stay, logins and tokens stop working."""
    if user_id == acting_user_id:
        raise UserServiceError("You cannot deactivate your own account")
    user = get_user_by_id(user_id)
    if not user:
        raise UserServiceError("User not found", 404)
    user.is_active = False
    db.session.commit()
    revoked = _shut_out(user)
    logger.info("User deactivated id=%s by=%s sessions_revoked=%d", user.id, acting_user_id, revoked)
    return user


def reset_user_password(user_id: int, acting_user_id: int = None) -> str:
    """Replace the password with a generated one and end all sessions; returns the new password."""
    user = get_user_by_id(user_id)
    if not user:
        raise UserServiceError("User not found", 404)
    password = generate_reset_password()
    user.password_hash = hash_password(password)
    db.session.commit()
    revoke_user_sessions(user.id)
    logger.info("Password reset user_id=%s by=%s", user.id, acting_user_id)
    return password


# ═══════════════════════════════════════════════════════════════
# Login helpers
# ═══════════════════════════════════════════════════════════════
def authenticate_user(email: str, password: str) -> User:
    """Authenticate a user with email + password. Returns User on success."""
    user = get_user_by_email(email)
    if not user:
        raise UserServiceError("Invalid email or password", 401)

    if not user.is_active:
        raise UserServiceError("Account is inactive", 403)

    if not user.password_hash or not verify_password(password, user.password_hash):
        raise UserServiceError("Invalid email or password", 401)

    user.last_login_at = datetime.now(timezone.utc)
    db.session.commit()
    return user
