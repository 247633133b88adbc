"""
Resource Capacity Planner
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from app.auth import init_auth
from app.config import config
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.security_headers import init_security_headers
from app.middleware.timing import init_request_timing
from app.models import db

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine  # noqa: E402


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit — apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request pipeline: timing → JWT parsing → auth gate ───────────────
    init_request_timing(app)
    init_jwt_middleware(app)
    init_auth(app)
    init_security_headers(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import auth as _auth_models               # noqa: F401
    from app.models import project as _project_models         # noqa: F401
    from app.models import resource as _resource_models       # noqa: F401
    from app.models import settings as _settings_models       # noqa: F401
    from app.models import time_entry as _time_entry_models   # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.allocation_bp import allocation_bp
    from app.blueprints.auth_bp import auth_bp
    from app.blueprints.dashboard_bp import dashboard_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.management_bp import management_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.rbac_bp import rbac_bp
    from app.blueprints.report_bp import report_bp
    from app.blueprints.resource_bp import resource_bp
    from app.blueprints.settings_bp import settings_bp
    from app.blueprints.time_entry_bp import time_entry_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(resource_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(allocation_bp)
    app.register_blueprint(time_entry_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(management_bp)
    app.register_blueprint(report_bp)
    app.register_blueprint(rbac_bp)
    app.register_blueprint(settings_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-rbac")
    def seed_rbac_cmd():
        """Create default permissions and roles (user, manager, admin)."""
        from app.services.rbac_service import seed_defaults
        created = seed_defaults()
        click.echo(
            f"Seeded {created['permissions']} permissions, "
            f"{created['roles']} roles, {created['grants']} grants."
        )

    @app.cli.command("expire-role-assignments")
    def expire_role_assignments_cmd():
        """Deactivate expired role assignments and delete expired grants."""
        from app.services.permission_service import expire_temporary_assignments
        result = expire_temporary_assignments()
        click.echo(
            f"Expired {result['expired_assignments']} role assignments, "
            f"{result['expired_grants']} direct grants."
        )

    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--password", required=True)
    def create_admin_cmd(email, password):
        """Create an admin login (seeds RBAC defaults first)."""
        from app.services.rbac_service import seed_defaults
        from app.services.user_service import UserServiceError, create_user
        seed_defaults()
        try:
            user = create_user(email, password=password, role_names=["admin"])
        except UserServiceError as e:
            raise click.ClickException(e.message) from e
        click.echo(f"Admin user created id={user.id} email={user.email}")

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return {"error": "Not found", "path": request.path}, 404
        return e

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def payload_too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media_type(e):
        return {"error": "Content-Type must be application/json"}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        if request.path.startswith("/api/"):
            return {"error": "Internal server error"}, 500
        return e

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
