"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter. The Limiter
instance is created in app/__init__.py with no default limits; this
module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

LOGIN_LIMIT = "10/minute"
WRITE_LIMIT = "60/minute"
READ_LIMIT = "200/minute"
EXPORT_LIMIT = "20/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Auth endpoints:       10/minute  (password guessing)
        - Reports / export:     20/minute  (whole-dataset scans, XLSX rendering)
        - CRUD + admin:         60/minute
        - Dashboard:            200/minute (polled by the SPA)
        - Health check:         exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("auth")
    if bp:
        limiter.limit(LOGIN_LIMIT)(bp)

    bp = app.blueprints.get("reports")
    if bp:
        limiter.limit(EXPORT_LIMIT)(bp)

    for bp_name in ("resources", "projects", "allocations", "time_entries", "rbac", "settings"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(WRITE_LIMIT)(bp)

    for bp_name in ("dashboard", "management_dashboard"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(READ_LIMIT)(bp)

    # Health check — exempt from rate limiting
    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — auth: %s, reports: %s, crud: %s, dashboard: %s",
        LOGIN_LIMIT, EXPORT_LIMIT, WRITE_LIMIT, READ_LIMIT,
    )
