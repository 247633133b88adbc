"""
WSGI entry point for the Resource Capacity Planner.

    gunicorn wsgi:app
    FLASK_APP=wsgi flask seed-rbac
    FLASK_APP=wsgi flask db upgrade
"""

from app import create_app

app = create_app()
