"""
Resource Capacity Planner
Model package — shared SQLAlchemy instance.

Every model module imports ``db`` from here; create_app() imports the
modules so metadata is complete before db.create_all().
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
