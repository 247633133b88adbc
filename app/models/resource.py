"""
Resource Models — people whose weekly hours are planned against projects.

Tables:
    resources               — capacity holders (weekly_capacity in hours)
    departments             — managed department catalogue (settings)
    non_project_activities  — recurring non-project hours per resource
"""

from datetime import datetime, timezone

from app.models import db


# ═══════════════════════════════════════════════════════════════
# 1. RESOURCES
# ═══════════════════════════════════════════════════════════════
class Resource(db.Model):
    __tablename__ = "resources"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), unique=True, nullable=False)
    role = db.Column(db.String(100))
    department = db.Column(db.String(100))
    weekly_capacity = db.Column(db.Float, nullable=False, default=40.0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_resources_department", "department"),
    )

    # Relationships
    allocations = db.relationship(
        "ResourceAllocation", back_populates="resource", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    non_project_activities = db.relationship(
        "NonProjectActivity", back_populates="resource", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "department": self.department,
            "weekly_capacity": self.weekly_capacity,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 2. DEPARTMENTS
# ═══════════════════════════════════════════════════════════════
class Department(db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ═══════════════════════════════════════════════════════════════
# 3. NON_PROJECT_ACTIVITIES
# ═══════════════════════════════════════════════════════════════
ACTIVITY_TYPES = ("Meetings", "Administration", "Training", "Support", "Other")


class NonProjectActivity(db.Model):
    __tablename__ = "non_project_activities"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    activity_type = db.Column(db.String(50), nullable=False)  # one of ACTIVITY_TYPES
    hours_per_week = db.Column(db.Float, nullable=False, default=0.0)  # 0–40
    description = db.Column(db.Text)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_non_project_activities_resource", "resource_id"),
    )

    resource = db.relationship("Resource", back_populates="non_project_activities")

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "activity_type": self.activity_type,
            "hours_per_week": self.hours_per_week,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
