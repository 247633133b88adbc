"""Project and allocation models — who works on what, and for how many hours a week."""

from datetime import datetime, timezone

from app.models import db

PROJECT_STATUSES = ("active", "planning", "on_hold", "completed", "cancelled")
PROJECT_PRIORITIES = ("low", "medium", "high", "critical")
PROJECT_TYPES = ("business", "change")
ALLOCATION_STATUSES = ("active", "planned", "completed")


class Project(db.Model):
    """A piece of work that consumes resource hours between start_date and end_date."""

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(db.String(30), nullable=False, default="active")
    type = db.Column(db.String(30), nullable=False, default="business")
    stream = db.Column(db.String(100))
    priority = db.Column(db.String(20), nullable=False, default="medium")
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    estimated_hours = db.Column(db.Float, nullable=True)
    change_lead_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_projects_status", "status"),
    )

    allocations = db.relationship(
        "ResourceAllocation", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan",
    )
    change_lead = db.relationship("Resource", foreign_keys=[change_lead_id])

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "type": self.type,
            "stream": self.stream,
            "priority": self.priority,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "estimated_hours": self.estimated_hours,
            "change_lead_id": self.change_lead_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ResourceAllocation(db.Model):
    """Planned hours of one resource on one project.

    ``allocated_hours`` is a flat weekly figure. ``weekly_allocations`` maps
    ISO week keys ("2025-W07") to hours and, when present, takes precedence
    week by week.
    """

    __tablename__ = "resource_allocations"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    allocated_hours = db.Column(db.Float, nullable=False, default=0.0)
    weekly_allocations = db.Column(db.JSON, default=dict)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    role = db.Column(db.String(100))
    status = db.Column(db.String(20), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.Index("ix_allocations_resource", "resource_id"),
        db.Index("ix_allocations_project", "project_id"),
    )

    resource = db.relationship("Resource", back_populates="allocations")
    project = db.relationship("Project", back_populates="allocations")
    time_entries = db.relationship(
        "TimeEntry", back_populates="allocation", lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "project_id": self.project_id,
            "allocated_hours": self.allocated_hours,
            "weekly_allocations": self.weekly_allocations or {},
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "role": self.role,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class EffortNote(db.Model):
    """A change lead's note on one resource's effort for one project."""

    __tablename__ = "effort_notes"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    change_lead_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    note = db.Column(db.Text, nullable=False, default="")
    created_by = db.Column(
        db.Integer, db.ForeignKey("user_profiles.id", ondelete="SET NULL"), nullable=True
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("project_id", "resource_id", "change_lead_id", name="uq_effort_note"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "resource_id": self.resource_id,
            "change_lead_id": self.change_lead_id,
            "note": self.note,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
