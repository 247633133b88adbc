"""
Time logging models — actual hours booked against allocations.

TimeEntry rows hold one week (Monday..Sunday) for one allocation.
WeeklySubmission marks a resource's week as submitted for approval.
"""

from datetime import datetime, timezone

from app.models import db

DAY_FIELDS = (
    "monday_hours",
    "tuesday_hours",
    "wednesday_hours",
    "thursday_hours",
    "friday_hours",
    "saturday_hours",
    "sunday_hours",
)


class TimeEntry(db.Model):
    __tablename__ = "time_entries"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    allocation_id = db.Column(
        db.Integer, db.ForeignKey("resource_allocations.id", ondelete="CASCADE"), nullable=False
    )
    week_start_date = db.Column(db.Date, nullable=False)  # always a Monday
    monday_hours = db.Column(db.Float, nullable=False, default=0.0)
    tuesday_hours = db.Column(db.Float, nullable=False, default=0.0)
    wednesday_hours = db.Column(db.Float, nullable=False, default=0.0)
    thursday_hours = db.Column(db.Float, nullable=False, default=0.0)
    friday_hours = db.Column(db.Float, nullable=False, default=0.0)
    saturday_hours = db.Column(db.Float, nullable=False, default=0.0)
    sunday_hours = db.Column(db.Float, nullable=False, default=0.0)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("allocation_id", "week_start_date", name="uq_time_entry_allocation_week"),
        db.Index("ix_time_entries_resource_week", "resource_id", "week_start_date"),
    )

    allocation = db.relationship("ResourceAllocation", back_populates="time_entries")

    @property
    def total_hours(self) -> float:
        return float(sum((getattr(self, f) or 0.0) for f in DAY_FIELDS))

    def to_dict(self):
        d = {
            "id": self.id,
            "resource_id": self.resource_id,
            "allocation_id": self.allocation_id,
            "week_start_date": self.week_start_date.isoformat() if self.week_start_date else None,
            "notes": self.notes,
            "total_hours": self.total_hours,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        for f in DAY_FIELDS:
            d[f] = getattr(self, f) or 0.0
        return d


class WeeklySubmission(db.Model):
    __tablename__ = "weekly_submissions"

    id = db.Column(db.Integer, primary_key=True)
    resource_id = db.Column(
        db.Integer, db.ForeignKey("resources.id", ondelete="CASCADE"), nullable=False
    )
    week_start_date = db.Column(db.Date, nullable=False)
    is_submitted = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("resource_id", "week_start_date", name="uq_weekly_submission"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "resource_id": self.resource_id,
            "week_start_date": self.week_start_date.isoformat() if self.week_start_date else None,
            "is_submitted": self.is_submitted,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
