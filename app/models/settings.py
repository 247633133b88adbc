"""Settings and reporting bookkeeping: alert thresholds, recent reports."""

from datetime import datetime, timezone

from app.models import db


class AlertSetting(db.Model):
    """One configurable utilization threshold (percent) for capacity alerts."""

    __tablename__ = "alert_settings"

    id = db.Column(db.Integer, primary_key=True)
    category = db.Column(db.String(50), nullable=False, default="capacity")
    threshold_key = db.Column(db.String(50), nullable=False)  # critical, error, warning, info, under_utilization
    threshold_value = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text)
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("category", "threshold_key", name="uq_alert_setting_key"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "category": self.category,
            "threshold_key": self.threshold_key,
            "threshold_value": self.threshold_value,
            "description": self.description,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class RecentReport(db.Model):
    """A report a user generated recently (shown on the reports page)."""

    __tablename__ = "recent_reports"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    report_type = db.Column(db.String(50), nullable=False)
    size = db.Column(db.String(50), default="Unknown")
    criteria = db.Column(db.JSON, default=dict)
    generated_by = db.Column(
        db.Integer, db.ForeignKey("user_profiles.id", ondelete="CASCADE"), nullable=True
    )
    generated_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "report_type": self.report_type,
            "size": self.size,
            "criteria": self.criteria or {},
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
