from models.db import db
from scheduling.intervals import format_hhmm


class WeeklyScheduleRule(db.Model):
    __tablename__ = "schedules"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )

    day_of_week = db.Column(db.Integer, nullable=False)  # 0=Sunday .. 6=Saturday
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        # One recurring rule per weekday per company
        db.UniqueConstraint("company_id", "day_of_week", name="uq_schedule_company_day"),
        db.CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_schedule_day_of_week"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "day_of_week": self.day_of_week,
            "start_time": format_hhmm(self.start_time),
            "end_time": format_hhmm(self.end_time),
            "is_active": self.is_active,
        }
