from models.db import db
from scheduling.intervals import format_hhmm


class ScheduleException(db.Model):
    __tablename__ = "schedule_exceptions"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )

    date = db.Column(db.Date, nullable=False)
    is_closed = db.Column(db.Boolean, default=False, nullable=False)
    # both null when is_closed
    start_time = db.Column(db.Time, nullable=True)
    end_time = db.Column(db.Time, nullable=True)
    reason = db.Column(db.String(255), nullable=False, default="")

    __table_args__ = (
        db.UniqueConstraint("company_id", "date", name="uq_schedule_exception_company_date"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "date": self.date.isoformat(),
            "is_closed": self.is_closed,
            "start_time": format_hhmm(self.start_time) if self.start_time else None,
            "end_time": format_hhmm(self.end_time) if self.end_time else None,
            "reason": self.reason,
        }
