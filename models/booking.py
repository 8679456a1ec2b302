from datetime import datetime
from models.db import db
from scheduling.intervals import TimeInterval, format_hhmm
from scheduling.status import BookingStatus, INITIAL_STATUS


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    service_id = db.Column(
        db.Integer, db.ForeignKey("services.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_user_id = db.Column(db.String(64), nullable=True, index=True)

    client_name = db.Column(db.String(120), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(30), nullable=False, default="")

    # company-local wall clock, no timezone
    booking_date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    status = db.Column(
        db.Enum(
            BookingStatus,
            name="booking_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [m.value for m in enum],
            validate_strings=True,
        ),
        nullable=False,
        default=INITIAL_STATUS,
        index=True,
    )
    notes = db.Column(db.Text, nullable=False, default="")

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    service = db.relationship("Service", back_populates="bookings")
    # removed with the booking even where the database does not enforce the FK
    notifications = db.relationship("Notification", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_bookings_company_date", "company_id", "booking_date"),
    )

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.start_time, self.end_time)

    def to_dict(self, include_service=True):
        out = {
            "id": self.id,
            "company_id": self.company_id,
            "service_id": self.service_id,
            "client_user_id": self.client_user_id,
            "client_name": self.client_name,
            "client_email": self.client_email,
            "client_phone": self.client_phone,
            "booking_date": self.booking_date.isoformat(),
            "start_time": format_hhmm(self.start_time),
            "end_time": format_hhmm(self.end_time),
            "status": self.status.value,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_service and self.service is not None:
            out["service"] = {"name": self.service.name, "price": str(self.service.price)}
        return out
