from datetime import datetime
from models.db import db

NOTIFICATION_TYPES = ("confirmation", "reminder", "cancellation")
NOTIFICATION_CHANNELS = ("email", "sms", "both")


class Notification(db.Model):
    """
    Outbound message queued for an external dispatcher.
    This service only records them; sent_at is filled in by whoever delivers.
    """
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(
        db.Integer, db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id = db.Column(
        db.Integer, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=True, index=True
    )

    recipient_email = db.Column(db.String(255), nullable=False)
    recipient_phone = db.Column(db.String(30), nullable=False, default="")

    type = db.Column(db.String(20), nullable=False)  # confirmation, reminder, cancellation
    channel = db.Column(db.String(10), nullable=False, default="email")  # email, sms, both

    sent_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.CheckConstraint(
            "type IN ('confirmation', 'reminder', 'cancellation')", name="ck_notifications_type"
        ),
        db.CheckConstraint("channel IN ('email', 'sms', 'both')", name="ck_notifications_channel"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "booking_id": self.booking_id,
            "recipient_email": self.recipient_email,
            "recipient_phone": self.recipient_phone,
            "type": self.type,
            "channel": self.channel,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
