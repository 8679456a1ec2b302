from datetime import datetime
from models.db import db

CATEGORIES = (
    "Beauty Salon",
    "Barbershop",
    "Spa & Wellness",
    "Medical",
    "Dental",
    "Fitness & Gym",
    "Consulting",
    "Photography",
    "Education",
    "Other",  # catch-all for anything not listed
)


class Company(db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    # identity from the upstream identity provider; never changes after insert
    owner_id = db.Column(db.String(64), nullable=False, index=True)

    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    contact_email = db.Column(db.String(255), nullable=False)
    contact_phone = db.Column(db.String(30), nullable=False, default="")
    logo_url = db.Column(db.String(255), nullable=False, default="")
    address = db.Column(db.String(255), nullable=False, default="")
    city = db.Column(db.String(120), nullable=False, default="", index=True)
    category = db.Column(db.String(60), nullable=False, default="")
    tags = db.Column(db.JSON, nullable=False, default=list)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    # bumped inside every booking insert; the row lock serializes bookings per company
    booking_version = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    services = db.relationship("Service", back_populates="company", cascade="all, delete-orphan")
    schedule_rules = db.relationship("WeeklyScheduleRule", cascade="all, delete-orphan")
    schedule_exceptions = db.relationship("ScheduleException", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "description": self.description,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "logo_url": self.logo_url,
            "address": self.address,
            "city": self.city,
            "category": self.category,
            "tags": list(self.tags or []),
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
