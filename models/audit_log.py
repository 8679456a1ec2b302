import json
from datetime import datetime
from models.db import db


class AuditLog(db.Model):
    """Append-only trail of business events, scoped to a company where one applies."""
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, nullable=True, index=True)  # no FK: the trail outlives deletes
    actor_id = db.Column(db.String(64), nullable=True, index=True)  # None for CLI / scheduled jobs
    action = db.Column(db.String(80), nullable=False)  # BOOKING_CREATE, SCHEDULE_UPSERT, ...
    entity = db.Column(db.String(80), nullable=True)
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    details = db.Column(db.Text, nullable=True)  # JSON text

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "actor_id": self.actor_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "ip": self.ip,
            "details": json.loads(self.details) if self.details else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
