from datetime import datetime, timedelta
from models.db import db


class IpRateLimit(db.Model):
    """One fixed-window counter per (client ip, endpoint family)."""
    __tablename__ = "ip_rate_limits"
    __table_args__ = (
        db.UniqueConstraint("ip", "scope", name="uq_ip_rate_limit_scope"),
    )

    id = db.Column(db.Integer, primary_key=True)
    ip = db.Column(db.String(64), nullable=False, index=True)
    scope = db.Column(db.String(40), nullable=False)

    window_start = db.Column(db.DateTime, nullable=False)
    hits = db.Column(db.Integer, default=0, nullable=False)
    last_seen_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def window_end(self, seconds: int) -> datetime:
        return self.window_start + timedelta(seconds=seconds)
