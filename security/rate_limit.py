from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from flask import request, current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.ip_rate_limit import IpRateLimit


@dataclass(frozen=True)
class RateWindow:
    scope: str
    seconds: int
    max_requests: int

    @classmethod
    def from_config(cls, scope: str) -> "RateWindow":
        # BOOKING_RATE_WINDOW_SECONDS / BOOKING_RATE_MAX_REQUESTS for scope "booking"
        prefix = scope.upper()
        cfg = current_app.config
        return cls(
            scope=scope,
            seconds=int(cfg.get(f"{prefix}_RATE_WINDOW_SECONDS", 60)),
            max_requests=int(cfg.get(f"{prefix}_RATE_MAX_REQUESTS", 20)),
        )


def client_ip() -> str:
    # first hop only; later entries are proxies
    forwarded = request.headers.get("X-Forwarded-For", "")
    return forwarded.split(",")[0].strip() or request.remote_addr or "unknown"


def _counter(ip: str, scope: str) -> Optional[IpRateLimit]:
    return IpRateLimit.query.filter_by(ip=ip, scope=scope).first()


def hit(window: RateWindow, ip: str, now: Optional[datetime] = None) -> Tuple[bool, int]:
    """
    Count one request from ip against window.
    Returns (allowed, retry_after_seconds). The counter is committed either way.
    """
    now = now or datetime.utcnow()

    row = _counter(ip, window.scope)
    if row is None:
        row = IpRateLimit(ip=ip, scope=window.scope, window_start=now, hits=0)
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError:
            # a concurrent first request created the counter
            db.session.rollback()
            row = _counter(ip, window.scope)

    if now >= row.window_end(window.seconds):
        row.window_start = now
        row.hits = 0

    row.hits += 1
    row.last_seen_at = now
    db.session.commit()

    if row.hits <= window.max_requests:
        return True, 0
    remaining = (row.window_end(window.seconds) - now).total_seconds()
    return False, max(int(remaining), 1)


def check_and_increment_booking_rate() -> Tuple[bool, int]:
    return hit(RateWindow.from_config("booking"), client_ip())
