from datetime import date, datetime

from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking
from models.company import Company
from models.service import Service
from scheduling.availability import blocking_intervals
from scheduling.errors import ValidationError
from scheduling.intervals import day_of_week
from scheduling.status import BookingStatus, allowed_transitions
from security.ownership import owns_company, require_company_owner, visible_company
from security.rate_limit import check_and_increment_booking_rate
from services import availability_service, booking_service
from utils.audit import log_event
from utils.auth_context import login_required

booking_bp = Blueprint("booking", __name__)


def _now() -> datetime:
    # company-local wall clock; bookings carry no timezone
    return datetime.now()


def _parse_date(date_str: str):
    return date.fromisoformat((date_str or "").strip())


def _booking_out(b: Booking, today: date):
    out = b.to_dict()
    out["allowed_transitions"] = allowed_transitions(b.status, b.booking_date, today)
    return out


# ---------- PUBLIC: open hours and bookable slots ----------
@booking_bp.get("/companies/<int:company_id>/availability")
def company_availability(company_id: int):
    company = db.session.get(Company, company_id)
    if not visible_company(getattr(g, "identity", None), company):
        return jsonify(error="Company not found"), 404

    try:
        day = _parse_date(request.args.get("date"))
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    windows = availability_service.open_intervals(company.id, day)
    out = {
        "company_id": company.id,
        "date": day.isoformat(),
        "day_of_week": day_of_week(day),
        "open_intervals": [iv.to_dict() for iv in windows],
    }

    service_id = request.args.get("service_id", type=int)
    if service_id:
        service = db.session.get(Service, service_id)
        if not service or service.company_id != company.id or not service.is_active:
            return jsonify(error="Service not found"), 404
        slots = availability_service.slots_for(company.id, service.duration_minutes, day, _now())
        out["service_id"] = service.id
        out["duration_minutes"] = service.duration_minutes
        out["slots"] = [s.to_dict() for s in slots]
    else:
        bookings = availability_service.load_blocking_bookings(company.id, day)
        out["busy"] = [iv.to_dict() for iv in blocking_intervals(day, bookings)]

    return jsonify(out), 200


# ---------- CLIENTS: request a booking (CONCURRENCY SAFE) ----------
@booking_bp.post("/companies/<int:company_id>/bookings")
@login_required
def create_booking(company_id: int):
    # Open intake: any caller may book any active company, within the rate limit
    allowed, retry_after = check_and_increment_booking_rate()
    if not allowed:
        log_event("BOOKING_RATE_LIMITED", user_id=g.identity.user_id, entity="company", entity_id=company_id, company_id=company_id)
        resp = jsonify(error="Too many booking requests, slow down")
        resp.headers["Retry-After"] = str(retry_after)
        return resp, 429

    data = request.get_json(silent=True) or {}
    req = booking_service.parse_booking_request(data, identity=g.identity)
    booking = booking_service.request_booking(g.identity, company_id, req, _now())
    return jsonify(booking.to_dict()), 201


# ---------- CLIENTS: view my bookings ----------
@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    q = Booking.query.filter_by(client_user_id=g.identity.user_id)

    status = request.args.get("status")
    if status:
        q = q.filter(Booking.status == BookingStatus.parse(status))

    rows = q.order_by(Booking.booking_date.desc(), Booking.start_time.desc()).limit(200).all()
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- OWNERS: list company bookings ----------
@booking_bp.get("/companies/<int:company_id>/bookings")
@require_company_owner
def company_bookings(identity, company):
    q = Booking.query.filter_by(company_id=company.id)

    status = request.args.get("status")
    if status and status != "all":
        q = q.filter(Booking.status == BookingStatus.parse(status))

    date_str = request.args.get("date")
    if date_str:
        try:
            q = q.filter(Booking.booking_date == _parse_date(date_str))
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    rows = q.order_by(Booking.booking_date.asc(), Booking.start_time.asc()).limit(500).all()
    today = _now().date()
    return jsonify([_booking_out(b, today) for b in rows]), 200


# ---------- OWNERS: move a booking through its workflow ----------
@booking_bp.post("/bookings/<int:booking_id>/status")
@login_required
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    target = data.get("status") if isinstance(data, dict) else None
    if not isinstance(target, str) or not target.strip():
        raise ValidationError("status is required and must be a string")

    booking = db.session.get(Booking, booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    company = db.session.get(Company, booking.company_id)
    if not owns_company(g.identity, company):
        # clients see their own bookings but cannot move them
        return jsonify(error="Forbidden"), 403

    now = _now()
    booking_service.change_status(g.identity, booking, target, now)
    current_app.logger.info("Booking %s moved to %s", booking.id, booking.status.value)
    return jsonify(_booking_out(booking, now.date())), 200
