"""
Booking intake and status workflow.

Creating a booking is check-then-insert, so the check is done twice: once
against a plain snapshot to fail fast, and again inside a transaction that
holds the company's booking lock. Only the second check decides.
"""
from dataclasses import dataclass
from datetime import date, datetime, time

from flask import current_app
from sqlalchemy import update, or_, and_
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking
from models.company import Company
from models.notification import Notification
from models.service import Service
from scheduling.availability import end_time, is_legal_booking, open_intervals_for
from scheduling.errors import (
    AvailabilityConflict,
    RecordNotFound,
    StoreUnavailable,
    ValidationError,
)
from scheduling.intervals import TimeInterval, parse_hhmm
from scheduling.status import BookingStatus, INITIAL_STATUS, transition
from services.availability_service import load_blocking_bookings, load_schedule, store_guard
from utils.audit import log_event


@dataclass(frozen=True)
class BookingRequest:
    service_id: int
    booking_date: date
    start_time: time
    client_name: str
    client_email: str
    client_phone: str = ""
    notes: str = ""


def _text(data: dict, *keys) -> str:
    """First present key among keys, stripped. Non-string values are rejected."""
    for key in keys:
        value = data.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"{key} must be a string")
        if value.strip():
            return value.strip()
    return ""


def parse_booking_request(data: dict, identity=None) -> BookingRequest:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")

    service_id = data.get("service_id")
    date_str = _text(data, "date", "booking_date")
    time_str = _text(data, "time", "start_time")
    client_name = _text(data, "client_name")
    client_email = (_text(data, "client_email") or (identity.email if identity else "") or "").lower()
    client_phone = _text(data, "client_phone")
    notes = _text(data, "notes")

    if service_id is None or isinstance(service_id, bool) or not date_str or not time_str:
        raise ValidationError("service_id, date and time are required")
    if not client_name or not client_email:
        raise ValidationError("client_name and client_email are required")
    if "@" not in client_email:
        raise ValidationError("client_email is not a valid email address")

    try:
        service_id = int(service_id)
    except (TypeError, ValueError):
        raise ValidationError("service_id must be an integer")

    try:
        booking_date = date.fromisoformat(date_str)
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD")

    return BookingRequest(
        service_id=service_id,
        booking_date=booking_date,
        start_time=parse_hhmm(time_str),
        client_name=client_name[:120],
        client_email=client_email[:255],
        client_phone=client_phone[:30],
        notes=notes,
    )


def _load_bookable(company_id: int, service_id: int):
    with store_guard("company"):
        company = db.session.get(Company, company_id)
        service = db.session.get(Service, service_id)

    if company is None or not company.is_active:
        return None, None
    if service is None or service.company_id != company.id or not service.is_active:
        return company, None
    return company, service


def check_booking(company: Company, service: Service, req: BookingRequest, today: date) -> TimeInterval:
    """
    Fail-fast legality check against the current snapshot.
    Returns the proposed interval; raises ValidationError / AvailabilityConflict.
    """
    proposed = TimeInterval(req.start_time, end_time(req.start_time, service.duration_minutes))

    rules, exceptions = load_schedule(company.id, req.booking_date)
    windows = open_intervals_for(req.booking_date, rules, exceptions)
    existing = load_blocking_bookings(company.id, req.booking_date)

    is_legal_booking(req.booking_date, proposed, windows, existing, today=today).raise_for_reason()
    return proposed


def _lock_company_bookings(company_id: int):
    # Row write lock on PostgreSQL, database write lock on SQLite.
    # Held until commit/rollback, so concurrent inserts for this company queue here.
    db.session.execute(
        update(Company)
        .where(Company.id == company_id)
        .values(booking_version=Company.booking_version + 1)
    )


def commit_booking(identity, company: Company, service: Service, req: BookingRequest,
                   proposed: TimeInterval, today: date) -> Booking:
    """Serialized re-check and insert. The only place a Booking row is created."""
    try:
        _lock_company_bookings(company.id)

        rules, exceptions = load_schedule(company.id, req.booking_date)
        windows = open_intervals_for(req.booking_date, rules, exceptions)
        existing = load_blocking_bookings(company.id, req.booking_date, refresh=True)

        decision = is_legal_booking(req.booking_date, proposed, windows, existing, today=today)
        if not decision.legal:
            db.session.rollback()
            decision.raise_for_reason()

        booking = Booking(
            company_id=company.id,
            service_id=service.id,
            client_user_id=identity.user_id if identity else None,
            client_name=req.client_name,
            client_email=req.client_email,
            client_phone=req.client_phone,
            booking_date=req.booking_date,
            start_time=proposed.start,
            end_time=proposed.end,
            notes=req.notes,
            status=INITIAL_STATUS,
        )
        db.session.add(booking)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Booking insert failed for company %s: %s", company.id, exc)
        raise StoreUnavailable("Could not save booking, please retry") from exc

    return booking


def request_booking(identity, company_id: int, req: BookingRequest, now: datetime) -> Booking:
    company, service = _load_bookable(company_id, req.service_id)
    if company is None:
        raise RecordNotFound("Company not found")
    if service is None:
        raise RecordNotFound("Service not found")

    today = now.date()
    try:
        proposed = check_booking(company, service, req, today)
        booking = commit_booking(identity, company, service, req, proposed, today)
    except AvailabilityConflict as exc:
        log_event(
            "BOOKING_FAIL_CONFLICT",
            user_id=identity.user_id if identity else None,
            entity="company",
            entity_id=company.id,
            metadata={"reason": exc.reason, "date": req.booking_date, "time": req.start_time},
            company_id=company.id,
        )
        raise

    log_event(
        "BOOKING_CREATE",
        user_id=identity.user_id if identity else None,
        entity="booking",
        entity_id=booking.id,
        metadata={"service_id": service.id, "date": req.booking_date},
        company_id=company.id,
    )
    return booking


def _queue_notification(booking: Booking, kind: str):
    booking.notifications.append(Notification(
        company_id=booking.company_id,
        recipient_email=booking.client_email,
        recipient_phone=booking.client_phone or "",
        type=kind,
        channel="email",
    ))


_NOTIFY_ON = {
    BookingStatus.CONFIRMED: "confirmation",
    BookingStatus.CANCELLED: "cancellation",
}


def change_status(identity, booking: Booking, target, now: datetime) -> Booking:
    """Owner-initiated status change. Ownership is checked by the caller."""
    previous = booking.status
    new_status = transition(
        previous,
        target,
        booking_date=booking.booking_date,
        today=now.date(),
        require_past_for_completion=current_app.config.get("REQUIRE_PAST_DATE_FOR_COMPLETION", False),
    )

    booking.status = new_status
    booking.updated_at = now
    if new_status in _NOTIFY_ON:
        _queue_notification(booking, _NOTIFY_ON[new_status])

    log_event(
        "BOOKING_STATUS_CHANGE",
        user_id=identity.user_id,
        entity="booking",
        entity_id=booking.id,
        metadata={"from": previous.value, "to": new_status.value},
        company_id=booking.company_id,
        commit=False,
    )
    db.session.commit()
    return booking


def complete_past_bookings(now: datetime) -> int:
    """Mark confirmed bookings that have already ended as completed."""
    today = now.date()
    rows = (
        Booking.query
        .filter(
            Booking.status == BookingStatus.CONFIRMED,
            or_(
                Booking.booking_date < today,
                and_(Booking.booking_date == today, Booking.end_time <= now.time()),
            ),
        )
        .all()
    )
    for b in rows:
        b.status = transition(b.status, BookingStatus.COMPLETED)
        b.updated_at = now
    if rows:
        log_event("BOOKING_AUTO_COMPLETE", entity="booking", metadata={"count": len(rows)}, commit=False)
    db.session.commit()
    return len(rows)
