import threading
from datetime import date, datetime, time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from app import create_app
from config import TestConfig
from models import db
from models.booking import Booking
from models.company import Company
from models.notification import Notification
from models.schedule_rule import WeeklyScheduleRule
from models.service import Service
from scheduling.errors import (
    AvailabilityConflict,
    InvalidStatusTransition,
    RecordNotFound,
    StoreUnavailable,
    ValidationError,
)
from scheduling.status import BookingStatus
from services.booking_service import (
    BookingRequest,
    change_status,
    check_booking,
    commit_booking,
    complete_past_bookings,
    parse_booking_request,
    request_booking,
)
from utils.auth_context import Identity
from tests.conftest import CLIENT_ID, OWNER_ID, add_exception, upcoming

CLIENT = Identity(CLIENT_ID, "client@example.com")
OWNER = Identity(OWNER_ID, "owner@example.com")
NOW = datetime.combine(date.today(), time(8, 0))


def make_request(service, day, start, name="Ada"):
    return BookingRequest(
        service_id=service.id,
        booking_date=day,
        start_time=start,
        client_name=name,
        client_email=f"{name.lower()}@example.com",
    )


def test_request_booking_creates_pending_booking(app, company, haircut, weekday_hours):
    day = upcoming(1)
    b = request_booking(CLIENT, company.id, make_request(haircut, day, time(10)), NOW)

    assert b.status == BookingStatus.PENDING
    assert b.start_time == time(10)
    assert b.end_time == time(11)
    assert b.client_user_id == CLIENT_ID


def test_overlapping_request_is_rejected(app, company, haircut, weekday_hours):
    day = upcoming(1)
    request_booking(CLIENT, company.id, make_request(haircut, day, time(10)), NOW)

    with pytest.raises(AvailabilityConflict) as err:
        request_booking(CLIENT, company.id, make_request(haircut, day, time(10, 30), "Bob"), NOW)
    assert err.value.reason == "time_slot_unavailable"

    # back to back is fine
    request_booking(CLIENT, company.id, make_request(haircut, day, time(11), "Cy"), NOW)
    assert Booking.query.count() == 2


def test_cancelled_booking_frees_its_slot(app, company, haircut, weekday_hours):
    day = upcoming(1)
    first = request_booking(CLIENT, company.id, make_request(haircut, day, time(10)), NOW)
    change_status(OWNER, first, "cancelled", NOW)

    again = request_booking(CLIENT, company.id, make_request(haircut, day, time(10, 30), "Bob"), NOW)
    assert again.id != first.id


def test_request_outside_hours(app, company, haircut, weekday_hours):
    with pytest.raises(AvailabilityConflict) as err:
        request_booking(CLIENT, company.id, make_request(haircut, upcoming(1), time(16, 30)), NOW)
    assert err.value.reason == "outside_business_hours"


def test_closed_exception_blocks_booking(app, company, haircut, weekday_hours):
    day = upcoming(1)
    add_exception(company, day, is_closed=True)
    with pytest.raises(AvailabilityConflict):
        request_booking(CLIENT, company.id, make_request(haircut, day, time(10)), NOW)


def test_open_exception_allows_weekend_booking(app, company, haircut, weekday_hours):
    saturday = upcoming(6)
    add_exception(company, saturday, start=time(10), end=time(13))
    b = request_booking(CLIENT, company.id, make_request(haircut, saturday, time(12)), NOW)
    assert b.end_time == time(13)


def test_past_date_is_rejected(app, company, haircut, weekday_hours):
    later = NOW + timedelta(days=30)
    with pytest.raises(ValidationError):
        request_booking(CLIENT, company.id, make_request(haircut, upcoming(1), time(10)), later)


def test_unknown_service_or_company(app, company, haircut, weekday_hours):
    req = make_request(haircut, upcoming(1), time(10))
    with pytest.raises(RecordNotFound):
        request_booking(CLIENT, company.id + 99, req, NOW)

    company.is_active = False
    db.session.commit()
    with pytest.raises(RecordNotFound):
        request_booking(CLIENT, company.id, req, NOW)


def test_concurrent_overlapping_requests_accept_exactly_one(app, company, haircut, weekday_hours):
    day = upcoming(1)
    today = NOW.date()
    req_a = make_request(haircut, day, time(10), "Ada")
    req_b = make_request(haircut, day, time(10, 30), "Bob")

    # Both requests pass the fast check against the same (empty) snapshot...
    proposed_a = check_booking(company, haircut, req_a, today)
    proposed_b = check_booking(company, haircut, req_b, today)

    # ...and only the locked re-check decides who gets the slot.
    commit_booking(CLIENT, company, haircut, req_a, proposed_a, today)
    with pytest.raises(AvailabilityConflict) as err:
        commit_booking(CLIENT, company, haircut, req_b, proposed_b, today)

    assert err.value.reason == "time_slot_unavailable"
    rows = Booking.query.all()
    assert [b.client_name for b in rows] == ["Ada"]


class _FailingQuery:
    def filter(self, *args, **kwargs):
        raise OperationalError("SELECT bookings", {}, Exception("connection refused"))


def test_store_failure_is_not_treated_as_no_conflict(app, company, haircut, weekday_hours, monkeypatch):
    req = make_request(haircut, upcoming(1), time(10))
    monkeypatch.setattr(Booking, "query", _FailingQuery())

    with pytest.raises(StoreUnavailable):
        request_booking(CLIENT, company.id, req, NOW)

    monkeypatch.undo()
    assert Booking.query.count() == 0


def test_confirm_and_cancel_queue_notifications(app, company, haircut, weekday_hours):
    b = request_booking(CLIENT, company.id, make_request(haircut, upcoming(1), time(10)), NOW)

    change_status(OWNER, b, "confirmed", NOW)
    change_status(OWNER, b, "cancelled", NOW)

    kinds = [n.type for n in Notification.query.order_by(Notification.id).all()]
    assert kinds == ["confirmation", "cancellation"]
    assert all(n.sent_at is None for n in Notification.query.all())
    assert b.status == BookingStatus.CANCELLED


def test_completion_gate_follows_config(app, company, haircut, weekday_hours):
    b = request_booking(CLIENT, company.id, make_request(haircut, upcoming(1), time(10)), NOW)
    change_status(OWNER, b, "confirmed", NOW)

    app.config["REQUIRE_PAST_DATE_FOR_COMPLETION"] = True
    with pytest.raises(InvalidStatusTransition):
        change_status(OWNER, b, "completed", NOW)

    app.config["REQUIRE_PAST_DATE_FOR_COMPLETION"] = False
    change_status(OWNER, b, "completed", NOW)
    assert b.status == BookingStatus.COMPLETED


def _stored_booking(company, service, day, start, end, status):
    b = Booking(
        company_id=company.id, service_id=service.id, client_name="X", client_email="x@example.com",
        booking_date=day, start_time=start, end_time=end, status=status,
    )
    db.session.add(b)
    return b


def test_complete_past_bookings(app, company, haircut):
    today = NOW.date()
    old = _stored_booking(company, haircut, today - timedelta(days=2), time(9), time(10), BookingStatus.CONFIRMED)
    ended_today = _stored_booking(company, haircut, today, time(6), time(7), BookingStatus.CONFIRMED)
    later_today = _stored_booking(company, haircut, today, time(9), time(10), BookingStatus.CONFIRMED)
    pending = _stored_booking(company, haircut, today - timedelta(days=2), time(11), time(12), BookingStatus.PENDING)
    db.session.commit()

    assert complete_past_bookings(NOW) == 2
    assert old.status == BookingStatus.COMPLETED
    assert ended_today.status == BookingStatus.COMPLETED
    assert later_today.status == BookingStatus.CONFIRMED
    assert pending.status == BookingStatus.PENDING


def test_parse_booking_request_defaults_email_from_identity():
    req = parse_booking_request({"service_id": "3", "date": "2026-11-02", "time": "09:30", "client_name": "Ada"},
                                identity=CLIENT)
    assert req.service_id == 3
    assert req.client_email == "client@example.com"
    assert req.start_time == time(9, 30)


@pytest.mark.parametrize("payload", [
    [1, 2],
    "service_id=1",
    {"service_id": 1, "date": "2026-11-02", "time": 930, "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "date": 20261102, "time": "09:30", "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "booking_date": ["2026-11-02"], "time": "09:30", "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "date": "2026-11-02", "start_time": 9.5, "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30", "client_name": {"first": "A"}, "client_email": "a@x.io"},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": 7},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": "a@x.io", "client_phone": 48123},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": "a@x.io", "notes": ["x"]},
    {"service_id": True, "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": "a@x.io"},
    {"service_id": [1], "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": "a@x.io"},
    {},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30"},
    {"service_id": 1, "date": "02/11/2026", "time": "09:30", "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "date": "2026-11-02", "time": "9h", "client_name": "A", "client_email": "a@x.io"},
    {"service_id": 1, "date": "2026-11-02", "time": "09:30", "client_name": "A", "client_email": "nope"},
])
def test_parse_booking_request_validation(payload):
    with pytest.raises(ValidationError):
        parse_booking_request(payload)


def test_deleting_a_booking_removes_its_notifications(app, company, haircut, weekday_hours):
    b = request_booking(CLIENT, company.id, make_request(haircut, upcoming(1), time(10)), NOW)
    change_status(OWNER, b, "confirmed", NOW)
    assert Notification.query.count() == 1

    db.session.delete(haircut)
    db.session.commit()

    assert Booking.query.count() == 0
    assert Notification.query.count() == 0


class FileDbConfig(TestConfig):
    SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}


def test_two_threads_booking_overlapping_slots(tmp_path):
    class Config(FileDbConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'bookings.db'}"

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        c = Company(owner_id=OWNER_ID, name="Studio Nova", contact_email="hello@nova.example")
        db.session.add(c)
        db.session.flush()
        s = Service(company_id=c.id, name="Haircut", price=Decimal("80.00"), duration_minutes=60)
        db.session.add(s)
        for dow in range(1, 6):
            db.session.add(WeeklyScheduleRule(company_id=c.id, day_of_week=dow, start_time=time(9), end_time=time(17)))
        db.session.commit()
        company_id, service_id = c.id, s.id

    day = upcoming(1)
    start_line = threading.Barrier(2)
    outcomes = []

    def book(user_id, start):
        with app.app_context():
            req = BookingRequest(service_id, day, start, user_id, f"{user_id}@example.com")
            start_line.wait()
            try:
                request_booking(Identity(user_id, f"{user_id}@example.com"), company_id, req, NOW)
                outcomes.append("booked")
            except AvailabilityConflict:
                outcomes.append("conflict")
            except Exception as exc:
                outcomes.append(repr(exc))
            finally:
                db.session.remove()

    workers = [
        threading.Thread(target=book, args=("ada", time(10))),
        threading.Thread(target=book, args=("bob", time(10, 30))),
    ]
    for w in workers:
        w.start()
    for w in workers:
        w.join(timeout=60)

    assert sorted(outcomes) == ["booked", "conflict"]
    with app.app_context():
        assert Booking.query.count() == 1
        db.engine.dispose()
