"""Loads schedule and booking data for a company and feeds it to the engine."""
from contextlib import contextmanager
from datetime import date, datetime
from typing import List

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.booking import Booking
from models.schedule_exception import ScheduleException
from models.schedule_rule import WeeklyScheduleRule
from scheduling.availability import (
    available_slots,
    blocking_intervals,
    open_intervals_for,
    today_cutoff,
)
from scheduling.errors import StoreUnavailable
from scheduling.intervals import TimeInterval
from scheduling.status import BLOCKING_STATUSES


@contextmanager
def store_guard(what: str):
    """Turn driver/connection failures into StoreUnavailable."""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Record store failure while loading %s: %s", what, exc)
        raise StoreUnavailable(f"Could not load {what}, please retry") from exc


def load_schedule(company_id: int, target_date: date):
    """Returns (weekly rules, exceptions for target_date), fully fetched."""
    with store_guard("schedule"):
        rules = (
            WeeklyScheduleRule.query
            .filter_by(company_id=company_id)
            .order_by(WeeklyScheduleRule.day_of_week.asc())
            .all()
        )
        exceptions = ScheduleException.query.filter_by(company_id=company_id, date=target_date).all()
    return rules, exceptions


def load_blocking_bookings(company_id: int, target_date: date, refresh: bool = False) -> List[Booking]:
    with store_guard("bookings"):
        q = Booking.query.filter(
            Booking.company_id == company_id,
            Booking.booking_date == target_date,
            Booking.status.in_(list(BLOCKING_STATUSES)),
        )
        if refresh:
            # rows already in the session may be stale; overwrite them with what the DB has now
            q = q.execution_options(populate_existing=True)
        return q.order_by(Booking.start_time.asc()).all()


def open_intervals(company_id: int, target_date: date) -> List[TimeInterval]:
    rules, exceptions = load_schedule(company_id, target_date)
    return open_intervals_for(target_date, rules, exceptions)


def slots_for(company_id: int, duration_minutes: int, target_date: date, now: datetime) -> List[TimeInterval]:
    """Bookable intervals for a service of the given length on target_date."""
    windows = open_intervals(company_id, target_date)
    if not windows or target_date < now.date():
        return []

    busy = blocking_intervals(target_date, load_blocking_bookings(company_id, target_date))
    return available_slots(
        windows,
        duration_minutes,
        busy=busy,
        step_minutes=current_app.config.get("SLOT_STEP_MINUTES", 15),
        not_before=today_cutoff(target_date, now),
    )
