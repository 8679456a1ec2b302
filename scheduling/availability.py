"""
Availability and conflict rules.

Everything here is a pure function of its arguments: schedule rules,
schedule exceptions and bookings are passed in already loaded, so the same
code runs for the public availability view and inside the locked
check-and-insert transaction in services.booking_service.

Records are read by attribute only, so ORM rows and plain objects both work:
  rule:      day_of_week, start_time, end_time, is_active
  exception: date, is_closed, start_time, end_time
  booking:   booking_date, start_time, end_time, status
"""
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Iterable, List, Optional

from scheduling.errors import (
    AvailabilityConflict,
    ValidationError,
    OUTSIDE_BUSINESS_HOURS,
    TIME_SLOT_UNAVAILABLE,
    INVALID_INTERVAL,
    DATE_IN_PAST,
)
from scheduling.intervals import (
    TimeInterval,
    day_of_week,
    format_hhmm,
    from_minutes,
    parse_hhmm,
    to_minutes,
)
from scheduling.status import is_blocking

_MESSAGES = {
    INVALID_INTERVAL: "Booking must end after it starts",
    DATE_IN_PAST: "Cannot book a date in the past",
    OUTSIDE_BUSINESS_HOURS: "Requested time is outside business hours",
    TIME_SLOT_UNAVAILABLE: "Requested time slot is unavailable",
}

_VALIDATION_REASONS = {INVALID_INTERVAL, DATE_IN_PAST}


@dataclass(frozen=True)
class BookingDecision:
    legal: bool
    reason: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        return _MESSAGES.get(self.reason)

    def raise_for_reason(self):
        if self.legal:
            return
        if self.reason in _VALIDATION_REASONS:
            raise ValidationError(self.message, reason=self.reason)
        raise AvailabilityConflict(self.message, reason=self.reason)


ACCEPT = BookingDecision(legal=True)


def end_time(start, duration_minutes: int):
    """
    start + duration on a 24h clock, wrapping at midnight.

    end_time("23:30", 60) == "00:30". The wrapped value stays on the same
    booking date, which the legality check then rejects as an invalid
    interval. Returns the same type it was given (str or time).
    """
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError("Duration must be a positive number of minutes")

    as_text = isinstance(start, str)
    start_t = parse_hhmm(start) if as_text else start
    result = from_minutes(to_minutes(start_t) + duration_minutes)
    return format_hhmm(result) if as_text else result


def _exception_for(target_date: date, exceptions: Iterable):
    for exc in exceptions or ():
        if exc.date == target_date:
            return exc
    return None


def _rule_for(target_date: date, rules: Iterable):
    dow = day_of_week(target_date)
    for rule in rules or ():
        if rule.day_of_week == dow:
            return rule
    return None


def open_intervals_for(target_date: date, rules: Iterable, exceptions: Iterable) -> List[TimeInterval]:
    """
    Open intervals for a company on target_date.

    A date-specific exception replaces the weekly rule outright: closed means
    nothing is open, otherwise only the exception's own hours are.
    """
    exc = _exception_for(target_date, exceptions)
    if exc is not None:
        if exc.is_closed or exc.start_time is None or exc.end_time is None:
            return []
        candidates = [TimeInterval(exc.start_time, exc.end_time)]
    else:
        rule = _rule_for(target_date, rules)
        if rule is None or not rule.is_active:
            return []
        candidates = [TimeInterval(rule.start_time, rule.end_time)]

    # zero-length windows carry no open time
    return sorted((iv for iv in candidates if not iv.is_empty), key=lambda iv: iv.start)


def blocking_intervals(target_date: date, bookings: Iterable) -> List[TimeInterval]:
    return [
        TimeInterval(b.start_time, b.end_time)
        for b in bookings or ()
        if b.booking_date == target_date and is_blocking(b.status)
    ]


def is_legal_booking(
    target_date: date,
    proposed: TimeInterval,
    open_intervals: Iterable[TimeInterval],
    existing_bookings: Iterable,
    today: Optional[date] = None,
) -> BookingDecision:
    if proposed.is_empty:
        return BookingDecision(False, INVALID_INTERVAL)
    if today is not None and target_date < today:
        return BookingDecision(False, DATE_IN_PAST)

    if not any(iv.contains(proposed) for iv in open_intervals):
        return BookingDecision(False, OUTSIDE_BUSINESS_HOURS)

    for busy in blocking_intervals(target_date, existing_bookings):
        if proposed.overlaps(busy):
            return BookingDecision(False, TIME_SLOT_UNAVAILABLE)

    return ACCEPT


def available_slots(
    open_intervals: Iterable[TimeInterval],
    duration_minutes: int,
    busy: Iterable[TimeInterval] = (),
    step_minutes: int = 15,
    not_before: Optional[time] = None,
) -> List[TimeInterval]:
    """
    Candidate booking intervals of duration_minutes on a step_minutes grid
    anchored at each interval's opening time.

    Slots never run past the interval's close (no midnight wrap here), never
    overlap a busy interval, and never start before not_before.
    """
    if duration_minutes <= 0 or step_minutes <= 0:
        raise ValidationError("Duration and step must be positive")

    busy = list(busy)
    slots = []
    for window in open_intervals:
        if window.is_empty:
            continue
        close = to_minutes(window.end)
        cursor = to_minutes(window.start)
        while cursor + duration_minutes <= close:
            candidate = TimeInterval(from_minutes(cursor), from_minutes(cursor + duration_minutes))
            cursor += step_minutes

            if not_before is not None and candidate.start < not_before:
                continue
            if any(candidate.overlaps(b) for b in busy):
                continue
            slots.append(candidate)
    return slots


def today_cutoff(target_date: date, now) -> Optional[time]:
    """Earliest start time still bookable on target_date given the current moment."""
    if target_date != now.date():
        return None
    # round up to the next whole minute
    rounded = now.replace(second=0, microsecond=0)
    if rounded < now:
        rounded += timedelta(minutes=1)
    if rounded.date() != target_date:
        return time.max
    return rounded.time()
