from datetime import date, time
from types import SimpleNamespace

import pytest

from scheduling.availability import available_slots, is_legal_booking, open_intervals_for
from scheduling.errors import AvailabilityConflict, ValidationError
from scheduling.intervals import TimeInterval

MONDAY = date(2026, 11, 2)
TUESDAY = date(2026, 11, 3)


def rule(dow, start, end, active=True):
    return SimpleNamespace(day_of_week=dow, start_time=start, end_time=end, is_active=active)


def exception(day, is_closed=False, start=None, end=None):
    return SimpleNamespace(date=day, is_closed=is_closed, start_time=start, end_time=end)


def booking(start, end, status="confirmed", day=MONDAY):
    return SimpleNamespace(booking_date=day, start_time=start, end_time=end, status=status)


WEEK = [rule(1, time(9), time(17)), rule(2, time(10), time(14), active=False)]
NINE_TO_FIVE = [TimeInterval(time(9), time(17))]


# ---------- open_intervals_for ----------
def test_weekly_rule_applies_without_exception():
    assert open_intervals_for(MONDAY, WEEK, []) == NINE_TO_FIVE


def test_inactive_or_missing_rule_means_closed():
    assert open_intervals_for(TUESDAY, WEEK, []) == []
    assert open_intervals_for(date(2026, 11, 4), WEEK, []) == []


def test_closed_exception_wins_over_weekly_rule():
    assert open_intervals_for(MONDAY, WEEK, [exception(MONDAY, is_closed=True)]) == []


def test_open_exception_replaces_weekly_rule_entirely():
    exc = exception(MONDAY, start=time(18), end=time(21))
    assert open_intervals_for(MONDAY, WEEK, [exc]) == [TimeInterval(time(18), time(21))]


def test_open_exception_can_open_a_normally_closed_day():
    exc = exception(TUESDAY, start=time(8), end=time(12))
    assert open_intervals_for(TUESDAY, WEEK, [exc]) == [TimeInterval(time(8), time(12))]


def test_exception_for_another_date_is_ignored():
    assert open_intervals_for(MONDAY, WEEK, [exception(TUESDAY, is_closed=True)]) == NINE_TO_FIVE


def test_zero_length_rule_has_no_open_time():
    assert open_intervals_for(MONDAY, [rule(1, time(9), time(9))], []) == []


def test_open_intervals_is_repeatable():
    exceptions = [exception(TUESDAY, start=time(8), end=time(12))]
    first = open_intervals_for(MONDAY, WEEK, exceptions)
    second = open_intervals_for(MONDAY, WEEK, exceptions)
    assert first == second == NINE_TO_FIVE


# ---------- is_legal_booking ----------
def propose(start, end):
    return TimeInterval(start, end)


def test_booking_inside_hours_is_legal():
    decision = is_legal_booking(MONDAY, propose(time(9), time(10)), NINE_TO_FIVE, [])
    assert decision.legal
    decision.raise_for_reason()


def test_booking_starting_before_open_is_rejected():
    decision = is_legal_booking(MONDAY, propose(time(8), time(10)), NINE_TO_FIVE, [])
    assert not decision.legal
    assert decision.reason == "outside_business_hours"
    with pytest.raises(AvailabilityConflict):
        decision.raise_for_reason()


def test_booking_on_closed_day_is_outside_hours():
    decision = is_legal_booking(TUESDAY, propose(time(9), time(10)), [], [])
    assert decision.reason == "outside_business_hours"


def test_overlap_with_confirmed_booking_is_rejected():
    existing = [booking(time(10), time(11))]
    decision = is_legal_booking(MONDAY, propose(time(10, 30), time(11, 30)), NINE_TO_FIVE, existing)
    assert decision.reason == "time_slot_unavailable"


def test_adjacent_booking_is_legal():
    existing = [booking(time(10), time(11))]
    assert is_legal_booking(MONDAY, propose(time(11), time(12)), NINE_TO_FIVE, existing).legal


def test_pending_booking_blocks():
    existing = [booking(time(10), time(11), status="pending")]
    assert not is_legal_booking(MONDAY, propose(time(10), time(11)), NINE_TO_FIVE, existing).legal


@pytest.mark.parametrize("status", ["cancelled", "completed"])
def test_cancelled_and_completed_do_not_block(status):
    existing = [booking(time(10), time(11), status=status)]
    assert is_legal_booking(MONDAY, propose(time(10, 30), time(11, 30)), NINE_TO_FIVE, existing).legal


def test_bookings_on_other_dates_do_not_block():
    existing = [booking(time(10), time(11), day=TUESDAY)]
    assert is_legal_booking(MONDAY, propose(time(10), time(11)), NINE_TO_FIVE, existing).legal


def test_wrapped_interval_is_a_validation_error():
    decision = is_legal_booking(MONDAY, propose(time(23, 30), time(0, 30)), NINE_TO_FIVE, [])
    assert decision.reason == "invalid_interval"
    with pytest.raises(ValidationError):
        decision.raise_for_reason()


def test_past_date_is_a_validation_error():
    decision = is_legal_booking(MONDAY, propose(time(9), time(10)), NINE_TO_FIVE, [], today=TUESDAY)
    assert decision.reason == "date_in_past"


def test_same_day_is_not_in_the_past():
    assert is_legal_booking(MONDAY, propose(time(9), time(10)), NINE_TO_FIVE, [], today=MONDAY).legal


# ---------- available_slots ----------
def test_slots_fill_the_window_on_the_grid():
    slots = available_slots([TimeInterval(time(9), time(11))], 60, step_minutes=30)
    assert [s.start for s in slots] == [time(9), time(9, 30), time(10)]
    assert slots[-1].end == time(11)


def test_slots_skip_busy_time():
    busy = [TimeInterval(time(10), time(11))]
    slots = available_slots([TimeInterval(time(9), time(12))], 60, busy=busy, step_minutes=30)
    assert [s.start for s in slots] == [time(9), time(11)]


def test_slots_respect_not_before():
    slots = available_slots([TimeInterval(time(9), time(12))], 60, step_minutes=60, not_before=time(9, 5))
    assert [s.start for s in slots] == [time(10), time(11)]


def test_no_slots_when_service_longer_than_window():
    assert available_slots([TimeInterval(time(9), time(10))], 90) == []
