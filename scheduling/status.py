from datetime import date
from enum import Enum

from scheduling.errors import InvalidStatusTransition, ValidationError


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown booking status '{value}'")


# pending/confirmed hold their interval; cancelled/completed free it
BLOCKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})

TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

INITIAL_STATUS = BookingStatus.PENDING


def is_blocking(status) -> bool:
    return BookingStatus.parse(status) in BLOCKING_STATUSES


def is_terminal(status) -> bool:
    return not TRANSITIONS[BookingStatus.parse(status)]


def transition(current, target, booking_date: date = None, today: date = None,
               require_past_for_completion: bool = False) -> BookingStatus:
    """
    Validate current -> target and return the new status.

    Completing a future booking is allowed unless require_past_for_completion
    is set; the dashboard only offers it for past dates (see can_offer_completion).
    """
    current = BookingStatus.parse(current)
    target = BookingStatus.parse(target)

    if target not in TRANSITIONS[current]:
        raise InvalidStatusTransition(
            f"Cannot change booking from {current.value} to {target.value}"
        )

    if (
        require_past_for_completion
        and target == BookingStatus.COMPLETED
        and not can_offer_completion(booking_date, today)
    ):
        raise InvalidStatusTransition("Only past bookings can be marked completed")

    return target


def can_offer_completion(booking_date: date, today: date) -> bool:
    if booking_date is None or today is None:
        return False
    return booking_date < today


def allowed_transitions(current, booking_date: date = None, today: date = None):
    current = BookingStatus.parse(current)
    out = []
    for target in sorted(TRANSITIONS[current], key=lambda s: s.value):
        if target == BookingStatus.COMPLETED and not can_offer_completion(booking_date, today):
            continue
        out.append(target.value)
    return out
