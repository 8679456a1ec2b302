from .errors import (
    BookingError,
    ValidationError,
    AvailabilityConflict,
    InvalidStatusTransition,
    StoreUnavailable,
    RecordNotFound,
)
from .intervals import TimeInterval, day_of_week, parse_hhmm, format_hhmm
from .status import BookingStatus, transition, allowed_transitions, can_offer_completion
from .availability import (
    BookingDecision,
    end_time,
    open_intervals_for,
    is_legal_booking,
    available_slots,
    blocking_intervals,
)
