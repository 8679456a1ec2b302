OUTSIDE_BUSINESS_HOURS = "outside_business_hours"
TIME_SLOT_UNAVAILABLE = "time_slot_unavailable"
INVALID_INTERVAL = "invalid_interval"
DATE_IN_PAST = "date_in_past"


class BookingError(Exception):
    status_code = 400
    reason = None

    def __init__(self, message: str, reason: str = None):
        super().__init__(message)
        self.message = message
        if reason is not None:
            self.reason = reason

    def to_dict(self):
        out = {"error": self.message}
        if self.reason:
            out["reason"] = self.reason
        return out


class ValidationError(BookingError):
    """Malformed input the caller can correct (bad interval, duration, past date)."""
    status_code = 400


class AvailabilityConflict(BookingError):
    """Proposed interval is outside business hours or overlaps a booking."""
    status_code = 409


class InvalidStatusTransition(BookingError):
    status_code = 409
    reason = "invalid_transition"


class StoreUnavailable(BookingError):
    """
    The record store could not be read or written. Retryable.
    Never interpret this as "no conflicts found".
    """
    status_code = 503
    reason = "store_unavailable"


class RecordNotFound(BookingError):
    status_code = 404
    reason = "not_found"
