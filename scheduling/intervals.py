from dataclasses import dataclass
from datetime import time, date

from scheduling.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


def parse_hhmm(value: str) -> time:
    # Accepts "HH:MM" or "HH:MM:SS" (the seconds part is what the DB hands back)
    try:
        return time.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM")


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(total: int) -> time:
    total %= MINUTES_PER_DAY
    return time(total // 60, total % 60)


def day_of_week(target: date) -> int:
    """0=Sunday .. 6=Saturday (Python's weekday() starts at Monday=0)."""
    return (target.weekday() + 1) % 7


@dataclass(frozen=True)
class TimeInterval:
    """Half-open wall-clock interval [start, end) within a single day."""
    start: time
    end: time

    @property
    def is_empty(self) -> bool:
        return self.start >= self.end

    @property
    def duration_minutes(self) -> int:
        if self.is_empty:
            return 0
        return to_minutes(self.end) - to_minutes(self.start)

    def contains(self, other: "TimeInterval") -> bool:
        if self.is_empty or other.is_empty:
            return False
        return other.start >= self.start and other.end <= self.end

    def overlaps(self, other: "TimeInterval") -> bool:
        return self.start < other.end and other.start < self.end

    def to_dict(self):
        return {"start_time": format_hhmm(self.start), "end_time": format_hhmm(self.end)}
