import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as bookings.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "bookings.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity is resolved upstream (gateway / identity provider) and forwarded as headers
    IDENTITY_USER_HEADER = os.getenv("IDENTITY_USER_HEADER", "X-User-Id")
    IDENTITY_EMAIL_HEADER = os.getenv("IDENTITY_EMAIL_HEADER", "X-User-Email")

    # Slot grid used when listing bookable start times
    SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "15"))

    # Booking intake rate limit (per client IP, fixed window)
    BOOKING_RATE_WINDOW_SECONDS = int(os.getenv("BOOKING_RATE_WINDOW_SECONDS", "60"))
    BOOKING_RATE_MAX_REQUESTS = int(os.getenv("BOOKING_RATE_MAX_REQUESTS", "20"))

    # Off: completing a future booking is allowed, the dashboard just doesn't offer it
    REQUIRE_PAST_DATE_FOR_COMPLETION = _env_bool("REQUIRE_PAST_DATE_FOR_COMPLETION", "false")

    # Sent as Retry-After when the database is unreachable
    STORE_RETRY_AFTER_SECONDS = int(os.getenv("STORE_RETRY_AFTER_SECONDS", "5"))

    # Basic app settings
    DEBUG = False
    JSON_SORT_KEYS = False


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    BOOKING_RATE_MAX_REQUESTS = 1000
