from datetime import date, time, timedelta
from decimal import Decimal

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.company import Company
from models.schedule_exception import ScheduleException
from models.schedule_rule import WeeklyScheduleRule
from models.service import Service
from scheduling.intervals import day_of_week

OWNER_ID = "owner-1"
CLIENT_ID = "client-1"


def headers_for(user_id, email=None):
    h = {"X-User-Id": user_id}
    if email:
        h["X-User-Email"] = email
    return h


OWNER = headers_for(OWNER_ID, "owner@example.com")
CLIENT = headers_for(CLIENT_ID, "client@example.com")


def upcoming(dow: int, weeks_ahead: int = 1) -> date:
    """A date strictly after today falling on dow (0=Sunday)."""
    today = date.today()
    delta = (dow - day_of_week(today)) % 7
    return today + timedelta(days=delta + 7 * weeks_ahead)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def company(app):
    c = Company(
        owner_id=OWNER_ID,
        name="Studio Nova",
        description="Hair and beauty",
        contact_email="hello@nova.example",
        city="Krakow",
        category="Beauty Salon",
        tags=["hair", "nails"],
    )
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def haircut(company):
    s = Service(company_id=company.id, name="Haircut", price=Decimal("80.00"), duration_minutes=60)
    db.session.add(s)
    db.session.commit()
    return s


@pytest.fixture
def weekday_hours(company):
    """Open 09:00-17:00 Monday to Friday."""
    for dow in range(1, 6):
        db.session.add(WeeklyScheduleRule(
            company_id=company.id, day_of_week=dow, start_time=time(9), end_time=time(17)
        ))
    db.session.commit()


def add_exception(company, day, is_closed=False, start=None, end=None):
    exc = ScheduleException(company_id=company.id, date=day, is_closed=is_closed, start_time=start, end_time=end)
    db.session.add(exc)
    db.session.commit()
    return exc
