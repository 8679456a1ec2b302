from sqlalchemy import func

from models import db
from models.booking import Booking
from models.company import Company, CATEGORIES
from models.service import Service
from scheduling.errors import BookingError, ValidationError
from scheduling.status import BookingStatus
from services.availability_service import store_guard
from utils.audit import log_event

_TEXT_FIELDS = {
    "name": 160,
    "description": None,
    "contact_email": 255,
    "contact_phone": 30,
    "logo_url": 255,
    "address": 255,
    "city": 120,
}


class CompanyConflict(BookingError):
    status_code = 409
    reason = "company_exists"


def normalize_tags(raw) -> list:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = raw.split(",")
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("tags must be a list of strings")

    tags = []
    for tag in raw:
        if not isinstance(tag, str):
            raise ValidationError("tags must be a list of strings")
        tag = tag.strip().lower()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _string_field(name: str, value) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip()


def validate_category(value) -> str:
    category = _string_field("category", value)
    if category and category not in CATEGORIES:
        raise ValidationError(f"Unknown category '{category}'. Use one of: {', '.join(CATEGORIES)}")
    return category


def clean_company_fields(data: dict, partial: bool = False) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    if "owner_id" in data:
        raise ValidationError("owner_id cannot be set or changed")

    fields = {}
    for name, limit in _TEXT_FIELDS.items():
        if name in data:
            value = _string_field(name, data.get(name))
            fields[name] = value[:limit] if limit else value

    if "category" in data:
        fields["category"] = validate_category(data.get("category"))
    if "tags" in data:
        fields["tags"] = normalize_tags(data.get("tags"))
    if "is_active" in data:
        fields["is_active"] = bool(data.get("is_active"))

    if not partial or "name" in fields:
        if not fields.get("name"):
            raise ValidationError("name is required")
    if not partial or "contact_email" in fields:
        if not fields.get("contact_email"):
            raise ValidationError("contact_email is required")
    return fields


def create_company(identity, data: dict) -> Company:
    fields = clean_company_fields(data)

    # One company per owner
    with store_guard("companies"):
        existing = Company.query.filter_by(owner_id=identity.user_id).first()
    if existing is not None:
        raise CompanyConflict("You already have a company profile")

    company = Company(owner_id=identity.user_id, **fields)
    db.session.add(company)
    db.session.commit()

    log_event("COMPANY_CREATE", user_id=identity.user_id, entity="company", entity_id=company.id, company_id=company.id)
    return company


def update_company(identity, company: Company, data: dict) -> Company:
    fields = clean_company_fields(data, partial=True)
    for name, value in fields.items():
        setattr(company, name, value)
    db.session.commit()

    log_event(
        "COMPANY_UPDATE",
        user_id=identity.user_id,
        entity="company",
        entity_id=company.id,
        metadata={"fields": sorted(fields)},
        company_id=company.id,
    )
    return company


def dashboard_stats(company: Company) -> dict:
    with store_guard("dashboard"):
        total = (
            db.session.query(func.count(Booking.id))
            .filter(Booking.company_id == company.id)
            .scalar()
        )
        pending = (
            db.session.query(func.count(Booking.id))
            .filter(Booking.company_id == company.id, Booking.status == BookingStatus.PENDING)
            .scalar()
        )
        active_services = (
            db.session.query(func.count(Service.id))
            .filter(Service.company_id == company.id, Service.is_active.is_(True))
            .scalar()
        )
    return {
        "total_bookings": total or 0,
        "pending_bookings": pending or 0,
        "active_services": active_services or 0,
    }
