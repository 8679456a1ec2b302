from decimal import Decimal, InvalidOperation

from flask import Blueprint, request, jsonify, g

from models import db
from models.company import Company
from models.service import Service
from security.ownership import owns_company, require_company_owner, visible_company
from utils.audit import log_event
from utils.auth_context import login_required

catalog_bp = Blueprint("catalog", __name__)


def _parse_price(value):
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return None
    if price < 0:
        return None
    return price


def _parse_duration(value):
    if isinstance(value, bool):
        return None
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return None
    if minutes <= 0 or str(minutes) != str(value).strip():
        return None
    return minutes


def _apply_service_fields(service: Service, data: dict, partial: bool):
    """Returns an error message, or None when the fields were applied."""
    if "name" in data or not partial:
        name = (data.get("name") or "").strip()
        if not name:
            return "Service name required"
        service.name = name[:160]
    if "description" in data:
        service.description = (data.get("description") or "").strip()
    if "price" in data or not partial:
        price = _parse_price(data.get("price", 0))
        if price is None:
            return "price must be a non-negative amount"
        service.price = price
    if "duration_minutes" in data or not partial:
        minutes = _parse_duration(data.get("duration_minutes", 60))
        if minutes is None:
            return "duration_minutes must be a positive integer"
        service.duration_minutes = minutes
    if "is_active" in data:
        service.is_active = bool(data.get("is_active"))
    return None


@catalog_bp.post("/companies/<int:company_id>/services")
@require_company_owner
def create_service(identity, company):
    data = request.get_json(silent=True) or {}
    service = Service(company_id=company.id)
    error = _apply_service_fields(service, data, partial=False)
    if error:
        return jsonify(error=error), 400

    db.session.add(service)
    db.session.commit()

    log_event("SERVICE_CREATE", user_id=identity.user_id, entity="service", entity_id=service.id, company_id=company.id)
    return jsonify(service.to_dict()), 201


@catalog_bp.get("/companies/<int:company_id>/services")
def list_services(company_id: int):
    identity = getattr(g, "identity", None)
    company = db.session.get(Company, company_id)
    if not visible_company(identity, company):
        return jsonify(error="Company not found"), 404

    q = Service.query.filter_by(company_id=company.id)
    # owners also see their inactive services
    if not owns_company(identity, company):
        q = q.filter_by(is_active=True)

    rows = q.order_by(Service.price.asc(), Service.id.asc()).all()
    return jsonify([s.to_dict() for s in rows]), 200


def _owned_service(service_id: int):
    service = db.session.get(Service, service_id)
    if not service:
        return None, (jsonify(error="Service not found"), 404)
    if not owns_company(g.identity, service.company):
        return None, (jsonify(error="Forbidden"), 403)
    return service, None


@catalog_bp.patch("/services/<int:service_id>")
@login_required
def edit_service(service_id: int):
    service, failure = _owned_service(service_id)
    if failure:
        return failure

    data = request.get_json(silent=True) or {}
    error = _apply_service_fields(service, data, partial=True)
    if error:
        db.session.rollback()
        return jsonify(error=error), 400
    db.session.commit()

    log_event("SERVICE_UPDATE", user_id=g.identity.user_id, entity="service", entity_id=service.id, company_id=service.company_id)
    return jsonify(service.to_dict()), 200


@catalog_bp.delete("/services/<int:service_id>")
@login_required
def delete_service(service_id: int):
    service, failure = _owned_service(service_id)
    if failure:
        return failure

    # bookings for this service go with it (relationship cascade)
    company_id = service.company_id
    db.session.delete(service)
    db.session.commit()

    log_event("SERVICE_DELETE", user_id=g.identity.user_id, entity="service", entity_id=service_id, company_id=company_id)
    return jsonify(message="Service deleted"), 200
