from flask import Blueprint, request, jsonify, g

from models import db
from models.audit_log import AuditLog
from models.company import Company, CATEGORIES
from models.notification import Notification
from security.ownership import require_company_owner, visible_company
from services.company_service import create_company, update_company, dashboard_stats, normalize_tags
from services.search_service import search_companies
from utils.auth_context import login_required

company_bp = Blueprint("company", __name__, url_prefix="/companies")


@company_bp.post("")
@login_required
def register_company():
    data = request.get_json(silent=True) or {}
    company = create_company(g.identity, data)
    return jsonify(company.to_dict()), 201


@company_bp.get("")
def list_public_companies():
    text = (request.args.get("q") or "").strip()
    city = (request.args.get("city") or "").strip()
    tags = normalize_tags(request.args.get("tags") or "")

    rows = search_companies(text=text, tags=tags, city=city)
    return jsonify([c.to_dict() for c in rows[:200]]), 200


@company_bp.get("/categories")
def list_categories():
    return jsonify(list(CATEGORIES)), 200


@company_bp.get("/me")
@login_required
def my_company():
    company = Company.query.filter_by(owner_id=g.identity.user_id).first()
    if not company:
        return jsonify(error="No company profile found"), 404
    return jsonify(company.to_dict()), 200


@company_bp.get("/<int:company_id>")
def get_company(company_id: int):
    company = db.session.get(Company, company_id)
    if not visible_company(getattr(g, "identity", None), company):
        return jsonify(error="Company not found"), 404
    return jsonify(company.to_dict()), 200


@company_bp.patch("/<int:company_id>")
@require_company_owner
def edit_company(identity, company):
    data = request.get_json(silent=True) or {}
    update_company(identity, company, data)
    return jsonify(company.to_dict()), 200


@company_bp.get("/<int:company_id>/dashboard")
@require_company_owner
def company_dashboard(identity, company):
    return jsonify(company=company.to_dict(), stats=dashboard_stats(company)), 200


@company_bp.get("/<int:company_id>/notifications")
@require_company_owner
def company_notifications(identity, company):
    rows = (
        Notification.query
        .filter_by(company_id=company.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(200)
        .all()
    )
    return jsonify([n.to_dict() for n in rows]), 200


@company_bp.get("/<int:company_id>/audit")
@require_company_owner
def company_audit_trail(identity, company):
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    q = AuditLog.query.filter_by(company_id=company.id)
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action == action.strip().upper())

    rows = q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
