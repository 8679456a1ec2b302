from functools import wraps
from flask import g, jsonify

from models import db
from models.company import Company


def owns_company(identity, company) -> bool:
    if identity is None or company is None:
        return False
    return company.owner_id == identity.user_id


def visible_company(identity, company) -> bool:
    """Active companies are public; inactive ones only to their owner."""
    if company is None:
        return False
    return company.is_active or owns_company(identity, company)


def require_company_owner(fn):
    """
    Usage: @require_company_owner on a route with a <company_id> parameter.
    The handler receives identity= and company= keyword arguments.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        identity = getattr(g, "identity", None)
        if identity is None:
            return jsonify(error="Authentication required"), 401

        company = db.session.get(Company, kwargs.pop("company_id"))
        if company is None:
            return jsonify(error="Company not found"), 404
        if not owns_company(identity, company):
            return jsonify(error="Forbidden"), 403

        return fn(*args, identity=identity, company=company, **kwargs)
    return wrapper
