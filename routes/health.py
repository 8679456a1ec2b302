from flask import Blueprint, jsonify
from sqlalchemy import text

from models import db
from services.availability_service import store_guard

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    with store_guard("health check"):
        db.session.execute(text("SELECT 1"))
    return jsonify(status="ok"), 200
