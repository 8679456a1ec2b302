from datetime import date, datetime

from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.company import Company
from models.schedule_exception import ScheduleException
from models.schedule_rule import WeeklyScheduleRule
from scheduling.intervals import TimeInterval, parse_hhmm
from security.ownership import owns_company, require_company_owner, visible_company
from utils.audit import log_event
from utils.auth_context import login_required

schedule_bp = Blueprint("schedule", __name__)


def _parse_window(data: dict):
    start = parse_hhmm(data.get("start_time") or "")
    end = parse_hhmm(data.get("end_time") or "")
    if TimeInterval(start, end).is_empty:
        return None
    return start, end


# ---------- weekly template ----------
@schedule_bp.put("/companies/<int:company_id>/schedule/<int:day_of_week>")
@require_company_owner
def upsert_schedule_rule(identity, company, day_of_week: int):
    if day_of_week < 0 or day_of_week > 6:
        return jsonify(error="day_of_week must be 0 (Sunday) to 6 (Saturday)"), 400

    data = request.get_json(silent=True) or {}
    window = _parse_window(data)
    if window is None:
        return jsonify(error="end_time must be after start_time"), 400
    is_active = bool(data.get("is_active", True))

    rule = WeeklyScheduleRule.query.filter_by(company_id=company.id, day_of_week=day_of_week).first()
    created = rule is None
    if created:
        rule = WeeklyScheduleRule(company_id=company.id, day_of_week=day_of_week)
        db.session.add(rule)

    rule.start_time, rule.end_time = window
    rule.is_active = is_active
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # lost a race with another insert for the same weekday
        return jsonify(error="Schedule for that day was changed concurrently, retry"), 409

    log_event(
        "SCHEDULE_UPSERT",
        user_id=identity.user_id,
        entity="schedule",
        entity_id=rule.id,
        metadata={"day_of_week": day_of_week, "is_active": is_active},
        company_id=company.id,
    )
    return jsonify(rule.to_dict()), 201 if created else 200


@schedule_bp.get("/companies/<int:company_id>/schedule")
def list_schedule(company_id: int):
    identity = getattr(g, "identity", None)
    company = db.session.get(Company, company_id)
    if not visible_company(identity, company):
        return jsonify(error="Company not found"), 404

    q = WeeklyScheduleRule.query.filter_by(company_id=company.id)
    if not owns_company(identity, company):
        q = q.filter_by(is_active=True)
    rows = q.order_by(WeeklyScheduleRule.day_of_week.asc()).all()
    return jsonify([r.to_dict() for r in rows]), 200


# ---------- date exceptions ----------
@schedule_bp.post("/companies/<int:company_id>/exceptions")
@require_company_owner
def create_exception(identity, company):
    data = request.get_json(silent=True) or {}
    date_str = (data.get("date") or "").strip()
    if not date_str:
        return jsonify(error="date is required"), 400
    try:
        day = date.fromisoformat(date_str)
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    is_closed = bool(data.get("is_closed", False))
    start = end = None
    if not is_closed:
        window = _parse_window(data)
        if window is None:
            return jsonify(error="end_time must be after start_time"), 400
        start, end = window

    exc = ScheduleException(
        company_id=company.id,
        date=day,
        is_closed=is_closed,
        start_time=start,
        end_time=end,
        reason=(data.get("reason") or "").strip()[:255],
    )
    db.session.add(exc)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        # Unique constraint uq_schedule_exception_company_date
        return jsonify(error="An exception already exists for that date"), 409

    log_event("SCHEDULE_EXCEPTION_CREATE", user_id=identity.user_id, entity="schedule_exception", entity_id=exc.id, company_id=company.id)
    return jsonify(exc.to_dict()), 201


@schedule_bp.get("/companies/<int:company_id>/exceptions")
def list_exceptions(company_id: int):
    company = db.session.get(Company, company_id)
    if not visible_company(getattr(g, "identity", None), company):
        return jsonify(error="Company not found"), 404

    # upcoming only unless ?from= says otherwise
    from_str = request.args.get("from")
    try:
        since = date.fromisoformat(from_str) if from_str else datetime.now().date()
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    rows = (
        ScheduleException.query
        .filter(ScheduleException.company_id == company.id, ScheduleException.date >= since)
        .order_by(ScheduleException.date.asc())
        .all()
    )
    return jsonify([e.to_dict() for e in rows]), 200


@schedule_bp.delete("/exceptions/<int:exception_id>")
@login_required
def delete_exception(exception_id: int):
    exc = db.session.get(ScheduleException, exception_id)
    if not exc:
        return jsonify(error="Exception not found"), 404
    company = db.session.get(Company, exc.company_id)
    if not owns_company(g.identity, company):
        return jsonify(error="Forbidden"), 403

    db.session.delete(exc)
    db.session.commit()

    log_event("SCHEDULE_EXCEPTION_DELETE", user_id=g.identity.user_id, entity="schedule_exception", entity_id=exception_id, company_id=company.id)
    return jsonify(message="Exception deleted"), 200
