import json
from flask import request, has_request_context
from models import db
from models.audit_log import AuditLog


def _request_origin():
    if not has_request_context():
        return None, None
    forwarded = request.headers.get("X-Forwarded-For", "")
    ip = forwarded.split(",")[0].strip() or request.remote_addr
    user_agent = request.headers.get("User-Agent", "")
    return ip, (user_agent[:255] or None)


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None,
              company_id=None, commit=True):
    """
    Record a business event. Pass commit=False to ride along with the
    caller's transaction (status changes, bulk completion).
    """
    ip, user_agent = _request_origin()

    db.session.add(AuditLog(
        company_id=company_id,
        actor_id=str(user_id) if user_id is not None else None,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=ip,
        user_agent=user_agent,
        details=json.dumps(metadata, default=str) if metadata else None,
    ))
    if commit:
        db.session.commit()
