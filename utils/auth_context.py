from dataclasses import dataclass
from functools import wraps
from typing import Optional
from flask import g, jsonify, request, current_app


@dataclass(frozen=True)
class Identity:
    """Caller as resolved by the upstream identity provider."""
    user_id: str
    email: Optional[str] = None


def identity_from_request() -> Optional[Identity]:
    user_header = current_app.config.get("IDENTITY_USER_HEADER", "X-User-Id")
    email_header = current_app.config.get("IDENTITY_EMAIL_HEADER", "X-User-Email")

    user_id = (request.headers.get(user_header) or "").strip()
    if not user_id:
        return None
    email = (request.headers.get(email_header) or "").strip().lower() or None
    return Identity(user_id=user_id, email=email)

def load_current_identity():
    # Stored per request only so decorators can see it; handlers pass it on explicitly
    g.identity = identity_from_request()

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "identity", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
