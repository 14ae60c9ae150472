# ------- checkout/utils/decorators.py -------
from functools import wraps
from flask import jsonify
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..utils.api import api_error
from ..model.user import User

def _identity_to_user_id(identity):
    try:
        return int(identity)
    except (TypeError, ValueError):
        return None

def _current_user():
    verify_jwt_in_request()
    uid = _identity_to_user_id(get_jwt_identity())
    return User.query.get(uid) if uid else None

def optional_user_id():
    """Identity of the caller if a valid bearer token was sent, else None (guest)."""
    verify_jwt_in_request(optional=True)
    uid = _identity_to_user_id(get_jwt_identity())
    if uid is None:
        return None
    user = User.query.get(uid)
    return user.id if user else None

def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return jsonify(api_error("Unauthorized")), 401
            if u.role not in roles:
                return jsonify(api_error(message or "Forbidden")), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator
