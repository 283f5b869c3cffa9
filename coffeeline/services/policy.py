"""Access rules for views: signed-in staff, admin role, and per-owner rows."""
from functools import wraps

from flask import abort, jsonify, request
from flask_login import current_user

_ERROR_NAMES = {401: "unauthorized", 403: "forbidden", 404: "not_found"}


def wants_json() -> bool:
    accept = (request.headers.get("Accept") or "").lower()
    return "application/json" in accept or request.is_json or request.path.endswith((".json", ".csv"))


def _deny(code: int):
    if wants_json():
        return jsonify({"error": _ERROR_NAMES[code], "code": code}), code
    abort(code)


def require_login(fn):
    @wraps(fn)
    def _wrap(*args, **kwargs):
        if not current_user.is_authenticated:
            return _deny(401)
        return fn(*args, **kwargs)
    return _wrap


def role_required(*roles):
    """Signed in and holding one of ``roles`` (see models.user.ROLES)."""
    def deco(fn):
        @wraps(fn)
        @require_login
        def _wrap(*args, **kwargs):
            if current_user.role not in roles:
                return _deny(403)
            return fn(*args, **kwargs)
        return _wrap
    return deco


def owned(model):
    """Query over ``model`` rows belonging to the signed-in user."""
    return model.query.filter(model.user_id == current_user.id)
