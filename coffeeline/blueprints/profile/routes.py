from flask import jsonify, request
from flask_login import current_user
from sqlalchemy.exc import SQLAlchemyError

from coffeeline.extensions import db
from coffeeline.services.policy import require_login
from coffeeline.utils.validators import clean_str, normalize_phone
from . import bp


@bp.get("")
@require_login
def show():
    return jsonify(ok=True, profile=current_user.to_dict())


@bp.post("")
@require_login
def update():
    """Only full_name and phone are editable here; email and role are not."""
    data = (request.get_json(silent=True) or {}) if request.is_json else (request.form or {})

    full_name = clean_str(data.get("full_name"), max_len=200)
    raw_phone = clean_str(data.get("phone"), max_len=32)
    phone = normalize_phone(raw_phone) if raw_phone else None
    if raw_phone and not phone:
        return jsonify(ok=False, errors={"phone": "Phone number is not valid."}), 400

    current_user.full_name = full_name
    current_user.phone = phone
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        return jsonify(ok=False, error="Failed to update profile", kind="persistence"), 500
    return jsonify(ok=True, profile=current_user.to_dict())
