from flask import request, jsonify, make_response
from flask_login import current_user

from coffeeline.errors import PersistenceError, ValidationError
from coffeeline.extensions import limiter
from coffeeline.services import feedback_store
from coffeeline.services.feedback_store import FeedbackFilter
from coffeeline.services.policy import require_login
from coffeeline.services.qr import parse_qr_payload
from coffeeline.utils.validators import clean_str, parse_rating, validate_feedback
from . import bp


def _filter_from_args() -> FeedbackFilter:
    # An unparsable quality is treated as "no filter", like an empty dropdown
    return FeedbackFilter(
        search=clean_str(request.args.get("q"), max_len=100),
        quality=parse_rating(request.args.get("quality")),
    )


@bp.post("")
@require_login
@limiter.limit("60 per minute")
def create():
    """Accepts JSON (fetch) or a classic form post."""
    data = (request.get_json(silent=True) or {}) if request.is_json else (request.form or {})
    try:
        cleaned = validate_feedback(data)
    except ValidationError as e:
        return jsonify(ok=False, errors=e.errors), 400

    try:
        fb = feedback_store.create_feedback(current_user.id, cleaned)
    except PersistenceError as e:
        return jsonify(ok=False, error=e.reason, kind="persistence"), 500

    feedback_store.log_submission(fb)
    return jsonify(ok=True, feedback=fb.to_dict()), 201


@bp.get("")
@require_login
def index():
    flt = _filter_from_args()
    items = feedback_store.list_feedback(flt)
    return jsonify(
        ok=True,
        items=[fb.to_dict() for fb in items],
        shown=len(items),
        total=feedback_store.count_feedback(),
        q=flt.search or "",
        quality=flt.quality,
    )


@bp.get("/stats")
@require_login
def stats():
    records = feedback_store.list_feedback()
    return jsonify(ok=True, **feedback_store.compute_stats(records).to_dict())


@bp.get("/export.csv")
@require_login
def export_csv():
    items = feedback_store.list_feedback(_filter_from_args())
    resp = make_response(feedback_store.export_csv(items))
    resp.headers["Content-Type"] = "text/csv; charset=utf-8"
    resp.headers["Content-Disposition"] = f'attachment; filename="{feedback_store.export_filename()}"'
    resp.headers["Cache-Control"] = "no-store"
    return resp


@bp.get("/customers")
@require_login
def customers():
    return jsonify(ok=True, customers=feedback_store.list_customers())


@bp.post("/scan")
@require_login
def scan():
    """Decoded QR text in, form prefill out."""
    data = request.get_json(silent=True) or {}
    try:
        prefill = parse_qr_payload(data.get("text") or "")
    except ValidationError as e:
        return jsonify(ok=False, errors=e.errors), 400
    return jsonify(ok=True, prefill=prefill.to_dict())
