from flask import jsonify, request

from coffeeline.models import ROLE_ADMIN
from coffeeline.services.message_log import HISTORY_FILTERS, history_counts, list_messages
from coffeeline.services.policy import role_required
from . import bp


@bp.get("/messages")
@role_required(ROLE_ADMIN)
def messages():
    """Message log across every user."""
    status_filter = (request.args.get("status") or "all").lower()
    if status_filter not in HISTORY_FILTERS:
        status_filter = "all"
    everything = list_messages()
    items = everything if status_filter == "all" else list_messages(status_filter=status_filter)
    return jsonify(
        ok=True,
        status=status_filter,
        counts=history_counts(everything),
        items=[m.to_dict() for m in items],
    )
