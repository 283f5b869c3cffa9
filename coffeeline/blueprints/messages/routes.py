import json

from flask import current_app, jsonify, request
from flask_login import current_user

from coffeeline.errors import ConfigurationError, PersistenceError
from coffeeline.extensions import db, limiter
from coffeeline.models import MessageTemplate
from coffeeline.services import feedback_store
from coffeeline.services.dispatch import BulkDispatcher, BulkResult, Recipient
from coffeeline.services.message_log import (
    HISTORY_FILTERS,
    MessageLogWriter,
    SendAttempt,
    history_counts,
    list_messages,
)
from coffeeline.services.policy import owned, require_login
from coffeeline.services.sms_gateway import build_gateway
from coffeeline.services.templates import extract_variables, render_template_body
from coffeeline.utils.validators import clean_str, normalize_phone
from . import bp

# Fills {name} when neither the request nor past feedback names the recipient
DEFAULT_NAME = "Customer"


def _payload() -> dict:
    return (request.get_json(silent=True) or {}) if request.is_json else (request.form.to_dict() or {})


def _record_unsent(writer: MessageLogWriter, recipients, reason: str) -> int:
    """Log every recipient as failed when no send could be attempted. Returns log write failures."""
    failures = 0
    for r in recipients:
        try:
            writer.record(SendAttempt(to=r.phone, body=r.body, success=False, display_name=r.display_name, error=reason))
        except PersistenceError:
            failures += 1
    return failures


def _template_body(data: dict):
    """Body from the request, or from a saved template when template_id is given."""
    template_id = data.get("template_id")
    if template_id in (None, ""):
        message = data.get("message")
        return "" if message is None else str(message)
    try:
        tid = int(template_id)
    except (TypeError, ValueError):
        return None
    tpl = owned(MessageTemplate).filter(MessageTemplate.id == tid).first()
    return tpl.content if tpl else None


@bp.post("/send")
@require_login
@limiter.limit("30 per minute")
def send_single():
    data = _payload()
    raw_to = data.get("to") or data.get("phone")
    to = normalize_phone(raw_to)
    body = _template_body(data)
    name = clean_str(data.get("customerName") or data.get("customer_name"), max_len=200)

    errors = {}
    if not to:
        errors["to"] = "A valid phone number is required." if raw_to else "Phone number is required."
    if body is None:
        errors["template_id"] = "Template not found."
    elif not body.strip():
        errors["message"] = "Message is required."
    if errors:
        return jsonify(ok=False, errors=errors), 400

    body = render_template_body(body, {"name": name or DEFAULT_NAME, "phone": to})
    recipient = Recipient(phone=to, body=body, display_name=name)
    writer = MessageLogWriter(current_user.id)

    try:
        gateway = build_gateway()
    except ConfigurationError as e:
        current_app.logger.error(json.dumps({"event": "sms_send", "to": to, "outcome": "not_configured"}))
        log_failures = _record_unsent(writer, [recipient], str(e))
        resp = {"ok": False, "error": str(e), "kind": "configuration"}
        if log_failures:
            resp["logError"] = "Could not save message log."
        return jsonify(resp), 500

    outcome = BulkDispatcher(gateway, log_writer=writer).send_one(recipient)

    if outcome.log_error:
        # The send result stands; only the history write failed
        return jsonify(
            ok=False,
            kind="persistence",
            error=outcome.log_error,
            sent=outcome.success,
            messageId=outcome.message_id,
            to=to,
        ), 500
    if not outcome.success:
        return jsonify(ok=False, kind="gateway", error=outcome.error, to=to), 502
    return jsonify(ok=True, messageId=outcome.message_id, status=outcome.status, to=to), 200


@bp.post("/bulk")
@require_login
@limiter.limit("10 per minute")
def send_bulk():
    """
    Either ``recipients: [{to, message?, customerName?}]`` or
    ``phones: [...]`` with one ``message`` (or ``template_id``).
    Placeholders ({name}, {phone}, {account}, {location}) are filled per recipient.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify(ok=False, errors={"body": "Request body must be a JSON object."}), 400
    shared_body = _template_body(data)
    if shared_body is None:
        return jsonify(ok=False, errors={"template_id": "Template not found."}), 400

    customers = {c["phone_number"]: c for c in feedback_store.list_customers()}

    raw = data.get("recipients")
    if raw is None:
        raw = [{"to": p} for p in (data.get("phones") or [])]
    if not isinstance(raw, list):
        return jsonify(ok=False, errors={"recipients": "Must be a list."}), 400

    recipients, errors = [], {}
    for i, item in enumerate(raw):
        item = item if isinstance(item, dict) else {"to": item}
        to = normalize_phone(item.get("to") or item.get("phone"))
        if not to:
            errors[f"recipients[{i}].to"] = "A valid phone number is required."
            continue
        customer = customers.get(to) or {}
        name = clean_str(item.get("customerName"), max_len=200) or customer.get("customer_name") or DEFAULT_NAME
        body = str(item["message"]) if item.get("message") else shared_body
        if not (body or "").strip():
            errors[f"recipients[{i}].message"] = "Message is required."
            continue
        values = {
            "name": name,
            "phone": to,
            "account": customer.get("account_number"),
            "location": customer.get("customer_location"),
        }
        if isinstance(item.get("values"), dict):
            values.update({k: v for k, v in item["values"].items() if isinstance(k, str)})
        recipients.append(Recipient(phone=to, body=render_template_body(body, values), display_name=name))

    if errors:
        return jsonify(ok=False, errors=errors), 400
    if not recipients:
        return jsonify(ok=True, logFailures=0, **BulkResult().to_dict()), 200

    writer = MessageLogWriter(current_user.id)
    try:
        gateway = build_gateway()
    except ConfigurationError as e:
        current_app.logger.error(json.dumps({"event": "sms_bulk", "total": len(recipients), "outcome": "not_configured"}))
        log_failures = _record_unsent(writer, recipients, str(e))
        return jsonify(ok=False, error=str(e), kind="configuration", logFailures=log_failures), 500

    result = BulkDispatcher(gateway, log_writer=writer).dispatch(recipients)
    return jsonify(ok=True, logFailures=result.log_failures, **result.to_dict()), 200


@bp.get("/history")
@require_login
def history():
    status_filter = (request.args.get("status") or "all").lower()
    if status_filter not in HISTORY_FILTERS:
        return jsonify(ok=False, errors={"status": f"Must be one of {', '.join(HISTORY_FILTERS)}."}), 400
    everything = list_messages(current_user.id)
    items = everything if status_filter == "all" else list_messages(current_user.id, status_filter)
    return jsonify(
        ok=True,
        status=status_filter,
        counts=history_counts(everything),
        items=[m.to_dict() for m in items],
    )


# ----- Templates -----

@bp.get("/templates")
@require_login
def templates_index():
    items = (
        owned(MessageTemplate)
        .order_by(MessageTemplate.created_at.desc(), MessageTemplate.id.desc())
        .all()
    )
    return jsonify(ok=True, items=[t.to_dict() for t in items])


@bp.post("/templates")
@require_login
def templates_create():
    data = _payload()
    name = clean_str(data.get("name"), max_len=100)
    content = (data.get("content") or "").strip()

    errors = {}
    if not name:
        errors["name"] = "Name is required."
    if not content:
        errors["content"] = "Content is required."
    if errors:
        return jsonify(ok=False, errors=errors), 400

    tpl = MessageTemplate(
        user_id=current_user.id,
        name=name,
        content=content,
        variables=extract_variables(content),
    )
    db.session.add(tpl)
    db.session.commit()
    return jsonify(ok=True, template=tpl.to_dict()), 201


@bp.route("/templates/<int:template_id>", methods=["DELETE"])
@require_login
def templates_delete(template_id: int):
    tpl = owned(MessageTemplate).filter(MessageTemplate.id == template_id).first_or_404()
    db.session.delete(tpl)
    db.session.commit()
    return jsonify(ok=True), 200
