"""
Stateless SMS relay: POST /functions/send-sms.

Single ``{to, message, customerName?}`` or bulk ``{recipients: [...]}``.
Open to any origin (CORS); nothing is written to the message log here.
"""
import hmac
import json

from flask import current_app, jsonify, request

from coffeeline.errors import ConfigurationError, GatewayError, ValidationError
from coffeeline.extensions import csrf, limiter
from coffeeline.services.dispatch import BulkDispatcher, Recipient
from coffeeline.services.sms_gateway import build_gateway
from . import bp

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


@bp.after_request
def _cors(resp):
    for k, v in CORS_HEADERS.items():
        resp.headers[k] = v
    return resp


def _authorized() -> bool:
    """When SMS_FUNCTION_TOKEN is set, callers must send it as a Bearer token."""
    expected = current_app.config.get("SMS_FUNCTION_TOKEN")
    if not expected:
        return True
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    return scheme.lower() == "bearer" and hmac.compare_digest(token.strip(), expected)


@csrf.exempt
@bp.route("/send-sms", methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"])
@limiter.limit("60 per minute")
def send_sms():
    if request.method == "OPTIONS":
        return "", 200
    if request.method != "POST":
        return jsonify(error="Method not allowed"), 405
    if not _authorized():
        return jsonify(success=False, error="Unauthorized"), 401

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify(success=False, error="Request body must be a JSON object"), 400

    # Callers of this endpoint only understand {success: false, error}
    try:
        return _relay(body)
    except Exception as e:
        current_app.logger.exception(json.dumps({"event": "sms_function", "outcome": "error"}))
        return jsonify(success=False, error=str(e) or type(e).__name__), 500


def _relay(body: dict):
    try:
        gateway = build_gateway()
    except ConfigurationError as e:
        current_app.logger.error(json.dumps({"event": "sms_function", "outcome": "not_configured"}))
        return jsonify(success=False, error=str(e)), 500

    dispatcher = BulkDispatcher(gateway)

    if isinstance(body.get("recipients"), list):
        recipients = [Recipient.from_dict(r if isinstance(r, dict) else {}) for r in body["recipients"]]
        return jsonify(dispatcher.dispatch(recipients).to_dict()), 200

    recipient = Recipient.from_dict(body)
    try:
        receipt = gateway.send(recipient.phone, recipient.body)
    except ValidationError:
        return jsonify(success=False, error="Missing required fields: to, message"), 400
    except GatewayError as e:
        current_app.logger.warning(json.dumps({
            "event": "sms_function",
            "to": recipient.phone,
            "outcome": "failed",
            "http_status": e.http_status,
            "error": e.reason,
        }))
        return jsonify(success=False, error=e.reason), 500

    return jsonify(success=True, messageId=receipt.provider_id, status=receipt.status, to=recipient.phone), 200
