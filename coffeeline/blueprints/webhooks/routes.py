import base64
import hashlib
import hmac
import json

from flask import abort, current_app, jsonify, request

from coffeeline.errors import PersistenceError
from coffeeline.extensions import csrf
from coffeeline.services.message_log import apply_status_callback
from . import bp


def twilio_signature(auth_token: str, url: str, params) -> str:
    """
    Twilio request signature: base64(HMAC-SHA1(token, url + k1 + v1 + k2 + v2 ...))
    with form keys sorted; repeated keys contribute each value in sorted order.
    """
    payload = url
    for key in sorted(params.keys()):
        values = params.getlist(key) if hasattr(params, "getlist") else [params[key]]
        for value in sorted(values):
            payload += key + value
    mac = hmac.new(auth_token.encode("utf-8"), payload.encode("utf-8"), hashlib.sha1)
    return base64.b64encode(mac.digest()).decode("ascii")


def _valid_signature() -> bool:
    token = current_app.config.get("TWILIO_AUTH_TOKEN")
    sig = request.headers.get("X-Twilio-Signature", "")
    if not token or not sig:
        return False
    # Behind a proxy request.url differs from what Twilio called; prefer the configured URL
    url = current_app.config.get("SMS_STATUS_CALLBACK_URL") or request.url
    return hmac.compare_digest(twilio_signature(token, url, request.form), sig)


@csrf.exempt
@bp.post("/sms")
def sms_status():
    if not _valid_signature():
        abort(401)

    sid = (request.form.get("MessageSid") or request.form.get("SmsSid") or "").strip()
    provider_status = (request.form.get("MessageStatus") or request.form.get("SmsStatus") or "").strip()
    if not sid or not provider_status:
        return jsonify(ok=False, error="MessageSid and MessageStatus are required"), 400

    error_code = request.form.get("ErrorCode")
    try:
        entry = apply_status_callback(sid, provider_status, error=f"Twilio error {error_code}" if error_code else None)
    except PersistenceError as e:
        current_app.logger.error(json.dumps({"event": "sms_status_callback", "provider_msg_id": sid, "error": e.reason}))
        # Non-2xx makes Twilio retry the callback
        return jsonify(ok=False, error=e.reason), 500

    current_app.logger.info(json.dumps({
        "event": "sms_status_callback",
        "provider_msg_id": sid,
        "provider_status": provider_status,
        "matched": entry is not None,
        "status": entry.status if entry is not None else None,
    }))
    return jsonify(ok=True, matched=entry is not None), 200
