from coffeeline.blueprints.webhooks.routes import twilio_signature
from coffeeline.extensions import db
from coffeeline.models import SmsMessage
from conftest import TWILIO_TOKEN

URL = "http://localhost/webhooks/sms"


def _post(client, form, token=TWILIO_TOKEN, signature=None):
    sig = signature if signature is not None else twilio_signature(token, URL, form)
    return client.post("/webhooks/sms", data=form, headers={"X-Twilio-Signature": sig})


def _seed(app, sid, status="sent"):
    with app.app_context():
        db.session.add(SmsMessage(recipient_phone="+15550000001", recipient_name="Ana", message="hi",
                                  status=status, provider_message_id=sid))
        db.session.commit()


def _status(app, sid):
    with app.app_context():
        return SmsMessage.query.filter_by(provider_message_id=sid).one().status


def test_signature_matches_known_value():
    # Same inputs and result as twilio.request_validator.RequestValidator
    params = {
        "CallSid": "CA1234567890ABCDE",
        "Caller": "+12349013030",
        "Digits": "1234",
        "From": "+12349013030",
        "To": "+18005551212",
    }
    assert twilio_signature("12345", "https://mycompany.com/myapp.php?foo=1&bar=2", params) == \
        "0/KCTR6DLpKmkAf8muzZqo1nDgQ="


def test_delivered_callback_updates_log(app, client):
    _seed(app, "SM100")
    r = _post(client, {"MessageSid": "SM100", "MessageStatus": "delivered"})
    assert r.status_code == 200
    assert r.get_json() == {"ok": True, "matched": True}
    assert _status(app, "SM100") == "delivered"


def test_undelivered_callback_marks_failed(app, client):
    _seed(app, "SM101")
    _post(client, {"MessageSid": "SM101", "MessageStatus": "undelivered", "ErrorCode": "30003"})
    with app.app_context():
        row = SmsMessage.query.filter_by(provider_message_id="SM101").one()
        assert row.status == "failed"
        assert row.error == "Twilio error 30003"


def test_bad_signature_rejected(app, client):
    _seed(app, "SM102")
    r = _post(client, {"MessageSid": "SM102", "MessageStatus": "delivered"}, signature="bogus")
    assert r.status_code == 401
    assert _status(app, "SM102") == "sent"


def test_unknown_sid_is_acknowledged(client):
    r = _post(client, {"MessageSid": "SMnope", "MessageStatus": "delivered"})
    assert r.status_code == 200
    assert r.get_json()["matched"] is False


def test_missing_fields(client):
    assert _post(client, {"MessageSid": "SM1"}).status_code == 400
