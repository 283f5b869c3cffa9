from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError

from coffeeline.errors import PersistenceError
from coffeeline.extensions import db
from coffeeline.models import SmsMessage
from coffeeline.services.message_log import (
    MessageLogWriter,
    SendAttempt,
    apply_status_callback,
    history_counts,
    list_messages,
)


class BrokenSession:
    def __init__(self):
        self.rolled_back = False

    def add(self, obj):
        pass

    def commit(self):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    def rollback(self):
        self.rolled_back = True


def test_records_successful_attempt(app, make_user):
    uid = make_user()
    with app.app_context():
        at = datetime(2026, 10, 1, 12, 0, 0)
        entry = MessageLogWriter(uid).record(SendAttempt(
            to="+15550000001", body="Hi Ana", success=True, display_name="Ana",
            provider_id="SM1", provider_status="queued", attempted_at=at,
        ))
        row = db.session.get(SmsMessage, entry.id)
        assert row.user_id == uid
        assert row.status == "sent"
        assert row.provider_message_id == "SM1"
        assert row.sent_at == at
        assert row.recipient_name == "Ana"
        assert row.message == "Hi Ana"


def test_records_failed_attempt_with_reason_and_default_name(app):
    with app.app_context():
        entry = MessageLogWriter(None).record(SendAttempt(
            to="+15550000001", body="Hi", success=False, error="Twilio API Error: bad number",
        ))
        assert entry.status == "failed"
        assert entry.sent_at is None
        assert entry.provider_message_id is None
        assert entry.recipient_name == "Unknown"
        assert entry.error == "Twilio API Error: bad number"


def test_write_failure_raises_persistence_error_and_rolls_back(app):
    with app.app_context():
        session = BrokenSession()
        with pytest.raises(PersistenceError):
            MessageLogWriter(1, session=session).record(SendAttempt(to="+1555", body="x", success=True))
        assert session.rolled_back


def _seed(uid, status, sid=None, created=None):
    m = SmsMessage(
        user_id=uid, recipient_phone="+15550000001", recipient_name="Ana",
        message="hi", status=status, provider_message_id=sid,
        created_at=created or datetime(2026, 10, 1),
    )
    db.session.add(m)
    db.session.commit()
    return m


def test_history_filters_and_counts(app, make_user):
    uid = make_user()
    other = make_user(email="other@example.com")
    with app.app_context():
        _seed(uid, "sent", created=datetime(2026, 10, 1))
        _seed(uid, "delivered", created=datetime(2026, 10, 3))
        _seed(uid, "failed", created=datetime(2026, 10, 2))
        _seed(uid, "pending", created=datetime(2026, 10, 4))
        _seed(other, "sent")

        mine = list_messages(uid)
        assert [m.status for m in mine] == ["pending", "delivered", "failed", "sent"]
        assert history_counts(mine) == {"total": 4, "sent": 2, "failed": 1, "pending": 1}
        assert {m.status for m in list_messages(uid, "sent")} == {"sent", "delivered"}
        assert [m.status for m in list_messages(uid, "failed")] == ["failed"]
        assert len(list_messages()) == 5


def test_status_callback_moves_sent_to_delivered(app):
    with app.app_context():
        _seed(None, "sent", sid="SM42")
        entry = apply_status_callback("SM42", "delivered")
        assert entry.status == "delivered"


def test_status_callback_never_downgrades_terminal_status(app):
    with app.app_context():
        _seed(None, "delivered", sid="SM42")
        assert apply_status_callback("SM42", "sent").status == "delivered"
        assert apply_status_callback("SM42", "failed").status == "delivered"


def test_status_callback_records_failure_reason(app):
    with app.app_context():
        _seed(None, "sent", sid="SM7")
        entry = apply_status_callback("SM7", "undelivered", error="Twilio error 30003")
        assert entry.status == "failed"
        assert entry.error == "Twilio error 30003"


def test_status_callback_unknown_sid_or_status(app):
    with app.app_context():
        assert apply_status_callback("SMnope", "delivered") is None
        _seed(None, "sent", sid="SM8")
        assert apply_status_callback("SM8", "weird").status == "sent"
