import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import pytest
import requests

from coffeeline import create_app
from coffeeline.extensions import db
from coffeeline.models import User

TWILIO_SID = "ACtest0000000000000000000000000000"
TWILIO_TOKEN = "test-auth-token"
TWILIO_FROM = "+15550001111"


class FakeResponse:
    def __init__(self, status_code=201, payload=None, reason=""):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.text = "" if payload is None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeTwilioSession:
    """Stands in for requests.Session; answers Messages.json POSTs."""

    def __init__(self, responder=None):
        self.calls = []
        self._responder = responder

    def post(self, url, data=None, auth=None, timeout=None, **kwargs):
        self.calls.append({"url": url, "data": dict(data or {}), "auth": auth, "timeout": timeout})
        if self._responder is not None:
            resp = self._responder(url, data or {})
            if isinstance(resp, Exception):
                raise resp
            return resp
        return FakeResponse(201, {"sid": f"SM{len(self.calls):04d}", "status": "queued"})


def fail_numbers(*numbers, status=400, message="The 'To' number is not a valid phone number."):
    """Responder: reject the given To numbers, accept everything else."""
    counter = {"n": 0}

    def _respond(url, data):
        counter["n"] += 1
        if data.get("To") in numbers:
            return FakeResponse(status, {"code": 21211, "message": message})
        return FakeResponse(201, {"sid": f"SMok{counter['n']:04d}", "status": "queued"})
    return _respond


@pytest.fixture(scope="session")
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "WTF_CSRF_ENABLED": False,
        "RATELIMIT_ENABLED": False,
        "TWILIO_ACCOUNT_SID": TWILIO_SID,
        "TWILIO_AUTH_TOKEN": TWILIO_TOKEN,
        "TWILIO_PHONE_NUMBER": TWILIO_FROM,
        "SMS_STATUS_CALLBACK_URL": None,
        "SMS_FUNCTION_TOKEN": None,
        "APP_BASE_URL": "http://example.test",
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

@pytest.fixture()
def make_user(app):
    """Create a user; returns its id."""
    def _make(email="staff@example.com", password="password123", role="customer", full_name=None):
        with app.app_context():
            u = User(email=email, role=role, full_name=full_name, is_active=True)
            u.set_password(password)
            db.session.add(u)
            db.session.commit()
            return u.id
    return _make

@pytest.fixture()
def login(client):
    """Seed the Flask-Login session for a user id."""
    def _login(user_id):
        with client.session_transaction() as sess:
            sess["_user_id"] = str(user_id)
            sess["_fresh"] = True
        return client
    return _login

@pytest.fixture()
def twilio(monkeypatch):
    """Every gateway built during the test posts to this fake session."""
    fake = FakeTwilioSession()
    monkeypatch.setattr(requests, "Session", lambda: fake)
    return fake
