from coffeeline.extensions import db
from coffeeline.models import User


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.get_json() == {"status": "ok"}


def test_register_creates_customer_and_logs_in(app, client):
    r = client.post("/auth/register", data={"email": "New@Example.com", "password": "longenough", "full_name": "  Bea  Ruiz "})
    assert r.status_code == 302
    with app.app_context():
        u = User.query.filter_by(email="new@example.com").one()
        assert u.role == "customer"
        assert u.full_name == "Bea Ruiz"
    assert client.get("/profile").get_json()["profile"]["email"] == "new@example.com"


def test_register_rejects_short_password_and_duplicates(client, make_user):
    make_user(email="taken@example.com")
    assert client.post("/auth/register", data={"email": "x@example.com", "password": "short"}).status_code == 400
    assert client.post("/auth/register", data={"email": "nope", "password": "longenough"}).status_code == 400
    r = client.post("/auth/register", data={"email": "taken@example.com", "password": "longenough"})
    assert r.status_code == 409


def test_login_and_logout(client, make_user):
    make_user(email="staff@example.com", password="password123")
    bad = client.post("/auth/login", data={"email": "staff@example.com", "password": "wrong"})
    assert bad.status_code == 400

    r = client.post("/auth/login?next=/feedback", data={"email": "STAFF@example.com", "password": "password123"})
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/feedback")
    assert client.get("/profile").status_code == 200

    client.post("/auth/logout")
    assert client.get("/profile", headers={"Accept": "application/json"}).status_code == 401


def test_login_ignores_external_next(client, make_user):
    make_user(email="staff@example.com", password="password123")
    r = client.post("/auth/login?next=//evil.example", data={"email": "staff@example.com", "password": "password123"})
    assert r.status_code == 302
    assert "evil.example" not in r.headers["Location"]


def test_inactive_user_cannot_log_in(app, client, make_user):
    uid = make_user(email="gone@example.com", password="password123")
    with app.app_context():
        db.session.get(User, uid).is_active = False
        db.session.commit()
    r = client.post("/auth/login", data={"email": "gone@example.com", "password": "password123"})
    assert r.status_code == 400


def test_profile_update_only_touches_name_and_phone(app, login, make_user):
    uid = make_user(email="staff@example.com")
    client = login(uid)
    r = client.post("/profile", json={
        "full_name": "Dee Staff",
        "phone": "+1 (555) 000-0009",
        "email": "hijack@example.com",
        "role": "admin",
    })
    assert r.status_code == 200
    profile = r.get_json()["profile"]
    assert profile["full_name"] == "Dee Staff"
    assert profile["phone"] == "+15550000009"
    assert profile["email"] == "staff@example.com"
    assert profile["role"] == "customer"


def test_profile_rejects_bad_phone(login, make_user):
    client = login(make_user())
    r = client.post("/profile", json={"full_name": "X", "phone": "12ab"})
    assert r.status_code == 400
    assert "phone" in r.get_json()["errors"]


def test_json_login_returns_profile(client, make_user):
    make_user(email="api@example.com", password="password123", full_name="Api User")
    r = client.post("/auth/login", json={"email": "api@example.com", "password": "password123"})
    assert r.status_code == 200
    assert r.get_json()["profile"]["full_name"] == "Api User"

    out = client.post("/auth/logout", json={})
    assert out.get_json() == {"ok": True}
    r = client.post("/auth/login", json={"email": "api@example.com", "password": "nope"})
    assert r.status_code == 400
    assert r.get_json() == {"ok": False, "error": "Invalid credentials"}
