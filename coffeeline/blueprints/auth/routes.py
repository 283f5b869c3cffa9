from flask import jsonify, render_template, request, redirect, url_for
from flask_login import login_user, logout_user, current_user
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from coffeeline.extensions import db, limiter
from coffeeline.models import User, ROLE_CUSTOMER
from coffeeline.services.policy import wants_json
from coffeeline.utils.validators import clean_str, is_valid_email
from . import bp

MIN_PASSWORD_LEN = 8


def _form() -> dict:
    """Browser forms post form-encoded; the SPA and scripts post JSON."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form


def _login_email_scope():
    email = (_form().get("email") or "").strip().lower()
    return f"login-email:{email or 'missing'}"


# Internal paths only ("/feedback"); no absolute or protocol-relative URLs
def _safe_next_path(next_raw: str) -> str:
    next_raw = (next_raw or "").strip()
    if next_raw.startswith("/") and not next_raw.startswith("//"):
        return next_raw
    return url_for("main.home")


def _find_user(email: str):
    return db.session.execute(
        db.select(User).where(func.lower(User.email) == email.lower())
    ).scalar_one_or_none()


def _fail(template: str, error: str, code: int):
    if wants_json():
        return jsonify(ok=False, error=error), code
    return render_template(template, error=error), code


def _signed_in(user: User, next_path: str):
    login_user(user)
    if wants_json():
        return jsonify(ok=True, profile=user.to_dict()), 200
    return redirect(next_path)


@bp.get("/login")
def login_get():
    if current_user.is_authenticated:
        return redirect(_safe_next_path(request.args.get("next")))
    return render_template("auth/login.html")


@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")
@limiter.limit("5 per minute; 20 per hour", key_func=_login_email_scope)
def login_post():
    data = _form()
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""
    if not email or not password:
        return _fail("auth/login.html", "Email and password are required", 400)

    user = _find_user(email)
    # Same answer for unknown email, wrong password and disabled account
    if not user or not user.is_active or not user.check_password(password):
        return _fail("auth/login.html", "Invalid credentials", 400)

    return _signed_in(user, _safe_next_path(request.args.get("next")))


@bp.post("/logout")
def logout():
    if current_user.is_authenticated:
        logout_user()
    if wants_json():
        return jsonify(ok=True), 200
    return redirect(url_for("main.home"))


@bp.get("/register")
def register_get():
    if current_user.is_authenticated:
        return redirect(url_for("main.home"))
    return render_template("auth/register.html")


@bp.post("/register")
@limiter.limit("5 per minute; 20 per hour")
def register_post():
    if current_user.is_authenticated:
        return redirect(url_for("main.home"))

    data = _form()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not is_valid_email(email):
        return _fail("auth/register.html", "A valid email is required", 400)
    if len(password) < MIN_PASSWORD_LEN:
        return _fail("auth/register.html", f"Password must be at least {MIN_PASSWORD_LEN} characters", 400)
    if _find_user(email) is not None:
        return _fail("auth/register.html", "An account with this email already exists", 409)

    # Self-registration always yields a customer; admins are made with `flask users promote`
    user = User(
        email=email,
        full_name=clean_str(data.get("full_name"), max_len=200),
        role=ROLE_CUSTOMER,
        is_active=True,
    )
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.session.rollback()
        return _fail("auth/register.html", "An account with this email already exists", 409)

    return _signed_in(user, url_for("main.home"))
