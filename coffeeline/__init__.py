import os
from flask import Flask, render_template

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .extensions import db, migrate, csrf, login_manager, limiter
from .security import init_security
from .observability import PROD_LIKE, init_logging, init_sentry

# (import path, url prefix)
BLUEPRINTS = [
    ("main", None),
    ("auth", "/auth"),
    ("profile", "/profile"),
    ("feedback", "/feedback"),
    ("messages", "/messages"),
    ("admin", "/admin"),
    # Public edges: SMS relay and provider callbacks
    ("functions", "/functions"),
    ("webhooks", "/webhooks"),
]


def create_app(config_overrides=None):
    app = Flask(__name__, template_folder="templates")
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    prod_like = app_env in PROD_LIKE

    # Rate limit storage: Redis in staging/prod, memory elsewhere
    storage_uri = os.environ.get("REDIS_URL") if prod_like else "memory://"
    if not storage_uri:
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri
    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)

    app.config.from_object(get_config())
    if config_overrides:
        app.config.update(config_overrides)

    if prod_like:
        for name in ("SECRET_KEY", "DATABASE_URL"):
            if not (os.getenv(name) or app.config.get(name)):
                raise RuntimeError(f"Missing required environment variable: {name}")

    init_logging(app)
    init_sentry(app)
    if prod_like:
        init_security(app)

    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    csrf.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)

    # Models must be imported before create_all/migrations see the metadata
    from . import models  # noqa: F401

    _register_blueprints(app)
    _register_error_handlers(app)

    @app.get("/healthz")
    @limiter.exempt
    def healthz():
        return {"status": "ok"}, 200

    from .cli import register_cli
    register_cli(app)

    cfg = app.config
    if not (cfg.get("TWILIO_ACCOUNT_SID") and cfg.get("TWILIO_AUTH_TOKEN") and cfg.get("TWILIO_PHONE_NUMBER")):
        app.logger.warning("Twilio credentials missing; SMS sends will fail until configured")

    return app


def _register_blueprints(app):
    from importlib import import_module
    for name, prefix in BLUEPRINTS:
        bp = import_module(f"{__name__}.blueprints.{name}").bp
        app.register_blueprint(bp, url_prefix=prefix)


def _register_error_handlers(app):
    from flask_wtf.csrf import CSRFError
    from .services.policy import wants_json

    @app.errorhandler(404)
    def not_found(e):
        if wants_json():
            return {"error": "not_found", "code": 404}, 404
        return ("Not Found", 404)

    @app.errorhandler(500)
    def server_error(e):
        if wants_json():
            return {"error": "server_error", "code": 500}, 500
        return ("Internal Server Error", 500)

    @app.errorhandler(CSRFError)
    def csrf_failed(e):
        if wants_json():
            return {"error": "csrf_failed", "code": 400, "detail": e.description}, 400
        return (f"CSRF validation failed: {e.description}", 400)

    @app.errorhandler(403)
    def forbidden(e):
        if wants_json():
            return {"error": "forbidden", "code": 403}, 403
        return render_template("errors/403.html"), 403

    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {"Retry-After": str(int(retry_after))} if retry_after is not None else {}
        if wants_json():
            payload = {"error": "rate_limited", "code": 429}
            if retry_after is not None:
                payload["retry_after"] = int(retry_after)
            return payload, 429, headers
        return render_template("errors/429.html", retry_after=retry_after), 429, headers
