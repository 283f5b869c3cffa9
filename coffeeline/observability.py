import logging
import os
from logging.config import dictConfig

PROD_LIKE = ("staging", "production")

# Form fields and JSON keys that carry SMS text; never shipped to Sentry
_BODY_KEYS = {"Body", "message", "content", "body"}


def _app_env() -> str:
    return (os.getenv("APP_ENV", "development") or "development").lower()


def init_logging(app):
    """One JSON object per line in staging/prod; Flask's console logger elsewhere."""
    level = app.config.get("LOG_LEVEL", "INFO")
    if _app_env() not in PROD_LIKE:
        app.logger.setLevel(level)
        return

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
                "rename_fields": {"levelname": "level", "asctime": "ts"},
            },
        },
        "handlers": {"stdout": {"class": "logging.StreamHandler", "formatter": "json"}},
        "root": {"level": level, "handlers": ["stdout"]},
    })
    # Chatty at INFO: one line per provider request
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _scrub_sms_bodies(event, hint):
    request = event.get("request") or {}
    data = request.get("data")
    if isinstance(data, dict):
        for key in _BODY_KEYS & data.keys():
            data[key] = "[redacted]"
    return event


def init_sentry(app):
    """No-op without SENTRY_DSN."""
    dsn = os.getenv("SENTRY_DSN") or app.config.get("SENTRY_DSN")
    if not dsn:
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration

    sentry_sdk.init(
        dsn=dsn,
        integrations=[FlaskIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES", "0.0")),
        environment=_app_env(),
        send_default_pii=False,
        before_send=_scrub_sms_bodies,
    )
    app.logger.info("Sentry enabled (env=%s)", _app_env())
