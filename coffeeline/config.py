import os

from dotenv import dotenv_values

class BaseConfig:
    # Secrets (env in prod; dev/test may use defaults)
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    WTF_CSRF_TIME_LIMIT = None

    # Database (env in prod; dev/test may use default)
    _ENV_FALLBACK = dotenv_values(".env")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _ENV_FALLBACK.get("DATABASE_URL") or "sqlite:///coffeeline.db"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Logging / misc
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    SENTRY_DSN = os.getenv("SENTRY_DSN")
    # Reverse proxies in front of the app (staging/production); 0 trusts none
    TRUST_PROXY_HOPS = int(os.getenv("TRUST_PROXY_HOPS", "0"))

    # Cookies: secure-by-default
    SESSION_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    RATELIMIT_DEFAULT = None

    # --- Twilio (SMS) ---
    TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.getenv("TWILIO_PHONE_NUMBER")
    TWILIO_API_BASE = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
    SMS_TIMEOUT_SECONDS = float(os.getenv("SMS_TIMEOUT_SECONDS", "15"))
    # Absolute URL of /webhooks/sms; when unset no status callbacks are requested
    SMS_STATUS_CALLBACK_URL = os.getenv("SMS_STATUS_CALLBACK_URL")
    # UI convention only; the server never truncates
    SMS_MAX_LENGTH = int(os.getenv("SMS_MAX_LENGTH", "160"))
    # Optional bearer token for the public /functions/send-sms relay
    SMS_FUNCTION_TOKEN = os.getenv("SMS_FUNCTION_TOKEN")

    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5000")
    SITE_NAME = os.getenv("SITE_NAME", "Coffeeline Feedback")

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    # Presence is enforced by create_app() at startup
    SECRET_KEY = os.environ.get("SECRET_KEY")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False

_ENV_MAP = {
    "development": DevelopmentConfig,
    "staging": ProductionConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    env = os.environ.get("APP_ENV", "development").lower()
    return _ENV_MAP.get(env, DevelopmentConfig)
