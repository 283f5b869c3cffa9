from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf import CSRFProtect
from flask_login import LoginManager, current_user
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
# SQLite (tests, local) needs batch mode for ALTER TABLE
migrate = Migrate(compare_type=True, render_as_batch=True)
csrf = CSRFProtect()

login_manager = LoginManager()
login_manager.login_view = "auth.login_get"
login_manager.session_protection = "basic"


def _rate_limit_key():
    """Signed-in staff share one bucket across devices; everyone else is keyed by IP."""
    if current_user.is_authenticated:
        return f"user:{current_user.get_id()}"
    return f"ip:{get_remote_address()}"


# Storage URI is picked in create_app() (memory, or Redis in staging/production)
limiter = Limiter(key_func=_rate_limit_key)
