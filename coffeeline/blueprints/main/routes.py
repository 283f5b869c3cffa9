from flask import render_template
from flask_login import current_user

from . import bp


@bp.get("/")
def home():
    return render_template("home.html", user=current_user if current_user.is_authenticated else None)
