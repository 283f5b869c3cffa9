import click
from flask.cli import with_appcontext
from coffeeline.extensions import db
from coffeeline.models import User, ROLES, ROLE_ADMIN, ROLE_CUSTOMER

@click.command("db-init")
@with_appcontext
def db_init():
    """Create all tables (local/dev; use `flask db upgrade` elsewhere)."""
    db.create_all()
    click.echo("Tables created")

@click.group()
def users():
    """User management."""

@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--full-name", default=None)
@click.option("--role", type=click.Choice(ROLES), default=ROLE_CUSTOMER)
@with_appcontext
def users_create(email, password, full_name, role):
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).count():
        raise click.ClickException("User already exists")

    user = User(email=email, full_name=full_name, role=role, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()

    click.echo(f"User created id={user.id} email={user.email} role={role}")

@users.command("promote")
@click.option("--email", required=True)
@with_appcontext
def users_promote(email):
    user = db.session.query(User).filter_by(email=email.strip().lower()).one_or_none()
    if not user:
        raise click.ClickException("User not found")
    user.role = ROLE_ADMIN
    db.session.commit()
    click.echo(f"Promoted {user.email} to {ROLE_ADMIN}")

@users.command("demote")
@click.option("--email", required=True)
@with_appcontext
def users_demote(email):
    user = db.session.query(User).filter_by(email=email.strip().lower()).one_or_none()
    if not user:
        raise click.ClickException("User not found")

    # Safety rail: keep at least one admin
    admins = db.session.query(User).filter_by(role=ROLE_ADMIN).count()
    if user.role == ROLE_ADMIN and admins <= 1:
        raise click.ClickException("Refused: cannot demote the last admin")

    user.role = ROLE_CUSTOMER
    db.session.commit()
    click.echo(f"Demoted {user.email} to {ROLE_CUSTOMER}")

def register_cli(app):
    app.cli.add_command(db_init)
    app.cli.add_command(users)
