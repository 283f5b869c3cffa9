import importlib
import logging
import pkgutil
from logging.config import fileConfig
from pathlib import Path

from flask import current_app
from alembic import context

config = context.config

if config.config_file_name and Path(config.config_file_name).exists():
    fileConfig(config.config_file_name)
else:
    logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("alembic.env")


def get_engine():
    return current_app.extensions["migrate"].db.engine


def get_engine_url():
    return get_engine().url.render_as_string(hide_password=False).replace("%", "%%")


config.set_main_option("sqlalchemy.url", get_engine_url())
target_db = current_app.extensions["migrate"].db


def get_metadata():
    if hasattr(target_db, "metadatas"):
        return target_db.metadatas[None]
    return target_db.metadata


def _load_models():
    """Import every coffeeline.models module so autogenerate sees all tables."""
    import coffeeline.models as models_pkg
    for m in pkgutil.iter_modules(models_pkg.__path__):
        importlib.import_module(f"coffeeline.models.{m.name}")


def run_migrations_offline():
    _load_models()
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=get_metadata(),
        literal_binds=True,
        compare_type=True,
        # SQLite needs batch mode for ALTER TABLE
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    # Skip empty autogenerate revisions
    def process_revision_directives(context_, revision, directives):
        if getattr(config.cmd_opts, "autogenerate", False):
            script = directives[0]
            if script.upgrade_ops.is_empty():
                directives[:] = []
                logger.info("No changes in schema detected.")

    conf_args = dict(current_app.extensions["migrate"].configure_args)
    conf_args.setdefault("process_revision_directives", process_revision_directives)
    conf_args.setdefault("compare_type", True)
    conf_args.setdefault("render_as_batch", True)

    _load_models()
    with get_engine().connect() as connection:
        context.configure(connection=connection, target_metadata=get_metadata(), **conf_args)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
