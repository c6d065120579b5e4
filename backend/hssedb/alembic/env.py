# backend/hssedb/alembic/env.py
"""
Migration environment for hssedb.

Online runs reuse the application's write engine, so migrations see the same
DATABASE_WRITE_URL / DATABASE_URL as the API. Offline runs (`--sql`) render
against sqlalchemy.url, falling back to the same env vars when alembic.ini
still holds the `driver://` placeholder.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.config import fileConfig

from alembic import context

# backend/ must be importable: __file__ is backend/hssedb/alembic/env.py
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

import hssedb  # noqa: F401, E402  (registers every app's tables)
from hssedb.database import Base, write_engine  # noqa: E402

target_metadata = Base.metadata


def _database_url() -> str:
    url = (config.get_main_option("sqlalchemy.url") or "").strip()
    if url and not url.startswith("driver://"):
        return url
    url = (os.getenv("DATABASE_WRITE_URL") or os.getenv("DATABASE_URL") or "").strip()
    if not url:
        raise RuntimeError("Set sqlalchemy.url in alembic.ini or DATABASE_WRITE_URL / DATABASE_URL.")
    return url


def _include_object(obj, name, type_, reflected, compare_to) -> bool:
    # Autogenerate must not propose dropping tables other services own.
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def _skip_empty_revisions(context_, revision, directives) -> None:
    if getattr(config.cmd_opts, "autogenerate", False) and directives:
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []
            logger.info("No schema changes detected; revision not written")


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        include_object=_include_object,
        process_revision_directives=_skip_empty_revisions,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Render SQL without connecting to the database."""
    _configure(url=_database_url(), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    with write_engine.connect() as connection:
        _configure(connection=connection, render_as_batch=connection.dialect.name == "sqlite")
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
