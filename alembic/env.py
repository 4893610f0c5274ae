"""Alembic environment for the raffle schema.

The target database is ``DB_URL`` (``.env`` is honoured), or the value given on
the command line with ``alembic -x db_url=... upgrade head``.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy.engine import Connection

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from raffledesk.config import RaffleSettings  # noqa: E402
from raffledesk.db.engine import DEFAULT_SQLITE_URL, make_engine  # noqa: E402
from raffledesk.db.utils import resolve_sqlite_url  # noqa: E402
from raffledesk.models import Base  # noqa: E402,F401 - import populates metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

_x_url = context.get_x_argument(as_dictionary=True).get("db_url")
DATABASE_URL = resolve_sqlite_url(_x_url, ROOT_DIR) if _x_url else DEFAULT_SQLITE_URL

# ConfigParser interpolation treats "%" specially.
config.set_main_option("sqlalchemy.url", DATABASE_URL.replace("%", "%%"))


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL for ``DATABASE_URL`` without connecting."""

    _configure(
        url=DATABASE_URL,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    # SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
    _configure(
        connection=connection,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""

    settings = RaffleSettings.from_env()
    # DDL runs at the backend's default isolation level.
    engine = make_engine(DATABASE_URL, isolation_level=None, timeout=settings.db_timeout)
    try:
        with engine.connect() as connection:
            _run_with_connection(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
