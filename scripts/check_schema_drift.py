"""Compare the live raffle database with the ORM models.

Usage: ``python scripts/check_schema_drift.py [DB_URL]``. Exit code 0 means no
drift, 1 means differences were found and 2 means the check could not run.
"""

from __future__ import annotations

import sys
from typing import Optional

from alembic.autogenerate import api as ag_api
from alembic.runtime.migration import MigrationContext

from raffledesk.config import ROOT_DIR
from raffledesk.db.engine import make_engine
from raffledesk.db.utils import resolve_sqlite_url
from raffledesk.models import Base


def _print_ops(ops, indent: int = 0) -> None:
    prefix = "  " * indent
    for op in ops:
        print(f"{prefix}- {op}")
        sub_ops = getattr(op, "ops", None)
        if sub_ops:
            _print_ops(sub_ops, indent + 1)


def check(database_url: Optional[str] = None) -> int:
    url = resolve_sqlite_url(database_url, ROOT_DIR) if database_url else None
    engine = make_engine(url, isolation_level=None)
    url_display = engine.url.render_as_string(hide_password=True)
    try:
        with engine.connect() as connection:
            context = MigrationContext.configure(
                connection=connection,
                opts={
                    "compare_type": True,
                    "compare_server_default": True,
                    "render_as_batch": connection.dialect.name == "sqlite",
                },
            )
            upgrade_ops = ag_api.produce_migrations(context, Base.metadata).upgrade_ops
    except Exception as exc:
        print(f"Schema drift check: ERROR for {url_display}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if upgrade_ops is None or upgrade_ops.is_empty():
        print(f"Schema drift check: OK for {url_display} ({len(Base.metadata.tables)} tables).")
        return 0
    print(f"Schema drift check: FAILED for {url_display}. Run an Alembic revision for:")
    _print_ops(upgrade_ops.ops or [])
    return 1


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    return check(args[0] if args else None)


if __name__ == "__main__":
    raise SystemExit(main())
