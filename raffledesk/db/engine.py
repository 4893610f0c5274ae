from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

import os
from typing import Optional
from dotenv import load_dotenv
from ..config import ROOT_DIR
from .utils import resolve_sqlite_url

# Get DB url
load_dotenv()
DEFAULT_SQLITE_URL = resolve_sqlite_url(
    os.getenv("DB_URL", "sqlite:///./raffle.db"), ROOT_DIR
)

# Connection execution option marking a transaction that only reads.
READ_ONLY_OPTION = "raffledesk_read_only"




def make_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    *,
    isolation_level: Optional[str] = "SERIALIZABLE",
    timeout: float = 30.0,
):
    """Create an engine whose transactions are safe for concurrent writers.

    SQLite gets ``BEGIN IMMEDIATE`` transactions so that check-then-insert
    sequences are serialised across processes, plus enforced foreign keys.
    Connections carrying the :data:`READ_ONLY_OPTION` execution option begin
    ``DEFERRED`` instead.
    Other backends run at ``isolation_level`` (``SERIALIZABLE`` by default).
    """
    url = database_url or DEFAULT_SQLITE_URL

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            future=True,
            connect_args={"timeout": timeout, "check_same_thread": False},
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            # Let SQLAlchemy emit BEGIN itself instead of pysqlite.
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_transaction(conn):
            # Readers take no write lock, so they never queue behind writers.
            if conn.get_execution_options().get(READ_ONLY_OPTION):
                conn.exec_driver_sql("BEGIN DEFERRED")
            else:
                conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    kwargs = {}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level
    return create_engine(
        url,
        echo=echo,
        future=True,
        pool_pre_ping=True,
        pool_timeout=timeout,
        **kwargs,
    )


def get_sessionmaker(engine):
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,  # Returned rows stay readable after the transaction
        future=True,
    )
