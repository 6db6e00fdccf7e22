"""
Declarative base, engines and session factories.

The application shares one engine built from DATABASE_URL at import time.
`create_db_engine` and `make_session_factory` build the same setup for any
DatabaseConfig, which is how tests get an isolated in-memory database.
"""

from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from aurora.config import DatabaseConfig, config


class Base(DeclarativeBase):
    pass


def _tune_sqlite_file(dbapi_connection, connection_record):
    # WAL lets update polling read while assignment writes
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA journal_mode=WAL')
    cursor.execute('PRAGMA synchronous=NORMAL')
    cursor.close()


def create_db_engine(settings: DatabaseConfig, echo: bool = False) -> Engine:
    """
    Engine for a configured database.

    SQLite connections are shared between request threads. An in-memory
    database lives only as long as its connection, so it is pinned to a
    single one with StaticPool.
    """
    if not settings.is_sqlite:
        return create_engine(settings.url, echo=echo)

    if settings.is_memory:
        return create_engine(
            settings.url,
            echo=echo,
            connect_args={'check_same_thread': False},
            poolclass=StaticPool,
        )

    engine = create_engine(
        settings.url,
        echo=echo,
        connect_args={'check_same_thread': False},
    )
    event.listen(engine, 'connect', _tune_sqlite_file)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    # Loaded rows are used after their session closes
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create missing tables. Existing tables are left as they are."""
    Base.metadata.create_all(bind=bind or engine)


engine = create_db_engine(config.database, echo=config.debug)
SessionLocal = make_session_factory(engine)
