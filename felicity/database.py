"""Database service: engine, session factory and the request-scoped session dependency."""
import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite gets serialized write transactions.

    pysqlite defers BEGIN until the first write, so two requests can both read
    a counter before either locks the file. Emitting BEGIN IMMEDIATE makes every
    transaction take the write lock up front and wait on the busy timeout.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def register_models() -> None:
    """Import all models so Base.metadata knows about them."""
    from felicity.models import account, event, registration, message, team, password_reset  # noqa: F401


class Database:
    """Owns the engine for the lifetime of the application."""

    def __init__(self, url: str):
        self.url = url
        self.engine = build_engine(url)
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def create_all(self) -> None:
        register_models()
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self.session_factory()

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Disposed database engine for %s", self.engine.url.render_as_string(hide_password=True))


def get_db(request: Request) -> Iterator[Session]:
    """Yield a session bound to the application's Database."""
    session = request.app.state.database.session()
    try:
        yield session
    finally:
        session.close()
