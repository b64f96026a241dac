"""
Database connection and session management module.

Uses SQLAlchemy for ORM operations. Supports PostgreSQL/MySQL (production)
and SQLite (local development and tests). A Database object owns one engine
and its session factory; the application factory creates it and stores it
on app.state, so every request reaches the same pool without a module-level
global.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase, Session
from sqlalchemy.pool import StaticPool
from fastapi import Request

from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("db")

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


class Database:
    """
    Owns the SQLAlchemy engine and session factory for one application.

    Server databases get a bounded connection pool; SQLite gets
    check_same_thread=False (FastAPI runs sync routes in a threadpool) and,
    for in-memory URLs, a single shared connection so every session sees
    the same data.
    """

    def __init__(self, url: str, pool_size: int = 10, max_overflow: int = 90):
        self.url = url

        # SQLite does not support pool_size, max_overflow, or pool_pre_ping
        engine_kwargs = {"echo": False}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if url in IN_MEMORY_URLS:
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update({
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": True,
            })

        self.engine = create_engine(url, **engine_kwargs)

        if url.startswith("sqlite"):
            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def session(self) -> Session:
        return self.session_factory()

    def create_tables(self):
        """
        Create all database tables directly (used for SQLite local dev).
        For server databases, use Alembic migrations instead.
        """
        # Models must be imported so they are registered with Base.metadata
        import codecombat.models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        log_with_context(logger, "INFO", "Database tables created/checked",
                         extra_data={"tables": sorted(Base.metadata.tables)})

    def dispose(self):
        self.engine.dispose()


def get_db(request: Request):
    """
    FastAPI dependency that provides a database session.

    Yields a session from the application's Database and ensures proper
    cleanup after request completion. This guarantees connections are
    returned to the pool even if an exception occurs during request
    processing.
    """
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
