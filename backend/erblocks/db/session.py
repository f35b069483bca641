from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from erblocks.config import DATABASE_URL, DB_ECHO


def build_engine(url: str = DATABASE_URL, **kwargs) -> AsyncEngine:
    """
    Create the async engine.
    PostgreSQL runs every transaction SERIALIZABLE so that concurrent
    check-then-write sequences on the block table fail instead of interleaving.
    SQLite gets foreign keys switched on so diagram deletes cascade, and every
    transaction opens with BEGIN IMMEDIATE so it holds the write lock before
    its first read.
    """
    kwargs.setdefault("echo", DB_ECHO)
    if url.startswith("postgresql"):
        kwargs.setdefault("isolation_level", "SERIALIZABLE")

    engine = create_async_engine(url, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def _configure_sqlite(dbapi_connection, connection_record):
            # hand transaction control to the "begin" listener below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_sessionmaker(engine)


def get_sessionmaker() -> async_sessionmaker:
    """FastAPI dependency; overridden in tests."""
    return SessionLocal
