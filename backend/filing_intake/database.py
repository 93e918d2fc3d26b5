from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from filing_intake.config import settings


def create_engine(database_url: str = None, **kwargs) -> AsyncEngine:
    """Create the async engine.

    The sqlite driver defers BEGIN until the first DML statement, which breaks
    SAVEPOINT nesting. For sqlite URLs we take over transaction control and emit
    BEGIN ourselves so per-category savepoints and the re-aggregation
    transaction behave as on any other database.
    """
    url = database_url or settings.database_url
    engine = create_async_engine(url, echo=False, **kwargs)

    if url.startswith("sqlite"):
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _emit_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def create_session_maker(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
