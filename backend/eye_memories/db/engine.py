from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine


def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Build the single engine the application shares across requests.

    SQLite URLs get check_same_thread=False so request handlers running in
    the threadpool can share the file, plus WAL journaling for concurrent
    readers. An in-memory URL uses a StaticPool so every session sees the
    same database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    connect_args = {"check_same_thread": False, "timeout": 5.0}
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, echo=echo, connect_args=connect_args, poolclass=StaticPool)

    engine = create_engine(url, echo=echo, connect_args=connect_args)
    event.listen(engine, "connect", _set_sqlite_pragma)
    return engine
