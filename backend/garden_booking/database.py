from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def create_db_engine(database_url: str, lock_timeout: float | None = None) -> Engine:
    """
    Build an engine for SQLite (dev/tests) or PostgreSQL (production).

    SQLite: every transaction starts with BEGIN IMMEDIATE, so writers are
    serialized by the database lock and wait at most `lock_timeout` seconds
    for it. PostgreSQL relies on row locks (see services/booking_ledger.py).
    """
    if lock_timeout is None:
        lock_timeout = settings.slot_lock_timeout_seconds

    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": lock_timeout},
        )
        _install_sqlite_hooks(engine)
        return engine

    return create_engine(
        database_url,
        pool_size=8,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
    )


def _install_sqlite_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def enable_sqlite_fk(dbapi_connection, _):
        # hand transaction control to SQLAlchemy so "begin" below is honoured
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


engine = create_db_engine(settings.resolved_database_url)

# one session per request or background job
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
