# backend/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from config import settings
from services.errors import TransientStorageFailure

logger = logging.getLogger(__name__)

# Postgres SQLSTATE: query_canceled (lock_timeout / statement_timeout) and lock_not_available
_PG_QUERY_CANCELED = "57014"
_PG_LOCK_NOT_AVAILABLE = "55P03"


def _normalize_url(url: str) -> str:
    # Hosted Postgres hands out postgres://, SQLAlchemy requires postgresql://
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # Needed for ON DELETE CASCADE from carts to cart_items
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, lock_timeout_ms: int = None, **kwargs):
    url = _normalize_url(url)
    if lock_timeout_ms is None:
        lock_timeout_ms = settings.LOCK_TIMEOUT_MS

    if "sqlite" in url:
        # SQLite has no row locks; the busy timeout bounds the wait on the database lock
        connect_args = {"check_same_thread": False, "timeout": lock_timeout_ms / 1000}
    else:
        connect_args = {}

    engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_session_factory():
    return SessionLocal

def init_db(bind=None):
    import models  # noqa: F401  registers every table on Base.metadata
    Base.metadata.create_all(bind=bind or engine)


def apply_lock_timeout(db: Session, timeout_ms: int = None):
    """Bounds how long the current transaction waits for a row lock."""
    timeout_ms = int(timeout_ms if timeout_ms is not None else settings.LOCK_TIMEOUT_MS)
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        db.execute(text(f"SET LOCAL lock_timeout = {timeout_ms}"))
    elif dialect in ("mysql", "mariadb"):
        db.execute(text(f"SET SESSION innodb_lock_wait_timeout = {max(1, timeout_ms // 1000)}"))


def is_transient(exc: Exception) -> bool:
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return True
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        pgcode = getattr(getattr(exc, "orig", None), "pgcode", None)
        return pgcode in {_PG_QUERY_CANCELED, _PG_LOCK_NOT_AVAILABLE}
    return False


@contextmanager
def atomic(db: Session):
    """
    Runs one logical operation as a single transaction.

    Commits on success and rolls back on any error. Lock timeouts, deadlocks
    and lost connections surface as TransientStorageFailure so the caller
    can retry; nothing is ever partially applied.
    """
    try:
        apply_lock_timeout(db)
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        if is_transient(e):
            logger.warning("Transaction aborted by storage failure: %s", e)
            raise TransientStorageFailure(str(e)) from e
        raise
