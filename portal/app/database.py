import logging
import sqlite3

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Tables the lifecycle engine reads and writes; `init_db` must leave all of them in place.
LIFECYCLE_TABLES = ("jobs", "applicants", "training_programs", "applications", "status_history")


def _normalize_database_url(url: str) -> str:
    # `mysql://` from a `.env` file is upgraded to the PyMySQL driver form.
    return url.replace("mysql://", "mysql+pymysql://", 1) if url.startswith("mysql://") else url


_db_url = _normalize_database_url((DATABASE_URL or "").strip())
_is_sqlite = _db_url.startswith("sqlite")

_engine_kwargs = {"pool_pre_ping": True}
if _is_sqlite:
    # Requests run on uvicorn's threadpool; cascades hold the write lock for a whole batch.
    _engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": 30}

engine = create_engine(_db_url, **_engine_kwargs)

if _is_sqlite:
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ANN001
        try:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            # Purging an application removes its status_history rows through the FK.
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            cursor.close()
        except sqlite3.Error as e:
            logger.warning("Failed to set SQLite pragmas: %s", e)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    from . import models  # noqa: F401  (registers every table on Base.metadata)

    Base.metadata.create_all(bind=engine)


def missing_tables() -> list[str]:
    """Lifecycle tables absent from the connected database."""
    present = set(inspect(engine).get_table_names())
    return [t for t in LIFECYCLE_TABLES if t not in present]
