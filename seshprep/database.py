import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from seshprep.config import settings

logger = logging.getLogger(__name__)

# Default to a local SQLite database if no DATABASE_URL is provided or usable
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.abspath(os.path.join(BASE_DIR, ".."))
DEFAULT_DB_PATH = os.path.join(PROJECT_ROOT, "seshprep.db")


def build_memory_engine():
    """Ephemeral engine: one in-memory SQLite database shared by every session."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    return _emit_begin(engine, "BEGIN")


def build_persistent_engine(database_url=None):
    """Create the SQLAlchemy engine, preferring the configured DATABASE_URL."""
    if database_url:
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
            # Ensure the target database is reachable; otherwise fall back to SQLite
            with engine.connect():
                pass
            return engine
        except ModuleNotFoundError as exc:
            logger.warning("Database driver missing for %s (%s), using SQLite", database_url, exc)
        except Exception as exc:
            logger.warning("Database %s unreachable (%s), using SQLite", database_url, exc)

    return build_sqlite_file_engine(DEFAULT_DB_PATH)


def build_sqlite_file_engine(path):
    """SQLite file engine whose transactions take the write lock up front.

    Deferred transactions can deadlock when two connections both read and then
    try to write; BEGIN IMMEDIATE makes concurrent writers queue instead.
    """
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    return _emit_begin(engine, "BEGIN IMMEDIATE")


def _emit_begin(engine, begin_sql):
    # pysqlite's own transaction handling breaks SAVEPOINT, so SQLAlchemy issues BEGIN
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql(begin_sql)

    return engine


def build_engine(backend=None, database_url=None):
    """Select the storage backend; business code only ever sees a Session."""
    backend = (backend or settings.STORAGE_BACKEND).lower()
    if backend == "memory":
        return build_memory_engine()
    if backend == "database":
        return build_persistent_engine(database_url or settings.DATABASE_URL)
    raise ValueError(f"Unknown STORAGE_BACKEND {backend!r}")


engine = build_engine()

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for the models
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
