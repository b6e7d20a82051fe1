from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool
from contextlib import nullcontext
import logging
import threading

from studyhub.config import Settings

logger = logging.getLogger(__name__)

# Base class for all models
Base = declarative_base()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _configure_sqlite_connection(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    # built-in lower() only folds ASCII; search must fold like str.lower
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def create_db_engine(url: str, settings: Settings = None) -> Engine:
    """
    Create the SQLAlchemy engine for a database URL

    Server databases (MySQL, PostgreSQL) get a QueuePool with pre-ping.
    In-memory SQLite shares a single connection so every session sees
    the same database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _configure_sqlite_connection)
        return engine

    pool_size = settings.DATABASE_POOL_SIZE if settings else 10
    max_overflow = settings.DATABASE_MAX_OVERFLOW if settings else 20
    pool_recycle = settings.DATABASE_POOL_RECYCLE if settings else 3600

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=pool_recycle,
        echo=settings.DEBUG if settings else False,
    )


def connection_guard(engine: Engine):
    """
    Lock for engines that hand one DBAPI connection to every caller

    StaticPool (in-memory SQLite) shares a single sqlite3 connection, so
    operations from different threads must not interleave on it. Pooled
    engines give each operation its own connection and need no lock.
    """
    if isinstance(engine.pool, StaticPool):
        return threading.RLock()
    return nullcontext()


def create_session_factory(engine: Engine) -> sessionmaker:
    """sessionmaker bound to the engine, one session per storage operation"""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )


def init_db(engine: Engine):
    """Initialize database - create all tables"""
    try:
        # Import all models so the metadata knows every table
        from studyhub.models import User, MainTopic, StudyClass, Lesson, UserProgress  # noqa: F401

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise


def check_db_connection(engine: Engine) -> bool:
    """Check if database connection is alive"""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False
