# WORKFLOW: Database handle, session management and connection handling.
# Used by: Ingestion pipeline, job queue, workers, API endpoints
# Functions:
# 1. Database - explicit engine + session factory handle built from a URL
# 2. get_database() - lazily created process-wide default handle
# 3. get_db() - Dependency injection for FastAPI endpoints
# 4. init_db() - Initialize database tables
# 5. check_db_connection() - Health check for database connectivity
#
# Database lifecycle:
# Startup: init_db() -> Create tables -> Check connection
# Runtime: get_db() -> Session -> Query -> Close session
# Shutdown: dispose() -> Release pooled connections
# Tests build their own Database on a temp file and pass it in explicitly.

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
import logging

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from core.config import settings

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def _ensure_sqlite_dir(url: str) -> None:
    prefix = "sqlite:///"
    if url.startswith(prefix) and not _is_memory_sqlite(url):
        Path(url[len(prefix):]).expanduser().parent.mkdir(parents=True, exist_ok=True)


class Database:
    """Engine and session factory for one relational store."""

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        if url.startswith("sqlite"):
            _ensure_sqlite_dir(url)
            kwargs = {"connect_args": {"check_same_thread": False, "timeout": 30}}
            if _is_memory_sqlite(url):
                kwargs["poolclass"] = StaticPool
            self.engine: Engine = create_engine(url, echo=echo, **kwargs)
            event.listen(self.engine, "connect", _sqlite_pragmas)
        else:
            self.engine = create_engine(url, echo=echo, pool_pre_ping=True)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_all(self) -> None:
        from db.models import Base

        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Session scope that commits on success and rolls back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()


def _sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# Lazy-loaded process-wide handle
_database: Optional[Database] = None


def get_database() -> Database:
    """Get the default database handle (lazy-loaded)."""
    global _database
    if _database is None:
        _database = Database(settings.database_url, echo=settings.debug)
    return _database


def set_database(database: Optional[Database]) -> None:
    """Replace the default handle (used at startup and by tests)."""
    global _database
    _database = database


def get_db():
    """
    Dependency to get database session.
    Yields a database session and ensures it's closed after use.
    """
    db = get_database().SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def init_db(database: Optional[Database] = None) -> Database:
    """
    Initialize database tables.
    """
    database = database or get_database()
    try:
        database.create_all()
        logger.info("Database tables created successfully")
        return database
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def check_db_connection(database: Optional[Database] = None) -> bool:
    """
    Check if database connection is working.
    """
    try:
        engine = (database or get_database()).engine
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
