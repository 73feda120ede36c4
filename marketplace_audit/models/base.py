"""
Base database model and session management

Tables are created by init_db() at startup. Snapshot, analysis and
time-series rows reference marketplace_customers with ON DELETE CASCADE,
so SQLite connections switch foreign key enforcement on.
"""
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from marketplace_audit.config import get_settings

settings = get_settings()


def resolve_database_url(url: str) -> str:
    """Relative SQLite paths become absolute so a changed cwd still finds the file"""
    if url.startswith("sqlite:///") and not url.startswith("sqlite:////"):
        return "sqlite:///" + os.path.abspath(url[len("sqlite:///"):])
    return url


def make_engine(url: str) -> Engine:
    url = resolve_database_url(url)
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True, pool_size=3, max_overflow=5, pool_recycle=300)

    sqlite_engine = create_engine(
        url,
        connect_args={"check_same_thread": False, "timeout": 60},
        poolclass=NullPool,
    )

    @event.listens_for(sqlite_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI dependencies"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for work outside a request (scheduled syncs)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing marketplace tables"""
    import marketplace_audit.models  # noqa: F401  (registers tables on Base.metadata)
    Base.metadata.create_all(bind=engine)
