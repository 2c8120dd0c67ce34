"""Database session management with connection pooling"""

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from payment_gateway.config import settings


def _connect_args(database_url: str) -> Dict[str, Any]:
    """Per-statement timeout on Postgres; other backends take no extra arguments"""
    if database_url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={settings.db_statement_timeout_ms}"}
    return {}


# Pool waits are bounded by the HTTP timeout; connections recycle hourly
engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url),
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=10,
    pool_timeout=settings.http_timeout_seconds,
    pool_recycle=3600,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Session:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
