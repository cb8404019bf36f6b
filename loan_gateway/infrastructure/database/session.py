"""Database session management with connection pooling"""

from typing import Any, Dict, Generator
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from loan_gateway.config import settings


def build_engine(database_url: str) -> Engine:
    """Create an engine; SQLite (local runs, tests) skips the server pool settings"""
    options: Dict[str, Any] = {"pool_pre_ping": True}

    if database_url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    else:
        # Connection pool: max 20 connections, recycle after 1 hour to avoid stale connections
        options.update(pool_size=10, max_overflow=10, pool_recycle=3600)

    return create_engine(database_url, **options)


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
