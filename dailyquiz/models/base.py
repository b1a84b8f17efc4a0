"""
Database base configuration for SQLAlchemy models.

Composition runs are batch jobs, so only a sync engine is configured. Each job
(and each worker thread in run_many) opens its own session from SessionLocal.
"""

from typing import Any, Dict, Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from dailyquiz.core.config import settings


def _engine_kwargs(database_url: str) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "echo": settings.DEBUG,
        "pool_pre_ping": settings.DB_POOL_PRE_PING,
    }
    if database_url.startswith("sqlite"):
        # Worker threads in run_many share the file database
        kwargs["connect_args"] = {"check_same_thread": False}
    return kwargs


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    """
    SQLAlchemy 2.0 declarative base class.
    """

    pass


def get_db() -> Generator[Session, None, None]:
    """
    Yield a database session and ensure it is closed afterwards.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
