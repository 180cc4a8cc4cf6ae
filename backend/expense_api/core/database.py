"""
Database configuration and session management
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator
import logging

from expense_api.core.config import settings

logger = logging.getLogger(__name__)


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    Create an engine; SQLite connections get foreign keys enforced
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False

    new_engine = create_engine(
        database_url,
        connect_args=connect_args,
        pool_pre_ping=True,
        echo=settings.DEBUG,  # Log SQL queries in debug mode
        **kwargs,
    )

    if database_url.startswith("sqlite"):
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
            # Let SQLAlchemy emit BEGIN itself so DDL runs inside transactions too
            dbapi_connection.isolation_level = None

        @event.listens_for(new_engine, "begin")
        def do_begin(connection):
            connection.exec_driver_sql("BEGIN")

    return new_engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False  # Keep objects accessible after commit
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()
