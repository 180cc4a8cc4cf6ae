"""
Database utility functions for connection management and health checks
"""

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import text
from contextlib import contextmanager
from typing import Generator, Optional, Any, Dict
import logging
import time

from expense_api.core.database import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions with automatic cleanup
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error: {e}")
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def _session_or_new(db: Optional[Session]) -> Generator[Session, None, None]:
    if db is not None:
        yield db
    else:
        with get_db_session() as new_db:
            yield new_db


def check_database_connection(db: Optional[Session] = None) -> bool:
    """
    Check if database connection is working
    """
    try:
        with _session_or_new(db) as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def get_table_info(db: Optional[Session] = None) -> Dict[str, Any]:
    """
    Table names and row counts from the SQLite catalogue
    """
    with _session_or_new(db) as session:
        result = session.execute(text(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        ))
        tables = [row[0] for row in result.fetchall()]

        table_counts = {}
        for table in tables:
            try:
                table_counts[table] = session.execute(text(f'SELECT COUNT(*) FROM "{table}"')).scalar()
            except SQLAlchemyError as e:
                logger.warning(f"Could not get count for table {table}: {e}")
                table_counts[table] = None

        return {
            "tables": tables,
            "table_counts": table_counts,
            "total_tables": len(tables),
        }


class DatabaseHealthCheck:
    """
    Database health check utilities
    """

    @staticmethod
    def check_connection(db: Optional[Session] = None) -> Dict[str, Any]:
        health_status = {
            "status": "unknown",
            "connection": False,
            "tables_exist": False,
            "can_query": False,
            "details": {},
        }

        try:
            with _session_or_new(db) as session:
                session.execute(text("SELECT 1"))
                health_status["connection"] = True

                table_count = session.execute(text(
                    "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table'"
                )).scalar()
                health_status["tables_exist"] = table_count > 0
                health_status["details"]["table_count"] = table_count

                start_time = time.time()
                session.execute(text("SELECT datetime('now')"))
                query_time = time.time() - start_time
                health_status["can_query"] = True
                health_status["details"]["query_time_ms"] = round(query_time * 1000, 2)

                if health_status["connection"] and health_status["can_query"]:
                    health_status["status"] = "healthy"
                else:
                    health_status["status"] = "degraded"

        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["details"]["error"] = str(e)
            logger.error(f"Database health check failed: {e}")

        return health_status
