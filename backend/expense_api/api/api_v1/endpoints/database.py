"""
Database status endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from expense_api.api.deps import get_current_user
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.core.database_utils import DatabaseHealthCheck, get_table_info
from expense_api.core.errors import AppError, ErrorCode
from expense_api.core.migrations import get_migration_status
from expense_api.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def database_health(db: Session = Depends(get_db)):
    """
    Database connectivity check
    """
    health = DatabaseHealthCheck.check_connection(db)
    if health["status"] == "unhealthy":
        raise AppError(
            "Database is unavailable",
            code=ErrorCode.SERVICE_UNAVAILABLE,
            details=health["details"],
        )
    return success(database=health)


@router.get("/migrations")
async def migration_status(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return success(migrations=get_migration_status(db.get_bind()))


@router.get("/info")
async def database_info(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Tables and row counts"""
    return success(database=get_table_info(db))
