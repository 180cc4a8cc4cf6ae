"""
Periodic maintenance: receipt sync and session cleanup
"""

import logging
from typing import Dict, Any
from celery import shared_task

from expense_api.core.database import SessionLocal
from expense_api.services.auth_service import AuthService
from expense_api.services.receipt_storage import get_receipt_storage

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=3)
def sync_fallback_receipts(self) -> Dict[str, Any]:
    """
    Upload receipts stored on local disk to the bucket and repoint expenses
    """
    db = SessionLocal()

    try:
        result = get_receipt_storage().sync_pending(db)
        logger.info(
            f"Receipt sync finished: {result['synced']} synced, "
            f"{result['failed']} failed, {result['pending']} pending"
        )
        return {'status': 'completed', **result}

    except Exception as e:
        logger.error(f"Error syncing fallback receipts: {e}")
        db.rollback()
        # Retry with exponential backoff
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    finally:
        db.close()


@shared_task
def purge_expired_sessions() -> Dict[str, Any]:
    """Delete sessions past their expiry"""
    db = SessionLocal()

    try:
        purged = AuthService(db).purge_expired_sessions()
        return {'status': 'completed', 'purged': purged}

    except Exception as e:
        logger.error(f"Error purging expired sessions: {e}")
        db.rollback()
        raise

    finally:
        db.close()
