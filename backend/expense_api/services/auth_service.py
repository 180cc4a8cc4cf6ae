"""
Session issuing and bearer token validation
"""

import logging
from datetime import datetime, timedelta
from typing import Tuple

from sqlalchemy.orm import Session

from expense_api.core.config import settings
from expense_api.core.encryption import decrypt_session_token, encrypt_session_id
from expense_api.core.errors import AuthenticationError, ErrorCode
from expense_api.core.utils import generate_nanoid, now_local
from expense_api.models.user import User, UserSession

logger = logging.getLogger(__name__)

# Every signed-in user holds these; there are no roles yet
USER_PERMISSIONS = frozenset({
    "file_upload",
    "file_download",
    "file_delete",
    "expenses",
    "subscriptions",
})


class AuthService:
    def __init__(self, db: Session):
        self.db = db
        self.session_lifetime = timedelta(days=settings.SESSION_EXPIRATION_DAYS)

    def create_session(self, user_id: str) -> Tuple[str, int]:
        """
        Store a new session for the user

        Returns:
            (bearer token, seconds until it expires)
        """
        now = now_local()
        session = UserSession(
            id=generate_nanoid(),
            user_id=user_id,
            expires_at=(now + self.session_lifetime).isoformat(timespec="seconds"),
            created_at=now.isoformat(timespec="seconds"),
        )
        self.db.add(session)
        self.db.commit()

        logger.info(f"Created session for user {user_id}")
        return encrypt_session_id(session.id), int(self.session_lifetime.total_seconds())

    def _session_for_token(self, token: str) -> UserSession:
        session_id = decrypt_session_token(token, ttl_seconds=int(self.session_lifetime.total_seconds()))
        session = self.db.query(UserSession).filter(UserSession.id == session_id).first()
        if session is None:
            raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)
        return session

    def validate_token(self, token: str) -> User:
        """
        Resolve a bearer token to its user

        Raises AuthenticationError (INVALID_TOKEN or TOKEN_EXPIRED).
        """
        session = self._session_for_token(token)

        if datetime.fromisoformat(session.expires_at) <= now_local():
            self.db.delete(session)
            self.db.commit()
            raise AuthenticationError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)

        user = self.db.query(User).filter(User.id == session.user_id).first()
        if user is None:
            raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)
        return user

    def revoke_session(self, token: str) -> None:
        session = self._session_for_token(token)
        self.db.delete(session)
        self.db.commit()
        logger.info(f"Revoked session for user {session.user_id}")

    def purge_expired_sessions(self) -> int:
        # RFC3339 strings in one timezone compare correctly as text
        now = now_local().isoformat(timespec="seconds")
        count = (
            self.db.query(UserSession)
            .filter(UserSession.expires_at <= now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if count:
            logger.info(f"Purged {count} expired sessions")
        return count

    @staticmethod
    def check_permission(user: User, resource: str) -> bool:
        return user is not None and resource in USER_PERMISSIONS
