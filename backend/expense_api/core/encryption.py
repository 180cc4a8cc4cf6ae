"""
Session token encryption

Bearer tokens handed to clients are Fernet tokens wrapping a session id.
The Fernet key is derived from SESSION_ENCRYPTION_KEY.
"""

import base64
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from expense_api.core.config import settings
from expense_api.core.errors import AuthenticationError, ErrorCode

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when the cipher cannot be set up or data cannot be encrypted"""
    pass


class SessionTokenCipher:
    """
    Encrypts session ids into bearer tokens and back
    """

    def __init__(self, secret_key: Optional[str] = None):
        self._cipher = self._initialize_cipher(secret_key or settings.SESSION_ENCRYPTION_KEY)

    def _initialize_cipher(self, secret_key: str) -> Fernet:
        if not secret_key or len(secret_key) < 16:
            raise EncryptionError("SESSION_ENCRYPTION_KEY is not configured or too short")

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"expense_tracker_sessions",
            iterations=100000,
        )
        key_bytes = kdf.derive(secret_key.encode())
        return Fernet(base64.urlsafe_b64encode(key_bytes))

    def encrypt_session_id(self, session_id: str) -> str:
        if not session_id:
            raise EncryptionError("Cannot encrypt empty session id")
        return self._cipher.encrypt(session_id.encode()).decode("utf-8")

    def decrypt_session_token(self, token: str, ttl_seconds: Optional[int] = None) -> str:
        """
        Return the session id inside a token

        Raises AuthenticationError with TOKEN_EXPIRED when the token is older
        than ttl_seconds, and INVALID_TOKEN for anything else that fails.
        """
        if not token:
            raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)

        try:
            return self._cipher.decrypt(token.encode(), ttl=ttl_seconds).decode("utf-8")
        except InvalidToken:
            pass

        # Fernet reports expiry and tampering the same way; retry without ttl to tell them apart
        if ttl_seconds is not None:
            try:
                self._cipher.decrypt(token.encode())
            except InvalidToken:
                pass
            else:
                raise AuthenticationError("Token has expired", code=ErrorCode.TOKEN_EXPIRED)

        logger.debug("Session token failed to decrypt")
        raise AuthenticationError("Invalid token", code=ErrorCode.INVALID_TOKEN)


_cipher: Optional[SessionTokenCipher] = None


def get_token_cipher() -> SessionTokenCipher:
    global _cipher
    if _cipher is None:
        _cipher = SessionTokenCipher()
    return _cipher


def encrypt_session_id(session_id: str) -> str:
    return get_token_cipher().encrypt_session_id(session_id)


def decrypt_session_token(token: str, ttl_seconds: Optional[int] = None) -> str:
    return get_token_cipher().decrypt_session_token(token, ttl_seconds)
