"""
Google OAuth 2.0 authorization code flow with PKCE
"""

import base64
import hashlib
import secrets
from urllib.parse import urlencode
from typing import Any, Dict, Optional
import httpx
import logging

from expense_api.core.config import settings
from expense_api.core.errors import AuthenticationError, ErrorCode, ExternalServiceError
from expense_api.core.retry import AUTH_RETRY_CONFIG, with_retry_async
from expense_api.schemas.user import GoogleUser

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
OAUTH_SCOPE = "openid email profile"

# RFC 7636 unreserved characters
PKCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~"
CODE_VERIFIER_LENGTH = 128
STATE_LENGTH = 32


def generate_random_string(length: int, alphabet: str = PKCE_ALPHABET) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_code_challenge(code_verifier: str) -> str:
    """S256 code challenge: unpadded base64url of the verifier's SHA-256"""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


class GoogleOAuthService:
    """Service for handling the Google OAuth 2.0 flow"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self._transport = transport

        if not self.client_id or not self.client_secret:
            raise ExternalServiceError(
                "Server configuration error",
                code=ErrorCode.INTERNAL_SERVER_ERROR,
                details={"reason": "Google OAuth credentials not configured"},
            )

    def start(self, redirect_uri: str) -> Dict[str, str]:
        """
        Build the Google authorization URL

        Returns:
            Dict with auth_url, state and code_verifier; the client keeps the
            verifier and state until the callback
        """
        state = generate_random_string(STATE_LENGTH)
        code_verifier = generate_random_string(CODE_VERIFIER_LENGTH)

        oauth_params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": OAUTH_SCOPE,
            "state": state,
            "code_challenge": generate_code_challenge(code_verifier),
            "code_challenge_method": "S256",
            "access_type": "offline",
            "prompt": "consent",
        }

        logger.info(f"Generated Google auth URL for redirect {redirect_uri}")
        return {
            "auth_url": f"{GOOGLE_AUTH_URL}?{urlencode(oauth_params)}",
            "state": state,
            "code_verifier": code_verifier,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=10.0, transport=self._transport)

    async def exchange_code(self, code: str, code_verifier: str, redirect_uri: str) -> Dict[str, Any]:
        """
        Exchange an authorization code for Google tokens
        """
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "code_verifier": code_verifier,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }

        async def request() -> Dict[str, Any]:
            async with self._client() as client:
                response = await self._send(client.post(GOOGLE_TOKEN_URL, data=payload), "token exchange")
            token_data = response.json()
            if not token_data.get("access_token"):
                raise ExternalServiceError("No access token in Google response")
            return token_data

        return await with_retry_async(request, AUTH_RETRY_CONFIG, "google token exchange")

    async def fetch_user_info(self, access_token: str) -> GoogleUser:
        """
        Read the signed-in user's profile; the e-mail must be verified
        """
        headers = {"Authorization": f"Bearer {access_token}"}

        async def request() -> Dict[str, Any]:
            async with self._client() as client:
                response = await self._send(client.get(GOOGLE_USERINFO_URL, headers=headers), "userinfo")
            return response.json()

        data = await with_retry_async(request, AUTH_RETRY_CONFIG, "google userinfo")
        user = GoogleUser(**data)

        if not user.verified_email:
            logger.warning(f"Rejected Google sign-in with unverified e-mail: {user.email}")
            raise AuthenticationError("Google account e-mail is not verified")
        return user

    async def authenticate(self, code: str, code_verifier: str, redirect_uri: str) -> GoogleUser:
        tokens = await self.exchange_code(code, code_verifier, redirect_uri)
        return await self.fetch_user_info(tokens["access_token"])

    @staticmethod
    async def _send(pending, operation: str) -> httpx.Response:
        try:
            response = await pending
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Google {operation} timeout: {e}", code=ErrorCode.GATEWAY_TIMEOUT)
        except httpx.HTTPError as e:
            logger.error(f"Google {operation} error: {e}")
            raise ExternalServiceError(f"Google {operation} failed: {e}")

        if response.status_code == 503:
            raise ExternalServiceError(f"Google {operation} service unavailable (503)")
        if response.status_code >= 400:
            logger.error(f"Google {operation} returned {response.status_code}: {response.text[:200]}")
            raise ExternalServiceError(
                f"Google {operation} failed",
                details={"status": response.status_code},
            )
        return response
