"""
Google sign-in and session endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from expense_api.api.deps import get_bearer_token
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.repositories.user_repository import UserRepository
from expense_api.schemas.auth import OAuthCallbackRequest, OAuthStartRequest
from expense_api.services.auth_service import AuthService
from expense_api.services.google_oauth import GoogleOAuthService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_oauth_service() -> GoogleOAuthService:
    return GoogleOAuthService()


@router.post("/google/start")
async def google_start(
    payload: OAuthStartRequest,
    oauth: GoogleOAuthService = Depends(get_oauth_service),
):
    """
    Begin the PKCE flow; the client keeps state and code_verifier
    """
    return oauth.start(payload.redirect_uri)


@router.post("/google/callback")
async def google_callback(
    payload: OAuthCallbackRequest,
    db: Session = Depends(get_db),
    oauth: GoogleOAuthService = Depends(get_oauth_service),
):
    """
    Exchange the authorization code and issue an API session token
    """
    google_user = await oauth.authenticate(payload.code, payload.code_verifier, payload.redirect_uri)
    user = UserRepository(db).find_or_create_user(google_user)
    access_token, expires_in = AuthService(db).create_session(user.id)

    logger.info(f"User {user.id} signed in with Google")
    return {
        "access_token": access_token,
        "token_type": "Bearer",
        "expires_in": expires_in,
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "picture": user.picture_url,
        },
    }


@router.post("/logout")
async def logout(token: str = Depends(get_bearer_token), db: Session = Depends(get_db)):
    AuthService(db).revoke_session(token)
    return success(message="Signed out")
