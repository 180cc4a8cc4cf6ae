"""
Shared endpoint dependencies: database session and the authenticated user
"""

from typing import Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from expense_api.core.database import get_db
from expense_api.core.errors import AuthenticationError, AuthorizationError, ErrorCode
from expense_api.core.security_log import log_security_event
from expense_api.models.user import User
from expense_api.services.auth_service import AuthService
from expense_api.services.receipt_storage import ReceiptStorage, get_receipt_storage


def get_bearer_token(request: Request) -> str:
    """
    Extract the token from an `Authorization: Bearer <token>` header
    """
    header: Optional[str] = request.headers.get("authorization")
    if not header:
        log_security_event(request, "MISSING_AUTH_HEADER")
        raise AuthenticationError("Authorization header is required", code=ErrorCode.MISSING_AUTH_HEADER)

    scheme, _, token = header.partition(" ")
    token = token.strip()
    if scheme != "Bearer" or not token or " " in token:
        log_security_event(request, "INVALID_AUTH_HEADER")
        raise AuthenticationError(
            "Authorization header must use the Bearer scheme",
            code=ErrorCode.INVALID_AUTH_HEADER,
        )
    return token


def get_current_user(
    request: Request,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> User:
    try:
        user = AuthService(db).validate_token(token)
    except AuthenticationError as e:
        log_security_event(request, "INVALID_TOKEN", {"code": e.code.value})
        raise

    request.state.user_id = user.id
    return user


def require_permission(resource: str) -> Callable[..., User]:
    """Dependency factory rejecting users without access to a resource"""

    def dependency(user: User = Depends(get_current_user)) -> User:
        if not AuthService.check_permission(user, resource):
            raise AuthorizationError(
                f"Permission denied for {resource}",
                code=ErrorCode.INSUFFICIENT_PERMISSIONS,
            )
        return user

    return dependency


def get_storage() -> ReceiptStorage:
    return get_receipt_storage()
