"""
Structured application errors

Every error raised by the API is mapped to an ErrorCode, an HTTP status and
an ErrorCategory, and rendered with the same JSON envelope:

    {"error": {"code", "message", "details", "timestamp", "requestId"}}
"""

from enum import Enum
from typing import Any, Dict, Optional
import uuid

from expense_api.core.utils import now_rfc3339


class ErrorCode(str, Enum):
    # Validation
    BAD_REQUEST = "BAD_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_FILE = "MISSING_FILE"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    INVALID_REQUEST_FORMAT = "INVALID_REQUEST_FORMAT"

    # Authentication / authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    MISSING_AUTH_HEADER = "MISSING_AUTH_HEADER"
    INVALID_AUTH_HEADER = "INVALID_AUTH_HEADER"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"

    # Resources
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Rate limiting
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Server
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    GATEWAY_TIMEOUT = "GATEWAY_TIMEOUT"

    # File processing
    UPLOAD_FAILED = "UPLOAD_FAILED"
    DELETE_FAILED = "DELETE_FAILED"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    RESOURCE = "resource"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    EXTERNAL_SERVICE = "external_service"
    FILE_PROCESSING = "file_processing"


ERROR_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.BAD_REQUEST: 400,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.MISSING_FILE: 400,
    ErrorCode.INVALID_FILE_TYPE: 415,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.INVALID_REQUEST_FORMAT: 400,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.MISSING_AUTH_HEADER: 401,
    ErrorCode.INVALID_AUTH_HEADER: 401,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
    ErrorCode.DATABASE_ERROR: 500,
    ErrorCode.STORAGE_ERROR: 502,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.SERVICE_UNAVAILABLE: 503,
    ErrorCode.GATEWAY_TIMEOUT: 504,
    ErrorCode.UPLOAD_FAILED: 400,
    ErrorCode.DELETE_FAILED: 500,
    ErrorCode.FILE_NOT_FOUND: 404,
}

ERROR_CATEGORY_MAP: Dict[ErrorCode, ErrorCategory] = {
    ErrorCode.BAD_REQUEST: ErrorCategory.VALIDATION,
    ErrorCode.VALIDATION_ERROR: ErrorCategory.VALIDATION,
    ErrorCode.MISSING_FILE: ErrorCategory.VALIDATION,
    ErrorCode.INVALID_FILE_TYPE: ErrorCategory.FILE_PROCESSING,
    ErrorCode.FILE_TOO_LARGE: ErrorCategory.FILE_PROCESSING,
    ErrorCode.INVALID_REQUEST_FORMAT: ErrorCategory.VALIDATION,
    ErrorCode.UNAUTHORIZED: ErrorCategory.AUTHENTICATION,
    ErrorCode.MISSING_AUTH_HEADER: ErrorCategory.AUTHENTICATION,
    ErrorCode.INVALID_AUTH_HEADER: ErrorCategory.AUTHENTICATION,
    ErrorCode.INVALID_TOKEN: ErrorCategory.AUTHENTICATION,
    ErrorCode.TOKEN_EXPIRED: ErrorCategory.AUTHENTICATION,
    ErrorCode.FORBIDDEN: ErrorCategory.AUTHORIZATION,
    ErrorCode.INSUFFICIENT_PERMISSIONS: ErrorCategory.AUTHORIZATION,
    ErrorCode.NOT_FOUND: ErrorCategory.RESOURCE,
    ErrorCode.CONFLICT: ErrorCategory.RESOURCE,
    ErrorCode.RATE_LIMIT_EXCEEDED: ErrorCategory.RATE_LIMIT,
    ErrorCode.INTERNAL_SERVER_ERROR: ErrorCategory.SERVER,
    ErrorCode.DATABASE_ERROR: ErrorCategory.SERVER,
    ErrorCode.STORAGE_ERROR: ErrorCategory.EXTERNAL_SERVICE,
    ErrorCode.EXTERNAL_SERVICE_ERROR: ErrorCategory.EXTERNAL_SERVICE,
    ErrorCode.SERVICE_UNAVAILABLE: ErrorCategory.SERVER,
    ErrorCode.GATEWAY_TIMEOUT: ErrorCategory.SERVER,
    ErrorCode.UPLOAD_FAILED: ErrorCategory.FILE_PROCESSING,
    ErrorCode.DELETE_FAILED: ErrorCategory.FILE_PROCESSING,
    ErrorCode.FILE_NOT_FOUND: ErrorCategory.FILE_PROCESSING,
}


class AppError(Exception):
    """Base exception for all errors surfaced through the API"""

    default_code = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details
        self.status_code = status_code or ERROR_STATUS_MAP[self.code]
        super().__init__(message)

    @property
    def category(self) -> ErrorCategory:
        return ERROR_CATEGORY_MAP[self.code]

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class ValidationError(AppError):
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None,
                 constraint: Optional[str] = None, code: Optional[ErrorCode] = None):
        details = None
        if field is not None:
            details = {"field": field, "value": value, "constraint": constraint}
        super().__init__(message, code=code, details=details)


class NotFoundError(AppError):
    default_code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    default_code = ErrorCode.CONFLICT


class AuthenticationError(AppError):
    default_code = ErrorCode.UNAUTHORIZED


class AuthorizationError(AppError):
    default_code = ErrorCode.FORBIDDEN


class FileError(AppError):
    default_code = ErrorCode.UPLOAD_FAILED


class ExternalServiceError(AppError):
    default_code = ErrorCode.EXTERNAL_SERVICE_ERROR


class DatabaseError(AppError):
    default_code = ErrorCode.DATABASE_ERROR


def error_body(
    code: ErrorCode,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the JSON error envelope"""
    error: Dict[str, Any] = {
        "code": code.value,
        "message": message,
        "timestamp": now_rfc3339(),
        "requestId": request_id or str(uuid.uuid4()),
    }
    if details:
        error["details"] = details
    return {"error": error}
