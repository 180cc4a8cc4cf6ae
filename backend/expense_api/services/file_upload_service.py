"""
Receipt upload validation and key layout
"""

import logging
import re
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence

from expense_api.core.config import settings
from expense_api.core.errors import AppError, ErrorCode, FileError, ValidationError
from expense_api.core.utils import now_rfc3339
from expense_api.services.receipt_storage import ReceiptStorage

logger = logging.getLogger(__name__)

MAX_FILE_NAME_LENGTH = 255
MAX_SANITIZED_LENGTH = 200
_DANGEROUS_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


@dataclass
class UploadResult:
    success: bool
    file_key: str
    file_size: int
    content_type: str
    uploaded_at: str
    file_url: Optional[str] = None
    error: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes
    expense_id: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.data)


def sanitize_file_name(filename: str) -> str:
    """Replace unsafe characters and whitespace with underscores"""
    sanitized = _DANGEROUS_CHARS.sub("_", filename)
    sanitized = re.sub(r"\s+", "_", sanitized)
    sanitized = re.sub(r"_+", "_", sanitized)
    sanitized = sanitized.strip("_")
    return sanitized[:MAX_SANITIZED_LENGTH]


def build_file_key(user_id: str, expense_id: int, filename: str) -> str:
    timestamp_ms = int(time.time() * 1000)
    return f"users/{user_id}/receipts/{expense_id}/{timestamp_ms}_{sanitize_file_name(filename)}"


def has_file_access(user_id: str, file_key: str) -> bool:
    """Users may only touch keys under their own prefixes"""
    if not user_id or not file_key:
        return False
    return file_key.startswith(f"users/{user_id}/") or file_key.startswith(f"receipts/{user_id}/")


class FileUploadService:
    def __init__(
        self,
        storage: ReceiptStorage,
        max_file_size: int = settings.MAX_FILE_SIZE,
        allowed_types: Optional[Sequence[str]] = None,
        max_files: int = settings.MAX_FILES_PER_REQUEST,
    ):
        self.storage = storage
        self.max_file_size = max_file_size
        self.allowed_types = list(allowed_types or settings.allowed_file_types)
        self.max_files = max_files

    def validate_file(self, filename: str, content_type: str, size: int) -> None:
        """
        Raise FileError/ValidationError when the upload is not acceptable
        """
        if size > self.max_file_size:
            raise FileError(
                f"File exceeds the maximum size of {self.max_file_size} bytes",
                code=ErrorCode.FILE_TOO_LARGE,
                details={"field": "fileSize", "value": size, "constraint": f"maxSize: {self.max_file_size}"},
            )
        if size <= 0:
            raise ValidationError("File is empty", field="fileSize", value=size, constraint="minSize: 1")
        if content_type not in self.allowed_types:
            raise FileError(
                f"File type not allowed (allowed: {', '.join(self.allowed_types)})",
                code=ErrorCode.INVALID_FILE_TYPE,
                details={"field": "contentType", "value": content_type,
                         "constraint": f"allowedTypes: {', '.join(self.allowed_types)}"},
            )
        if not filename:
            raise ValidationError("File name is required", field="fileName", value=filename, constraint="required")
        if len(filename) > MAX_FILE_NAME_LENGTH:
            raise ValidationError(
                "File name is too long",
                field="fileName",
                value=len(filename),
                constraint=f"maxLength: {MAX_FILE_NAME_LENGTH}",
            )
        if _DANGEROUS_CHARS.search(filename):
            raise ValidationError(
                "File name contains invalid characters",
                field="fileName",
                value=filename,
                constraint="no dangerous characters",
            )

    def upload_receipt(self, user_id: str, expense_id: int, upload: UploadedFile) -> UploadResult:
        start_time = time.time()
        self.validate_file(upload.filename, upload.content_type, upload.size)

        file_key = build_file_key(user_id, expense_id, upload.filename)
        file_url = self.storage.put(file_key, upload.data, upload.content_type)

        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(f"Uploaded receipt {file_key} ({upload.size} bytes) in {duration_ms}ms")
        return UploadResult(
            success=True,
            file_key=file_key,
            file_size=upload.size,
            content_type=upload.content_type,
            uploaded_at=now_rfc3339(),
            file_url=file_url,
        )

    def upload_multiple(self, user_id: str, uploads: List[UploadedFile]) -> Dict[str, Any]:
        """
        Upload several receipts, reporting success or failure per file
        """
        if len(uploads) > self.max_files:
            raise ValidationError(
                f"Too many files (max: {self.max_files})",
                field="files",
                value=len(uploads),
                constraint=f"maxFiles: {self.max_files}",
            )

        results = []
        for upload in uploads:
            if upload.expense_id is None:
                raise ValidationError("Each file needs an expense id", field="expense_id")
            try:
                results.append(self.upload_receipt(user_id, upload.expense_id, upload))
            except AppError as e:
                logger.warning(f"Upload of {upload.filename} failed: {e}")
                results.append(UploadResult(
                    success=False,
                    file_key="",
                    file_size=upload.size,
                    content_type=upload.content_type,
                    uploaded_at=now_rfc3339(),
                    error=e.message,
                    details=e.details,
                ))

        successful = sum(1 for r in results if r.success)
        return {
            "total_files": len(uploads),
            "successful_uploads": successful,
            "failed_uploads": len(results) - successful,
            "results": [r.to_dict() for r in results],
        }
