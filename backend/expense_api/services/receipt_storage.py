"""
Receipt file storage

Receipts go to an S3-compatible bucket (Cloudflare R2) when one is
configured. When it is not, or when an upload keeps failing, the file is
written under LOCAL_STORAGE_DIR and served by the API until the periodic
sync moves it to the bucket.
"""

import logging
import mimetypes
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import quote, unquote, urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from expense_api.core.config import settings
from expense_api.core.errors import ErrorCode, FileError, ValidationError
from expense_api.core.retry import STORAGE_RETRY_CONFIG, with_retry

logger = logging.getLogger(__name__)

LOCAL_FILES_PATH = "/api/v1/receipts/files/"


class LocalReceiptBackend:
    """Files on local disk, keyed by their storage key"""

    def __init__(self, root_dir: str):
        self.root = Path(root_dir).resolve()

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValidationError("Invalid file key", field="key", value=key, constraint="relative key required")
        return path

    def put(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def read(self, key: str) -> bytes:
        path = self.path_for(key)
        if not path.is_file():
            raise FileError(f"File not found: {key}", code=ErrorCode.FILE_NOT_FOUND)
        return path.read_bytes()

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def list(self, prefix: str = "") -> List[str]:
        if not self.root.exists():
            return []
        keys = [p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file()]
        return sorted(k for k in keys if k.startswith(prefix))


class S3ReceiptBackend:
    """S3 API client bound to one bucket"""

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def put(self, key: str, data: bytes, content_type: str) -> None:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)

    def exists(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                return False
            raise

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)

    def list(self, prefix: str = "") -> List[str]:
        response = self.client.list_objects_v2(Bucket=self.bucket, Prefix=prefix)
        return [obj["Key"] for obj in response.get("Contents", [])]


class ReceiptStorage:
    def __init__(
        self,
        local: LocalReceiptBackend,
        bucket: Optional[S3ReceiptBackend] = None,
        public_base_url: str = settings.PUBLIC_BASE_URL,
        bucket_base_url: Optional[str] = None,
    ):
        self.local = local
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self.bucket_base_url = (bucket_base_url or "").rstrip("/")

    @property
    def bucket_configured(self) -> bool:
        return self.bucket is not None

    def local_url(self, key: str) -> str:
        return f"{self.public_base_url}{LOCAL_FILES_PATH}{quote(key)}"

    def bucket_url(self, key: str) -> str:
        return f"{self.bucket_base_url}/{self.bucket.bucket}/{quote(key)}"

    def url_for(self, key: str) -> str:
        if self.bucket_configured and not self.local.exists(key):
            return self.bucket_url(key)
        return self.local_url(key)

    def put(self, key: str, data: bytes, content_type: str) -> str:
        """
        Store a file and return its https URL
        """
        if self.bucket_configured:
            try:
                with_retry(
                    lambda: self.bucket.put(key, data, content_type),
                    STORAGE_RETRY_CONFIG,
                    f"upload {key}",
                )
                return self.bucket_url(key)
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Bucket upload failed for {key}, storing locally: {e}")

        self.local.put(key, data)
        logger.info(f"Stored receipt locally: {key}")
        return self.local_url(key)

    def exists(self, key: str) -> bool:
        if self.local.exists(key):
            return True
        if self.bucket_configured:
            return with_retry(lambda: self.bucket.exists(key), STORAGE_RETRY_CONFIG, f"exists {key}")
        return False

    def delete(self, key: str) -> None:
        self.local.delete(key)
        if self.bucket_configured:
            try:
                with_retry(lambda: self.bucket.delete(key), STORAGE_RETRY_CONFIG, f"delete {key}")
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Bucket delete failed for {key}: {e}")
                raise FileError(f"Failed to delete file: {key}", code=ErrorCode.DELETE_FAILED)

    def read(self, key: str) -> bytes:
        """Read a fallback file; bucket files are served by the bucket itself"""
        return self.local.read(key)

    def content_type_for(self, key: str) -> str:
        return mimetypes.guess_type(key)[0] or "application/octet-stream"

    def list(self, prefix: str = "") -> List[str]:
        keys = set(self.local.list(prefix))
        if self.bucket_configured:
            keys.update(with_retry(lambda: self.bucket.list(prefix), STORAGE_RETRY_CONFIG, f"list {prefix}"))
        return sorted(keys)

    def key_from_url(self, url: str) -> str:
        """
        Extract the storage key from a local or bucket receipt URL
        """
        try:
            parsed = urlparse(url)
        except ValueError:
            parsed = None

        if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationError("Invalid receipt URL", field="receiptUrl", value=url, constraint="valid URL required")

        if parsed.path.startswith(LOCAL_FILES_PATH):
            encoded_key = parsed.path[len(LOCAL_FILES_PATH):]
        else:
            # <base>/<bucket>/<key>
            parts = parsed.path.lstrip("/").split("/", 1)
            encoded_key = parts[1] if len(parts) > 1 else ""

        key = unquote(encoded_key)
        if not key or ".." in key.split("/"):
            raise ValidationError("Invalid receipt URL", field="receiptUrl", value=url, constraint="valid URL required")
        return key

    def sync_pending(self, db: Session) -> Dict[str, int]:
        """
        Move locally stored fallback files to the bucket

        Expenses pointing at a moved file get the bucket URL.
        """
        from expense_api.repositories.expense_repository import ExpenseRepository

        pending = self.local.list()
        result = {"pending": len(pending), "synced": 0, "failed": 0}
        if not self.bucket_configured:
            if pending:
                logger.info(f"{len(pending)} fallback receipts waiting, bucket not configured")
            return result

        expenses = ExpenseRepository(db)
        for key in pending:
            try:
                data = self.local.read(key)
                with_retry(
                    lambda: self.bucket.put(key, data, self.content_type_for(key)),
                    STORAGE_RETRY_CONFIG,
                    f"sync {key}",
                )
            except (BotoCoreError, ClientError) as e:
                logger.error(f"Failed to sync fallback receipt {key}: {e}")
                result["failed"] += 1
                continue

            updated = expenses.replace_receipt_url(self.local_url(key), self.bucket_url(key))
            self.local.delete(key)
            result["synced"] += 1
            logger.info(f"Synced fallback receipt {key} ({updated} expenses updated)")

        return result


def create_bucket_backend() -> Optional[S3ReceiptBackend]:
    if not settings.storage_bucket_configured:
        return None
    client = boto3.client(
        "s3",
        endpoint_url=settings.R2_ENDPOINT,
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name=settings.R2_REGION,
    )
    return S3ReceiptBackend(client, settings.R2_BUCKET_NAME)


@lru_cache()
def get_receipt_storage() -> ReceiptStorage:
    """Process-wide storage built from settings"""
    return ReceiptStorage(
        local=LocalReceiptBackend(settings.LOCAL_STORAGE_DIR),
        bucket=create_bucket_backend(),
        public_base_url=settings.PUBLIC_BASE_URL,
        bucket_base_url=settings.R2_PUBLIC_URL or settings.R2_ENDPOINT,
    )
