"""
Tests for receipt storage, upload validation and the receipt endpoints
"""

import asyncio
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError

from expense_api.core.errors import ErrorCode, FileError, ValidationError
from expense_api.repositories.expense_repository import ExpenseRepository
from expense_api.services.file_upload_service import (
    FileUploadService,
    UploadedFile,
    build_file_key,
    has_file_access,
    sanitize_file_name,
)
from expense_api.services.receipt_storage import LocalReceiptBackend, ReceiptStorage, S3ReceiptBackend
from expense_api.tasks.maintenance_tasks import sync_fallback_receipts

RECEIPTS = "/api/v1/receipts"


class FakeS3Client:
    """Minimal stand-in for a boto3 S3 client"""

    def __init__(self, fail_puts=False):
        self.objects = {}
        self.fail_puts = fail_puts

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail_puts:
            raise ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "PutObject")
        self.objects[Key] = (Body, ContentType)

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject")
        return {}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def list_objects_v2(self, Bucket, Prefix):
        return {"Contents": [{"Key": k} for k in self.objects if k.startswith(Prefix)]}


def bucket_storage(tmp_path, client):
    return ReceiptStorage(
        local=LocalReceiptBackend(str(tmp_path / "fallback")),
        bucket=S3ReceiptBackend(client, "receipts"),
        public_base_url="https://api.test",
        bucket_base_url="https://r2.example.com",
    )


class TestFileNames:
    def test_sanitize(self):
        assert sanitize_file_name("my receipt (1).jpg") == "my_receipt_(1).jpg"
        assert sanitize_file_name('a<b>c:"d.png') == "a_b_c_d.png"
        assert len(sanitize_file_name("x" * 300)) == 200

    def test_key_layout(self):
        key = build_file_key("user-1", 42, "taxi.pdf")
        prefix, _, name = key.rpartition("/")
        assert prefix == "users/user-1/receipts/42"
        assert name.endswith("_taxi.pdf")

    def test_access(self):
        assert has_file_access("u1", "users/u1/receipts/1/a.jpg")
        assert has_file_access("u1", "receipts/u1/a.jpg")
        assert not has_file_access("u1", "users/u2/receipts/1/a.jpg")
        assert not has_file_access("", "users//a.jpg")


class TestFileUploadService:
    def test_validate_limits(self, storage):
        service = FileUploadService(storage, max_file_size=10)
        with pytest.raises(FileError) as exc_info:
            service.validate_file("a.jpg", "image/jpeg", 11)
        assert exc_info.value.code == ErrorCode.FILE_TOO_LARGE
        with pytest.raises(ValidationError):
            service.validate_file("a.jpg", "image/jpeg", 0)
        with pytest.raises(ValidationError):
            service.validate_file("a|b.jpg", "image/jpeg", 5)
        service.validate_file("a.jpg", "image/jpeg", 5)

    def test_upload_multiple_reports_each_file(self, storage):
        service = FileUploadService(storage)
        report = service.upload_multiple("u1", [
            UploadedFile("a.jpg", "image/jpeg", b"jpeg", expense_id=1),
            UploadedFile("b.exe", "application/x-msdownload", b"MZ", expense_id=2),
        ])
        assert report["total_files"] == 2
        assert report["successful_uploads"] == 1
        assert report["failed_uploads"] == 1
        assert report["results"][1]["error"]

    def test_upload_multiple_limit(self, storage):
        service = FileUploadService(storage, max_files=1)
        with pytest.raises(ValidationError):
            service.upload_multiple("u1", [UploadedFile("a.jpg", "image/jpeg", b"1", 1)] * 2)


class TestReceiptStorage:
    def test_local_only(self, storage):
        url = storage.put("users/u1/receipts/1/a.jpg", b"data", "image/jpeg")
        assert url == "https://api.test/api/v1/receipts/files/users/u1/receipts/1/a.jpg"
        assert storage.exists("users/u1/receipts/1/a.jpg")
        assert storage.read("users/u1/receipts/1/a.jpg") == b"data"
        assert storage.key_from_url(url) == "users/u1/receipts/1/a.jpg"

    def test_bucket_upload(self, tmp_path):
        client = FakeS3Client()
        storage = bucket_storage(tmp_path, client)

        url = storage.put("users/u1/receipts/1/a.jpg", b"data", "image/jpeg")

        assert url == "https://r2.example.com/receipts/users/u1/receipts/1/a.jpg"
        assert "users/u1/receipts/1/a.jpg" in client.objects
        assert storage.key_from_url(url) == "users/u1/receipts/1/a.jpg"
        assert storage.exists("users/u1/receipts/1/a.jpg")
        assert not storage.exists("users/u1/receipts/1/missing.jpg")

    def test_falls_back_to_local_when_bucket_fails(self, tmp_path):
        storage = bucket_storage(tmp_path, FakeS3Client(fail_puts=True))
        url = storage.put("users/u1/receipts/1/a.jpg", b"data", "image/jpeg")
        assert url.startswith("https://api.test/api/v1/receipts/files/")
        assert storage.local.exists("users/u1/receipts/1/a.jpg")

    def test_path_traversal_rejected(self, storage):
        with pytest.raises(ValidationError):
            storage.local.path_for("../../etc/passwd")
        with pytest.raises(ValidationError):
            storage.key_from_url("https://api.test/api/v1/receipts/files/users/u1/../../secret")

    def test_invalid_url(self, storage):
        with pytest.raises(ValidationError):
            storage.key_from_url("not a url")

    def test_sync_pending_moves_files_and_repoints_expenses(self, tmp_path, db, user):
        client = FakeS3Client(fail_puts=True)
        storage = bucket_storage(tmp_path, client)
        key = f"users/{user.id}/receipts/1/a.jpg"
        local_url = storage.put(key, b"data", "image/jpeg")
        expense = ExpenseRepository(db).create(
            {"date": "2024-03-01", "amount": 1, "category": "Meals", "receipt_url": local_url}, user.id
        )

        client.fail_puts = False
        result = storage.sync_pending(db)

        assert result == {"pending": 1, "synced": 1, "failed": 0}
        assert key in client.objects
        assert not storage.local.exists(key)
        assert ExpenseRepository(db).get_receipt_url(expense.id, user.id) == storage.bucket_url(key)

    def test_sync_without_bucket_leaves_files(self, storage):
        storage.put("users/u1/receipts/1/a.jpg", b"data", "image/jpeg")
        assert storage.sync_pending(None) == {"pending": 1, "synced": 0, "failed": 0}


def upload_receipt(client, headers):
    expense = client.post(
        "/api/v1/expenses",
        json={"date": "2024-03-10", "amount": 500, "category": "Supplies"},
        headers=headers,
    ).json()["expense"]
    response = client.post(
        f"/api/v1/expenses/{expense['id']}/receipt",
        files={"file": ("pens.png", b"\x89PNG fake", "image/png")},
        headers=headers,
    )
    return expense, response.json()["expense"]["receipt_url"]


class TestReceiptEndpoints:
    def test_serve_file(self, client, auth_headers):
        _, receipt_url = upload_receipt(client, auth_headers)
        path = receipt_url[len("https://api.test"):]

        response = client.get(path, headers=auth_headers)
        assert response.status_code == 200
        assert response.content == b"\x89PNG fake"
        assert response.headers["content-type"] == "image/png"

    def test_serve_file_owner_only(self, client, auth_headers, other_auth_headers):
        _, receipt_url = upload_receipt(client, auth_headers)
        response = client.get(receipt_url[len("https://api.test"):], headers=other_auth_headers)
        assert response.status_code == 403

    def test_check_exists(self, client, auth_headers):
        _, receipt_url = upload_receipt(client, auth_headers)
        response = client.post(f"{RECEIPTS}/check-exists", json={"receiptUrl": receipt_url}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["exists"] is True

    def test_delete_by_url(self, client, auth_headers):
        expense, receipt_url = upload_receipt(client, auth_headers)

        response = client.request(
            "DELETE", f"{RECEIPTS}/delete-by-url", json={"receiptUrl": receipt_url}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["unlinkedExpenses"] == 1

        exists = client.post(f"{RECEIPTS}/check-exists", json={"receiptUrl": receipt_url}, headers=auth_headers)
        assert exists.json()["exists"] is False
        detail = client.get(f"/api/v1/expenses/{expense['id']}", headers=auth_headers).json()
        assert detail["expense"]["receipt_url"] is None

    def test_delete_other_users_receipt_forbidden(self, client, auth_headers, other_auth_headers):
        _, receipt_url = upload_receipt(client, auth_headers)
        response = client.request(
            "DELETE", f"{RECEIPTS}/delete-by-url", json={"receiptUrl": receipt_url}, headers=other_auth_headers
        )
        assert response.status_code == 403

    def test_storage_calls_run_off_the_event_loop(self, client, storage, auth_headers, monkeypatch):
        on_loop = []

        def recording(method):
            def wrapper(*args, **kwargs):
                try:
                    asyncio.get_running_loop()
                    on_loop.append(True)
                except RuntimeError:
                    on_loop.append(False)
                return method(*args, **kwargs)
            return wrapper

        for name in ("put", "exists", "read", "delete"):
            monkeypatch.setattr(storage, name, recording(getattr(storage, name)))

        _, receipt_url = upload_receipt(client, auth_headers)
        client.post(f"{RECEIPTS}/check-exists", json={"receiptUrl": receipt_url}, headers=auth_headers)
        client.get(receipt_url[len("https://api.test"):], headers=auth_headers)
        client.request("DELETE", f"{RECEIPTS}/delete-by-url", json={"receiptUrl": receipt_url}, headers=auth_headers)

        assert on_loop == [False, False, False, False]

    def test_upload_multiple(self, client, auth_headers):
        ids = []
        for amount in (100, 200):
            ids.append(client.post(
                "/api/v1/expenses",
                json={"date": "2024-03-10", "amount": amount, "category": "Meals"},
                headers=auth_headers,
            ).json()["expense"]["id"])

        response = client.post(
            f"{RECEIPTS}/upload-multiple",
            files=[
                ("files", ("a.jpg", b"jpeg", "image/jpeg")),
                ("files", ("b.txt", b"text", "text/plain")),
            ],
            data={"expense_ids": [str(i) for i in ids]},
            headers=auth_headers,
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["successful_uploads"] == 1
        assert body["failed_uploads"] == 1

        first = client.get(f"/api/v1/expenses/{ids[0]}", headers=auth_headers).json()["expense"]
        second = client.get(f"/api/v1/expenses/{ids[1]}", headers=auth_headers).json()["expense"]
        assert first["receipt_url"].startswith("https://")
        assert second["receipt_url"] is None


class TestSyncTask:
    def test_sync_fallback_receipts_task(self, tmp_path, session_factory, user):
        client = FakeS3Client(fail_puts=True)
        storage = bucket_storage(tmp_path, client)
        key = f"users/{user.id}/receipts/1/a.jpg"
        local_url = storage.put(key, b"data", "image/jpeg")
        with session_factory() as db:
            expense_id = ExpenseRepository(db).create(
                {"date": "2024-03-01", "amount": 1, "category": "Meals", "receipt_url": local_url}, user.id
            ).id

        client.fail_puts = False
        with patch("expense_api.tasks.maintenance_tasks.SessionLocal", session_factory), \
                patch("expense_api.tasks.maintenance_tasks.get_receipt_storage", return_value=storage):
            result = sync_fallback_receipts.run()

        assert result == {"status": "completed", "pending": 1, "synced": 1, "failed": 0}
        assert key in client.objects
        with session_factory() as db:
            assert ExpenseRepository(db).get_receipt_url(expense_id, user.id) == storage.bucket_url(key)
