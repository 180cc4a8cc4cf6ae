"""
Receipt file endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, File, Form, Request, Response, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
import logging

from expense_api.api.deps import get_storage, require_permission
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.core.errors import AuthorizationError, ErrorCode, ValidationError
from expense_api.core.security_log import log_security_event
from expense_api.models.user import User
from expense_api.repositories.expense_repository import ExpenseRepository
from expense_api.schemas.receipt import ReceiptUrlRequest
from expense_api.services.file_upload_service import FileUploadService, UploadedFile, has_file_access
from expense_api.services.receipt_storage import ReceiptStorage

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_access(request: Request, user: User, file_key: str, event: str = "UNAUTHORIZED_FILE_ACCESS") -> None:
    if not has_file_access(user.id, file_key):
        log_security_event(request, event, {"user": user.id, "key": file_key})
        raise AuthorizationError("Access to this file is not allowed", code=ErrorCode.FORBIDDEN)


@router.post("/check-exists")
async def check_exists(
    payload: ReceiptUrlRequest,
    request: Request,
    user: User = Depends(require_permission("file_download")),
    storage: ReceiptStorage = Depends(get_storage),
):
    file_key = storage.key_from_url(payload.receipt_url)
    _check_access(request, user, file_key)
    exists = await run_in_threadpool(storage.exists, file_key)
    return success(exists=exists, fileKey=file_key)


@router.delete("/delete-by-url")
async def delete_by_url(
    payload: ReceiptUrlRequest,
    request: Request,
    user: User = Depends(require_permission("file_delete")),
    db: Session = Depends(get_db),
    storage: ReceiptStorage = Depends(get_storage),
):
    """
    Delete a receipt file and unlink it from the user's expenses
    """
    file_key = storage.key_from_url(payload.receipt_url)
    _check_access(request, user, file_key, "UNAUTHORIZED_FILE_DELETE")
    await run_in_threadpool(storage.delete, file_key)
    unlinked = ExpenseRepository(db).clear_receipt_url(payload.receipt_url, user.id)

    logger.info(f"Deleted receipt {file_key} ({unlinked} expenses unlinked)")
    return success(message="Receipt deleted", fileKey=file_key, unlinkedExpenses=unlinked)


@router.get("/files/{file_key:path}")
async def get_file(
    file_key: str,
    request: Request,
    user: User = Depends(require_permission("file_download")),
    storage: ReceiptStorage = Depends(get_storage),
):
    """Serve a receipt kept in local fallback storage"""
    _check_access(request, user, file_key)
    content = await run_in_threadpool(storage.read, file_key)
    return Response(
        content=content,
        media_type=storage.content_type_for(file_key),
        headers={"Cache-Control": "private, max-age=3600"},
    )


@router.post("/upload-multiple")
async def upload_multiple(
    files: List[UploadFile] = File(...),
    expense_ids: List[int] = Form(...),
    user: User = Depends(require_permission("file_upload")),
    db: Session = Depends(get_db),
    storage: ReceiptStorage = Depends(get_storage),
):
    """
    Upload one receipt per expense; `expense_ids` pairs with `files` by position
    """
    if len(files) != len(expense_ids):
        raise ValidationError(
            "Each file needs a matching expense id",
            field="expense_ids",
            value=len(expense_ids),
            constraint=f"count: {len(files)}",
        )

    expenses = ExpenseRepository(db)
    for expense_id in expense_ids:
        expenses.get(expense_id, user.id)

    uploads = [
        UploadedFile(
            filename=f.filename or "",
            content_type=f.content_type or "",
            data=await f.read(),
            expense_id=expense_id,
        )
        for f, expense_id in zip(files, expense_ids)
    ]
    report = await run_in_threadpool(FileUploadService(storage).upload_multiple, user.id, uploads)

    for upload, result in zip(uploads, report["results"]):
        if result["success"]:
            expenses.set_receipt_url(upload.expense_id, result["file_url"], user.id)

    return success(**report)
