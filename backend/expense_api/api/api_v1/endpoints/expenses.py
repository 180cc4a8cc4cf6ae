"""
Expense endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
import logging

from expense_api.api.deps import get_current_user, get_storage, require_permission
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.core.errors import ErrorCode, ValidationError
from expense_api.core.utils import is_valid_month
from expense_api.models.user import User
from expense_api.repositories.expense_repository import ExpenseRepository
from expense_api.schemas.expense import ExpenseCreate, ExpenseUpdate
from expense_api.services.file_upload_service import FileUploadService, UploadedFile
from expense_api.services.receipt_storage import ReceiptStorage

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_month(month: Optional[str]) -> None:
    if month and not is_valid_month(month):
        raise ValidationError(
            "Month must be in YYYY-MM format",
            field="month",
            value=month,
            constraint="YYYY-MM format required",
        )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_expense(
    payload: ExpenseCreate,
    user: User = Depends(require_permission("expenses")),
    db: Session = Depends(get_db),
):
    expense = ExpenseRepository(db).create(payload.model_dump(), user.id)
    return success(expense=expense.to_dict())


@router.get("")
async def list_expenses(
    month: Optional[str] = Query(None, description="YYYY-MM"),
    category: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    _check_month(month)
    expenses = ExpenseRepository(db).find_all(user.id, month=month, category=category)
    return success(
        expenses=[e.to_dict() for e in expenses],
        count=len(expenses),
        filters={"month": month, "category": category},
    )


@router.get("/summary")
async def monthly_summary(
    month: str = Query(..., description="YYYY-MM"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not month:
        raise ValidationError("Month is required", field="month", value=month, constraint="required")
    _check_month(month)
    return success(summary=ExpenseRepository(db).monthly_summary(user.id, month))


@router.get("/{expense_id}")
async def get_expense(
    expense_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return success(expense=ExpenseRepository(db).get(expense_id, user.id).to_dict())


@router.put("/{expense_id}")
async def update_expense(
    expense_id: int,
    payload: ExpenseUpdate,
    user: User = Depends(require_permission("expenses")),
    db: Session = Depends(get_db),
):
    expense = ExpenseRepository(db).update(expense_id, payload.model_dump(exclude_unset=True), user.id)
    return success(expense=expense.to_dict())


@router.delete("/{expense_id}")
async def delete_expense(
    expense_id: int,
    user: User = Depends(require_permission("expenses")),
    db: Session = Depends(get_db),
):
    ExpenseRepository(db).delete(expense_id, user.id)
    return success(message="Expense deleted", id=expense_id)


@router.post("/{expense_id}/receipt")
async def upload_receipt(
    expense_id: int,
    file: UploadFile = File(None),
    user: User = Depends(require_permission("file_upload")),
    db: Session = Depends(get_db),
    storage: ReceiptStorage = Depends(get_storage),
):
    """
    Attach a receipt (JPEG, PNG, GIF or PDF) to an expense
    """
    if file is None:
        raise ValidationError("A file is required", code=ErrorCode.MISSING_FILE)

    expenses = ExpenseRepository(db)
    expenses.get(expense_id, user.id)

    upload = UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=await file.read(),
    )
    result = await run_in_threadpool(FileUploadService(storage).upload_receipt, user.id, expense_id, upload)
    expense = expenses.set_receipt_url(expense_id, result.file_url, user.id)
    return success(expense=expense.to_dict(), upload=result.to_dict())


@router.get("/{expense_id}/receipt")
async def get_receipt(
    expense_id: int,
    user: User = Depends(require_permission("file_download")),
    db: Session = Depends(get_db),
):
    receipt_url = ExpenseRepository(db).get_receipt_url(expense_id, user.id)
    return success(expense_id=expense_id, receipt_url=receipt_url)
