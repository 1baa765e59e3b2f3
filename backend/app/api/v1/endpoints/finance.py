"""
Finance API Endpoints.

School income/expense records, attachments, CSV export and student fees.
"""

from datetime import date, datetime
from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.exceptions import InsufficientBalanceError, ResourceNotFoundError
from backend.app.core.guards import require_role, require_view, FINANCE_STAFF
from backend.app.domain.finance.transaction_recorder import TransactionRecorder
from backend.app.models.enums import UserRole, View
from backend.app.models.finance_enums import TransactionType, TransactionStatus
from backend.app.models.financial_transaction import FinancialTransaction
from backend.app.schemas.finance import (
    FinancialTransactionCreate, FinancialTransactionResponse, RecordTransactionResponse,
    FinancialTransactionListResponse, TransactionStatusUpdate, TransactionDocument,
    StudentFeeCreate, StudentFeeResponse, FeePaymentCreate, FeePaymentResponse
)
from backend.app.services.audit import log_actor_event, AuditAction
from backend.app.services.change_feed import publish_changes
from backend.app.services.document_storage import DocumentStorage
from backend.app.services.transaction_queries import TransactionFilters, list_transactions, export_csv

router = APIRouter(prefix="/finance", tags=["Finance"])

RECORDERS = [UserRole.ADMIN, UserRole.FINANCE, UserRole.DEVELOPER]
STAFF = list(FINANCE_STAFF)


def get_document_storage() -> DocumentStorage:
    return DocumentStorage()


def _filters(
    type: TransactionType = Query(None),
    category: str = Query(None),
    status: TransactionStatus = Query(None),
    user_id: int = Query(None),
    date_from: date = Query(None),
    date_to: date = Query(None),
    search: str = Query(None, max_length=100),
    sort_by: str = Query("date", pattern="^(date|amount)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
) -> TransactionFilters:
    return TransactionFilters(
        type=type,
        category=category,
        status=status,
        user_id=user_id,
        date_from=date_from,
        date_to=date_to,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order
    )


def _scope_to_caller(filters: TransactionFilters, current_user: dict) -> TransactionFilters:
    # Non-staff viewers only see transactions linked to themselves
    if UserRole(current_user["role"]) not in FINANCE_STAFF:
        filters.user_id = current_user["user_id"]
    return filters


@router.post("/transactions", response_model=RecordTransactionResponse, status_code=status.HTTP_201_CREATED)
async def record_transaction(
    data: FinancialTransactionCreate,
    current_user: dict = Depends(require_role(RECORDERS)),
    db: AsyncSession = Depends(get_db)
):
    """
    Record an income or expense.

    An expense linked to a profile is paid from that profile's wallet. If
    the wallet cannot cover it the request fails with 409 ERR_WALLET_001 and
    nothing is written.
    """
    try:
        recorded = await TransactionRecorder.record(db, data, recorded_by_id=current_user["user_id"])
    except InsufficientBalanceError as e:
        await db.rollback()
        await log_actor_event(
            db, current_user, AuditAction.WALLET_DEDUCTION_REJECTED,
            target_user_id=data.user_id,
            metadata=e.details
        )
        raise

    await db.commit()
    transaction = recorded.transaction
    await db.refresh(transaction)

    changes = [("financial_transactions", "insert", transaction.id)]
    if recorded.wallet_entry is not None:
        changes += [
            ("wallet_balances", "update", data.user_id),
            ("wallet_transactions", "insert", recorded.wallet_entry.id),
        ]
    await publish_changes(*changes)

    await log_actor_event(
        db, current_user, AuditAction.FINANCIAL_TRANSACTION_RECORDED,
        target_user_id=transaction.user_id,
        metadata={
            "transaction_number": transaction.transaction_number,
            "type": transaction.type.value,
            "category": transaction.category,
            "amount": float(transaction.amount),
        }
    )

    wallet_entry = recorded.wallet_entry
    return RecordTransactionResponse(
        transaction=FinancialTransactionResponse.model_validate(transaction),
        wallet_balance_after=float(wallet_entry.balance_after) if wallet_entry is not None else None,
        currency=wallet_entry.currency if wallet_entry is not None else None
    )


@router.get("/transactions", response_model=FinancialTransactionListResponse)
async def get_transactions(
    filters: TransactionFilters = Depends(_filters),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: dict = Depends(require_view(View.FINANCE)),
    db: AsyncSession = Depends(get_db)
):
    """List transactions with filters, free-text search and sorting."""
    transactions, total = await list_transactions(
        db, _scope_to_caller(filters, current_user), limit=limit, offset=offset
    )
    return FinancialTransactionListResponse(
        transactions=[FinancialTransactionResponse.model_validate(t) for t in transactions],
        total=total
    )


@router.get("/transactions/export")
async def export_transactions(
    filters: TransactionFilters = Depends(_filters),
    current_user: dict = Depends(require_view(View.FINANCE)),
    db: AsyncSession = Depends(get_db)
):
    """Export the filtered list as CSV."""
    transactions, _ = await list_transactions(db, _scope_to_caller(filters, current_user))
    filename = f"transactions_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    return Response(
        content=export_csv(transactions),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/transactions/{transaction_id}", response_model=FinancialTransactionResponse)
async def get_transaction(
    transaction_id: int,
    current_user: dict = Depends(require_view(View.FINANCE)),
    db: AsyncSession = Depends(get_db)
):
    transaction = await db.get(FinancialTransaction, transaction_id)
    if transaction is None:
        raise ResourceNotFoundError("FinancialTransaction", transaction_id)

    if UserRole(current_user["role"]) not in FINANCE_STAFF and transaction.user_id != current_user["user_id"]:
        # Not visible to this caller; same answer as a missing row
        raise ResourceNotFoundError("FinancialTransaction", transaction_id)

    return FinancialTransactionResponse.model_validate(transaction)


@router.patch("/transactions/{transaction_id}/status", response_model=FinancialTransactionResponse)
async def update_transaction_status(
    transaction_id: int,
    update: TransactionStatusUpdate,
    current_user: dict = Depends(require_role(STAFF)),
    db: AsyncSession = Depends(get_db)
):
    """
    Change a transaction's status.

    Allowed: pending -> completed | cancelled, completed -> cancelled.
    Cancelling does not move wallet funds.
    """
    transaction, previous = await TransactionRecorder.update_status(db, transaction_id, update.status)
    await db.commit()
    await db.refresh(transaction)

    await publish_changes(("financial_transactions", "update", transaction.id))
    await log_actor_event(
        db, current_user, AuditAction.FINANCIAL_TRANSACTION_STATUS_CHANGED,
        target_user_id=transaction.user_id,
        metadata={
            "transaction_id": transaction.id,
            "from": previous.value,
            "to": update.status.value,
            "reason": update.reason,
        }
    )
    return FinancialTransactionResponse.model_validate(transaction)


@router.post("/documents", response_model=TransactionDocument, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    current_user: dict = Depends(require_role(RECORDERS)),
    storage: DocumentStorage = Depends(get_document_storage),
    db: AsyncSession = Depends(get_db)
):
    """Store a receipt or invoice; attach the returned metadata to a transaction."""
    document = await storage.store_upload(file)
    await log_actor_event(
        db, current_user, AuditAction.DOCUMENT_UPLOADED,
        metadata={"name": document["name"], "size": document["size"]}
    )
    return TransactionDocument(**document)


@router.post("/fees", response_model=StudentFeeResponse, status_code=status.HTTP_201_CREATED)
async def assign_fee(
    data: StudentFeeCreate,
    current_user: dict = Depends(require_role(STAFF)),
    db: AsyncSession = Depends(get_db)
):
    fee = await TransactionRecorder.assign_fee(db, data)
    await db.commit()
    await db.refresh(fee)

    await publish_changes(("student_fees", "insert", fee.id))
    await log_actor_event(
        db, current_user, AuditAction.FEE_ASSIGNED,
        metadata={"fee_id": fee.id, "student_id": fee.student_id, "amount": float(fee.amount)}
    )
    return StudentFeeResponse.model_validate(fee)


@router.post("/fees/{fee_id}/payments", response_model=FeePaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_fee_payment(
    fee_id: int,
    data: FeePaymentCreate,
    current_user: dict = Depends(require_role(STAFF)),
    db: AsyncSession = Depends(get_db)
):
    """Apply a payment to a fee and record it as income."""
    fee, transaction = await TransactionRecorder.record_fee_payment(
        db, fee_id, data, recorded_by_id=current_user["user_id"]
    )
    await db.commit()
    await db.refresh(fee)
    await db.refresh(transaction)

    await publish_changes(
        ("student_fees", "update", fee.id),
        ("financial_transactions", "insert", transaction.id),
    )
    await log_actor_event(
        db, current_user, AuditAction.FEE_PAYMENT_RECORDED,
        target_user_id=transaction.user_id,
        metadata={
            "fee_id": fee.id,
            "amount": float(transaction.amount),
            "transaction_number": transaction.transaction_number,
        }
    )
    return FeePaymentResponse(
        fee=StudentFeeResponse.model_validate(fee),
        transaction=FinancialTransactionResponse.model_validate(transaction)
    )
