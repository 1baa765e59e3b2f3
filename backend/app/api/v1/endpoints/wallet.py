"""
Wallet API Endpoints.

Balances, ledger history, top-ups, wallet-to-wallet transfers and
canteen/store payments.
Every write goes through WalletLedgerService and commits once per request.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.exceptions import InsufficientBalanceError, ResourceNotFoundError
from backend.app.core.guards import OwnershipGuard, WALLET_READERS, require_role
from backend.app.domain.wallet.ledger_service import WalletLedgerService
from backend.app.models.finance_enums import WalletTransactionType
from backend.app.models.profile import Profile
from backend.app.schemas.wallet import (
    WalletBalanceResponse, TopUpRequest, TransferRequest, WalletPaymentRequest,
    WalletTransactionResponse, WalletTransactionListResponse, WalletTransferResponse
)
from backend.app.services.audit import log_actor_event, AuditAction
from backend.app.services.change_feed import publish_changes

router = APIRouter(prefix="/wallet", tags=["Wallet"])
ownership_guard = OwnershipGuard()

# Staff who take counter payments from student wallets
CASHIERS = list(WALLET_READERS)


async def _balance_response(db: AsyncSession, user_id: int) -> WalletBalanceResponse:
    balance, currency = await WalletLedgerService.get_balance(db, user_id)
    return WalletBalanceResponse(user_id=user_id, balance=float(balance), currency=currency)


@router.get("", response_model=WalletBalanceResponse)
async def get_my_wallet(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Current user's balance. Zero in the default currency if never topped up."""
    return await _balance_response(db, current_user["user_id"])


@router.get("/transactions", response_model=WalletTransactionListResponse)
async def list_my_wallet_transactions(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    user_id: int = Query(None, description="Another profile's ledger (staff, or a parent for a child)"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Wallet ledger entries, newest first."""
    target_id = user_id or current_user["user_id"]
    await ownership_guard.enforce(db, target_id, current_user, "wallet", readers=WALLET_READERS)

    entries, total = await WalletLedgerService.list_transactions(
        db, target_id, limit=page_size, offset=(page - 1) * page_size
    )
    return WalletTransactionListResponse(
        transactions=[WalletTransactionResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/top-up", response_model=WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
async def top_up(
    request: TopUpRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Credit a wallet.

    Users top up their own wallet; parents may top up their children's;
    finance staff may top up any profile.
    """
    target_id = request.user_id or current_user["user_id"]
    if target_id != current_user["user_id"]:
        await ownership_guard.enforce(db, target_id, current_user, "wallet")
        if await db.get(Profile, target_id) is None:
            raise ResourceNotFoundError("Profile", target_id)

    entry = await WalletLedgerService.credit(
        db, target_id, request.amount,
        description=request.description or "Wallet top-up"
    )
    await db.commit()
    await db.refresh(entry)

    await publish_changes(
        ("wallet_balances", "update", target_id),
        ("wallet_transactions", "insert", entry.id),
    )
    await log_actor_event(
        db, current_user, AuditAction.WALLET_TOPPED_UP,
        target_user_id=target_id,
        metadata={"amount": float(request.amount), "balance_after": float(entry.balance_after)}
    )
    return WalletTransactionResponse.model_validate(entry)


@router.post("/transfer", response_model=WalletTransferResponse, status_code=status.HTTP_201_CREATED)
async def transfer(
    request: TransferRequest,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Move funds from the current user's wallet to another wallet.

    Both ledger entries and the transfer record commit together; an
    insufficient balance (409) leaves both wallets untouched.
    """
    sender_id = current_user["user_id"]
    try:
        wallet_transfer = await WalletLedgerService.transfer(
            db, sender_id, request.to_user_id, request.amount, notes=request.notes
        )
    except InsufficientBalanceError as e:
        await db.rollback()
        await log_actor_event(
            db, current_user, AuditAction.WALLET_DEDUCTION_REJECTED,
            target_user_id=sender_id,
            metadata=e.details
        )
        raise
    await db.commit()
    await db.refresh(wallet_transfer)

    sender_balance, _ = await WalletLedgerService.get_balance(db, sender_id)

    await publish_changes(
        ("wallet_balances", "update", sender_id),
        ("wallet_balances", "update", request.to_user_id),
        ("wallet_transactions", "insert", None),
    )
    await log_actor_event(
        db, current_user, AuditAction.WALLET_TRANSFER_COMPLETED,
        target_user_id=request.to_user_id,
        metadata={"amount": float(request.amount), "reference_number": wallet_transfer.reference_number}
    )

    response = WalletTransferResponse.model_validate(wallet_transfer)
    response.sender_balance_after = float(sender_balance)
    return response


@router.post("/{user_id}/payments", response_model=WalletTransactionResponse, status_code=status.HTTP_201_CREATED)
async def charge_wallet(
    user_id: int,
    request: WalletPaymentRequest,
    current_user: dict = Depends(require_role(CASHIERS)),
    db: AsyncSession = Depends(get_db)
):
    """
    Take a cashless canteen or store payment from a student's wallet.

    Only the wallet ledger changes; the school's income/expense records are
    not touched. Insufficient balance returns 409 and writes nothing.
    """
    if await db.get(Profile, user_id) is None:
        raise ResourceNotFoundError("Profile", user_id)

    try:
        entry = await WalletLedgerService.debit(
            db, user_id, request.amount,
            entry_type=WalletTransactionType.PAYMENT,
            description=request.description or "Canteen purchase",
            description_ar=request.description_ar
        )
    except InsufficientBalanceError as e:
        await db.rollback()
        await log_actor_event(
            db, current_user, AuditAction.WALLET_DEDUCTION_REJECTED,
            target_user_id=user_id,
            metadata=e.details
        )
        raise
    await db.commit()
    await db.refresh(entry)

    await publish_changes(
        ("wallet_balances", "update", user_id),
        ("wallet_transactions", "insert", entry.id),
    )
    await log_actor_event(
        db, current_user, AuditAction.WALLET_PAYMENT_RECORDED,
        target_user_id=user_id,
        metadata={"amount": float(request.amount), "balance_after": float(entry.balance_after)}
    )
    return WalletTransactionResponse.model_validate(entry)


@router.get("/{user_id}", response_model=WalletBalanceResponse)
async def get_wallet(
    user_id: int,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Balance of another profile.

    Allowed for admin, finance and canteen staff, and for parents on
    their own children.
    """
    await ownership_guard.enforce(db, user_id, current_user, "wallet", readers=WALLET_READERS)
    if await db.get(Profile, user_id) is None:
        raise ResourceNotFoundError("Profile", user_id)
    return await _balance_response(db, user_id)
