"""
Wallet Ledger Service (Domain Logic).

Owns every write to wallet_balances and wallet_transactions.

Rules:
- A debit is a single conditional UPDATE ... WHERE balance >= amount, so the
  check and the deduction cannot be separated by a concurrent request.
- Every balance change appends exactly one ledger entry carrying the
  resulting balance.
- Nothing here commits. The caller owns the transaction so a request's
  writes succeed or roll back together.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update, func, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import BusinessRuleError, InsufficientBalanceError, ResourceNotFoundError
from backend.app.models.finance_enums import WalletTransactionType, TransferStatus
from backend.app.models.profile import Profile
from backend.app.models.wallet import WalletBalance, WalletTransaction, WalletTransfer

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
QUANTUM = Decimal("0.001")


def to_money(value) -> Decimal:
    """Normalize a DB or request value to a 3-place Decimal."""
    if value is None:
        return ZERO.quantize(QUANTUM)
    return Decimal(str(value)).quantize(QUANTUM)


@dataclass
class ReconciliationReport:
    user_id: int
    stored_balance: Decimal
    replayed_balance: Decimal
    entry_count: int
    last_balance_after: Optional[Decimal]

    @property
    def consistent(self) -> bool:
        if self.stored_balance != self.replayed_balance:
            return False
        if self.last_balance_after is None:
            return True
        return self.last_balance_after == self.stored_balance


class WalletLedgerService:

    @staticmethod
    async def get_balance_row(db: AsyncSession, user_id: int) -> Optional[WalletBalance]:
        result = await db.execute(
            select(WalletBalance)
            .where(WalletBalance.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_balance(db: AsyncSession, user_id: int) -> tuple[Decimal, str]:
        """
        Current balance and currency for a user.

        A user without a balance row has a zero balance in the default currency.
        """
        row = await WalletLedgerService.get_balance_row(db, user_id)
        if row is None:
            return to_money(ZERO), settings.default_currency
        return to_money(row.balance), row.currency

    @staticmethod
    def _check_amount(amount: Decimal) -> Decimal:
        amount = to_money(amount)
        if amount <= ZERO:
            raise BusinessRuleError(
                "Amount must be greater than zero",
                details={"amount": float(amount)}
            )
        return amount

    @staticmethod
    async def _append_entry(
        db: AsyncSession,
        user_id: int,
        entry_type: WalletTransactionType,
        signed_amount: Decimal,
        balance_after: Decimal,
        currency: str,
        description: Optional[str] = None,
        description_ar: Optional[str] = None,
        financial_transaction_id: Optional[int] = None,
        transfer_id: Optional[int] = None
    ) -> WalletTransaction:
        entry = WalletTransaction(
            user_id=user_id,
            type=entry_type,
            amount=signed_amount,
            balance_after=balance_after,
            currency=currency,
            description=description,
            description_ar=description_ar,
            financial_transaction_id=financial_transaction_id,
            transfer_id=transfer_id
        )
        db.add(entry)
        await db.flush()
        return entry

    @staticmethod
    async def _increment(db: AsyncSession, user_id: int, amount: Decimal) -> Optional[tuple[Decimal, str]]:
        stmt = (
            update(WalletBalance)
            .where(WalletBalance.user_id == user_id)
            .values(balance=WalletBalance.balance + amount, updated_at=func.now())
            .returning(WalletBalance.balance, WalletBalance.currency)
            .execution_options(synchronize_session=False)
        )
        row = (await db.execute(stmt)).first()
        if row is None:
            return None
        return to_money(row.balance), row.currency

    @staticmethod
    async def credit(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        entry_type: WalletTransactionType = WalletTransactionType.TOP_UP,
        description: Optional[str] = None,
        description_ar: Optional[str] = None,
        financial_transaction_id: Optional[int] = None,
        transfer_id: Optional[int] = None
    ) -> WalletTransaction:
        """
        Add funds to a wallet, creating the balance row on first credit.

        Returns the appended ledger entry.
        """
        amount = WalletLedgerService._check_amount(amount)

        updated = await WalletLedgerService._increment(db, user_id, amount)
        if updated is None:
            # First credit: insert the row inside a savepoint so a concurrent
            # insert for the same user only costs a retry of the update
            try:
                async with db.begin_nested():
                    db.add(WalletBalance(
                        user_id=user_id,
                        balance=amount,
                        currency=settings.default_currency
                    ))
                updated = (amount, settings.default_currency)
            except IntegrityError:
                updated = await WalletLedgerService._increment(db, user_id, amount)
                if updated is None:
                    raise

        new_balance, currency = updated
        entry = await WalletLedgerService._append_entry(
            db, user_id, entry_type, amount, new_balance, currency,
            description=description,
            description_ar=description_ar,
            financial_transaction_id=financial_transaction_id,
            transfer_id=transfer_id
        )
        logger.info("Wallet credited: user=%s amount=%s balance=%s %s", user_id, amount, new_balance, currency)
        return entry

    @staticmethod
    async def debit(
        db: AsyncSession,
        user_id: int,
        amount: Decimal,
        entry_type: WalletTransactionType = WalletTransactionType.WITHDRAWAL,
        description: Optional[str] = None,
        description_ar: Optional[str] = None,
        financial_transaction_id: Optional[int] = None,
        transfer_id: Optional[int] = None
    ) -> WalletTransaction:
        """
        Deduct funds from a wallet.

        The balance check and the deduction are one conditional UPDATE; if it
        matches no row the wallet is untouched and InsufficientBalanceError is
        raised with the balance the database holds right now. A missing
        balance row counts as a zero balance.
        """
        amount = WalletLedgerService._check_amount(amount)

        stmt = (
            update(WalletBalance)
            .where(
                WalletBalance.user_id == user_id,
                WalletBalance.balance >= amount
            )
            .values(balance=WalletBalance.balance - amount, updated_at=func.now())
            .returning(WalletBalance.balance, WalletBalance.currency)
            .execution_options(synchronize_session=False)
        )
        row = (await db.execute(stmt)).first()

        if row is None:
            available, currency = await WalletLedgerService.get_balance(db, user_id)
            logger.info(
                "Wallet deduction rejected: user=%s requested=%s available=%s %s",
                user_id, amount, available, currency
            )
            raise InsufficientBalanceError(user_id, available, amount, currency)

        new_balance, currency = to_money(row.balance), row.currency
        entry = await WalletLedgerService._append_entry(
            db, user_id, entry_type, -amount, new_balance, currency,
            description=description,
            description_ar=description_ar,
            financial_transaction_id=financial_transaction_id,
            transfer_id=transfer_id
        )
        logger.info("Wallet debited: user=%s amount=%s balance=%s %s", user_id, amount, new_balance, currency)
        return entry

    @staticmethod
    async def transfer(
        db: AsyncSession,
        from_user_id: int,
        to_user_id: int,
        amount: Decimal,
        notes: Optional[str] = None
    ) -> WalletTransfer:
        """
        Move funds between two wallets.

        Flow:
        1. Validate (distinct users, receiver exists, amount > 0)
        2. Create transfer row (PENDING)
        3. Conditional debit of sender
        4. Credit of receiver
        5. Mark transfer COMPLETED

        Any failure leaves the whole unit for the caller to roll back.
        """
        if from_user_id == to_user_id:
            raise BusinessRuleError("Cannot transfer to the same wallet")

        amount = WalletLedgerService._check_amount(amount)

        receiver = await db.get(Profile, to_user_id)
        if receiver is None:
            raise ResourceNotFoundError("Profile", to_user_id)

        transfer = WalletTransfer(
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            amount=amount,
            currency=settings.default_currency,
            notes=notes,
            reference_number=f"TRF-{uuid.uuid4().hex[:12].upper()}",
            status=TransferStatus.PENDING
        )
        db.add(transfer)
        await db.flush()

        await WalletLedgerService.debit(
            db, from_user_id, amount,
            entry_type=WalletTransactionType.TRANSFER_OUT,
            description=notes or f"Transfer to {receiver.full_name}",
            transfer_id=transfer.id
        )
        await WalletLedgerService.credit(
            db, to_user_id, amount,
            entry_type=WalletTransactionType.TRANSFER_IN,
            description=notes or "Transfer received",
            transfer_id=transfer.id
        )

        transfer.status = TransferStatus.COMPLETED
        transfer.completed_at = datetime.now(timezone.utc)
        await db.flush()
        return transfer

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        user_id: int,
        limit: int = 50,
        offset: int = 0
    ) -> tuple[List[WalletTransaction], int]:
        """Ledger entries for a user, newest first."""
        total = (await db.execute(
            select(func.count(WalletTransaction.id)).where(WalletTransaction.user_id == user_id)
        )).scalar() or 0

        result = await db.execute(
            select(WalletTransaction)
            .where(WalletTransaction.user_id == user_id)
            .order_by(desc(WalletTransaction.id))
            .offset(offset)
            .limit(limit)
        )
        return result.scalars().all(), total

    @staticmethod
    async def reconcile(db: AsyncSession, user_id: int) -> ReconciliationReport:
        """Replay a user's ledger in insertion order and compare with the stored balance."""
        result = await db.execute(
            select(WalletTransaction.amount, WalletTransaction.balance_after)
            .where(WalletTransaction.user_id == user_id)
            .order_by(WalletTransaction.id)
        )
        entries = result.all()

        replayed = to_money(sum((to_money(entry.amount) for entry in entries), ZERO))
        stored, _ = await WalletLedgerService.get_balance(db, user_id)
        last_after = to_money(entries[-1].balance_after) if entries else None

        report = ReconciliationReport(
            user_id=user_id,
            stored_balance=stored,
            replayed_balance=replayed,
            entry_count=len(entries),
            last_balance_after=last_after
        )
        if not report.consistent:
            logger.warning(
                "Wallet ledger mismatch: user=%s stored=%s replayed=%s",
                user_id, stored, replayed
            )
        return report
