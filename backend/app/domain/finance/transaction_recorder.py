"""
Transaction Recorder (Domain Logic).

Records school income/expense transactions and student fee payments.

Flow for a new transaction:
1. Validate (category belongs to the type, amount > 0, linked profile exists)
2. Expense with a linked profile: conditional wallet debit
3. Insert FinancialTransaction and derive its transaction number
4. Link the wallet entry to the transaction

All writes happen in the caller's database transaction; validation and
balance failures raise before anything is written.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import BusinessRuleError, ResourceNotFoundError
from backend.app.domain.wallet.ledger_service import WalletLedgerService, to_money
from backend.app.models.finance_enums import (
    CATEGORIES_BY_TYPE, STATUS_TRANSITIONS, TransactionType, TransactionStatus,
    PaymentMethod, FeeStatus
)
from backend.app.models.financial_transaction import FinancialTransaction, StudentFee
from backend.app.models.profile import Profile
from backend.app.models.student import Student
from backend.app.models.wallet import WalletTransaction
from backend.app.schemas.finance import FinancialTransactionCreate, StudentFeeCreate, FeePaymentCreate

logger = logging.getLogger(__name__)


def format_transaction_number(transaction_id: int, transaction_date: date) -> str:
    """NNNN-MM-YYYY, e.g. 0042-03-2025."""
    return f"{transaction_id:04d}-{transaction_date.month:02d}-{transaction_date.year}"


def fee_status_for(amount: Decimal, paid_amount: Decimal) -> FeeStatus:
    if paid_amount <= 0:
        return FeeStatus.PENDING
    if paid_amount < amount:
        return FeeStatus.PARTIAL
    return FeeStatus.PAID


@dataclass
class RecordedTransaction:
    transaction: FinancialTransaction
    wallet_entry: Optional[WalletTransaction] = None


class TransactionRecorder:

    @staticmethod
    def validate_category(tx_type: TransactionType, category: str):
        if category not in CATEGORIES_BY_TYPE[tx_type]:
            raise BusinessRuleError(
                f"Category '{category}' is not valid for {tx_type.value} transactions",
                details={
                    "category": category,
                    "type": tx_type.value,
                    "allowed": sorted(CATEGORIES_BY_TYPE[tx_type]),
                }
            )

    @staticmethod
    async def record(
        db: AsyncSession,
        data: FinancialTransactionCreate,
        recorded_by_id: Optional[int]
    ) -> RecordedTransaction:
        """
        Record a financial transaction.

        Raises:
            BusinessRuleError: category/type mismatch or non-positive amount
            ResourceNotFoundError: linked profile does not exist
            InsufficientBalanceError: expense exceeds the linked wallet's balance
        """
        TransactionRecorder.validate_category(data.type, data.category)
        amount = to_money(data.amount)
        if amount <= 0:
            raise BusinessRuleError("Amount must be greater than zero")

        if data.user_id is not None and await db.get(Profile, data.user_id) is None:
            raise ResourceNotFoundError("Profile", data.user_id)

        wallet_entry = None
        if data.type == TransactionType.EXPENSE and data.user_id is not None:
            wallet_entry = await WalletLedgerService.debit(
                db, data.user_id, amount,
                description=data.description or data.category,
                description_ar=data.description_ar
            )

        transaction = FinancialTransaction(
            type=data.type,
            category=data.category,
            amount=amount,
            description=data.description,
            description_ar=data.description_ar,
            payment_method=data.payment_method,
            reference_number=data.reference_number,
            transaction_date=data.transaction_date or date.today(),
            user_id=data.user_id,
            recorded_by_id=recorded_by_id,
            documents=[doc.model_dump() for doc in data.documents],
            status=TransactionStatus.COMPLETED
        )
        db.add(transaction)
        await db.flush()

        transaction.transaction_number = format_transaction_number(transaction.id, transaction.transaction_date)
        if wallet_entry is not None:
            wallet_entry.financial_transaction_id = transaction.id
        await db.flush()

        logger.info(
            "Financial transaction recorded: %s %s %s amount=%s user=%s",
            transaction.transaction_number, data.type.value, data.category, amount, data.user_id
        )
        return RecordedTransaction(transaction=transaction, wallet_entry=wallet_entry)

    @staticmethod
    async def update_status(
        db: AsyncSession,
        transaction_id: int,
        new_status: TransactionStatus
    ) -> tuple[FinancialTransaction, TransactionStatus]:
        """
        Change a transaction's status, the only field that may change.

        Returns (transaction, previous status).
        """
        transaction = await db.get(FinancialTransaction, transaction_id)
        if transaction is None:
            raise ResourceNotFoundError("FinancialTransaction", transaction_id)

        previous = transaction.status
        if new_status not in STATUS_TRANSITIONS[previous]:
            raise BusinessRuleError(
                f"Cannot change status from {previous.value} to {new_status.value}",
                details={"current_status": previous.value, "requested_status": new_status.value}
            )

        transaction.status = new_status
        await db.flush()
        return transaction, previous

    @staticmethod
    async def assign_fee(db: AsyncSession, data: StudentFeeCreate) -> StudentFee:
        TransactionRecorder.validate_category(TransactionType.INCOME, data.category)

        if await db.get(Student, data.student_id) is None:
            raise ResourceNotFoundError("Student", data.student_id)

        fee = StudentFee(
            student_id=data.student_id,
            fee_type=data.fee_type,
            category=data.category,
            amount=to_money(data.amount),
            paid_amount=to_money(0),
            due_date=data.due_date,
            status=FeeStatus.PENDING
        )
        db.add(fee)
        await db.flush()
        return fee

    @staticmethod
    async def record_fee_payment(
        db: AsyncSession,
        fee_id: int,
        data: FeePaymentCreate,
        recorded_by_id: Optional[int]
    ) -> tuple[StudentFee, FinancialTransaction]:
        """
        Apply a payment to a student fee and record it as income.

        A payment larger than the outstanding amount is rejected.
        """
        result = await db.execute(select(StudentFee).where(StudentFee.id == fee_id).with_for_update())
        fee = result.scalar_one_or_none()
        if fee is None:
            raise ResourceNotFoundError("StudentFee", fee_id)

        amount = to_money(data.amount)
        outstanding = to_money(fee.amount) - to_money(fee.paid_amount)
        if amount > outstanding:
            raise BusinessRuleError(
                "Payment exceeds the outstanding fee amount",
                details={"outstanding": float(outstanding), "requested_amount": float(amount)}
            )

        student = await db.get(Student, fee.student_id)

        fee.paid_amount = to_money(fee.paid_amount) + amount
        fee.status = fee_status_for(to_money(fee.amount), fee.paid_amount)

        recorded = await TransactionRecorder.record(
            db,
            FinancialTransactionCreate(
                type=TransactionType.INCOME,
                category=fee.category,
                amount=amount,
                description=f"{fee.fee_type} payment",
                payment_method=data.payment_method or PaymentMethod.CASH,
                reference_number=data.reference_number,
                transaction_date=data.transaction_date,
                user_id=student.profile_id if student else None
            ),
            recorded_by_id
        )
        return fee, recorded.transaction
