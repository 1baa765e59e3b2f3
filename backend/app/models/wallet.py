"""
Wallet database models.

A wallet is a per-user prepaid balance used for canteen and meal purchases.
It is separate from the school's general financial ledger.
"""

from sqlalchemy import (
    Column, Integer, Numeric, String, DateTime, Enum, ForeignKey, CheckConstraint
)
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import enum_values
from backend.app.models.finance_enums import WalletTransactionType, TransferStatus

# 3 decimal places: the baisa is the minor unit of the Omani rial
MONEY = Numeric(12, 3)


class WalletBalance(Base):
    """
    Current wallet balance, one row per user.

    Only the wallet ledger service writes this table. The check constraint
    backs up the conditional update: a balance can never go negative.
    """
    __tablename__ = "wallet_balances"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), unique=True, nullable=False, index=True)

    balance = Column(MONEY, nullable=False, default=0)
    currency = Column(String(3), nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalletBalance(user={self.user_id}, balance={self.balance} {self.currency})>"


class WalletTransaction(Base):
    """
    Wallet ledger entry.

    Append-only: amount is signed (credits positive, debits negative) and
    balance_after is the wallet balance right after this entry. Replaying a
    user's entries in id order reproduces WalletBalance.balance.
    NO updates or deletions allowed.
    """
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    type = Column(Enum(WalletTransactionType, values_callable=enum_values), nullable=False)
    amount = Column(MONEY, nullable=False)
    balance_after = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False)

    description = Column(String(255), nullable=True)
    description_ar = Column(String(255), nullable=True)

    # What caused the entry (at most one is set)
    financial_transaction_id = Column(Integer, ForeignKey("financial_transactions.id"), nullable=True)
    transfer_id = Column(Integer, ForeignKey("wallet_transfers.id"), nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<WalletTransaction(id={self.id}, user={self.user_id}, type='{self.type.value}', amount={self.amount})>"


class WalletTransfer(Base):
    """Wallet-to-wallet transfer (parent to student, for example)."""
    __tablename__ = "wallet_transfers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    from_user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    to_user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)

    amount = Column(MONEY, nullable=False)
    currency = Column(String(3), nullable=False)
    notes = Column(String(255), nullable=True)
    reference_number = Column(String(40), unique=True, nullable=True)

    status = Column(
        Enum(TransferStatus, values_callable=enum_values),
        default=TransferStatus.PENDING,
        nullable=False
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<WalletTransfer(id={self.id}, {self.from_user_id}->{self.to_user_id}, amount={self.amount})>"
