"""
Finance and wallet enumerations.
"""

import enum


class TransactionType(str, enum.Enum):
    """School ledger direction."""
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, enum.Enum):
    """Financial transaction status. The only mutable field of a record."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Allowed status changes; anything else is rejected
STATUS_TRANSITIONS = {
    TransactionStatus.PENDING: {TransactionStatus.COMPLETED, TransactionStatus.CANCELLED},
    TransactionStatus.COMPLETED: {TransactionStatus.CANCELLED},
    TransactionStatus.CANCELLED: set(),
}


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    CHEQUE = "cheque"
    WALLET = "wallet"


INCOME_CATEGORIES = frozenset({
    "tuition_fees",
    "registration_fees",
    "transportation_fees",
    "activity_fees",
    "canteen_sales",
    "donations",
    "other_income",
})

EXPENSE_CATEGORIES = frozenset({
    "salaries",
    "utilities",
    "supplies",
    "maintenance",
    "equipment",
    "transportation",
    "marketing",
    "canteen_purchase",
    "other_expense",
})

CATEGORIES_BY_TYPE = {
    TransactionType.INCOME: INCOME_CATEGORIES,
    TransactionType.EXPENSE: EXPENSE_CATEGORIES,
}


class WalletTransactionType(str, enum.Enum):
    """Ledger entry kinds. Amount sign follows the direction."""
    TOP_UP = "top_up"  # +
    WITHDRAWAL = "withdrawal"  # -
    TRANSFER_IN = "transfer_in"  # +
    TRANSFER_OUT = "transfer_out"  # -
    PAYMENT = "payment"  # -, canteen or store purchase


class TransferStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class FeeStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
