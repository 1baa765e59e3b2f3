"""
Finance Reports Service.

Read-only aggregation for the finance dashboard. Every call scans the
transaction and fee tables and folds the rows in Python; nothing is cached.
Cancelled transactions never count towards a total.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.wallet.ledger_service import to_money
from backend.app.models.finance_enums import TransactionType, TransactionStatus
from backend.app.models.financial_transaction import FinancialTransaction, StudentFee

ZERO = Decimal("0")


@dataclass
class Summary:
    revenue: Decimal
    expenses: Decimal
    net: Decimal
    transaction_count: int


@dataclass
class CategoryTotal:
    type: TransactionType
    category: str
    total: Decimal
    transaction_count: int


@dataclass
class MonthTotal:
    month: str  # YYYY-MM
    revenue: Decimal
    expenses: Decimal
    profit: Decimal


def _counted(transactions: Iterable) -> list:
    return [t for t in transactions if t.status != TransactionStatus.CANCELLED]


def summarize(transactions: Iterable) -> Summary:
    revenue = expenses = ZERO
    rows = _counted(transactions)
    for t in rows:
        if t.type == TransactionType.INCOME:
            revenue += to_money(t.amount)
        else:
            expenses += to_money(t.amount)
    return Summary(revenue=revenue, expenses=expenses, net=revenue - expenses, transaction_count=len(rows))


def totals_by_category(transactions: Iterable) -> List[CategoryTotal]:
    """Totals per (type, category), largest first."""
    buckets = {}
    for t in _counted(transactions):
        key = (t.type, t.category)
        total, count = buckets.get(key, (ZERO, 0))
        buckets[key] = (total + to_money(t.amount), count + 1)

    totals = [
        CategoryTotal(type=tx_type, category=category, total=total, transaction_count=count)
        for (tx_type, category), (total, count) in buckets.items()
    ]
    totals.sort(key=lambda c: (c.type.value, -c.total, c.category))
    return totals


def _month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def _trailing_months(today: date, months: int) -> List[str]:
    keys = []
    year, month = today.year, today.month
    for _ in range(months):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def totals_by_month(transactions: Iterable, months: Optional[int] = None, today: Optional[date] = None) -> List[MonthTotal]:
    """
    Revenue, expenses and profit per calendar month, oldest first.

    With `months` set, returns exactly that many trailing months ending with
    the current one, empty months included.
    """
    buckets: "OrderedDict[str, list]" = OrderedDict()
    if months:
        for key in _trailing_months(today or date.today(), months):
            buckets[key] = [ZERO, ZERO]

    for t in sorted(_counted(transactions), key=lambda t: t.transaction_date):
        key = _month_key(t.transaction_date)
        if months and key not in buckets:
            continue
        bucket = buckets.setdefault(key, [ZERO, ZERO])
        if t.type == TransactionType.INCOME:
            bucket[0] += to_money(t.amount)
        else:
            bucket[1] += to_money(t.amount)

    return [
        MonthTotal(month=key, revenue=revenue, expenses=expenses, profit=revenue - expenses)
        for key, (revenue, expenses) in sorted(buckets.items())
    ]


def outstanding_fees(fees: Iterable) -> Decimal:
    """Sum of what is still owed; overpaid fees count as zero."""
    return sum((max(to_money(f.amount) - to_money(f.paid_amount), ZERO) for f in fees), ZERO)


class ReportService:

    @staticmethod
    async def _transactions(db: AsyncSession) -> List[FinancialTransaction]:
        result = await db.execute(select(FinancialTransaction).order_by(FinancialTransaction.transaction_date))
        return result.scalars().all()

    @staticmethod
    async def get_summary(db: AsyncSession) -> tuple[Summary, Decimal]:
        """Summary of all transactions plus the outstanding fee total."""
        transactions = await ReportService._transactions(db)
        fees = (await db.execute(select(StudentFee))).scalars().all()
        return summarize(transactions), outstanding_fees(fees)

    @staticmethod
    async def get_by_category(db: AsyncSession) -> List[CategoryTotal]:
        return totals_by_category(await ReportService._transactions(db))

    @staticmethod
    async def get_by_month(db: AsyncSession, months: Optional[int] = None) -> List[MonthTotal]:
        return totals_by_month(await ReportService._transactions(db), months=months)
