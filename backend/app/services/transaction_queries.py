"""
Financial transaction listing, filtering and CSV export.
"""

import csv
import io
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select, func, or_, asc, desc, String, cast
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.finance_enums import TransactionType, TransactionStatus
from backend.app.models.financial_transaction import FinancialTransaction
from backend.app.services.profile_directory import escape_like

CSV_HEADERS = ["Date", "Type", "Category", "Amount", "Payment Method", "Reference", "Description", "Status"]

SORT_COLUMNS = {
    "date": FinancialTransaction.transaction_date,
    "amount": FinancialTransaction.amount,
}


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    status: Optional[TransactionStatus] = None
    user_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    search: Optional[str] = None
    sort_by: str = "date"
    sort_order: str = "desc"

    def conditions(self) -> list:
        conditions = []
        if self.type:
            conditions.append(FinancialTransaction.type == self.type)
        if self.category:
            conditions.append(FinancialTransaction.category == self.category)
        if self.status:
            conditions.append(FinancialTransaction.status == self.status)
        if self.user_id:
            conditions.append(FinancialTransaction.user_id == self.user_id)
        if self.date_from:
            conditions.append(FinancialTransaction.transaction_date >= self.date_from)
        if self.date_to:
            conditions.append(FinancialTransaction.transaction_date <= self.date_to)

        term = (self.search or "").strip()
        if term:
            pattern = f"%{escape_like(term)}%"
            conditions.append(or_(
                FinancialTransaction.transaction_number.ilike(pattern, escape="\\"),
                FinancialTransaction.description.ilike(pattern, escape="\\"),
                FinancialTransaction.description_ar.ilike(pattern, escape="\\"),
                FinancialTransaction.reference_number.ilike(pattern, escape="\\"),
                FinancialTransaction.category.ilike(pattern, escape="\\"),
                cast(FinancialTransaction.amount, String).ilike(pattern, escape="\\"),
            ))
        return conditions

    def ordering(self) -> list:
        column = SORT_COLUMNS.get(self.sort_by, FinancialTransaction.transaction_date)
        direction = asc if self.sort_order == "asc" else desc
        return [direction(column), direction(FinancialTransaction.id)]


async def list_transactions(
    db: AsyncSession,
    filters: TransactionFilters,
    limit: Optional[int] = None,
    offset: int = 0
) -> tuple[List[FinancialTransaction], int]:
    conditions = filters.conditions()
    total = (await db.execute(
        select(func.count(FinancialTransaction.id)).where(*conditions)
    )).scalar() or 0

    stmt = select(FinancialTransaction).where(*conditions).order_by(*filters.ordering()).offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all(), total


def export_csv(transactions: Iterable[FinancialTransaction]) -> str:
    """Render transactions as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADERS)
    for t in transactions:
        writer.writerow([
            t.transaction_date.isoformat(),
            t.type.value,
            t.category,
            f"{float(t.amount):.3f}",
            t.payment_method.value if t.payment_method else "",
            t.reference_number or "",
            t.description or "",
            t.status.value,
        ])
    return buffer.getvalue()
