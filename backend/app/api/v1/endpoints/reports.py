"""
Finance report endpoints for the dashboard.

Each call aggregates the full transaction table; totals exclude
cancelled transactions.
"""

from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.config import settings
from backend.app.core.guards import require_role, FINANCE_STAFF
from backend.app.schemas.reports import FinanceSummaryResponse, CategoryTotalResponse, MonthTotalResponse
from backend.app.services.reports import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])

# School-wide totals are for finance staff, not every role with the reports view
require_finance_staff = require_role(list(FINANCE_STAFF))


@router.get("/finance/summary", response_model=FinanceSummaryResponse)
async def get_finance_summary(
    current_user: dict = Depends(require_finance_staff),
    db: AsyncSession = Depends(get_db)
):
    """Revenue, expenses, net and outstanding student fees."""
    summary, outstanding = await ReportService.get_summary(db)
    return FinanceSummaryResponse(
        revenue=float(summary.revenue),
        expenses=float(summary.expenses),
        net=float(summary.net),
        transaction_count=summary.transaction_count,
        outstanding_fees=float(outstanding),
        currency=settings.default_currency
    )


@router.get("/finance/by-category", response_model=List[CategoryTotalResponse])
async def get_totals_by_category(
    current_user: dict = Depends(require_finance_staff),
    db: AsyncSession = Depends(get_db)
):
    totals = await ReportService.get_by_category(db)
    return [CategoryTotalResponse.model_validate(t) for t in totals]


@router.get("/finance/by-month", response_model=List[MonthTotalResponse])
async def get_totals_by_month(
    months: int = Query(None, ge=1, le=60, description="Trailing window, e.g. 6 for the last six months"),
    current_user: dict = Depends(require_finance_staff),
    db: AsyncSession = Depends(get_db)
):
    totals = await ReportService.get_by_month(db, months=months)
    return [MonthTotalResponse.model_validate(t) for t in totals]
