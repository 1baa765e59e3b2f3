"""
Finance report tests: pure aggregation plus the report endpoints.
"""

import pytest
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from backend.app.models.enums import UserRole
from backend.app.models.finance_enums import TransactionType, TransactionStatus
from backend.app.services.reports import summarize, totals_by_category, totals_by_month, outstanding_fees


@dataclass
class Tx:
    type: TransactionType
    category: str
    amount: Decimal
    transaction_date: date
    status: TransactionStatus = TransactionStatus.COMPLETED


@dataclass
class Fee:
    amount: Decimal
    paid_amount: Decimal


def income(amount, day=date(2025, 1, 15), category="tuition_fees", **kw):
    return Tx(TransactionType.INCOME, category, Decimal(amount), day, **kw)


def expense(amount, day=date(2025, 1, 20), category="supplies", **kw):
    return Tx(TransactionType.EXPENSE, category, Decimal(amount), day, **kw)


def test_summary_revenue_expenses_net():
    summary = summarize([income("100"), expense("30")])

    assert summary.revenue == Decimal("100.000")
    assert summary.expenses == Decimal("30.000")
    assert summary.net == Decimal("70.000")
    assert summary.transaction_count == 2


def test_summary_of_nothing():
    summary = summarize([])
    assert summary.revenue == summary.expenses == summary.net == Decimal("0")
    assert summary.transaction_count == 0


def test_cancelled_transactions_are_excluded():
    summary = summarize([
        income("100"),
        expense("30"),
        expense("500", status=TransactionStatus.CANCELLED),
    ])

    assert summary.expenses == Decimal("30.000")
    assert summary.transaction_count == 2


def test_pending_transactions_count():
    summary = summarize([income("100", status=TransactionStatus.PENDING)])
    assert summary.revenue == Decimal("100.000")


def test_totals_by_category():
    totals = totals_by_category([
        income("100", category="tuition_fees"),
        income("50", category="donations"),
        income("25", category="tuition_fees"),
        expense("30", category="supplies"),
    ])

    assert [(t.type, t.category, t.total, t.transaction_count) for t in totals] == [
        (TransactionType.EXPENSE, "supplies", Decimal("30.000"), 1),
        (TransactionType.INCOME, "tuition_fees", Decimal("125.000"), 2),
        (TransactionType.INCOME, "donations", Decimal("50.000"), 1),
    ]


def test_totals_by_month():
    months = totals_by_month([
        income("100", day=date(2025, 1, 5)),
        expense("30", day=date(2025, 1, 28)),
        expense("10", day=date(2025, 3, 1)),
    ])

    assert [(m.month, m.revenue, m.expenses, m.profit) for m in months] == [
        ("2025-01", Decimal("100.000"), Decimal("30.000"), Decimal("70.000")),
        ("2025-03", Decimal("0"), Decimal("10.000"), Decimal("-10.000")),
    ]


def test_trailing_months_include_empty_months():
    months = totals_by_month(
        [income("40", day=date(2025, 2, 10)), income("99", day=date(2024, 6, 1))],
        months=3,
        today=date(2025, 3, 18)
    )

    assert [m.month for m in months] == ["2025-01", "2025-02", "2025-03"]
    assert [m.revenue for m in months] == [Decimal("0"), Decimal("40.000"), Decimal("0")]


def test_trailing_months_cross_year_boundary():
    months = totals_by_month([], months=3, today=date(2025, 1, 2))
    assert [m.month for m in months] == ["2024-11", "2024-12", "2025-01"]


def test_outstanding_fees():
    fees = [
        Fee(Decimal("300"), Decimal("100")),
        Fee(Decimal("50"), Decimal("50")),
        Fee(Decimal("20"), Decimal("25")),
    ]
    assert outstanding_fees(fees) == Decimal("200.000")


@pytest.mark.asyncio
async def test_summary_endpoint(client, make_profile, make_student, auth_headers):
    finance = await make_profile(UserRole.FINANCE)
    _, student = await make_student("Noor Salim")
    headers = auth_headers(finance)

    await client.post(
        "/v1/finance/transactions",
        json={"type": "income", "category": "donations", "amount": "100"},
        headers=headers
    )
    await client.post(
        "/v1/finance/transactions",
        json={"type": "expense", "category": "supplies", "amount": "30"},
        headers=headers
    )
    await client.post(
        "/v1/finance/fees",
        json={"student_id": student.id, "fee_type": "Term 2", "amount": "80"},
        headers=headers
    )

    response = await client.get("/v1/reports/finance/summary", headers=headers)

    assert response.status_code == 200
    assert response.json() == {
        "revenue": 100.0,
        "expenses": 30.0,
        "net": 70.0,
        "transaction_count": 2,
        "outstanding_fees": 80.0,
        "currency": "OMR",
    }


@pytest.mark.asyncio
async def test_category_and_month_endpoints(client, make_profile, auth_headers):
    finance = await make_profile(UserRole.FINANCE)
    headers = auth_headers(finance)
    await client.post(
        "/v1/finance/transactions",
        json={"type": "income", "category": "canteen_sales", "amount": "15", "transaction_date": "2025-05-03"},
        headers=headers
    )

    by_category = await client.get("/v1/reports/finance/by-category", headers=headers)
    by_month = await client.get("/v1/reports/finance/by-month", headers=headers)

    assert by_category.json() == [
        {"type": "income", "category": "canteen_sales", "total": 15.0, "transaction_count": 1}
    ]
    assert by_month.json() == [
        {"month": "2025-05", "revenue": 15.0, "expenses": 0.0, "profit": 15.0}
    ]


@pytest.mark.asyncio
async def test_finance_reports_are_for_finance_staff(client, make_profile, auth_headers):
    finance = await make_profile(UserRole.FINANCE)
    await client.post(
        "/v1/finance/transactions",
        json={"type": "income", "category": "donations", "amount": "1234.5", "transaction_date": "2025-05-03"},
        headers=auth_headers(finance)
    )
    parent = await make_profile(UserRole.PARENT)
    driver = await make_profile(UserRole.DRIVER)

    for path in ("/v1/reports/finance/summary", "/v1/reports/finance/by-category", "/v1/reports/finance/by-month"):
        assert (await client.get(path, headers=auth_headers(parent))).status_code == 403
        assert (await client.get(path, headers=auth_headers(driver))).status_code == 403

    summary = await client.get("/v1/reports/finance/summary", headers=auth_headers(finance))
    assert summary.status_code == 200
    assert summary.json()["revenue"] == 1234.5
