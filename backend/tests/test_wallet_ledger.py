"""
Wallet ledger tests.

Covers credits, conditional debits, transfers and ledger replay at the
service level, including the stale-read overdraft case.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func, update

from backend.app.core.exceptions import InsufficientBalanceError, BusinessRuleError
from backend.app.domain.wallet.ledger_service import WalletLedgerService
from backend.app.models.enums import UserRole
from backend.app.models.finance_enums import WalletTransactionType, TransferStatus
from backend.app.models.wallet import WalletBalance, WalletTransaction


async def _entry_count(session, user_id):
    return (await session.execute(
        select(func.count(WalletTransaction.id)).where(WalletTransaction.user_id == user_id)
    )).scalar()


@pytest.mark.asyncio
async def test_first_credit_creates_balance_row(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)

    entry = await WalletLedgerService.credit(db_session, parent.id, Decimal("40"))
    await db_session.commit()

    balance, currency = await WalletLedgerService.get_balance(db_session, parent.id)
    assert balance == Decimal("40.000")
    assert currency == "OMR"
    assert entry.type == WalletTransactionType.TOP_UP
    assert Decimal(str(entry.amount)) == Decimal("40")
    assert Decimal(str(entry.balance_after)) == Decimal("40")


@pytest.mark.asyncio
async def test_credit_then_credit_accumulates(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)

    await WalletLedgerService.credit(db_session, parent.id, Decimal("40"))
    second = await WalletLedgerService.credit(db_session, parent.id, Decimal("20"))
    await db_session.commit()

    balance, _ = await WalletLedgerService.get_balance(db_session, parent.id)
    assert balance == Decimal("60.000")
    assert Decimal(str(second.balance_after)) == Decimal("60")


@pytest.mark.asyncio
async def test_debit_within_balance(db_session, make_profile, fund_wallet):
    student = await make_profile(UserRole.STUDENT)
    await fund_wallet(student, 100)

    entry = await WalletLedgerService.debit(db_session, student.id, Decimal("60"))
    await db_session.commit()

    balance, _ = await WalletLedgerService.get_balance(db_session, student.id)
    assert balance == Decimal("40.000")
    assert entry.type == WalletTransactionType.WITHDRAWAL
    assert Decimal(str(entry.amount)) == Decimal("-60")
    assert Decimal(str(entry.balance_after)) == Decimal("40")


@pytest.mark.asyncio
async def test_debit_over_balance_is_rejected_without_writes(db_session, make_profile, fund_wallet):
    student = await make_profile(UserRole.STUDENT)
    await fund_wallet(student, 100)
    student_id = student.id

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await WalletLedgerService.debit(db_session, student_id, Decimal("150"))
    await db_session.rollback()

    assert exc_info.value.available == Decimal("100.000")
    assert exc_info.value.requested == Decimal("150.000")
    assert exc_info.value.error_code == "ERR_WALLET_001"
    assert exc_info.value.status_code == 409

    balance, _ = await WalletLedgerService.get_balance(db_session, student_id)
    assert balance == Decimal("100.000")
    assert await _entry_count(db_session, student_id) == 0


@pytest.mark.asyncio
async def test_debit_without_balance_row_counts_as_zero(db_session, make_profile):
    student = await make_profile(UserRole.STUDENT)

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await WalletLedgerService.debit(db_session, student.id, Decimal("5"))

    assert exc_info.value.available == Decimal("0.000")
    assert exc_info.value.details["currency"] == "OMR"


@pytest.mark.asyncio
async def test_non_positive_amount_rejected(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)

    with pytest.raises(BusinessRuleError):
        await WalletLedgerService.credit(db_session, parent.id, Decimal("0"))
    with pytest.raises(BusinessRuleError):
        await WalletLedgerService.debit(db_session, parent.id, Decimal("-1"))


@pytest.mark.asyncio
async def test_two_deductions_of_sixty_against_one_hundred(db_session, make_profile, fund_wallet):
    """Only one of two 60.000 deductions against 100.000 can succeed."""
    student = await make_profile(UserRole.STUDENT)
    await fund_wallet(student, 100)
    student_id = student.id

    await WalletLedgerService.debit(db_session, student_id, Decimal("60"))
    await db_session.commit()

    with pytest.raises(InsufficientBalanceError) as exc_info:
        await WalletLedgerService.debit(db_session, student_id, Decimal("60"))
    await db_session.rollback()

    assert exc_info.value.available == Decimal("40.000")
    balance, _ = await WalletLedgerService.get_balance(db_session, student_id)
    assert balance == Decimal("40.000")
    assert await _entry_count(db_session, student_id) == 1


@pytest.mark.asyncio
async def test_stale_read_cannot_overdraw(session_factory, make_profile, fund_wallet):
    """
    A request that read the balance before another request spent it must
    not deduct against the stale value.
    """
    student = await make_profile(UserRole.STUDENT)
    await fund_wallet(student, 100)

    async with session_factory() as first, session_factory() as second:
        # First request sees 100
        stale, _ = await WalletLedgerService.get_balance(first, student.id)
        assert stale == Decimal("100.000")

        # Second request spends 70 and commits
        await WalletLedgerService.debit(second, student.id, Decimal("70"))
        await second.commit()

        # First request now tries to spend 60 based on its stale read
        with pytest.raises(InsufficientBalanceError) as exc_info:
            await WalletLedgerService.debit(first, student.id, Decimal("60"))
        await first.rollback()

        assert exc_info.value.available == Decimal("30.000")

    async with session_factory() as check:
        balance, _ = await WalletLedgerService.get_balance(check, student.id)
        assert balance == Decimal("30.000")


@pytest.mark.asyncio
async def test_transfer_moves_funds(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)
    student = await make_profile(UserRole.STUDENT, parent_user_id=parent.id)
    await WalletLedgerService.credit(db_session, parent.id, Decimal("100"))
    await db_session.commit()

    transfer = await WalletLedgerService.transfer(db_session, parent.id, student.id, Decimal("30"), notes="Lunch money")
    await db_session.commit()

    assert transfer.status == TransferStatus.COMPLETED
    assert transfer.reference_number.startswith("TRF-")
    assert (await WalletLedgerService.get_balance(db_session, parent.id))[0] == Decimal("70.000")
    assert (await WalletLedgerService.get_balance(db_session, student.id))[0] == Decimal("30.000")

    entries = (await db_session.execute(
        select(WalletTransaction).where(WalletTransaction.transfer_id == transfer.id).order_by(WalletTransaction.id)
    )).scalars().all()
    assert [e.type for e in entries] == [WalletTransactionType.TRANSFER_OUT, WalletTransactionType.TRANSFER_IN]
    assert [e.user_id for e in entries] == [parent.id, student.id]


@pytest.mark.asyncio
async def test_transfer_to_self_rejected(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)

    with pytest.raises(BusinessRuleError):
        await WalletLedgerService.transfer(db_session, parent.id, parent.id, Decimal("10"))


@pytest.mark.asyncio
async def test_transfer_over_balance_leaves_both_wallets(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)
    student = await make_profile(UserRole.STUDENT, parent_user_id=parent.id)
    parent_id, student_id = parent.id, student.id
    await WalletLedgerService.credit(db_session, parent_id, Decimal("10"))
    await db_session.commit()

    with pytest.raises(InsufficientBalanceError):
        await WalletLedgerService.transfer(db_session, parent_id, student_id, Decimal("25"))
    await db_session.rollback()

    assert (await WalletLedgerService.get_balance(db_session, parent_id))[0] == Decimal("10.000")
    assert (await WalletLedgerService.get_balance(db_session, student_id))[0] == Decimal("0.000")
    assert await _entry_count(db_session, student_id) == 0


@pytest.mark.asyncio
async def test_replay_reproduces_balance(db_session, make_profile):
    student = await make_profile(UserRole.STUDENT)

    await WalletLedgerService.credit(db_session, student.id, Decimal("50"))
    await WalletLedgerService.debit(db_session, student.id, Decimal("12.5"))
    await WalletLedgerService.credit(db_session, student.id, Decimal("7.25"))
    await WalletLedgerService.debit(db_session, student.id, Decimal("4.75"))
    await db_session.commit()

    report = await WalletLedgerService.reconcile(db_session, student.id)
    assert report.entry_count == 4
    assert report.stored_balance == Decimal("40.000")
    assert report.replayed_balance == Decimal("40.000")
    assert report.last_balance_after == Decimal("40.000")
    assert report.consistent


@pytest.mark.asyncio
async def test_replay_detects_out_of_band_change(db_session, make_profile):
    student = await make_profile(UserRole.STUDENT)
    await WalletLedgerService.credit(db_session, student.id, Decimal("20"))
    await db_session.commit()

    await db_session.execute(
        update(WalletBalance).where(WalletBalance.user_id == student.id).values(balance=Decimal("25"))
    )
    await db_session.commit()

    report = await WalletLedgerService.reconcile(db_session, student.id)
    assert report.stored_balance == Decimal("25.000")
    assert report.replayed_balance == Decimal("20.000")
    assert not report.consistent


@pytest.mark.asyncio
async def test_list_transactions_newest_first(db_session, make_profile):
    parent = await make_profile(UserRole.PARENT)
    for amount in ("5", "6", "7"):
        await WalletLedgerService.credit(db_session, parent.id, Decimal(amount))
    await db_session.commit()

    entries, total = await WalletLedgerService.list_transactions(db_session, parent.id, limit=2)
    assert total == 3
    assert [Decimal(str(e.amount)) for e in entries] == [Decimal("7"), Decimal("6")]
