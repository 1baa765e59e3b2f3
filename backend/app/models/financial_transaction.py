"""
Financial Transaction and Student Fee database models.
"""

from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import enum_values
from backend.app.models.finance_enums import (
    TransactionType, TransactionStatus, PaymentMethod, FeeStatus
)
from backend.app.models.wallet import MONEY


class FinancialTransaction(Base):
    """
    School-level income/expense record.

    Independent of the wallet ledger. Immutable once created except for
    status.
    """
    __tablename__ = "financial_transactions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_number = Column(String(20), unique=True, nullable=True, index=True)

    type = Column(Enum(TransactionType, values_callable=enum_values), nullable=False, index=True)
    category = Column(String(50), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)

    description = Column(String(500), nullable=True)
    description_ar = Column(String(500), nullable=True)
    payment_method = Column(Enum(PaymentMethod, values_callable=enum_values), nullable=True)
    reference_number = Column(String(100), nullable=True)
    transaction_date = Column(Date, nullable=False, index=True)

    # Optional linked profile, and the staff member who recorded it
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    recorded_by_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)

    # [{name, url, type, size}]
    documents = Column(JSON, nullable=False, default=list)

    status = Column(
        Enum(TransactionStatus, values_callable=enum_values),
        default=TransactionStatus.COMPLETED,
        nullable=False,
        index=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<FinancialTransaction(id={self.id}, type='{self.type.value}', amount={self.amount})>"


class StudentFee(Base):
    """A fee assigned to a student, paid in one or more installments."""
    __tablename__ = "student_fees"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)

    fee_type = Column(String(50), nullable=False)
    category = Column(String(50), nullable=False, default="tuition_fees")
    amount = Column(MONEY, nullable=False)
    paid_amount = Column(MONEY, nullable=False, default=0)
    due_date = Column(Date, nullable=True)

    status = Column(Enum(FeeStatus, values_callable=enum_values), default=FeeStatus.PENDING, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<StudentFee(id={self.id}, student={self.student_id}, {self.paid_amount}/{self.amount})>"
