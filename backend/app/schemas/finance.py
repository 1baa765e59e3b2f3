"""
Finance Schemas: school income/expense records, documents and student fees.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import (
    TransactionType, TransactionStatus, PaymentMethod, FeeStatus
)


class TransactionDocument(BaseModel):
    """Attachment metadata stored in FinancialTransaction.documents."""
    name: str
    url: str
    type: Optional[str] = None
    size: Optional[int] = None


class FinancialTransactionCreate(BaseModel):
    """
    Schema for recording a financial transaction.

    An expense with user_id set is charged to that profile's wallet.
    """
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    description: Optional[str] = Field(None, max_length=500)
    description_ar: Optional[str] = Field(None, max_length=500)
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    transaction_date: Optional[date] = Field(None, description="Defaults to today")
    user_id: Optional[int] = Field(None, description="Linked profile")
    documents: List[TransactionDocument] = Field(default_factory=list)


class FinancialTransactionResponse(BaseModel):
    id: int
    transaction_number: Optional[str]
    type: TransactionType
    category: str
    amount: float
    description: Optional[str]
    description_ar: Optional[str]
    payment_method: Optional[PaymentMethod]
    reference_number: Optional[str]
    transaction_date: date
    user_id: Optional[int]
    recorded_by_id: Optional[int]
    documents: List[TransactionDocument]
    status: TransactionStatus
    created_at: datetime

    class Config:
        from_attributes = True


class RecordTransactionResponse(BaseModel):
    """Result of recording a transaction, with the wallet balance when one was charged."""
    transaction: FinancialTransactionResponse
    wallet_balance_after: Optional[float] = None
    currency: Optional[str] = None


class FinancialTransactionListResponse(BaseModel):
    transactions: List[FinancialTransactionResponse]
    total: int


class TransactionStatusUpdate(BaseModel):
    status: TransactionStatus
    reason: Optional[str] = Field(None, max_length=255)


class StudentFeeCreate(BaseModel):
    """Schema for assigning a fee to a student."""
    student_id: int
    fee_type: str = Field(..., min_length=1, max_length=50)
    category: str = Field(default="tuition_fees", max_length=50)
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    due_date: Optional[date] = None


class FeePaymentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    payment_method: Optional[PaymentMethod] = None
    reference_number: Optional[str] = Field(None, max_length=100)
    transaction_date: Optional[date] = None


class StudentFeeResponse(BaseModel):
    id: int
    student_id: int
    fee_type: str
    category: str
    amount: float
    paid_amount: float
    due_date: Optional[date]
    status: FeeStatus
    created_at: datetime

    class Config:
        from_attributes = True


class FeePaymentResponse(BaseModel):
    fee: StudentFeeResponse
    transaction: FinancialTransactionResponse
