"""
Wallet Schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.finance_enums import WalletTransactionType, TransferStatus


class WalletBalanceResponse(BaseModel):
    user_id: int
    balance: float
    currency: str


class TopUpRequest(BaseModel):
    """Credit a wallet. Finance staff may top up any profile."""
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    user_id: Optional[int] = Field(None, description="Defaults to the current user")
    description: Optional[str] = Field(None, max_length=255)


class TransferRequest(BaseModel):
    to_user_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    notes: Optional[str] = Field(None, max_length=255)


class WalletPaymentRequest(BaseModel):
    """Charge a wallet at the canteen, kitchen or store counter."""
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=3)
    description: Optional[str] = Field(None, max_length=255)
    description_ar: Optional[str] = Field(None, max_length=255)


class WalletTransactionResponse(BaseModel):
    id: int
    user_id: int
    type: WalletTransactionType
    amount: float
    balance_after: float
    currency: str
    description: Optional[str]
    description_ar: Optional[str]
    financial_transaction_id: Optional[int]
    transfer_id: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class WalletTransactionListResponse(BaseModel):
    transactions: List[WalletTransactionResponse]
    total: int
    page: int
    page_size: int


class WalletTransferResponse(BaseModel):
    id: int
    from_user_id: int
    to_user_id: int
    amount: float
    currency: str
    notes: Optional[str]
    reference_number: Optional[str]
    status: TransferStatus
    created_at: datetime
    completed_at: Optional[datetime]
    sender_balance_after: Optional[float] = None

    class Config:
        from_attributes = True
