"""
Report and profile directory schemas.
"""

from pydantic import BaseModel
from typing import Optional, List
from backend.app.models.enums import UserRole
from backend.app.models.finance_enums import TransactionType


class FinanceSummaryResponse(BaseModel):
    revenue: float
    expenses: float
    net: float
    transaction_count: int
    outstanding_fees: float
    currency: str


class CategoryTotalResponse(BaseModel):
    type: TransactionType
    category: str
    total: float
    transaction_count: int

    class Config:
        from_attributes = True


class MonthTotalResponse(BaseModel):
    month: str
    revenue: float
    expenses: float
    profit: float

    class Config:
        from_attributes = True


class ProfileSearchResult(BaseModel):
    id: int
    full_name: str
    full_name_ar: Optional[str] = None
    email: str
    phone: Optional[str] = None
    role: UserRole
    parent_user_id: Optional[int] = None
    nfc_id: Optional[str] = None

    class Config:
        from_attributes = True


class ProfileSearchResponse(BaseModel):
    results: List[ProfileSearchResult]
    count: int
