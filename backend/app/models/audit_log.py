"""
Audit Log Database Model.

Tracks security events and finance actions taken by staff.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log entry.

    Events logged:
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGOUT
    - USER_CREATED / USER_BLOCKED / USER_UNBLOCKED
    - FINANCIAL_TRANSACTION_RECORDED / FINANCIAL_TRANSACTION_STATUS_CHANGED
    - DOCUMENT_UPLOADED
    - WALLET_TOPPED_UP / WALLET_TRANSFER_COMPLETED / WALLET_PAYMENT_RECORDED
    - WALLET_DEDUCTION_REJECTED
    - FEE_ASSIGNED / FEE_PAYMENT_RECORDED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    action = Column(String(100), nullable=False, index=True)

    # Profile the action was about, when there is one
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    meta_data = Column(JSON, nullable=True)
    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username})>"
