"""
Audit logging service for tracking security events and finance actions.

Provides centralized logging for compliance and security monitoring.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    LOGIN_SUCCESS = "LOGIN_SUCCESS"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    USER_CREATED = "USER_CREATED"
    USER_BLOCKED = "USER_BLOCKED"
    USER_UNBLOCKED = "USER_UNBLOCKED"

    # Finance
    FINANCIAL_TRANSACTION_RECORDED = "FINANCIAL_TRANSACTION_RECORDED"
    FINANCIAL_TRANSACTION_STATUS_CHANGED = "FINANCIAL_TRANSACTION_STATUS_CHANGED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    FEE_ASSIGNED = "FEE_ASSIGNED"
    FEE_PAYMENT_RECORDED = "FEE_PAYMENT_RECORDED"

    # Wallet
    WALLET_TOPPED_UP = "WALLET_TOPPED_UP"
    WALLET_TRANSFER_COMPLETED = "WALLET_TRANSFER_COMPLETED"
    WALLET_PAYMENT_RECORDED = "WALLET_PAYMENT_RECORDED"
    WALLET_DEDUCTION_REJECTED = "WALLET_DEDUCTION_REJECTED"


async def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Write an audit log entry and commit it.

    Call after the business change has been committed so the entry
    never outlives a rolled-back change.
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log


async def log_actor_event(
    db: AsyncSession,
    current_user: dict,
    action: str,
    target_user_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Shortcut for events performed by the authenticated user."""
    return await log_event(
        db=db,
        action=action,
        actor_id=current_user["user_id"],
        actor_username=current_user.get("sub"),
        target_user_id=target_user_id,
        metadata=metadata
    )


async def log_auth_event(
    db: AsyncSession,
    action: str,
    user_id: Optional[int],
    username: Optional[str],
    ip_address: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """Log an authentication event (login success/failure, logout)."""
    return await log_event(
        db=db,
        action=action,
        actor_id=user_id,
        actor_username=username,
        ip_address=ip_address,
        metadata=metadata
    )


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> tuple[list[AuditLog], int]:
    """
    Retrieve audit trail with optional filtering, most recent first.

    Returns (logs, total matching rows).
    """
    filters = []
    if target_user_id:
        filters.append(AuditLog.target_user_id == target_user_id)
    if action:
        filters.append(AuditLog.action == action)

    total = (await db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar() or 0

    query = select(AuditLog).where(*filters).order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)
    result = await db.execute(query)
    return result.scalars().all(), total
