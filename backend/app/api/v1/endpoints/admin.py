"""
Admin API Endpoints.

Provides admin-only user management endpoints with audit logging,
plus wallet ledger reconciliation.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from backend.app.db.session import get_db
from backend.app.models.profile import Profile
from backend.app.models.student import Student
from backend.app.models.enums import UserRole
from backend.app.schemas.admin import (
    UserListResponse, UserListItem, AdminUserCreate, BlockUserRequest, UnblockUserRequest,
    AdminActionResponse, AuditTrailResponse, AuditLogResponse, ReconciliationResponse
)
from backend.app.core.guards import require_admin, require_role
from backend.app.core.security import get_password_hash
from backend.app.core.token_revocation import revoke_all_user_tokens, clear_user_token_revocation
from backend.app.domain.wallet.ledger_service import WalletLedgerService
from backend.app.services.audit import log_event, AuditAction, get_audit_trail

router = APIRouter(prefix="/admin", tags=["Admin"])


async def _get_profile_or_404(db: AsyncSession, user_id: int) -> Profile:
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    target_user = result.scalar_one_or_none()

    if not target_user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return target_user


@router.get("/users", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    role: UserRole = Query(None, description="Filter by role"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    List all users in the system (admin-only).

    Returns paginated user list with role and status information.
    """
    filters = [Profile.role == role] if role else []

    total = (await db.execute(select(func.count(Profile.id)).where(*filters))).scalar()

    offset = (page - 1) * page_size
    query = select(Profile).where(*filters).order_by(Profile.created_at.desc(), Profile.id.desc()).offset(offset).limit(page_size)
    result = await db.execute(query)
    users = result.scalars().all()

    return UserListResponse(
        users=[UserListItem.model_validate(user) for user in users],
        total=total,
        page=page,
        page_size=page_size
    )


@router.post("/users", response_model=UserListItem, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: AdminUserCreate,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Create an account with any role (admin-only).

    With student_number set, a student record carrying the card id is
    created alongside the profile.
    """
    existing = await db.execute(
        select(Profile).where(
            or_(Profile.username == user_data.username, Profile.email == user_data.email)
        )
    )
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username or email already registered"
        )

    if user_data.parent_user_id is not None:
        parent = await db.get(Profile, user_data.parent_user_id)
        if parent is None or parent.role != UserRole.PARENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="parent_user_id must reference a parent profile"
            )

    new_user = Profile(
        email=user_data.email,
        username=user_data.username,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        full_name_ar=user_data.full_name_ar,
        phone=user_data.phone,
        role=user_data.role,
        parent_user_id=user_data.parent_user_id,
        is_active=True,
        is_superuser=user_data.role == UserRole.ADMIN
    )
    db.add(new_user)
    await db.flush()

    if user_data.student_number:
        db.add(Student(
            profile_id=new_user.id,
            student_number=user_data.student_number,
            nfc_id=user_data.nfc_id
        ))

    await db.commit()
    await db.refresh(new_user)

    await log_event(
        db=db,
        action=AuditAction.USER_CREATED,
        actor_id=admin["user_id"],
        actor_username=admin.get("sub"),
        target_user_id=new_user.id,
        target_username=new_user.username,
        metadata={"role": new_user.role.value}
    )

    return UserListItem.model_validate(new_user)


@router.get("/users/{user_id}", response_model=UserListItem)
async def get_user(
    user_id: int,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get detailed information about a specific user (admin-only).
    """
    return UserListItem.model_validate(await _get_profile_or_404(db, user_id))


@router.post("/users/{user_id}/block", response_model=AdminActionResponse)
async def block_user(
    user_id: int,
    request: BlockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Block a user and revoke all their active tokens (admin-only).

    This immediately terminates all user sessions.
    """
    target_user = await _get_profile_or_404(db, user_id)

    # Prevent blocking another admin
    if target_user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot block another admin user"
        )

    if target_user.id == admin["user_id"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot block yourself"
        )

    if not target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already blocked"
        )

    target_user.is_active = False
    await db.commit()

    await revoke_all_user_tokens(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_BLOCKED,
        actor_id=admin["user_id"],
        actor_username=admin.get("sub"),
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been blocked",
        user_id=user_id,
        action=AuditAction.USER_BLOCKED,
        audit_log_id=audit_log.id
    )


@router.post("/users/{user_id}/unblock", response_model=AdminActionResponse)
async def unblock_user(
    user_id: int,
    request: UnblockUserRequest,
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Unblock a user and clear token revocations (admin-only).

    User will be able to login again and generate new tokens.
    """
    target_user = await _get_profile_or_404(db, user_id)

    if target_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User is already active"
        )

    target_user.is_active = True
    await db.commit()

    await clear_user_token_revocation(user_id)

    audit_log = await log_event(
        db=db,
        action=AuditAction.USER_UNBLOCKED,
        actor_id=admin["user_id"],
        actor_username=admin.get("sub"),
        target_user_id=target_user.id,
        target_username=target_user.username,
        metadata={"reason": request.reason} if request.reason else None
    )

    return AdminActionResponse(
        success=True,
        message=f"User '{target_user.username}' has been unblocked",
        user_id=user_id,
        action=AuditAction.USER_UNBLOCKED,
        audit_log_id=audit_log.id
    )


@router.get("/audit-logs", response_model=AuditTrailResponse)
async def get_audit_logs(
    user_id: int = Query(None, description="Filter by target user ID"),
    action: str = Query(None, description="Filter by action type"),
    limit: int = Query(100, ge=1, le=500, description="Maximum records to return"),
    admin: dict = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """
    Get audit trail with optional filtering (admin-only).

    Returns recent audit logs for security monitoring and compliance.
    """
    logs, total = await get_audit_trail(
        db=db,
        target_user_id=user_id,
        action=action,
        limit=limit
    )

    return AuditTrailResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total
    )


@router.get("/wallets/{user_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_wallet(
    user_id: int,
    staff: dict = Depends(require_role([UserRole.ADMIN, UserRole.FINANCE, UserRole.DEVELOPER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Replay a wallet's ledger and compare it with the stored balance.

    `consistent` is false when the entries do not add up to the balance.
    """
    await _get_profile_or_404(db, user_id)
    report = await WalletLedgerService.reconcile(db, user_id)

    return ReconciliationResponse(
        user_id=report.user_id,
        stored_balance=float(report.stored_balance),
        replayed_balance=float(report.replayed_balance),
        entry_count=report.entry_count,
        last_balance_after=float(report.last_balance_after) if report.last_balance_after is not None else None,
        consistent=report.consistent
    )
