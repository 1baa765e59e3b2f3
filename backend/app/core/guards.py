"""
Security guards for role-based and ownership-based access control.

Role routing is table driven: ROLE_VIEWS maps every role to the views it
may open, and endpoints depend on require_role / require_view rather than
comparing role strings inline.
"""

from typing import Dict, FrozenSet, List
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.enums import UserRole, View
from backend.app.models.profile import Profile
from backend.app.core.dependencies import get_current_user


ALL_VIEWS: FrozenSet[View] = frozenset(View)

ROLE_VIEWS: Dict[UserRole, FrozenSet[View]] = {
    UserRole.ADMIN: frozenset({
        View.DASHBOARD, View.STUDENTS, View.TEACHERS, View.CLASSES,
        View.NFC_ATTENDANCE, View.BUS_TRACKING, View.TRANSPORT, View.FINANCE,
        View.FEE_MANAGEMENT, View.PAYROLL, View.WALLET, View.STORE, View.CANTEEN,
        View.MESSAGES, View.REPORTS, View.USER_MANAGEMENT, View.NFC_MANAGEMENT,
        View.SETTINGS,
    }),
    UserRole.TEACHER: frozenset({
        View.DASHBOARD, View.STUDENTS, View.CLASSES, View.SCHEDULE, View.EXAMS,
        View.HOMEWORK, View.GRADES, View.NFC_ATTENDANCE, View.PAYROLL,
        View.MESSAGES,
    }),
    UserRole.PARENT: frozenset({
        View.DASHBOARD, View.SCHEDULE, View.EXAMS, View.HOMEWORK, View.GRADES,
        View.BUS_TRACKING, View.FINANCE, View.PARENT_FINANCE, View.WALLET,
        View.STORE, View.KITCHEN, View.CANTEEN, View.MESSAGES,
    }),
    UserRole.STUDENT: frozenset({
        View.DASHBOARD, View.SCHEDULE, View.EXAMS, View.HOMEWORK, View.GRADES,
        View.WALLET, View.CANTEEN,
    }),
    UserRole.DRIVER: frozenset({View.DASHBOARD, View.BUS_TRACKING, View.REPORTS}),
    UserRole.DEVELOPER: ALL_VIEWS,
    UserRole.FINANCE: frozenset({
        View.DASHBOARD, View.FINANCE, View.FEE_MANAGEMENT, View.PAYROLL,
        View.REPORTS,
    }),
    UserRole.CANTEEN: frozenset({View.DASHBOARD, View.CANTEEN}),
    UserRole.SCHOOL_ATTENDANCE: frozenset({View.DASHBOARD, View.NFC_ATTENDANCE}),
    UserRole.BUS_ATTENDANCE: frozenset({View.DASHBOARD, View.BUS_TRACKING}),
    UserRole.SUPERVISOR: frozenset({View.DASHBOARD, View.BUS_TRACKING}),
}

# Roles that may read or act on any profile's wallet and finance records
FINANCE_STAFF: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.FINANCE, UserRole.DEVELOPER})
WALLET_READERS: FrozenSet[UserRole] = FINANCE_STAFF | {UserRole.CANTEEN}


def allowed_views(role: UserRole) -> List[View]:
    """Views for a role, in declaration order."""
    views = ROLE_VIEWS.get(role, frozenset())
    return [view for view in View if view in views]


def _role_of(current_user: dict) -> UserRole:
    user_role_str = current_user.get("role")

    if not user_role_str:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role information missing from token"
        )

    try:
        return UserRole(user_role_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/finance/transactions")
        async def list_transactions(current_user: dict = Depends(require_role([UserRole.FINANCE]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        if _role_of(current_user) not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        return current_user

    return role_checker


def require_view(view: View):
    """Dependency factory that admits every role whose view table lists `view`."""
    async def view_checker(current_user: dict = Depends(get_current_user)) -> dict:
        role = _role_of(current_user)
        if view not in ROLE_VIEWS.get(role, frozenset()):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Role {role.value} cannot open the {view.value} view"
            )
        return current_user

    return view_checker


def require_admin(current_user: dict = Depends(get_current_user)) -> dict:
    """Dependency for admin-only endpoints."""
    if _role_of(current_user) not in (UserRole.ADMIN, UserRole.DEVELOPER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )

    return current_user


class OwnershipGuard:
    """
    Decides whether the current user may act on another profile's records.

    - Finance staff (admin, finance, developer): every profile
    - Everyone: their own profile
    - Parents: the profiles of their children (parent_user_id)
    - Extra roles passed in `readers` (e.g. canteen for wallet reads)
    """

    async def can_access(
        self,
        db: AsyncSession,
        target_user_id: int,
        current_user: dict,
        readers: FrozenSet[UserRole] = FINANCE_STAFF
    ) -> bool:
        role = _role_of(current_user)

        if role in readers:
            return True

        if current_user.get("user_id") == target_user_id:
            return True

        if role == UserRole.PARENT:
            result = await db.execute(
                select(Profile.parent_user_id).where(Profile.id == target_user_id)
            )
            return result.scalar_one_or_none() == current_user.get("user_id")

        return False

    async def enforce(
        self,
        db: AsyncSession,
        target_user_id: int,
        current_user: dict,
        resource_name: str = "resource",
        readers: FrozenSet[UserRole] = FINANCE_STAFF
    ):
        """Raise 403 if the current user may not access the target's resource."""
        if not await self.can_access(db, target_user_id, current_user, readers):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )
