"""
Profile directory search.

Read-only lookup used by the finance and canteen screens to pick the
profile a transaction belongs to.
"""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.models.enums import UserRole
from backend.app.models.profile import Profile
from backend.app.models.student import Student

MAX_SEARCH_LIMIT = 50


@dataclass
class DirectoryEntry:
    id: int
    full_name: str
    full_name_ar: Optional[str]
    email: str
    phone: Optional[str]
    role: UserRole
    parent_user_id: Optional[int]
    nfc_id: Optional[str]


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally (use escape="\\")."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_entry(profile: Profile, nfc_id: Optional[str]) -> DirectoryEntry:
    return DirectoryEntry(
        id=profile.id,
        full_name=profile.full_name,
        full_name_ar=profile.full_name_ar,
        email=profile.email,
        phone=profile.phone,
        role=profile.role,
        parent_user_id=profile.parent_user_id,
        nfc_id=nfc_id
    )


async def search_profiles(
    db: AsyncSession,
    query: Optional[str],
    limit: Optional[int] = None
) -> List[DirectoryEntry]:
    """
    Find profiles whose name, phone, email or card id contains `query`.

    Matching is case-insensitive. A blank query returns the unfiltered list.
    Results are ordered by full name and capped at MAX_SEARCH_LIMIT.
    """
    cap = min(limit or settings.profile_search_limit, MAX_SEARCH_LIMIT)

    stmt = (
        select(Profile, Student.nfc_id)
        .outerjoin(Student, Student.profile_id == Profile.id)
        .order_by(Profile.full_name, Profile.id)
        .limit(cap)
    )

    term = (query or "").strip()
    if term:
        pattern = f"%{escape_like(term)}%"
        stmt = stmt.where(or_(
            Profile.full_name.ilike(pattern, escape="\\"),
            Profile.phone.ilike(pattern, escape="\\"),
            Profile.email.ilike(pattern, escape="\\"),
            Student.nfc_id.ilike(pattern, escape="\\"),
        ))

    result = await db.execute(stmt)
    return [_to_entry(profile, nfc_id) for profile, nfc_id in result.all()]


async def get_profile_entry(db: AsyncSession, profile_id: int) -> Optional[DirectoryEntry]:
    result = await db.execute(
        select(Profile, Student.nfc_id)
        .outerjoin(Student, Student.profile_id == Profile.id)
        .where(Profile.id == profile_id)
    )
    row = result.first()
    if row is None:
        return None
    return _to_entry(*row)
