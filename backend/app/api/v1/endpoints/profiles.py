"""
Profile directory endpoints.

Used by staff to pick the profile a transaction or wallet action is for.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.core.guards import require_role
from backend.app.models.enums import UserRole
from backend.app.schemas.reports import ProfileSearchResult, ProfileSearchResponse
from backend.app.services.profile_directory import search_profiles, get_profile_entry, MAX_SEARCH_LIMIT

router = APIRouter(prefix="/profiles", tags=["Profiles"])

DIRECTORY_ROLES = [
    UserRole.ADMIN, UserRole.FINANCE, UserRole.DEVELOPER, UserRole.CANTEEN, UserRole.TEACHER
]


@router.get("/search", response_model=ProfileSearchResponse)
async def search(
    q: str = Query("", max_length=100, description="Name, phone, email or card id fragment"),
    limit: int = Query(MAX_SEARCH_LIMIT, ge=1, le=MAX_SEARCH_LIMIT),
    current_user: dict = Depends(require_role(DIRECTORY_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Case-insensitive profile search ordered by name, at most 50 results."""
    entries = await search_profiles(db, q, limit=limit)
    return ProfileSearchResponse(
        results=[ProfileSearchResult.model_validate(e) for e in entries],
        count=len(entries)
    )


@router.get("/{profile_id}", response_model=ProfileSearchResult)
async def get_profile(
    profile_id: int,
    current_user: dict = Depends(require_role(DIRECTORY_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    entry = await get_profile_entry(db, profile_id)
    if entry is None:
        raise ResourceNotFoundError("Profile", profile_id)
    return ProfileSearchResult.model_validate(entry)
