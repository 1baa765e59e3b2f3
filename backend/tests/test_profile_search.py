"""
Profile directory search tests.
"""

import pytest

from backend.app.models.enums import UserRole
from backend.app.services.profile_directory import search_profiles, MAX_SEARCH_LIMIT


@pytest.mark.asyncio
async def test_search_is_case_insensitive_and_ordered(db_session, make_profile):
    await make_profile(UserRole.PARENT, full_name="Ali Hassan")
    await make_profile(UserRole.STUDENT, full_name="Fatima Ali")
    await make_profile(UserRole.TEACHER, full_name="Omar Khalid")

    entries = await search_profiles(db_session, "ali")

    assert [e.full_name for e in entries] == ["Ali Hassan", "Fatima Ali", "Omar Khalid"]


@pytest.mark.asyncio
async def test_search_matches_phone_and_email(db_session, make_profile):
    await make_profile(UserRole.PARENT, full_name="Mona Saeed", phone="+968 9123 4567")
    await make_profile(UserRole.PARENT, full_name="Yusuf Nasser", email="yusuf.n@example.om")

    by_phone = await search_profiles(db_session, "9123")
    by_email = await search_profiles(db_session, "EXAMPLE.OM")

    assert [e.full_name for e in by_phone] == ["Mona Saeed"]
    assert [e.full_name for e in by_email] == ["Yusuf Nasser"]


@pytest.mark.asyncio
async def test_search_matches_card_id(db_session, make_student):
    await make_student("Layla Said", nfc_id="04A1B2C3")
    await make_student("Hamad Said")

    entries = await search_profiles(db_session, "a1b2")

    assert len(entries) == 1
    assert entries[0].full_name == "Layla Said"
    assert entries[0].nfc_id == "04A1B2C3"


@pytest.mark.asyncio
async def test_student_without_card_returns_null_card_id(db_session, make_student, make_profile):
    await make_student("Hamad Said")
    await make_profile(UserRole.PARENT, full_name="Said Parent")

    entries = await search_profiles(db_session, "said")

    assert [(e.full_name, e.nfc_id) for e in entries] == [("Hamad Said", None), ("Said Parent", None)]


@pytest.mark.asyncio
async def test_like_wildcards_are_literal(db_session, make_profile):
    await make_profile(UserRole.PARENT, full_name="Percent 100% Parent")
    await make_profile(UserRole.PARENT, full_name="Plain Parent")

    entries = await search_profiles(db_session, "%")

    assert [e.full_name for e in entries] == ["Percent 100% Parent"]


@pytest.mark.asyncio
async def test_results_are_capped(db_session, make_profile):
    for i in range(MAX_SEARCH_LIMIT + 5):
        await make_profile(UserRole.STUDENT, full_name=f"Student {i:03d}")

    entries = await search_profiles(db_session, "student", limit=500)
    assert len(entries) == MAX_SEARCH_LIMIT

    blank = await search_profiles(db_session, "   ")
    assert len(blank) == MAX_SEARCH_LIMIT
    assert blank[0].full_name == "Student 000"


@pytest.mark.asyncio
async def test_search_endpoint(client, make_profile, make_student, auth_headers):
    canteen = await make_profile(UserRole.CANTEEN, full_name="Canteen Desk")
    parent = await make_profile(UserRole.PARENT, full_name="Ali Parent")
    await make_student("Ali Student", parent=parent, nfc_id="CARD-1")

    response = await client.get("/v1/profiles/search?q=ALI", headers=auth_headers(canteen))

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert data["results"][0]["full_name"] == "Ali Parent"
    assert data["results"][0]["nfc_id"] is None
    assert data["results"][1]["nfc_id"] == "CARD-1"
    assert data["results"][1]["parent_user_id"] == parent.id
    assert data["results"][1]["role"] == "student"


@pytest.mark.asyncio
async def test_search_endpoint_rejects_parents_and_large_limits(client, make_profile, auth_headers):
    parent = await make_profile(UserRole.PARENT)
    finance = await make_profile(UserRole.FINANCE)

    assert (await client.get("/v1/profiles/search?q=a", headers=auth_headers(parent))).status_code == 403
    assert (await client.get("/v1/profiles/search?limit=51", headers=auth_headers(finance))).status_code == 422


@pytest.mark.asyncio
async def test_get_profile_entry_endpoint(client, make_profile, auth_headers):
    finance = await make_profile(UserRole.FINANCE)

    found = await client.get(f"/v1/profiles/{finance.id}", headers=auth_headers(finance))
    missing = await client.get("/v1/profiles/9999", headers=auth_headers(finance))

    assert found.status_code == 200
    assert found.json()["email"] == finance.email
    assert missing.status_code == 404
