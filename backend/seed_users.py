"""
Database seeding script for initial users.

Creates ADMIN, FINANCE, CANTEEN and PARENT users plus one student with a
card id and a funded wallet, for testing and development.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
# Import models to ensure they are registered with Base
from backend.app.models.profile import Profile
from backend.app.models.student import Student
from backend.app.models.audit_log import AuditLog
from backend.app.models.wallet import WalletBalance, WalletTransaction, WalletTransfer
from backend.app.models.financial_transaction import FinancialTransaction, StudentFee
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash
from backend.app.domain.wallet.ledger_service import WalletLedgerService
from sqlalchemy import select

SEED_USERS = [
    # (username, password, role, full name)
    ("admin", "admin123", UserRole.ADMIN, "School Administrator"),
    ("finance", "finance123", UserRole.FINANCE, "Finance Office"),
    ("canteen", "canteen123", UserRole.CANTEEN, "Canteen Desk"),
    ("parent", "parent123", UserRole.PARENT, "Aisha Al Harthy"),
]


def _profile(username: str, password: str, role: UserRole, full_name: str, **fields) -> Profile:
    return Profile(
        email=f"{username}@school.om",
        username=username,
        hashed_password=get_password_hash(password),
        full_name=full_name,
        role=role,
        is_active=True,
        is_superuser=role == UserRole.ADMIN,
        **fields
    )


async def seed_users():
    """
    Seed initial users with different roles.

    Creates:
    - 1 ADMIN, 1 FINANCE, 1 CANTEEN and 1 PARENT user
    - 1 STUDENT linked to the parent, with a card id and a 20.000 wallet
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(select(Profile).where(Profile.username == "admin"))
        if result.scalar_one_or_none():
            print("ℹ️  ADMIN user already exists, skipping seeding")
            return

        profiles = {}
        for username, password, role, full_name in SEED_USERS:
            profiles[username] = _profile(username, password, role, full_name)
            db.add(profiles[username])
            print(f"✅ Created {role.value.upper()} user (username: {username}, password: {password})")
        await db.flush()

        student = _profile(
            "student", "student123", UserRole.STUDENT, "Omar Al Harthy",
            parent_user_id=profiles["parent"].id
        )
        db.add(student)
        await db.flush()
        db.add(Student(
            profile_id=student.id,
            student_number="S-0001",
            nfc_id="04A1B2C3D4"
        ))
        print("✅ Created STUDENT user (username: student, password: student123, card: 04A1B2C3D4)")

        await WalletLedgerService.credit(
            db, student.id, Decimal("20"),
            description="Opening balance"
        )
        print("✅ Funded student wallet with 20.000")

        await db.commit()

        print("\n🎉 User seeding completed successfully!")
        print("\nNote: further parents register via POST /auth/register; other roles via POST /admin/users")


if __name__ == "__main__":
    asyncio.run(seed_users())
