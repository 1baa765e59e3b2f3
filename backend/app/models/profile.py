"""
Profile database model.

A profile is the identity record of any system user regardless of role.
It also carries the login credentials.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.enums import UserRole, enum_values


class Profile(Base):
    """
    Profile model for authentication and the user directory.

    Students are linked to their guardian through parent_user_id.
    """
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Directory fields
    full_name = Column(String(200), nullable=False, index=True)
    full_name_ar = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)

    role = Column(
        Enum(UserRole, values_callable=enum_values),
        default=UserRole.PARENT,
        nullable=False
    )

    # Student -> guardian
    parent_user_id = Column(Integer, ForeignKey("profiles.id"), index=True, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    is_superuser = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Profile(id={self.id}, username='{self.username}', role='{self.role.value}')>"
