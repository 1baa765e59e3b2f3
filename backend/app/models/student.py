"""
Student database model.

Holds the school-side record of a student and its card identifier
(`nfc_id`), which the profile directory merges into search results.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # One student row per profile; the parent link lives on Profile.parent_user_id
    profile_id = Column(Integer, ForeignKey("profiles.id"), unique=True, nullable=True, index=True)

    student_number = Column(String(50), unique=True, nullable=False)
    nfc_id = Column(String(100), unique=True, nullable=True, index=True)
    grade = Column(String(50), nullable=True)
    class_name = Column(String(50), nullable=True)
    status = Column(String(30), default="active", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Student(id={self.id}, number='{self.student_number}', profile={self.profile_id})>"
