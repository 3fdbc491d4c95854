"""
User model for students and admins.
"""
from sqlalchemy import Column, String, Integer, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from rideshare.db.base import BaseModel
import enum


class UserRole(str, enum.Enum):
    """User role enumeration."""
    STUDENT = "student"
    ADMIN = "admin"


class User(BaseModel):
    """User model; email is unique, profile fields are optional."""
    __tablename__ = "users"

    name = Column(String(100), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    phone = Column(String(30), nullable=True)
    year = Column(Integer, nullable=True)
    course = Column(String(100), nullable=True)
    gender = Column(String(20), nullable=True)
    profile_image = Column(Text, nullable=True)  # base64 data URL
    role = Column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.STUDENT,
        nullable=False,
    )

    # Relationships (deletion is cascaded explicitly by user_service)
    requests = relationship("RideRequest", back_populates="user")
    votes = relationship("Vote", back_populates="user")
