"""
Pydantic schemas for User entity.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Dict, List, Optional
from datetime import datetime
from rideshare.models.user import UserRole
from rideshare.schemas.common import Pagination


class UserContact(BaseModel):
    """Contact details revealed once a ride is matched."""
    id: str
    name: str
    email: EmailStr
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Schema for profile update."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    year: Optional[int] = None
    course: Optional[str] = Field(None, max_length=100)
    gender: Optional[str] = Field(None, max_length=20)


class ProfileImageUpload(BaseModel):
    """Schema for profile image upload (base64 data URL)."""
    profile_image: str


class UserResponse(BaseModel):
    """Schema for user profile response."""
    id: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    year: Optional[int] = None
    course: Optional[str] = None
    gender: Optional[str] = None
    profile_image: Optional[str] = None
    role: UserRole
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UserSummary(BaseModel):
    """User row in admin listings (no image payload)."""
    id: str
    name: str
    email: EmailStr
    phone: Optional[str] = None
    year: Optional[int] = None
    course: Optional[str] = None
    gender: Optional[str] = None
    role: UserRole
    created_at: datetime

    class Config:
        from_attributes = True


class UserPage(BaseModel):
    users: List[UserSummary] = []
    pagination: Pagination


class RequestCounts(BaseModel):
    total: int
    active: int
    completed: int


class VoteCounts(BaseModel):
    total: int
    accepted: int
    rejected: int


class UserStats(BaseModel):
    """Activity statistics for one user."""
    requests: RequestCounts
    votes: VoteCounts


class UserStatistics(BaseModel):
    """Population statistics for admins."""
    total_users: int
    incomplete_profiles: int
    by_year: Dict[str, int] = {}
    by_course: Dict[str, int] = {}
    by_gender: Dict[str, int] = {}
