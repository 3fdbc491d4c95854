"""
User profile routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from rideshare.db.session import get_db
from rideshare.core.utils import format_response, paginate
from rideshare.models.user import User
from rideshare.schemas.common import Envelope
from rideshare.schemas.user import (
    UserResponse, UserUpdate, ProfileImageUpload, UserStats, UserPage
)
from rideshare.services.user_service import UserService
from rideshare.api.dependencies import get_current_user, get_user_service

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/profile", response_model=Envelope[UserResponse])
def get_profile(current_user: User = Depends(get_current_user)):
    """View your profile."""
    return format_response(current_user, "Your profile")


@router.put("/profile", response_model=Envelope[UserResponse])
def update_profile(
    changes: UserUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    db: Session = Depends(get_db)
):
    """Update your profile."""
    user = service.update_profile(db, current_user.id, changes)
    return format_response(user, "Your profile has been updated successfully!")


@router.put("/profile/image", response_model=Envelope[UserResponse])
def upload_profile_image(
    upload: ProfileImageUpload,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    db: Session = Depends(get_db)
):
    """Upload or replace your profile picture (base64 data URL)."""
    user = service.upload_profile_image(db, current_user.id, upload.profile_image)
    return format_response(user, "Profile image updated successfully!")


@router.get("/stats", response_model=Envelope[UserStats])
def get_stats(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    db: Session = Depends(get_db)
):
    """Your ride statistics."""
    return format_response(service.get_user_stats(db, current_user.id), "Your ride statistics")


@router.get("", response_model=Envelope[UserPage])
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    db: Session = Depends(get_db)
):
    """List all users (admin only)."""
    users, total = service.list_users(db, current_user, page, limit)
    return format_response(
        {"users": users, "pagination": paginate(page, limit, total)},
        "All users"
    )


@router.delete("/{user_id}", response_model=Envelope)
def delete_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
    db: Session = Depends(get_db)
):
    """Delete a user and their data (admin only)."""
    name = service.delete_user(db, current_user, user_id)
    return format_response(message=f"User {name} has been deleted successfully.")
