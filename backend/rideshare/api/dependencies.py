"""
FastAPI dependencies: settings, identity and service wiring.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from rideshare.core.config import Settings
from rideshare.db.session import StorageClient, get_db, get_storage
from rideshare.models.user import User
from rideshare.services.cleanup_service import CleanupService
from rideshare.services.request_service import RequestService
from rideshare.services.user_service import UserService, get_user
from rideshare.services.vote_service import VoteService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user_id(settings: Settings = Depends(get_settings)) -> str:
    """
    Identity of the caller.

    Authentication is not implemented; every call acts as the configured
    development user.
    """
    return settings.DEV_USER_ID


def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    return get_user(db, user_id)


def get_request_service(storage: StorageClient = Depends(get_storage)) -> RequestService:
    return RequestService(storage)


def get_vote_service(storage: StorageClient = Depends(get_storage)) -> VoteService:
    return VoteService(storage)


def get_user_service(
    storage: StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(storage, max_image_mb=settings.MAX_PROFILE_IMAGE_MB)


def get_cleanup_service(
    storage: StorageClient = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> CleanupService:
    return CleanupService.from_settings(storage, settings)
