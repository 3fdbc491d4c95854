"""
User profile service.
"""
import logging
from contextlib import ExitStack
from typing import Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from rideshare.core.errors import Forbidden, InvalidOperation, NotFound, ValidationFailed
from rideshare.db.session import StorageClient
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.user import User, UserRole
from rideshare.models.vote import Vote, VoteStatus
from rideshare.schemas.user import UserUpdate
from rideshare.services.vote_service import decrement_occupancy, lock_request_row

logger = logging.getLogger(__name__)

MIN_YEAR = 1
MAX_YEAR = 10


def require_admin(user: User, action: str) -> None:
    if user.role != UserRole.ADMIN:
        raise Forbidden(f"Access denied. Admin privileges required to {action}.")


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User profile not found. Please contact support if this issue persists.")
    return user


class UserService:
    """Profile updates, activity stats and admin user management."""

    def __init__(self, storage: StorageClient, max_image_mb: int = 5):
        self.storage = storage
        self.max_image_mb = max_image_mb

    def update_profile(self, db: Session, user_id: str, changes: UserUpdate) -> User:
        fields = changes.model_dump(exclude_unset=True, exclude_none=True)
        year = fields.get("year")
        if year is not None and not (MIN_YEAR <= year <= MAX_YEAR):
            raise ValidationFailed(f"Academic year must be a number between {MIN_YEAR} and {MAX_YEAR}.")

        def work(session: Session) -> User:
            user = get_user(session, user_id)
            for field, value in fields.items():
                setattr(user, field, value)
            return user

        user = self.storage.run_transaction(db, work)
        db.refresh(user)
        logger.info(f"Profile updated for {user_id}: {sorted(fields)}")
        return user

    def upload_profile_image(self, db: Session, user_id: str, data_url: str) -> User:
        """Store a base64 data URL as the profile image."""
        if not data_url:
            raise ValidationFailed("No image data provided. Please select an image to upload.")
        if not data_url.startswith("data:image/"):
            raise ValidationFailed("Invalid image format. Please provide a valid image.")

        # base64 is ~4/3 the size of the decoded bytes
        size_in_bytes = len(data_url) * 3 / 4
        if size_in_bytes > self.max_image_mb * 1024 * 1024:
            raise ValidationFailed(
                f"Image size too large. Maximum allowed size is {self.max_image_mb}MB."
            )

        def work(session: Session) -> User:
            user = get_user(session, user_id)
            user.profile_image = data_url
            return user

        user = self.storage.run_transaction(db, work)
        db.refresh(user)
        logger.info(f"Profile image stored for {user_id} ({size_in_bytes / 1024:.2f} KB)")
        return user

    def get_user_stats(self, db: Session, user_id: str) -> Dict[str, Dict[str, int]]:
        def count_requests(*criteria) -> int:
            return db.query(func.count(RideRequest.id)).filter(
                RideRequest.user_id == user_id, *criteria
            ).scalar()

        def count_votes(*criteria) -> int:
            return db.query(func.count(Vote.id)).filter(
                Vote.user_id == user_id, *criteria
            ).scalar()

        return {
            "requests": {
                "total": count_requests(),
                "active": count_requests(RideRequest.status == RequestStatus.ACTIVE),
                "completed": count_requests(RideRequest.status == RequestStatus.COMPLETED),
            },
            "votes": {
                "total": count_votes(),
                "accepted": count_votes(Vote.status == VoteStatus.ACCEPTED),
                "rejected": count_votes(Vote.status == VoteStatus.REJECTED),
            },
        }

    def list_users(self, db: Session, current_user: User, page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
        require_admin(current_user, "view all users")
        total = db.query(func.count(User.id)).scalar()
        users = (
            db.query(User)
            .order_by(User.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return users, total

    def delete_user(self, db: Session, current_user: User, target_user_id: str) -> str:
        """
        Delete a user and everything they own.

        Accepted votes on other users' requests give their seats back first,
        then the user's votes, requests (with their votes) and the user row
        are removed in one transaction.

        Returns:
            The deleted user's display name
        """
        require_admin(current_user, "delete users")
        if current_user.id == target_user_id:
            raise InvalidOperation("You cannot delete your own account through this endpoint.")

        target = db.query(User).filter(User.id == target_user_id).first()
        if not target:
            raise NotFound("User not found. They may have already been deleted.")
        display_name = target.name or target.email

        # Any vote may turn into an accept before the locks are held
        voted_request_ids = sorted({
            request_id for (request_id,) in db.query(Vote.request_id).filter(Vote.user_id == target_user_id)
        })

        def work(session: Session) -> None:
            # Re-read under the locks; a vote withdrawn meanwhile must not release a seat
            seat_request_ids = [
                request_id for (request_id,) in session.query(Vote.request_id).filter(
                    Vote.user_id == target_user_id,
                    Vote.status == VoteStatus.ACCEPTED,
                ).with_for_update()
            ]
            for request_id in sorted(seat_request_ids):
                if lock_request_row(session, request_id) is not None:
                    decrement_occupancy(session, request_id)
            session.query(Vote).filter(Vote.user_id == target_user_id).delete(synchronize_session=False)
            owned = [r for (r,) in session.query(RideRequest.id).filter(RideRequest.user_id == target_user_id)]
            if owned:
                session.query(Vote).filter(Vote.request_id.in_(owned)).delete(synchronize_session=False)
                session.query(RideRequest).filter(RideRequest.id.in_(owned)).delete(synchronize_session=False)
            session.query(User).filter(User.id == target_user_id).delete(synchronize_session=False)

        # Lock in a stable order so concurrent cascades cannot deadlock
        with ExitStack() as stack:
            for request_id in voted_request_ids:
                stack.enter_context(self.storage.request_lock(request_id))
            self.storage.run_transaction(db, work)

        logger.info(f"User {target_user_id} deleted by admin {current_user.id}")
        return display_name
