"""Models package - Import all models for SQLAlchemy registration."""
from rideshare.models.user import User, UserRole
from rideshare.models.request import RideRequest, RequestStatus, CarType
from rideshare.models.vote import Vote, VoteStatus

__all__ = [
    "User",
    "UserRole",
    "RideRequest",
    "RequestStatus",
    "CarType",
    "Vote",
    "VoteStatus",
]
