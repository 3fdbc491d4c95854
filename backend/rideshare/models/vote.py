"""
Vote model: a rider's response to a ride request.
"""
from sqlalchemy import Column, String, Text, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from rideshare.db.base import BaseModel
import enum


class VoteStatus(str, enum.Enum):
    """Vote status enumeration."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Vote(BaseModel):
    """One vote per (request, voter); later responses update it in place."""
    __tablename__ = "votes"

    request_id = Column(String(36), ForeignKey("requests.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(
        SQLEnum(VoteStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    note = Column(Text, nullable=True)  # from voter to request owner

    # Relationships
    request = relationship("RideRequest", back_populates="votes")
    user = relationship("User", back_populates="votes")

    __table_args__ = (
        UniqueConstraint("request_id", "user_id", name="uq_vote_request_user"),
    )
