"""
Ride request model: a posted ride offer with a seat capacity.
"""
from sqlalchemy import Column, String, Date, Time, Integer, ForeignKey, CheckConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from rideshare.db.base import BaseModel
import enum


def _values(enum_cls):
    return [member.value for member in enum_cls]


class RequestStatus(str, enum.Enum):
    """Request status enumeration."""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class CarType(str, enum.Enum):
    """Vehicle type enumeration."""
    AUTO = "Auto"
    SEDAN = "Sedan"
    SUV = "SUV"
    TRAVELLER = "Traveller"
    ANY = "Any"


class RideRequest(BaseModel):
    """
    Ride request owned by one user.

    current_occupancy caches 1 (the owner) + the number of accepted votes.
    Only the vote engine and the sweeper write current_occupancy and status.
    """
    __tablename__ = "requests"

    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    from_location = Column("from", String(200), nullable=False)
    to_location = Column("to", String(200), nullable=False)
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    car_type = Column(SQLEnum(CarType, values_callable=_values), nullable=False, default=CarType.ANY)
    max_persons = Column(Integer, nullable=False)
    current_occupancy = Column(Integer, nullable=False, default=1)
    status = Column(
        SQLEnum(RequestStatus, values_callable=_values),
        default=RequestStatus.ACTIVE,
        nullable=False,
        index=True,
    )

    # Relationships
    user = relationship("User", back_populates="requests")
    votes = relationship("Vote", back_populates="request", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("max_persons >= 1", name="ck_requests_max_persons_positive"),
        CheckConstraint(
            "current_occupancy >= 1 AND current_occupancy <= max_persons",
            name="ck_requests_occupancy_bounds",
        ),
    )

    @property
    def is_full(self) -> bool:
        return self.current_occupancy >= self.max_persons

    @property
    def seats_left(self) -> int:
        return max(self.max_persons - self.current_occupancy, 0)
