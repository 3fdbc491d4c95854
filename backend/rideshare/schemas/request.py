"""
Pydantic schemas for ride Request entity.
"""
from pydantic import AliasChoices, BaseModel, Field
from typing import List, Optional
from datetime import date, datetime, time as dt_time
from datetime import date as dt_date
from rideshare.models.request import CarType, RequestStatus
from rideshare.models.vote import VoteStatus
from rideshare.schemas.common import Pagination
from rideshare.schemas.user import UserContact


class RequestBase(BaseModel):
    """Base request schema; ``from``/``to`` are the wire names."""
    from_location: str = Field(..., validation_alias=AliasChoices("from", "from_location"), serialization_alias="from", min_length=1, max_length=200)
    to_location: str = Field(..., validation_alias=AliasChoices("to", "to_location"), serialization_alias="to", min_length=1, max_length=200)
    date: date
    time: dt_time
    car_type: CarType = CarType.ANY
    max_persons: int

    class Config:
        populate_by_name = True


class RequestCreate(RequestBase):
    """Schema for request creation."""
    pass


class RequestUpdate(BaseModel):
    """Schema for request update; only these fields are mutable."""
    from_location: Optional[str] = Field(None, validation_alias=AliasChoices("from", "from_location"), min_length=1, max_length=200)
    to_location: Optional[str] = Field(None, validation_alias=AliasChoices("to", "to_location"), min_length=1, max_length=200)
    date: Optional[dt_date] = None
    time: Optional[dt_time] = None
    car_type: Optional[CarType] = None
    max_persons: Optional[int] = None
    status: Optional[RequestStatus] = None

    class Config:
        populate_by_name = True
        extra = "forbid"


class RequestResponse(RequestBase):
    """Schema for request response."""
    id: str
    user_id: str
    current_occupancy: int
    status: RequestStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class VoteBrief(BaseModel):
    """The caller's own vote on a listed request."""
    id: str
    status: VoteStatus

    class Config:
        from_attributes = True


class RequestVote(BaseModel):
    """A vote on a request together with the voter's contact details."""
    id: str
    user_id: str
    status: VoteStatus
    note: Optional[str] = None
    created_at: datetime
    user: Optional[UserContact] = None

    class Config:
        from_attributes = True


class RequestListItem(RequestResponse):
    """Request as shown in search and browse lists."""
    user: Optional[UserContact] = None
    my_vote: Optional[VoteBrief] = None


class RequestDetailResponse(RequestResponse):
    """Request with owner and votes."""
    user: Optional[UserContact] = None
    votes: List[RequestVote] = []


class RequestPage(BaseModel):
    """Paginated request listing."""
    requests: List[RequestListItem] = []
    pagination: Pagination


class MyRequests(BaseModel):
    """The caller's own requests."""
    requests: List[RequestDetailResponse] = []
