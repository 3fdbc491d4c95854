"""
Pydantic schemas for Vote entity.
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from rideshare.models.vote import VoteStatus
from rideshare.schemas.request import RequestListItem, RequestResponse
from rideshare.schemas.user import UserContact


class VoteCast(BaseModel):
    """Body of POST /votes/{request_id}."""
    status: VoteStatus
    note: Optional[str] = Field(None, max_length=1000)


class VoteResponse(BaseModel):
    """Schema for vote response."""
    id: str
    request_id: str
    user_id: str
    status: VoteStatus
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    user: Optional[UserContact] = None

    class Config:
        from_attributes = True


class VoteCastResponse(BaseModel):
    """Result of casting a vote; contacts are revealed only on acceptance."""
    vote: VoteResponse
    request: RequestResponse
    request_owner_contact: Optional[UserContact] = None
    voter_contact: Optional[UserContact] = None

    class Config:
        from_attributes = True


class MyVoteResponse(BaseModel):
    """A vote cast by the caller, with the request it was cast on."""
    id: str
    request_id: str
    status: VoteStatus
    note: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    request: RequestListItem

    class Config:
        from_attributes = True
