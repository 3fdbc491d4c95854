"""
Vote routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from rideshare.db.session import get_db
from rideshare.core.utils import format_response
from rideshare.models.vote import VoteStatus
from rideshare.schemas.common import Envelope
from rideshare.schemas.request import RequestVote
from rideshare.schemas.vote import VoteCast, VoteCastResponse, MyVoteResponse
from rideshare.services.vote_service import VoteService
from rideshare.api.dependencies import get_current_user_id, get_vote_service

router = APIRouter(prefix="/votes", tags=["votes"])


@router.get("/my-votes", response_model=Envelope[List[MyVoteResponse]])
def get_my_votes(
    vote_status: Optional[VoteStatus] = Query(None, alias="status"),
    current_user_id: str = Depends(get_current_user_id),
    service: VoteService = Depends(get_vote_service),
    db: Session = Depends(get_db)
):
    """List the votes you have cast."""
    votes = service.list_user_votes(db, current_user_id, vote_status)
    return format_response(votes, "Your votes")


@router.get("/request/{request_id}", response_model=Envelope[List[RequestVote]])
def get_request_votes(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: VoteService = Depends(get_vote_service),
    db: Session = Depends(get_db)
):
    """See who wants to join your ride (owner only)."""
    votes = service.list_request_votes(db, request_id, current_user_id)
    return format_response(votes, "Votes for your request")


@router.post("/{request_id}", response_model=Envelope[VoteCastResponse])
def cast_vote(
    request_id: str,
    vote_data: VoteCast,
    current_user_id: str = Depends(get_current_user_id),
    service: VoteService = Depends(get_vote_service),
    db: Session = Depends(get_db)
):
    """Accept or reject a ride request."""
    outcome = service.cast_vote(db, request_id, current_user_id, vote_data.status, vote_data.note)
    return format_response(outcome, f"Vote {outcome.vote.status.value} successfully")


@router.delete("/{request_id}", response_model=Envelope)
def withdraw_vote(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: VoteService = Depends(get_vote_service),
    db: Session = Depends(get_db)
):
    """Remove your vote from a request."""
    service.withdraw_vote(db, request_id, current_user_id)
    return format_response(message="Vote deleted successfully")
