"""
Vote engine: applies accept/reject votes to ride requests.

Every change to a request's occupancy happens inside the request's critical
section (StorageClient.request_lock plus a row lock) and through a guarded
UPDATE, so two accepts racing for the last seat cannot both succeed.
"""
import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from rideshare.core.errors import Conflict, InvalidOperation, InvalidState, NotFound
from rideshare.db.base import utcnow
from rideshare.db.session import StorageClient
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.user import User
from rideshare.models.vote import Vote, VoteStatus

logger = logging.getLogger(__name__)

# (existing vote status, desired status) -> occupancy delta
OCCUPANCY_DELTA: Dict[Tuple[Optional[VoteStatus], VoteStatus], int] = {
    (None, VoteStatus.ACCEPTED): 1,
    (None, VoteStatus.REJECTED): 0,
    (VoteStatus.ACCEPTED, VoteStatus.REJECTED): -1,
    (VoteStatus.REJECTED, VoteStatus.ACCEPTED): 1,
    (VoteStatus.ACCEPTED, VoteStatus.ACCEPTED): 0,
    (VoteStatus.REJECTED, VoteStatus.REJECTED): 0,
}


def occupancy_delta(existing: Optional[VoteStatus], desired: VoteStatus) -> int:
    """Seats taken (+1), released (-1) or unchanged (0) by a vote transition."""
    return OCCUPANCY_DELTA[(existing, desired)]


class VoteOutcome:
    """Result of a cast vote; contacts are set only when the vote is accepted."""
    def __init__(
        self,
        vote: Vote,
        request: RideRequest,
        request_owner_contact: Optional[User] = None,
        voter_contact: Optional[User] = None,
    ):
        self.vote = vote
        self.request = request
        self.request_owner_contact = request_owner_contact
        self.voter_contact = voter_contact

    @property
    def accepted(self) -> bool:
        return self.vote.status == VoteStatus.ACCEPTED


def lock_request_row(db: Session, request_id: str) -> Optional[RideRequest]:
    """Load a request with a row lock, discarding any stale identity-map copy."""
    return (
        db.query(RideRequest)
        .filter(RideRequest.id == request_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def increment_occupancy(db: Session, request_id: str) -> bool:
    """Take one seat if the request is still active and not full."""
    result = db.execute(
        update(RideRequest)
        .where(
            RideRequest.id == request_id,
            RideRequest.status == RequestStatus.ACTIVE,
            RideRequest.current_occupancy < RideRequest.max_persons,
        )
        .values(current_occupancy=RideRequest.current_occupancy + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def decrement_occupancy(db: Session, request_id: str) -> bool:
    """Release one seat; the owner's seat is never released."""
    result = db.execute(
        update(RideRequest)
        .where(
            RideRequest.id == request_id,
            RideRequest.current_occupancy > 1,
        )
        .values(current_occupancy=RideRequest.current_occupancy - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"Occupancy of request {request_id} already at the owner's seat")
        return False
    return True


def touch_if_active(db: Session, request_id: str) -> bool:
    """Stamp the request as voted on, provided it is still active."""
    result = db.execute(
        update(RideRequest)
        .where(
            RideRequest.id == request_id,
            RideRequest.status == RequestStatus.ACTIVE,
        )
        .values(updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def complete_if_full(db: Session, request_id: str) -> bool:
    """
    Flip an active request to completed once it reaches capacity.

    One-way: nothing in this module turns a completed request back to active.
    """
    result = db.execute(
        update(RideRequest)
        .where(
            RideRequest.id == request_id,
            RideRequest.status == RequestStatus.ACTIVE,
            RideRequest.current_occupancy >= RideRequest.max_persons,
        )
        .values(status=RequestStatus.COMPLETED)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


class VoteService:
    """Casts, changes and withdraws votes."""

    def __init__(self, storage: StorageClient):
        self.storage = storage

    def cast_vote(
        self,
        db: Session,
        request_id: str,
        voter_id: str,
        desired_status: VoteStatus,
        note: Optional[str] = None,
    ) -> VoteOutcome:
        """
        Create or update the voter's vote on a request and adjust occupancy.

        Preconditions are checked in order: the request exists, it is open,
        the voter is not its owner, and a seat is free when the vote would
        take one.

        Raises:
            NotFound: request or voter does not exist
            Conflict: request is full (or already completed)
            InvalidState: request is cancelled or expired
            InvalidOperation: voter owns the request
        """
        desired_status = VoteStatus(desired_status)

        def work(session: Session) -> VoteOutcome:
            return self._apply_vote(session, request_id, voter_id, desired_status, note)

        with self.storage.request_lock(request_id):
            outcome = self.storage.run_transaction(db, work)

        db.refresh(outcome.request)
        db.refresh(outcome.vote)
        logger.info(
            f"Vote {outcome.vote.status.value} by {voter_id} on request {request_id} "
            f"(occupancy {outcome.request.current_occupancy}/{outcome.request.max_persons}, "
            f"status {outcome.request.status.value})"
        )
        return outcome

    def _apply_vote(
        self,
        db: Session,
        request_id: str,
        voter_id: str,
        desired_status: VoteStatus,
        note: Optional[str],
    ) -> VoteOutcome:
        request = lock_request_row(db, request_id)
        if not request:
            raise NotFound("Request not found")

        if request.status == RequestStatus.COMPLETED:
            logger.debug(f"Vote refused, request {request_id} is completed")
            raise Conflict("Request is already full")
        if request.status != RequestStatus.ACTIVE:
            logger.debug(f"Vote refused, request {request_id} is {request.status.value}")
            raise InvalidState("Cannot vote on inactive request")

        if request.user_id == voter_id:
            raise InvalidOperation("Cannot vote on your own request")

        voter = db.query(User).filter(User.id == voter_id).first()
        if not voter:
            raise NotFound("User not found")

        existing = (
            db.query(Vote)
            .filter(Vote.request_id == request_id, Vote.user_id == voter_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        previous_status = existing.status if existing else None
        delta = occupancy_delta(previous_status, desired_status)

        # Full check uses the occupancy before this vote is applied
        if delta > 0 and request.is_full:
            raise Conflict("Request is already full")

        # The guarded writes below re-check the status the read above saw
        if delta > 0:
            if not increment_occupancy(db, request_id):
                self._refuse_closed(db, request)
        elif not touch_if_active(db, request_id):
            self._refuse_closed(db, request)
        if delta < 0:
            decrement_occupancy(db, request_id)

        if existing:
            existing.status = desired_status
            existing.note = note or None
            vote = existing
        else:
            vote = Vote(
                request_id=request_id,
                user_id=voter_id,
                status=desired_status,
                note=note or None,
            )
            db.add(vote)
        db.flush()

        if complete_if_full(db, request_id):
            logger.info(f"Request {request_id} is full and now completed")

        db.refresh(request)

        if desired_status == VoteStatus.ACCEPTED:
            return VoteOutcome(vote, request, request_owner_contact=request.user, voter_contact=voter)
        return VoteOutcome(vote, request)

    @staticmethod
    def _refuse_closed(db: Session, request: RideRequest) -> None:
        """Raise for a request whose guarded write found it changed since it was read."""
        current = (
            db.query(RideRequest.status, RideRequest.current_occupancy, RideRequest.max_persons)
            .filter(RideRequest.id == request.id)
            .first()
        )
        if current is None:
            raise NotFound("Request not found")
        status, occupancy, max_persons = current
        if status == RequestStatus.COMPLETED or (
            status == RequestStatus.ACTIVE and occupancy >= max_persons
        ):
            raise Conflict("Request is already full")
        logger.debug(f"Vote refused, request {request.id} became {status.value}")
        raise InvalidState("Cannot vote on inactive request")

    def withdraw_vote(self, db: Session, request_id: str, voter_id: str) -> None:
        """
        Delete the voter's vote; an accepted vote releases its seat.

        A completed request stays completed after the seat is released.
        """
        def work(session: Session) -> VoteStatus:
            vote = (
                session.query(Vote)
                .filter(Vote.request_id == request_id, Vote.user_id == voter_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            if not vote:
                raise NotFound("Vote not found")
            status = vote.status
            if status == VoteStatus.ACCEPTED:
                lock_request_row(session, request_id)
                decrement_occupancy(session, request_id)
            session.delete(vote)
            return status

        with self.storage.request_lock(request_id):
            status = self.storage.run_transaction(db, work)
        logger.info(f"Vote ({status.value}) by {voter_id} on request {request_id} withdrawn")

    def list_request_votes(self, db: Session, request_id: str, owner_id: str) -> List[Vote]:
        """Votes on a request, newest first; visible to the request owner only."""
        request = db.query(RideRequest).filter(
            RideRequest.id == request_id,
            RideRequest.user_id == owner_id,
        ).first()
        if not request:
            raise NotFound("Request not found or you do not have permission to view votes")

        return (
            db.query(Vote)
            .options(joinedload(Vote.user))
            .filter(Vote.request_id == request_id)
            .order_by(Vote.created_at.desc())
            .all()
        )

    def list_user_votes(
        self,
        db: Session,
        user_id: str,
        status: Optional[VoteStatus] = None,
    ) -> List[Vote]:
        """Votes cast by a user, newest first, with each request and its owner."""
        query = (
            db.query(Vote)
            .options(joinedload(Vote.request).joinedload(RideRequest.user))
            .filter(Vote.user_id == user_id)
        )
        if status:
            query = query.filter(Vote.status == status)
        return query.order_by(Vote.created_at.desc()).all()
