"""
Request lifecycle: creation, owner updates and cancellation.
"""
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from rideshare.core.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from rideshare.db.session import StorageClient
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.user import User
from rideshare.schemas.request import RequestCreate, RequestUpdate
from rideshare.services.vote_service import lock_request_row, complete_if_full

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = (RequestStatus.CANCELLED, RequestStatus.EXPIRED)


def validate_capacity(max_persons) -> int:
    """Capacity must be a positive integer (the owner takes the first seat)."""
    if max_persons is None or isinstance(max_persons, bool) or not isinstance(max_persons, int):
        raise ValidationFailed("Maximum persons is required and must be a whole number")
    if max_persons < 1:
        raise ValidationFailed("Maximum persons must be at least 1")
    return max_persons


def _owned_request(db: Session, request_id: str, user_id: str) -> RideRequest:
    request = lock_request_row(db, request_id)
    if not request:
        raise NotFound("Request not found")
    if request.user_id != user_id:
        raise Forbidden("Only the owner of this request can change it")
    return request


def _mark_cancelled(db: Session, request: RideRequest) -> None:
    """Cancel an active request; the write is a no-op if the sweeper got there first."""
    result = db.execute(
        update(RideRequest)
        .where(RideRequest.id == request.id, RideRequest.status == RequestStatus.ACTIVE)
        .values(status=RequestStatus.CANCELLED)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.refresh(request)
        raise InvalidState(f"Cannot cancel a {request.status.value} request")


class RequestService:
    """Creates ride requests and applies owner-driven status changes."""

    def __init__(self, storage: StorageClient):
        self.storage = storage

    def create_request(self, db: Session, owner_id: str, data: RequestCreate) -> RideRequest:
        """Persist a new active request with the owner in the first seat."""
        max_persons = validate_capacity(data.max_persons)

        def work(session: Session) -> RideRequest:
            owner = session.query(User).filter(User.id == owner_id).first()
            if not owner:
                raise NotFound("User not found")

            request = RideRequest(
                user_id=owner_id,
                from_location=data.from_location,
                to_location=data.to_location,
                date=data.date,
                time=data.time,
                car_type=data.car_type,
                max_persons=max_persons,
                current_occupancy=1,
                status=RequestStatus.ACTIVE,
            )
            session.add(request)
            session.flush()
            # A single-seat ride is full from the start
            complete_if_full(session, request.id)
            return request

        request = self.storage.run_transaction(db, work)
        db.refresh(request)
        logger.info(
            f"Request {request.id} created by {owner_id}: "
            f"{request.from_location} -> {request.to_location} on {request.date}"
        )
        return request

    def cancel_request(self, db: Session, request_id: str, user_id: str) -> RideRequest:
        """
        Cancel an active request. Cancelling twice is a no-op; completed and
        expired requests cannot be cancelled. Existing votes are left as they are.
        """
        def work(session: Session) -> RideRequest:
            request = _owned_request(session, request_id, user_id)
            if request.status == RequestStatus.CANCELLED:
                return request
            if request.status != RequestStatus.ACTIVE:
                raise InvalidState(f"Cannot cancel a {request.status.value} request")
            _mark_cancelled(session, request)
            return request

        with self.storage.request_lock(request_id):
            request = self.storage.run_transaction(db, work)
        db.refresh(request)
        logger.info(f"Request {request_id} cancelled by {user_id}")
        return request

    def update_request(
        self,
        db: Session,
        request_id: str,
        user_id: str,
        changes: RequestUpdate,
    ) -> RideRequest:
        """
        Apply owner edits to a request.

        Capacity may not drop below the seats already taken, and ``status``
        may only be set to ``cancelled``; completion and expiry are derived.
        """
        fields = changes.model_dump(exclude_unset=True)

        def work(session: Session) -> RideRequest:
            request = _owned_request(session, request_id, user_id)
            pending = dict(fields)
            if not pending:
                return request
            if request.status in TERMINAL_STATUSES:
                raise InvalidState(f"Cannot update a {request.status.value} request")

            new_status = pending.pop("status", None)
            if new_status is not None and new_status != request.status:
                if new_status != RequestStatus.CANCELLED:
                    raise InvalidState("Request status can only be changed to cancelled")
                if request.status != RequestStatus.ACTIVE:
                    raise InvalidState(f"Cannot cancel a {request.status.value} request")

            if "max_persons" in pending:
                max_persons = validate_capacity(pending["max_persons"])
                if max_persons < request.current_occupancy:
                    raise Conflict(
                        f"Cannot reduce capacity below the {request.current_occupancy} "
                        f"seats already taken"
                    )

            for field, value in pending.items():
                if value is None:
                    raise ValidationFailed(f"{field} cannot be empty")
                setattr(request, field, value)
            session.flush()

            if new_status == RequestStatus.CANCELLED and request.status == RequestStatus.ACTIVE:
                _mark_cancelled(session, request)
            else:
                complete_if_full(session, request_id)
            return request

        with self.storage.request_lock(request_id):
            request = self.storage.run_transaction(db, work)
        db.refresh(request)
        logger.info(f"Request {request_id} updated by {user_id}: {sorted(changes.model_fields_set)}")
        return request
