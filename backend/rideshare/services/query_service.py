"""
Query service for finding and listing ride requests.
"""
from sqlalchemy.orm import Session, Query, joinedload, selectinload
from typing import List, Optional, Tuple
from datetime import date
from rideshare.core.errors import NotFound, ValidationFailed
from rideshare.db.base import local_today
from rideshare.models.request import RideRequest, RequestStatus, CarType
from rideshare.models.vote import Vote


class SearchCriteria:
    """Filters for request search; unset filters are ignored."""
    def __init__(
        self,
        from_location: Optional[str] = None,
        to_location: Optional[str] = None,
        on_date: Optional[date] = None,
        car_type: Optional[str] = None,
        min_persons: Optional[int] = None,
    ):
        self.from_location = from_location
        self.to_location = to_location
        self.on_date = on_date
        self.car_type = car_type
        self.min_persons = min_persons


def parse_car_type(value: Optional[str]) -> Optional[CarType]:
    """Map a case-insensitive car type to the enum; ``any`` means no filter."""
    if not value or value.lower() == CarType.ANY.value.lower():
        return None
    for car_type in CarType:
        if car_type.value.lower() == value.lower():
            return car_type
    raise ValidationFailed(f"Unknown car type '{value}'")


def _contains_ci(column, text: str):
    """Case-insensitive substring match with LIKE wildcards escaped."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return column.ilike(f"%{escaped}%", escape="\\")


def _ordered(query: Query) -> Query:
    """Soonest ride first; newest-created wins ties."""
    return query.order_by(
        RideRequest.date.asc(),
        RideRequest.time.asc(),
        RideRequest.created_at.desc(),
    )


def search_requests(
    db: Session,
    criteria: SearchCriteria,
    requesting_user_id: str,
    page: int = 1,
    limit: int = 10,
) -> Tuple[List[RideRequest], int]:
    """
    Find open requests matching the criteria.

    The requester's own requests and full requests are never returned, even
    when a full request is still nominally active. Each result carries the
    requester's vote on it (if any) as ``my_vote``.
    """
    query = db.query(RideRequest).filter(
        RideRequest.status == RequestStatus.ACTIVE,
        RideRequest.user_id != requesting_user_id,
        RideRequest.current_occupancy < RideRequest.max_persons,
    )

    if criteria.from_location:
        query = query.filter(
            _contains_ci(RideRequest.from_location, criteria.from_location)
        )
    if criteria.to_location:
        query = query.filter(
            _contains_ci(RideRequest.to_location, criteria.to_location)
        )
    if criteria.on_date:
        query = query.filter(RideRequest.date == criteria.on_date)
    car_type = parse_car_type(criteria.car_type)
    if car_type:
        query = query.filter(RideRequest.car_type == car_type)
    if criteria.min_persons:
        query = query.filter(RideRequest.max_persons >= criteria.min_persons)

    total = query.count()
    results = (
        _ordered(query.options(joinedload(RideRequest.user)))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    if results:
        my_votes = db.query(Vote).filter(
            Vote.user_id == requesting_user_id,
            Vote.request_id.in_([r.id for r in results]),
        ).all()
        votes_by_request = {v.request_id: v for v in my_votes}
        for request in results:
            request.my_vote = votes_by_request.get(request.id)

    return results, total


def list_all_requests(
    db: Session,
    status: RequestStatus = RequestStatus.ACTIVE,
    page: int = 1,
    limit: int = 20,
    today: Optional[date] = None,
) -> Tuple[List[RideRequest], int]:
    """Browse requests with the given status whose ride date is today or later."""
    today = today or local_today()
    query = db.query(RideRequest).filter(
        RideRequest.status == status,
        RideRequest.date >= today,
    )
    total = query.count()
    results = (
        _ordered(query.options(joinedload(RideRequest.user)))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return results, total


def list_user_requests(
    db: Session,
    user_id: str,
    status: Optional[RequestStatus] = None,
) -> List[RideRequest]:
    """A user's own requests, newest first, with votes and voter contacts."""
    query = (
        db.query(RideRequest)
        .options(selectinload(RideRequest.votes).joinedload(Vote.user))
        .filter(RideRequest.user_id == user_id)
    )
    if status:
        query = query.filter(RideRequest.status == status)
    return query.order_by(RideRequest.created_at.desc()).all()


def get_request(db: Session, request_id: str) -> RideRequest:
    """Single request with owner and votes."""
    request = (
        db.query(RideRequest)
        .options(
            joinedload(RideRequest.user),
            selectinload(RideRequest.votes).joinedload(Vote.user),
        )
        .filter(RideRequest.id == request_id)
        .first()
    )
    if not request:
        raise NotFound("Request not found")
    return request
