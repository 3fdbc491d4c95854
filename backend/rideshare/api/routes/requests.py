"""
Ride request routes.
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date
from rideshare.db.session import get_db
from rideshare.core.utils import format_response, paginate
from rideshare.models.request import RequestStatus
from rideshare.schemas.common import Envelope
from rideshare.schemas.request import (
    RequestCreate, RequestUpdate, RequestResponse,
    RequestDetailResponse, RequestPage, MyRequests
)
from rideshare.services import query_service
from rideshare.services.request_service import RequestService
from rideshare.api.dependencies import get_current_user_id, get_request_service

router = APIRouter(prefix="/requests", tags=["requests"])


@router.post("", response_model=Envelope[RequestResponse], status_code=status.HTTP_201_CREATED)
def create_request(
    request_data: RequestCreate,
    current_user_id: str = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    db: Session = Depends(get_db)
):
    """Create a new ride request; the creator takes the first seat."""
    new_request = service.create_request(db, current_user_id, request_data)
    return format_response(
        new_request,
        "Your ride request has been created! Others can now find and join it."
    )


@router.get("/search", response_model=Envelope[RequestPage])
def search_requests(
    from_location: Optional[str] = Query(None, alias="from"),
    to_location: Optional[str] = Query(None, alias="to"),
    on_date: Optional[date] = Query(None, alias="date"),
    car_type: Optional[str] = None,
    max_persons: Optional[int] = Query(None, ge=1),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Find rides with free seats, excluding your own."""
    criteria = query_service.SearchCriteria(
        from_location=from_location,
        to_location=to_location,
        on_date=on_date,
        car_type=car_type,
        min_persons=max_persons,
    )
    results, total = query_service.search_requests(db, criteria, current_user_id, page, limit)
    message = (
        f"Found {len(results)} matching rides!" if results
        else "No matching rides found. Try adjusting your search criteria."
    )
    return format_response(
        {"requests": results, "pagination": paginate(page, limit, total)},
        message
    )


@router.get("/all", response_model=Envelope[RequestPage])
def get_all_requests(
    request_status: RequestStatus = Query(RequestStatus.ACTIVE, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Browse upcoming rides."""
    results, total = query_service.list_all_requests(db, request_status, page, limit)
    message = (
        "Here are all the available rides" if results
        else "No rides available right now. Be the first to create one!"
    )
    return format_response(
        {"requests": results, "pagination": paginate(page, limit, total)},
        message
    )


@router.get("/my-requests", response_model=Envelope[MyRequests])
def get_my_requests(
    request_status: Optional[RequestStatus] = Query(None, alias="status"),
    current_user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """List your own requests with the votes they received."""
    requests = query_service.list_user_requests(db, current_user_id, request_status)
    return format_response({"requests": requests}, "Your ride requests")


@router.get("/{request_id}", response_model=Envelope[RequestDetailResponse])
def get_request(
    request_id: str,
    db: Session = Depends(get_db)
):
    """Get request details."""
    return format_response(query_service.get_request(db, request_id), "Request details")


@router.put("/{request_id}", response_model=Envelope[RequestResponse])
def update_request(
    request_id: str,
    changes: RequestUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    db: Session = Depends(get_db)
):
    """Update your request."""
    updated = service.update_request(db, request_id, current_user_id, changes)
    return format_response(updated, "Request updated successfully")


@router.delete("/{request_id}", response_model=Envelope[RequestResponse])
def cancel_request(
    request_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: RequestService = Depends(get_request_service),
    db: Session = Depends(get_db)
):
    """Cancel your request."""
    cancelled = service.cancel_request(db, request_id, current_user_id)
    return format_response(cancelled, "Request cancelled successfully")
