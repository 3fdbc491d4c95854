"""
Admin routes: on-demand cleanup and statistics.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from rideshare.db.session import get_db
from rideshare.core.utils import format_response
from rideshare.models.user import User
from rideshare.schemas.common import Envelope
from rideshare.schemas.cleanup import SweepResult, CleanupStats, ReconcileResult
from rideshare.schemas.user import UserSummary, UserStatistics
from rideshare.services.cleanup_service import CleanupService
from rideshare.services.user_service import require_admin
from rideshare.api.dependencies import get_current_user, get_cleanup_service

router = APIRouter(prefix="/admin", tags=["admin"])


def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    require_admin(current_user, "run maintenance")
    return current_user


@router.post("/cleanup", response_model=Envelope[SweepResult])
def run_cleanup(
    admin: User = Depends(get_admin_user),
    service: CleanupService = Depends(get_cleanup_service),
    db: Session = Depends(get_db)
):
    """Expire stale requests and complete full ones now."""
    result = service.sweep(db)
    return format_response(result, "Cleanup completed")


@router.get("/cleanup/stats", response_model=Envelope[CleanupStats])
def cleanup_stats(
    admin: User = Depends(get_admin_user),
    service: CleanupService = Depends(get_cleanup_service),
    db: Session = Depends(get_db)
):
    """Request counts per status."""
    return format_response(service.get_cleanup_stats(db), "Request statistics")


@router.post("/reconcile", response_model=Envelope[ReconcileResult])
def reconcile(
    admin: User = Depends(get_admin_user),
    service: CleanupService = Depends(get_cleanup_service),
    db: Session = Depends(get_db)
):
    """Recompute occupancy counters from accepted votes."""
    repaired = service.reconcile_occupancy(db)
    return format_response({"repaired": repaired}, f"{len(repaired)} request(s) repaired")


@router.get("/users/incomplete", response_model=Envelope[List[UserSummary]])
def incomplete_profiles(
    admin: User = Depends(get_admin_user),
    service: CleanupService = Depends(get_cleanup_service),
    db: Session = Depends(get_db)
):
    """Users who have not finished their profile."""
    return format_response(service.find_incomplete_profiles(db), "Incomplete profiles")


@router.get("/users/statistics", response_model=Envelope[UserStatistics])
def user_statistics(
    admin: User = Depends(get_admin_user),
    service: CleanupService = Depends(get_cleanup_service),
    db: Session = Depends(get_db)
):
    """User counts by year, course and gender."""
    return format_response(service.get_user_statistics(db), "User statistics")
