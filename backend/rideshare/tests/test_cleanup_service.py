"""
Tests for the expiry sweep, occupancy reconciliation and admin statistics.
"""
from datetime import timedelta

import pytest
from sqlalchemy import update

from rideshare.db.base import local_today, utcnow
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.user import User
from rideshare.models.vote import VoteStatus
from rideshare.services import cleanup_service as cleanup_module, query_service
from rideshare.services.cleanup_service import CleanupService, SweepScheduler


@pytest.fixture
def cleanup_service(storage):
    return CleanupService(storage, expiry_hours=24, incomplete_profile_days=7)


def _force(db, request_id, **values):
    db.execute(update(RideRequest).where(RideRequest.id == request_id).values(**values))
    db.commit()


def test_sweep_expires_past_rides(db, cleanup_service, make_user, make_request):
    now = utcnow()
    request = make_request(make_user(), date=local_today() - timedelta(days=1))

    result = cleanup_service.sweep(db, now=now)

    assert result == {"expired": 1, "completed": 0}
    db.refresh(request)
    assert request.status == RequestStatus.EXPIRED


def test_sweep_expires_old_requests_for_today(db, cleanup_service, make_user, make_request):
    now = utcnow()
    request = make_request(make_user(), date=local_today())
    _force(db, request.id, created_at=now - timedelta(hours=30))

    result = cleanup_service.sweep(db, now=now)

    assert result["expired"] == 1
    db.refresh(request)
    assert request.status == RequestStatus.EXPIRED


def test_sweep_leaves_fresh_and_closed_requests(db, cleanup_service, request_service, make_user, make_request):
    now = utcnow()
    owner = make_user()
    fresh = make_request(owner, date=local_today() + timedelta(days=2))
    cancelled = make_request(owner, date=local_today() - timedelta(days=3))
    request_service.cancel_request(db, cancelled.id, owner.id)

    result = cleanup_service.sweep(db, now=now)

    assert result == {"expired": 0, "completed": 0}
    db.refresh(fresh)
    db.refresh(cancelled)
    assert fresh.status == RequestStatus.ACTIVE
    assert cancelled.status == RequestStatus.CANCELLED


def test_sweep_completes_full_active_requests(db, cleanup_service, make_user, make_request):
    now = utcnow()
    request = make_request(make_user(), max_persons=2, date=local_today() + timedelta(days=1))
    _force(db, request.id, current_occupancy=2)

    result = cleanup_service.sweep(db, now=now)

    assert result == {"expired": 0, "completed": 1}
    db.refresh(request)
    assert request.status == RequestStatus.COMPLETED


def test_cleanup_stats_are_zero_filled(db, cleanup_service, make_user, make_request):
    make_request(make_user())

    stats = cleanup_service.get_cleanup_stats(db)

    assert stats == {"active": 1, "completed": 0, "cancelled": 0, "expired": 0}


def test_reconcile_repairs_drifted_occupancy(db, cleanup_service, vote_service, make_user, make_request):
    healthy = make_request(make_user(), max_persons=4)
    drifted = make_request(make_user(), max_persons=4)
    vote_service.cast_vote(db, drifted.id, make_user().id, VoteStatus.ACCEPTED)
    _force(db, drifted.id, current_occupancy=3)

    repaired = cleanup_service.reconcile_occupancy(db)

    assert repaired == [drifted.id]
    db.refresh(drifted)
    db.refresh(healthy)
    assert drifted.current_occupancy == 2
    assert healthy.current_occupancy == 1


def test_incomplete_profiles_respect_grace_period(db, cleanup_service, make_user):
    now = utcnow()
    veteran = make_user("Veteran")
    newcomer = make_user("Newcomer")
    complete = make_user("Complete", year=2, course="CSE", gender="female")
    db.execute(
        update(User)
        .where(User.id.in_([veteran.id, complete.id]))
        .values(created_at=now - timedelta(days=10))
    )
    db.commit()

    users = cleanup_service.find_incomplete_profiles(db, now=now)

    assert [u.id for u in users] == [veteran.id]
    assert newcomer.id not in [u.id for u in users]


def test_user_statistics(db, cleanup_service, make_user):
    make_user(year=1, course="CSE", gender="male")
    make_user(year=1, course="ECE")
    make_user()

    stats = cleanup_service.get_user_statistics(db)

    assert stats["total_users"] == 3
    assert stats["incomplete_profiles"] == 2
    assert stats["by_year"] == {"1": 2}
    assert stats["by_course"] == {"CSE": 1, "ECE": 1}
    assert stats["by_gender"] == {"male": 1}


def test_scheduler_run_once_uses_its_own_session(db, cleanup_service, make_user, make_request):
    request = make_request(make_user(), date=local_today() - timedelta(days=1))
    scheduler = SweepScheduler(cleanup_service, interval_hours=1)

    result = scheduler.run_once()

    assert result["expired"] == 1
    db.refresh(request)
    assert request.status == RequestStatus.EXPIRED
    assert not scheduler.is_running


def test_scheduler_start_and_stop(cleanup_service):
    scheduler = SweepScheduler(cleanup_service, interval_hours=1)

    scheduler.start()
    assert scheduler.is_running

    scheduler.stop()
    assert not scheduler.is_running


def test_sweep_and_listing_share_the_calendar_day(db, monkeypatch, cleanup_service, make_user, make_request):
    day = local_today() + timedelta(days=5)
    monkeypatch.setattr(cleanup_module, "local_today", lambda: day)
    monkeypatch.setattr(query_service, "local_today", lambda: day)
    owner = make_user()
    past = make_request(owner, date=day - timedelta(days=1))
    current = make_request(owner, date=day)

    listed, _ = query_service.list_all_requests(db)
    assert [r.id for r in listed] == [current.id]

    assert cleanup_service.sweep(db)["expired"] == 1
    db.refresh(past)
    db.refresh(current)
    assert past.status == RequestStatus.EXPIRED
    assert current.status == RequestStatus.ACTIVE
