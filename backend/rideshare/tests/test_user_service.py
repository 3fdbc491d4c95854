"""
Tests for profile updates and the admin delete cascade.
"""
from contextlib import contextmanager

import pytest

from rideshare.core.errors import InvalidOperation, NotFound, ValidationFailed
from rideshare.models.request import RideRequest
from rideshare.models.user import User, UserRole
from rideshare.models.vote import Vote, VoteStatus
from rideshare.schemas.user import UserUpdate
from rideshare.services.user_service import UserService


@pytest.fixture
def user_service(storage):
    return UserService(storage)


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role=UserRole.ADMIN)


def test_update_profile_rejects_bad_year(db, user_service, make_user):
    user = make_user()

    with pytest.raises(ValidationFailed):
        user_service.update_profile(db, user.id, UserUpdate(year=11))

    updated = user_service.update_profile(db, user.id, UserUpdate(year=3, course="ECE"))
    assert (updated.year, updated.course) == (3, "ECE")


def test_delete_user_releases_seats_and_removes_rides(db, user_service, vote_service, admin, make_user, make_request):
    owner = make_user()
    target = make_user()
    ride = make_request(owner, max_persons=4)
    vote_service.cast_vote(db, ride.id, target.id, VoteStatus.ACCEPTED)
    own_ride = make_request(target)
    vote_service.cast_vote(db, own_ride.id, owner.id, VoteStatus.ACCEPTED)

    user_service.delete_user(db, admin, target.id)

    db.refresh(ride)
    assert ride.current_occupancy == 1
    assert db.query(RideRequest).filter(RideRequest.id == own_ride.id).count() == 0
    assert db.query(Vote).filter(Vote.request_id == own_ride.id).count() == 0
    assert db.query(User).filter(User.id == target.id).count() == 0


def test_delete_user_guards(db, user_service, admin, make_user):
    with pytest.raises(InvalidOperation):
        user_service.delete_user(db, admin, admin.id)
    with pytest.raises(NotFound):
        user_service.delete_user(db, admin, "no-such-user")


def test_vote_withdrawn_before_cascade_locks_keeps_other_seats(
    db, storage, monkeypatch, user_service, vote_service, admin, make_user, make_request
):
    owner = make_user()
    target = make_user()
    other = make_user()
    ride = make_request(owner, max_persons=4)
    vote_service.cast_vote(db, ride.id, target.id, VoteStatus.ACCEPTED)
    vote_service.cast_vote(db, ride.id, other.id, VoteStatus.ACCEPTED)

    plain_lock = storage.request_lock
    withdrawn = []

    @contextmanager
    def lock_after_withdrawal(request_id):
        # The target withdraws from another session just before the cascade takes its lock
        if not withdrawn:
            withdrawn.append(request_id)
            session = storage.session()
            try:
                vote_service.withdraw_vote(session, request_id, target.id)
            finally:
                session.close()
        with plain_lock(request_id):
            yield

    monkeypatch.setattr(storage, "request_lock", lock_after_withdrawal)

    user_service.delete_user(db, admin, target.id)

    assert withdrawn == [ride.id]
    db.refresh(ride)
    assert ride.current_occupancy == 2
    remaining = db.query(Vote).filter(Vote.request_id == ride.id).all()
    assert [v.user_id for v in remaining] == [other.id]
