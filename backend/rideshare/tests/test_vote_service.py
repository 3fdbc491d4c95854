"""
Tests for the vote engine.
"""
from datetime import timedelta

import pytest
from sqlalchemy import update

from rideshare.core.errors import Conflict, InvalidOperation, InvalidState, NotFound
from rideshare.db.base import local_today
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.vote import Vote, VoteStatus
from rideshare.services import vote_service as vote_service_module
from rideshare.services.cleanup_service import CleanupService
from rideshare.services.vote_service import occupancy_delta

ACCEPTED = VoteStatus.ACCEPTED
REJECTED = VoteStatus.REJECTED


@pytest.mark.parametrize("existing, desired, delta", [
    (None, ACCEPTED, 1),
    (None, REJECTED, 0),
    (ACCEPTED, REJECTED, -1),
    (REJECTED, ACCEPTED, 1),
    (ACCEPTED, ACCEPTED, 0),
    (REJECTED, REJECTED, 0),
])
def test_occupancy_delta(existing, desired, delta):
    assert occupancy_delta(existing, desired) == delta


def test_accept_takes_a_seat_and_reveals_contacts(db, vote_service, make_user, make_request):
    owner = make_user("Owner")
    rider = make_user("Rider", phone="+91 9000000000")
    request = make_request(owner, max_persons=3)

    outcome = vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)

    assert outcome.accepted
    assert outcome.request.current_occupancy == 2
    assert outcome.request.status == RequestStatus.ACTIVE
    assert outcome.request_owner_contact.id == owner.id
    assert outcome.voter_contact.phone == "+91 9000000000"


def test_reject_keeps_occupancy_and_hides_contacts(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner, max_persons=3)

    outcome = vote_service.cast_vote(db, request.id, rider.id, REJECTED, note="Too early for me")

    assert outcome.request.current_occupancy == 1
    assert outcome.vote.note == "Too early for me"
    assert outcome.request_owner_contact is None
    assert outcome.voter_contact is None


def test_repeated_accept_is_idempotent(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner, max_persons=4)

    vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)
    outcome = vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)

    assert outcome.request.current_occupancy == 2
    assert db.query(Vote).filter(Vote.request_id == request.id).count() == 1


def test_changing_vote_moves_the_seat(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner, max_persons=4)

    outcome = vote_service.cast_vote(db, request.id, rider.id, REJECTED)
    assert outcome.request.current_occupancy == 1

    outcome = vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)
    assert outcome.request.current_occupancy == 2

    outcome = vote_service.cast_vote(db, request.id, rider.id, REJECTED)
    assert outcome.request.current_occupancy == 1
    assert outcome.vote.status == REJECTED


def test_last_seat_completes_request_and_blocks_others(db, vote_service, make_user, make_request):
    owner = make_user()
    first = make_user()
    second = make_user()
    request = make_request(owner, max_persons=2)

    outcome = vote_service.cast_vote(db, request.id, first.id, ACCEPTED)
    assert outcome.request.current_occupancy == 2
    assert outcome.request.status == RequestStatus.COMPLETED

    with pytest.raises(Conflict):
        vote_service.cast_vote(db, request.id, second.id, ACCEPTED)

    db.refresh(request)
    assert request.current_occupancy == 2
    assert db.query(Vote).filter(Vote.user_id == second.id).count() == 0


def test_withdraw_releases_seat_but_completion_sticks(db, vote_service, make_user, make_request):
    owner = make_user()
    first = make_user()
    second = make_user()
    request = make_request(owner, max_persons=3)

    vote_service.cast_vote(db, request.id, first.id, ACCEPTED)
    outcome = vote_service.cast_vote(db, request.id, second.id, ACCEPTED)
    assert outcome.request.status == RequestStatus.COMPLETED

    vote_service.withdraw_vote(db, request.id, first.id)

    db.refresh(request)
    assert request.current_occupancy == 2
    assert request.status == RequestStatus.COMPLETED


def test_withdraw_before_full_reopens_seat(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner, max_persons=3)
    vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)

    vote_service.withdraw_vote(db, request.id, rider.id)

    db.refresh(request)
    assert request.current_occupancy == 1
    assert request.status == RequestStatus.ACTIVE


def test_withdraw_rejected_vote_keeps_occupancy(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner, max_persons=3)
    vote_service.cast_vote(db, request.id, rider.id, REJECTED)

    vote_service.withdraw_vote(db, request.id, rider.id)

    db.refresh(request)
    assert request.current_occupancy == 1
    assert db.query(Vote).filter(Vote.request_id == request.id).count() == 0


def test_withdraw_without_vote(db, vote_service, make_user, make_request):
    owner = make_user()
    request = make_request(owner)

    with pytest.raises(NotFound):
        vote_service.withdraw_vote(db, request.id, make_user().id)


def test_cannot_vote_on_own_request(db, vote_service, make_user, make_request):
    owner = make_user()
    request = make_request(owner)

    with pytest.raises(InvalidOperation):
        vote_service.cast_vote(db, request.id, owner.id, ACCEPTED)


def test_cannot_vote_on_cancelled_request(db, vote_service, request_service, make_user, make_request):
    owner = make_user()
    request = make_request(owner)
    request_service.cancel_request(db, request.id, owner.id)

    with pytest.raises(InvalidState):
        vote_service.cast_vote(db, request.id, make_user().id, ACCEPTED)


def test_vote_on_missing_request(db, vote_service, make_user):
    with pytest.raises(NotFound):
        vote_service.cast_vote(db, "no-such-request", make_user().id, ACCEPTED)


def test_vote_by_unknown_user(db, vote_service, make_user, make_request):
    request = make_request(make_user())

    with pytest.raises(NotFound):
        vote_service.cast_vote(db, request.id, "no-such-user", ACCEPTED)


def test_request_votes_visible_to_owner_only(db, vote_service, make_user, make_request):
    owner = make_user()
    rider = make_user()
    request = make_request(owner)
    vote_service.cast_vote(db, request.id, rider.id, ACCEPTED)

    votes = vote_service.list_request_votes(db, request.id, owner.id)
    assert [v.user_id for v in votes] == [rider.id]

    with pytest.raises(NotFound):
        vote_service.list_request_votes(db, request.id, rider.id)


def test_list_user_votes_filters_by_status(db, vote_service, make_user, make_request):
    rider = make_user()
    first = make_request(make_user())
    second = make_request(make_user())
    vote_service.cast_vote(db, first.id, rider.id, ACCEPTED)
    vote_service.cast_vote(db, second.id, rider.id, REJECTED)

    assert len(vote_service.list_user_votes(db, rider.id)) == 2
    accepted = vote_service.list_user_votes(db, rider.id, ACCEPTED)
    assert [v.request_id for v in accepted] == [first.id]


def test_full_active_request_still_takes_rejections(db, vote_service, make_user, make_request):
    owner = make_user()
    request = make_request(owner, max_persons=2)
    # Full but not yet completed, as left behind by a missed completion
    db.execute(
        update(RideRequest).where(RideRequest.id == request.id).values(current_occupancy=2)
    )
    db.commit()

    with pytest.raises(Conflict):
        vote_service.cast_vote(db, request.id, make_user().id, ACCEPTED)
    outcome = vote_service.cast_vote(db, request.id, make_user().id, REJECTED)

    assert outcome.vote.status == REJECTED
    assert outcome.request.current_occupancy == 2


def test_cannot_vote_on_expired_request(db, storage, vote_service, make_user, make_request):
    request = make_request(make_user(), date=local_today() - timedelta(days=1))
    CleanupService(storage).sweep(db)

    with pytest.raises(InvalidState):
        vote_service.cast_vote(db, request.id, make_user().id, ACCEPTED)
    with pytest.raises(InvalidState):
        vote_service.cast_vote(db, request.id, make_user().id, REJECTED)
    assert db.query(Vote).filter(Vote.request_id == request.id).count() == 0


@pytest.fixture
def sweep_after_read(storage, monkeypatch):
    """Expire stale requests from another session right after the vote engine reads the request."""
    plain_read = vote_service_module.lock_request_row
    swept = []

    def read_then_sweep(db, request_id):
        request = plain_read(db, request_id)
        if not swept:
            session = storage.session()
            try:
                swept.append(CleanupService(storage).sweep(session))
            finally:
                session.close()
        return request

    monkeypatch.setattr(vote_service_module, "lock_request_row", read_then_sweep)
    return swept


@pytest.mark.parametrize("desired", [ACCEPTED, REJECTED])
def test_vote_racing_the_sweeper_is_refused(db, vote_service, sweep_after_read, make_user, make_request, desired):
    request = make_request(make_user(), date=local_today() - timedelta(days=1))

    with pytest.raises(InvalidState):
        vote_service.cast_vote(db, request.id, make_user().id, desired)

    assert sweep_after_read == [{"expired": 1, "completed": 0}]
    db.refresh(request)
    assert request.status == RequestStatus.EXPIRED
    assert request.current_occupancy == 1
    assert db.query(Vote).filter(Vote.request_id == request.id).count() == 0
