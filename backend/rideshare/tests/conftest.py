"""
Shared fixtures: a throwaway SQLite store, user/request factories and an
API client acting as a chosen user.
"""
from datetime import date, time, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient

from rideshare.api.dependencies import get_current_user_id
from rideshare.core.config import Settings
from rideshare.core.retry import RetryPolicy
from rideshare.db.session import StorageClient
from rideshare.main import create_app
from rideshare.models.request import CarType
from rideshare.models.user import User, UserRole
from rideshare.schemas.request import RequestCreate
from rideshare.services.request_service import RequestService
from rideshare.services.vote_service import VoteService

DEV_USER_ID = "a1234567-1234-1234-1234-123456789abc"

_sequence = count(1)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'rideshare_test.db'}"


@pytest.fixture
def storage(database_url):
    """Storage client on a fresh SQLite file; retries do not sleep."""
    client = StorageClient(database_url, retry_policy=RetryPolicy(retries=3, base_delay=0))
    client.create_all()
    yield client
    client.close()


@pytest.fixture
def db(storage):
    session = storage.session()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    """Factory creating a committed user."""
    def _make_user(name=None, user_id=None, role=UserRole.STUDENT, **fields):
        n = next(_sequence)
        user = User(
            name=name or f"Student {n}",
            email=f"student{n}@campus.edu",
            role=role,
            **fields,
        )
        if user_id:
            user.id = user_id
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def request_service(storage):
    return RequestService(storage)


@pytest.fixture
def vote_service(storage):
    return VoteService(storage)


@pytest.fixture
def make_request(db, request_service):
    """Factory creating a ride request through the request service."""
    def _make_request(owner, max_persons=4, **overrides):
        data = {
            "from_location": "MUJ Campus",
            "to_location": "Jaipur Airport",
            "date": date.today() + timedelta(days=1),
            "time": time(9, 0),
            "car_type": CarType.SEDAN,
            "max_persons": max_persons,
        }
        data.update(overrides)
        return request_service.create_request(db, owner.id, RequestCreate(**data))
    return _make_request


@pytest.fixture
def app_settings(database_url):
    return Settings(
        DATABASE_URL=database_url,
        DEV_USER_ID=DEV_USER_ID,
        ENABLE_SWEEPER=False,
        DB_HEALTH_CHECK_INTERVAL=0,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def dev_user(make_user):
    return make_user("Tanmay", user_id=DEV_USER_ID)


@pytest.fixture
def app(app_settings, storage, dev_user):
    return create_app(app_settings, storage)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def act_as(app):
    """Switch the identity the API acts as."""
    def _act_as(user):
        user_id = user.id
        app.dependency_overrides[get_current_user_id] = lambda: user_id
    yield _act_as
    app.dependency_overrides.clear()
