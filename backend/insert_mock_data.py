"""
Insert mock users, ride requests and votes for local development.

Votes are cast through the vote engine so occupancy counters stay consistent.
"""
import sys
import os
from datetime import date, time, timedelta

# Add the backend directory to Python path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from rideshare.core.config import settings
from rideshare.core.errors import RideshareError
from rideshare.db.init_db import init_db
from rideshare.db.session import StorageClient
from rideshare.models.request import CarType
from rideshare.models.user import User
from rideshare.models.vote import VoteStatus
from rideshare.schemas.request import RequestCreate
from rideshare.services.request_service import RequestService
from rideshare.services.vote_service import VoteService

MOCK_USERS = [
    ("b2345678-2345-2345-2345-234567890bcd", "Samaksh Gupta", "samaksh@example.com", "+91 9988776655"),
    ("c3456789-3456-3456-3456-3456789cdef0", "Rajesh Kumar", "rajesh@example.com", "+91 9123456789"),
    ("d4567890-4567-4567-4567-456789def012", "Priya Sharma", "priya@example.com", "+91 9876543211"),
    ("e5678901-5678-5678-5678-56789ef01234", "Amit Singh", "amit@example.com", "+91 9654321098"),
    ("f6789012-6789-6789-6789-6789f0123456", "Neha Agarwal", "neha@example.com", "+91 9321098765"),
]

# (owner index or None for the dev user, from, to, days ahead, time, car type, max persons, voters)
MOCK_REQUESTS = [
    (None, "MUJ Campus", "Delhi Airport", 0, time(9, 0), CarType.SUV, 6, [0]),
    (None, "MUJ Campus", "Railway Station", 2, time(14, 0), CarType.SEDAN, 4, []),
    (0, "Gurgaon Cyber City", "MUJ Campus", 1, time(18, 30), CarType.SEDAN, 4, []),
    (1, "Delhi Cantt", "MUJ Campus", 1, time(20, 15), CarType.AUTO, 3, []),
    (2, "MUJ Campus", "Jaipur", 3, time(8, 0), CarType.SUV, 7, [3]),
    (3, "Faridabad", "MUJ Campus", 2, time(16, 45), CarType.AUTO, 3, [4]),
    (4, "MUJ Campus", "Noida Sector 18", 4, time(11, 30), CarType.TRAVELLER, 10, [0, 1]),
]


def insert_mock_data():
    """Upsert mock users, then create requests and accept votes on them."""
    storage = StorageClient.from_settings(settings)
    init_db(storage, settings)
    requests = RequestService(storage)
    votes = VoteService(storage)

    db = storage.session()
    try:
        print("Creating mock users...")
        for user_id, name, email, phone in MOCK_USERS:
            user = db.query(User).filter(User.id == user_id).first()
            if user:
                user.name, user.email, user.phone = name, email, phone
            else:
                db.add(User(id=user_id, name=name, email=email, phone=phone))
            db.commit()
            print(f"User created/updated: {name}")

        print("Creating mock ride requests...")
        today = date.today()
        for owner, origin, destination, days, at, car_type, max_persons, voters in MOCK_REQUESTS:
            owner_id = settings.DEV_USER_ID if owner is None else MOCK_USERS[owner][0]
            request = requests.create_request(db, owner_id, RequestCreate(
                from_location=origin,
                to_location=destination,
                date=today + timedelta(days=days),
                time=at,
                car_type=car_type,
                max_persons=max_persons,
            ))
            print(f"Request created: {origin} -> {destination}")
            for voter in voters:
                try:
                    votes.cast_vote(db, request.id, MOCK_USERS[voter][0], VoteStatus.ACCEPTED)
                except RideshareError as e:
                    print(f"Skipped vote by {MOCK_USERS[voter][1]}: {e.message}")

        print("Mock data inserted successfully!")
    except Exception as e:
        db.rollback()
        print(f"Failed to insert mock data: {e}")
        raise
    finally:
        db.close()
        storage.close()


if __name__ == "__main__":
    insert_mock_data()
