"""
Cleanup service: expires stale ride requests and completes full ones.

The sweep uses bulk conditional updates guarded by ``status = 'active'``, so
a request that a concurrent vote or cancellation already moved out of
``active`` is left alone.
"""
import logging
import threading
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from rideshare.core.config import Settings
from rideshare.db.base import local_today, utcnow
from rideshare.db.session import StorageClient
from rideshare.models.request import RideRequest, RequestStatus
from rideshare.models.user import User
from rideshare.models.vote import Vote, VoteStatus
from rideshare.services.vote_service import lock_request_row

logger = logging.getLogger(__name__)


class CleanupService:
    """Expiry sweep plus the admin statistics that go with it."""

    def __init__(
        self,
        storage: StorageClient,
        expiry_hours: int = 24,
        incomplete_profile_days: int = 7,
    ):
        self.storage = storage
        self.expiry_hours = expiry_hours
        self.incomplete_profile_days = incomplete_profile_days

    @classmethod
    def from_settings(cls, storage: StorageClient, settings: Settings) -> "CleanupService":
        return cls(
            storage,
            expiry_hours=settings.REQUEST_EXPIRY_HOURS,
            incomplete_profile_days=settings.INCOMPLETE_PROFILE_DAYS,
        )

    def sweep(
        self,
        db: Session,
        now: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> Dict[str, int]:
        """
        Transition stale active requests.

        A request expires when its ride date is before ``today`` (the same
        calendar day the request listings use) or it was created more than
        ``expiry_hours`` before ``now``. Remaining active requests that are at
        capacity are completed.

        Returns:
            {"expired": n, "completed": m}
        """
        now = now or utcnow()
        start_of_day = today or local_today()
        cutoff = now - timedelta(hours=self.expiry_hours)

        def work(session: Session) -> Dict[str, int]:
            expired = session.execute(
                update(RideRequest)
                .where(
                    RideRequest.status == RequestStatus.ACTIVE,
                    or_(RideRequest.date < start_of_day, RideRequest.created_at < cutoff),
                )
                .values(status=RequestStatus.EXPIRED)
                .execution_options(synchronize_session=False)
            ).rowcount
            completed = session.execute(
                update(RideRequest)
                .where(
                    RideRequest.status == RequestStatus.ACTIVE,
                    RideRequest.current_occupancy >= RideRequest.max_persons,
                )
                .values(status=RequestStatus.COMPLETED)
                .execution_options(synchronize_session=False)
            ).rowcount
            return {"expired": expired, "completed": completed}

        result = self.storage.run_transaction(db, work)
        logger.info(f"Cleanup completed: {result['expired']} expired, {result['completed']} completed")
        return result

    def get_cleanup_stats(self, db: Session) -> Dict[str, int]:
        """Number of requests per status, zero-filled."""
        stats = {status.value: 0 for status in RequestStatus}
        rows = (
            db.query(RideRequest.status, func.count(RideRequest.id))
            .group_by(RideRequest.status)
            .all()
        )
        for status, count in rows:
            stats[status.value] = count
        return stats

    def reconcile_occupancy(self, db: Session) -> List[str]:
        """
        Repair active requests whose cached occupancy no longer equals
        1 + accepted votes. Each repair runs in its own transaction under the
        request's lock; a failed repair is logged and the pass continues.

        Returns:
            Ids of the repaired requests
        """
        accepted = dict(
            db.query(Vote.request_id, func.count(Vote.id))
            .filter(Vote.status == VoteStatus.ACCEPTED)
            .group_by(Vote.request_id)
            .all()
        )
        candidates = [
            (request_id, occupancy, max_persons)
            for request_id, occupancy, max_persons in db.query(
                RideRequest.id, RideRequest.current_occupancy, RideRequest.max_persons
            ).filter(RideRequest.status == RequestStatus.ACTIVE)
        ]

        repaired = []
        for request_id, occupancy, max_persons in candidates:
            expected = min(1 + accepted.get(request_id, 0), max_persons)
            if occupancy == expected:
                continue

            def work(session: Session, request_id=request_id, expected=expected) -> None:
                request = lock_request_row(session, request_id)
                if request and request.status == RequestStatus.ACTIVE:
                    request.current_occupancy = expected

            try:
                with self.storage.request_lock(request_id):
                    self.storage.run_transaction(db, work)
            except Exception as e:
                logger.error(f"Failed to reconcile request {request_id}: {e}", exc_info=True)
                continue
            logger.warning(f"Request {request_id} occupancy repaired: {occupancy} -> {expected}")
            repaired.append(request_id)
        return repaired

    def find_incomplete_profiles(self, db: Session, now: Optional[datetime] = None) -> List[User]:
        """Users missing year, course or gender, registered before the grace period."""
        now = now or utcnow()
        cutoff = now - timedelta(days=self.incomplete_profile_days)
        users = (
            db.query(User)
            .filter(
                or_(User.year.is_(None), User.course.is_(None), User.gender.is_(None)),
                User.created_at < cutoff,
            )
            .order_by(User.created_at.asc())
            .all()
        )
        logger.info(f"Found {len(users)} incomplete user profiles")
        return users

    def get_user_statistics(self, db: Session) -> Dict:
        """Totals and breakdowns by year, course and gender."""
        def breakdown(column) -> Dict[str, int]:
            rows = (
                db.query(column, func.count(User.id))
                .filter(column.isnot(None))
                .group_by(column)
                .all()
            )
            return {str(value): count for value, count in rows}

        return {
            "total_users": db.query(func.count(User.id)).scalar(),
            "incomplete_profiles": db.query(func.count(User.id)).filter(
                or_(User.year.is_(None), User.course.is_(None), User.gender.is_(None))
            ).scalar(),
            "by_year": breakdown(User.year),
            "by_course": breakdown(User.course),
            "by_gender": breakdown(User.gender),
        }


class SweepScheduler:
    """Runs the sweep on a background thread every ``interval_hours``."""

    def __init__(self, service: CleanupService, interval_hours: float = 1):
        self.service = service
        self.interval_seconds = interval_hours * 3600
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.info("Cleanup scheduler is already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="request-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Cleanup scheduler started, running every {self.interval_seconds / 3600:g} hour(s)")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Cleanup scheduler stopped")

    def run_once(self) -> Dict[str, int]:
        db = self.service.storage.session()
        try:
            return self.service.sweep(db)
        finally:
            db.close()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception as e:
                # The next tick tries again
                logger.error(f"Error during scheduled cleanup: {e}", exc_info=True)
