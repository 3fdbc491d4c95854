"""
Database session management.

StorageClient owns the engine, the session factory, the retry policy for
transient failures and the per-request critical sections that serialize
writers of a ride request's occupancy counter. HealthMonitor re-checks the
connection in the background and reconnects after an outage.
"""
import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from fastapi import Depends, Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session

from rideshare.core.config import Settings
from rideshare.core.errors import Conflict, StorageUnavailable
from rideshare.core.retry import RetryPolicy, TRANSIENT_ERRORS
from rideshare.db.base import Base

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageClient:
    """Transactional gateway to the Users / Requests / Votes store."""

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.database_url = database_url
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False, "timeout": 30},
            )
        else:
            self.engine = create_engine(
                database_url,
                echo=echo,
                pool_pre_ping=True,
                pool_recycle=3600,
            )
        self.SessionLocal = sessionmaker(autoflush=False, bind=self.engine)
        self.retry_policy = retry_policy or RetryPolicy()
        self.is_connected = False
        self._locks = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageClient":
        return cls(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            retry_policy=RetryPolicy(
                retries=settings.DB_CONNECT_RETRIES,
                base_delay=settings.DB_RETRY_BASE_DELAY,
            ),
        )

    # Lifecycle

    def _ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def connect(self) -> None:
        """Open a connection and verify it, retrying with backoff."""
        try:
            self.retry_policy.run(self._ping)
        except StorageUnavailable:
            self.is_connected = False
            logger.error("All database connection attempts failed")
            raise
        self.is_connected = True
        logger.info("Database connected successfully")

    def health_check(self) -> bool:
        """Run a trivial query; log transitions between healthy and unhealthy."""
        try:
            self._ping()
        except TRANSIENT_ERRORS as e:
            if self.is_connected:
                logger.error(f"Database connection lost: {e}")
            self.is_connected = False
            return False
        if not self.is_connected:
            logger.info("Database connection restored")
        self.is_connected = True
        return True

    def close(self) -> None:
        self.engine.dispose()
        self.is_connected = False
        logger.info("Database disconnected")

    def create_all(self) -> None:
        """Create the users, requests and votes tables."""
        import rideshare.models  # noqa: F401  (register models on Base.metadata)
        Base.metadata.create_all(bind=self.engine)

    # Sessions and transactions

    def session(self) -> Session:
        return self.SessionLocal()

    def run_transaction(self, db: Session, work: Callable[[Session], T]) -> T:
        """
        Run ``work(db)`` and commit, retrying transient failures.

        Each failed attempt is rolled back before the next one, so ``work``
        always starts from committed state. Domain errors roll back and
        propagate without a retry.
        """
        def attempt() -> T:
            try:
                result = work(db)
                db.commit()
                return result
            except IntegrityError as e:
                db.rollback()
                logger.debug(f"Integrity error: {e}")
                raise Conflict("Conflicting update, the record already exists") from e
            except Exception:
                db.rollback()
                raise

        return self.retry_policy.run(attempt)

    @contextmanager
    def request_lock(self, request_id: str) -> Iterator[None]:
        """Serialize occupancy writers for one ride request within this process."""
        with self._locks_guard:
            lock = self._locks.get(request_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[request_id] = lock
        with lock:
            yield


class HealthMonitor:
    """Pings the database every ``interval_seconds`` and reconnects after an outage."""

    def __init__(self, storage: StorageClient, interval_seconds: float = 30):
        self.storage = storage
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="db-health-monitor", daemon=True)
        self._thread.start()
        logger.info(f"Database health monitor started, checking every {self.interval_seconds:g}s")

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
        logger.info("Database health monitor stopped")

    def run_once(self) -> bool:
        """One check; an unhealthy store gets a full reconnect attempt."""
        if self.storage.health_check():
            return True
        try:
            self.storage.connect()
        except StorageUnavailable:
            logger.warning(f"Database still unreachable, next check in {self.interval_seconds:g}s")
            return False
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception as e:
                logger.error(f"Error during database health check: {e}", exc_info=True)


def get_storage(request: Request) -> StorageClient:
    """Dependency returning the app's storage client."""
    return request.app.state.storage


def get_db(storage: StorageClient = Depends(get_storage)) -> Session:
    """Dependency for getting database session."""
    db = storage.session()
    try:
        yield db
    finally:
        db.close()
