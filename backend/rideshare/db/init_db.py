"""
Database initialization script.

    python -m rideshare.db.init_db
"""
import logging
from typing import Optional

from rideshare.core.config import Settings, settings
from rideshare.core.logging_config import configure_logging
from rideshare.db.session import StorageClient
from rideshare.models.user import User

logger = logging.getLogger(__name__)


def ensure_dev_user(storage: StorageClient, app_settings: Settings) -> User:
    """Create the development user that every API call acts as, if missing."""
    def work(session) -> User:
        user = session.query(User).filter(User.id == app_settings.DEV_USER_ID).first()
        if user is None:
            user = User(
                id=app_settings.DEV_USER_ID,
                name=app_settings.DEV_USER_NAME,
                email=app_settings.DEV_USER_EMAIL,
            )
            session.add(user)
            logger.info(f"Created development user {app_settings.DEV_USER_NAME}")
        return user

    db = storage.session()
    try:
        user = storage.run_transaction(db, work)
        db.refresh(user)
        return user
    finally:
        db.close()


def init_db(storage: Optional[StorageClient] = None, app_settings: Optional[Settings] = None) -> None:
    """Create tables and the development user."""
    app_settings = app_settings or settings
    storage = storage or StorageClient.from_settings(app_settings)
    storage.connect()
    storage.create_all()
    ensure_dev_user(storage, app_settings)


if __name__ == "__main__":
    configure_logging(source="init_db")
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized successfully!")
