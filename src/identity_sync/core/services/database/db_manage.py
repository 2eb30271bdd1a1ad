"""Schema management for the user store."""

from loguru import logger
from sqlmodel import SQLModel

from identity_sync.core.services.database.db_session import DbSessionService


class DbManageService:
    def __init__(self, db_service: DbSessionService):
        self._db_service = db_service

    def create_all(self) -> None:
        """Create all database tables."""
        from identity_sync.entities.core.user import UserTable  # noqa: F401

        SQLModel.metadata.create_all(self._db_service.engine)
        logger.info("Database initialized with tables.")
