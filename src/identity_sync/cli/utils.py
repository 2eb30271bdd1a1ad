"""Shared utilities for CLI commands."""

from rich.console import Console

from identity_sync.core.services.database.db_session import DbSessionService
from identity_sync.entities.core.user import UserRepository

console = Console()


def get_database_service() -> DbSessionService:
    return DbSessionService()


def get_user_repository() -> UserRepository:
    return UserRepository(get_database_service())
