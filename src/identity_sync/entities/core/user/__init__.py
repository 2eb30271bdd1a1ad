"""User entity module.

This module contains all User-related classes organized by responsibility:
- User: Domain entity with subject bookkeeping
- UserTable: Database persistence model
- UserRepository: Data access layer
"""

from .entity import SUBJECT_DELIMITER, User
from .repository import UserRepository, UserStoreError
from .table import UserTable

__all__ = ["SUBJECT_DELIMITER", "User", "UserTable", "UserRepository", "UserStoreError"]
