"""Entities module, one package per business concept.

Each entity package holds its domain model (entity.py), persistence model
(table.py) and data access layer (repository.py).
"""

from .core.user import User, UserRepository, UserTable

__all__ = ["User", "UserTable", "UserRepository"]
