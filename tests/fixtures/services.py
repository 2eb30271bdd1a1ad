"""Service fixtures for testing."""

from unittest.mock import create_autospec

import pytest

from identity_sync.api.http.middleware.user_sync import ReconciliationGate
from identity_sync.core.services.session.user_session import UserSessionCache
from identity_sync.core.services.user.reconciliation import UserReconciliationService
from identity_sync.core.storage.session_storage import InMemorySessionStorage
from identity_sync.entities.core.user import UserRepository

__all__ = [
    "session_storage",
    "session_cache",
    "mock_repository",
    "mock_session_cache",
    "gate",
]


@pytest.fixture
def session_storage() -> InMemorySessionStorage:
    return InMemorySessionStorage()


@pytest.fixture
def session_cache(session_storage: InMemorySessionStorage) -> UserSessionCache:
    return UserSessionCache(session_storage, ttl_seconds=3600)


@pytest.fixture
def mock_repository():
    """Repository double; every store call is an AsyncMock."""
    repository = create_autospec(UserRepository, instance=True)
    repository.find_first.return_value = None
    return repository


@pytest.fixture
def mock_session_cache():
    cache = create_autospec(UserSessionCache, instance=True)
    cache.check_and_refreshed.return_value = False
    return cache


@pytest.fixture
def gate(mock_repository, mock_session_cache) -> ReconciliationGate:
    """Gate wired to doubles, with the real reconciliation policy in between."""
    reconciliation = UserReconciliationService(mock_repository, max_append_attempts=3)
    return ReconciliationGate(mock_repository, mock_session_cache, reconciliation)
