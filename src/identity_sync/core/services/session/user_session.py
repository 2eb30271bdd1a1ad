from loguru import logger

from identity_sync.core.models.session import CachedUserSession
from identity_sync.core.storage.session_storage import SessionStorage
from identity_sync.entities.core.user.entity import User


class UserSessionCache:
    """Session-id keyed cache of reconciled users.

    A session present here has already been matched to a stored user, so the
    reconciliation gate can skip the store for it.
    """

    def __init__(
        self, session_storage: SessionStorage, ttl_seconds: int, key_prefix: str = "user:"
    ) -> None:
        self._storage = session_storage
        self._ttl_seconds = ttl_seconds
        self._key_prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._key_prefix}{session_id}"

    async def _load(self, session_id: str) -> CachedUserSession | None:
        entry = await self._storage.get(self._key(session_id), CachedUserSession)
        if entry is None:
            return None
        if entry.is_expired():
            await self._storage.delete(self._key(session_id))
            return None
        return entry

    async def check_and_refreshed(self, session_id: str) -> bool:
        """Return True if the session is cached, extending its expiry when it is."""
        entry = await self._load(session_id)
        if entry is None:
            return False

        entry.refresh(self._ttl_seconds)
        await self._storage.set(self._key(session_id), entry, self._ttl_seconds)
        return True

    async def add_user(self, session_id: str, user: User) -> None:
        """Register the reconciled user for a session."""
        entry = CachedUserSession.create(session_id, user, self._ttl_seconds)
        await self._storage.set(self._key(session_id), entry, self._ttl_seconds)
        logger.debug("Cached user {} for session", user.id)

    async def get_user(self, session_id: str) -> User | None:
        entry = await self._load(session_id)
        return entry.user if entry else None

    async def is_logged(self, session_id: str) -> bool:
        """Check for a live entry without extending it."""
        return await self._load(session_id) is not None

    async def remove(self, session_id: str) -> None:
        await self._storage.delete(self._key(session_id))

    async def purge_expired(self) -> int:
        """Cleanup expired sessions from storage."""
        return await self._storage.cleanup_expired()

    async def clear(self) -> int:
        """Evict every cached session. Returns the number removed."""
        keys = await self._storage.list_keys(f"{self._key_prefix}*")
        for key in keys:
            await self._storage.delete(key)
        return len(keys)
