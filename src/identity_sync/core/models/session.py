"""Session cache models."""

import time

from pydantic import BaseModel, Field

from identity_sync.entities.core.user.entity import User


class CachedUserSession(BaseModel):
    """A session whose user has already been reconciled against the store."""

    id: str = Field(description="Identity provider session identifier")
    user: User = Field(description="Reconciled user record")
    created_at: int = Field(description="Creation timestamp")
    last_accessed_at: int = Field(description="Last access timestamp")
    expires_at: int = Field(description="Sliding expiration timestamp")

    @classmethod
    def create(cls, session_id: str, user: User, ttl_seconds: int) -> "CachedUserSession":
        """Create a new cache entry with timestamps."""
        now = int(time.time())
        return cls(
            id=session_id,
            user=user,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + ttl_seconds,
        )

    def is_expired(self) -> bool:
        return time.time() > self.expires_at

    def refresh(self, ttl_seconds: int) -> None:
        """Record an access and push the expiry forward."""
        now = int(time.time())
        self.last_accessed_at = now
        self.expires_at = now + ttl_seconds
