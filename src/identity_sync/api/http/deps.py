"""FastAPI dependency implementations."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from identity_sync.api.http.app_data import ApplicationDependencies
from identity_sync.api.http.middleware.user_sync import get_request_identity
from identity_sync.core.services.session.user_session import UserSessionCache
from identity_sync.entities.core.user import User


def _app_dependencies(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_session_cache(request: Request) -> UserSessionCache:
    """Get the user session cache instance."""
    return _app_dependencies(request).session_cache


async def get_current_user(
    request: Request,
    session_cache: UserSessionCache = Depends(get_session_cache),
) -> User:
    """Return the reconciled user for the caller's session."""
    identity = get_request_identity(request)
    if identity is None or not identity.is_authenticated() or identity.user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    # Set by the reconciliation gate when this request did the reconciling
    user: User | None = getattr(request.state, "user", None)
    if user is None:
        user = await session_cache.get_user(identity.user.sid)
    if user is None:
        raise HTTPException(status_code=401, detail="No user linked to this session")
    return user
