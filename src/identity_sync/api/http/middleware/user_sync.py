"""Middleware that keeps the user store in step with authenticated identities."""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from loguru import logger

from identity_sync.core.models.identity import RequestIdentity
from identity_sync.core.services.session.user_session import UserSessionCache
from identity_sync.core.services.user.reconciliation import UserReconciliationService
from identity_sync.entities.core.user import User, UserRepository

CallNext = Callable[[Request], Awaitable[Response]]


def get_request_identity(request: Request) -> RequestIdentity | None:
    """Identity placed on the request by the identity provider integration."""
    return getattr(request.state, "identity", None)


class ReconciliationGate:
    """Reconcile the caller's identity once per session.

    Decision sequence, each step forwarding the request when it stops:
    unauthenticated, session already cached, no subject claim, otherwise
    reconcile and cache the user. Store failures propagate and the request
    is not forwarded.
    """

    def __init__(
        self,
        repository: UserRepository,
        session_cache: UserSessionCache,
        reconciliation: UserReconciliationService,
    ) -> None:
        self._repository = repository
        self._session_cache = session_cache
        self._reconciliation = reconciliation

    async def synchronize(self, identity: RequestIdentity | None) -> User | None:
        """Run the decision sequence for one identity.

        Returns:
            The reconciled user, or None when reconciliation was skipped
        """
        if identity is None or not identity.is_authenticated():
            return None

        claims = identity.user
        if claims is None:
            logger.warning("Authenticated request carries no identity claims")
            return None

        if await self._session_cache.check_and_refreshed(claims.sid):
            return None

        # Connect before the subject check, even though that branch never queries
        await self._repository.connect()

        if not claims.sub:
            logger.debug("Identity has no subject claim, skipping reconciliation")
            return None

        user = await self._reconciliation.reconcile(claims)
        await self._session_cache.add_user(claims.sid, user)
        return user

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        user = await self.synchronize(get_request_identity(request))
        if user is not None:
            request.state.user = user
        return await call_next(request)
