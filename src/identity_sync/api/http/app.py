"""Application factory: wires the user store, session cache and reconciliation gate."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from loguru import logger
from starlette.responses import JSONResponse

from identity_sync.api.http.app_data import ApplicationDependencies
from identity_sync.api.http.middleware.request_logging import log_requests
from identity_sync.api.http.middleware.user_sync import ReconciliationGate
from identity_sync.api.http.routers.users import router as users_router
from identity_sync.api.utils.app_startup import configure_logging
from identity_sync.core.services.database.db_manage import DbManageService
from identity_sync.core.services.database.db_session import DbSessionService
from identity_sync.core.services.session.user_session import UserSessionCache
from identity_sync.core.services.user.reconciliation import UserReconciliationService
from identity_sync.core.storage.session_storage import create_session_storage
from identity_sync.entities.core.user import UserRepository
from identity_sync.runtime.context import get_config


async def build_dependencies() -> ApplicationDependencies:
    """Construct every long-lived service from the active configuration."""
    config = get_config()

    database_service = DbSessionService(config.database)
    if config.app.environment != "production":
        DbManageService(database_service).create_all()

    session_storage = await create_session_storage(config.redis)
    session_cache = UserSessionCache(session_storage, config.app.session_max_age)
    user_repository = UserRepository(database_service)
    reconciliation_service = UserReconciliationService(
        user_repository, config.reconciliation.max_append_attempts
    )
    return ApplicationDependencies(
        database_service=database_service,
        session_storage=session_storage,
        session_cache=session_cache,
        user_repository=user_repository,
        reconciliation_service=reconciliation_service,
        reconciliation_gate=ReconciliationGate(
            user_repository, session_cache, reconciliation_service
        ),
    )


async def shutdown(app_dependencies: ApplicationDependencies) -> None:
    logger.info("Shutting down application")
    purged = await app_dependencies.session_cache.purge_expired()
    logger.info("Purged {} expired cached sessions", purged)
    await app_dependencies.session_storage.close()
    app_dependencies.database_service.dispose()


def create_app(dependencies: ApplicationDependencies | None = None) -> FastAPI:
    """Build the application.

    Args:
        dependencies: Pre-wired services; built from configuration at startup when omitted

    The identity provider integration is expected to be added as an outer
    middleware that sets ``request.state.identity``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if dependencies is None:
            configure_logging()
            app.state.app_dependencies = await build_dependencies()
        else:
            app.state.app_dependencies = dependencies
        logger.info("Starting up application in {} environment", get_config().app.environment)
        try:
            yield
        finally:
            await shutdown(app.state.app_dependencies)

    interactive_docs = get_config().app.environment != "production"
    app = FastAPI(
        title="identity-sync",
        lifespan=lifespan,
        docs_url="/docs" if interactive_docs else None,
        redoc_url="/redoc" if interactive_docs else None,
    )

    # Middleware registered later wraps earlier ones, so request logging
    # sees failures raised by the gate
    @app.middleware("http")
    async def synchronize_user(request: Request, call_next):
        app_dependencies: ApplicationDependencies = request.app.state.app_dependencies
        return await app_dependencies.reconciliation_gate(request, call_next)

    app.middleware("http")(log_requests)

    app.include_router(users_router, prefix="/users")

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Liveness check."""
        return {"status": "healthy"}

    @app.get("/ready")
    async def readiness(request: Request) -> JSONResponse:
        """Readiness: 503 while the user store or the session storage is unreachable.

        ``user_store_connected`` reports whether the reconciliation gate has
        opened the store yet; it does not affect readiness.
        """
        app_dependencies: ApplicationDependencies = request.app.state.app_dependencies
        database_service = app_dependencies.database_service
        checks = {
            "user_store": database_service.health_check(),
            "session_storage": app_dependencies.session_storage.is_available(),
        }
        ready = all(checks.values())
        return JSONResponse(
            status_code=200 if ready else 503,
            content={
                "status": "ready" if ready else "unavailable",
                "checks": checks,
                "user_store_connected": database_service.connected,
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_config()
    uvicorn.run(app, host=settings.app.host, port=settings.app.port, access_log=False)
