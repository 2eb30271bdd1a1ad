"""Engine and session handling for the user store."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from identity_sync.runtime.config.config_data import DatabaseConfig
from identity_sync.runtime.context import get_config


def engine_options(db_config: DatabaseConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_engine`` suited to the configured backend."""
    if not db_config.is_sqlite:
        return {
            "echo": db_config.echo,
            "pool_size": db_config.pool_size,
            "max_overflow": db_config.max_overflow,
            "pool_timeout": db_config.pool_timeout,
            "pool_recycle": db_config.pool_recycle,
            "pool_pre_ping": True,
        }

    if get_config().app.environment == "production":
        logger.warning("Running the user store on SQLite in production")

    options: dict[str, Any] = {
        "echo": db_config.echo,
        # Repository calls run on threadpool workers
        "connect_args": {"check_same_thread": False, "timeout": 20},
    }
    if ":memory:" in db_config.url:
        # A private in-memory database exists per connection, so share one
        options["poolclass"] = StaticPool
    return options


class DbSessionService:
    """Owns the engine; hands out sessions and transactional scopes."""

    def __init__(
        self, db_config: DatabaseConfig | None = None, engine: Engine | None = None
    ):
        config = db_config or get_config().database
        self._engine = engine or create_engine(config.url, **engine_options(config))
        self._connected = False

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def connected(self) -> bool:
        return self._connected

    def _ping(self) -> None:
        with self._engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def connect(self) -> None:
        """Verify the store answers. A no-op after the first success."""
        if self._connected:
            return
        self._ping()
        self._connected = True
        logger.info("Database connection established")

    def get_session(self) -> Session:
        return Session(self._engine, expire_on_commit=False, autoflush=True)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One transaction: committed on success, rolled back on any error."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                "User store transaction rolled back",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        try:
            self._ping()
        except Exception as e:
            logger.error(
                "User store health check failed",
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return False
        return True

    def dispose(self) -> None:
        self._engine.dispose()
        self._connected = False
