"""Typed settings parsed from the ``config`` section of config.yaml."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field


class RedisConfig(BaseModel):
    """Optional Redis backend for the session cache."""

    enabled: bool = Field(
        default=False, description="Keep cached sessions in Redis instead of process memory"
    )
    url: str = Field(default="", description="redis:// URL of the session cache server")
    password: str | None = Field(default=None, description="Password injected into the URL")
    decode_responses: bool = Field(
        default=True, description="Have the client return str instead of bytes"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """``url`` with ``password`` spliced in, unless it already carries credentials."""
        scheme, separator, location = self.url.partition("://")
        if not self.password or not separator or "@" in location:
            return self.url
        return f"{scheme}://:{self.password}@{location}"


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Minimum level for every sink")
    format: Literal["json", "plain"] = Field(
        default="json", description="Layout of the file sink; the console is always plain"
    )
    file: str | None = Field(default="logs/app.log", description="File sink path, None to disable")
    max_size_mb: int = Field(default=10, description="Rotate the file sink at this size")
    backup_count: int = Field(default=5, description="Rotated files to retain")


class DatabaseConfig(BaseModel):
    """User store connection settings."""

    url: str = Field(
        default="sqlite:///./identity_sync.db", description="SQLAlchemy URL of the user store"
    )
    pool_size: int = Field(default=20, description="Pooled connections (ignored for SQLite)")
    max_overflow: int = Field(default=10, description="Connections allowed beyond the pool")
    pool_timeout: int = Field(default=30, description="Seconds to wait for a free connection")
    pool_recycle: int = Field(default=1800, description="Seconds before a connection is replaced")
    echo: bool = Field(default=False, description="Log emitted SQL")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class ReconciliationConfig(BaseModel):
    """Identity reconciliation settings."""

    max_append_attempts: int = Field(
        default=3,
        ge=1,
        description="Conditional uuid append attempts before giving up on a contended record",
    )


class AppConfig(BaseModel):
    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    host: str = Field(default="localhost", description="Bind address for uvicorn")
    port: int = Field(default=8000, description="Bind port for uvicorn")
    session_max_age: int = Field(
        default=3600, description="Sliding expiry of cached sessions, in seconds"
    )


class ConfigData(BaseModel):
    """Root of config.yaml's ``config`` section."""

    app: AppConfig = Field(default_factory=AppConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
    reconciliation: ReconciliationConfig = Field(default_factory=ReconciliationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
