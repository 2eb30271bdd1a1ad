"""Logging setup: loguru sinks plus interception of stdlib loggers."""

import logging
import sys
from pathlib import Path

from loguru import logger

from identity_sync.runtime.config.config_data import LoggingConfig
from identity_sync.runtime.context import get_config

PLAIN_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "[<cyan>{extra[request_id]}</cyan>] | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# Third-party loggers and the minimum level we let through from them
LIBRARY_LEVELS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.CRITICAL,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib log records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # log_requests already writes one line per request
        if record.name == "uvicorn.access":
            return

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=2, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_sinks(cfg: LoggingConfig, verbose_errors: bool) -> None:
    logger.add(
        sys.stderr,
        level=cfg.level,
        format=PLAIN_FORMAT,
        colorize=True,
        backtrace=verbose_errors,
        diagnose=verbose_errors,
    )

    if not cfg.file:
        return

    log_path = Path(cfg.file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    as_json = cfg.format == "json"
    logger.add(
        str(log_path),
        level=cfg.level,
        format="{message}" if as_json else PLAIN_FORMAT,
        serialize=as_json,
        rotation=f"{cfg.max_size_mb} MB",
        retention=cfg.backup_count,
        compression="zip",
        enqueue=True,
        backtrace=verbose_errors,
        diagnose=verbose_errors,
    )


def _intercept_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    # Loggers created before this point may carry their own handlers
    for existing in list(logging.root.manager.loggerDict):
        stdlib_logger = logging.getLogger(existing)
        stdlib_logger.handlers = []
        stdlib_logger.propagate = True

    for name, level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging() -> None:
    """Route all application and library logging through loguru."""
    config = get_config()
    environment = config.app.environment

    logger.remove()
    logger.configure(extra={"request_id": "-"})
    _add_sinks(config.logging, verbose_errors=environment != "production")
    _intercept_stdlib_logging()

    logger.info(
        "Logging configured",
        app_level=config.logging.level,
        app_format=config.logging.format,
        app_file=config.logging.file,
        environment=environment,
    )
