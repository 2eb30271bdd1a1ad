"""Tests for logging configuration."""

import logging

import pytest
from loguru import logger

from identity_sync.api.utils.app_startup import configure_logging
from identity_sync.runtime.config.config_data import ConfigData, LoggingConfig
from identity_sync.runtime.context import with_context


@pytest.fixture
def captured() -> list[str]:
    with with_context(ConfigData(logging=LoggingConfig(file=None, level="DEBUG"))):
        configure_logging()
    messages: list[str] = []
    sink_id = logger.add(messages.append, format="{message}")
    yield messages
    logger.remove(sink_id)


def test_stdlib_records_are_forwarded(captured):
    logging.getLogger("some.library").warning("hello from stdlib")

    assert any("hello from stdlib" in message for message in captured)


def test_access_log_is_dropped(captured):
    logging.getLogger("uvicorn.access").critical("GET / 200")

    assert not any("GET / 200" in message for message in captured)


def test_file_sink_is_created(tmp_path):
    log_file = tmp_path / "logs" / "app.log"

    with with_context(ConfigData(logging=LoggingConfig(file=str(log_file)))):
        configure_logging()
    logger.info("written to file")
    logger.complete()

    assert log_file.exists()
    logger.remove()
