"""Process configuration, overridable per task through a context variable."""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from typing import TypeVar

from pydantic import BaseModel

from identity_sync.runtime.config.config_data import ConfigData
from identity_sync.runtime.config.config_template import load_templated_yaml, resolve_config_path

M = TypeVar("M", bound=BaseModel)


@dataclass
class AppContext:
    """Application-wide state visible to the current task."""

    config: ConfigData


def _load_default_config() -> ConfigData:
    config_path = resolve_config_path()
    if not config_path.exists():
        return ConfigData()
    return load_templated_yaml(config_path)


_app_context: ContextVar[AppContext] = ContextVar(
    "app_context", default=AppContext(config=_load_default_config())
)


def get_context() -> AppContext:
    return _app_context.get()


def set_context(context: AppContext) -> Token[AppContext]:
    """Install ``context`` for the current task and the tasks it spawns."""
    return _app_context.set(context)


def _overlay(base: M, override: M) -> M:
    """Copy of ``base`` carrying every field explicitly set on ``override``.

    Nested models are overlaid field by field instead of being replaced.
    """
    updates = {}
    for name in type(override).model_fields:
        value = getattr(override, name)
        if isinstance(value, BaseModel) and value.model_fields_set:
            updates[name] = _overlay(getattr(base, name), value)
        elif name in override.model_fields_set:
            updates[name] = value
    if not updates:
        return base

    merged = base.model_dump()
    for name, value in updates.items():
        merged[name] = value.model_dump() if isinstance(value, BaseModel) else value
    return type(base).model_validate(merged)


@contextmanager
def with_context(config_override: ConfigData | None = None):
    """Temporarily layer ``config_override`` on top of the current configuration.

    Only fields that were explicitly set on the override take effect.

    Example:
        override = ConfigData(reconciliation=ReconciliationConfig(max_append_attempts=5))
        with with_context(override):
            assert get_config().reconciliation.max_append_attempts == 5
    """
    if config_override is None:
        yield
        return

    if not isinstance(config_override, ConfigData):
        raise ValueError(
            f"config_override must be ConfigData, or None, got {type(config_override)}"
        )

    current = get_context()
    token = set_context(replace(current, config=_overlay(current.config, config_override)))
    try:
        yield
    finally:
        _app_context.reset(token)


def get_config() -> ConfigData:
    return get_context().config
