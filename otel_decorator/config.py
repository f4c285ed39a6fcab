"""
Process-wide settings for attribute extraction.

Settings are held as a single immutable snapshot. ``configure()`` swaps the
snapshot, ``get_settings()`` returns it, and every extraction reads it once at
the start of the call, so a concurrent ``configure()`` never produces a
half-updated view. ``override_settings()`` layers a temporary snapshot over it
for the current thread or asyncio task only.

Environment defaults (read on first use, or after ``reset_settings()``):

- ``OTEL_DECORATOR_ATTR_JOINER``: joiner for nested attribute names (``_``).
- ``OTEL_DECORATOR_ATTR_PREFIX``: prefix for every attribute name (empty).
- ``OTEL_DECORATOR_TRACER_NAME``: tracer name used by ``@with_span``.
"""

from __future__ import annotations

import contextlib
import contextvars
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Generator

logger = logging.getLogger(__name__)

DEFAULT_JOINER = "_"
DEFAULT_PREFIX = ""
DEFAULT_TRACER_NAME = "otel_decorator"


class ConfigurationError(ValueError):
    """Raised when settings are given values extraction cannot use."""


@dataclass(frozen=True)
class Settings:
    """Snapshot of the naming options used by ``extract()``."""

    attr_joiner: str = DEFAULT_JOINER
    attr_prefix: str = DEFAULT_PREFIX
    tracer_name: str = DEFAULT_TRACER_NAME

    def __post_init__(self) -> None:
        if not isinstance(self.attr_joiner, str):
            raise ConfigurationError(
                f"attr_joiner must be a string, got {type(self.attr_joiner).__name__}"
            )
        if not isinstance(self.attr_prefix, str):
            raise ConfigurationError(
                f"attr_prefix must be a string, got {type(self.attr_prefix).__name__}"
            )
        if not isinstance(self.tracer_name, str) or not self.tracer_name.strip():
            raise ConfigurationError("tracer_name must be a non-empty string")

    @classmethod
    def from_env(cls) -> Settings:
        settings = cls(
            attr_joiner=os.getenv("OTEL_DECORATOR_ATTR_JOINER", DEFAULT_JOINER),
            attr_prefix=os.getenv("OTEL_DECORATOR_ATTR_PREFIX", DEFAULT_PREFIX),
            tracer_name=os.getenv("OTEL_DECORATOR_TRACER_NAME", "").strip()
            or DEFAULT_TRACER_NAME,
        )
        logger.debug("Loaded otel_decorator settings from environment: %s", settings)
        return settings


# ── Global State ──────────────────────────────────────────────────────


_global_settings: Settings | None = None

# Overrides are scoped to the current thread or asyncio task.
_override_settings: contextvars.ContextVar[Settings | None] = contextvars.ContextVar(
    "otel_decorator_override_settings", default=None
)


def configure(
    *,
    attr_joiner: str | None = None,
    attr_prefix: str | None = None,
    tracer_name: str | None = None,
) -> Settings:
    """
    Update the process-wide settings.

    Only the options that are passed change; the rest keep their current
    process-wide value. An ``override_settings()`` block active in the caller
    does not leak into the new process-wide snapshot. Returns the new snapshot.

    Args:
        attr_joiner: Separator placed between the segments of a nested
            attribute name (``["obj", "id"]`` becomes ``obj_id`` by default).
        attr_prefix: Text prepended to every attribute name.
        tracer_name: OTel tracer name used by ``@with_span``.
    """
    global _global_settings

    _global_settings = replace(
        _process_settings(),
        **_changes(attr_joiner=attr_joiner, attr_prefix=attr_prefix, tracer_name=tracer_name),
    )
    return _global_settings


def get_settings() -> Settings:
    """
    Return the settings snapshot in effect for the caller.

    That is the innermost ``override_settings()`` of the current thread or
    task when one is active, else the process-wide snapshot (loaded from the
    environment if unset).
    """
    override = _override_settings.get()
    if override is not None:
        return override
    return _process_settings()


def reset_settings() -> None:
    """Forget the process-wide snapshot; the next read goes back to the environment."""
    global _global_settings
    _global_settings = None


@contextlib.contextmanager
def override_settings(**changes: Any) -> Generator[Settings, None, None]:
    """
    Temporarily override settings for the current thread or asyncio task.

    Other threads and tasks keep seeing the process-wide settings, and a
    ``configure()`` made while the block is open survives its exit.

    Example:
        with override_settings(attr_prefix="app."):
            extract({"id": 1}, ["id"])  # {"app.id": 1}
    """
    settings = replace(get_settings(), **_changes(**changes))
    token = _override_settings.set(settings)
    try:
        yield settings
    finally:
        _override_settings.reset(token)


def _process_settings() -> Settings:
    global _global_settings

    if _global_settings is None:
        _global_settings = Settings.from_env()
    return _global_settings


def _changes(
    *,
    attr_joiner: str | None = None,
    attr_prefix: str | None = None,
    tracer_name: str | None = None,
) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    if attr_joiner is not None:
        changes["attr_joiner"] = attr_joiner
    if attr_prefix is not None:
        changes["attr_prefix"] = attr_prefix
    if tracer_name is not None:
        changes["tracer_name"] = tracer_name
    return changes
