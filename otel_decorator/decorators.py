"""
Tracing Decorator
=================

``@with_span`` wraps a function in an OpenTelemetry span and reports selected
arguments (and the return value) as span attributes.

Example::

    @with_span("orders.place", include=["quantity", ["user", "id"], "result"])
    def place_order(user: dict, quantity: int) -> str:
        ...

    place_order({"id": 42}, 3)
    # span "orders.place" with quantity=3, user_id=42, result="<return value>"

Attributes are extracted with ``otel_decorator.attributes.extract`` once the
function returns, so ``"result"`` and paths into it (``["result", "status"]``)
can be included. When the function raises, the attributes that can be built
from the arguments are still reported, the exception is recorded on the span,
and the span status is set to ERROR before the exception propagates.
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, TypeVar

from opentelemetry import trace
from opentelemetry.trace import Span, SpanKind, StatusCode

from otel_decorator.attributes import (
    RESULT_KEY,
    AttributeName,
    AttributeValue,
    Specifier,
    extract,
)
from otel_decorator.config import Settings, get_settings

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class InvalidIncludeError(ValueError):
    """Raised when an ``include`` list or one of its entries is malformed."""

    def __init__(self, message: str, entry: Any = None):
        super().__init__(message)
        self.entry = entry


def validate_include(include: Iterable[Specifier]) -> list[Specifier]:
    """
    Check ``include`` and return it as a list.

    Each entry must be an attribute name (``"id"``) or a non-empty path whose
    first segment is a name and whose other segments are strings or integers.
    Integer segments address integer-keyed mappings, or string-digit keys as
    a fallback (``["obj", "counts", 2]`` finds ``{"counts": {2: ...}}`` or
    ``{"counts": {"2": ...}}``). Lists and tuples are not indexed.
    """
    if isinstance(include, (str, bytes)):
        raise InvalidIncludeError(
            f"include must be a list of attribute specifiers, not {include!r}",
            entry=include,
        )

    entries = list(include)
    for entry in entries:
        if isinstance(entry, str):
            continue
        if not isinstance(entry, (list, tuple)) or not entry:
            raise InvalidIncludeError(
                f"include entries must be names or non-empty paths, got {entry!r}",
                entry=entry,
            )
        head, *rest = entry
        if not isinstance(head, str):
            raise InvalidIncludeError(
                f"the first segment of {entry!r} must be a name, got {head!r}",
                entry=entry,
            )
        for segment in rest:
            if isinstance(segment, bool) or not isinstance(segment, (str, int)):
                raise InvalidIncludeError(
                    f"path segments must be strings or integers, got {segment!r} in {entry!r}",
                    entry=entry,
                )
    return entries


def add_span_attributes(
    context: Mapping[str, Any],
    include: Iterable[Specifier],
    span: Optional[Span] = None,
    *,
    settings: Settings | None = None,
) -> dict[AttributeName, AttributeValue]:
    """
    Extract attributes from ``context`` and set them on ``span``.

    Uses the current span when ``span`` is None. Returns the attributes that
    were set.

    Raises:
        InvalidIncludeError: When ``include`` is malformed.
    """
    include = validate_include(include)
    if span is None:
        span = trace.get_current_span()
    attrs = extract(context, include, settings=settings)
    if attrs:
        span.set_attributes(attrs)
    return attrs


def with_span(
    span_name: str | None = None,
    include: Iterable[Specifier] = (),
    *,
    kind: SpanKind = SpanKind.INTERNAL,
) -> Callable[[F], F]:
    """
    Trace every call of the decorated function in its own span.

    Args:
        span_name: Span name. Defaults to ``module.qualname`` of the function.
        include: Attribute specifiers: argument names, ``"result"``, or paths
            into structured arguments such as ``["user", "id"]``.
        kind: OTel span kind.

    Raises:
        InvalidIncludeError: When ``include`` is malformed (at decoration time).
    """
    _include = validate_include(include)

    def decorator(func: F) -> F:
        is_async = inspect.iscoroutinefunction(func)
        name = span_name or f"{func.__module__}.{func.__qualname__}"
        signature = inspect.signature(func)

        def _bind(args: tuple, kwargs: dict) -> dict[str, Any]:
            try:
                bound = signature.bind(*args, **kwargs)
            except TypeError:
                # The call itself will raise the same error.
                return {}
            bound.apply_defaults()
            return dict(bound.arguments)

        def _report(span: Span, context: dict[str, Any], settings: Settings) -> None:
            if not _include:
                return
            try:
                add_span_attributes(context, _include, span, settings=settings)
            except Exception as exc:
                logger.warning("Failed to set span attributes for %s: %s", name, exc)

        def _report_error(span: Span, exc: BaseException) -> None:
            span.record_exception(exc)
            span.set_status(StatusCode.ERROR, f"{type(exc).__name__}: {exc}")

        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            settings = get_settings()
            tracer = trace.get_tracer(settings.tracer_name)
            with tracer.start_as_current_span(
                name, kind=kind, record_exception=False, set_status_on_exception=False
            ) as span:
                context = _bind(args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as exc:
                    _report(span, context, settings)
                    _report_error(span, exc)
                    raise
                context[RESULT_KEY] = result
                _report(span, context, settings)
                return result

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            settings = get_settings()
            tracer = trace.get_tracer(settings.tracer_name)
            with tracer.start_as_current_span(
                name, kind=kind, record_exception=False, set_status_on_exception=False
            ) as span:
                context = _bind(args, kwargs)
                try:
                    result = func(*args, **kwargs)
                except Exception as exc:
                    _report(span, context, settings)
                    _report_error(span, exc)
                    raise
                context[RESULT_KEY] = result
                _report(span, context, settings)
                return result

        return async_wrapper if is_async else sync_wrapper  # type: ignore

    return decorator
