"""
Span Attribute Extraction
=========================

Builds the attribute set attached to a span when a traced function finishes.

Callers hand over the bound context (argument names mapped to their values,
plus ``result`` once the function returned) and a list of specifiers naming
what to report:

- a flat specifier is a plain name: ``"user_id"``
- a nested specifier is a path into a structured value: ``["user", "id"]``

Usage::

    extract({"user": {"id": 7}, "mode": "fast"}, ["mode", ["user", "id"]])
    # {"user_id": 7, "mode": "fast"}

Extraction never raises for missing data. A name that is not bound, a path
that runs into a missing key or a value that cannot be indexed, and values
that are ``False`` or ``None`` are simply left out, since OTLP would not keep
them anyway. Values outside the OTLP scalar set (``True``, ``int``,
``float``, ``str``) are reported as their ``repr()``.

Attribute names lose one leading underscore (``_id`` becomes ``id``), nested
segments are joined with the configured joiner, and the configured prefix is
prepended last.
"""

from __future__ import annotations

import enum
import keyword
import logging
import types
from collections.abc import Mapping, Sequence
from typing import Any, Iterable, Union

from otel_decorator.config import Settings, get_settings

logger = logging.getLogger(__name__)

RESULT_KEY = "result"

AttributeValue = Union[bool, int, float, str]
FlatSpecifier = str
NestedSpecifier = Sequence[Any]
Specifier = Union[FlatSpecifier, NestedSpecifier]


class _Missing:
    """Marker for "no value", distinct from a stored ``None``."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


# ── Value shapes ─────────────────────────────────────────────────────


class ValueKind(enum.Enum):
    """Shape of a captured value, as seen by path resolution and normalization."""

    SCALAR = "scalar"    # True, int, float, str: reported as-is
    FALSY = "falsy"      # False, None, MISSING: never reported
    MAPPING = "mapping"  # indexable by key
    RECORD = "record"    # indexable by instance attribute name
    OTHER = "other"      # reported via repr(), not indexable


def classify_value(value: Any) -> ValueKind:
    if value is None or value is False or value is MISSING:
        return ValueKind.FALSY
    if value is True or isinstance(value, (str, int, float)):
        return ValueKind.SCALAR
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if _has_instance_namespace(value):
        return ValueKind.RECORD
    return ValueKind.OTHER


def _has_instance_namespace(value: Any) -> bool:
    # Classes, functions and modules are never records.
    if isinstance(value, (type, types.ModuleType)) or callable(value):
        return False
    return isinstance(getattr(value, "__dict__", None), dict)


# ── Attribute names ──────────────────────────────────────────────────


class AttributeName(str):
    """A final attribute name. Always a ``str``; the subclass records its form."""

    symbolic = False

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str.__repr__(self)})"


class Symbolic(AttributeName):
    """A name that is a valid identifier (``my_id``)."""

    symbolic = True


class Textual(AttributeName):
    """A name that is only valid as a plain string (``my.id``)."""


def is_symbolic(text: str) -> bool:
    return text.isidentifier() and not keyword.iskeyword(text)


def make_name(text: str) -> AttributeName:
    """Wrap ``text`` as ``Symbolic`` when it is a valid identifier, else ``Textual``."""
    if is_symbolic(text):
        return Symbolic(text)
    return Textual(text)


def remove_underscore(name: str) -> str:
    """Strip a single leading underscore: ``_id`` -> ``id``, ``__id`` -> ``_id``."""
    if name.startswith("_"):
        return name[1:]
    return name


def apply_prefix(name: str, prefix: str) -> AttributeName:
    return make_name(f"{prefix}{name}" if prefix else name)


# ── Pipeline stages ──────────────────────────────────────────────────


def split_specifiers(
    specifiers: Iterable[Specifier],
) -> tuple[list[FlatSpecifier], list[list[Any]]]:
    """
    Partition specifiers into flat names and nested paths, keeping their order.

    Strings are flat; lists and tuples are paths. Empty paths are dropped.
    """
    flat: list[FlatSpecifier] = []
    nested: list[list[Any]] = []
    for spec in specifiers:
        if isinstance(spec, str):
            flat.append(spec)
        elif isinstance(spec, (list, tuple)):
            if spec:
                nested.append(list(spec))
        else:
            logger.debug("Ignoring attribute specifier of type %s", type(spec).__name__)
    return flat, nested


def take_flat_attrs(
    context: Mapping[str, Any], flat: Iterable[FlatSpecifier]
) -> list[tuple[str, Any]]:
    attrs: list[tuple[str, Any]] = []
    for name in flat:
        if name in context:
            attrs.append((name, context[name]))
        else:
            logger.debug("Attribute %r is not bound, skipping", name)
    return attrs


def take_nested_attrs(
    context: Mapping[str, Any],
    nested: Iterable[Sequence[Any]],
    joiner: str,
) -> list[tuple[str, Any]]:
    """
    Resolve each path against the context.

    ``["obj", "user", "id"]`` is reported as ``obj_user_id`` (with the default
    joiner) when ``context["obj"]["user"]["id"]`` exists and is not ``None``.
    """
    attrs: list[tuple[str, Any]] = []
    for path in nested:
        head, *rest = path
        name = joiner.join(str(segment) for segment in path)

        if not isinstance(head, str) or head not in context:
            logger.debug("Attribute %r is not bound, skipping %r", head, name)
            continue

        value = resolve_path(context[head], rest)
        if value is MISSING or value is None:
            logger.debug("Nested attribute %r did not resolve, skipping", name)
            continue
        attrs.append((name, value))
    return attrs


def resolve_path(value: Any, segments: Iterable[Any]) -> Any:
    """Walk ``segments`` into ``value``. Returns ``MISSING`` as soon as a step fails."""
    current = value
    for segment in segments:
        current = _lookup(current, segment)
        if current is MISSING or current is None:
            return MISSING
    return current


def _lookup(container: Any, segment: Any) -> Any:
    kind = classify_value(container)

    if kind is ValueKind.MAPPING:
        for key in _key_forms(segment):
            try:
                if key in container:
                    return container[key]
            except Exception:
                # unhashable segment, or a mapping that rejects the key type
                continue
        return MISSING

    if kind is ValueKind.RECORD:
        namespace = vars(container)
        for key in _key_forms(segment):
            if isinstance(key, str) and key in namespace:
                return namespace[key]
        return MISSING

    return MISSING


def _key_forms(segment: Any) -> list[Any]:
    """A segment may be stored under itself or its string form (``1`` vs ``"1"``)."""
    if isinstance(segment, str):
        return [segment]
    return [segment, str(segment)]


def maybe_add_result(
    attrs: list[tuple[str, Any]],
    specifiers: Iterable[Specifier],
    result: Any = MISSING,
) -> list[tuple[str, Any]]:
    """Append ``("result", result)`` when ``result`` was asked for and is not there yet."""
    if not any(isinstance(spec, str) and spec == RESULT_KEY for spec in specifiers):
        return attrs
    if any(name == RESULT_KEY for name, _ in attrs):
        return attrs
    if result is MISSING:
        return attrs
    return [*attrs, (RESULT_KEY, result)]


def normalize_value(value: Any) -> Any:
    """
    Convert ``value`` into something OTLP accepts.

    Returns ``MISSING`` for ``False``/``None`` (the caller drops the entry),
    the value itself for ``True``/``int``/``float``/``str``, and ``repr(value)``
    for anything else.
    """
    kind = classify_value(value)
    if kind is ValueKind.FALSY:
        return MISSING
    if kind is ValueKind.SCALAR:
        return value
    return _safe_repr(value)


def _safe_repr(obj: Any) -> str:
    try:
        return repr(obj)
    except Exception:
        return f"<{type(obj).__name__}>"


def transform_attrs(
    attrs: Iterable[tuple[str, Any]], prefix: str
) -> dict[AttributeName, AttributeValue]:
    """Normalize values and rewrite names. Later entries win on a name clash."""
    final: dict[AttributeName, AttributeValue] = {}
    for name, value in attrs:
        value = normalize_value(value)
        if value is MISSING:
            logger.debug("Attribute %r has no reportable value, skipping", name)
            continue
        final[apply_prefix(remove_underscore(name), prefix)] = value
    return final


# ── Entry point ──────────────────────────────────────────────────────


def extract(
    context: Mapping[str, Any],
    specifiers: Iterable[Specifier],
    default_result: Any = MISSING,
    *,
    settings: Settings | None = None,
) -> dict[AttributeName, AttributeValue]:
    """
    Extract span attributes from a bound context.

    Args:
        context: Names bound at the traced call (arguments and, once the call
            returned, ``result``). Never modified.
        specifiers: Flat names (``"id"``) and nested paths (``["obj", "id"]``).
        default_result: Reported as ``result`` when ``"result"`` is requested
            but not bound in ``context``.
        settings: Settings snapshot to use. Defaults to the process-wide one,
            read once for the whole call.

    Returns:
        Mapping of attribute name to OTLP-safe value, ready for
        ``span.set_attributes()``.

    Raises:
        TypeError: When ``specifiers`` is a single string instead of a list.
    """
    if isinstance(specifiers, (str, bytes)):
        raise TypeError(
            f"specifiers must be a list of names and paths, not {specifiers!r}; "
            f"use [{specifiers!r}] for a single attribute"
        )
    if settings is None:
        settings = get_settings()
    specifiers = list(specifiers)

    flat, nested = split_specifiers(specifiers)
    attrs = take_nested_attrs(context, nested, settings.attr_joiner)
    attrs.extend(take_flat_attrs(context, flat))

    if default_result is MISSING:
        default_result = context.get(RESULT_KEY, MISSING)
    attrs = maybe_add_result(attrs, specifiers, default_result)

    return transform_attrs(attrs, settings.attr_prefix)


__all__ = [
    "MISSING",
    "RESULT_KEY",
    "AttributeName",
    "AttributeValue",
    "Specifier",
    "Symbolic",
    "Textual",
    "ValueKind",
    "apply_prefix",
    "classify_value",
    "extract",
    "is_symbolic",
    "make_name",
    "maybe_add_result",
    "normalize_value",
    "remove_underscore",
    "resolve_path",
    "split_specifiers",
    "take_flat_attrs",
    "take_nested_attrs",
    "transform_attrs",
]
