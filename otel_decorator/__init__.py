"""
otel-decorator
==============

Span attributes from function arguments, for OpenTelemetry tracing.

Quick Start::

    from otel_decorator import with_span

    @with_span("checkout.pay", include=["amount", ["customer", "id"], "result"])
    def pay(customer: dict, amount: float) -> str:
        return "ok"

    pay({"id": "cus_42"}, 12.5)
    # span "checkout.pay": amount=12.5, customer_id="cus_42", result="ok"

The extraction pipeline is also available on its own::

    from otel_decorator import extract

    extract({"obj": {"id": 1}, "_token": "x"}, [["obj", "id"], "_token"])
    # {"obj_id": 1, "token": "x"}

Naming is configured process-wide with ``configure(attr_joiner=...,
attr_prefix=...)`` or the ``OTEL_DECORATOR_ATTR_JOINER`` /
``OTEL_DECORATOR_ATTR_PREFIX`` environment variables.
"""

# ── Attribute extraction ──────────────────────────────────────────────

from otel_decorator.attributes import (
    MISSING,
    RESULT_KEY,
    AttributeName,
    Symbolic,
    Textual,
    ValueKind,
    classify_value,
    extract,
    make_name,
    normalize_value,
)

# ── Configuration ─────────────────────────────────────────────────────

from otel_decorator.config import (
    ConfigurationError,
    Settings,
    configure,
    get_settings,
    override_settings,
    reset_settings,
)

# ── Decorator ─────────────────────────────────────────────────────────

from otel_decorator.decorators import (
    InvalidIncludeError,
    add_span_attributes,
    validate_include,
    with_span,
)

__version__ = "1.0.0"
__all__ = [
    # ── Attribute extraction ──
    "MISSING",
    "RESULT_KEY",
    "AttributeName",
    "Symbolic",
    "Textual",
    "ValueKind",
    "classify_value",
    "extract",
    "make_name",
    "normalize_value",
    # ── Configuration ──
    "ConfigurationError",
    "Settings",
    "configure",
    "get_settings",
    "override_settings",
    "reset_settings",
    # ── Decorator ──
    "InvalidIncludeError",
    "add_span_attributes",
    "validate_include",
    "with_span",
]
