"""otel-decorator Quickstart — pip install otel-decorator opentelemetry-sdk"""

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

from otel_decorator import configure, with_span

provider = TracerProvider()
provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
trace.set_tracer_provider(provider)

# Nested names become "order.customer.id" instead of "order_customer_id"
configure(attr_joiner=".")


@with_span("orders.place", include=["quantity", ["order", "customer", "id"], "result"])
def place_order(order: dict, quantity: int) -> dict:
    return {"status": "accepted", "quantity": quantity}


place_order({"customer": {"id": "cus_42"}}, 3)
