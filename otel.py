import os
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

SERVICE_NAME = os.getenv("OTEL_SERVICE_NAME", "chat-model-demo")
OTLP_ENDPOINT = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")    # 예: http://localhost:4318/v1/traces

_configured = False

def setup_tracing() -> bool:
    """
    OTLP 엔드포인트가 있을 때만 exporter를 붙인다. (로컬 기본은 no-op tracer)
    lifespan에서 여러 번 불려도 provider는 한 번만 설정.
    """
    global _configured
    if not OTLP_ENDPOINT or _configured:
        return _configured

    resource = Resource.create({"service.name": SERVICE_NAME})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=OTLP_ENDPOINT)
    processor = BatchSpanProcessor(exporter)
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    _configured = True
    return True

def get_tracer():
    return trace.get_tracer(SERVICE_NAME)
