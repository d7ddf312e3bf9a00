"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: HTTP rate, errors, duration
- LLM Metrics: completion requests, latency, errors, tokens, schema failures
- Pipeline Metrics: fallbacks per stage, stale results, search latency and
  zero-result searches
- Circuit breaker state, sampled when metrics are scraped

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
"""
from typing import Iterable, Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from taskrank.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "taskrank_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "taskrank_http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "taskrank_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_requests_total = Counter(
    "taskrank_llm_requests_total",
    "Total number of completion requests",
    ["agent", "model"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "taskrank_llm_request_duration_seconds",
    "Completion request latency in seconds",
    ["agent", "model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0],
    registry=registry,
)

llm_errors_total = Counter(
    "taskrank_llm_errors_total",
    "Total number of failed completion requests",
    ["agent", "error_type"],
    registry=registry,
)

llm_tokens_total = Counter(
    "taskrank_llm_tokens_total",
    "Total number of tokens consumed by completion requests",
    ["agent", "model", "direction"],
    registry=registry,
)

llm_schema_validation_failures_total = Counter(
    "taskrank_llm_schema_validation_failures_total",
    "Total number of AI answers rejected by validation",
    ["agent"],
    registry=registry,
)

# ============================================================================
# PIPELINE METRICS
# ============================================================================

pipeline_fallbacks_total = Counter(
    "taskrank_pipeline_fallbacks_total",
    "Total number of degraded stages that fell back to deterministic output",
    ["stage", "kind"],
    registry=registry,
)

pipeline_stale_results_total = Counter(
    "taskrank_pipeline_stale_results_total",
    "Total number of query results discarded because a newer query superseded them",
    registry=registry,
)

search_zero_results_total = Counter(
    "taskrank_search_zero_results_total",
    "Total number of searches that returned zero candidates",
    registry=registry,
)

circuit_breaker_state = Gauge(
    "taskrank_circuit_breaker_state",
    "Circuit breaker state (0 = closed, 1 = half open, 2 = open)",
    ["name"],
    registry=registry,
)

_CIRCUIT_STATE_VALUES = {"closed": 0, "half_open": 1, "open": 2}

search_latency_seconds = Histogram(
    "taskrank_search_latency_seconds",
    "Filter, score and sort latency in seconds",
    buckets=[0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
    registry=registry,
)


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """Record HTTP request metrics (RED metrics)."""
    if "?" in endpoint:
        endpoint = endpoint.split("?")[0]

    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=endpoint,
    ).observe(duration_seconds)


def record_llm_request(agent: str, model: str, duration_seconds: float) -> None:
    llm_requests_total.labels(agent=agent, model=model).inc()
    llm_request_duration_seconds.labels(agent=agent, model=model).observe(duration_seconds)


def record_llm_error(agent: str, error_type: str) -> None:
    llm_errors_total.labels(agent=agent, error_type=error_type).inc()


def record_llm_tokens(agent: str, model: str, input_tokens: int, output_tokens: int) -> None:
    """Record token usage reported by an OpenAI-style `usage` field."""
    if input_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="input").inc(input_tokens)
    if output_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="output").inc(output_tokens)


def record_llm_schema_validation_failure(agent: str) -> None:
    llm_schema_validation_failures_total.labels(agent=agent).inc()


def record_pipeline_fallback(stage: str, kind: str) -> None:
    """
    Record a degraded stage.

    Args:
        stage: Pipeline stage that degraded ("ai_parse", "ai_prioritize")
        kind: Error kind that caused the fallback
    """
    pipeline_fallbacks_total.labels(stage=stage, kind=kind).inc()


def record_stale_result() -> None:
    pipeline_stale_results_total.inc()


def record_search(duration_seconds: float, results_count: int, query: Optional[str] = None) -> None:
    """Record search latency and zero-result searches."""
    search_latency_seconds.observe(duration_seconds)
    if results_count == 0:
        search_zero_results_total.inc()
        logger.debug("search_zero_results", query=query)


def record_circuit_breaker_state(name: str, state: str) -> None:
    circuit_breaker_state.labels(name=name).set(_CIRCUIT_STATE_VALUES[state])


def get_metrics(names: Optional[Iterable[str]] = None) -> bytes:
    """
    Get Prometheus metrics in text format.

    Args:
        names: Sample names to keep (e.g. "taskrank_pipeline_stale_results_total");
            all metrics when omitted.
    """
    if names:
        return generate_latest(registry.restricted_registry(list(names)))
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
