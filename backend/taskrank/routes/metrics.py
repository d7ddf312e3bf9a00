"""
Prometheus metrics endpoint.

GET /metrics
GET /metrics?name[]=taskrank_pipeline_stale_results_total

Serves every taskrank metric, or only the samples named in `name[]`. The
completion client's circuit breaker state is sampled on each scrape, so it
is current even when no AI call ran since the last one.
"""
from typing import List, Optional

from fastapi import APIRouter, Query, Response

from taskrank.core.logging import get_logger
from taskrank.core.metrics import get_metrics, get_metrics_content_type, record_circuit_breaker_state
from taskrank.services.ai.llm_client import current_completion_client

logger = get_logger(__name__)
router = APIRouter()


def _sample_circuit_breaker() -> None:
    client = current_completion_client()
    if client is not None:
        breaker = client.circuit_breaker
        record_circuit_breaker_state(breaker.name, breaker.state.value)


@router.get("")
async def metrics(names: Optional[List[str]] = Query(None, alias="name[]")):
    _sample_circuit_breaker()
    try:
        content = get_metrics(names)
    except Exception as e:
        logger.error(
            "metrics_export_failed",
            error=str(e),
            error_type=type(e).__name__,
            requested=names,
            exc_info=True,
        )
        content = b"# Error collecting metrics\n"
    return Response(content=content, media_type=get_metrics_content_type())
