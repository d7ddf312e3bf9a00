"""
Rank endpoint.

POST /rank
Body: {"query": str, "items": [Task], "reference_date": "YYYY-MM-DD",
       "use_ai": bool, "weights": {"relevance", "due_date", "priority"}, "limit": int}
"""
import time

from fastapi import APIRouter, HTTPException

from taskrank.core.config import get_settings
from taskrank.core.logging import get_logger
from taskrank.models.responses import RankRequest, RankResponse
from taskrank.services.ai.llm_client import get_completion_client
from taskrank.services.pipeline import QuerySession, StaticCorpusProvider

logger = get_logger(__name__)

router = APIRouter()


@router.post("", response_model=RankResponse)
async def rank(body: RankRequest):
    """
    Rank the submitted items against a natural-language query.

    The AI stages run only when enabled (by settings or `use_ai`); any AI
    failure degrades to the deterministic ranking and is listed in `errors`.
    """
    start_time = time.time()
    query = body.query.strip() if body.query else ""
    if not query:
        logger.warning("rank_query_empty")
        raise HTTPException(status_code=400, detail="Field 'query' is required")

    settings = get_settings()
    use_ai = settings.ai.enabled if body.use_ai is None else body.use_ai
    session = QuerySession(
        StaticCorpusProvider(body.items),
        settings=settings,
        client=get_completion_client(settings.ai) if use_ai else None,
    )
    result = await session.submit(
        query,
        reference_date=body.reference_date,
        use_ai=use_ai,
        weights=body.weights,
        limit=body.limit,
    )

    logger.info(
        "rank_completed",
        items_count=len(body.items),
        results_count=len(result.ranked.candidates),
        selection_source=result.selection.source,
        degraded=result.degraded,
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return RankResponse.from_pipeline(result)
