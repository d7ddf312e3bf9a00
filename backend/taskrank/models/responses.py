"""
Request and response models for API endpoints.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from taskrank.core.config import RankingWeights
from taskrank.core.errors import StructuredError
from taskrank.models.intent import QueryIntent
from taskrank.models.results import PipelineResult, ScoreBreakdown, ScoredCandidate
from taskrank.models.task import Task


class RankRequest(BaseModel):
    """Body of POST /rank."""
    query: str
    items: List[Task] = Field(default_factory=list)
    reference_date: Optional[date] = None
    use_ai: Optional[bool] = None
    weights: Optional[RankingWeights] = None
    limit: Optional[int] = Field(None, ge=1)


class RankedItem(BaseModel):
    """Ranked item model."""
    id: str
    text: str
    score: float
    breakdown: ScoreBreakdown

    @classmethod
    def from_candidate(cls, candidate: ScoredCandidate) -> "RankedItem":
        return cls(
            id=candidate.task.id,
            text=candidate.task.text,
            score=candidate.score,
            breakdown=candidate.breakdown,
        )


class RankResponse(BaseModel):
    sequence: int
    intent: QueryIntent
    applied_filters: Dict[str, Any]
    total_considered: int
    results: List[RankedItem]
    recommended_ids: List[str]
    selection_source: str
    answer_text: Optional[str] = None
    stages: List[str]
    errors: List[StructuredError]

    @classmethod
    def from_pipeline(cls, result: PipelineResult) -> "RankResponse":
        return cls(
            sequence=result.sequence,
            intent=result.intent,
            applied_filters=result.ranked.applied_filters,
            total_considered=result.ranked.total_considered,
            results=[RankedItem.from_candidate(c) for c in result.ranked.candidates],
            recommended_ids=[c.task.id for c in result.selection.candidates],
            selection_source=result.selection.source,
            answer_text=result.selection.answer_text,
            stages=[stage.value for stage in result.stages],
            errors=list(result.errors),
        )
