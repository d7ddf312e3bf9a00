"""
Per-query result models: ranking, final selection and the delivered result.
"""
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from taskrank.core.errors import StructuredError
from taskrank.models.intent import QueryIntent
from taskrank.models.task import Task


class ScoreBreakdown(BaseModel):
    """Advisory explanation of a composite score."""
    model_config = ConfigDict(frozen=True)

    exact_match: float = 0.0
    keyword_match: float = 0.0
    folder_match: float = 0.0
    tag_match: float = 0.0
    incomplete_status: float = 0.0
    priority_bonus: float = 0.0
    has_due_date: float = 0.0
    relevance: float = 0.0
    due_urgency: float = 0.0
    priority_score: float = 0.0
    composite: float = 0.0
    matched_keywords: Tuple[str, ...] = ()


class ScoredCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    task: Task
    score: float
    breakdown: ScoreBreakdown


class RankedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidates: Tuple[ScoredCandidate, ...] = ()
    applied_filters: Dict[str, Any] = Field(default_factory=dict)
    total_considered: int = 0
    error: Optional[StructuredError] = None

    @property
    def tasks(self) -> List[Task]:
        return [candidate.task for candidate in self.candidates]


class FinalSelection(BaseModel):
    """Chosen subset of the ranked candidates and how it was chosen."""
    model_config = ConfigDict(frozen=True)

    candidates: Tuple[ScoredCandidate, ...] = ()
    source: Literal["ai", "fallback_top_k"]
    answer_text: Optional[str] = None
    error: Optional[StructuredError] = None

    @property
    def ai_selected(self) -> bool:
        return self.source == "ai"


class PipelineStage(str, Enum):
    RECEIVED = "received"
    LOCALLY_PARSED = "locally_parsed"
    AI_PARSING = "ai_parsing"
    SKIPPED_AI = "skipped_ai"
    FILTERED_SCORED = "filtered_scored"
    AI_PRIORITIZED = "ai_prioritized"
    FALLBACK_TOP_K = "fallback_top_k"
    DELIVERED = "delivered"


class PipelineResult(BaseModel):
    """
    Delivered result of one query.

    Always carries a ranked result and a selection. `errors` lists every
    degraded stage in the order the stages ran; an empty list means nothing
    degraded. `superseded` is set when a newer query was submitted before
    this one finished.
    """
    model_config = ConfigDict(frozen=True)

    sequence: int
    intent: QueryIntent
    ranked: RankedResult
    selection: FinalSelection
    stages: Tuple[PipelineStage, ...]
    errors: Tuple[StructuredError, ...] = ()
    superseded: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.errors)
