"""Pydantic models for items, query intents and results."""

from .intent import DateRange, DueDateFilter, PriorityFilter, QueryIntent
from .results import (
    FinalSelection,
    PipelineResult,
    PipelineStage,
    RankedResult,
    ScoreBreakdown,
    ScoredCandidate,
)
from .task import Task

__all__ = [
    "DateRange",
    "DueDateFilter",
    "FinalSelection",
    "PipelineResult",
    "PipelineStage",
    "PriorityFilter",
    "QueryIntent",
    "RankedResult",
    "ScoreBreakdown",
    "ScoredCandidate",
    "Task",
]
