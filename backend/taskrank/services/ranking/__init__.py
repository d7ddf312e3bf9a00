"""Deterministic scoring and ordering of task candidates."""

from .score import compute_composite, due_urgency, priority_score, score_task
from .sort import sort_candidates

__all__ = ["compute_composite", "due_urgency", "priority_score", "score_task", "sort_candidates"]
