"""
Scoring for task search.

composite = relevance x R + due_urgency x D + priority_score x P

- relevance: summed points (exact search-text match, matched keywords,
  folder, tag, incomplete status, priority level, has due date)
- due_urgency: bucket value by days until due (overdue, today, within 7
  days, within 30 days, later, none)
- priority_score: value per priority level, a lower value for no priority

All point values and buckets come from settings; R, D and P from
RankingWeights supplied by the caller. The composite is rounded to 6
decimals so float noise never decides an ordering.
"""
from datetime import date
from typing import Iterable, Optional, Tuple

from taskrank.core.config import (
    DueUrgencySettings,
    PriorityScoreSettings,
    RankingWeights,
    Settings,
)
from taskrank.models.intent import QueryIntent
from taskrank.models.results import ScoreBreakdown
from taskrank.models.task import Task

COMPOSITE_PRECISION = 6


def due_urgency(due: Optional[date], reference_date: date, buckets: DueUrgencySettings) -> float:
    if due is None:
        return buckets.none
    days = (due - reference_date).days
    if days < 0:
        return buckets.overdue
    if days == 0:
        return buckets.today
    if days <= 7:
        return buckets.within_week
    if days <= 30:
        return buckets.within_month
    return buckets.later


def priority_score(priority: Optional[int], scores: PriorityScoreSettings) -> float:
    if priority is None:
        return scores.none
    return scores.levels.get(priority, scores.none)


def compute_composite(relevance: float, urgency: float, priority: float, weights: RankingWeights) -> float:
    composite = (
        relevance * weights.relevance +
        urgency * weights.due_date +
        priority * weights.priority
    )
    return round(composite, COMPOSITE_PRECISION)


def matched_keywords(text: str, keywords: Iterable[str]) -> Tuple[str, ...]:
    """Keywords found in the text, case-insensitive substring match."""
    lowered = text.lower()
    return tuple(k for k in keywords if k and k.lower() in lowered)


def folder_matches(folder: str, wanted: str) -> bool:
    return bool(wanted) and wanted.strip("/").lower() in folder.lower()


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("#").lower()


def tags_match(task_tags: Iterable[str], wanted: Iterable[str]) -> bool:
    have = {normalize_tag(t) for t in task_tags}
    return any(normalize_tag(t) in have for t in wanted)


def score_task(
    task: Task,
    intent: QueryIntent,
    weights: RankingWeights,
    settings: Settings,
    reference_date: date,
) -> ScoreBreakdown:
    """Score one task that already passed the filters."""
    points = settings.scoring
    keywords = matched_keywords(task.text, intent.expanded_keywords)

    exact = points.exact_match if intent.search_text and intent.search_text in task.text.lower() else 0.0
    keyword_points = points.keyword_match * len(keywords)

    folder_hit = (
        (intent.folder is not None and folder_matches(task.folder, intent.folder))
        or bool(matched_keywords(task.folder, intent.core_keywords))
    )
    tag_hit = tags_match(task.tags, intent.tags) or tags_match(task.tags, intent.core_keywords)

    incomplete = points.incomplete_status if settings.is_incomplete(task.status) else 0.0
    priority_bonus = points.priority_points.get(task.priority, 0.0) if task.priority is not None else 0.0
    due_bonus = points.has_due_date if task.due_date is not None else 0.0

    relevance = (
        exact + keyword_points
        + (points.folder_match if folder_hit else 0.0)
        + (points.tag_match if tag_hit else 0.0)
        + incomplete + priority_bonus + due_bonus
    )
    urgency = due_urgency(task.due_date, reference_date, settings.due_urgency)
    prio = priority_score(task.priority, settings.priority_scores)

    return ScoreBreakdown(
        exact_match=exact,
        keyword_match=keyword_points,
        folder_match=points.folder_match if folder_hit else 0.0,
        tag_match=points.tag_match if tag_hit else 0.0,
        incomplete_status=incomplete,
        priority_bonus=priority_bonus,
        has_due_date=due_bonus,
        relevance=relevance,
        due_urgency=urgency,
        priority_score=prio,
        composite=compute_composite(relevance, urgency, prio, weights),
        matched_keywords=keywords,
    )
