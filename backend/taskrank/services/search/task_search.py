"""
Task search: filter, score and sort a corpus snapshot for one intent.

Filters are AND-ed across categories and OR-ed within a value set. Sentinel
filters test presence ("all") or absence ("none") of the property. An empty
corpus or an intent without criteria is never an error: the result is simply
empty or unfiltered.
"""
import time
from datetime import date
from typing import Dict, List, Optional, Sequence

from taskrank.core.config import RankingWeights, Settings, get_settings
from taskrank.core.logging import get_logger
from taskrank.core.metrics import record_search
from taskrank.models.intent import QueryIntent
from taskrank.models.results import RankedResult, ScoredCandidate
from taskrank.models.task import Task
from taskrank.services.ranking.score import folder_matches, matched_keywords, score_task, tags_match
from taskrank.services.ranking.sort import sort_candidates

logger = get_logger(__name__)


def matches_filters(task: Task, intent: QueryIntent, settings: Settings) -> bool:
    """True when the task satisfies every filter present on the intent."""
    if intent.priority is not None and not intent.priority.matches(task.priority):
        return False

    if intent.due_date is not None and not intent.due_date.matches(task.due_date):
        return False

    if intent.due_date_range is not None:
        if task.due_date is None or not intent.due_date_range.contains(task.due_date):
            return False

    if intent.status and settings.resolve_status(task.status) not in intent.status:
        return False

    if intent.folder is not None and not folder_matches(task.folder, intent.folder):
        return False

    if intent.tags and not tags_match(task.tags, intent.tags):
        return False

    if settings.search.require_keyword_match and intent.expanded_keywords:
        if not matched_keywords(task.text, intent.expanded_keywords):
            return False

    return True


def unique_by_id(corpus: Sequence[Task]) -> List[Task]:
    """Drop repeated identifiers, keeping the first occurrence."""
    seen: Dict[str, Task] = {}
    duplicates: List[str] = []
    for task in corpus:
        if task.id in seen:
            duplicates.append(task.id)
            continue
        seen[task.id] = task
    if duplicates:
        logger.warning("search_duplicate_ids", duplicate_ids=sorted(set(duplicates)))
    return list(seen.values())


def search(
    corpus: Sequence[Task],
    intent: QueryIntent,
    weights: Optional[RankingWeights] = None,
    settings: Optional[Settings] = None,
    reference_date: Optional[date] = None,
    limit: Optional[int] = None,
) -> RankedResult:
    """
    Filter, score and sort tasks.

    Args:
        corpus: Immutable snapshot of tasks
        intent: Parsed query
        weights: Composite coefficients R/D/P (defaults from settings)
        settings: Scoring points, buckets and tie-break chain
        reference_date: "Today" for due urgency (defaults to date.today())
        limit: Keep only the first `limit` results after sorting

    Returns:
        RankedResult in final order; never raises for empty input.
    """
    settings = settings or get_settings()
    weights = weights or settings.weights
    reference_date = reference_date or date.today()
    limit = limit if limit is not None else settings.search.default_limit
    start_time = time.time()

    tasks = unique_by_id(corpus)
    survivors = [task for task in tasks if matches_filters(task, intent, settings)]

    scored = []
    for task in survivors:
        breakdown = score_task(task, intent, weights, settings, reference_date)
        scored.append(ScoredCandidate(task=task, score=breakdown.composite, breakdown=breakdown))

    ordered = sort_candidates(scored, settings)
    if limit is not None:
        ordered = ordered[:limit]

    duration = time.time() - start_time
    record_search(duration, len(ordered), query=intent.original_query)
    logger.info(
        "search_completed",
        total_considered=len(tasks),
        filtered_count=len(survivors),
        results_count=len(ordered),
        filters=intent.applied_filters(),
        keywords=list(intent.expanded_keywords),
        latency_ms=int(duration * 1000),
    )

    return RankedResult(
        candidates=tuple(ordered),
        applied_filters=intent.applied_filters(),
        total_considered=len(tasks),
    )
