"""
Multi-criteria ordering of scored candidates.

Order: composite score descending, then the configured tie-break chain,
then task identifier ascending. Identifiers are unique within a snapshot, so
the order is total and no two distinct candidates ever compare equal.

Tie-break criteria:
- priority: 1 before 4, no priority last
- due_date: earliest first, no due date last
- created: newest first, no creation date last
- status: configured status category order, unknown status last
- alphabetical: task text, case-insensitive
- relevance: relevance points descending
"""
from functools import cmp_to_key
from typing import Callable, Dict, List, Optional, Sequence

from taskrank.core.config import Settings
from taskrank.models.results import ScoredCandidate

Comparator = Callable[[ScoredCandidate, ScoredCandidate], int]


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def _cmp_missing_last(a, b, descending: bool = False) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return _cmp(b, a) if descending else _cmp(a, b)


def _status_rank(settings: Settings) -> Callable[[str], int]:
    order = {category: i for i, category in enumerate(settings.status_categories)}
    unknown = len(order)

    def rank(status: str) -> int:
        category = settings.resolve_status(status)
        return order.get(category, unknown) if category is not None else unknown

    return rank


def build_tie_breakers(settings: Settings) -> List[Comparator]:
    status_rank = _status_rank(settings)
    criteria: Dict[str, Comparator] = {
        "priority": lambda a, b: _cmp_missing_last(a.task.priority, b.task.priority),
        "due_date": lambda a, b: _cmp_missing_last(a.task.due_date, b.task.due_date),
        "created": lambda a, b: _cmp_missing_last(a.task.created_date, b.task.created_date, descending=True),
        "status": lambda a, b: _cmp(status_rank(a.task.status), status_rank(b.task.status)),
        "alphabetical": lambda a, b: _cmp(a.task.text.casefold(), b.task.text.casefold()),
        "relevance": lambda a, b: _cmp(b.breakdown.relevance, a.breakdown.relevance),
    }
    return [criteria[name] for name in settings.tie_break]


def sort_candidates(
    candidates: Sequence[ScoredCandidate],
    settings: Settings,
    tie_breakers: Optional[List[Comparator]] = None,
) -> List[ScoredCandidate]:
    """Sort candidates into their final, total order."""
    chain = tie_breakers if tie_breakers is not None else build_tie_breakers(settings)

    def compare(a: ScoredCandidate, b: ScoredCandidate) -> int:
        result = _cmp(b.score, a.score)
        if result:
            return result
        for criterion in chain:
            result = criterion(a, b)
            if result:
                return result
        return _cmp(a.task.id, b.task.id)

    return sorted(candidates, key=cmp_to_key(compare))
