"""
Deterministic query parser.

typo correction -> recognition -> keyword extraction -> time resolution -> QueryIntent

Pure: the same query, settings and reference date always give the same
intent. The AI-assisted parser falls back to this one on any failure.
"""
import string
from datetime import date
from typing import Iterable, Optional, Tuple

from taskrank.core.config import Settings, get_settings
from taskrank.core.logging import get_logger
from taskrank.models.intent import DateRange, DueDateFilter, PriorityFilter, QueryIntent
from taskrank.services.search.keyword_extraction import detect_language, extract
from taskrank.services.search.property_recognition import CategoryMatch, RecognizedTokens, recognize
from taskrank.services.search.terms import TIME_LABELS
from taskrank.services.search.text import collapse_whitespace
from taskrank.services.search.time_context import resolve_labels

logger = get_logger(__name__)

_EDGE_PUNCTUATION = string.punctuation + "？。！，：；、"

VAGUE_CONFIDENCE = 0.5


def priority_filter_from(match: CategoryMatch) -> Optional[PriorityFilter]:
    if match.sentinel is not None:
        return PriorityFilter(sentinel=match.sentinel)
    levels = tuple(int(v) for v in match.values)
    return PriorityFilter(values=levels) if levels else None


def resolve_due(
    sentinel: Optional[str],
    values: Iterable[str],
    explicit_range: Optional[DateRange],
    reference_date: date,
    week_start: int = 0,
) -> Tuple[Optional[DueDateFilter], Optional[DateRange], Optional[str]]:
    """
    Turn recognized due-date values into a filter or a range.

    Values are canonical time labels or ISO dates. Labels and range phrases
    produce a range (the hull when there are several); plain dates alone
    produce a date filter. "none" wins over everything, "all" only applies
    when nothing more specific was found.

    Returns:
        (due_date_filter, due_date_range, time_label); at most one of the
        first two is set.
    """
    if sentinel == "none":
        return DueDateFilter(sentinel="none"), None, None

    values = list(values)
    labels = [v for v in values if v in TIME_LABELS]
    dates = tuple(sorted({date.fromisoformat(v) for v in values if v not in TIME_LABELS}))

    if labels or explicit_range is not None:
        combined = resolve_labels(labels, reference_date, week_start)
        for extra in [explicit_range, *(DateRange(start=d, end=d) for d in dates)]:
            if extra is not None:
                combined = extra if combined is None else combined.hull(extra)
        return None, combined, (labels[0] if labels else None)

    if dates:
        return DueDateFilter(dates=dates), None, None
    if sentinel == "all":
        return DueDateFilter(sentinel="all"), None, None
    return None, None, None


def normalize_search_text(residual_text: str) -> str:
    return collapse_whitespace(residual_text.lower()).strip(_EDGE_PUNCTUATION + " ")


def intent_from_tokens(
    query: str,
    tokens: RecognizedTokens,
    core_keywords: Tuple[str, ...],
    settings: Settings,
    reference_date: date,
) -> QueryIntent:
    due_filter, due_range, time_label = resolve_due(
        tokens.due_date.sentinel,
        tokens.due_date.values,
        tokens.due_date_range,
        reference_date,
        settings.week_start,
    )

    intent_fields = dict(
        original_query=query,
        search_text=normalize_search_text(tokens.residual_text) if core_keywords else "",
        core_keywords=core_keywords,
        expanded_keywords=core_keywords,
        priority=priority_filter_from(tokens.priority),
        due_date=due_filter,
        due_date_range=due_range,
        time_label=time_label,
        status=tokens.status.values,
        folder=tokens.folder,
        tags=tokens.tags,
        language=detect_language(query, settings.default_language),
        source="local",
    )
    draft = QueryIntent(**intent_fields)
    is_vague = not core_keywords and not draft.has_filters()
    return draft.model_copy(update={
        "is_vague": is_vague,
        "confidence": VAGUE_CONFIDENCE if is_vague else 1.0,
    })


def correct_query(query: str, settings: Settings) -> str:
    """Query text with known typos fixed, or the query itself when correction is off."""
    if not settings.spelling.enabled:
        return query
    corrected, _ = settings.speller.correct(query)
    return corrected


def parse_local(
    query: str,
    settings: Optional[Settings] = None,
    reference_date: Optional[date] = None,
) -> QueryIntent:
    """
    Parse a query without any external service.

    Raises:
        ConfigurationError: if the settings are malformed.
    """
    settings = settings or get_settings()
    reference_date = reference_date or date.today()

    text = correct_query(query or "", settings)
    tokens = recognize(text, settings.lexicon)
    core_keywords = tuple(extract(tokens.residual_text, settings.locale, settings.stop_words))
    intent = intent_from_tokens(query or "", tokens, core_keywords, settings, reference_date)

    logger.info(
        "query_parse_local_completed",
        keywords=list(intent.core_keywords),
        filters=intent.applied_filters(),
        is_vague=intent.is_vague,
        language=intent.language,
        unresolved=list(tokens.unresolved),
    )
    return intent
