"""
AI-assisted query parser agent.

Responsibilities:
- Ask the completion service for a fixed-shape JSON interpretation of a query
- Validate the answer strictly before using any of it
- Let compact syntax typed by the user override the AI for its category
- Resolve time labels through the time context service, never through the AI

Never raises for service problems: any failure comes back as a
ParserFailure carrying the deterministic intent to use instead.
"""
import asyncio
import json
from datetime import date
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from taskrank.core.config import Settings, get_settings
from taskrank.core.errors import (
    PARSE_REMEDIATION,
    TRANSPORT_REMEDIATION,
    CompletionTransportFailure,
    ErrorKind,
    StructuredError,
)
from taskrank.core.logging import get_logger
from taskrank.core.metrics import record_llm_schema_validation_failure
from taskrank.models.intent import PriorityFilter, QueryIntent
from taskrank.services.ai.llm_client import JSON_OBJECT, CompletionClient, ModelContext
from taskrank.services.ai.schema import AIQueryAnswer, Malformed, decode_query_answer
from taskrank.services.search.property_recognition import FOLDER, TAGS, RecognizedTokens, recognize
from taskrank.services.search.query_parser import (
    correct_query,
    normalize_search_text,
    parse_local,
    priority_filter_from,
    resolve_due,
)
from taskrank.services.search.terms import DUE_DATE, PRIORITY, STATUS, TIME_LABELS, normalize_time_label

logger = get_logger(__name__)

AGENT = "query_parser"
STAGE = "ai_parse"


class ParserFailure(BaseModel):
    """Why the AI parse failed, plus the deterministic intent to use instead."""
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    message: str
    fallback_intent: QueryIntent

    def to_error(self) -> StructuredError:
        remediation = TRANSPORT_REMEDIATION if self.kind == ErrorKind.COMPLETION_TRANSPORT_FAILURE else PARSE_REMEDIATION
        return StructuredError(
            kind=self.kind,
            stage=STAGE,
            message=self.message,
            remediation=list(remediation),
            fallback_used=True,
        )


class AIParseResult(BaseModel):
    """Either `intent` (success) or `failure` is set, never both."""
    model_config = ConfigDict(frozen=True)

    intent: Optional[QueryIntent] = None
    failure: Optional[ParserFailure] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def effective_intent(self) -> QueryIntent:
        return self.intent if self.failure is None else self.failure.fallback_intent


def build_system_prompt(settings: Settings) -> str:
    categories = ", ".join(settings.status_categories)
    labels = ", ".join(TIME_LABELS)
    languages = ", ".join(settings.query_languages)
    per_keyword = settings.bounds.max_expansions_per_keyword
    return (
        "You interpret search queries over a personal task list.\n"
        "You MUST respond with a single JSON object only, with exactly these keys:\n"
        '{"coreKeywords": [string], "keywords": [string], '
        '"priority": [1-4] | "all" | "none" | null, '
        '"dueDate": "YYYY-MM-DD" | [string] | "all" | "none" | null, '
        '"timeLabel": string | null, "status": [string], "folder": string | null, '
        '"tags": [string], "isVague": true|false, "language": string, '
        '"confidence": 0.0-1.0}\n'
        "Rules:\n"
        "- coreKeywords: the meaningful content words of the query, lowercase, without "
        "filler words or property words.\n"
        f"- keywords: synonyms and translations of the core keywords in these languages: {languages}; "
        f"at most {per_keyword} per keyword per language.\n"
        "- priority: 1 is highest, 4 is lowest. \"all\" means any priority, \"none\" means no priority.\n"
        f"- timeLabel: one of {labels}, or null. Only name the label; "
        "NEVER compute or output dates for relative time.\n"
        "- dueDate: only dates written literally in the query, or \"all\"/\"none\".\n"
        f"- status: zero or more of {categories}.\n"
        "- isVague: true when the query names no concrete subject or filter.\n"
        "Do not include any explanation, comments, or extra fields."
    )


def _normalize_keywords(words) -> List[str]:
    normalized: List[str] = []
    for word in words or []:
        word = (word or "").strip().lower()
        if word and word not in normalized:
            normalized.append(word)
    return normalized


def bound_expansions(core: List[str], expansions, per_keyword: int) -> Tuple[str, ...]:
    """
    Core keywords followed by their expansions, at most `per_keyword`
    expansions per core keyword.

    `expansions` is either a flat list (bounded in total) or a mapping of
    core keyword to its expansions (bounded per keyword). Mapping keys that
    are not core keywords are ignored, so the result never holds more than
    `len(core) * (per_keyword + 1)` words.
    """
    expanded = list(core)
    if isinstance(expansions, dict):
        by_keyword: Dict[str, List[str]] = {}
        for key, words in expansions.items():
            by_keyword.setdefault((key or "").strip().lower(), words)
        for keyword in core:
            added = 0
            for word in _normalize_keywords(by_keyword.get(keyword)):
                if added >= per_keyword:
                    break
                if word not in expanded:
                    expanded.append(word)
                    added += 1
        return tuple(expanded)

    budget = per_keyword * max(len(core), 1)
    for word in _normalize_keywords(expansions):
        if budget <= 0:
            break
        if word not in expanded:
            expanded.append(word)
            budget -= 1
    return tuple(expanded)


def _ai_priority(answer: AIQueryAnswer) -> Optional[PriorityFilter]:
    if answer.priority is None:
        return None
    if isinstance(answer.priority, str):
        return PriorityFilter(sentinel=answer.priority)
    levels = [answer.priority] if isinstance(answer.priority, int) else answer.priority
    return PriorityFilter(values=tuple(dict.fromkeys(levels)))


def _ai_due_values(answer: AIQueryAnswer) -> Tuple[Optional[str], List[str]]:
    if answer.due_date in ("all", "none"):
        sentinel, raw = answer.due_date, []
    else:
        sentinel = None
        raw = [answer.due_date] if isinstance(answer.due_date, str) else list(answer.due_date or [])
    values = [normalize_time_label(v) or date.fromisoformat(v).isoformat() for v in raw]
    if answer.time_label:
        values.insert(0, answer.time_label)
    return sentinel, values


def merge_answer(
    query: str,
    answer: AIQueryAnswer,
    tokens: RecognizedTokens,
    settings: Settings,
    reference_date: date,
) -> QueryIntent:
    """Build the final intent from a validated answer and local compact syntax."""
    compact = set(tokens.compact_categories)
    core = _normalize_keywords(answer.core_keywords)
    expanded = bound_expansions(
        core,
        answer.keywords,
        settings.bounds.max_expansions_per_keyword * len(settings.query_languages),
    )

    priority = priority_filter_from(tokens.priority) if PRIORITY in compact else _ai_priority(answer)

    if DUE_DATE in compact:
        due_sentinel, due_values = tokens.due_date.sentinel, list(tokens.due_date.values)
    else:
        due_sentinel, due_values = _ai_due_values(answer)
    due_filter, due_range, time_label = resolve_due(
        due_sentinel, due_values, tokens.due_date_range, reference_date, settings.week_start,
    )

    status = tokens.status.values if STATUS in compact else tuple(answer.status or ())
    folder = tokens.folder if FOLDER in compact else (answer.folder or tokens.folder)
    tags = tokens.tags if TAGS in compact else tuple(_normalize_keywords(answer.tags) or tokens.tags)

    return QueryIntent(
        original_query=query,
        search_text=normalize_search_text(tokens.residual_text) if core else "",
        core_keywords=tuple(core),
        expanded_keywords=expanded,
        priority=priority,
        due_date=due_filter,
        due_date_range=due_range,
        time_label=time_label,
        status=status,
        folder=folder,
        tags=tags,
        is_vague=answer.is_vague,
        language=answer.language or settings.default_language,
        confidence=answer.confidence,
        source="ai",
    )


class QueryParserAgent:
    """Query parser backed by the completion service."""

    def __init__(self, client: CompletionClient, settings: Optional[Settings] = None):
        self._client = client
        self._settings = settings or get_settings()

    def _failure(self, kind: ErrorKind, message: str, fallback: QueryIntent) -> AIParseResult:
        return AIParseResult(failure=ParserFailure(kind=kind, message=message, fallback_intent=fallback))

    async def parse(
        self,
        query: str,
        context: ModelContext,
        reference_date: Optional[date] = None,
    ) -> AIParseResult:
        settings = self._settings
        reference_date = reference_date or date.today()
        fallback = parse_local(query, settings, reference_date)

        if not query or not query.strip():
            return AIParseResult(intent=fallback)

        user_content = json.dumps(
            {"query": query, "today": reference_date.isoformat()},
            ensure_ascii=False,
        )
        parse_context = context.model_copy(update={"max_tokens": settings.ai.parse_max_tokens})
        try:
            raw = await asyncio.wait_for(
                self._client.complete(
                    build_system_prompt(settings),
                    user_content,
                    JSON_OBJECT,
                    parse_context,
                    agent=AGENT,
                ),
                timeout=settings.ai.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("query_parse_ai_timeout", timeout_seconds=settings.ai.timeout_seconds)
            return self._failure(
                ErrorKind.COMPLETION_TRANSPORT_FAILURE,
                f"Completion service did not answer within {settings.ai.timeout_seconds}s",
                fallback,
            )
        except CompletionTransportFailure as exc:
            logger.warning("query_parse_ai_transport_failed", error=str(exc), reason=exc.reason)
            return self._failure(ErrorKind.COMPLETION_TRANSPORT_FAILURE, str(exc), fallback)
        except Exception as exc:
            logger.error(
                "query_parse_ai_unexpected_error",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return self._failure(ErrorKind.COMPLETION_TRANSPORT_FAILURE, str(exc), fallback)

        decoded = decode_query_answer(raw, settings.resolve_status)
        if isinstance(decoded, Malformed):
            record_llm_schema_validation_failure(AGENT)
            logger.warning("query_parse_ai_malformed", reason=decoded.reason)
            return self._failure(ErrorKind.PARSER_FAILURE, f"Malformed AI answer: {decoded.reason}", fallback)

        tokens = recognize(correct_query(query, settings), settings.lexicon)
        try:
            intent = merge_answer(query, decoded.answer, tokens, settings, reference_date)
        except ValueError as exc:
            record_llm_schema_validation_failure(AGENT)
            logger.warning("query_parse_ai_inconsistent", error=str(exc))
            return self._failure(ErrorKind.PARSER_FAILURE, f"Inconsistent AI answer: {exc}", fallback)

        logger.info(
            "query_parse_ai_completed",
            keywords=list(intent.core_keywords),
            expanded_count=len(intent.expanded_keywords),
            filters=intent.applied_filters(),
            is_vague=intent.is_vague,
            confidence=intent.confidence,
            compact_overrides=list(tokens.compact_categories),
        )
        return AIParseResult(intent=intent)


async def parse_with_ai(
    query: str,
    settings: Optional[Settings],
    client: CompletionClient,
    context: ModelContext,
    reference_date: Optional[date] = None,
) -> AIParseResult:
    """Parse a query with the completion service, falling back to parse_local."""
    agent = QueryParserAgent(client, settings)
    return await agent.parse(query, context, reference_date)
