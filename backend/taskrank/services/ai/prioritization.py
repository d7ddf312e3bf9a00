"""
Prioritization orchestrator.

Sends the top ranked candidates to the completion service under call-scoped
identifiers (CANDIDATE_1, CANDIDATE_2, ...) and resolves the answer back to
candidates by identifier only. When no identifier can be found, or the
service fails, the deterministic top-K of the ranking is used instead.
Candidate text is never fuzzy-matched against the answer.
"""
import asyncio
import re
from typing import List, Optional, Sequence

from taskrank.core.config import Settings, get_settings
from taskrank.core.errors import (
    EXTRACTION_REMEDIATION,
    CompletionTransportFailure,
    ErrorKind,
    StructuredError,
    transport_error,
)
from taskrank.core.logging import get_logger
from taskrank.core.metrics import record_pipeline_fallback
from taskrank.models.results import FinalSelection, ScoredCandidate
from taskrank.services.ai.llm_client import CompletionClient, ModelContext

logger = get_logger(__name__)

AGENT = "prioritizer"
STAGE = "ai_prioritize"
IDENTIFIER_PREFIX = "CANDIDATE_"
IDENTIFIER_RE = re.compile(r"CANDIDATE_(\d+)(?!\d)")

SYSTEM_PROMPT = (
    "You help a user decide which of their tasks to work on.\n"
    "You are given the user's query and a numbered list of candidate tasks, already "
    "filtered and ranked. Choose the tasks that best answer the query, most important first.\n"
    "Refer to tasks ONLY by their identifier (for example CANDIDATE_3). "
    "Never copy or paraphrase task text to identify a task.\n"
    "Briefly explain your recommendation, mentioning the identifiers you chose."
)


def identifier(index: int) -> str:
    return f"{IDENTIFIER_PREFIX}{index}"


def describe_candidate(index: int, candidate: ScoredCandidate) -> str:
    task = candidate.task
    parts = [f"{identifier(index)}: {task.text}", f"status: {task.status.strip() or 'open'}"]
    if task.priority is not None:
        parts.append(f"priority: {task.priority}")
    if task.due_date is not None:
        parts.append(f"due: {task.due_date.isoformat()}")
    if task.folder:
        parts.append(f"folder: {task.folder}")
    if task.tags:
        parts.append("tags: " + ", ".join(f"#{t}" for t in task.tags))
    return " | ".join(parts)


def build_user_content(query: str, candidates: Sequence[ScoredCandidate]) -> str:
    lines = [f"Query: {query}", "", "Candidates:"]
    lines += [describe_candidate(i, c) for i, c in enumerate(candidates, start=1)]
    return "\n".join(lines)


def extract_candidate_numbers(answer_text: str, candidate_count: int) -> List[int]:
    """
    Candidate numbers referenced in an answer, in first-appearance order.

    Repeated references are kept once; numbers outside 1..candidate_count
    are ignored.
    """
    numbers: List[int] = []
    for m in IDENTIFIER_RE.finditer(answer_text or ""):
        number = int(m.group(1))
        if 1 <= number <= candidate_count and number not in numbers:
            numbers.append(number)
    return numbers


def top_k(candidates: Sequence[ScoredCandidate], k: int) -> FinalSelection:
    return FinalSelection(candidates=tuple(candidates[:k]), source="fallback_top_k")


class PrioritizationOrchestrator:
    """AI choice among ranked candidates with a deterministic top-K fallback."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def _fallback(
        self,
        candidates: Sequence[ScoredCandidate],
        error: StructuredError,
        answer_text: Optional[str] = None,
    ) -> FinalSelection:
        record_pipeline_fallback(STAGE, error.kind.value)
        logger.info(
            "prioritization_fallback_top_k",
            kind=error.kind.value,
            k=self._settings.bounds.fallback_top_k,
        )
        return FinalSelection(
            candidates=tuple(candidates[:self._settings.bounds.fallback_top_k]),
            source="fallback_top_k",
            answer_text=answer_text,
            error=error,
        )

    async def prioritize(
        self,
        ranked_candidates: Sequence[ScoredCandidate],
        query: str,
        client: CompletionClient,
        context: ModelContext,
        max_candidates_to_ai: Optional[int] = None,
    ) -> FinalSelection:
        """
        Let the completion service choose among the ranked candidates.

        Args:
            ranked_candidates: Candidates in final ranked order
            query: Raw user query
            client: Completion client
            context: Model selection for this call
            max_candidates_to_ai: Truncation bound (defaults from settings)

        Returns:
            FinalSelection with source "ai", or "fallback_top_k" plus a
            StructuredError when the answer could not be used.
        """
        settings = self._settings
        limit = max_candidates_to_ai or settings.bounds.max_candidates_to_ai
        sent = list(ranked_candidates[:limit])
        if not sent:
            return top_k(sent, settings.bounds.fallback_top_k)

        try:
            answer = await asyncio.wait_for(
                client.complete(
                    SYSTEM_PROMPT,
                    build_user_content(query, sent),
                    None,
                    context,
                    agent=AGENT,
                ),
                timeout=settings.ai.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning("prioritization_timeout", timeout_seconds=settings.ai.timeout_seconds)
            return self._fallback(
                ranked_candidates,
                transport_error(STAGE, f"Completion service did not answer within {settings.ai.timeout_seconds}s"),
            )
        except CompletionTransportFailure as exc:
            logger.warning("prioritization_transport_failed", error=str(exc), reason=exc.reason)
            return self._fallback(ranked_candidates, transport_error(STAGE, str(exc)))
        except Exception as exc:
            logger.error(
                "prioritization_unexpected_error",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return self._fallback(ranked_candidates, transport_error(STAGE, str(exc)))

        numbers = extract_candidate_numbers(answer, len(sent))
        if not numbers:
            logger.warning("prioritization_no_identifiers", answer_length=len(answer or ""))
            error = StructuredError(
                kind=ErrorKind.EXTRACTION_FAILURE,
                stage=STAGE,
                message="AI answer referenced no known candidate identifiers",
                remediation=list(EXTRACTION_REMEDIATION),
                fallback_used=True,
            )
            return self._fallback(ranked_candidates, error, answer_text=answer)

        selection = tuple(sent[n - 1] for n in numbers[:settings.bounds.max_recommendations])
        logger.info(
            "prioritization_completed",
            sent_count=len(sent),
            selected_count=len(selection),
            selected_ids=[c.task.id for c in selection],
        )
        return FinalSelection(candidates=selection, source="ai", answer_text=answer)


async def prioritize(
    ranked_candidates: Sequence[ScoredCandidate],
    query: str,
    client: CompletionClient,
    context: ModelContext,
    max_candidates_to_ai: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> FinalSelection:
    return await PrioritizationOrchestrator(settings).prioritize(
        ranked_candidates, query, client, context, max_candidates_to_ai,
    )
