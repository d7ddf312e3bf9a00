"""
Per-query pipeline.

Received -> LocallyParsed -> {AIParsing | SkippedAI} -> FilteredScored
         -> {AIPrioritized | FallbackTopK} -> Delivered

Each submitted query gets a monotonically increasing sequence number and an
immutable snapshot of the corpus. A query that is superseded by a newer one
while it waits on the completion service skips the remaining AI work and is
never published as the latest result. Delivered always carries a ranking and
a selection; degraded stages are listed in `errors`.
"""
from datetime import date
from typing import List, Optional, Protocol, Sequence, Tuple

from taskrank.core.config import RankingWeights, Settings, get_settings
from taskrank.core.errors import StructuredError
from taskrank.core.logging import get_logger, set_query_seq
from taskrank.core.metrics import record_pipeline_fallback, record_stale_result
from taskrank.models.intent import QueryIntent
from taskrank.models.results import FinalSelection, PipelineResult, PipelineStage
from taskrank.models.task import Task
from taskrank.services.ai.agents.query_parser import parse_with_ai
from taskrank.services.ai.llm_client import CompletionClient, ModelContext
from taskrank.services.ai.prioritization import PrioritizationOrchestrator, top_k
from taskrank.services.search.query_parser import parse_local
from taskrank.services.search.task_search import search

logger = get_logger(__name__)


class CorpusProvider(Protocol):
    def list_items(self) -> Sequence[Task]:
        ...


class StaticCorpusProvider:
    """In-memory corpus; `replace` swaps in a new list for later queries."""

    def __init__(self, items: Sequence[Task] = ()):
        self._items: Tuple[Task, ...] = tuple(items)

    def list_items(self) -> Sequence[Task]:
        return self._items

    def replace(self, items: Sequence[Task]) -> None:
        self._items = tuple(items)


class QuerySession:
    """
    Runs queries against one corpus provider.

    Args:
        corpus_provider: Source of tasks, read once per query
        settings: Settings for every stage (defaults to get_settings())
        client: Completion client; AI stages are skipped without one
        context: Model selection passed to every AI call
    """

    def __init__(
        self,
        corpus_provider: CorpusProvider,
        settings: Optional[Settings] = None,
        client: Optional[CompletionClient] = None,
        context: Optional[ModelContext] = None,
    ):
        self.corpus_provider = corpus_provider
        self.settings = settings or get_settings()
        self.client = client
        self.context = context or ModelContext.from_settings(self.settings.ai)
        self.latest: Optional[PipelineResult] = None
        self._sequence = 0

    @property
    def current_sequence(self) -> int:
        return self._sequence

    def is_current(self, sequence: int) -> bool:
        return sequence == self._sequence

    def _ai_enabled(self, use_ai: Optional[bool]) -> bool:
        enabled = self.settings.ai.enabled if use_ai is None else use_ai
        return enabled and self.client is not None

    async def submit(
        self,
        query: str,
        reference_date: Optional[date] = None,
        use_ai: Optional[bool] = None,
        weights: Optional[RankingWeights] = None,
        limit: Optional[int] = None,
    ) -> PipelineResult:
        """
        Run one query through every stage.

        Returns:
            The delivered result. It is also stored as `latest` unless a newer
            query was submitted in the meantime, in which case it comes back
            with `superseded=True`.

        Raises:
            ConfigurationError: if the settings are malformed.
        """
        self._sequence += 1
        sequence = self._sequence
        set_query_seq(sequence)
        try:
            return await self._run(sequence, query, reference_date or date.today(), use_ai, weights, limit)
        finally:
            set_query_seq(None)

    async def _run(
        self,
        sequence: int,
        query: str,
        reference_date: date,
        use_ai: Optional[bool],
        weights: Optional[RankingWeights],
        limit: Optional[int],
    ) -> PipelineResult:
        settings = self.settings
        snapshot: Tuple[Task, ...] = tuple(self.corpus_provider.list_items())
        stages: List[PipelineStage] = [PipelineStage.RECEIVED]
        errors: List[StructuredError] = []
        ai_enabled = self._ai_enabled(use_ai)
        logger.info("pipeline_received", corpus_size=len(snapshot), ai_enabled=ai_enabled)

        intent: QueryIntent = parse_local(query, settings, reference_date)
        stages.append(PipelineStage.LOCALLY_PARSED)

        if ai_enabled:
            stages.append(PipelineStage.AI_PARSING)
            parsed = await parse_with_ai(query, settings, self.client, self.context, reference_date)
            if parsed.failure is not None:
                errors.append(parsed.failure.to_error())
                record_pipeline_fallback("ai_parse", parsed.failure.kind.value)
            intent = parsed.effective_intent
        else:
            stages.append(PipelineStage.SKIPPED_AI)

        ranked = search(snapshot, intent, weights or settings.weights, settings, reference_date, limit)
        stages.append(PipelineStage.FILTERED_SCORED)

        superseded = not self.is_current(sequence)
        selection: FinalSelection
        if ai_enabled and not superseded and ranked.candidates:
            selection = await PrioritizationOrchestrator(settings).prioritize(
                ranked.candidates, query, self.client, self.context,
            )
            if selection.error is not None:
                errors.append(selection.error)
        else:
            selection = top_k(ranked.candidates, settings.bounds.fallback_top_k)
        stages.append(PipelineStage.AI_PRIORITIZED if selection.ai_selected else PipelineStage.FALLBACK_TOP_K)
        stages.append(PipelineStage.DELIVERED)

        superseded = not self.is_current(sequence)
        result = PipelineResult(
            sequence=sequence,
            intent=intent,
            ranked=ranked,
            selection=selection,
            stages=tuple(stages),
            errors=tuple(errors),
            superseded=superseded,
        )

        if superseded:
            record_stale_result()
            logger.info("pipeline_result_superseded", latest_sequence=self._sequence)
        else:
            self.latest = result
        logger.info(
            "pipeline_delivered",
            stages=[s.value for s in stages],
            results_count=len(ranked.candidates),
            selection_source=selection.source,
            degraded_stages=[e.stage for e in errors],
        )
        return result
