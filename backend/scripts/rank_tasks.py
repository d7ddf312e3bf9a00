"""
Rank tasks from a JSON corpus file against a natural-language query.

Usage: python scripts/rank_tasks.py tasks.json "urgent design tasks this week" [--date=2025-01-20] [--ai]

The corpus file holds a JSON list of task objects
({"id", "text", "status", "priority", "due_date", "created_date", "folder", "tags"}),
or an object with an "items" list. The deterministic path is used unless --ai
is given.
"""
import argparse
import asyncio
import json
import sys
from datetime import date
from pathlib import Path
from typing import List

sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import TypeAdapter, ValidationError

from taskrank.core.config import load_settings
from taskrank.core.errors import ConfigurationError
from taskrank.core.logging import configure_logging, get_logger
from taskrank.models.responses import RankResponse
from taskrank.models.results import PipelineResult
from taskrank.models.task import Task
from taskrank.services.ai.llm_client import HttpCompletionClient
from taskrank.services.pipeline import QuerySession, StaticCorpusProvider

logger = get_logger(__name__)


def load_corpus(path: Path) -> List[Task]:
    """Load and validate tasks from a JSON file."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("items", [])
    return TypeAdapter(List[Task]).validate_python(data)


def print_result(result: PipelineResult) -> None:
    intent = result.intent
    print(f"Query: {intent.original_query}")
    print(f"Keywords: {', '.join(intent.core_keywords) or '-'}")
    filters = intent.applied_filters()
    if filters:
        print(f"Filters: {json.dumps(filters, ensure_ascii=False, default=str)}")
    print(f"Matched {len(result.ranked.candidates)} of {result.ranked.total_considered} tasks\n")

    for position, candidate in enumerate(result.ranked.candidates, start=1):
        task = candidate.task
        due = task.due_date.isoformat() if task.due_date else "-"
        priority = task.priority if task.priority is not None else "-"
        print(f"{position:>3}. [{candidate.score:>10.4f}] {task.id}: {task.text}  (p{priority}, due {due})")

    selection = result.selection
    print(f"\nRecommended ({selection.source}): {', '.join(c.task.id for c in selection.candidates) or '-'}")
    if selection.answer_text:
        print(f"\n{selection.answer_text}")
    for error in result.errors:
        print(f"\n! {error.stage}: {error.kind.value}: {error.message}", file=sys.stderr)
        for hint in error.remediation:
            print(f"  - {hint}", file=sys.stderr)


async def run(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        corpus = load_corpus(Path(args.corpus))
    except (OSError, ValueError, ValidationError) as e:
        print(f"Could not load corpus {args.corpus}: {e}", file=sys.stderr)
        return 2

    client = None
    if args.ai:
        client = HttpCompletionClient(
            api_base=settings.ai.api_base,
            api_key=settings.ai.api_key,
            timeout_seconds=settings.ai.timeout_seconds,
        )

    session = QuerySession(StaticCorpusProvider(corpus), settings=settings, client=client)
    result = await session.submit(
        args.query,
        reference_date=date.fromisoformat(args.date) if args.date else None,
        use_ai=args.ai,
        limit=args.limit,
    )

    if args.json:
        print(RankResponse.from_pipeline(result).model_dump_json(indent=2))
    else:
        print_result(result)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Rank tasks against a natural-language query")
    parser.add_argument("corpus", help="Path to a JSON file with the tasks")
    parser.add_argument("query", help="Query, e.g. \"p:1,2 s:open report\"")
    parser.add_argument("--date", default=None, help="Reference date YYYY-MM-DD (default: today)")
    parser.add_argument("--ai", action="store_true", help="Use the completion service for parsing and prioritization")
    parser.add_argument("--config", default=None, help="Settings JSON file (default: $TASKRANK_CONFIG_PATH)")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of ranked results")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    args = parser.parse_args()

    configure_logging(log_level=args.log_level, json_output=False)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
