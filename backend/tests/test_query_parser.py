"""
Unit tests for the deterministic query parser.
"""
from datetime import date

import pytest

from taskrank.models.intent import DateRange, DueDateFilter, PriorityFilter, QueryIntent
from taskrank.services.search.query_parser import (
    VAGUE_CONFIDENCE,
    normalize_search_text,
    parse_local,
    resolve_due,
)


def test_compact_filters_without_keywords(settings, reference_date):
    intent = parse_local("s:open p:1,2", settings, reference_date)

    assert intent.priority == PriorityFilter(values=(1, 2))
    assert intent.status == ("open",)
    assert intent.core_keywords == ()
    assert intent.search_text == ""
    assert not intent.is_vague
    assert intent.confidence == 1.0
    assert intent.source == "local"


def test_keywords_and_time_label(settings, reference_date):
    intent = parse_local("Design review due today", settings, reference_date)

    assert intent.core_keywords == ("design", "review")
    assert intent.expanded_keywords == ("design", "review")
    assert intent.search_text == "design review"
    assert intent.time_label == "today"
    assert intent.due_date_range == DateRange(end=reference_date)
    assert intent.due_date is None


def test_vague_query(settings, reference_date):
    intent = parse_local("show me my tasks", settings, reference_date)

    assert intent.is_vague
    assert intent.confidence == VAGUE_CONFIDENCE
    assert not intent.has_filters()


def test_filters_only_query_is_not_vague(settings, reference_date):
    intent = parse_local("overdue", settings, reference_date)

    assert not intent.is_vague
    assert intent.due_date_range == DateRange(end=reference_date, end_inclusive=False)


def test_explicit_date_becomes_date_filter(settings, reference_date):
    intent = parse_local("d:2025-01-25 report", settings, reference_date)

    assert intent.due_date == DueDateFilter(dates=(date(2025, 1, 25),))
    assert intent.due_date_range is None


def test_due_sentinels(settings, reference_date):
    assert parse_local("d:none", settings, reference_date).due_date == DueDateFilter(sentinel="none")
    assert parse_local("d:all", settings, reference_date).due_date == DueDateFilter(sentinel="all")
    assert parse_local("no due date", settings, reference_date).due_date == DueDateFilter(sentinel="none")


def test_priority_sentinels(settings, reference_date):
    assert parse_local("p:none", settings, reference_date).priority == PriorityFilter(sentinel="none")
    assert parse_local("important", settings, reference_date).priority == PriorityFilter(sentinel="all")


def test_label_and_date_combine_into_range(settings, reference_date):
    intent = parse_local("d:today,2025-02-10", settings, reference_date)

    assert intent.due_date_range == DateRange(end=date(2025, 2, 10))
    assert intent.time_label == "today"


def test_chinese_query(settings, reference_date):
    intent = parse_local("本周的高优先级设计任务", settings, reference_date)

    assert intent.core_keywords == ("设计",)
    assert intent.priority == PriorityFilter(values=(1,))
    assert intent.time_label == "this_week"
    assert intent.due_date_range == DateRange(start=date(2025, 1, 20), end=date(2025, 1, 26))
    assert intent.language == "zh"


def test_folder_and_tags(settings, reference_date):
    intent = parse_local("f:Work #errand receipts", settings, reference_date)

    assert intent.folder == "Work"
    assert intent.tags == ("errand",)
    assert intent.core_keywords == ("receipts",)
    assert intent.applied_filters() == {"folder": "Work", "tags": ["errand"]}


def test_empty_query(settings, reference_date):
    intent = parse_local("", settings, reference_date)

    assert intent.original_query == ""
    assert intent.is_vague


def test_parse_is_deterministic(settings, reference_date):
    query = "urgent budget report due next week #finance"

    assert parse_local(query, settings, reference_date) == parse_local(query, settings, reference_date)


def test_resolve_due_none_wins(reference_date):
    due_filter, due_range, label = resolve_due("none", ["today"], None, reference_date)

    assert due_filter == DueDateFilter(sentinel="none")
    assert due_range is None
    assert label is None


def test_resolve_due_all_only_without_specifics(reference_date):
    due_filter, due_range, _ = resolve_due("all", ["tomorrow"], None, reference_date)

    assert due_filter is None
    assert due_range == DateRange(end=date(2025, 1, 21))


def test_normalize_search_text():
    assert normalize_search_text("  Budget   Report? ") == "budget report"


def test_intent_rejects_filter_and_range_together():
    with pytest.raises(ValueError):
        QueryIntent(
            original_query="x",
            due_date=DueDateFilter(sentinel="all"),
            due_date_range=DateRange(end=date(2025, 1, 1)),
        )


def test_intent_requires_core_keywords_in_expansion():
    with pytest.raises(ValueError):
        QueryIntent(original_query="x", core_keywords=("a",), expanded_keywords=("b",))


@pytest.mark.parametrize("query", [
    "tasks before 2025-02-30",
    "from 2025-13-01 to 2025-14-01",
    "after 9999-12-31",
])
def test_impossible_dates_do_not_fail_the_parse(settings, reference_date, query):
    intent = parse_local(query, settings, reference_date)

    assert intent.due_date_range is None
    assert not any(keyword[0].isdigit() for keyword in intent.core_keywords)
