"""
Unit tests for relative-time label conversion.
"""
from datetime import date

import pytest

from taskrank.models.intent import DateRange
from taskrank.services.search.time_context import (
    detect_and_convert,
    detect_label,
    label_to_range,
    resolve_labels,
)

# Monday
REFERENCE = date(2025, 1, 20)


def test_overdue_has_exclusive_end_at_reference_date():
    conversion = detect_and_convert("overdue", REFERENCE)

    assert conversion.matched
    assert conversion.label == "overdue"
    assert conversion.range == DateRange(end=date(2025, 1, 20), end_inclusive=False)
    assert conversion.range.contains(date(2025, 1, 19))
    assert not conversion.range.contains(date(2025, 1, 20))


def test_today_includes_overdue():
    date_range = label_to_range("today", REFERENCE)

    assert date_range.start is None
    assert date_range.contains(date(2025, 1, 20))
    assert date_range.contains(date(2024, 12, 1))
    assert not date_range.contains(date(2025, 1, 21))


def test_tomorrow_and_yesterday():
    assert label_to_range("tomorrow", REFERENCE) == DateRange(end=date(2025, 1, 21))
    assert label_to_range("yesterday", REFERENCE) == DateRange(start=date(2025, 1, 19), end=date(2025, 1, 19))


def test_future_starts_tomorrow():
    date_range = label_to_range("future", REFERENCE)

    assert date_range == DateRange(start=date(2025, 1, 21))
    assert not date_range.contains(REFERENCE)


@pytest.mark.parametrize("label,start,end", [
    ("this_week", date(2025, 1, 20), date(2025, 1, 26)),
    ("last_week", date(2025, 1, 13), date(2025, 1, 19)),
    ("next_week", date(2025, 1, 27), date(2025, 2, 2)),
    ("this_month", date(2025, 1, 1), date(2025, 1, 31)),
    ("last_month", date(2024, 12, 1), date(2024, 12, 31)),
    ("next_month", date(2025, 2, 1), date(2025, 2, 28)),
    ("this_year", date(2025, 1, 1), date(2025, 12, 31)),
    ("next_year", date(2026, 1, 1), date(2026, 12, 31)),
])
def test_period_labels(label, start, end):
    assert label_to_range(label, REFERENCE) == DateRange(start=start, end=end)


def test_week_start_is_configurable():
    # weeks starting on Sunday
    date_range = label_to_range("this_week", REFERENCE, week_start=6)

    assert date_range == DateRange(start=date(2025, 1, 19), end=date(2025, 1, 25))


def test_aliases_are_normalized():
    assert detect_and_convert("next-week", REFERENCE).label == "next_week"
    assert detect_and_convert("thisWeek", REFERENCE).label == "this_week"


def test_unknown_label_is_not_matched():
    conversion = detect_and_convert("someday", REFERENCE)

    assert not conversion.matched
    assert conversion.range is None


def test_unknown_canonical_label_raises():
    with pytest.raises(KeyError):
        label_to_range("fortnight", REFERENCE)


def test_resolve_labels_takes_the_hull():
    combined = resolve_labels(["today", "tomorrow"], REFERENCE)

    assert combined == DateRange(end=date(2025, 1, 21))


def test_resolve_labels_without_known_labels():
    assert resolve_labels(["someday"], REFERENCE) is None


def test_detect_label_in_text(settings):
    assert detect_label("what is due next week", settings.lexicon) == "next_week"
    assert detect_label("budget review", settings.lexicon) is None
