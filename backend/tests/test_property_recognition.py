"""
Unit tests for property recognition and the merged lexicon.

Tests verify:
- Compact markers (p:, s:, d:, f:, t:, p1, #tag) are recognized
- Bare multilingual terms are matched longest-first
- Compact values win over bare terms of the same category
- Range, folder and tag phrases are recognized
- Recognized tokens are removed from the residual text
"""
from datetime import date

import pytest

from taskrank.core.config import build_settings
from taskrank.core.errors import ConfigurationError
from taskrank.services.search.property_recognition import recognize
from taskrank.services.search.terms import (
    DUE_DATE,
    PRIORITY,
    STATUS,
    TermMatch,
    build_lexicon,
    normalize_time_label,
)


@pytest.fixture
def lexicon(settings):
    return settings.lexicon


class TestLexicon:
    """Test the merged term lookup."""

    def test_multi_word_terms_are_merged(self, lexicon):
        assert lexicon.lookup_term("no priority") == TermMatch(PRIORITY, "none")
        assert lexicon.lookup_term("next week") == TermMatch(DUE_DATE, "next_week")
        assert lexicon.lookup_term("下周") == TermMatch(DUE_DATE, "next_week")
        assert lexicon.lookup_term("nästa vecka") == TermMatch(DUE_DATE, "next_week")

    def test_status_resolution(self, lexicon):
        assert lexicon.resolve_status("x") == "completed"
        assert lexicon.resolve_status("/") == "in_progress"
        assert lexicon.resolve_status(" ") == "open"
        assert lexicon.resolve_status("Done") == "completed"
        assert lexicon.resolve_status("已完成") == "completed"
        assert lexicon.resolve_status("status") is None
        assert lexicon.resolve_status("whatever") is None

    def test_user_terms_win_over_builtins(self):
        lexicon = build_lexicon(
            {"4": ["high"]},
            {},
            {},
            {"open": [" "], "completed": ["x"]},
        )
        assert lexicon.lookup_term("high") == TermMatch(PRIORITY, "4")

    def test_unknown_user_term_key_raises(self):
        with pytest.raises(ConfigurationError):
            build_lexicon({"urgent": ["asap"]}, {}, {}, {"open": [" "]})

    def test_conflicting_status_alias_raises(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_lexicon({}, {}, {}, {"open": ["x"], "completed": ["x"]})
        assert exc_info.value.field == "status_categories"

    def test_terms_for_category(self, lexicon):
        terms = lexicon.terms_for(STATUS)
        assert "done" in terms["completed"]
        assert "open" in terms["open"]

    @pytest.mark.parametrize("raw,expected", [
        ("today", "today"),
        ("next-week", "next_week"),
        ("thisWeek", "this_week"),
        ("week", "this_week"),
        ("late", "overdue"),
        ("someday", None),
        (None, None),
    ])
    def test_normalize_time_label(self, raw, expected):
        assert normalize_time_label(raw) == expected


class TestCompactSyntax:
    """Test compact marker recognition."""

    def test_priority_and_status_markers(self, lexicon):
        tokens = recognize("s:open p:1,2 report", lexicon)

        assert tokens.priority.values == ("1", "2")
        assert tokens.priority.compact
        assert tokens.priority.kind == "set"
        assert tokens.status.values == ("open",)
        assert tokens.residual_text == "report"
        assert set(tokens.compact_categories) == {PRIORITY, STATUS}

    def test_marker_values_accept_terms(self, lexicon):
        tokens = recognize("priority:high status:done", lexicon)

        assert tokens.priority.values == ("1",)
        assert tokens.status.values == ("completed",)

    def test_bare_priority_level(self, lexicon):
        tokens = recognize("P2 budget", lexicon)

        assert tokens.priority.values == ("2",)
        assert tokens.residual_text == "budget"

    def test_due_markers(self, lexicon):
        tokens = recognize("d:today,2025-02-10", lexicon)

        assert tokens.due_date.values == ("today", "2025-02-10")
        assert tokens.time_labels == ("today",)

    def test_due_sentinel(self, lexicon):
        tokens = recognize("d:none", lexicon)

        assert tokens.due_date.sentinel == "none"
        assert tokens.due_date.kind == "sentinel"

    def test_folder_and_tags(self, lexicon):
        tokens = recognize("f:Work/Projects #Home t:errand,shop report", lexicon)

        assert tokens.folder == "Work/Projects"
        assert tokens.tags == ("errand", "shop", "home")
        assert tokens.residual_text == "report"

    def test_full_width_colon(self, lexicon):
        tokens = recognize("p：1 设计", lexicon)

        assert tokens.priority.values == ("1",)

    def test_unresolved_marker_value(self, lexicon):
        tokens = recognize("p:urgentish report", lexicon)

        assert tokens.priority.kind == "absent"
        assert tokens.unresolved == ("p:urgentish",)

    def test_compact_wins_over_bare(self, lexicon):
        tokens = recognize("p:3 urgent high", lexicon)

        assert tokens.priority.values == ("3",)
        assert tokens.priority.compact


class TestBareTerms:
    """Test multilingual bare term recognition."""

    def test_bare_level_and_general_term(self, lexicon):
        tokens = recognize("high priority budget", lexicon)

        assert tokens.priority.values == ("1",)
        assert not tokens.priority.compact
        assert tokens.residual_text == "budget"

    def test_general_term_alone_means_all(self, lexicon):
        tokens = recognize("urgent things", lexicon)

        assert tokens.priority.sentinel == "all"

    def test_longest_term_first(self, lexicon):
        tokens = recognize("tasks with no priority", lexicon)

        assert tokens.priority.sentinel == "none"

    def test_status_general_term_is_ignored(self, lexicon):
        tokens = recognize("status of open items", lexicon)

        assert tokens.status.values == ("open",)
        tokens = recognize("status", lexicon)
        assert tokens.status.kind == "absent"

    def test_chinese_query(self, lexicon):
        tokens = recognize("本周的高优先级设计任务", lexicon)

        assert tokens.priority.values == ("1",)
        assert tokens.time_labels == ("this_week",)
        assert tokens.residual_text == "的 设计任务"

    def test_swedish_query(self, lexicon):
        tokens = recognize("uppgifter idag", lexicon)

        assert tokens.time_labels == ("today",)

    def test_time_labels_in_text_order(self, lexicon):
        tokens = recognize("tomorrow or today", lexicon)

        assert tokens.time_labels == ("tomorrow", "today")

    def test_empty_query(self, lexicon):
        tokens = recognize("   ", lexicon)

        assert tokens.residual_text == ""
        assert tokens.priority.kind == "absent"


class TestPhrases:
    """Test range, folder and tag phrases."""

    def test_before_date(self, lexicon):
        tokens = recognize("reports due before 2025-02-01", lexicon)

        assert tokens.due_date_range.end == date(2025, 2, 1)
        assert not tokens.due_date_range.end_inclusive
        assert tokens.due_date_range.start is None

    def test_after_and_before_make_a_window(self, lexicon):
        tokens = recognize("after 2025-01-01 before 2025-01-31", lexicon)

        assert tokens.due_date_range.start == date(2025, 1, 2)
        assert tokens.due_date_range.end == date(2025, 1, 31)
        assert not tokens.due_date_range.end_inclusive

    def test_from_to(self, lexicon):
        tokens = recognize("from 2025-03-10 to 2025-03-01", lexicon)

        assert tokens.due_date_range.start == date(2025, 3, 1)
        assert tokens.due_date_range.end == date(2025, 3, 10)

    def test_chinese_before(self, lexicon):
        tokens = recognize("2025-02-01之前的报告", lexicon)

        assert tokens.due_date_range.end == date(2025, 2, 1)

    def test_disjoint_window_is_unresolved(self, lexicon):
        tokens = recognize("after 2025-02-01 before 2025-01-01", lexicon)

        assert tokens.due_date_range is None
        assert "date_range:empty" in tokens.unresolved

    def test_impossible_dates_are_unresolved(self, lexicon):
        tokens = recognize("tasks before 2025-02-30", lexicon)

        assert tokens.due_date_range is None
        assert "date_range:before 2025-02-30" in tokens.unresolved
        assert "2025" not in tokens.residual_text

    def test_impossible_range_is_unresolved(self, lexicon):
        tokens = recognize("from 2025-13-01 to 2025-14-01", lexicon)

        assert tokens.due_date_range is None
        assert tokens.unresolved == ("date_range:from 2025-13-01 to 2025-14-01",)

    def test_after_last_representable_day(self, lexicon):
        tokens = recognize("after 9999-12-31", lexicon)

        assert tokens.due_date_range is None
        assert "date_range:after 9999-12-31" in tokens.unresolved

    def test_valid_bound_survives_invalid_one(self, lexicon):
        tokens = recognize("after 2025-01-01 before 2025-02-30", lexicon)

        assert tokens.due_date_range.start == date(2025, 1, 2)
        assert tokens.due_date_range.end is None

    def test_folder_phrase(self, lexicon):
        tokens = recognize('notes in folder "Side Projects"', lexicon)

        assert tokens.folder == "Side Projects"
        assert tokens.residual_text == "notes"

    def test_compact_folder_wins_over_phrase(self, lexicon):
        tokens = recognize("in folder Home f:Work", lexicon)

        assert tokens.folder == "Work"

    def test_tag_phrase(self, lexicon):
        tokens = recognize("ideas tagged with #Garden", lexicon)

        assert tokens.tags == ("garden",)


def test_user_terms_flow_through_settings():
    """User terms configured in settings are recognized as bare terms."""
    settings = build_settings({"property_terms": {"priority": {"1": ["asap"]}}})

    tokens = recognize("asap invoices", settings.lexicon)

    assert tokens.priority.values == ("1",)
