"""
Unit tests for local typo correction.

Tests verify:
- Known typos are fixed with the original case pattern
- SymSpell corrects towards property terms only when unambiguous and close
- Common words, stop words, short words and tag names are left alone
- The deterministic parser recognizes properties written with typos
"""
import pytest

from taskrank.core.config import build_settings
from taskrank.models.intent import PriorityFilter
from taskrank.services.search.query_parser import correct_query, parse_local
from taskrank.services.search.spell_correction import (
    SpellCorrectionService,
    preserve_case,
    property_vocabulary,
)


@pytest.fixture
def speller(settings):
    return settings.speller


class TestKnownTypos:
    """Test the fixed typo map."""

    @pytest.mark.parametrize("typo,expected", [
        ("priorty", "priority"),
        ("opne", "open"),
        ("urgant", "urgent"),
        ("tommorow", "tomorrow"),
        ("desing", "design"),
    ])
    def test_known_typo(self, speller, typo, expected):
        assert speller.correct_word(typo) == expected

    def test_case_is_preserved(self, speller):
        corrected, corrections = speller.correct("Priorty URGANT opne")

        assert corrected == "Priority URGENT open"
        assert corrections == [("Priorty", "Priority"), ("URGANT", "URGENT"), ("opne", "open")]

    def test_user_typos(self):
        settings = build_settings({"spelling": {"typos": {"Wrk": "work"}}})

        assert correct_query("wrk stuff", settings) == "work stuff"

    def test_preserve_case(self):
        assert preserve_case("ABC", "xyz") == "XYZ"
        assert preserve_case("Abc", "xYZ") == "Xyz"
        assert preserve_case("abc", "XYZ") == "xyz"


class TestSymSpell:
    """Test dictionary lookups against the property vocabulary."""

    def test_vocabulary_holds_property_words(self, settings):
        vocabulary = property_vocabulary(settings.lexicon)

        assert "deadline" in vocabulary
        assert "tomorrow" in vocabulary
        assert "open" not in vocabulary
        assert all(word.isascii() for word in vocabulary)

    def test_one_edit_is_corrected(self, speller):
        assert speller.correct_word("tomorrw") == "tomorrow"
        assert speller.correct_word("Dedline") == "Deadline"

    def test_two_edits_are_below_threshold(self, speller):
        assert speller.correct_word("tmorrw") is None

    def test_ambiguous_suggestion_is_skipped(self, speller):
        # one edit from both "cancelled" and "canceled"
        assert speller.correct_word("cancelld") is None

    def test_common_words_are_kept(self, speller):
        assert speller.correct_word("going") in (None, "going")
        assert speller.correct("what is going on")[0] == "what is going on"

    def test_short_words_skip_lookup(self):
        speller = SpellCorrectionService(["abcd"], min_word_length=5, known_words=())

        assert speller.correct_word("abce") is None

    def test_stop_words_are_kept(self):
        speller = SpellCorrectionService(["deadline"], stop_words=["dedline"], known_words=())

        assert speller.correct_word("dedline") is None

    def test_lookup_disabled_with_zero_distance(self):
        speller = SpellCorrectionService(["deadline"], max_edit_distance=0, known_words=())

        assert speller.correct_word("dedline") is None
        assert speller.correct_word("urgant") == "urgent"


class TestQueryCorrection:
    """Test correction of whole queries."""

    def test_tags_are_not_corrected(self, speller):
        corrected, corrections = speller.correct("#desing desing")

        assert corrected == "#desing design"
        assert corrections == [("desing", "design")]

    def test_non_words_are_kept(self, speller):
        query = "p:1 d:2025-01-20  明天 urgant!"

        assert speller.correct(query)[0] == "p:1 d:2025-01-20  明天 urgent!"

    def test_empty_query(self, speller):
        assert speller.correct("") == ("", [])
        assert speller.correct("   ") == ("   ", [])

    def test_disabled(self):
        settings = build_settings({"spelling": {"enabled": False}})

        assert correct_query("priorty", settings) == "priorty"


def test_typos_are_recognized_as_properties(settings, reference_date):
    intent = parse_local("urgant desing tasks s:opne", settings, reference_date)

    assert intent.priority == PriorityFilter(sentinel="all")
    assert intent.status == ("open",)
    assert intent.core_keywords == ("design",)
    assert intent.original_query == "urgant desing tasks s:opne"


def test_typos_stay_keywords_when_disabled(reference_date):
    settings = build_settings({"spelling": {"enabled": False}})

    intent = parse_local("priorty report", settings, reference_date)

    assert intent.priority is None
    assert "priorty" in intent.core_keywords
