"""
Local typo correction using SymSpell.

Runs before property recognition so misspelled property words ("priorty",
"opne", "urgant") are still recognized and do not leak into the keywords.
Each word goes through two passes:
- a known typo map (built-in plus user typos from settings) is applied as is
- otherwise SymSpell looks the word up in the property vocabulary; the
  closest suggestion is applied only when it is unambiguous and its
  confidence is above the threshold

The SymSpell dictionary holds the property terms plus common words that sit
one edit away from one ("going"/"doing", "closer"/"closed"). A word that is
itself in the dictionary, or equally close to two entries, is left alone.
"""
import re
from typing import Dict, Iterable, List, Optional, Tuple

from symspellpy import SymSpell, Verbosity

from taskrank.core.logging import get_logger
from taskrank.services.search.terms import TIME_LABELS, Lexicon

logger = get_logger(__name__)

DEFAULT_MAX_EDIT_DISTANCE = 2
DEFAULT_CONFIDENCE_THRESHOLD = 0.8
DEFAULT_MIN_WORD_LENGTH = 5

KNOWN_TYPOS: Dict[str, str] = {
    # tasks
    "taks": "task",
    "tasl": "task",
    "taskk": "task",
    "tsak": "task",
    "takss": "tasks",
    "tassks": "tasks",
    # priority
    "priorty": "priority",
    "priortiy": "priority",
    "priorit": "priority",
    "piority": "priority",
    "priorites": "priorities",
    "prioritys": "priorities",
    # status
    "opne": "open",
    "openn": "open",
    "complated": "completed",
    "compelted": "completed",
    "copleted": "completed",
    "compleated": "completed",
    "complet": "complete",
    "progres": "progress",
    "proggress": "progress",
    "inprogress": "in progress",
    # urgency
    "urgant": "urgent",
    "urgnet": "urgent",
    "urgemt": "urgent",
    "urget": "urgent",
    "critcal": "critical",
    "criticla": "critical",
    "importent": "important",
    "imporant": "important",
    "imprtant": "important",
    # dates
    "overdu": "overdue",
    "overdeu": "overdue",
    "tommorow": "tomorrow",
    "tommorrow": "tomorrow",
    "tomorow": "tomorrow",
    "todya": "today",
    "toady": "today",
    # common words
    "paymant": "payment",
    "payemnt": "payment",
    "systme": "system",
    "sytem": "system",
    "sysem": "system",
    "desing": "design",
    "desgin": "design",
    "developement": "development",
    "devlopment": "development",
    "recieve": "receive",
    "reciept": "receipt",
    "seperete": "separate",
    "seperately": "separately",
    "definately": "definitely",
    "occured": "occurred",
    "occurence": "occurrence",
}

COMMON_WORDS = (
    "going", "closer", "closet", "closes", "closure", "states", "stated",
    "lately", "latest", "dated", "mouth", "months", "weeks", "years",
    "futures", "donate", "opened", "opener", "pendant", "staged", "starts",
    "highs", "mediums", "lowered", "topic", "topics", "normally", "minors",
    "dropper", "finishes", "resolves", "urgently", "critically",
)

_WORD_RE = re.compile(r"[^\W\d_]+")


def preserve_case(original: str, correction: str) -> str:
    """Apply the case pattern of `original` (UPPER, Title or lower) to `correction`."""
    if original.isupper():
        return correction.upper()
    if original[:1].isupper():
        return correction[:1].upper() + correction[1:].lower()
    return correction.lower()


def property_vocabulary(lexicon: Lexicon, min_word_length: int = DEFAULT_MIN_WORD_LENGTH) -> List[str]:
    """Latin-script words of every property term and time label."""
    words: Dict[str, None] = {}
    units = [unit for term in lexicon.entries for unit in term]
    units.extend(part for label in TIME_LABELS for part in label.split("_"))
    for unit in units:
        if unit.isascii() and unit.isalpha() and len(unit) >= min_word_length:
            words.setdefault(unit.lower(), None)
    return list(words)


class SpellCorrectionService:
    """
    Typo correction for queries.

    Args:
        vocabulary: Words SymSpell may correct towards
        typos: Extra typo -> correction pairs, applied before the built-in map
        stop_words: Words that are never corrected
        max_edit_distance: Maximum edit distance for SymSpell lookups
        confidence_threshold: Minimum confidence to apply a SymSpell suggestion
        min_word_length: Shorter words skip the SymSpell pass
        known_words: Correct words kept in the dictionary so they are never rewritten
    """

    def __init__(
        self,
        vocabulary: Iterable[str],
        typos: Optional[Dict[str, str]] = None,
        stop_words: Iterable[str] = (),
        max_edit_distance: int = DEFAULT_MAX_EDIT_DISTANCE,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        min_word_length: int = DEFAULT_MIN_WORD_LENGTH,
        known_words: Iterable[str] = COMMON_WORDS,
    ):
        self.max_edit_distance = max_edit_distance
        self.confidence_threshold = confidence_threshold
        self.min_word_length = min_word_length
        self.stop_words = frozenset(word.lower() for word in stop_words)
        self.typos: Dict[str, str] = {
            typo.strip().lower(): fix.strip().lower() for typo, fix in (typos or {}).items()
        }
        for typo, fix in KNOWN_TYPOS.items():
            self.typos.setdefault(typo, fix)

        self.sym_spell = SymSpell(max_dictionary_edit_distance=max_edit_distance)
        self.vocabulary = frozenset(word.lower() for word in vocabulary)
        for word in self.vocabulary.union(word.lower() for word in known_words):
            self.sym_spell.create_dictionary_entry(word, 1)
        logger.debug(
            "spell_correction_initialized",
            dictionary_size=len(self.vocabulary),
            typo_count=len(self.typos),
            max_edit_distance=max_edit_distance,
        )

    def correct_word(self, word: str) -> Optional[str]:
        """Correction for one word, or None when it is left alone."""
        lower = word.lower()
        if lower in self.typos:
            return preserve_case(word, self.typos[lower])
        if (
            self.max_edit_distance == 0
            or len(lower) < self.min_word_length
            or not lower.isascii()
            or lower in self.vocabulary
            or lower in self.stop_words
        ):
            return None

        suggestions = self.sym_spell.lookup(lower, Verbosity.CLOSEST, max_edit_distance=self.max_edit_distance)
        if len(suggestions) != 1:
            return None
        best = suggestions[0]
        # distance 1 -> 0.9, distance 2 -> 0.8
        confidence = 1.0 - best.distance * 0.1
        if confidence <= self.confidence_threshold:
            return None
        return preserve_case(word, best.term)

    def correct(self, query: str) -> Tuple[str, List[Tuple[str, str]]]:
        """
        Correct typos in a query.

        Returns:
            Tuple of (corrected_query, corrections) where corrections lists
            (original, replacement) pairs in query order. Everything that is
            not a corrected word is kept byte for byte.
        """
        if not query or not query.strip():
            return query, []

        corrections: List[Tuple[str, str]] = []

        def replace(m: "re.Match[str]") -> str:
            word = m.group(0)
            # tag names are user data
            if m.start() > 0 and query[m.start() - 1] == "#":
                return word
            fixed = self.correct_word(word)
            if fixed is None or fixed == word:
                return word
            corrections.append((word, fixed))
            return fixed

        corrected = _WORD_RE.sub(replace, query)
        if corrections:
            logger.debug("spell_correction_applied", corrections=[f"{a}->{b}" for a, b in corrections])
        return corrected, corrections
