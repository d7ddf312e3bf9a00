"""
Property recognition for raw queries.

Recognizes, in this order:
1. Compact markers: `p:1,2`, `priority:high`, `d:today`, `due:2025-01-20`,
   `s:open`, `f:Work/Projects`, `t:home`, plus bare `p1`..`p4` and `#tag`
2. Phrases: `before/after YYYY-MM-DD`, `from YYYY-MM-DD to YYYY-MM-DD`,
   `in folder X`, `文件夹X`, `tagged X`, `标签X`
3. Bare multilingual terms from the merged lexicon, longest term first

Text claimed by an earlier step is never claimed again. Compact values win
over bare terms of the same category; within a category, values are OR-ed.
"""
import re
from datetime import date, timedelta
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from taskrank.core.logging import get_logger
from taskrank.models.intent import DateRange
from taskrank.services.search.terms import (
    ALL,
    DUE_DATE,
    NONE,
    PRIORITY,
    PRIORITY_LEVELS,
    STATUS,
    TIME_LABELS,
    Lexicon,
    normalize_time_label,
)
from taskrank.services.search.text import blank_spans, collapse_whitespace, split_units

logger = get_logger(__name__)

FOLDER = "folder"
TAGS = "tags"

_VALUE = r"\"[^\"]*\"|[^\s,，\"]+(?:[,，][^\s,，\"]+)*"
MARKER_RE = re.compile(
    r"(?<![^\s(,，])(?P<key>priority|status|folder|due|tag|p|d|s|f|t)\s*[:：]\s*(?P<value>" + _VALUE + ")",
    re.IGNORECASE,
)
BARE_PRIORITY_RE = re.compile(r"(?<!\S)p(?P<level>[1-4])(?!\w)", re.IGNORECASE)
HASHTAG_RE = re.compile(r"(?<![\w#])#(?P<tag>[^\s#,，]+)")

_DATE = r"\d{4}-\d{2}-\d{2}"
RANGE_BETWEEN_RE = re.compile(rf"\bfrom\s+(?P<start>{_DATE})\s+to\s+(?P<end>{_DATE})", re.IGNORECASE)
RANGE_BEFORE_RE = re.compile(rf"\bbefore\s+(?P<date>{_DATE})|(?P<date_zh>{_DATE})\s*(?:之前|以前)", re.IGNORECASE)
RANGE_AFTER_RE = re.compile(rf"\bafter\s+(?P<date>{_DATE})|(?P<date_zh>{_DATE})\s*(?:之后|以后)", re.IGNORECASE)

_NAME = r"\"(?P<quoted>[^\"]+)\"|(?P<plain>[^\s,，]+)"
FOLDER_PHRASE_RES = tuple(
    re.compile(prefix + rf"(?:{_NAME})", re.IGNORECASE)
    for prefix in (r"\bin\s+(?:the\s+)?folder\s+", r"文件夹\s*[:：]?\s*", r"\bi\s+mappen\s+")
)
TAG_PHRASE_RE = re.compile(
    r"\btagged\s+(?:with\s+)?#?(?P<tag>[^\s,，]+)|标签\s*[:：]?\s*#?(?P<tag_zh>[^\s,，]+)"
    r"|\btaggad\s+(?:med\s+)?#?(?P<tag_sv>[^\s,，]+)",
    re.IGNORECASE,
)

_MARKER_CATEGORIES = {
    "p": PRIORITY,
    "priority": PRIORITY,
    "d": DUE_DATE,
    "due": DUE_DATE,
    "s": STATUS,
    "status": STATUS,
    "f": FOLDER,
    "folder": FOLDER,
    "t": TAGS,
    "tag": TAGS,
}
_ANY = {"all", "any"}


def _iso_day(text: str) -> Optional[date]:
    # the phrase regexes accept impossible dates such as 2025-02-30
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


Kind = Literal["absent", "single", "set", "sentinel"]


class CategoryMatch(BaseModel):
    """Recognized values of one category: absent, single value, value set or sentinel."""
    model_config = ConfigDict(frozen=True)

    values: Tuple[str, ...] = ()
    sentinel: Optional[Literal["all", "none"]] = None
    compact: bool = False

    @property
    def kind(self) -> Kind:
        if self.sentinel is not None:
            return "sentinel"
        if not self.values:
            return "absent"
        return "single" if len(self.values) == 1 else "set"


class RecognizedTokens(BaseModel):
    model_config = ConfigDict(frozen=True)

    priority: CategoryMatch = CategoryMatch()
    due_date: CategoryMatch = CategoryMatch()
    due_date_range: Optional[DateRange] = None
    time_labels: Tuple[str, ...] = ()
    status: CategoryMatch = CategoryMatch()
    folder: Optional[str] = None
    tags: Tuple[str, ...] = ()
    residual_text: str = ""
    unresolved: Tuple[str, ...] = ()
    compact_categories: Tuple[str, ...] = ()


class _Slot:
    """Collects matches for one category before precedence is applied."""

    def __init__(self):
        self.compact_values: List[str] = []
        self.compact_sentinel: Optional[str] = None
        self.bare_values: List[str] = []
        self.bare_sentinel: Optional[str] = None
        self.general = False

    def add(self, value: str, compact: bool) -> None:
        if compact:
            if value in (ALL, NONE):
                self.compact_sentinel = self.compact_sentinel or value
            elif value not in self.compact_values:
                self.compact_values.append(value)
        elif value == ALL:
            self.general = True
        elif value == NONE:
            self.bare_sentinel = self.bare_sentinel or value
        elif value not in self.bare_values:
            self.bare_values.append(value)

    @property
    def has_compact(self) -> bool:
        return bool(self.compact_sentinel or self.compact_values)

    def resolve(self, general_means_all: bool = True) -> CategoryMatch:
        if self.compact_sentinel:
            return CategoryMatch(sentinel=self.compact_sentinel, compact=True)
        if self.compact_values:
            return CategoryMatch(values=tuple(self.compact_values), compact=True)
        if self.bare_sentinel:
            return CategoryMatch(sentinel=self.bare_sentinel)
        if self.bare_values:
            return CategoryMatch(values=tuple(self.bare_values))
        if self.general and general_means_all:
            return CategoryMatch(sentinel=ALL)
        return CategoryMatch()


class _Recognizer:
    def __init__(self, text: str, lexicon: Lexicon):
        self.text = text
        self.lexicon = lexicon
        self.spans: List[Tuple[int, int]] = []
        self.slots: Dict[str, _Slot] = {PRIORITY: _Slot(), DUE_DATE: _Slot(), STATUS: _Slot()}
        self.labels: List[Tuple[int, str]] = []
        self.folder: Optional[str] = None
        self.compact_folder = False
        self.tags: List[str] = []
        self.compact_tags = False
        self.date_range: Optional[DateRange] = None
        self.unresolved: List[str] = []

    def claim(self, start: int, end: int) -> None:
        self.spans.append((start, end))

    def is_claimed(self, start: int, end: int) -> bool:
        return any(start < s_end and s_start < end for s_start, s_end in self.spans)

    def add_value(self, category: str, value: str, position: int, compact: bool) -> None:
        if category == DUE_DATE and value in TIME_LABELS:
            self.labels.append((position, value))
        self.slots[category].add(value, compact)

    def set_folder(self, folder: str, compact: bool) -> None:
        folder = folder.strip().strip("\"").strip("/")
        if not folder:
            return
        if self.folder is None or (compact and not self.compact_folder):
            self.folder = folder
            self.compact_folder = compact
        elif folder != self.folder:
            self.unresolved.append(f"folder:{folder}")

    def add_tags(self, raw: str, compact: bool) -> None:
        if compact and not self.compact_tags:
            self.compact_tags = True
        for tag in re.split(r"[,，]", raw):
            tag = tag.strip().strip("\"").lstrip("#").lower()
            if tag and tag not in self.tags:
                self.tags.append(tag)

    # compact syntax

    def _priority_value(self, raw: str) -> Optional[str]:
        if raw in PRIORITY_LEVELS:
            return raw
        if raw in _ANY:
            return ALL
        if raw == NONE:
            return NONE
        match = self.lexicon.lookup_term(raw)
        if match is not None and match.category == PRIORITY:
            return match.value
        return None

    def _due_value(self, raw: str) -> Optional[str]:
        if raw in _ANY:
            return ALL
        if raw == NONE:
            return NONE
        try:
            return date.fromisoformat(raw).isoformat()
        except ValueError:
            pass
        label = normalize_time_label(raw)
        if label is not None:
            return label
        match = self.lexicon.lookup_term(raw)
        if match is not None and match.category == DUE_DATE:
            return match.value
        return None

    def _status_value(self, raw: str) -> Optional[str]:
        if raw in _ANY:
            return ALL
        return self.lexicon.resolve_status(raw)

    def scan_markers(self) -> None:
        for m in MARKER_RE.finditer(self.text):
            category = _MARKER_CATEGORIES[m.group("key").lower()]
            raw_value = m.group("value")
            self.claim(m.start(), m.end())

            if category == FOLDER:
                self.set_folder(raw_value, compact=True)
                continue
            if category == TAGS:
                self.add_tags(raw_value, compact=True)
                continue

            parse = {
                PRIORITY: self._priority_value,
                DUE_DATE: self._due_value,
                STATUS: self._status_value,
            }[category]
            for raw in re.split(r"\s*[,，]\s*", raw_value.strip("\"")):
                raw = raw.strip().lower()
                if not raw:
                    continue
                value = parse(raw)
                if value is None:
                    self.unresolved.append(f"{m.group('key').lower()}:{raw}")
                elif category == STATUS and value == ALL:
                    continue
                else:
                    self.add_value(category, value, m.start(), compact=True)

        for m in BARE_PRIORITY_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            self.add_value(PRIORITY, m.group("level"), m.start(), compact=True)

        for m in HASHTAG_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            self.add_tags(m.group("tag"), compact=True)

    # phrases

    def scan_phrases(self) -> None:
        ranges: List[DateRange] = []

        for m in RANGE_BETWEEN_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            start, end = _iso_day(m.group("start")), _iso_day(m.group("end"))
            if start is None or end is None:
                self.unresolved.append(f"date_range:{m.group(0).strip()}")
                continue
            if start > end:
                start, end = end, start
            ranges.append(DateRange(start=start, end=end))

        for m in RANGE_BEFORE_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            day = _iso_day(m.group("date") or m.group("date_zh"))
            if day is None:
                self.unresolved.append(f"date_range:{m.group(0).strip()}")
                continue
            ranges.append(DateRange(end=day, end_inclusive=False))

        for m in RANGE_AFTER_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            day = _iso_day(m.group("date") or m.group("date_zh"))
            if day is None or day == date.max:
                self.unresolved.append(f"date_range:{m.group(0).strip()}")
                continue
            ranges.append(DateRange(start=day + timedelta(days=1)))

        if ranges:
            # "after A" and "before B" together mean the window between them
            start = max((r.start for r in ranges if r.start), default=None)
            ends = [r for r in ranges if r.end]
            end_bound = min(ends, key=lambda r: (r.end, r.end_inclusive)) if ends else None
            try:
                self.date_range = DateRange(
                    start=start,
                    end=end_bound.end if end_bound else None,
                    end_inclusive=end_bound.end_inclusive if end_bound else True,
                )
            except ValueError:
                self.unresolved.append("date_range:empty")

        for pattern in FOLDER_PHRASE_RES:
            for m in pattern.finditer(self.text):
                if self.is_claimed(m.start(), m.end()):
                    continue
                self.claim(m.start(), m.end())
                self.set_folder(m.group("quoted") or m.group("plain"), compact=False)

        for m in TAG_PHRASE_RE.finditer(self.text):
            if self.is_claimed(m.start(), m.end()):
                continue
            self.claim(m.start(), m.end())
            self.add_tags(m.group("tag") or m.group("tag_zh") or m.group("tag_sv"), compact=False)

    # bare terms

    def scan_terms(self) -> None:
        units = [u for u in split_units(self.text) if not self.is_claimed(u.start, u.end)]
        taken = [False] * len(units)

        for size in range(min(self.lexicon.max_units, len(units)), 0, -1):
            for i in range(len(units) - size + 1):
                if any(taken[i:i + size]):
                    continue
                window = units[i:i + size]
                if not self._contiguous(window):
                    continue
                match = self.lexicon.lookup(tuple(u.text for u in window))
                if match is None:
                    continue
                for k in range(i, i + size):
                    taken[k] = True
                self.claim(window[0].start, window[-1].end)
                self.add_value(match.category, match.value, window[0].start, compact=False)

    def _contiguous(self, window) -> bool:
        return all(
            not self.text[left.end:right.start].strip()
            for left, right in zip(window, window[1:])
        )

    def result(self) -> RecognizedTokens:
        compact_categories = [name for name, slot in self.slots.items() if slot.has_compact]
        if self.compact_folder:
            compact_categories.append(FOLDER)
        if self.compact_tags:
            compact_categories.append(TAGS)

        residual = collapse_whitespace(blank_spans(self.text, self.spans))
        return RecognizedTokens(
            priority=self.slots[PRIORITY].resolve(),
            due_date=self.slots[DUE_DATE].resolve(),
            due_date_range=self.date_range,
            time_labels=tuple(dict.fromkeys(label for _, label in sorted(self.labels))),
            status=self.slots[STATUS].resolve(general_means_all=False),
            folder=self.folder,
            tags=tuple(self.tags),
            residual_text=residual,
            unresolved=tuple(self.unresolved),
            compact_categories=tuple(compact_categories),
        )


def recognize(text: str, lexicon: Lexicon) -> RecognizedTokens:
    """
    Recognize property tokens in a query.

    Args:
        text: Raw query text
        lexicon: Merged term lookup built from settings

    Returns:
        RecognizedTokens with per-category matches and the residual text
        (the query with every recognized token removed).
    """
    if not text or not text.strip():
        return RecognizedTokens()

    recognizer = _Recognizer(text, lexicon)
    recognizer.scan_markers()
    recognizer.scan_phrases()
    recognizer.scan_terms()
    tokens = recognizer.result()

    if tokens.unresolved:
        logger.debug("property_recognition_unresolved", unresolved=list(tokens.unresolved))
    return tokens
