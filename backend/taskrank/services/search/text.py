"""
Text units shared by term recognition and keyword extraction.

A unit is either a run of word characters from a space-delimited script or a
single logographic character (CJK ideographs, kana, hangul). Terms in the
lexicon are stored as tuples of units so multi-word and multi-character
terms are matched the same way.
"""
import re
from typing import List, NamedTuple, Tuple

LOGOGRAPHIC_CHARS = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af\uf900-\ufaff"

LOGOGRAPHIC_RE = re.compile(f"[{LOGOGRAPHIC_CHARS}]")
UNIT_RE = re.compile(f"[{LOGOGRAPHIC_CHARS}]|[^\\W{LOGOGRAPHIC_CHARS}]+")
WHITESPACE_RE = re.compile(r"\s+")


class Unit(NamedTuple):
    text: str
    start: int
    end: int


def is_logographic(char: str) -> bool:
    return bool(LOGOGRAPHIC_RE.fullmatch(char))


def split_units(text: str) -> List[Unit]:
    """Split text into lowercased units with their character spans."""
    return [Unit(m.group(0).lower(), m.start(), m.end()) for m in UNIT_RE.finditer(text)]


def term_units(term: str) -> Tuple[str, ...]:
    return tuple(unit.text for unit in split_units(term))


def collapse_whitespace(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text).strip()


def blank_spans(text: str, spans: List[Tuple[int, int]]) -> str:
    """Replace each (start, end) span with spaces, keeping other offsets stable."""
    chars = list(text)
    for start, end in spans:
        for i in range(start, end):
            chars[i] = " "
    return "".join(chars)
