"""
Keyword extraction from the residual query text.

Space-delimited scripts are split on word boundaries. Logographic runs are
segmented by greedy longest match against the stop-word vocabulary: known
stop words are dropped and the characters between them are kept together as
one keyword ("我的任务清单" -> "任务清单" when only 我/的 are stop words).
"""
import re
from typing import FrozenSet, Iterable, List

from taskrank.core.logging import get_logger
from taskrank.services.search.stop_words import stop_words_for
from taskrank.services.search.text import LOGOGRAPHIC_CHARS, is_logographic

logger = get_logger(__name__)

HAN_RE = re.compile("[\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff]")
KANA_RE = re.compile("[\u3040-\u30ff]")
HANGUL_RE = re.compile("[\uac00-\ud7af]")
SWEDISH_RE = re.compile("[åäöÅÄÖ]")
TOKEN_RE = re.compile(f"[{LOGOGRAPHIC_CHARS}]+|[^\\W{LOGOGRAPHIC_CHARS}]+")


def detect_language(text: str, default: str = "en") -> str:
    """Best-effort language code from the scripts present in the text."""
    if not text:
        return default
    if KANA_RE.search(text):
        return "ja"
    if HAN_RE.search(text):
        return "zh"
    if HANGUL_RE.search(text):
        return "ko"
    if SWEDISH_RE.search(text):
        return "sv"
    return default


def _segment_run(run: str, stop_words: FrozenSet[str], max_len: int) -> List[str]:
    """Split a logographic run into the chunks left between stop words."""
    chunks: List[str] = []
    current = ""
    i = 0
    while i < len(run):
        matched = 0
        for size in range(min(max_len, len(run) - i), 0, -1):
            if run[i:i + size] in stop_words:
                matched = size
                break
        if matched:
            if current:
                chunks.append(current)
                current = ""
            i += matched
        else:
            current += run[i]
            i += 1
    if current:
        chunks.append(current)
    return chunks


def extract(residual_text: str, locale: str = "auto", extra_stop_words: Iterable[str] = ()) -> List[str]:
    """
    Extract ordered, de-duplicated keywords.

    Args:
        residual_text: Query text with recognized property tokens removed
        locale: Stop-word locale ("en", "zh", "sv" or "auto" for all)
        extra_stop_words: User stop words added to the locale's list

    Returns:
        Lowercased keywords in first-occurrence order.
    """
    if not residual_text or not residual_text.strip():
        return []

    stop_words = stop_words_for(locale, extra_stop_words)
    logographic_stops = frozenset(w for w in stop_words if w and all(is_logographic(c) for c in w))
    max_len = max((len(w) for w in logographic_stops), default=1)

    keywords: List[str] = []
    for m in TOKEN_RE.finditer(residual_text.lower()):
        token = m.group(0)
        if is_logographic(token[0]):
            candidates = _segment_run(token, logographic_stops, max_len)
        elif len(token) < 2 or token in stop_words:
            continue
        else:
            candidates = [token]
        for keyword in candidates:
            if keyword not in keywords:
                keywords.append(keyword)

    logger.debug("keywords_extracted", locale=locale, keyword_count=len(keywords))
    return keywords
