"""
Multilingual property terms and the merged lexicon.

Built-in term lists cover English, Chinese and Swedish. User terms from
configuration are registered first, so they win over built-ins when the same
term appears twice. The merged lexicon maps a term (as a tuple of text units)
to a single (category, value) pair and is built once per Settings instance.
"""
import re
from typing import Dict, Iterable, List, NamedTuple, Optional, Tuple

from taskrank.core.errors import ConfigurationError
from taskrank.core.logging import get_logger
from taskrank.services.search.text import term_units

logger = get_logger(__name__)

PRIORITY = "priority"
DUE_DATE = "due_date"
STATUS = "status"

ALL = "all"
NONE = "none"
SENTINELS = (ALL, NONE)

PRIORITY_LEVELS = ("1", "2", "3", "4")

TIME_LABELS = (
    "today",
    "tomorrow",
    "yesterday",
    "overdue",
    "future",
    "this_week",
    "last_week",
    "next_week",
    "this_month",
    "last_month",
    "next_month",
    "this_year",
    "last_year",
    "next_year",
)

_LABEL_ALIASES = {
    "week": "this_week",
    "month": "this_month",
    "year": "this_year",
    "pastdue": "overdue",
    "late": "overdue",
    "upcoming": "future",
}
_LABEL_LOOKUP = {label.replace("_", ""): label for label in TIME_LABELS}
_LABEL_LOOKUP.update(_LABEL_ALIASES)
_LABEL_SEPARATORS = re.compile(r"[\s_\-]+")


def normalize_time_label(label: Optional[str]) -> Optional[str]:
    """
    Normalize a relative-time label ("next-week", "thisWeek", "week") to its
    canonical form, or None if it is not a known label.
    """
    if not label:
        return None
    key = _LABEL_SEPARATORS.sub("", label.strip().lower())
    return _LABEL_LOOKUP.get(key)


PRIORITY_TERMS: Dict[str, List[str]] = {
    ALL: [
        "priority", "important", "urgent",
        "优先级", "优先", "重要", "紧急",
        "prioritet", "viktig", "brådskande",
    ],
    NONE: [
        "no priority", "without priority", "unprioritized",
        "无优先级", "没有优先级",
        "ingen prioritet", "utan prioritet",
    ],
    "1": [
        "high", "highest", "critical", "top",
        "高", "最高", "关键", "首要",
        "hög", "högst", "kritisk",
    ],
    "2": ["medium", "normal", "中等", "普通", "medel"],
    "3": ["low", "minor", "低", "次要", "不重要", "låg", "mindre"],
    "4": ["lowest", "trivial", "最低", "lägst"],
}

DUE_DATE_TERMS: Dict[str, List[str]] = {
    ALL: [
        "due", "deadline", "scheduled",
        "截止日期", "到期", "期限", "计划",
        "förfallodatum", "schemalagd",
    ],
    NONE: [
        "no due date", "no deadline", "without due date", "undated",
        "无截止日期", "没有截止日期", "无期限",
        "inget förfallodatum", "utan deadline",
    ],
    "today": ["today", "今天", "今日", "idag"],
    "tomorrow": ["tomorrow", "明天", "imorgon"],
    "yesterday": ["yesterday", "昨天", "igår"],
    "overdue": [
        "overdue", "late", "past due",
        "过期", "逾期", "延迟",
        "försenad", "sen",
    ],
    "future": [
        "future", "upcoming", "later",
        "未来", "将来", "以后",
        "framtida", "kommande",
    ],
    "this_week": ["this week", "本周", "这周", "denna vecka"],
    "last_week": ["last week", "上周", "förra veckan"],
    "next_week": ["next week", "下周", "nästa vecka"],
    "this_month": ["this month", "本月", "这个月", "denna månad"],
    "last_month": ["last month", "上个月", "上月", "förra månaden"],
    "next_month": ["next month", "下个月", "下月", "nästa månad"],
    "this_year": ["this year", "今年", "i år"],
    "last_year": ["last year", "去年", "förra året"],
    "next_year": ["next year", "明年", "nästa år"],
}

STATUS_TERMS: Dict[str, List[str]] = {
    ALL: [
        "status", "state", "progress",
        "状态", "进度", "情况",
        "tillstånd",
    ],
    "open": [
        "open", "pending", "todo", "incomplete", "unstarted",
        "未完成", "待办", "待处理", "新建",
        "öppen", "väntande", "att göra",
    ],
    "in_progress": [
        "in progress", "ongoing", "doing",
        "进行中", "正在做", "处理中",
        "pågående", "arbetar på",
    ],
    "completed": [
        "done", "completed", "finished", "closed", "resolved",
        "完成", "已完成", "结束", "已结束",
        "klar", "färdig", "slutförd", "stängd",
    ],
    "cancelled": [
        "cancelled", "canceled", "abandoned", "dropped",
        "取消", "已取消", "放弃", "废弃",
        "avbruten", "inställd",
    ],
}


class TermMatch(NamedTuple):
    category: str
    value: str


class Lexicon:
    """Merged term lookup plus status alias resolution."""

    def __init__(
        self,
        entries: Dict[Tuple[str, ...], TermMatch],
        status_aliases: Dict[str, str],
    ):
        self.entries = entries
        self.status_aliases = status_aliases
        self.max_units = max((len(units) for units in entries), default=0)

    def lookup(self, units: Tuple[str, ...]) -> Optional[TermMatch]:
        return self.entries.get(units)

    def lookup_term(self, term: str) -> Optional[TermMatch]:
        return self.entries.get(term_units(term))

    def resolve_status(self, value: Optional[str]) -> Optional[str]:
        """Resolve a status symbol, alias or term to a configured category."""
        if value is None:
            return None
        key = value.strip().lower()
        if key in self.status_aliases:
            return self.status_aliases[key]
        match = self.lookup_term(key) if key else None
        if match is not None and match.category == STATUS and match.value != ALL:
            return match.value
        return None

    def terms_for(self, category: str) -> Dict[str, List[str]]:
        """Terms per value for one category, in registration order."""
        grouped: Dict[str, List[str]] = {}
        for units, match in self.entries.items():
            if match.category == category:
                grouped.setdefault(match.value, []).append(" ".join(units))
        return grouped


class _LexiconBuilder:
    def __init__(self):
        self.entries: Dict[Tuple[str, ...], TermMatch] = {}

    def add(self, category: str, value: str, terms: Iterable[str]) -> None:
        for term in terms:
            units = term_units(term)
            if not units:
                continue
            existing = self.entries.get(units)
            if existing is not None:
                if existing != (category, value):
                    logger.debug(
                        "lexicon_term_conflict",
                        term=term,
                        kept=f"{existing.category}:{existing.value}",
                        ignored=f"{category}:{value}",
                    )
                continue
            self.entries[units] = TermMatch(category, value)


def build_status_aliases(status_categories: Dict[str, List[str]]) -> Dict[str, str]:
    """
    Map every alias (and each category name) to its category.

    Raises:
        ConfigurationError: if one alias is claimed by two categories.
    """
    aliases: Dict[str, str] = {}
    for category, category_aliases in status_categories.items():
        for alias in [category, *category_aliases]:
            key = alias.strip().lower()
            owner = aliases.get(key)
            if owner is not None and owner != category:
                raise ConfigurationError(
                    f"Status alias {alias!r} is assigned to both {owner!r} and {category!r}",
                    field="status_categories",
                )
            aliases[key] = category
    return aliases


def _check_keys(category: str, user_terms: Dict[str, List[str]], allowed: Iterable[str]) -> None:
    allowed = set(allowed)
    for key in user_terms:
        if key not in allowed:
            raise ConfigurationError(
                f"Unknown {category} term key {key!r}; expected one of {sorted(allowed)}",
                field=f"property_terms.{category}",
            )


def build_lexicon(
    user_priority_terms: Dict[str, List[str]],
    user_due_date_terms: Dict[str, List[str]],
    user_status_terms: Dict[str, List[str]],
    status_categories: Dict[str, List[str]],
) -> Lexicon:
    """
    Merge user terms, built-in terms and status categories into one lookup.

    Raises:
        ConfigurationError: on unknown term keys or conflicting status aliases.
    """
    _check_keys(PRIORITY, user_priority_terms, (*SENTINELS, *PRIORITY_LEVELS))
    _check_keys(DUE_DATE, user_due_date_terms, (*SENTINELS, *TIME_LABELS))
    _check_keys(STATUS, user_status_terms, (ALL, *status_categories))

    status_aliases = build_status_aliases(status_categories)
    builder = _LexiconBuilder()

    for value, terms in user_priority_terms.items():
        builder.add(PRIORITY, value, terms)
    for value, terms in user_due_date_terms.items():
        builder.add(DUE_DATE, value, terms)
    for value, terms in user_status_terms.items():
        builder.add(STATUS, value, terms)

    for value, terms in PRIORITY_TERMS.items():
        builder.add(PRIORITY, value, terms)
    for value, terms in DUE_DATE_TERMS.items():
        builder.add(DUE_DATE, value, terms)

    builder.add(STATUS, ALL, STATUS_TERMS[ALL])
    for category, aliases in status_categories.items():
        builder.add(STATUS, category, STATUS_TERMS.get(category, []))
        builder.add(STATUS, category, [category.replace("_", " ")])
        # single-character aliases are task symbols ("x", "/"), not words
        builder.add(STATUS, category, [alias for alias in aliases if len(alias.strip()) > 1])

    lexicon = Lexicon(builder.entries, status_aliases)
    logger.debug(
        "lexicon_built",
        term_count=len(lexicon.entries),
        max_units=lexicon.max_units,
        status_categories=list(status_categories),
    )
    return lexicon
