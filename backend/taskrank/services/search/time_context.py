"""
Relative-time labels to concrete date ranges.

All date arithmetic for relative time lives here. The AI parser may detect
and normalize a label, but the range always comes from this module, so the
same label and reference date give the same range on every path.

- today / tomorrow: everything due by the end of that day, overdue included
- overdue: due strictly before the reference date
- yesterday: that single day
- future: due from tomorrow on
- this_/last_/next_ week, month, year: the whole period containing the
  reference date, shifted by one period for last_/next_
"""
import calendar
from datetime import date, timedelta
from typing import NamedTuple, Optional

from taskrank.core.logging import get_logger
from taskrank.models.intent import DateRange
from taskrank.services.search.property_recognition import recognize
from taskrank.services.search.terms import Lexicon, normalize_time_label

logger = get_logger(__name__)


class TimeConversion(NamedTuple):
    range: Optional[DateRange]
    matched: bool
    label: Optional[str] = None


def _week_bounds(reference_date: date, week_start: int, offset: int):
    start = reference_date - timedelta(days=(reference_date.weekday() - week_start) % 7)
    start += timedelta(weeks=offset)
    return start, start + timedelta(days=6)


def _month_bounds(reference_date: date, offset: int):
    month_index = reference_date.year * 12 + (reference_date.month - 1) + offset
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def _year_bounds(reference_date: date, offset: int):
    year = reference_date.year + offset
    return date(year, 1, 1), date(year, 12, 31)


_OFFSETS = {"last": -1, "this": 0, "next": 1}


def label_to_range(label: str, reference_date: date, week_start: int = 0) -> DateRange:
    """Range for a canonical label. Raises KeyError for unknown labels."""
    if label == "today":
        return DateRange(end=reference_date)
    if label == "tomorrow":
        return DateRange(end=reference_date + timedelta(days=1))
    if label == "yesterday":
        day = reference_date - timedelta(days=1)
        return DateRange(start=day, end=day)
    if label == "overdue":
        return DateRange(end=reference_date, end_inclusive=False)
    if label == "future":
        return DateRange(start=reference_date + timedelta(days=1))

    shift, _, period = label.partition("_")
    if shift not in _OFFSETS:
        raise KeyError(label)
    offset = _OFFSETS[shift]
    if period == "week":
        start, end = _week_bounds(reference_date, week_start, offset)
    elif period == "month":
        start, end = _month_bounds(reference_date, offset)
    elif period == "year":
        start, end = _year_bounds(reference_date, offset)
    else:
        raise KeyError(label)
    return DateRange(start=start, end=end)


def detect_and_convert(label: Optional[str], reference_date: date, week_start: int = 0) -> TimeConversion:
    """
    Convert a relative-time label into a date range.

    Aliases such as "week", "thisWeek" or "next-week" are normalized first.
    Unknown labels give `matched=False` and no range.
    """
    canonical = normalize_time_label(label)
    if canonical is None:
        logger.debug("time_label_unmatched", label=label)
        return TimeConversion(range=None, matched=False)

    date_range = label_to_range(canonical, reference_date, week_start)
    return TimeConversion(range=date_range, matched=True, label=canonical)


def detect_label(text: str, lexicon: Lexicon) -> Optional[str]:
    """First relative-time label mentioned in free text, if any."""
    labels = recognize(text, lexicon).time_labels
    return labels[0] if labels else None


def resolve_labels(labels, reference_date: date, week_start: int = 0) -> Optional[DateRange]:
    """Hull of the ranges of several labels, or None if none is known."""
    combined: Optional[DateRange] = None
    for label in labels:
        conversion = detect_and_convert(label, reference_date, week_start)
        if not conversion.matched:
            continue
        combined = conversion.range if combined is None else combined.hull(conversion.range)
    return combined


__all__ = [
    "TimeConversion",
    "detect_and_convert",
    "detect_label",
    "label_to_range",
    "resolve_labels",
]
