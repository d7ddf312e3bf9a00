"""
Structured interpretation of a raw query.

Filters carry either a value set (OR semantics) or a sentinel:
- "all": the property has a value
- "none": the property has no value
"""
from datetime import date
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

Sentinel = Literal["all", "none"]


class DateRange(BaseModel):
    """
    Date range with an inclusive start and a configurable end bound.

    Either end may be open. `overdue` on 2025-01-20 is
    DateRange(end=2025-01-20, end_inclusive=False).
    """
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = None
    end: Optional[date] = None
    end_inclusive: bool = True

    @model_validator(mode="after")
    def validate_bounds(self) -> "DateRange":
        if self.start is not None and self.end is not None:
            if self.start > self.end or (self.start == self.end and not self.end_inclusive):
                raise ValueError(f"empty date range {self.start}..{self.end}")
        return self

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None:
            return day <= self.end if self.end_inclusive else day < self.end
        return True

    def hull(self, other: "DateRange") -> "DateRange":
        """Smallest range covering both ranges."""
        start = None if self.start is None or other.start is None else min(self.start, other.start)
        if self.end is None or other.end is None:
            return DateRange(start=start)
        if self.end == other.end:
            return DateRange(start=start, end=self.end, end_inclusive=self.end_inclusive or other.end_inclusive)
        wider = self if self.end > other.end else other
        return DateRange(start=start, end=wider.end, end_inclusive=wider.end_inclusive)

    def describe(self) -> Dict[str, Any]:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat() if self.end else None,
            "end_inclusive": self.end_inclusive,
        }


class PriorityFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    values: Tuple[int, ...] = ()
    sentinel: Optional[Sentinel] = None

    @model_validator(mode="after")
    def validate_shape(self) -> "PriorityFilter":
        if (self.sentinel is None) == (not self.values):
            if self.sentinel is None:
                raise ValueError("priority filter needs values or a sentinel")
            raise ValueError("priority filter cannot have both values and a sentinel")
        if any(v not in (1, 2, 3, 4) for v in self.values):
            raise ValueError(f"priority values must be 1-4, got {self.values}")
        return self

    def matches(self, priority: Optional[int]) -> bool:
        if self.sentinel == "all":
            return priority is not None
        if self.sentinel == "none":
            return priority is None
        return priority in self.values

    def describe(self) -> Any:
        return self.sentinel or list(self.values)


class DueDateFilter(BaseModel):
    model_config = ConfigDict(frozen=True)

    dates: Tuple[date, ...] = ()
    sentinel: Optional[Sentinel] = None

    @model_validator(mode="after")
    def validate_shape(self) -> "DueDateFilter":
        if (self.sentinel is None) == (not self.dates):
            if self.sentinel is None:
                raise ValueError("due date filter needs dates or a sentinel")
            raise ValueError("due date filter cannot have both dates and a sentinel")
        return self

    def matches(self, due: Optional[date]) -> bool:
        if self.sentinel == "all":
            return due is not None
        if self.sentinel == "none":
            return due is None
        return due in self.dates

    def describe(self) -> Any:
        return self.sentinel or [d.isoformat() for d in self.dates]


class QueryIntent(BaseModel):
    """Structured query. Built once per query and never mutated."""
    model_config = ConfigDict(frozen=True)

    original_query: str
    search_text: str = ""
    core_keywords: Tuple[str, ...] = ()
    expanded_keywords: Tuple[str, ...] = ()
    priority: Optional[PriorityFilter] = None
    due_date: Optional[DueDateFilter] = None
    due_date_range: Optional[DateRange] = None
    time_label: Optional[str] = None
    status: Tuple[str, ...] = ()
    folder: Optional[str] = None
    tags: Tuple[str, ...] = ()
    is_vague: bool = False
    language: str = "en"
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    source: Literal["local", "ai"] = "local"

    @model_validator(mode="after")
    def validate_intent(self) -> "QueryIntent":
        if self.due_date is not None and self.due_date_range is not None:
            raise ValueError("due_date filter and due_date_range are mutually exclusive")
        if self.time_label is not None and self.due_date_range is None:
            raise ValueError(f"time label {self.time_label!r} was not resolved to a date range")
        missing = [k for k in self.core_keywords if k not in self.expanded_keywords]
        if missing:
            raise ValueError(f"expanded_keywords must include every core keyword, missing {missing}")
        return self

    def has_filters(self) -> bool:
        return any((
            self.priority is not None,
            self.due_date is not None,
            self.due_date_range is not None,
            bool(self.status),
            self.folder is not None,
            bool(self.tags),
        ))

    def applied_filters(self) -> Dict[str, Any]:
        """Present filters in a JSON-friendly form."""
        applied: Dict[str, Any] = {}
        if self.priority is not None:
            applied["priority"] = self.priority.describe()
        if self.due_date is not None:
            applied["due_date"] = self.due_date.describe()
        if self.due_date_range is not None:
            applied["due_date_range"] = self.due_date_range.describe()
        if self.time_label is not None:
            applied["time_label"] = self.time_label
        if self.status:
            applied["status"] = list(self.status)
        if self.folder is not None:
            applied["folder"] = self.folder
        if self.tags:
            applied["tags"] = list(self.tags)
        return applied
