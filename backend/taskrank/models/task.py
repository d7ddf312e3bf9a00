"""
Work item model.

Items are owned by the external store and read-only here. A query works on a
snapshot: a tuple of frozen Task instances taken when the query starts.
"""
from datetime import date
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Task(BaseModel):
    """A schedulable work item."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    text: str
    status: str = Field("open", description="Status symbol or category name, e.g. 'x', '/', 'open'")
    priority: Optional[int] = Field(None, ge=1, le=4, description="1 = highest, 4 = lowest")
    due_date: Optional[date] = None
    created_date: Optional[date] = None
    folder: str = ""
    tags: Tuple[str, ...] = ()

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            value = [value]
        return tuple(tag.strip().lstrip("#") for tag in value if tag and tag.strip().lstrip("#"))
