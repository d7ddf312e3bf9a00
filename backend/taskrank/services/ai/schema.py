"""
Pydantic models for AI answers.

The completion service's text is untrusted input. It is decoded into a
tagged variant, ParsedAnswer | Malformed, and only a ParsedAnswer that
passed strict validation is ever used:
- unknown keys are rejected
- priorities must be 1-4 (or the sentinels "all"/"none")
- time labels must be known labels
- status values must resolve to a configured status category
- confidence must be within [0, 1]
"""
import json
import re
from datetime import date
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from taskrank.services.search.terms import normalize_time_label

FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


class AIQueryAnswer(BaseModel):
    """
    Structured output of the query parser agent.

    {
      "coreKeywords": ["design", "mockup"],
      "keywords": ["design", "mockup", "设计", "原型"],
      "priority": [1, 2] | 1 | "all" | "none" | null,
      "dueDate": "2025-01-20" | ["2025-01-20"] | "all" | "none" | null,
      "timeLabel": "this_week" | null,
      "status": ["open"],
      "folder": "Work" | null,
      "tags": ["home"],
      "isVague": false,
      "language": "en",
      "confidence": 0.0-1.0
    }
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    core_keywords: List[str] = Field(default_factory=list, alias="coreKeywords")
    keywords: Union[List[str], Dict[str, List[str]]] = Field(default_factory=list)
    priority: Union[Literal["all", "none"], int, List[int], None] = None
    due_date: Union[List[str], str, None] = Field(None, alias="dueDate")
    time_label: Optional[str] = Field(None, alias="timeLabel")
    status: Union[List[str], str, None] = None
    folder: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_vague: bool = Field(False, alias="isVague")
    language: str = "en"
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("priority")
    @classmethod
    def validate_priority(cls, value):
        levels = [value] if isinstance(value, int) else value
        if isinstance(levels, list):
            bad = [v for v in levels if v not in (1, 2, 3, 4)]
            if bad or not levels:
                raise ValueError(f"priority levels must be 1-4, got {levels}")
        return value

    @field_validator("due_date")
    @classmethod
    def validate_due_date(cls, value):
        if value is None or value in ("all", "none"):
            return value
        values = [value] if isinstance(value, str) else value
        for item in values:
            if normalize_time_label(item) is None:
                try:
                    date.fromisoformat(item)
                except ValueError as exc:
                    raise ValueError(f"dueDate must be a time label or YYYY-MM-DD, got {item!r}") from exc
        return value

    @field_validator("time_label")
    @classmethod
    def validate_time_label(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        label = normalize_time_label(value)
        if label is None:
            raise ValueError(f"unknown time label {value!r}")
        return label

    @field_validator("status")
    @classmethod
    def validate_status(cls, value, info: ValidationInfo):
        if value is None:
            return []
        values = [value] if isinstance(value, str) else value
        resolve = (info.context or {}).get("resolve_status")
        resolved = []
        for item in values:
            category = resolve(item) if resolve else item
            if category is None:
                raise ValueError(f"unknown status category {item!r}")
            if category not in resolved:
                resolved.append(category)
        return resolved


class ParsedAnswer(BaseModel):
    kind: Literal["parsed"] = "parsed"
    answer: AIQueryAnswer


class Malformed(BaseModel):
    kind: Literal["malformed"] = "malformed"
    reason: str
    raw_output: Optional[str] = None


DecodedAnswer = Union[ParsedAnswer, Malformed]


class SchemaValidationError(Exception):
    """Raised when AI output fails schema validation."""

    def __init__(self, agent: str, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.agent = agent
        self.raw_output = raw_output


def _balanced_objects(text: str):
    """Yield top-level {...} substrings, respecting JSON strings."""
    depth = 0
    start = None
    in_string = False
    escaped = False
    for i, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == "\"":
                in_string = False
            continue
        if char == "\"" and depth > 0:
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                yield text[start:i + 1]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Find the JSON object in an AI answer.

    Tries the whole text, then fenced code blocks, then each balanced
    {...} candidate in order. Returns None when nothing decodes to an object.
    """
    if not text:
        return None
    candidates = [text.strip()]
    candidates += [m.group(1).strip() for m in FENCE_RE.finditer(text)]
    candidates += list(_balanced_objects(text))
    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(payload, dict):
            return payload
    return None


def validate_query_answer(payload: Dict[str, Any], resolve_status=None) -> AIQueryAnswer:
    """
    Validate a decoded payload for the query parser agent.

    Raises:
        SchemaValidationError if validation fails.
    """
    try:
        return AIQueryAnswer.model_validate(payload, context={"resolve_status": resolve_status})
    except ValidationError as exc:
        raise SchemaValidationError(agent="query_parser", message=f"Invalid query answer: {exc}") from exc


def decode_query_answer(raw_output: str, resolve_status=None) -> DecodedAnswer:
    """Decode raw AI text into ParsedAnswer or Malformed. Never raises."""
    payload = extract_json_object(raw_output)
    if payload is None:
        return Malformed(reason="no JSON object found in answer", raw_output=raw_output)
    try:
        answer = validate_query_answer(payload, resolve_status)
    except SchemaValidationError as exc:
        return Malformed(reason=str(exc), raw_output=raw_output)
    return ParsedAnswer(answer=answer)
