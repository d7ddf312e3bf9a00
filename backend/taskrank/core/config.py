"""
Configuration for query parsing, scoring and the AI stages.

Sources, later ones winning:
- defaults declared on the models below
- an optional JSON file named by TASKRANK_CONFIG_PATH
- environment overrides for the AI settings:
  LLM_API_BASE, LLM_API_KEY, LLM_MODEL, LLM_TIMEOUT_SECONDS, TASKRANK_AI_ENABLED

Every model forbids unknown keys, so a misspelled setting is a
ConfigurationError instead of a silently ignored value.
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    field_validator,
    model_validator,
)

from taskrank.core.errors import ConfigurationError
from taskrank.core.logging import get_logger
from taskrank.services.search.spell_correction import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    DEFAULT_MAX_EDIT_DISTANCE,
    DEFAULT_MIN_WORD_LENGTH,
    SpellCorrectionService,
    property_vocabulary,
)
from taskrank.services.search.stop_words import stop_words_for
from taskrank.services.search.terms import Lexicon, build_lexicon

logger = get_logger(__name__)

CONFIG_PATH_ENV = "TASKRANK_CONFIG_PATH"

TieBreakCriterion = Literal["priority", "due_date", "created", "status", "alphabetical", "relevance"]


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PropertyTermSettings(StrictModel):
    """User terms per category, keyed by the value they stand for."""
    priority: Dict[str, List[str]] = Field(default_factory=dict)
    due_date: Dict[str, List[str]] = Field(default_factory=dict)
    status: Dict[str, List[str]] = Field(default_factory=dict)


class ScoringSettings(StrictModel):
    """Relevance points added per matching component."""
    exact_match: float = 100.0
    keyword_match: float = 10.0
    folder_match: float = 5.0
    tag_match: float = 5.0
    incomplete_status: float = 2.0
    priority_points: Dict[int, float] = Field(default_factory=lambda: {1: 3.0, 2: 1.0, 3: 0.0, 4: 0.0})
    has_due_date: float = 2.0

    @field_validator("priority_points")
    @classmethod
    def validate_levels(cls, value: Dict[int, float]) -> Dict[int, float]:
        unknown = sorted(level for level in value if level not in (1, 2, 3, 4))
        if unknown:
            raise ValueError(f"priority levels must be 1-4, got {unknown}")
        return value


class DueUrgencySettings(StrictModel):
    overdue: float = 1.5
    today: float = 1.25
    within_week: float = 1.0
    within_month: float = 0.5
    later: float = 0.2
    none: float = 0.1


class PriorityScoreSettings(StrictModel):
    levels: Dict[int, float] = Field(default_factory=lambda: {1: 1.0, 2: 0.75, 3: 0.5, 4: 0.2})
    none: float = 0.1

    @field_validator("levels")
    @classmethod
    def validate_levels(cls, value: Dict[int, float]) -> Dict[int, float]:
        missing = [level for level in (1, 2, 3, 4) if level not in value]
        if missing or len(value) != 4:
            raise ValueError("levels must define exactly the priority levels 1-4")
        return value


class RankingWeights(StrictModel):
    """Coefficients of the composite score: relevance x R + urgency x D + priority x P."""
    relevance: float = Field(20.0, ge=0.0)
    due_date: float = Field(4.0, ge=0.0)
    priority: float = Field(1.0, ge=0.0)


class BoundsSettings(StrictModel):
    max_expansions_per_keyword: int = Field(5, ge=0)
    max_candidates_to_ai: int = Field(20, ge=1)
    fallback_top_k: int = Field(5, ge=1)
    max_recommendations: int = Field(10, ge=1)


class SearchSettings(StrictModel):
    require_keyword_match: bool = True
    default_limit: Optional[int] = Field(None, ge=1)


class SpellingSettings(StrictModel):
    """Local typo correction applied before property recognition."""
    enabled: bool = True
    max_edit_distance: int = Field(DEFAULT_MAX_EDIT_DISTANCE, ge=0, le=3)
    confidence_threshold: float = Field(DEFAULT_CONFIDENCE_THRESHOLD, ge=0.0, le=1.0)
    min_word_length: int = Field(DEFAULT_MIN_WORD_LENGTH, ge=1)
    typos: Dict[str, str] = Field(default_factory=dict)


class AISettings(StrictModel):
    """Completion service settings. The API key never appears in logs."""
    enabled: bool = False
    api_base: str = "https://api.openai.com/v1"
    api_key: Optional[str] = None
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    temperature: float = Field(0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(1024, ge=1)
    parse_max_tokens: int = Field(512, ge=1)
    timeout_seconds: float = Field(10.0, gt=0.0)


class Settings(StrictModel):
    property_terms: PropertyTermSettings = Field(default_factory=PropertyTermSettings)
    status_categories: Dict[str, List[str]] = Field(
        default_factory=lambda: {
            "open": [" ", "", "todo", "pending", "incomplete"],
            "in_progress": ["/", "in progress", "doing"],
            "completed": ["x", "done", "complete"],
            "cancelled": ["-", "canceled"],
        }
    )
    completed_statuses: List[str] = Field(default_factory=lambda: ["completed", "cancelled"])
    stop_words: List[str] = Field(default_factory=list)
    locale: str = "auto"
    default_language: str = "en"
    query_languages: List[str] = Field(default_factory=lambda: ["en", "zh"])
    week_start: int = Field(0, ge=0, le=6)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    due_urgency: DueUrgencySettings = Field(default_factory=DueUrgencySettings)
    priority_scores: PriorityScoreSettings = Field(default_factory=PriorityScoreSettings)
    weights: RankingWeights = Field(default_factory=RankingWeights)
    tie_break: List[TieBreakCriterion] = Field(default_factory=lambda: ["priority", "due_date", "created"])
    bounds: BoundsSettings = Field(default_factory=BoundsSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    spelling: SpellingSettings = Field(default_factory=SpellingSettings)
    ai: AISettings = Field(default_factory=AISettings)

    _lexicon: Optional[Lexicon] = PrivateAttr(default=None)
    _speller: Optional[SpellCorrectionService] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def validate_relations(self) -> "Settings":
        if not self.status_categories:
            raise ValueError("status_categories must define at least one category")
        unknown = [s for s in self.completed_statuses if s not in self.status_categories]
        if unknown:
            raise ValueError(f"completed_statuses reference unknown categories: {unknown}")
        if len(set(self.tie_break)) != len(self.tie_break):
            raise ValueError("tie_break criteria must not repeat")
        if not self.query_languages:
            raise ValueError("query_languages must not be empty")
        return self

    @property
    def lexicon(self) -> Lexicon:
        if self._lexicon is None:
            self._lexicon = build_lexicon(
                self.property_terms.priority,
                self.property_terms.due_date,
                self.property_terms.status,
                self.status_categories,
            )
        return self._lexicon

    @property
    def speller(self) -> SpellCorrectionService:
        if self._speller is None:
            spelling = self.spelling
            self._speller = SpellCorrectionService(
                property_vocabulary(self.lexicon, spelling.min_word_length),
                typos=spelling.typos,
                stop_words=stop_words_for(self.locale, self.stop_words),
                max_edit_distance=spelling.max_edit_distance,
                confidence_threshold=spelling.confidence_threshold,
                min_word_length=spelling.min_word_length,
            )
        return self._speller

    def resolve_status(self, value: Optional[str]) -> Optional[str]:
        return self.lexicon.resolve_status(value)

    def is_incomplete(self, status: Optional[str]) -> bool:
        category = self.resolve_status(status)
        return category not in self.completed_statuses


def _error_field(exc: ValidationError) -> Optional[str]:
    errors = exc.errors()
    if not errors:
        return None
    return ".".join(str(part) for part in errors[0].get("loc", ()))


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if os.getenv("LLM_API_BASE"):
        overrides["api_base"] = os.environ["LLM_API_BASE"]
    if os.getenv("LLM_API_KEY"):
        overrides["api_key"] = os.environ["LLM_API_KEY"]
    if os.getenv("LLM_MODEL"):
        overrides["model"] = os.environ["LLM_MODEL"]
    if os.getenv("LLM_TIMEOUT_SECONDS"):
        overrides["timeout_seconds"] = os.environ["LLM_TIMEOUT_SECONDS"]
    if os.getenv("TASKRANK_AI_ENABLED"):
        overrides["enabled"] = os.environ["TASKRANK_AI_ENABLED"].strip().lower() in ("1", "true", "yes", "on")
    return overrides


def build_settings(data: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Validate a settings mapping and build its lexicon.

    Raises:
        ConfigurationError: if any value is malformed or unknown.
    """
    try:
        settings = Settings.model_validate(data or {})
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}", field=_error_field(exc)) from exc

    # Build eagerly so term errors surface at load time, not mid-query.
    _ = settings.lexicon
    return settings


def load_settings(path: Optional[Path] = None, apply_env: bool = True) -> Settings:
    """
    Load settings from defaults, an optional JSON file and the environment.

    Raises:
        ConfigurationError: if the file is unreadable or any value is malformed.
    """
    data: Dict[str, Any] = {}
    if path is None and os.getenv(CONFIG_PATH_ENV):
        path = Path(os.environ[CONFIG_PATH_ENV])

    if path is not None:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")

    if apply_env:
        overrides = _env_overrides()
        if overrides:
            ai_section = data.get("ai") or {}
            if not isinstance(ai_section, dict):
                raise ConfigurationError("ai settings must be an object", field="ai")
            data = {**data, "ai": {**ai_section, **overrides}}

    settings = build_settings(data)
    logger.info(
        "settings_loaded",
        path=str(path) if path else None,
        ai_enabled=settings.ai.enabled,
        ai_model=settings.ai.model,
        status_categories=list(settings.status_categories),
        tie_break=settings.tie_break,
    )
    return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Global settings accessor, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


__all__ = [
    "AISettings",
    "BoundsSettings",
    "DueUrgencySettings",
    "PriorityScoreSettings",
    "PropertyTermSettings",
    "RankingWeights",
    "ScoringSettings",
    "SearchSettings",
    "Settings",
    "build_settings",
    "get_settings",
    "load_settings",
    "reset_settings",
]
