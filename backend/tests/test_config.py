"""
Unit tests for settings loading and validation.
"""
import json

import pytest

from taskrank.core.config import build_settings, get_settings, load_settings, reset_settings
from taskrank.core.errors import ConfigurationError


class TestDefaults:
    """Test built-in defaults."""

    def test_weights(self, settings):
        assert settings.weights.relevance == 20.0
        assert settings.weights.due_date == 4.0
        assert settings.weights.priority == 1.0

    def test_bounds(self, settings):
        assert settings.bounds.max_candidates_to_ai == 20
        assert settings.bounds.fallback_top_k == 5

    def test_tie_break(self, settings):
        assert settings.tie_break == ["priority", "due_date", "created"]

    def test_ai_disabled(self, settings):
        assert not settings.ai.enabled

    def test_status_helpers(self, settings):
        assert settings.resolve_status("x") == "completed"
        assert settings.is_incomplete("open")
        assert settings.is_incomplete("/")
        assert not settings.is_incomplete("x")
        assert not settings.is_incomplete("canceled")


class TestValidation:
    """Invalid settings raise ConfigurationError."""

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            build_settings({"weigths": {"relevance": 1}})

        assert exc_info.value.field == "weigths"

    def test_unknown_nested_key(self):
        with pytest.raises(ConfigurationError):
            build_settings({"weights": {"urgency": 1}})

    def test_negative_weight(self):
        with pytest.raises(ConfigurationError):
            build_settings({"weights": {"relevance": -1}})

    def test_priority_points_levels(self):
        with pytest.raises(ConfigurationError):
            build_settings({"scoring": {"priority_points": {"5": 1}}})

    def test_priority_score_levels(self):
        with pytest.raises(ConfigurationError):
            build_settings({"priority_scores": {"levels": {"1": 1.0}}})

    def test_unknown_completed_status(self):
        with pytest.raises(ConfigurationError):
            build_settings({"completed_statuses": ["archived"]})

    def test_repeated_tie_break(self):
        with pytest.raises(ConfigurationError):
            build_settings({"tie_break": ["priority", "priority"]})

    def test_unknown_tie_break(self):
        with pytest.raises(ConfigurationError):
            build_settings({"tie_break": ["random"]})

    def test_conflicting_status_aliases(self):
        with pytest.raises(ConfigurationError):
            build_settings({
                "status_categories": {"open": ["x"], "completed": ["x"]},
                "completed_statuses": ["completed"],
            })

    def test_unknown_property_term_key(self):
        with pytest.raises(ConfigurationError):
            build_settings({"property_terms": {"due_date": {"someday": ["eventually"]}}})


class TestLoading:
    """Test file and environment sources."""

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"weights": {"relevance": 10}, "ai": {"model": "file-model"}}))

        settings = load_settings(path)

        assert settings.weights.relevance == 10
        assert settings.weights.due_date == 4.0
        assert settings.ai.model == "file-model"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"locale": "sv"}))
        monkeypatch.setenv("TASKRANK_CONFIG_PATH", str(path))

        assert load_settings().locale == "sv"

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.json"
        path.write_text(json.dumps({"ai": {"model": "file-model", "enabled": False}}))
        monkeypatch.setenv("LLM_MODEL", "env-model")
        monkeypatch.setenv("LLM_API_KEY", "sk-env")
        monkeypatch.setenv("LLM_API_BASE", "https://llm.internal/v1")
        monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "3.5")
        monkeypatch.setenv("TASKRANK_AI_ENABLED", "true")

        settings = load_settings(path)

        assert settings.ai.model == "env-model"
        assert settings.ai.api_key == "sk-env"
        assert settings.ai.api_base == "https://llm.internal/v1"
        assert settings.ai.timeout_seconds == 3.5
        assert settings.ai.enabled

    def test_environment_ignored_when_disabled(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL", "env-model")

        assert load_settings(apply_env=False).ai.model == "gpt-4o-mini"

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("LLM_TIMEOUT_SECONDS", "soon")

        with pytest.raises(ConfigurationError):
            load_settings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_settings(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("{not json")

        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text("[1, 2]")

        with pytest.raises(ConfigurationError):
            load_settings(path)

    def test_get_settings_is_cached(self):
        settings = get_settings()

        assert get_settings() is settings
        reset_settings()
        assert get_settings() is not settings
