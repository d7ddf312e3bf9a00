"""
Tests for the HTTP surface: health, rank and metrics endpoints.
"""
import pytest
from fastapi.testclient import TestClient

from taskrank.core.config import AISettings
from taskrank.main import app
from taskrank.services.ai.llm_client import get_completion_client

SCENARIO_ITEMS = [
    {"id": "A", "text": "design mockups", "priority": 2, "due_date": "2025-01-21"},
    {"id": "B", "text": "code review", "priority": 1, "due_date": "2025-01-20"},
    {"id": "C", "text": "write docs", "status": "done"},
]


@pytest.fixture
def client():
    return TestClient(app)


def rank_body(**overrides):
    body = {
        "query": "s:open p:1,2",
        "items": SCENARIO_ITEMS,
        "reference_date": "2025-01-20",
        "weights": {"relevance": 20, "due_date": 4, "priority": 1},
    }
    body.update(overrides)
    return body


def test_health_check(client):
    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["ai_enabled"] is False
    assert data["ai_model"] is None
    assert "X-Request-ID" in response.headers


class TestRankEndpoint:
    """Test POST /rank."""

    def test_scenario_ranking(self, client):
        response = client.post("/rank", json=rank_body(), headers={"X-Trace-ID": "trace-abc"})

        assert response.status_code == 200
        assert response.headers["X-Trace-ID"] == "trace-abc"
        data = response.json()
        assert [item["id"] for item in data["results"]] == ["B", "A"]
        assert [item["score"] for item in data["results"]] == [146.0, 104.75]
        assert data["recommended_ids"] == ["B", "A"]
        assert data["selection_source"] == "fallback_top_k"
        assert data["total_considered"] == 3
        assert data["applied_filters"] == {"priority": [1, 2], "status": ["open"]}
        assert data["stages"] == [
            "received", "locally_parsed", "skipped_ai", "filtered_scored", "fallback_top_k", "delivered",
        ]
        assert data["errors"] == []

    def test_breakdown_is_returned(self, client):
        response = client.post("/rank", json=rank_body())

        breakdown = response.json()["results"][0]["breakdown"]
        assert breakdown["composite"] == 146.0
        assert breakdown["due_urgency"] == 1.25

    def test_limit(self, client):
        response = client.post("/rank", json=rank_body(limit=1))

        assert [item["id"] for item in response.json()["results"]] == ["B"]

    def test_no_items(self, client):
        response = client.post("/rank", json=rank_body(items=[]))

        assert response.status_code == 200
        assert response.json()["results"] == []

    def test_impossible_date_phrase(self, client):
        response = client.post("/rank", json=rank_body(query="review before 2025-02-30"))

        assert response.status_code == 200
        data = response.json()
        assert data["errors"] == []
        assert [item["id"] for item in data["results"]] == ["B"]

    def test_empty_query(self, client):
        response = client.post("/rank", json=rank_body(query="   "))

        assert response.status_code == 400
        data = response.json()
        assert data["detail"] == "Field 'query' is required"
        assert data["trace_id"]

    def test_invalid_priority(self, client):
        items = [{"id": "A", "text": "design", "priority": 7}]

        response = client.post("/rank", json=rank_body(items=items))

        assert response.status_code == 422

    def test_invalid_limit(self, client):
        response = client.post("/rank", json=rank_body(limit=0))

        assert response.status_code == 422


def test_metrics_endpoint(client):
    client.post("/rank", json=rank_body())

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "taskrank_" in response.text


def test_metrics_endpoint_name_filter(client):
    client.post("/rank", json=rank_body())

    response = client.get("/metrics", params={"name[]": "taskrank_search_latency_seconds_count"})

    assert response.status_code == 200
    assert "taskrank_search_latency_seconds_count" in response.text
    assert "taskrank_http_requests_total" not in response.text


def test_metrics_endpoint_samples_circuit_breaker(client):
    get_completion_client(AISettings(api_key="k"))

    response = client.get("/metrics")

    assert 'taskrank_circuit_breaker_state{name="completion"} 0.0' in response.text
