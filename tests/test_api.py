"""Tests for the HTTP endpoints."""
import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from focusflow.api.deps import get_decision_engine, get_event_log
from focusflow.main import app
from focusflow.services.event_log import EventLog


@pytest.fixture
def engine(make_engine):
    return make_engine()


@pytest.fixture
def event_log(tmp_path):
    return EventLog(tmp_path / "logs" / "parse-events.jsonl")


@pytest.fixture
def client(engine, event_log):
    app.dependency_overrides[get_decision_engine] = lambda: engine
    app.dependency_overrides[get_event_log] = lambda: event_log
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestAnalyzeEndpoint:
    """Test POST /api/ai/analyze."""

    def test_returns_heuristic_decision_without_keys(self, client, make_payload):
        response = client.post("/api/ai/analyze", json=make_payload(inactivity_seconds=50))

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert isinstance(body["timestamp"], int)
        assert body["decision"]["status"] == "distracted"
        assert body["decision"]["intervention"] == "none"
        assert body["decision"]["generation_failed"] is True
        assert body["decision"]["flashcard"] is None
        assert body["debug"]["topic_family"] == "coding"
        assert "warning" not in body
        assert "error" not in body

    def test_pipeline_error_still_returns_200(self, client, engine, make_payload):
        engine.decide = AsyncMock(side_effect=RuntimeError("boom"))

        response = client.post("/api/ai/analyze", json=make_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["warning"] == "ai_failed_fallback_used"
        assert body["error"] == "boom"
        assert body["decision"]["intervention"] == "none"

    def test_malformed_fields_are_tolerated(self, client):
        response = client.post(
            "/api/ai/analyze",
            json={"session_duration": "long", "tab_switches": None, "events": [{"inactivity_seconds": "n/a"}]},
        )

        assert response.status_code == 200
        assert response.json()["decision"]["intervention"] == "none"

    @pytest.mark.parametrize("events", [{"domain": "x"}, "not a list", 42])
    def test_non_list_events_are_ignored(self, client, events):
        response = client.post("/api/ai/analyze", json={"study_topic": "react", "events": events})

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["decision"]["intervention"] == "none"


class TestEventEndpoints:
    """Test payload ingestion and inspection."""

    def test_parse_records_payload_and_context(self, client, engine, event_log, make_payload):
        response = client.post("/api/parse", json=make_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["ok"] is True
        assert body["message"] == "Payload received"
        assert event_log.count == 1
        assert len(engine.store.get(("react hooks", "7")).events) == 1

        lines = event_log.path.read_text(encoding="utf-8").splitlines()
        assert json.loads(lines[0])["payload"]["study_topic"] == "react hooks"

    def test_raw_keeps_unparseable_body(self, client, event_log):
        response = client.post(
            "/api/raw", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        event = event_log.recent(1)[0]
        assert event["payload"] == {"raw_body": "{not json"}
        assert event["parse_error"]

    def test_events_are_newest_first(self, client):
        client.post("/api/raw", content=b'{"n": 1}')
        client.post("/api/raw", content=b'{"n": 2}')

        body = client.get("/events").json()

        assert body["ok"] is True
        assert body["count"] == 2
        assert [e["payload"]["n"] for e in body["events"]] == [2, 1]


class TestServiceEndpoints:
    """Test root and health endpoints."""

    def test_root(self, client):
        assert client.get("/").json()["message"] == "Focus Flow AI Backend"

    def test_health(self, client):
        body = client.get("/health").json()
        assert body["ok"] is True
        assert body["service"] == "focus-flow-ai-backend"
        assert {"model", "hasGeminiKey", "hasGroqKey", "groqModel", "logFile"} <= set(body)
