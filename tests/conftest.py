"""Pytest configuration and shared fixtures."""
import json
from unittest.mock import AsyncMock

import pytest

from focusflow.services.ai_orchestrator import DecisionEngine, LLMGateway
from focusflow.services.behavior_engine import SessionContextStore, summarize_payload

NOW_MS = 1_700_000_000_000


class FakeProvider:
    """Scripted completion provider; strings are returned, exceptions raised, in order."""

    def __init__(self, name, responses=(), configured=True):
        self.name = name
        self._configured = configured
        self.complete = AsyncMock(side_effect=list(responses))

    @property
    def is_configured(self):
        return self._configured


def as_json(obj):
    return json.dumps(obj)


@pytest.fixture
def make_payload():
    """Factory for extension payloads; page fields go into the last event."""
    def _make(
        study_topic="react hooks",
        trigger_type="manual",
        requested_intervention=None,
        active_tab_id=7,
        **event_fields,
    ):
        event = {
            "domain": "youtube.com",
            "category": "video",
            "page_title": "Funny cat compilation",
            "is_allowed": False,
            "inactivity_seconds": 5,
            "mouse_score": 0.6,
            "content": {"headings": [], "summary": "", "word_count": 0},
        }
        event.update(event_fields)
        return {
            "trigger_type": trigger_type,
            "requested_intervention": requested_intervention,
            "study_topic": study_topic,
            "active_tab_id": active_tab_id,
            "session_duration": 600,
            "tab_switches": 3,
            "active_tab_time_seconds": 120,
            "events": [event],
        }
    return _make


@pytest.fixture
def make_snapshot(make_payload):
    def _make(**kwargs):
        return summarize_payload(make_payload(**kwargs))
    return _make


@pytest.fixture
def good_flashcard():
    return {
        "question": "What does the useState hook return in a React component?",
        "options": [
            "A state value and a setter function",
            "A reference to a DOM node",
            "A CSS class name",
            "A pending network response",
        ],
        "answer": "A",
        "hint": "Think about how a component remembers values between renders.",
        "explanation": "useState returns the current state and a function to update it. Calling the setter re-renders the component.",
    }


@pytest.fixture
def good_script():
    return {
        "mascot_script": [
            {"speaker": "devil", "text": "Just one more youtube.com video, react hooks can wait until later."},
            {"speaker": "angel", "text": "Close the tab and write a tiny useState counter to practice react hooks."},
            {"speaker": "devil", "text": "Skip the hooks docs, the youtube.com recommendations are way more fun."},
            {"speaker": "angel", "text": "Spend five minutes on the useEffect cleanup example in your react notes."},
        ]
    }


@pytest.fixture
def store():
    return SessionContextStore()


@pytest.fixture
def make_engine(store):
    """Build a DecisionEngine over fake providers with a fixed clock."""
    def _make(gemini=None, groq=None, now_ms=NOW_MS):
        providers = [
            gemini or FakeProvider("gemini", configured=False),
            groq or FakeProvider("groq", configured=False),
        ]
        return DecisionEngine(LLMGateway(providers), store, clock=lambda: now_ms)
    return _make
