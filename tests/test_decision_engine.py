"""Unit tests for the intervention decision engine."""
import asyncio

from focusflow.services.ai_orchestrator.decision_engine import DecisionEngine
from focusflow.services.behavior_engine.session_context import SessionContextBucket
from focusflow.services.behavior_engine.snapshot import FocusStatus, InterventionType

from conftest import NOW_MS, FakeProvider, as_json

SESSION_KEY = ("react hooks", "7")


def _classification(**overrides):
    decision = {
        "status": "focused",
        "confidence": 0.4,
        "intervention": "none",
        "cooldown_seconds": 60,
        "reason_codes": ["on_task"],
        "flashcard": None,
        "mascot_script": None,
        "generation_failed": False,
    }
    decision.update(overrides)
    return as_json(decision)


class TestFallbackPath:
    """Test behavior without a usable provider."""

    def test_no_keys_uses_heuristic(self, make_engine, make_payload, store):
        engine = make_engine()

        outcome = asyncio.run(engine.decide(make_payload(inactivity_seconds=50)))

        decision = outcome.decision
        assert decision.status == FocusStatus.DISTRACTED
        assert decision.confidence == 0.66
        assert decision.intervention == InterventionType.NONE
        assert decision.cooldown_seconds == 90
        assert decision.generation_failed is True
        assert "fallback_distraction_detected" in decision.reason_codes
        assert outcome.warning is None
        assert outcome.debug["difficulty_level"] == "beginner"
        assert len(store.get(SESSION_KEY).events) == 1

    def test_heuristic_focused_when_nothing_looks_off(self, make_snapshot):
        snapshot = make_snapshot(is_allowed=True, inactivity_seconds=3, is_relevant_to_topic=True)
        decision = DecisionEngine.fallback_decision(snapshot)
        assert decision.status == FocusStatus.FOCUSED
        assert decision.confidence == 0.62
        assert decision.reason_codes == ("fallback_focused", "ai_provider_unavailable")

    def test_heuristic_low_mouse_on_blocked_site(self, make_snapshot):
        decision = DecisionEngine.fallback_decision(make_snapshot(mouse_score=0.1))
        assert decision.status == FocusStatus.DISTRACTED

    def test_provider_failure_falls_back_with_warning(self, make_engine, make_payload, store):
        engine = make_engine(
            gemini=FakeProvider("gemini", [RuntimeError("quota")]),
            groq=FakeProvider("groq", [RuntimeError("groq_http_503:busy")]),
        )

        outcome = asyncio.run(engine.decide(make_payload()))

        assert outcome.warning == "ai_failed_fallback_used"
        assert outcome.error == "gemini:quota | groq:groq_http_503:busy"
        assert outcome.debug is None
        assert outcome.decision.generation_failed is True
        # context is still recorded for failed requests
        assert len(store.get(SESSION_KEY).events) == 1

    def test_unparseable_classification_falls_back(self, make_engine, make_payload):
        engine = make_engine(gemini=FakeProvider("gemini", ["I think the user is focused."]))

        outcome = asyncio.run(engine.decide(make_payload()))

        assert outcome.warning == "ai_failed_fallback_used"
        assert "invalid_json" in outcome.error


class TestTriggerOverrides:
    """Test explicit intervention requests from the extension."""

    def test_idle_flashcard_request_is_honored(self, make_engine, make_payload, store, good_flashcard):
        engine = make_engine(
            gemini=FakeProvider("gemini", [_classification()]),
            groq=FakeProvider("groq", [as_json(good_flashcard)]),
        )
        payload = make_payload(
            trigger_type="idle_allowed_site",
            requested_intervention="flashcard",
            is_allowed=True,
        )

        outcome = asyncio.run(engine.decide(payload))

        decision = outcome.decision
        assert decision.status == FocusStatus.MILD_DISTRACTION
        assert decision.intervention == InterventionType.FLASHCARD
        assert decision.confidence >= 0.72
        assert decision.cooldown_seconds == 15
        assert decision.flashcard.answer == "A state value and a setter function"
        assert decision.generation_failed is False
        assert outcome.debug["generation_mode"] == "topic_only"
        assert outcome.debug["generation_attempts"] == 1
        assert store.get(SESSION_KEY).last_intervention_at == NOW_MS

    def test_offtopic_mascot_request_is_honored(self, make_engine, make_payload, good_script):
        engine = make_engine(
            gemini=FakeProvider("gemini", [_classification()]),
            groq=FakeProvider("groq", [as_json(good_script)]),
        )
        payload = make_payload(trigger_type="offtopic_site", requested_intervention="mascot_chat")

        outcome = asyncio.run(engine.decide(payload))

        decision = outcome.decision
        assert decision.status == FocusStatus.DISTRACTED
        assert decision.intervention == InterventionType.MASCOT_CHAT
        assert decision.confidence == 0.75
        assert [line.speaker for line in decision.mascot_script] == ["devil", "angel", "devil", "angel"]
        assert outcome.debug["quality_reject_reason"] is None

    def test_override_keeps_worse_status(self, make_snapshot):
        decision = DecisionEngine.sanitize_decision({"status": "severe_distraction", "confidence": 0.9})
        snapshot = make_snapshot(trigger_type="idle_allowed_site_retry", requested_intervention="flashcard")

        overridden = DecisionEngine.apply_trigger_override(decision, snapshot)

        assert overridden.status == FocusStatus.SEVERE_DISTRACTION
        assert overridden.confidence == 0.9

    def test_failed_generation_marks_decision(self, make_engine, make_payload):
        engine = make_engine(
            gemini=FakeProvider("gemini", [_classification(), RuntimeError("x"), RuntimeError("x"), RuntimeError("x")]),
            groq=FakeProvider("groq", [RuntimeError("x"), RuntimeError("x"), RuntimeError("x")]),
        )
        payload = make_payload(trigger_type="idle_allowed_site", requested_intervention="flashcard")

        outcome = asyncio.run(engine.decide(payload))

        assert outcome.decision.intervention == InterventionType.FLASHCARD
        assert outcome.decision.flashcard is None
        assert outcome.decision.generation_failed is True
        assert outcome.debug["quality_reject_reason"] == "generation_error"


class TestGating:
    """Test cooldown suppression and confidence gates."""

    def test_cooldown_suppresses_manual_intervention(self, make_engine, make_payload, store, good_flashcard):
        store.mark_intervention(SESSION_KEY, NOW_MS - 5000)
        engine = make_engine(
            gemini=FakeProvider("gemini", [
                _classification(status="distracted", confidence=0.9, intervention="flashcard", cooldown_seconds=90)
            ]),
            groq=FakeProvider("groq", [as_json(good_flashcard)]),
        )

        outcome = asyncio.run(engine.decide(make_payload()))

        assert outcome.decision.intervention == InterventionType.NONE
        assert "cooldown_active" in outcome.decision.reason_codes
        assert store.get(SESSION_KEY).last_intervention_at == NOW_MS - 5000

    def test_idle_trigger_bypasses_cooldown(self, make_engine, make_payload, store, good_flashcard):
        store.mark_intervention(SESSION_KEY, NOW_MS - 5000)
        engine = make_engine(
            gemini=FakeProvider("gemini", [_classification()]),
            groq=FakeProvider("groq", [as_json(good_flashcard)]),
        )
        payload = make_payload(trigger_type="idle_allowed_site", requested_intervention="flashcard")

        outcome = asyncio.run(engine.decide(payload))

        assert outcome.decision.intervention == InterventionType.FLASHCARD
        assert "cooldown_active" not in outcome.decision.reason_codes
        assert store.get(SESSION_KEY).last_intervention_at == NOW_MS

    def test_low_confidence_mascot_is_gated(self, make_engine, make_payload, good_script):
        engine = make_engine(
            gemini=FakeProvider("gemini", [
                _classification(status="distracted", confidence=0.55, intervention="mascot_chat")
            ]),
            groq=FakeProvider("groq", [as_json(good_script)]),
        )

        outcome = asyncio.run(engine.decide(make_payload()))

        assert outcome.decision.intervention == InterventionType.NONE
        assert "confidence_below_threshold" in outcome.decision.reason_codes

    def test_low_confidence_flashcard_on_idle_trigger_passes(self, make_snapshot):
        decision = DecisionEngine.sanitize_decision({"intervention": "flashcard", "confidence": 0.3})
        snapshot = make_snapshot(trigger_type="idle_allowed_site")
        assert DecisionEngine.apply_confidence_gate(decision, snapshot).intervention == InterventionType.FLASHCARD


class TestSanitizeDecision:
    """Test clamping of model-produced decisions."""

    def test_clamps_confidence_and_cooldown(self):
        decision = DecisionEngine.sanitize_decision({"confidence": 3, "cooldown_seconds": 500})
        assert decision.confidence == 1.0
        assert decision.cooldown_seconds == 180

    def test_small_cooldown_is_raised(self):
        assert DecisionEngine.sanitize_decision({"cooldown_seconds": 4.4}).cooldown_seconds == 10

    def test_cooldown_rounds_half_up(self):
        assert DecisionEngine.sanitize_decision({"cooldown_seconds": 20.5}).cooldown_seconds == 21

    def test_missing_values_get_defaults(self):
        decision = DecisionEngine.sanitize_decision({"cooldown_seconds": "soon", "confidence": float("nan")})
        assert decision.confidence == 0.5
        assert decision.cooldown_seconds == 15
        assert decision.status == FocusStatus.FOCUSED
        assert decision.intervention == InterventionType.NONE

    def test_unknown_enums_fall_back(self):
        decision = DecisionEngine.sanitize_decision({"status": "sleepy", "intervention": "popup"})
        assert decision.status == FocusStatus.FOCUSED
        assert decision.intervention == InterventionType.NONE

    def test_reason_codes_are_capped(self):
        decision = DecisionEngine.sanitize_decision({"reason_codes": ["x" * 100] + ["code"] * 9})
        assert len(decision.reason_codes) == 5
        assert len(decision.reason_codes[0]) == 60

    def test_short_mascot_script_dropped(self):
        decision = DecisionEngine.sanitize_decision({"mascot_script": [{"text": "one"}, {"text": "two"}]})
        assert decision.mascot_script is None


class TestSessionBookkeeping:
    """Test rolling context maintained by the engine."""

    def test_context_window_is_capped(self, make_engine, make_payload, store):
        engine = make_engine()

        async def run_many():
            for i in range(20):
                await engine.decide(make_payload(page_title=f"Page {i}"))

        asyncio.run(run_many())

        events = store.get(SESSION_KEY).events
        assert len(events) == 15
        assert events[0]["page_title"] == "Page 5"
        assert events[-1]["page_title"] == "Page 19"

    def test_recent_context_reaches_the_prompt(self, make_engine, make_payload):
        gemini = FakeProvider("gemini", [_classification(), _classification()])
        engine = make_engine(gemini=gemini)

        async def run_twice():
            await engine.decide(make_payload(page_title="First page"))
            await engine.decide(make_payload(page_title="Second page"))

        asyncio.run(run_twice())

        second_prompt = gemini.complete.await_args_list[1].args[0]
        assert "First page" in second_prompt

    def test_sessions_are_keyed_by_topic_and_tab(self, make_engine, make_payload, store):
        engine = make_engine()

        async def run_sessions():
            await engine.decide(make_payload(active_tab_id=1))
            await engine.decide(make_payload(active_tab_id=2))
            await engine.decide(make_payload(study_topic="", active_tab_id=None))

        asyncio.run(run_sessions())

        assert len(store) == 3
        assert len(store.get(("untitled", "na")).events) == 1


class TestReasonCodeCap:
    """Test that gating steps keep reason codes within the cap."""

    def test_cooldown_on_full_reason_list(self, make_snapshot):
        decision = DecisionEngine.sanitize_decision({
            "intervention": "flashcard",
            "confidence": 0.9,
            "cooldown_seconds": 90,
            "reason_codes": ["a", "b", "c", "d", "e"],
        })
        bucket = SessionContextBucket(last_intervention_at=1000)

        gated = DecisionEngine.apply_cooldown(decision, make_snapshot(), bucket, 6000)

        assert gated.intervention == InterventionType.NONE
        assert len(gated.reason_codes) == 5
        assert gated.reason_codes == ("a", "b", "c", "d", "cooldown_active")

    def test_confidence_gate_on_full_reason_list(self, make_snapshot):
        decision = DecisionEngine.sanitize_decision({
            "intervention": "mascot_chat",
            "confidence": 0.3,
            "reason_codes": ["a", "b", "c", "d", "e", "f"],
        })

        gated = DecisionEngine.apply_confidence_gate(decision, make_snapshot())

        assert len(gated.reason_codes) == 5
        assert gated.reason_codes[-1] == "confidence_below_threshold"

    def test_analyze_response_stays_within_cap(self, make_engine, make_payload, store, good_flashcard):
        store.mark_intervention(SESSION_KEY, NOW_MS - 5000)
        engine = make_engine(
            gemini=FakeProvider("gemini", [
                _classification(
                    status="distracted",
                    confidence=0.9,
                    intervention="flashcard",
                    cooldown_seconds=90,
                    reason_codes=["r1", "r2", "r3", "r4", "r5"],
                )
            ]),
            groq=FakeProvider("groq", [as_json(good_flashcard)]),
        )

        outcome = asyncio.run(engine.decide(make_payload()))

        assert outcome.decision.reason_codes == ("r1", "r2", "r3", "r4", "cooldown_active")
