"""
Intervention Decision Engine - main orchestration logic.

Turns one behavioral payload into a Decision: LLM focus classification
(or a heuristic when no provider is available), then trigger overrides,
content generation, cooldown suppression and confidence gating, in that
order. Per-session rolling context lives in an injected store.
"""

import logging
import math
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from focusflow.services.ai_orchestrator.gateway import LLMGateway
from focusflow.services.ai_orchestrator.generation import ContentGenerator
from focusflow.services.ai_orchestrator.models import (
    AnalysisOutcome,
    Decision,
    Flashcard,
    script_from_raw,
)
from focusflow.services.ai_orchestrator.policies import (
    InterventionPolicy,
    has_usable_flashcard,
    has_usable_mascot_script,
)
from focusflow.services.ai_orchestrator.prompts import build_focus_prompt
from focusflow.services.behavior_engine.session_context import (
    SessionContextBucket,
    SessionContextStore,
)
from focusflow.services.behavior_engine.snapshot import (
    BehavioralSnapshot,
    FocusStatus,
    InterventionType,
    summarize_payload,
)
from focusflow.services.behavior_engine.topic_relevance import (
    TopicProfile,
    TopicRelevanceProfiler,
)

logger = logging.getLogger(__name__)

AI_FAILED_WARNING = "ai_failed_fallback_used"

MAX_REASON_CODES = 5
MAX_REASON_CODE_CHARS = 60


def _now_ms() -> int:
    return int(time.time() * 1000)


def _finite_number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if math.isfinite(value) else None


def _append_reason(codes, code: str):
    # keeps at most MAX_REASON_CODES; the newest gating code always survives
    return (*codes[:MAX_REASON_CODES - 1], code)


def _enum_or(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


class DecisionEngine:
    """
    Request-level pipeline for focus classification and interventions.

    Architecture:
    1. Base decision (LLM classification or heuristic fallback)
    2. Trigger override (honor explicit flashcard/mascot requests)
    3. Content generation (flashcard or devil/angel script)
    4. Cooldown suppression (idle triggers bypass)
    5. Confidence gating
    6. Session bookkeeping (intervention stamp, rolling context)

    Any failure in 1-5 degrades to the heuristic decision; the caller
    always gets a Decision back.
    """

    def __init__(
        self,
        gateway: LLMGateway,
        store: SessionContextStore,
        generator: Optional[ContentGenerator] = None,
        profiler: Optional[TopicRelevanceProfiler] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Args:
            gateway: Provider chain for classification calls
            store: Session context store owned by the caller
            generator: Content generator (built on the same gateway if None)
            profiler: Topic relevance profiler
            clock: Returns the current time in epoch milliseconds
        """
        self.gateway = gateway
        self.store = store
        self.generator = generator or ContentGenerator(gateway)
        self.profiler = profiler or TopicRelevanceProfiler()
        self.clock = clock or _now_ms
        logger.info("DecisionEngine initialized")

    # --- BASE DECISION ---

    @staticmethod
    def fallback_decision(snapshot: BehavioralSnapshot) -> Decision:
        """
        Heuristic classification used when the LLM path is unavailable.
        Never proposes an intervention.
        """
        distracted = (
            snapshot.inactivity_sec > 40
            or snapshot.is_relevant_to_topic is False
            or (snapshot.is_allowed is False and snapshot.mouse_score < 0.25)
        )

        if not distracted:
            return Decision(
                status=FocusStatus.FOCUSED,
                confidence=0.62,
                intervention=InterventionType.NONE,
                cooldown_seconds=InterventionPolicy.DEFAULT_COOLDOWN_SECONDS,
                reason_codes=("fallback_focused", "ai_provider_unavailable"),
                generation_failed=True,
            )

        return Decision(
            status=FocusStatus.DISTRACTED,
            confidence=0.66,
            intervention=InterventionType.NONE,
            cooldown_seconds=InterventionPolicy.DEFAULT_COOLDOWN_SECONDS,
            reason_codes=("fallback_distraction_detected", "ai_provider_unavailable"),
            generation_failed=True,
        )

    @staticmethod
    def sanitize_decision(raw: Dict[str, Any]) -> Decision:
        """Clamp and validate a model-produced decision object"""
        confidence = _finite_number(raw.get("confidence"))
        confidence = 0.5 if confidence is None else max(0.0, min(1.0, confidence))

        cooldown = _finite_number(raw.get("cooldown_seconds"))
        if cooldown is None:
            cooldown_seconds = InterventionPolicy.OVERRIDE_COOLDOWN_SECONDS
        else:
            cooldown_seconds = max(
                InterventionPolicy.MIN_COOLDOWN_SECONDS,
                min(InterventionPolicy.MAX_COOLDOWN_SECONDS, int(math.floor(cooldown + 0.5))),
            )

        codes = raw.get("reason_codes")
        reason_codes = (
            tuple(str(c)[:MAX_REASON_CODE_CHARS] for c in codes[:MAX_REASON_CODES])
            if isinstance(codes, list) else ()
        )

        raw_card = raw.get("flashcard")
        flashcard = Flashcard.from_raw(raw_card) if isinstance(raw_card, dict) else None

        script = script_from_raw(raw.get("mascot_script"))
        if script is not None and len(script) < 4:
            script = None

        return Decision(
            status=_enum_or(FocusStatus, raw.get("status"), FocusStatus.FOCUSED),
            confidence=confidence,
            intervention=_enum_or(InterventionType, raw.get("intervention"), InterventionType.NONE),
            cooldown_seconds=cooldown_seconds,
            reason_codes=reason_codes,
            flashcard=flashcard,
            mascot_script=script,
            generation_failed=bool(raw.get("generation_failed")),
        )

    async def analyze_with_llm(
        self,
        snapshot: BehavioralSnapshot,
        bucket: SessionContextBucket,
    ) -> Decision:
        """
        Ask the LLM for a focus classification.

        Returns the heuristic decision when no provider is configured.

        Raises:
            ProviderChainError: If every provider failed
            ValueError: If the reply is not a JSON object
        """
        if not self.gateway.is_configured:
            return self.fallback_decision(snapshot)

        prompt = build_focus_prompt(snapshot, bucket.events)
        result = await self.gateway.run_json_object(prompt, preferred_provider="gemini")
        if not result.ok:
            raise ValueError(f"classification reply unusable: {result.error}")
        return self.sanitize_decision(result.data)

    # --- POLICY STEPS ---

    @staticmethod
    def apply_trigger_override(decision: Decision, snapshot: BehavioralSnapshot) -> Decision:
        if InterventionPolicy.forces_flashcard(snapshot):
            decision = replace(
                decision,
                intervention=InterventionType.FLASHCARD,
                status=(
                    FocusStatus.MILD_DISTRACTION
                    if decision.status == FocusStatus.FOCUSED else decision.status
                ),
                confidence=max(decision.confidence or 0.0, InterventionPolicy.IDLE_FLASHCARD_MIN_CONFIDENCE),
                cooldown_seconds=InterventionPolicy.OVERRIDE_COOLDOWN_SECONDS,
            )

        if InterventionPolicy.forces_mascot(snapshot):
            decision = replace(
                decision,
                intervention=InterventionType.MASCOT_CHAT,
                status=(
                    FocusStatus.DISTRACTED
                    if decision.status == FocusStatus.FOCUSED else decision.status
                ),
                confidence=max(decision.confidence or 0.0, InterventionPolicy.OFFTOPIC_MASCOT_MIN_CONFIDENCE),
                cooldown_seconds=InterventionPolicy.OVERRIDE_COOLDOWN_SECONDS,
            )

        return decision

    async def attach_content(
        self,
        decision: Decision,
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
        debug: Dict[str, Any],
    ) -> Decision:
        """Generate content for the chosen intervention; updates debug in place"""
        if decision.intervention == InterventionType.FLASHCARD:
            generated = await self.generator.generate_flashcard_with_retries(snapshot, profile)
            debug.update(
                generation_mode=generated.generation_mode,
                quality_reject_reason=generated.quality_reject_reason,
                generation_attempts=generated.attempts,
            )
            if generated.card is not None:
                decision = replace(decision, flashcard=generated.card, generation_failed=False)
            elif has_usable_flashcard(decision.flashcard):
                decision = replace(decision, generation_failed=False)
            else:
                decision = replace(decision, flashcard=None, generation_failed=True)

        if decision.intervention == InterventionType.MASCOT_CHAT:
            generated = await self.generator.generate_mascot_script_with_retries(
                snapshot, profile, snapshot.domain
            )
            debug.update(
                generation_attempts=generated.attempts,
                quality_reject_reason=generated.quality_reject_reason or debug.get("quality_reject_reason"),
            )
            if generated.script is not None:
                decision = replace(decision, mascot_script=generated.script, generation_failed=False)
            elif has_usable_mascot_script(decision.mascot_script):
                decision = replace(decision, generation_failed=False)
            else:
                decision = replace(decision, mascot_script=None, generation_failed=True)

        return decision

    @staticmethod
    def apply_cooldown(
        decision: Decision,
        snapshot: BehavioralSnapshot,
        bucket: SessionContextBucket,
        now_ms: int,
    ) -> Decision:
        if (
            decision.intervention != InterventionType.NONE
            and not InterventionPolicy.bypasses_cooldown(snapshot)
            and InterventionPolicy.in_cooldown(bucket.last_intervention_at, decision.cooldown_seconds, now_ms)
        ):
            return replace(
                decision,
                intervention=InterventionType.NONE,
                reason_codes=_append_reason(decision.reason_codes, "cooldown_active"),
            )
        return decision

    @staticmethod
    def apply_confidence_gate(decision: Decision, snapshot: BehavioralSnapshot) -> Decision:
        if InterventionPolicy.below_confidence(decision.intervention, decision.confidence, snapshot):
            return replace(
                decision,
                intervention=InterventionType.NONE,
                reason_codes=_append_reason(decision.reason_codes, "confidence_below_threshold"),
            )
        return decision

    # --- ENTRY POINTS ---

    async def decide(self, payload: Dict[str, Any]) -> AnalysisOutcome:
        """
        Main entry point - run the full pipeline for one extension payload.

        Returns:
            AnalysisOutcome with the decision and debug metadata, or the
            heuristic decision plus a warning if anything failed
        """
        snapshot = summarize_payload(payload)
        return await self.decide_snapshot(snapshot)

    async def decide_snapshot(self, snapshot: BehavioralSnapshot) -> AnalysisOutcome:
        key = self.store.key_for(snapshot)
        log_context = {
            "session_key": "/".join(key),
            "trigger_type": snapshot.trigger_type.value if snapshot.trigger_type else None,
        }
        logger.info(
            f"Analyzing session {key} - trigger: {log_context['trigger_type']}, "
            f"requested: {snapshot.requested_intervention}",
            extra=log_context,
        )

        async with self.store.lock(key):
            bucket = self.store.get(key)
            try:
                profile = self.profiler.profile(snapshot)
                debug: Dict[str, Any] = {
                    "generation_mode": "none",
                    "relevance_score": profile.relevance_score,
                    "matched_terms": list(profile.matched_terms),
                    "topic_family": profile.topic_family.value,
                    "difficulty_level": "beginner",
                    "quality_reject_reason": None,
                }

                decision = await self.analyze_with_llm(snapshot, bucket)
                decision = self.apply_trigger_override(decision, snapshot)
                decision = await self.attach_content(decision, snapshot, profile, debug)

                now = self.clock()
                decision = self.apply_cooldown(decision, snapshot, bucket, now)
                decision = self.apply_confidence_gate(decision, snapshot)

                if decision.intervention != InterventionType.NONE:
                    self.store.mark_intervention(key, now)

                logger.info(
                    f"Decision for {key}: {decision.status.value} / {decision.intervention.value} "
                    f"(confidence {decision.confidence:.2f})",
                    extra=log_context,
                )
                return AnalysisOutcome(decision=decision, debug=debug)

            except Exception as e:
                logger.error(
                    f"Decision pipeline failed, using heuristic fallback: {e}",
                    extra=log_context,
                    exc_info=True,
                )
                return AnalysisOutcome(
                    decision=self.fallback_decision(snapshot),
                    warning=AI_FAILED_WARNING,
                    error=str(e) or "unknown",
                )

            finally:
                self.store.append_snapshot(key, snapshot)
