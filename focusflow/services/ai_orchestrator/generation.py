"""
Intervention content generation.

Both generators follow the same ladder: try a contextual prompt, retry
with a looser one, then a minimal rescue prompt, and finally accept
whatever passes the lenient structural gate. Quality problems are
reported as data (quality_reject_reason), never raised.
"""

import logging
from typing import Optional, Tuple

from focusflow.services.ai_orchestrator.gateway import LLMGateway
from focusflow.services.ai_orchestrator.models import (
    Flashcard,
    FlashcardResult,
    MascotLine,
    MascotResult,
    script_from_raw,
)
from focusflow.services.ai_orchestrator.policies import (
    has_usable_mascot_script,
    is_low_quality_flashcard,
    normalize_flashcard_answer,
    validate_mascot_script_strict,
)
from focusflow.services.ai_orchestrator.prompts import (
    build_flashcard_prompt,
    build_flashcard_rescue_prompt,
    build_mascot_prompt,
    build_mascot_rescue_prompt,
)
from focusflow.services.behavior_engine.snapshot import BehavioralSnapshot
from focusflow.services.behavior_engine.topic_relevance import ContextQuality, TopicProfile

logger = logging.getLogger(__name__)

# Generation modes
CONTEXT_ALIGNED = "context_aligned"
TOPIC_ONLY = "topic_only"
TOPIC_ONLY_RESCUE = "topic_only_rescue"
LLM_UNAVAILABLE = "llm_unavailable"

# Reject reasons
MISSING_API_KEY = "missing_api_key"
GENERATION_ERROR = "generation_error"
FLASHCARD_RELAXED_ACCEPT = "generic_flashcard_relaxed_accept"
MASCOT_RELAXED_ACCEPT = "mascot_script_relaxed_accept"
MASCOT_VALIDATION_FAILED = "mascot_script_validation_failed"

RESCUE_ATTEMPT = 3


class ContentGenerator:
    """
    Produces flashcards and devil/angel scripts through the LLM gateway.
    Groq is preferred for generation; Gemini is the fallback.
    """

    PREFERRED_PROVIDER = "groq"

    def __init__(self, gateway: LLMGateway):
        self.gateway = gateway

    # --- FLASHCARDS ---

    async def _request_flashcard(self, prompt: str) -> Optional[Flashcard]:
        """One gateway call; None when the reply is not a JSON object"""
        result = await self.gateway.run_json_object(prompt, self.PREFERRED_PROVIDER)
        if not result.ok:
            logger.warning(f"Flashcard reply rejected: {result.error}")
            return None
        card = Flashcard.from_raw(
            result.data,
            question_max=260,
            option_max=140,
            answer_max=180,
            hint_max=220,
            explanation_max=360,
        )
        return normalize_flashcard_answer(card)

    async def generate_flashcard(
        self,
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
        mode: str = CONTEXT_ALIGNED,
    ) -> FlashcardResult:
        """
        Single flashcard attempt in the given prompt mode.

        A card that fails strict validation is still returned, tagged with
        generic_flashcard_relaxed_accept.
        """
        if not self.gateway.is_configured:
            return FlashcardResult(None, LLM_UNAVAILABLE, MISSING_API_KEY)

        try:
            card = await self._request_flashcard(build_flashcard_prompt(snapshot, profile, mode))
        except Exception as e:
            logger.warning(f"Flashcard generation ({mode}) failed: {e}")
            return FlashcardResult(None, mode, GENERATION_ERROR)

        if card is None:
            return FlashcardResult(None, mode, GENERATION_ERROR)

        if is_low_quality_flashcard(card, snapshot.study_topic, profile):
            logger.warning(f"Flashcard ({mode}) failed strict validation, relaxed accept")
            return FlashcardResult(card, mode, FLASHCARD_RELAXED_ACCEPT)

        return FlashcardResult(card, mode, None)

    async def generate_flashcard_with_retries(
        self,
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
    ) -> FlashcardResult:
        """
        Up to two prompt attempts, then a rescue prompt.

        Attempt 1 uses page context only when context quality is good.
        The first attempt that yields any card wins.
        """
        first_mode = CONTEXT_ALIGNED if profile.context_quality == ContextQuality.GOOD else TOPIC_ONLY
        modes = [first_mode, TOPIC_ONLY]

        last = FlashcardResult(None, "none", "not_attempted")
        for attempt, mode in enumerate(modes, start=1):
            last = await self.generate_flashcard(snapshot, profile, mode)
            if last.card is not None:
                logger.info(f"Flashcard generated on attempt {attempt} ({mode})")
                return FlashcardResult(last.card, last.generation_mode, last.quality_reject_reason, attempt)

        if not self.gateway.is_configured:
            return FlashcardResult(last.card, last.generation_mode, last.quality_reject_reason, RESCUE_ATTEMPT)

        try:
            card = await self._request_flashcard(build_flashcard_rescue_prompt(snapshot))
        except Exception as e:
            logger.warning(f"Flashcard rescue prompt failed: {e}")
            card = None

        if card is not None:
            reason = (
                FLASHCARD_RELAXED_ACCEPT
                if is_low_quality_flashcard(card, snapshot.study_topic, profile)
                else None
            )
            logger.info(f"Flashcard produced by rescue prompt (reason={reason})")
            return FlashcardResult(card, TOPIC_ONLY_RESCUE, reason, RESCUE_ATTEMPT)

        return FlashcardResult(last.card, last.generation_mode, last.quality_reject_reason, RESCUE_ATTEMPT)

    # --- MASCOT DIALOGUE ---

    async def _request_script(self, prompt: str) -> Optional[Tuple[MascotLine, ...]]:
        result = await self.gateway.run_json_object(prompt, self.PREFERRED_PROVIDER)
        if not result.ok:
            logger.warning(f"Mascot reply rejected: {result.error}")
            return None
        return script_from_raw(result.data.get("mascot_script"))

    async def generate_mascot_script(
        self,
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
    ) -> Optional[Tuple[MascotLine, ...]]:
        """Single script attempt; None on any failure"""
        if not self.gateway.is_configured:
            return None
        try:
            return await self._request_script(build_mascot_prompt(snapshot, profile))
        except Exception as e:
            logger.warning(f"Mascot script generation failed: {e}")
            return None

    def _accept_script(
        self,
        script: Optional[Tuple[MascotLine, ...]],
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
        domain: Optional[str],
        attempt: int,
    ) -> Optional[MascotResult]:
        if not has_usable_mascot_script(script):
            return None
        strict_ok = validate_mascot_script_strict(script, profile, domain, snapshot.study_topic)
        if not strict_ok:
            logger.warning(f"Mascot script (attempt {attempt}) failed strict validation, relaxed accept")
        return MascotResult(
            script=tuple(script[:4]),
            attempts=attempt,
            quality_reject_reason=None if strict_ok else MASCOT_RELAXED_ACCEPT,
        )

    async def generate_mascot_script_with_retries(
        self,
        snapshot: BehavioralSnapshot,
        profile: TopicProfile,
        domain: Optional[str],
    ) -> MascotResult:
        """
        Two attempts accepted on the lenient gate, then a rescue prompt.
        Strict validation only decides quality_reject_reason.
        """
        for attempt in (1, 2):
            script = await self.generate_mascot_script(snapshot, profile)
            accepted = self._accept_script(script, snapshot, profile, domain, attempt)
            if accepted:
                return accepted

        if self.gateway.is_configured:
            try:
                script = await self._request_script(build_mascot_rescue_prompt(snapshot))
            except Exception as e:
                logger.warning(f"Mascot rescue prompt failed: {e}")
                script = None
            accepted = self._accept_script(script, snapshot, profile, domain, RESCUE_ATTEMPT)
            if accepted:
                return accepted

        logger.warning("Mascot script generation exhausted all attempts")
        return MascotResult(None, RESCUE_ATTEMPT, MASCOT_VALIDATION_FAILED)
