"""
Policy definitions for intervention content quality and intervention gating.
Defines what counts as a usable flashcard or mascot script, and when an
intervention is allowed through.
"""

import re
from typing import Any, Optional, Sequence

from focusflow.services.ai_orchestrator.models import (
    Flashcard,
    MascotLine,
    MASCOT_SPEAKER_ORDER,
)
from focusflow.services.behavior_engine.snapshot import BehavioralSnapshot, InterventionType
from focusflow.services.behavior_engine.topic_relevance import (
    TopicProfile,
    tokenize,
    topic_terms,
)


def _topic_words(study_topic: str):
    return [w for w in tokenize(study_topic) if len(w) >= 4]


class FlashcardQualityPolicy:
    """
    What a flashcard must look like before it is shown without a warning.

    Philosophy: test one concrete concept, never the page chrome.
    """

    MIN_QUESTION_CHARS = 16
    REQUIRED_OPTIONS = 4

    # Platform text and the placeholder sentence we never want to show
    BANNED_PHRASES = [
        "welcome to",
        "this page",
        "homepage",
        "platform description",
        "click here",
        "which option best explains a beginner concept in",
    ]

    # Lenient gate
    USABLE_MIN_QUESTION_CHARS = 10
    USABLE_MIN_OPTIONS = 2

    @classmethod
    def is_low_quality(cls, card: Optional[Flashcard], study_topic: str, profile: TopicProfile) -> bool:
        """
        Strict check. Any failing condition rejects the card.

        Returns:
            True if the card should be treated as low quality
        """
        if card is None or not card.question:
            return True
        if not isinstance(card.options, (list, tuple)) or len(card.options) != cls.REQUIRED_OPTIONS:
            return True

        question = card.question.strip()
        options = [str(o or "").strip() for o in card.options]
        options = [o for o in options if o]
        answer = (card.answer or "").strip()

        if len(question) < cls.MIN_QUESTION_CHARS:
            return True
        if len(options) != cls.REQUIRED_OPTIONS:
            return True
        if not answer:
            return True

        if len({o.lower() for o in options}) < cls.REQUIRED_OPTIONS:
            return True

        answer_lower = answer.lower()
        if not any(
            o.lower() == answer_lower or answer_lower in o.lower() or o.lower() in answer_lower
            for o in options
        ):
            return True

        blob = f"{question} {' '.join(options)} {card.hint or ''} {card.explanation or ''}".lower()
        if any(phrase in blob for phrase in cls.BANNED_PHRASES):
            return True

        terms = topic_terms(study_topic, profile.topic_family)
        has_topic_word = any(w in blob for w in _topic_words(study_topic))
        has_family_signal = any(len(t) >= 4 and t in blob for t in terms)
        if not has_topic_word and not has_family_signal:
            return True

        return False

    @classmethod
    def is_usable(cls, card: Any) -> bool:
        """Structural check only, used when nothing better is available"""
        if not isinstance(card, Flashcard):
            return False
        options = [o for o in (card.options or []) if str(o or "").strip()]
        return (
            len((card.question or "").strip()) >= cls.USABLE_MIN_QUESTION_CHARS
            and len(options) >= cls.USABLE_MIN_OPTIONS
        )


class MascotScriptPolicy:
    """
    What a devil/angel script must look like.

    The devil has to actually tempt; the script has to be about the topic
    or the site the user is on.
    """

    MIN_LINE_CHARS = 8
    MAX_WEAK_DEVIL_LINES = 1

    LURE_SIGNALS = [
        "just one more", "take a break", "later", "scroll", "reel", "feed", "ignore",
        "skip", "procrast", "you deserve", "not now", "waste", "avoid",
    ]

    POSITIVE_STUDY_SIGNALS = [
        "great job", "keep studying", "you are doing great", "focus now",
        "good work", "you got this", "well done",
    ]

    GENERIC_SIGNALS = ["come back", "stay focused", "one more minute", "back to work", "stay here"]
    GENERIC_SIGNAL_LIMIT = 2

    VAGUE_CLOSINGS = ["stay focused", "one more minute", "come back"]

    @classmethod
    def is_devil_line_weak(cls, text: str) -> bool:
        """A devil line is weak when it cheers studying without any lure"""
        lower = (text or "").lower()
        has_lure = any(s in lower for s in cls.LURE_SIGNALS)
        has_positive = any(s in lower for s in cls.POSITIVE_STUDY_SIGNALS)
        return has_positive and not has_lure

    @staticmethod
    def has_topic_context(text: str, profile: TopicProfile, domain: Optional[str]) -> bool:
        lower = (text or "").lower()
        if not lower:
            return False
        if domain and str(domain).lower() in lower:
            return True
        terms = [*profile.topic_terms, *profile.matched_terms]
        return any(len(t) >= 4 and t in lower for t in terms)

    @staticmethod
    def mentions_study_topic(text: str, study_topic: str) -> bool:
        lower = (text or "").lower()
        return any(w in lower for w in _topic_words(study_topic))

    @classmethod
    def looks_generic(
        cls,
        lines: Sequence[MascotLine],
        study_topic: str,
        domain: Optional[str],
        profile: TopicProfile,
    ) -> bool:
        if len(lines) < 4:
            return True
        blob = " ".join(line.text for line in lines).lower()
        generic_count = sum(1 for s in cls.GENERIC_SIGNALS if s in blob)
        terms = topic_terms(study_topic, profile.topic_family)
        has_topic = any(t in blob for t in terms)
        has_domain = bool(domain) and str(domain).lower() in blob
        return generic_count >= cls.GENERIC_SIGNAL_LIMIT or (not has_topic and not has_domain)

    @classmethod
    def is_usable(cls, script: Any) -> bool:
        """Structural check only: 4 lines with non-trivial text"""
        if not isinstance(script, (list, tuple)) or len(script) < 4:
            return False
        return all(
            isinstance(line, MascotLine) and len((line.text or "").strip()) >= cls.MIN_LINE_CHARS
            for line in script[:4]
        )

    @classmethod
    def validate_strict(
        cls,
        script: Any,
        profile: TopicProfile,
        domain: Optional[str],
        study_topic: str,
    ) -> bool:
        if not isinstance(script, (list, tuple)) or len(script) < 4:
            return False

        lines = []
        for i, line in enumerate(script[:4]):
            if not isinstance(line, MascotLine) or line.speaker != MASCOT_SPEAKER_ORDER[i]:
                return False
            lines.append(MascotLine(speaker=line.speaker, text=(line.text or "").strip()))

        if not all(len(line.text) >= cls.MIN_LINE_CHARS for line in lines):
            return False

        weak_devils = sum(
            1 for line in lines if line.speaker == "devil" and cls.is_devil_line_weak(line.text)
        )
        if weak_devils > cls.MAX_WEAK_DEVIL_LINES:
            return False

        if not any(
            cls.has_topic_context(line.text, profile, domain)
            or cls.mentions_study_topic(line.text, study_topic)
            for line in lines
        ):
            return False

        if cls.looks_generic(lines, study_topic, domain, profile):
            if not any(cls.mentions_study_topic(line.text, study_topic) for line in lines):
                return False

        blob = " ".join(line.text.lower() for line in lines)
        if sum(1 for p in cls.VAGUE_CLOSINGS if p in blob) >= len(cls.VAGUE_CLOSINGS):
            return False

        return True


class InterventionPolicy:
    """
    Post-classification gating: trigger overrides, cooldown and confidence.
    """

    # Trigger overrides
    IDLE_FLASHCARD_MIN_CONFIDENCE = 0.72
    OFFTOPIC_MASCOT_MIN_CONFIDENCE = 0.75
    OVERRIDE_COOLDOWN_SECONDS = 15

    # Confidence gates
    FLASHCARD_MIN_CONFIDENCE = 0.5
    MASCOT_MIN_CONFIDENCE = 0.6

    DEFAULT_COOLDOWN_SECONDS = 90
    MIN_COOLDOWN_SECONDS = 10
    MAX_COOLDOWN_SECONDS = 180

    @classmethod
    def forces_flashcard(cls, snapshot: BehavioralSnapshot) -> bool:
        return (
            snapshot.requested_intervention == InterventionType.FLASHCARD
            and snapshot.is_idle_trigger
        )

    @classmethod
    def forces_mascot(cls, snapshot: BehavioralSnapshot) -> bool:
        return (
            snapshot.requested_intervention == InterventionType.MASCOT_CHAT
            and snapshot.is_offtopic_trigger
        )

    @classmethod
    def bypasses_cooldown(cls, snapshot: BehavioralSnapshot) -> bool:
        # Idle nudges on allowed sites are always welcome
        return snapshot.is_idle_trigger

    @classmethod
    def in_cooldown(cls, last_intervention_at_ms: int, cooldown_seconds: int, now_ms: int) -> bool:
        cooldown_ms = (cooldown_seconds or cls.DEFAULT_COOLDOWN_SECONDS) * 1000
        return now_ms - (last_intervention_at_ms or 0) < cooldown_ms

    @classmethod
    def below_confidence(
        cls,
        intervention: InterventionType,
        confidence: float,
        snapshot: BehavioralSnapshot,
    ) -> bool:
        if intervention == InterventionType.FLASHCARD:
            return not snapshot.is_idle_trigger and confidence < cls.FLASHCARD_MIN_CONFIDENCE
        if intervention == InterventionType.MASCOT_CHAT:
            return confidence < cls.MASCOT_MIN_CONFIDENCE
        return False


_LETTER_ANSWER = re.compile(r"^([A-D])(?:[).:\-\s]|$)", re.IGNORECASE)


def normalize_flashcard_answer(card: Flashcard) -> Flashcard:
    """
    Resolve letter answers ("B", "c)", "D.") to the matching option text.
    Only applies when the card has at least 4 options.
    """
    options = [str(o or "") for o in (card.options or [])]
    answer = card.answer or ""

    match = _LETTER_ANSWER.match(answer.strip())
    if match and len(options) >= 4:
        idx = ord(match.group(1).upper()) - ord("A")
        if 0 <= idx < len(options):
            answer = options[idx]

    return Flashcard(
        question=card.question or "",
        options=options,
        answer=answer,
        hint=card.hint or "",
        explanation=card.explanation or "",
    )


# Functional entry points

def is_low_quality_flashcard(card: Optional[Flashcard], study_topic: str, profile: TopicProfile) -> bool:
    return FlashcardQualityPolicy.is_low_quality(card, study_topic, profile)


def has_usable_flashcard(card: Any) -> bool:
    return FlashcardQualityPolicy.is_usable(card)


def validate_mascot_script_strict(
    script: Any,
    profile: TopicProfile,
    domain: Optional[str],
    study_topic: str,
) -> bool:
    return MascotScriptPolicy.validate_strict(script, profile, domain, study_topic)


def has_usable_mascot_script(script: Any) -> bool:
    return MascotScriptPolicy.is_usable(script)
