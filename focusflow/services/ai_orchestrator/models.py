"""
Value types produced by the decision engine and content generators.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

from focusflow.services.behavior_engine.snapshot import FocusStatus, InterventionType

MASCOT_SPEAKER_ORDER = ("devil", "angel", "devil", "angel")


@dataclass(frozen=True)
class Flashcard:
    """Beginner-level multiple choice card"""
    question: str
    options: List[str]
    answer: str
    hint: str = ""
    explanation: str = ""

    @classmethod
    def from_raw(
        cls,
        raw: Dict[str, Any],
        question_max: int = 260,
        option_max: int = 120,
        answer_max: int = 120,
        hint_max: int = 180,
        explanation_max: int = 320,
    ) -> "Flashcard":
        """Coerce a model-produced dict into a truncated card (at most 4 options)"""
        options = raw.get("options")
        return cls(
            question=_clip(raw.get("question"), question_max),
            options=[_clip(o, option_max) for o in options[:4]] if isinstance(options, list) else [],
            answer=_clip(raw.get("answer"), answer_max),
            hint=_clip(raw.get("hint"), hint_max),
            explanation=_clip(raw.get("explanation"), explanation_max),
        )


@dataclass(frozen=True)
class MascotLine:
    speaker: str  # "devil" | "angel"
    text: str


def _clip(value, limit: int) -> str:
    return ("" if value is None else str(value))[:limit]


def script_from_raw(raw_lines: Any, text_max: int = 240) -> Optional[Tuple[MascotLine, ...]]:
    """
    Relabel up to 4 model-produced lines into devil/angel order.
    Returns None when the model did not send a list at all.
    """
    if not isinstance(raw_lines, (list, tuple)):
        return None
    lines = []
    for i, line in enumerate(raw_lines[:4]):
        if isinstance(line, MascotLine):
            text = line.text
        elif isinstance(line, dict):
            text = line.get("text")
        else:
            text = None
        lines.append(MascotLine(speaker=MASCOT_SPEAKER_ORDER[i], text=_clip(text, text_max)))
    return tuple(lines)


@dataclass(frozen=True)
class Decision:
    """
    Output contract of the decision engine.
    Policy steps derive new decisions with dataclasses.replace().
    """
    status: FocusStatus
    confidence: float
    intervention: InterventionType
    cooldown_seconds: int
    reason_codes: Tuple[str, ...] = ()
    flashcard: Optional[Flashcard] = None
    mascot_script: Optional[Tuple[MascotLine, ...]] = None
    generation_failed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "confidence": self.confidence,
            "intervention": self.intervention.value,
            "cooldown_seconds": self.cooldown_seconds,
            "reason_codes": list(self.reason_codes),
            "flashcard": asdict(self.flashcard) if self.flashcard else None,
            "mascot_script": (
                [asdict(line) for line in self.mascot_script]
                if self.mascot_script is not None else None
            ),
            "generation_failed": self.generation_failed,
        }


@dataclass(frozen=True)
class FlashcardResult:
    card: Optional[Flashcard]
    generation_mode: str
    quality_reject_reason: Optional[str] = None
    attempts: int = 1


@dataclass(frozen=True)
class MascotResult:
    script: Optional[Tuple[MascotLine, ...]]
    attempts: int
    quality_reject_reason: Optional[str] = None


@dataclass
class AnalysisOutcome:
    """What the analyze endpoint reports back for one request"""
    decision: Decision
    debug: Optional[Dict[str, Any]] = None
    warning: Optional[str] = None
    error: Optional[str] = None
