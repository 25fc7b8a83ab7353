import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# --- STANDARDIZED FLAGS ---

class TriggerType(str, Enum):
    IDLE_ALLOWED_SITE = "idle_allowed_site"
    IDLE_ALLOWED_SITE_RETRY = "idle_allowed_site_retry"
    OFFTOPIC_SITE = "offtopic_site"
    OFFTOPIC_SITE_RETRY = "offtopic_site_retry"
    MANUAL = "manual"
    BATCH = "batch"

class InterventionType(str, Enum):
    NONE = "none"
    FLASHCARD = "flashcard"
    MASCOT_CHAT = "mascot_chat"

class FocusStatus(str, Enum):
    FOCUSED = "focused"
    MILD_DISTRACTION = "mild_distraction"
    DISTRACTED = "distracted"
    SEVERE_DISTRACTION = "severe_distraction"


IDLE_TRIGGERS = frozenset({TriggerType.IDLE_ALLOWED_SITE, TriggerType.IDLE_ALLOWED_SITE_RETRY})
OFFTOPIC_TRIGGERS = frozenset({TriggerType.OFFTOPIC_SITE, TriggerType.OFFTOPIC_SITE_RETRY})


def _as_enum(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return None


def _num(value, default: float = 0.0) -> float:
    # JSON from the extension is loosely typed; bools are not numbers here
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _text(value) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class PageContent:
    """Parsed page content as reported by the extension collector"""
    headings: List[str] = field(default_factory=list)
    summary: str = ""
    word_count: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    youtube: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class BehavioralSnapshot:
    """
    One observation of user state on a page.
    Built from the raw extension payload by summarize_payload(); never mutated.
    """
    trigger_type: Optional[TriggerType]
    requested_intervention: Optional[InterventionType]
    study_topic: str
    session_duration_sec: float
    tab_switches: int
    active_tab_time_sec: float
    domain: Optional[str]
    category: str
    page_title: str
    is_allowed: bool
    is_relevant_to_topic: Optional[bool]
    inactivity_sec: float
    mouse_score: float
    scroll_speed_px_per_sec: float
    clicks_per_minute: float
    content: PageContent = field(default_factory=PageContent)

    # Session routing (not sent to the model)
    active_tab_id: Optional[str] = None

    @property
    def is_idle_trigger(self) -> bool:
        return self.trigger_type in IDLE_TRIGGERS

    @property
    def is_offtopic_trigger(self) -> bool:
        return self.trigger_type in OFFTOPIC_TRIGGERS

    def to_model_dict(self) -> Dict[str, Any]:
        """JSON-ready summary used in prompts and rolling context windows"""
        return {
            "trigger_type": self.trigger_type.value if self.trigger_type else None,
            "requested_intervention": (
                self.requested_intervention.value if self.requested_intervention else None
            ),
            "study_topic": self.study_topic,
            "session_duration": self.session_duration_sec,
            "tab_switches": self.tab_switches,
            "active_tab_time_seconds": self.active_tab_time_sec,
            "domain": self.domain,
            "category": self.category,
            "page_title": self.page_title,
            "is_allowed": self.is_allowed,
            "is_relevant_to_topic": self.is_relevant_to_topic,
            "inactivity_seconds": self.inactivity_sec,
            "mouse_score": self.mouse_score,
            "scroll_speed_px_per_sec": self.scroll_speed_px_per_sec,
            "clicks_per_minute": self.clicks_per_minute,
            "content": {
                "headings": list(self.content.headings),
                "summary": self.content.summary,
                "word_count": self.content.word_count,
                "metadata": dict(self.content.metadata),
                "youtube": self.content.youtube,
            },
        }


def summarize_payload(payload: Dict[str, Any]) -> BehavioralSnapshot:
    """
    Collapse an extension payload into a single snapshot.

    Session-level counters come from the payload itself; page-level signals
    come from the most recent entry in payload["events"], falling back to
    payload-level domain/category/page_title when no event carries them.
    """
    payload = payload or {}
    events = payload.get("events")
    latest = events[-1] if isinstance(events, list) and events else {}
    if not isinstance(latest, dict):
        latest = {}

    raw_content = latest.get("content") if isinstance(latest.get("content"), dict) else {}
    headings = raw_content.get("headings")
    metadata = latest.get("metadata")
    youtube = latest.get("youtube")

    relevant = latest.get("is_relevant_to_topic")
    tab_id = payload.get("active_tab_id")

    return BehavioralSnapshot(
        trigger_type=_as_enum(TriggerType, payload.get("trigger_type")),
        requested_intervention=_as_enum(InterventionType, payload.get("requested_intervention")),
        study_topic=_text(payload.get("study_topic")),
        session_duration_sec=_num(payload.get("session_duration")),
        tab_switches=int(_num(payload.get("tab_switches"))),
        active_tab_time_sec=_num(payload.get("active_tab_time_seconds")),
        domain=latest.get("domain") or payload.get("domain") or None,
        category=latest.get("category") or payload.get("category") or "unknown",
        page_title=_text(latest.get("page_title") or payload.get("page_title")),
        is_allowed=bool(latest.get("is_allowed")),
        is_relevant_to_topic=None if relevant is None else bool(relevant),
        inactivity_sec=_num(latest.get("inactivity_seconds")),
        mouse_score=_num(latest.get("mouse_score")),
        scroll_speed_px_per_sec=_num(latest.get("scroll_speed_px_per_sec")),
        clicks_per_minute=_num(latest.get("clicks_per_minute")),
        content=PageContent(
            headings=[_text(h) for h in headings] if isinstance(headings, list) else [],
            summary=_text(raw_content.get("summary")),
            word_count=int(_num(raw_content.get("word_count"))),
            metadata=metadata if isinstance(metadata, dict) else {},
            youtube=youtube if isinstance(youtube, dict) else None,
        ),
        active_tab_id=None if tab_id is None else str(tab_id),
    )
