"""
FastAPI endpoint for focus analysis and intervention decisions.

Extension sends a behavioral payload → DecisionEngine classifies and picks
an intervention → response carries the decision plus debug metadata.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ...services.ai_orchestrator import DecisionEngine
from ...services.behavior_engine import summarize_payload
from ..deps import get_decision_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["analyze"])


# --- REQUEST/RESPONSE MODELS ---

class AnalyzeRequest(BaseModel):
    """
    Behavioral payload from the extension collector.
    Page-level signals live in the last entry of `events`.
    Fields are loosely typed; summarize_payload() does the coercion.
    """
    model_config = ConfigDict(extra="allow")

    trigger_type: Optional[Any] = Field(None, description="idle_allowed_site, offtopic_site, manual, ...")
    requested_intervention: Optional[Any] = Field(None, description="none, flashcard or mascot_chat")
    study_topic: Optional[Any] = Field(None, description="Free-text study topic")
    active_tab_id: Optional[Any] = Field(None, description="Browser tab identifier")
    session_duration: Optional[Any] = Field(None, description="Session length in seconds")
    tab_switches: Optional[Any] = Field(None, description="Tab switches this session")
    active_tab_time_seconds: Optional[Any] = Field(None, description="Time on the active tab")
    events: Optional[Any] = Field(default_factory=list, description="Collected page events")


class FlashcardModel(BaseModel):
    question: str
    options: List[str]
    answer: str
    hint: str = ""
    explanation: str = ""


class MascotLineModel(BaseModel):
    speaker: str
    text: str


class DecisionModel(BaseModel):
    status: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    intervention: str
    cooldown_seconds: int = Field(..., ge=10, le=180)
    reason_codes: List[str] = Field(..., max_length=5)
    flashcard: Optional[FlashcardModel] = None
    mascot_script: Optional[List[MascotLineModel]] = None
    generation_failed: bool


class AnalyzeResponse(BaseModel):
    ok: bool = True
    timestamp: int = Field(..., description="Epoch milliseconds")
    decision: DecisionModel
    debug: Optional[Dict[str, Any]] = None
    warning: Optional[str] = None
    error: Optional[str] = None


# --- ENDPOINTS ---

def _response(decision, **extra) -> AnalyzeResponse:
    # debug/warning/error are left unset when empty so they drop out of the body
    optional = {k: v for k, v in extra.items() if v is not None}
    return AnalyzeResponse(
        ok=True,
        timestamp=int(time.time() * 1000),
        decision=DecisionModel(**decision.to_dict()),
        **optional,
    )


@router.post("/analyze", response_model=AnalyzeResponse, response_model_exclude_unset=True)
async def analyze(request: AnalyzeRequest, engine: DecisionEngine = Depends(get_decision_engine)):
    """
    Classify focus and decide on an intervention.

    Always answers 200: when the AI path fails the heuristic decision is
    returned with warning="ai_failed_fallback_used".
    """
    payload = request.model_dump()

    try:
        outcome = await engine.decide(payload)
    except Exception as e:
        # decide() already degrades internally; this only guards payload handling
        logger.error(f"Analyze request failed before the pipeline ran: {e}", exc_info=True)
        return _response(
            engine.fallback_decision(summarize_payload(payload)),
            warning="ai_failed_fallback_used",
            error=str(e) or "unknown",
        )

    return _response(outcome.decision, debug=outcome.debug, warning=outcome.warning, error=outcome.error)
