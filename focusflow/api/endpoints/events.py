"""
FastAPI endpoints for raw payload ingestion and inspection.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Request

from ...services.ai_orchestrator import DecisionEngine
from ...services.behavior_engine import summarize_payload
from ...services.event_log import EventLog
from ..deps import get_decision_engine, get_event_log

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])


def _received_at() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.post("/api/parse")
async def ingest_payload(
    payload: Dict[str, Any] = Body(default_factory=dict),
    event_log: EventLog = Depends(get_event_log),
    engine: DecisionEngine = Depends(get_decision_engine),
):
    """
    Record a collector payload and feed it into the session's rolling context.
    """
    event = {"received_at": _received_at(), "payload": payload}
    event_log.append(event)

    snapshot = summarize_payload(payload)
    key = engine.store.key_for(snapshot)
    async with engine.store.lock(key):
        engine.store.append_snapshot(key, snapshot)

    logger.info(f"Payload recorded for session {key}")
    return {"ok": True, "message": "Payload received", "received_at": event["received_at"]}


@router.post("/api/raw")
async def ingest_raw(request: Request, event_log: EventLog = Depends(get_event_log)):
    """Record any body as-is; unparseable JSON is kept with its parse error"""
    raw = (await request.body()).decode("utf-8", errors="replace")
    try:
        data, parse_error = json.loads(raw), None
    except json.JSONDecodeError as e:
        data, parse_error = {"raw_body": raw}, str(e)

    event_log.append({"received_at": _received_at(), "parse_error": parse_error, "payload": data})
    return {"ok": True}


@router.get("/events")
async def recent_events(event_log: EventLog = Depends(get_event_log)):
    events = event_log.recent(50)
    return {"ok": True, "count": event_log.count, "events": events}
