"""
Rolling per-session context for the decision engine.

A session is one (study_topic, active_tab_id) pair. Each bucket keeps the
most recent summarized snapshots and the time of the last intervention.
The store is owned by whoever creates it and injected into the engine;
nothing here is module-global.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from focusflow.services.behavior_engine.snapshot import BehavioralSnapshot

logger = logging.getLogger(__name__)

SessionKey = Tuple[str, str]


@dataclass
class SessionContextBucket:
    """Rolling context window plus intervention bookkeeping for one session"""
    events: List[Dict[str, Any]] = field(default_factory=list)
    last_intervention_at: int = 0  # epoch ms, 0 = never
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)


class SessionContextStore:
    """
    In-memory map of session buckets, alive for the process lifetime.
    Buckets are never pruned; each one owns its lock.

    Requests for the same key should hold lock(key) across their
    read-modify-write so the window and cooldown stamp stay consistent.
    """

    MAX_CONTEXT_EVENTS = 15

    def __init__(self, max_events: int = MAX_CONTEXT_EVENTS):
        self.max_events = max_events
        self._buckets: Dict[SessionKey, SessionContextBucket] = {}

    @staticmethod
    def key_for(snapshot: BehavioralSnapshot) -> SessionKey:
        return (snapshot.study_topic or "untitled", snapshot.active_tab_id or "na")

    def lock(self, key: SessionKey) -> asyncio.Lock:
        return self.get(key).lock

    def get(self, key: SessionKey) -> SessionContextBucket:
        """Return the bucket for key, creating an empty one on first use"""
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = SessionContextBucket()
            self._buckets[key] = bucket
        return bucket

    def append_snapshot(self, key: SessionKey, snapshot: BehavioralSnapshot) -> None:
        bucket = self.get(key)
        bucket.events.append(snapshot.to_model_dict())
        overflow = len(bucket.events) - self.max_events
        if overflow > 0:
            del bucket.events[:overflow]

    def mark_intervention(self, key: SessionKey, now_ms: int) -> None:
        self.get(key).last_intervention_at = now_ms
        logger.debug(f"Intervention stamped for session {key} at {now_ms}")

    def __len__(self) -> int:
        return len(self._buckets)
