"""
Append-only JSONL log of extension payloads with an in-memory tail.
"""

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Dict, List, Union

logger = logging.getLogger(__name__)


class EventLog:
    """
    Durable record of received payloads.

    Every event is appended as one JSON line to the log file; the newest
    events are also kept in memory (newest first) for the /events view.
    """

    MAX_RECENT_EVENTS = 200

    def __init__(self, path: Union[str, Path], max_recent: int = MAX_RECENT_EVENTS):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._recent: deque = deque(maxlen=max_recent)
        logger.info(f"EventLog writing to {self.path}")

    def append(self, event: Dict[str, Any]) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, default=str) + "\n")
        self._recent.appendleft(event)

    def recent(self, limit: int = 50) -> List[Dict[str, Any]]:
        return list(self._recent)[:limit]

    @property
    def count(self) -> int:
        return len(self._recent)
