"""Activity log for dependency edits and status changes.

Entries are kept in memory and, when a path is given, appended to a JSONL
file so the activity history survives restarts.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .io_utils import _append_event
from .utils import _now_iso


class EventLog:
    def __init__(self, path: Optional[Path] = None, *, enabled: bool = True, history: int = 1000) -> None:
        self.path = path
        self.enabled = enabled
        self._history = history
        self._events: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    def emit(self, event_type: str, project_id: str, entity_id: str, **details: Any) -> Optional[dict[str, Any]]:
        """Record an event; failures to write the file are logged, never raised."""
        if not self.enabled:
            return None
        payload: dict[str, Any] = {
            "ts": _now_iso(),
            "type": event_type,
            "project_id": project_id,
            "entity_id": entity_id,
        }
        if details:
            payload["details"] = details
        with self._lock:
            self._events.append(payload)
            if len(self._events) > self._history:
                del self._events[: len(self._events) - self._history]
        if self.path is not None:
            try:
                _append_event(self.path, payload)
            except OSError:
                logger.exception("Failed to append event {} for {}", event_type, entity_id)
        return payload

    def recent(self, limit: int = 100) -> list[dict[str, Any]]:
        if limit < 1:
            return []
        with self._lock:
            return list(self._events[-limit:])

    def for_entity(self, entity_id: str, limit: int = 100) -> list[dict[str, Any]]:
        with self._lock:
            matching = [e for e in self._events if e.get("entity_id") == entity_id]
        return matching[-limit:]

    def read_file(self, limit: int = 100) -> list[dict[str, Any]]:
        """Read back the last *limit* events from the JSONL file."""
        if limit < 1 or self.path is None or not self.path.exists():
            return []
        lines = self.path.read_text(encoding="utf-8").splitlines()
        events: list[dict[str, Any]] = []
        for line in lines[-limit:]:
            try:
                payload = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(payload, dict):
                events.append(payload)
        return events
