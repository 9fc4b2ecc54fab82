"""Transient user-facing notifications.

Failed status transitions and rejected dependency edits are posted here; the
UI layer drains them and shows each once (e.g. as a toast).
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from loguru import logger

from .constants import NOTIFICATION_HISTORY_LIMIT
from .utils import _now_iso

_counter = itertools.count(1)


@dataclass
class Notification:
    level: str
    title: str
    message: str
    task_id: Optional[str] = None
    project_id: Optional[str] = None
    id: int = field(default_factory=lambda: next(_counter))
    created_at: str = field(default_factory=_now_iso)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class NotificationCenter:
    """Collect notifications for one session."""

    def __init__(self, enabled: bool = True, limit: int = NOTIFICATION_HISTORY_LIMIT):
        """Initialize the notification center.

        Args:
            enabled: Whether notifications are recorded at all.
            limit: Maximum notifications kept; the oldest are dropped first.
        """
        self.enabled = enabled
        self.limit = limit
        self._items: list[Notification] = []
        self._lock = threading.Lock()

    def _post(self, notification: Notification) -> Optional[Notification]:
        if not self.enabled:
            return None
        with self._lock:
            self._items.append(notification)
            if len(self._items) > self.limit:
                del self._items[: len(self._items) - self.limit]
        return notification

    def notify_transition_failed(
        self,
        task_id: str,
        target: str,
        reason: str,
        project_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """Record that a status change was rolled back.

        Args:
            task_id: Task whose move failed.
            target: Status the user tried to move it to.
            reason: Human-readable failure reason.
            project_id: Optional owning project.
        """
        logger.warning("Transition of {} to {} reverted: {}", task_id, target, reason)
        return self._post(Notification(
            level="error",
            title="Status change failed",
            message=f"Could not move task to {target}: {reason}",
            task_id=task_id,
            project_id=project_id,
        ))

    def notify_dependency_rejected(
        self,
        task_id: str,
        reason: str,
        project_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """Record an inline dependency rejection (self, duplicate, or cycle)."""
        return self._post(Notification(
            level="warning",
            title="Dependency rejected",
            message=reason,
            task_id=task_id,
            project_id=project_id,
        ))

    def unread(self) -> list[Notification]:
        with self._lock:
            return [n for n in self._items if not n.read]

    def all(self) -> list[Notification]:
        with self._lock:
            return list(self._items)

    def drain(self) -> list[Notification]:
        """Return unread notifications and mark them read."""
        with self._lock:
            pending = [n for n in self._items if not n.read]
            for n in pending:
                n.read = True
            return pending

    def mark_all_read(self) -> int:
        with self._lock:
            count = 0
            for n in self._items:
                if not n.read:
                    n.read = True
                    count += 1
            return count
