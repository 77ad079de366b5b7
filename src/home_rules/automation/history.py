"""
Execution log for the automation engine.

A bounded record of automation runs, newest first. Appending beyond the
capacity evicts the oldest entries.
"""

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, Iterator, List, Optional

from .models import ExecutionLogEntry

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000


class ExecutionLog:
    """Append-at-head, FIFO-trimmed log of ExecutionLogEntry records."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._entries: Deque[ExecutionLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, entry: ExecutionLogEntry) -> None:
        """Insert an entry at the head, evicting the oldest if full."""
        with self._lock:
            self._entries.appendleft(entry)

    def entries(
        self,
        automation_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ExecutionLogEntry]:
        """
        Get log entries.

        Args:
            automation_id: Filter by automation (optional)
            limit: Maximum entries to return (optional)

        Returns:
            Matching entries, newest first
        """
        result = []
        with self._lock:
            for entry in self._entries:
                if automation_id and entry.automation_id != automation_id:
                    continue
                result.append(entry)
                if limit is not None and len(result) >= limit:
                    break
        return result

    def remove_automation(self, automation_id: str) -> int:
        """Drop every entry for an automation. Returns the number removed."""
        with self._lock:
            kept = [e for e in self._entries if e.automation_id != automation_id]
            removed = len(self._entries) - len(kept)
            self._entries = deque(kept, maxlen=self._capacity)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ExecutionLogEntry]:
        return iter(self.entries())

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize entries, newest first."""
        return [e.to_dict() for e in self.entries()]

    def load(self, data: List[Dict[str, Any]]) -> None:
        """
        Replace contents from serialized entries (newest first), truncating to capacity.

        Entries that cannot be read are logged and dropped.
        """
        entries = []
        for item in data:
            if len(entries) >= self._capacity:
                break
            try:
                entries.append(ExecutionLogEntry.from_dict(item))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.error(f"Skipping unreadable log entry: {e}")
        with self._lock:
            self._entries = deque(entries, maxlen=self._capacity)

    @classmethod
    def from_list(
        cls, data: List[Dict[str, Any]], capacity: int = DEFAULT_CAPACITY
    ) -> "ExecutionLog":
        log = cls(capacity)
        log.load(data)
        return log
