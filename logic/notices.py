"""
User-facing notices.

Failures that must not interrupt the user (persistence writes, rejected
imports) are recorded here and pushed to the browser, which shows them as
non-fatal alerts.

Author: Matthew Picone (mail@matthewpicone.com)
Date: 2026-01-16
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List

MAX_NOTICES = 50


@dataclass
class Notice:
    level: str
    message: str
    operation: str = ""
    time: str = field(default_factory=lambda: datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

    def to_dict(self):
        return {"level": self.level, "message": self.message,
                "operation": self.operation, "time": self.time}


class NoticeBoard:
    """Bounded list of recent notices with change listeners."""

    def __init__(self):
        self._notices: List[Notice] = []
        self._listeners: List[Callable[[Notice], None]] = []
        # Persistence failures are reported from the writer thread
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[Notice], None]):
        self._listeners.append(listener)

    def add(self, message: str, level: str = "error", operation: str = "") -> Notice:
        notice = Notice(level=level, message=message, operation=operation)
        with self._lock:
            self._notices.append(notice)
            del self._notices[:-MAX_NOTICES]
        for listener in list(self._listeners):
            listener(notice)
        return notice

    def latest(self, count: int = 10) -> List[Notice]:
        with self._lock:
            return list(self._notices[-count:])

    def clear(self):
        with self._lock:
            self._notices.clear()

    def __len__(self):
        return len(self._notices)
