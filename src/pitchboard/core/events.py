from __future__ import annotations

import threading
from collections import defaultdict, deque
from typing import Callable, DefaultDict, Deque

from pitchboard.contracts import Notice
from pitchboard.core.ids import now_utc

NoticeHandler = Callable[[Notice], None]

HISTORY_LIMIT = 200


class NoticeBus:
    """Fan-out of non-blocking user notices (load fallbacks, failed saves)."""

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        self._handlers: list[NoticeHandler] = []
        self._counter: DefaultDict[str, int] = defaultdict(int)
        self._history: Deque[Notice] = deque(maxlen=history_limit)
        self._lock = threading.Lock()

    def subscribe(self, handler: NoticeHandler) -> None:
        self._handlers.append(handler)

    def publish(self, scope: str, severity: str, message: str, team_id: str | None = None) -> Notice:
        notice = Notice(scope=scope, severity=severity, message=message, team_id=team_id, created_at=now_utc())
        with self._lock:
            self._counter[scope] += 1
            self._history.append(notice)
        for handler in self._handlers:
            handler(notice)
        return notice

    def emitted_count(self, scope: str | None = None) -> int:
        if scope is None:
            return sum(self._counter.values())
        return self._counter[scope]

    def recent(self, limit: int = 10) -> list[Notice]:
        with self._lock:
            return list(self._history)[-limit:]
