"""
NotificationCenter: user-facing notices raised by the core.

The editing surface registers a callback and turns each notice into whatever
toast / status-bar message it shows. The core never blocks on a listener.
"""
from __future__ import annotations

import time
from collections import deque
from logging import getLogger
from typing import Callable, Deque, List, Literal, TypedDict

logger = getLogger(__name__)

Level = Literal["info", "success", "warning", "error"]


class Notice(TypedDict):
    title: str
    message: str
    level: Level
    ts: int


NoticeListener = Callable[[Notice], None]


class NotificationCenter:
    def __init__(self, history_limit: int = 200) -> None:
        self._listeners: List[NoticeListener] = []
        # most recent notices only
        self.history: Deque[Notice] = deque(maxlen=history_limit)

    def on_notice(self, callback: NoticeListener) -> None:
        """Register a callback that receives every notice."""
        self._listeners.append(callback)

    def remove_listener(self, callback: NoticeListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def notify(self, title: str, message: str, level: Level = "info") -> Notice:
        notice: Notice = {
            "title": title,
            "message": message,
            "level": level,
            "ts": _now_ms(),
        }
        self.history.append(notice)
        for cb in self._listeners:
            try:
                cb(notice)
            except Exception:
                # listener failures are logged, not raised
                logger.exception("Notice listener failed for %r", title)
        return notice

    def warn(self, title: str, message: str) -> Notice:
        return self.notify(title, message, "warning")


def _now_ms() -> int:
    return int(time.time() * 1000)
