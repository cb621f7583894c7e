"""
TraceEmitter: fan-out of simulator trace events to registered listeners
(editor panels, loggers, test probes).
"""
from __future__ import annotations

import time
from logging import getLogger
from typing import Any, Callable, Dict, List

from .trace_types import TraceEvent

logger = getLogger(__name__)

TraceListener = Callable[[TraceEvent], None]


class TraceEmitter:
    def __init__(self) -> None:
        self._listeners: List[TraceListener] = []

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def on_trace(self, callback: TraceListener) -> None:
        """Register a callback that receives every emitted trace event."""
        self._listeners.append(callback)

    def remove_listener(self, callback: TraceListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    # ------------------------------------------------------------------
    # Emit
    # ------------------------------------------------------------------

    def fire(self, payload: Dict[str, Any]) -> None:
        """Stamp the payload with a millisecond timestamp and broadcast it."""
        if "ts" not in payload:
            payload["ts"] = _now_ms()
        for cb in self._listeners:
            try:
                cb(payload)
            except Exception:
                # listener failures are logged, not raised
                logger.exception("Trace listener failed on %s", payload.get("type"))


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

global_tracer = TraceEmitter()


def _now_ms() -> int:
    return int(time.time() * 1000)
