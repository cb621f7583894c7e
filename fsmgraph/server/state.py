"""
ProjectState: the single project the API server edits.

The store, its notifications and the simulator live for the lifetime of
the process; `reset()` starts a fresh, clean project.
"""
from __future__ import annotations

from ..config import get_settings
from ..core.Executor import Executor
from ..core.GraphStore import GraphStore
from ..core.Notifications import NotificationCenter
from ..noderegistry import default_registry
from ..trace.trace_emitter import TraceEmitter


class ProjectState:
    """Holds the GraphStore, its notification center and an Executor."""

    def __init__(self) -> None:
        self.registry = default_registry
        self.tracer = TraceEmitter()
        self.reset()

    def reset(self) -> None:
        self.notifications = NotificationCenter(get_settings().notice_history)
        self.store = GraphStore(self.registry, self.notifications)
        self.executor = Executor(self.store, tracer=self.tracer)


# start-up registration is finished once the node modules are imported
default_registry.freeze()

project_state = ProjectState()
