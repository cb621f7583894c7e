from .trace_emitter import TraceEmitter, TraceListener, global_tracer
from .trace_types import TraceEvent

__all__ = ["TraceEmitter", "TraceEvent", "TraceListener", "global_tracer"]
