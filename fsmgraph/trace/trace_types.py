"""
TraceEvent type definitions for the execution simulator.
All events are plain dicts so an editor or a socket layer can forward them
without conversion.
"""
from typing import Literal, TypedDict, Union


class ExecStartEvent(TypedDict):
    type: Literal["EXEC_START"]
    graphKey: str
    nodeCount: int
    depth: int
    ts: int


class NodeRunningEvent(TypedDict):
    type: Literal["NODE_RUNNING"]
    graphKey: str
    index: int
    runtimeId: str
    nodeType: str
    ts: int


class NodeDoneEvent(TypedDict):
    type: Literal["NODE_DONE"]
    graphKey: str
    index: int
    runtimeId: str
    action: str
    durationMs: float
    ts: int


class NodeErrorEvent(TypedDict):
    type: Literal["NODE_ERROR"]
    graphKey: str
    index: int
    runtimeId: str
    error: str
    ts: int


class ExecDoneEvent(TypedDict):
    type: Literal["EXEC_DONE"]
    graphKey: str
    errorCount: int
    ts: int


TraceEvent = Union[
    ExecStartEvent,
    NodeRunningEvent,
    NodeDoneEvent,
    NodeErrorEvent,
    ExecDoneEvent,
]
