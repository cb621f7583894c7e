import pytest

from fsmgraph.core.Executor import Executor
from fsmgraph.core.GraphStore import AppFile, GraphStore
from fsmgraph.core.Notifications import NotificationCenter
from fsmgraph.noderegistry import default_registry
from fsmgraph.trace.trace_emitter import TraceEmitter


@pytest.fixture
def registry():
    return default_registry


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def store(registry, notifications):
    """A fresh, clean store backed by the built-in catalogue."""
    return GraphStore(registry, notifications)


@pytest.fixture
def tracer():
    return TraceEmitter()


@pytest.fixture
def executor(store, tracer):
    return Executor(store, tracer=tracer, max_call_depth=8)


@pytest.fixture
def main_file(store):
    """Store with one client file `client/main`, flag cleared."""
    file = AppFile("main", "client")
    assert store.addFile(file)
    store.clearDirtyFlag()
    return file
