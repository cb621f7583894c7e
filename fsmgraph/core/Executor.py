from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from logging import getLogger
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, TYPE_CHECKING

from .Node import NodeInstance
from .Types import ExecStatus
from ..trace.trace_emitter import TraceEmitter, global_tracer

if TYPE_CHECKING:
    from .GraphStore import Graph, GraphStore
    from ..noderegistry.NodeRegistry import NodeRegistry

logger = getLogger(__name__)


class ExecutionResult:
    """
    Standardized return type for every node behaviour.

    `data` carries the node-specific payload (variable written, computed
    value, iteration count ...). It is flattened next to `action` and
    `status` by `to_dict()`.
    """
    def __init__(self,
                 status: ExecStatus,
                 action: str,
                 message: Optional[str] = None,
                 data: Optional[Dict[str, Any]] = None):
        self.status = status
        self.action = action
        self.message = message
        self.data = data if data is not None else {}

    @classmethod
    def success(cls, action: str, **data: Any) -> 'ExecutionResult':
        return cls(ExecStatus.SUCCESS, action, data=data)

    @classmethod
    def error(cls, action: str, message: str, **data: Any) -> 'ExecutionResult':
        return cls(ExecStatus.ERROR, action, message=message, data=data)

    @property
    def ok(self) -> bool:
        return self.status == ExecStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        result = {"action": self.action, "status": self.status.value}
        if self.message is not None:
            result["message"] = self.message
        result.update(self.data)
        return result

    def __repr__(self):
        return f"ExecutionResult({self.action}, {self.status.value})"


class ExecutionContext:
    """
    Mutable variable environment one graph is simulated against.

    Variables declared `global` are visible to called functions and written
    back when the call returns; everything else is local to this context.
    """
    def __init__(self,
                 variables: Optional[Dict[str, Any]] = None,
                 executor: Optional['Executor'] = None,
                 depth: int = 0,
                 graph_key: str = ""):
        self.variables: Dict[str, Any] = variables if variables is not None else {}
        self.global_names: Set[str] = set()
        self.output: List[str] = []
        self.return_value: Any = None
        self.has_returned = False
        self.executor = executor
        self.depth = depth
        self.graph_key = graph_key

    def has_variable(self, name: str) -> bool:
        return name in self.variables

    def get_variable(self, name: str, default: Any = None) -> Any:
        return self.variables.get(name, default)

    def set_variable(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def declare_variable(self, name: str, value: Any, var_type: str = "local") -> None:
        self.variables[name] = value
        if var_type == "global":
            self.global_names.add(name)
        else:
            self.global_names.discard(name)

    def write(self, line: str) -> None:
        self.output.append(line)

    def set_return(self, value: Any) -> None:
        self.return_value = value
        self.has_returned = True

    def call_function(self, name: str, args: Sequence[Any]) -> ExecutionResult:
        if self.executor is None:
            return ExecutionResult.error("callFunction", "No executor available to call functions",
                                         functionName=name)
        return self.executor.call_function(name, list(args), self)


@dataclass
class StepRecord:
    index: int
    node: NodeInstance
    result: ExecutionResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "runtimeId": self.node.runtime_id,
            "type": self.node.type_id,
            "result": self.result.to_dict(),
        }


@dataclass
class SimulationReport:
    graph_key: str
    steps: List[StepRecord] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    output: List[str] = field(default_factory=list)
    return_value: Any = None

    @property
    def errors(self) -> List[StepRecord]:
        return [step for step in self.steps if not step.result.ok]

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graphKey": self.graph_key,
            "ok": self.ok,
            "steps": [step.to_dict() for step in self.steps],
            "variables": self.variables,
            "output": self.output,
            "returnValue": self.return_value,
        }


class Executor:
    """
    Straight-line interpreter over a graph's node sequence.

    Nodes run in list order. A node reporting an error does not stop the
    run; callers that want to halt early iterate `iter_steps()` themselves.
    Loop and conditional nodes only evaluate their header against the
    environment; they never reorder or skip the nodes after them.
    """
    def __init__(self,
                 store: Optional['GraphStore'] = None,
                 registry: Optional['NodeRegistry'] = None,
                 tracer: Optional[TraceEmitter] = None,
                 max_call_depth: Optional[int] = None):
        self.store = store
        if registry is None:
            if store is not None:
                registry = store.registry
            else:
                from ..noderegistry import default_registry
                registry = default_registry
        self.registry = registry
        self.tracer = tracer if tracer is not None else global_tracer
        if max_call_depth is None:
            from ..config import get_settings
            max_call_depth = get_settings().max_call_depth
        self.max_call_depth = max_call_depth

    def execute_node(self, node: NodeInstance, context: ExecutionContext) -> ExecutionResult:
        definition = self.registry.lookup(node.type_id)
        if definition is None:
            return ExecutionResult.error(node.type_id, f"Unknown node type '{node.type_id}'")

        # defaults first; the node's own fields win
        values = definition.defaults()
        values.update(node.fields)
        try:
            result = definition.execute(values, context)
        except Exception as exc:
            logger.exception("Node '%s' (%s) raised during simulation", node.label, node.type_id)
            return ExecutionResult.error(node.type_id, f"{type(exc).__name__}: {exc}")

        if not isinstance(result, ExecutionResult):
            return ExecutionResult.error(node.type_id, "Node behaviour returned no result")
        return result

    def iter_steps(self, graph: 'Graph', context: ExecutionContext) -> Iterator[StepRecord]:
        key = graph.key
        self.tracer.fire({"type": "EXEC_START", "graphKey": key,
                          "nodeCount": len(graph.nodes), "depth": context.depth})
        error_count = 0
        # iterate a copy of the order
        for index, node in enumerate(list(graph.nodes)):
            self.tracer.fire({"type": "NODE_RUNNING", "graphKey": key, "index": index,
                              "runtimeId": node.runtime_id, "nodeType": node.type_id})
            started = time.perf_counter()
            result = self.execute_node(node, context)
            if result.ok:
                self.tracer.fire({"type": "NODE_DONE", "graphKey": key, "index": index,
                                  "runtimeId": node.runtime_id, "action": result.action,
                                  "durationMs": (time.perf_counter() - started) * 1000.0})
            else:
                error_count += 1
                logger.info("Simulation of %s: node %d (%s) failed: %s",
                            key, index, node.type_id, result.message)
                self.tracer.fire({"type": "NODE_ERROR", "graphKey": key, "index": index,
                                  "runtimeId": node.runtime_id, "error": result.message or ""})
            yield StepRecord(index, node, result)
        self.tracer.fire({"type": "EXEC_DONE", "graphKey": key, "errorCount": error_count})

    def run(self, graph: 'Graph', variables: Optional[Dict[str, Any]] = None) -> SimulationReport:
        """Simulate every node of `graph` against a copy of `variables`."""
        context = ExecutionContext(copy.deepcopy(variables) if variables else {},
                                   executor=self, graph_key=graph.key)
        for name in graph.parameters or []:
            context.variables.setdefault(name, None)
        for name in graph.argument_names or []:
            context.variables.setdefault(name, None)

        report = SimulationReport(graph.key)
        for step in self.iter_steps(graph, context):
            report.steps.append(step)
        report.variables = context.variables
        report.output = context.output
        report.return_value = context.return_value
        return report

    def run_key(self, key: str, variables: Optional[Dict[str, Any]] = None) -> Optional[SimulationReport]:
        if self.store is None:
            raise RuntimeError("Executor has no graph store to resolve keys from")
        graph = self.store.getGraph(key)
        if graph is None:
            logger.warning("Graph not found for key: %s in run_key", key)
            return None
        return self.run(graph, variables)

    def call_function(self, name: str, args: List[Any], caller: ExecutionContext) -> ExecutionResult:
        if self.store is None:
            return ExecutionResult.error("callFunction", "Function calls need a graph store",
                                         functionName=name)
        from .GraphStore import function_key
        graph = self.store.getGraph(function_key(name))
        if graph is None:
            return ExecutionResult.error("callFunction", f"Function '{name}' is not defined",
                                         functionName=name)
        if caller.depth + 1 > self.max_call_depth:
            return ExecutionResult.error("callFunction",
                                         f"Maximum call depth ({self.max_call_depth}) exceeded",
                                         functionName=name)

        shared = {n: caller.variables[n] for n in caller.global_names if n in caller.variables}
        child = ExecutionContext(shared, executor=self, depth=caller.depth + 1, graph_key=graph.key)
        child.global_names = set(caller.global_names)
        params = graph.parameters or []
        for position, param in enumerate(params):
            child.variables[param] = args[position] if position < len(args) else None

        errors = [step for step in self.iter_steps(graph, child) if not step.result.ok]

        # write globals back to the caller
        for n in child.global_names:
            if n in child.variables:
                caller.variables[n] = child.variables[n]
        caller.global_names |= child.global_names
        caller.output.extend(child.output)

        if errors:
            first = errors[0]
            return ExecutionResult.error(
                "callFunction",
                f"Function '{name}' failed at node {first.index}: {first.result.message}",
                functionName=name, returnValue=child.return_value)
        return ExecutionResult.success("callFunction", functionName=name,
                                       returnValue=child.return_value)
