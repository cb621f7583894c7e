"""
Control-flow, function and event nodes.

The simulator walks nodes in a straight line, so `if`, `forLoop` and
`forEach` only evaluate their header against the environment and report
what the generated code would branch or iterate on.
"""
from __future__ import annotations

import operator

from ..core.Executor import ExecutionResult
from ..core.Types import GraphKind, ValueType
from .NodeRegistry import FieldSpec, node_type
from .validation import (
    identifier_error,
    lua_length,
    lua_tostring,
    resolve_operand,
    resolve_source,
    to_number,
)

COMPARISONS = {
    "==": operator.eq,
    "~=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _compare(op, lhs, rhs):
    """Lua comparison semantics; returns (ok, value, error)."""
    if op in ("==", "~="):
        # Lua never equates a number with a string
        same = type(lhs) is type(rhs) or (
            isinstance(lhs, (int, float)) and isinstance(rhs, (int, float))
            and not isinstance(lhs, bool) and not isinstance(rhs, bool))
        equal = same and lhs == rhs
        return True, equal if op == "==" else not equal, None
    numbers = all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lhs, rhs))
    strings = isinstance(lhs, str) and isinstance(rhs, str)
    if not (numbers or strings):
        return False, None, (f"Attempt to compare {lua_tostring(lhs)} with {lua_tostring(rhs)}")
    return True, COMPARISONS[op](lhs, rhs), None


@node_type(
    "if",
    label="If Condition",
    description="Evaluates a comparison (if lhs op rhs then ...).",
    category="Control Flow",
    fields={
        "conditionLhsType": FieldSpec(ValueType.STRING, "variable"),
        "conditionLhsValue": FieldSpec(ValueType.ANY, ""),
        "conditionOperator": FieldSpec(ValueType.STRING, "=="),
        "conditionRhsType": FieldSpec(ValueType.STRING, "number"),
        "conditionRhsValue": FieldSpec(ValueType.ANY, 0),
    },
)
def if_condition(fields, context):
    op = fields["conditionOperator"]
    if op not in COMPARISONS:
        return ExecutionResult.error("if", f"Unknown comparison operator '{op}'")

    ok, lhs, error = resolve_operand(context, fields["conditionLhsType"], fields["conditionLhsValue"])
    if not ok:
        return ExecutionResult.error("if", error)
    ok, rhs, error = resolve_operand(context, fields["conditionRhsType"], fields["conditionRhsValue"])
    if not ok:
        return ExecutionResult.error("if", error)

    ok, value, error = _compare(op, lhs, rhs)
    if not ok:
        return ExecutionResult.error("if", error)
    return ExecutionResult.success("if", condition=value)


@node_type(
    "forLoop",
    label="For Loop",
    description="Numeric for loop (for i = start, end, step do ...).",
    category="Control Flow",
    fields={
        "controlVariable": FieldSpec(ValueType.STRING, "i"),
        "startValueType": FieldSpec(ValueType.STRING, "number"),
        "startValue": FieldSpec(ValueType.ANY, 1),
        "endValueType": FieldSpec(ValueType.STRING, "number"),
        "endValue": FieldSpec(ValueType.ANY, 10),
        "stepValueType": FieldSpec(ValueType.STRING, "number"),
        "stepValue": FieldSpec(ValueType.ANY, 1),
    },
)
def for_loop(fields, context):
    name = fields["controlVariable"]
    error = identifier_error(name, "control variable")
    if error:
        return ExecutionResult.error("forLoop", error, variableName=name)

    bounds = []
    for slot in ("start", "end", "step"):
        ok, raw, error = resolve_operand(context, fields[f"{slot}ValueType"], fields[f"{slot}Value"])
        if not ok:
            return ExecutionResult.error("forLoop", error, variableName=name)
        number = to_number(raw)
        if number is None:
            return ExecutionResult.error("forLoop", f"'for' {slot} value must be a number",
                                         variableName=name)
        bounds.append(number)
    start, end, step = bounds
    if step == 0:
        return ExecutionResult.error("forLoop", "'for' step is zero", variableName=name)

    if (step > 0 and start > end) or (step < 0 and start < end):
        iterations = 0
    else:
        iterations = int((end - start) // step) + 1

    context.set_variable(name, start)
    return ExecutionResult.success("forLoop", variableName=name, start=start, end=end,
                                   step=step, iterations=iterations)


@node_type(
    "forEach",
    label="For Each",
    description="Iterates a table with pairs or ipairs.",
    category="Control Flow",
    fields={
        "tableVariable": FieldSpec(ValueType.STRING, "myTable"),
        "iterationType": FieldSpec(ValueType.STRING, "pairs"),
        "keyVariable": FieldSpec(ValueType.STRING, "key"),
        "valueVariable": FieldSpec(ValueType.STRING, "value"),
    },
)
def for_each(fields, context):
    key_name = fields["keyVariable"]
    value_name = fields["valueVariable"]
    for target, what in ((key_name, "key variable"), (value_name, "value variable")):
        error = identifier_error(target, what)
        if error:
            return ExecutionResult.error("forEach", error, variableName=target)
    if fields["iterationType"] not in ("pairs", "ipairs"):
        return ExecutionResult.error("forEach", f"Unknown iteration type '{fields['iterationType']}'")

    ok, table, error = resolve_operand(context, "variable", fields["tableVariable"])
    if not ok:
        return ExecutionResult.error("forEach", error)
    if not isinstance(table, dict):
        return ExecutionResult.error(
            "forEach", f"bad argument #1 to '{fields['iterationType']}' (table expected, got {lua_tostring(table)})")

    if fields["iterationType"] == "ipairs":
        keys = list(range(1, lua_length(table) + 1))
    else:
        keys = list(table.keys())

    # bind the first pair so downstream nodes can be previewed
    if keys:
        context.set_variable(key_name, keys[0])
        context.set_variable(value_name, table[keys[0]])
    return ExecutionResult.success("forEach", tableVariable=fields["tableVariable"],
                                   iterations=len(keys))


@node_type(
    "callFunction",
    label="Call Function",
    description="Calls one of the project's functions with arguments.",
    category="Functions",
    fields={
        "functionName": FieldSpec(ValueType.STRING, ""),
        "argumentSources": FieldSpec(ValueType.ARRAY, []),
        "useVariableForResult": FieldSpec(ValueType.BOOL, False),
        "resultVariable": FieldSpec(ValueType.STRING, "result"),
    },
)
def call_function(fields, context):
    name = fields["functionName"]
    error = identifier_error(name, "function name")
    if error:
        return ExecutionResult.error("callFunction", error, functionName=name)
    target = fields["resultVariable"]
    if fields["useVariableForResult"]:
        error = identifier_error(target, "result variable")
        if error:
            return ExecutionResult.error("callFunction", error, functionName=name)

    args = []
    for position, source in enumerate(fields["argumentSources"] or []):
        if not isinstance(source, dict):
            return ExecutionResult.error("callFunction", f"Argument {position + 1} is malformed",
                                         functionName=name)
        ok, value, error = resolve_operand(context, source.get("type"), source.get("value"))
        if not ok:
            return ExecutionResult.error("callFunction", f"Argument {position + 1}: {error}",
                                         functionName=name)
        args.append(value)

    result = context.call_function(name, args)
    if result.ok and fields["useVariableForResult"]:
        context.set_variable(target, result.data.get("returnValue"))
        result.data["variableName"] = target
    return result


@node_type(
    "returnValue",
    label="Return Value",
    description="Returns a value from the current function.",
    category="Functions",
    allowed_graph_types=(GraphKind.FUNCTION,),
    fields={
        "returnValue": FieldSpec(ValueType.ANY, ""),
        "returnVariable": FieldSpec(ValueType.STRING, ""),
    },
)
def return_value(fields, context):
    name = fields["returnVariable"]
    ok, value, error = resolve_source(context, bool(name), name, fields["returnValue"])
    if not ok:
        return ExecutionResult.error("returnValue", error)
    context.set_return(value)
    return ExecutionResult.success("returnValue", value=value)


@node_type(
    "triggerEvent",
    label="Trigger Event",
    description="Triggers a project event (TriggerEvent / TriggerClientEvent).",
    category="Events",
    fields={
        "eventName": FieldSpec(ValueType.STRING, ""),
        "targetPlayer": FieldSpec(ValueType.ANY, -1),
        "useVariableForTarget": FieldSpec(ValueType.BOOL, False),
    },
)
def trigger_event(fields, context):
    name = fields["eventName"]
    if not isinstance(name, str) or not name.strip():
        return ExecutionResult.error("triggerEvent", "Event name is empty")

    ok, target, error = resolve_source(context, fields["useVariableForTarget"],
                                       fields["targetPlayer"], fields["targetPlayer"])
    if not ok:
        return ExecutionResult.error("triggerEvent", error, eventName=name)
    context.write(f"[event] {name} -> {lua_tostring(target)}")
    return ExecutionResult.success("triggerEvent", eventName=name, target=target)


@node_type(
    "registerCommand",
    label="Register Command",
    description="Registers a chat command (RegisterCommand).",
    category="Events",
    allowed_graph_types=(GraphKind.FILE,),
    fields={
        "commandName": FieldSpec(ValueType.STRING, "mycommand"),
        "restricted": FieldSpec(ValueType.BOOL, False),
    },
)
def register_command(fields, context):
    name = fields["commandName"]
    if not isinstance(name, str) or not name or any(ch.isspace() for ch in name):
        return ExecutionResult.error("registerCommand", f"Invalid command name: {name!r}")
    return ExecutionResult.success("registerCommand", commandName=name,
                                   restricted=bool(fields["restricted"]))
