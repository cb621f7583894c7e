"""
Variable, output and timing nodes.
"""
from __future__ import annotations

from ..core.Executor import ExecutionResult
from ..core.Types import ValueType
from .NodeRegistry import FieldSpec, node_type
from .validation import (
    identifier_error,
    lua_tostring,
    resolve_operand,
    resolve_source,
    to_boolean,
    to_number,
)

VAR_TYPES = ("local", "global")
DATA_TYPES = ("string", "number", "boolean", "table", "nil")


def _coerce(data_type, value):
    """Convert a literal to the declared Lua data type; (ok, value, error)."""
    if data_type == "number":
        number = to_number(value)
        if number is None:
            return False, None, f"'{value}' is not a valid number"
        return True, number, None
    if data_type == "boolean":
        return True, to_boolean(value), None
    if data_type == "table":
        return True, dict(value) if isinstance(value, dict) else {}, None
    if data_type == "nil":
        return True, None, None
    return True, "" if value is None else str(value), None


@node_type(
    "print",
    label="Print Message",
    description="Prints a message to the console.",
    category="Output",
    fields={
        "message": FieldSpec(ValueType.STRING, "Hello World"),
        "useVariableForMessage": FieldSpec(ValueType.BOOL, False),
        "messageVariable": FieldSpec(ValueType.STRING, ""),
        "printToConsole": FieldSpec(ValueType.BOOL, True),
        "color": FieldSpec(ValueType.STRING, "white"),
    },
)
def print_message(fields, context):
    ok, value, error = resolve_source(context, fields["useVariableForMessage"],
                                      fields["messageVariable"], fields["message"])
    if not ok:
        return ExecutionResult.error("print", error)

    text = lua_tostring(value)
    if fields["printToConsole"]:
        context.write(text)
    return ExecutionResult.success("print", message=text)


@node_type(
    "declareVariable",
    label="Declare Variable",
    description="Declares a local or global variable with an initial value.",
    category="Variables",
    fields={
        "varType": FieldSpec(ValueType.STRING, "local"),
        "variableName": FieldSpec(ValueType.STRING, "myVar"),
        "dataType": FieldSpec(ValueType.STRING, "string"),
        "value": FieldSpec(ValueType.ANY, ""),
    },
)
def declare_variable(fields, context):
    name = fields["variableName"]
    error = identifier_error(name)
    if error:
        return ExecutionResult.error("declareVariable", error, variableName=name)
    if fields["varType"] not in VAR_TYPES:
        return ExecutionResult.error("declareVariable", f"Unknown variable scope '{fields['varType']}'",
                                     variableName=name)
    if fields["dataType"] not in DATA_TYPES:
        return ExecutionResult.error("declareVariable", f"Unknown data type '{fields['dataType']}'",
                                     variableName=name)

    ok, value, error = _coerce(fields["dataType"], fields["value"])
    if not ok:
        return ExecutionResult.error("declareVariable", error, variableName=name)

    context.declare_variable(name, value, fields["varType"])
    return ExecutionResult.success("declareVariable", variableName=name, value=value)


@node_type(
    "setVariable",
    label="Set Variable",
    description="Assigns a new value to an existing variable.",
    category="Variables",
    fields={
        "variableName": FieldSpec(ValueType.STRING, "myVar"),
        "valueType": FieldSpec(ValueType.STRING, "string"),
        "valueSource": FieldSpec(ValueType.ANY, ""),
    },
)
def set_variable(fields, context):
    name = fields["variableName"]
    error = identifier_error(name)
    if error:
        return ExecutionResult.error("setVariable", error, variableName=name)

    ok, value, error = resolve_operand(context, fields["valueType"], fields["valueSource"])
    if not ok:
        return ExecutionResult.error("setVariable", error, variableName=name)

    # assigning an undeclared name creates a global in Lua
    created = not context.has_variable(name)
    if created:
        context.declare_variable(name, value, "global")
    else:
        context.set_variable(name, value)
    return ExecutionResult.success("setVariable", variableName=name, value=value, created=created)


@node_type(
    "wait",
    label="Wait",
    description="Pauses the current thread (Citizen.Wait).",
    category="Timing",
    fields={
        "duration": FieldSpec(ValueType.NUMBER, 1000),
        "useVariableForDuration": FieldSpec(ValueType.BOOL, False),
        "durationVariable": FieldSpec(ValueType.STRING, ""),
    },
)
def wait(fields, context):
    ok, value, error = resolve_source(context, fields["useVariableForDuration"],
                                      fields["durationVariable"], fields["duration"])
    if not ok:
        return ExecutionResult.error("wait", error)
    duration = to_number(value)
    if duration is None or duration < 0:
        return ExecutionResult.error("wait", f"Invalid wait duration: {value!r}")
    return ExecutionResult.success("wait", duration=duration)
