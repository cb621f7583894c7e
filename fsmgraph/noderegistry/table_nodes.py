"""
Table nodes. Lua tables are simulated as dicts; sequences use integer keys
starting at 1.
"""
from __future__ import annotations

from ..core.Executor import ExecutionResult
from ..core.Types import ValueType
from .NodeRegistry import FieldSpec, node_type
from .validation import identifier_error, lua_length, resolve_operand, to_number
from .variable_nodes import VAR_TYPES


def _table(context, name, action):
    """Look up a table variable; returns (table, error_result)."""
    error = identifier_error(name, "table variable")
    if error:
        return None, ExecutionResult.error(action, error, tableVariable=name)
    if not context.has_variable(name):
        return None, ExecutionResult.error(action, f"Table variable '{name}' is not defined",
                                           tableVariable=name)
    table = context.get_variable(name)
    if not isinstance(table, dict):
        return None, ExecutionResult.error(action, f"Variable '{name}' is not a table",
                                           tableVariable=name)
    return table, None


def _position(context, fields, action, name):
    """Resolve indexType/index to an integer position; returns (pos, error_result)."""
    kind = fields["indexType"]
    if kind == "end":
        return None, None
    ok, raw, error = resolve_operand(context, "variable" if kind == "variable" else "number",
                                     fields["index"])
    if not ok:
        return None, ExecutionResult.error(action, error, tableVariable=name)
    pos = to_number(raw)
    if pos is None or pos != int(pos):
        return None, ExecutionResult.error(action, f"Index must be an integer, got {raw!r}",
                                           tableVariable=name)
    return int(pos), None


@node_type(
    "createTable",
    label="Create Table",
    description="Initializes an empty Lua table (like {}).",
    category="Data",
    fields={
        "varType": FieldSpec(ValueType.STRING, "local"),
        "variableName": FieldSpec(ValueType.STRING, "newTable"),
    },
)
def create_table(fields, context):
    name = fields["variableName"]
    error = identifier_error(name)
    if error:
        return ExecutionResult.error("createTable", error, variableName=name)
    if fields["varType"] not in VAR_TYPES:
        return ExecutionResult.error("createTable", f"Unknown variable scope '{fields['varType']}'",
                                     variableName=name)

    context.declare_variable(name, {}, fields["varType"])
    return ExecutionResult.success("createTable", variableName=name)


@node_type(
    "setTableValue",
    label="Set Table Value",
    description="Sets t[key] = value.",
    category="Data",
    fields={
        "tableVariable": FieldSpec(ValueType.STRING, "myTable"),
        "keyType": FieldSpec(ValueType.STRING, "string"),
        "keyValue": FieldSpec(ValueType.ANY, "key"),
        "valueType": FieldSpec(ValueType.STRING, "string"),
        "valueSource": FieldSpec(ValueType.ANY, ""),
    },
)
def set_table_value(fields, context):
    name = fields["tableVariable"]
    table, failure = _table(context, name, "setTableValue")
    if failure:
        return failure

    ok, key, error = resolve_operand(context, fields["keyType"], fields["keyValue"])
    if not ok:
        return ExecutionResult.error("setTableValue", error, tableVariable=name)
    if key is None:
        return ExecutionResult.error("setTableValue", "Table index is nil", tableVariable=name)
    ok, value, error = resolve_operand(context, fields["valueType"], fields["valueSource"])
    if not ok:
        return ExecutionResult.error("setTableValue", error, tableVariable=name)

    if value is None:
        # assigning nil removes the key
        table.pop(key, None)
    else:
        table[key] = value
    return ExecutionResult.success("setTableValue", tableVariable=name, key=key, value=value)


@node_type(
    "getTableValue",
    label="Get Table Value",
    description="Reads t[key] into a variable.",
    category="Data",
    fields={
        "tableVariable": FieldSpec(ValueType.STRING, "myTable"),
        "keyType": FieldSpec(ValueType.STRING, "string"),
        "keyValue": FieldSpec(ValueType.ANY, "key"),
        "resultVariable": FieldSpec(ValueType.STRING, "value"),
    },
)
def get_table_value(fields, context):
    name = fields["tableVariable"]
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("getTableValue", error, variableName=target)
    table, failure = _table(context, name, "getTableValue")
    if failure:
        return failure

    ok, key, error = resolve_operand(context, fields["keyType"], fields["keyValue"])
    if not ok:
        return ExecutionResult.error("getTableValue", error, tableVariable=name)

    value = table.get(key)
    context.set_variable(target, value)
    return ExecutionResult.success("getTableValue", tableVariable=name, key=key,
                                   variableName=target, value=value)


@node_type(
    "tableInsert",
    label="Table Insert",
    description="table.insert(t, [pos,] value).",
    category="Data",
    fields={
        "tableVariable": FieldSpec(ValueType.STRING, "myTable"),
        "valueType": FieldSpec(ValueType.STRING, "string"),
        "valueSource": FieldSpec(ValueType.ANY, ""),
        "indexType": FieldSpec(ValueType.STRING, "end"),
        "index": FieldSpec(ValueType.ANY, 1),
    },
)
def table_insert(fields, context):
    name = fields["tableVariable"]
    table, failure = _table(context, name, "tableInsert")
    if failure:
        return failure

    ok, value, error = resolve_operand(context, fields["valueType"], fields["valueSource"])
    if not ok:
        return ExecutionResult.error("tableInsert", error, tableVariable=name)

    length = lua_length(table)
    pos, failure = _position(context, fields, "tableInsert", name)
    if failure:
        return failure
    if pos is None:
        pos = length + 1
    elif not 1 <= pos <= length + 1:
        return ExecutionResult.error("tableInsert", f"Position {pos} out of bounds", tableVariable=name)

    for i in range(length, pos - 1, -1):
        table[i + 1] = table[i]
    table[pos] = value
    return ExecutionResult.success("tableInsert", tableVariable=name, index=pos, value=value)


@node_type(
    "tableRemove",
    label="Table Remove",
    description="table.remove(t, [pos]) and optionally keep the removed value.",
    category="Data",
    fields={
        "tableVariable": FieldSpec(ValueType.STRING, "myTable"),
        "indexType": FieldSpec(ValueType.STRING, "end"),
        "index": FieldSpec(ValueType.ANY, 1),
        "resultRemovedValueVar": FieldSpec(ValueType.STRING, ""),
    },
)
def table_remove(fields, context):
    name = fields["tableVariable"]
    target = fields["resultRemovedValueVar"]
    if target:
        error = identifier_error(target, "result variable")
        if error:
            return ExecutionResult.error("tableRemove", error, variableName=target)
    table, failure = _table(context, name, "tableRemove")
    if failure:
        return failure

    length = lua_length(table)
    pos, failure = _position(context, fields, "tableRemove", name)
    if failure:
        return failure
    if pos is None:
        pos = length
    if length == 0:
        removed = None
    elif not 1 <= pos <= length:
        return ExecutionResult.error("tableRemove", f"Position {pos} out of bounds", tableVariable=name)
    else:
        removed = table[pos]
        for i in range(pos, length):
            table[i] = table[i + 1]
        del table[length]

    if target:
        context.set_variable(target, removed)
    return ExecutionResult.success("tableRemove", tableVariable=name, index=pos, value=removed)
