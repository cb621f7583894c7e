from __future__ import annotations

from ..core.Executor import ExecutionResult
from ..core.Types import ValueType
from .NodeRegistry import FieldSpec, node_type
from .validation import identifier_error, lua_tostring, resolve_source


def _string_input(fields, context, prefix):
    """Resolve `<prefix>`, `useVariableFor<Prefix>`, `<prefix>Variable` triples."""
    toggle = "useVariableFor" + prefix[0].upper() + prefix[1:]
    return resolve_source(context, fields[toggle], fields[f"{prefix}Variable"], fields[prefix])


@node_type(
    "concatString",
    label="Concatenate Strings",
    description="Joins two strings (a .. b) into a variable.",
    category="String",
    fields={
        "string1": FieldSpec(ValueType.STRING, ""),
        "useVariableForString1": FieldSpec(ValueType.BOOL, False),
        "string1Variable": FieldSpec(ValueType.STRING, ""),
        "string2": FieldSpec(ValueType.STRING, ""),
        "useVariableForString2": FieldSpec(ValueType.BOOL, False),
        "string2Variable": FieldSpec(ValueType.STRING, ""),
        "resultVariable": FieldSpec(ValueType.STRING, "combined"),
    },
)
def concat_string(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("concatString", error, variableName=target)

    parts = []
    for prefix in ("string1", "string2"):
        ok, value, error = _string_input(fields, context, prefix)
        if not ok:
            return ExecutionResult.error("concatString", error, variableName=target)
        if value is None or isinstance(value, (bool, dict)):
            return ExecutionResult.error(
                "concatString", f"Attempt to concatenate a {lua_tostring(value)} value ({prefix})",
                variableName=target)
        parts.append(lua_tostring(value))

    value = "".join(parts)
    context.set_variable(target, value)
    return ExecutionResult.success("concatString", variableName=target, value=value)


def _input_string(fields, context):
    ok, value, error = resolve_source(context, fields["useVariableForInput"],
                                      fields["inputStringVariable"], fields["inputString"])
    if not ok:
        return ok, value, error
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return False, None, f"Expected a string, got {lua_tostring(value)}"
    return True, value, None


@node_type(
    "stringCase",
    label="Change Case",
    description="Converts a string to upper or lower case.",
    category="String",
    fields={
        "caseType": FieldSpec(ValueType.STRING, "upper"),
        "useVariableForInput": FieldSpec(ValueType.BOOL, False),
        "inputStringVariable": FieldSpec(ValueType.STRING, ""),
        "inputString": FieldSpec(ValueType.STRING, ""),
        "resultVariable": FieldSpec(ValueType.STRING, "result"),
    },
)
def string_case(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("stringCase", error, variableName=target)
    if fields["caseType"] not in ("upper", "lower"):
        return ExecutionResult.error("stringCase", f"Unknown case type '{fields['caseType']}'",
                                     variableName=target)

    ok, value, error = _input_string(fields, context)
    if not ok:
        return ExecutionResult.error("stringCase", error, variableName=target)

    text = lua_tostring(value)
    value = text.upper() if fields["caseType"] == "upper" else text.lower()
    context.set_variable(target, value)
    return ExecutionResult.success("stringCase", variableName=target, value=value)


@node_type(
    "stringLength",
    label="String Length",
    description="Stores the length of a string (#s).",
    category="String",
    fields={
        "useVariableForInput": FieldSpec(ValueType.BOOL, False),
        "inputStringVariable": FieldSpec(ValueType.STRING, ""),
        "inputString": FieldSpec(ValueType.STRING, ""),
        "resultVariable": FieldSpec(ValueType.STRING, "length"),
    },
)
def string_length(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("stringLength", error, variableName=target)

    ok, value, error = _input_string(fields, context)
    if not ok:
        return ExecutionResult.error("stringLength", error, variableName=target)

    # Lua counts bytes, not characters
    length = len(lua_tostring(value).encode("utf-8"))
    context.set_variable(target, length)
    return ExecutionResult.success("stringLength", variableName=target, value=length)
