from __future__ import annotations

import math

from ..core.Executor import ExecutionResult
from ..core.Types import ValueType
from .NodeRegistry import FieldSpec, node_type
from .validation import identifier_error, resolve_operand, to_number


def _operands(fields, context, action):
    """Resolve value1/value2 as numbers; returns (a, b, error_result)."""
    values = []
    for slot in ("value1", "value2"):
        ok, raw, error = resolve_operand(context, fields[f"{slot}Type"], fields[slot])
        if not ok:
            return None, None, ExecutionResult.error(action, error)
        number = to_number(raw)
        if number is None:
            return None, None, ExecutionResult.error(
                action, f"Attempt to perform arithmetic on a non-number value ({slot}: {raw!r})")
        values.append(number)
    return values[0], values[1], None


def _normalise(value):
    if isinstance(value, float) and value.is_integer() and abs(value) < 2 ** 53:
        return int(value)
    return value


@node_type(
    "mathOperation",
    label="Math Operation",
    description="Performs arithmetic on two values and stores the result.",
    category="Math",
    fields={
        "operation": FieldSpec(ValueType.STRING, "+"),
        "value1Type": FieldSpec(ValueType.STRING, "number"),
        "value1": FieldSpec(ValueType.ANY, 0),
        "value2Type": FieldSpec(ValueType.STRING, "number"),
        "value2": FieldSpec(ValueType.ANY, 0),
        "resultVariable": FieldSpec(ValueType.STRING, "result"),
    },
)
def math_operation(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("mathOperation", error, variableName=target)

    a, b, failure = _operands(fields, context, "mathOperation")
    if failure:
        return failure

    op = fields["operation"]
    if op in ("/", "%", "//") and b == 0:
        return ExecutionResult.error("mathOperation", "Division by zero", variableName=target)
    if op == "+":
        value = a + b
    elif op == "-":
        value = a - b
    elif op == "*":
        value = a * b
    elif op == "/":
        # Lua '/' is always float division
        value = a / b
    elif op == "//":
        value = a // b
    elif op == "%":
        value = a - math.floor(a / b) * b
    elif op == "^":
        # Python would return a complex number here, Lua returns nan
        value = float("nan") if a < 0 and not float(b).is_integer() else float(a) ** b
    else:
        return ExecutionResult.error("mathOperation", f"Unknown operation '{op}'", variableName=target)

    context.set_variable(target, value)
    return ExecutionResult.success("mathOperation", variableName=target, value=value)


MATH_FUNCTIONS = {
    "floor": lambda a, b: math.floor(a),
    "ceil": lambda a, b: math.ceil(a),
    "abs": lambda a, b: abs(a),
    "sqrt": lambda a, b: math.sqrt(a),
    "min": lambda a, b: min(a, b),
    "max": lambda a, b: max(a, b),
    "fmod": lambda a, b: math.fmod(a, b),
}


@node_type(
    "mathFunction",
    label="Math Function",
    description="Applies a math library function (floor, ceil, abs, sqrt, min, max, fmod).",
    category="Math",
    fields={
        "mathOperationType": FieldSpec(ValueType.STRING, "floor"),
        "value1Type": FieldSpec(ValueType.STRING, "number"),
        "value1": FieldSpec(ValueType.ANY, 0),
        "value2Type": FieldSpec(ValueType.STRING, "number"),
        "value2": FieldSpec(ValueType.ANY, 0),
        "resultVariable": FieldSpec(ValueType.STRING, "result"),
    },
)
def math_function(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("mathFunction", error, variableName=target)

    func = MATH_FUNCTIONS.get(fields["mathOperationType"])
    if func is None:
        return ExecutionResult.error("mathFunction",
                                     f"Unknown math function '{fields['mathOperationType']}'",
                                     variableName=target)
    a, b, failure = _operands(fields, context, "mathFunction")
    if failure:
        return failure
    if fields["mathOperationType"] == "sqrt" and a < 0:
        return ExecutionResult.error("mathFunction", "sqrt of a negative number", variableName=target)
    if fields["mathOperationType"] == "fmod" and b == 0:
        return ExecutionResult.error("mathFunction", "Division by zero", variableName=target)

    value = _normalise(func(a, b))
    context.set_variable(target, value)
    return ExecutionResult.success("mathFunction", variableName=target, value=value)


@node_type(
    "toNumber",
    label="To Number",
    description="Converts a value to a number (tonumber); stores nil when it cannot.",
    category="Math",
    fields={
        "inputValue": FieldSpec(ValueType.ANY, ""),
        "useVariableForInput": FieldSpec(ValueType.BOOL, False),
        "inputVariable": FieldSpec(ValueType.STRING, ""),
        "base": FieldSpec(ValueType.INT, 10),
        "resultVariable": FieldSpec(ValueType.STRING, "number"),
    },
)
def to_number_node(fields, context):
    target = fields["resultVariable"]
    error = identifier_error(target, "result variable")
    if error:
        return ExecutionResult.error("toNumber", error, variableName=target)

    base = fields["base"] if fields["base"] is not None else 10
    if not 2 <= base <= 36:
        return ExecutionResult.error("toNumber", f"Base out of range: {base}", variableName=target)

    if fields["useVariableForInput"]:
        ok, raw, error = resolve_operand(context, "variable", fields["inputVariable"])
        if not ok:
            return ExecutionResult.error("toNumber", error, variableName=target)
    else:
        raw = fields["inputValue"]

    if base == 10:
        value = to_number(raw)
    else:
        try:
            value = int(str(raw).strip(), base)
        except ValueError:
            value = None

    context.set_variable(target, value)
    return ExecutionResult.success("toNumber", variableName=target, value=value)
