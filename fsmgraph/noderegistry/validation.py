"""
Helpers shared by the built-in node behaviours: Lua identifier rules and
resolution of operands that may be literals or variable references.
"""
from __future__ import annotations

import re
from typing import Any, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.Executor import ExecutionContext

LUA_KEYWORDS = frozenset({
    "and", "break", "do", "else", "elseif", "end", "false", "for",
    "function", "goto", "if", "in", "local", "nil", "not", "or",
    "repeat", "return", "then", "true", "until", "while",
})

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# (ok, value, error message)
Resolved = Tuple[bool, Any, Optional[str]]


def is_valid_lua_identifier(name: Any) -> bool:
    if not isinstance(name, str) or not name:
        return False
    return bool(_IDENTIFIER.match(name)) and name not in LUA_KEYWORDS


def identifier_error(name: Any, what: str = "variable name") -> Optional[str]:
    if is_valid_lua_identifier(name):
        return None
    if isinstance(name, str) and name in LUA_KEYWORDS:
        return f"Invalid {what}: '{name}' is a reserved Lua keyword"
    return f"Invalid {what}: {name!r}"


def to_number(value: Any) -> Optional[float]:
    """Lua-style coercion: numbers pass, numeric strings convert, the rest is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return None
    return None


def to_boolean(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "", "nil")
    return bool(value)


def lua_tostring(value: Any) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        text = "%.14g" % value
        if re.fullmatch(r"-?\d+", text):
            text += ".0"
        return text
    if isinstance(value, dict):
        return "table"
    return str(value)


def resolve_operand(context: 'ExecutionContext', kind: Any, value: Any) -> Resolved:
    """
    Resolve one operand.

    kind is one of: variable, number, string, boolean, nil, literal.
    Unknown kinds fall back to the raw literal value.
    """
    kind = (kind or "literal").lower() if isinstance(kind, str) else "literal"
    if kind == "variable":
        if not is_valid_lua_identifier(value):
            return False, None, identifier_error(value)
        if not context.has_variable(value):
            return False, None, f"Variable '{value}' is not defined"
        return True, context.get_variable(value), None
    if kind == "number":
        number = to_number(value)
        if number is None:
            return False, None, f"'{value}' is not a number"
        return True, number, None
    if kind == "string":
        return True, "" if value is None else str(value), None
    if kind == "boolean":
        return True, to_boolean(value), None
    if kind == "nil":
        return True, None, None
    return True, value, None


def resolve_source(context: 'ExecutionContext',
                   use_variable: Any,
                   variable_name: Any,
                   literal: Any) -> Resolved:
    """Pick between a literal field and a variable reference toggle."""
    if use_variable:
        return resolve_operand(context, "variable", variable_name)
    return True, literal, None


def lua_length(table: dict) -> int:
    """Border of a Lua sequence stored as {1: a, 2: b, ...}."""
    n = 0
    while (n + 1) in table:
        n += 1
    return n
