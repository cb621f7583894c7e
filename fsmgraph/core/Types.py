from enum import Enum
from typing import Any


class GraphKind(Enum):
    FILE = "file"
    FUNCTION = "function"
    EVENT = "event"


class Scope(Enum):
    CLIENT = "client"
    SERVER = "server"
    SHARED = "shared"


# Scopes a plain file declaration may carry
FILE_SCOPES = frozenset({Scope.CLIENT, Scope.SERVER})
EVENT_SCOPES = frozenset({Scope.CLIENT, Scope.SERVER})


class ExecStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"


class ValueType(Enum):
    ANY = "any"
    INT = "int"
    NUMBER = "number"
    STRING = "string"
    BOOL = "bool"
    DICT = "dict"
    ARRAY = "array"

    @staticmethod
    def validate(value: Any, data_type: 'ValueType') -> bool:
        if data_type == ValueType.ANY:
            return True
        if value is None:
            return True

        # bool is a subclass of int; keep them apart
        if data_type == ValueType.INT:
            return isinstance(value, int) and not isinstance(value, bool)
        elif data_type == ValueType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        elif data_type == ValueType.STRING:
            return isinstance(value, str)
        elif data_type == ValueType.BOOL:
            return isinstance(value, bool)
        elif data_type == ValueType.DICT:
            return isinstance(value, dict)
        elif data_type == ValueType.ARRAY:
            return isinstance(value, (list, tuple))

        return False
