"""Read-only value tree over documents parsed by the standard ``json`` module."""

from __future__ import annotations

import enum
import json
from typing import Any, Optional, Union

from .errors import DecodeError, ErrorKind


class ValueKind(enum.Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    REAL = "real"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"


def kind_of(value: Any) -> ValueKind:
    # bool is an int subclass, so it is checked first.
    if value is True:
        return ValueKind.TRUE
    if value is False:
        return ValueKind.FALSE
    if value is None:
        return ValueKind.NULL
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.REAL
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, dict):
        return ValueKind.OBJECT
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    raise TypeError(f"unsupported value type: {type(value).__name__}")


class _Handle:
    __slots__ = ("released",)

    def __init__(self) -> None:
        self.released = False


class ValueNode:
    """A borrowed node of a parsed document.

    Every node shares the handle of the root it was reached from; once the
    root is released, no node of that tree may be read again.
    """

    __slots__ = ("_value", "_kind", "_handle")

    def __init__(self, value: Any, handle: Optional[_Handle] = None) -> None:
        self._value = value
        self._kind = kind_of(value)
        self._handle = handle if handle is not None else _Handle()

    def _check(self) -> None:
        if self._handle.released:
            raise RuntimeError("value tree used after release")

    @property
    def kind(self) -> ValueKind:
        self._check()
        return self._kind

    @property
    def value(self) -> Any:
        self._check()
        return self._value

    def get(self, key: str) -> Optional["ValueNode"]:
        self._check()
        if self._kind is not ValueKind.OBJECT or key not in self._value:
            return None
        return ValueNode(self._value[key], self._handle)

    def __len__(self) -> int:
        self._check()
        if self._kind is not ValueKind.ARRAY:
            return 0
        return len(self._value)

    def at(self, index: int) -> Optional["ValueNode"]:
        self._check()
        if self._kind is not ValueKind.ARRAY or not 0 <= index < len(self._value):
            return None
        return ValueNode(self._value[index], self._handle)

    def string_value(self) -> Optional[str]:
        self._check()
        return self._value if self._kind is ValueKind.STRING else None

    def integer_value(self) -> int:
        self._check()
        if self._kind in (ValueKind.INTEGER, ValueKind.REAL, ValueKind.TRUE, ValueKind.FALSE):
            return int(self._value)
        return 0

    def real_value(self) -> float:
        self._check()
        if self._kind in (ValueKind.INTEGER, ValueKind.REAL):
            return float(self._value)
        return 0.0

    def bool_value(self) -> bool:
        self._check()
        return self._kind is ValueKind.TRUE

    def release(self) -> None:
        if self._handle.released:
            raise RuntimeError("value tree released twice")
        self._handle.released = True

    def __repr__(self) -> str:
        return f"<ValueNode {self._kind.value}>"


def _reject_constant(name: str) -> float:
    raise ValueError(f"non-finite number {name} is not valid JSON")


def parse(data: Union[str, bytes, bytearray]) -> ValueNode:
    try:
        value = json.loads(data, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(ErrorKind.FORMAT, (), str(exc)) from exc
    return ValueNode(value)
