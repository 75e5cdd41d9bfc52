"""Error taxonomy shared by the decoder, encoder and declaration compiler."""

from __future__ import annotations

import enum
from typing import Iterable, Tuple


class ErrorKind(enum.IntEnum):
    NONE = 0
    MEMORY = -1
    WRONG_TYPE = -2
    MISSING_FIELD = -3
    FORMAT = -4
    INVALID_ARGUMENTS = -5
    OVERFLOW = -6


def format_path(path: Iterable[str]) -> str:
    out = ""
    for part in path:
        if not out or part.startswith("["):
            out += part
        else:
            out += "." + part
    return out or "<root>"


class ReflectError(RuntimeError):
    """A field-level failure; ``path`` names the field that failed first."""

    def __init__(self, kind: ErrorKind, path: Iterable[str] = (), detail: str = "") -> None:
        self.kind = kind
        self.path: Tuple[str, ...] = tuple(path)
        self.detail = detail
        message = f"{format_path(self.path)}: {kind.name}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)

    @property
    def where(self) -> str:
        return format_path(self.path)


class DecodeError(ReflectError):
    pass


class EncodeError(ReflectError):
    pass


class TableError(ValueError):
    pass


class DeclarationError(RuntimeError):
    def __init__(self, message: str, index: int) -> None:
        super().__init__(message)
        self.index = index
