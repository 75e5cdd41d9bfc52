"""Reflection metadata: field descriptors, tables and their byte layout.

A table describes one record type the way a C compiler would lay it out:
fields are placed in declaration order, each aligned to its natural
alignment, and the record size is padded to the strictest alignment.
"""

from __future__ import annotations

import dataclasses
import enum
import struct
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .errors import TableError

# A table whose first field starts with this marker describes scalar array
# elements rather than nested records.
SCALAR_MARKER = "0"

POINTER_SIZE = struct.calcsize("P")
REAL_SIZE = struct.calcsize("d")
INTEGER_WIDTHS: Dict[int, str] = {1: "b", 2: "h", 4: "i", 8: "q"}
MAX_ALIGNMENT = 8


class FieldKind(enum.Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    REAL = "real"
    BOOLEAN = "boolean"


POINTER_KINDS = frozenset({FieldKind.STRING, FieldKind.ARRAY})
SCALAR_KINDS = frozenset({FieldKind.STRING, FieldKind.INTEGER, FieldKind.REAL, FieldKind.BOOLEAN})


def integer_range(size: int) -> Tuple[int, int]:
    bits = size * 8
    return -(1 << (bits - 1)), (1 << (bits - 1)) - 1


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    name: str
    kind: FieldKind
    size: int
    offset: int = 0
    nullable: bool = True
    table: "Table | None" = None
    count_field: str = ""
    element_size: int = 0

    @property
    def alignment(self) -> int:
        if self.kind is FieldKind.OBJECT and self.table is not None:
            return self.table.alignment
        return natural_alignment(self.size)


def natural_alignment(size: int) -> int:
    align = 1
    while align < MAX_ALIGNMENT and size % (align * 2) == 0 and size >= align * 2:
        align *= 2
    return align


def _align_up(value: int, align: int) -> int:
    return (value + align - 1) // align * align


class Table:
    """An ordered, laid-out description of one record type."""

    def __init__(self, name: str, fields: Sequence[FieldDescriptor]) -> None:
        self.name = name
        laid_out: List[FieldDescriptor] = []
        by_name: Dict[str, FieldDescriptor] = {}
        cursor = 0
        alignment = 1

        for field in fields:
            if not field.name:
                raise TableError(f"{name}: field names must not be empty")
            if field.name in by_name:
                raise TableError(f"{name}: duplicate field '{field.name}'")
            if field.kind in (FieldKind.OBJECT, FieldKind.ARRAY) and field.table is None:
                raise TableError(f"{name}.{field.name}: {field.kind.value} fields need a nested table")

            align = field.alignment
            cursor = _align_up(cursor, align)
            placed = dataclasses.replace(field, offset=cursor)
            laid_out.append(placed)
            by_name[placed.name] = placed
            cursor += field.size
            alignment = max(alignment, align)

        position = {field.name: i for i, field in enumerate(laid_out)}
        for i, field in enumerate(laid_out):
            if field.kind is not FieldKind.ARRAY:
                continue
            count = by_name.get(field.count_field)
            if count is None or count.kind is not FieldKind.INTEGER:
                raise TableError(
                    f"{name}.{field.name}: count field '{field.count_field}' must be an integer field of {name}"
                )
            # Fields decode in order; the array must be the last writer of its count.
            if position[count.name] > i:
                raise TableError(
                    f"{name}.{field.name}: count field '{field.count_field}' must be declared before the array"
                )

        self.fields: Tuple[FieldDescriptor, ...] = tuple(laid_out)
        self.alignment = alignment
        self.size_bytes = _align_up(cursor, alignment)
        self._by_name = by_name

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __repr__(self) -> str:
        return f"Table({self.name!r}, fields={len(self.fields)}, size_bytes={self.size_bytes})"

    def field(self, name: str) -> Optional[FieldDescriptor]:
        return self._by_name.get(name)

    @property
    def describes_scalars(self) -> bool:
        return bool(self.fields) and self.fields[0].name.startswith(SCALAR_MARKER)

    def validate(self) -> None:
        """Check declared widths; recurses into nested tables."""
        for field in self.fields:
            where = f"{self.name}.{field.name}"
            if field.kind in (FieldKind.INTEGER, FieldKind.BOOLEAN) and field.size not in INTEGER_WIDTHS:
                raise TableError(f"{where}: unsupported integer width {field.size}")
            if field.kind is FieldKind.REAL and field.size != REAL_SIZE:
                raise TableError(f"{where}: unsupported real width {field.size}")
            if field.table is not None:
                field.table.validate()


def integer(name: str, size: int = 4, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.INTEGER, size, nullable=nullable)


def boolean(name: str, size: int = 4, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.BOOLEAN, size, nullable=nullable)


def real(name: str, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.REAL, REAL_SIZE, nullable=nullable)


def string(name: str, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.STRING, POINTER_SIZE, nullable=nullable)


def obj(name: str, table: Table, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(name, FieldKind.OBJECT, table.size_bytes, nullable=nullable, table=table)


def array(name: str, table: Table, count_field: str, nullable: bool = True) -> FieldDescriptor:
    return FieldDescriptor(
        name,
        FieldKind.ARRAY,
        POINTER_SIZE,
        nullable=nullable,
        table=table,
        count_field=count_field,
        element_size=table.size_bytes,
    )


def scalar_table(kind: FieldKind, size: Optional[int] = None) -> Table:
    if kind not in SCALAR_KINDS:
        raise TableError(f"scalar elements cannot be of kind {kind.value}")
    if size is None:
        size = {FieldKind.STRING: POINTER_SIZE, FieldKind.REAL: REAL_SIZE}.get(kind, 4)
    return Table(f"{SCALAR_MARKER}{kind.value}", [FieldDescriptor(SCALAR_MARKER, kind, size)])


def scalar_array(
    name: str, kind: FieldKind, count_field: str, size: Optional[int] = None, nullable: bool = True
) -> FieldDescriptor:
    return array(name, scalar_table(kind, size), count_field, nullable=nullable)
