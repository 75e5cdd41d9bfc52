"""Target buffers: typed views over laid-out byte blocks.

A ``Block`` is one allocation.  Fixed-width slots (integers, booleans and
reals) live in its ``bytearray`` in native byte order; pointer slots
(strings and arrays) keep the object they own in ``refs`` keyed by the
slot offset, and a missing entry is the null pointer.  A ``Record`` is a
view of one table at a base offset inside a block, so nested objects are
views into their parent's block and never allocate.
"""

from __future__ import annotations

import operator
import struct
from typing import Any, Dict, List, Optional

from .meta import INTEGER_WIDTHS, REAL_SIZE, FieldDescriptor, FieldKind, Table, integer_range


class Block:
    __slots__ = ("data", "refs")

    def __init__(self, size: int) -> None:
        self.data = bytearray(size)
        self.refs: Dict[int, Any] = {}

    def __len__(self) -> int:
        return len(self.data)

    def truncate(self, size: int) -> None:
        del self.data[size:]
        for offset in [o for o in self.refs if o >= size]:
            del self.refs[offset]


class Record:
    """Named attribute access to the fields of one laid-out record."""

    __slots__ = ("_table", "_block", "_base")

    def __init__(self, table: Table, block: Optional[Block] = None, base: int = 0) -> None:
        if block is None:
            block = Block(table.size_bytes)
        if base + table.size_bytes > len(block):
            raise ValueError(f"block too small for {table.name} at offset {base}")
        object.__setattr__(self, "_table", table)
        object.__setattr__(self, "_block", block)
        object.__setattr__(self, "_base", base)

    def __getattr__(self, name: str) -> Any:
        # Internal slots may be unset while copy restores an instance.
        if name.startswith("_"):
            raise AttributeError(name)
        field = self._table.field(name)
        if field is None:
            raise AttributeError(f"{self._table.name} has no field '{name}'")
        return load_value(self, field)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in Record.__slots__:
            object.__setattr__(self, name, value)
            return
        field = self._table.field(name)
        if field is None:
            raise AttributeError(f"{self._table.name} has no field '{name}'")
        assign(self, field, value)

    def __dir__(self) -> List[str]:
        return [f.name for f in self._table]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        if other._table is not self._table:
            return False
        return all(load_value(self, f) == load_value(other, f) for f in self._table)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<Record {self._table.name} at +{self._base}>"


def allocate(table: Table) -> Record:
    return Record(table, Block(table.size_bytes))


def table_of(record: Record) -> Table:
    return record._table


def view(record: Record, table: Table) -> Record:
    """Reinterpret ``record``'s memory through another table."""
    return Record(table, record._block, record._base)


def slot_offset(record: Record, field: FieldDescriptor) -> int:
    return record._base + field.offset


def _integer_format(field: FieldDescriptor) -> str:
    code = INTEGER_WIDTHS.get(field.size)
    if code is None:
        raise OverflowError(f"{field.name}: unsupported integer width {field.size}")
    return "=" + code


def load_integer(record: Record, field: FieldDescriptor) -> int:
    return struct.unpack_from(_integer_format(field), record._block.data, slot_offset(record, field))[0]


def store_integer(record: Record, field: FieldDescriptor, value: int) -> None:
    # The width table picks how many low-order bytes are written.
    struct.pack_into(_integer_format(field), record._block.data, slot_offset(record, field), value)


def load_real(record: Record, field: FieldDescriptor) -> float:
    return struct.unpack_from("=d", record._block.data, slot_offset(record, field))[0]


def store_real(record: Record, field: FieldDescriptor, value: float) -> None:
    struct.pack_into("=d", record._block.data, slot_offset(record, field), value)


def load_ref(record: Record, field: FieldDescriptor) -> Any:
    return record._block.refs.get(slot_offset(record, field))


def store_ref(record: Record, field: FieldDescriptor, value: Any) -> None:
    offset = slot_offset(record, field)
    if value is None:
        record._block.refs.pop(offset, None)
    else:
        record._block.refs[offset] = value


def nested(record: Record, field: FieldDescriptor) -> Record:
    return Record(field.table, record._block, slot_offset(record, field))


def element(block: Block, table: Table, index: int) -> Record:
    return Record(table, block, index * table.size_bytes)


def count_of(record: Record, field: FieldDescriptor) -> int:
    count_field = record._table.field(field.count_field)
    if count_field is None or count_field.size not in INTEGER_WIDTHS:
        return 0
    return load_integer(record, count_field)


def elements(record: Record, field: FieldDescriptor) -> List[Record]:
    """Element views of an array slot, bounded by its count and allocation."""
    block = load_ref(record, field)
    if block is None:
        return []
    capacity = len(block) // field.element_size if field.element_size else 0
    count = max(0, min(count_of(record, field), capacity))
    return [element(block, field.table, i) for i in range(count)]


def load_value(record: Record, field: FieldDescriptor) -> Any:
    kind = field.kind
    if kind is FieldKind.INTEGER:
        return load_integer(record, field)
    if kind is FieldKind.BOOLEAN:
        return bool(load_integer(record, field))
    if kind is FieldKind.REAL:
        return load_real(record, field)
    if kind is FieldKind.STRING:
        return load_ref(record, field)
    if kind is FieldKind.OBJECT:
        return nested(record, field)
    items = elements(record, field)
    if field.table.describes_scalars:
        scalar = field.table.fields[0]
        return [load_value(item, scalar) for item in items]
    return items


def is_null(record: Record, name: str) -> bool:
    field = record._table.field(name)
    if field is None or field.kind not in (FieldKind.STRING, FieldKind.ARRAY):
        raise AttributeError(f"{record._table.name} has no pointer field '{name}'")
    return load_ref(record, field) is None


def assign(record: Record, field: FieldDescriptor, value: Any) -> None:
    kind = field.kind
    if kind is FieldKind.INTEGER:
        value = operator.index(value)
        low, high = integer_range(field.size)
        if not low <= value <= high:
            raise OverflowError(f"{field.name}: {value} does not fit {field.size} bytes")
        store_integer(record, field, value)
    elif kind is FieldKind.BOOLEAN:
        store_integer(record, field, int(bool(value)))
    elif kind is FieldKind.REAL:
        if field.size != REAL_SIZE:
            raise OverflowError(f"{field.name}: unsupported real width {field.size}")
        store_real(record, field, float(value))
    elif kind is FieldKind.STRING:
        if value is not None and not isinstance(value, str):
            raise TypeError(f"{field.name}: expected str or None, got {type(value).__name__}")
        store_ref(record, field, value)
    elif kind is FieldKind.ARRAY and field.table.describes_scalars:
        _assign_scalars(record, field, list(value or ()))
    else:
        raise AttributeError(f"{field.name}: {kind.value} fields are populated through their nested records")


def _assign_scalars(record: Record, field: FieldDescriptor, values: List[Any]) -> None:
    count_field = record._table.field(field.count_field)
    if not values:
        store_ref(record, field, None)
        assign(record, count_field, 0)
        return
    block = Block(len(values) * field.element_size)
    scalar = field.table.fields[0]
    for i, value in enumerate(values):
        assign(element(block, field.table, i), scalar, value)
    assign(record, count_field, len(values))
    store_ref(record, field, block)
