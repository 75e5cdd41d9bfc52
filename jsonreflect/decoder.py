"""Table-driven conversion of a JSON value tree into a laid-out record.

Each field is decoded on its own.  A field that fails is reset to its
default; a nullable field then lets the decode carry on, while any other
field aborts it with the first error.  Array elements that fail are
dropped, and the array only fails when none of its elements decoded.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .defaults import fill_default
from .errors import DecodeError, ErrorKind, format_path
from .meta import INTEGER_WIDTHS, REAL_SIZE, FieldDescriptor, FieldKind, Table, integer_range
from .record import Block, Record, allocate, element, nested, store_integer, store_real, store_ref, table_of, view
from .tree import ValueKind, ValueNode, parse

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]

INT64_MIN, INT64_MAX = integer_range(8)

_NUMBER_LIKE = frozenset({ValueKind.INTEGER, ValueKind.REAL})
_BOOLEAN_LIKE = frozenset({ValueKind.TRUE, ValueKind.FALSE})
_EXACT = {
    FieldKind.OBJECT: ValueKind.OBJECT,
    FieldKind.ARRAY: ValueKind.ARRAY,
    FieldKind.STRING: ValueKind.STRING,
}


def compatible(value_kind: ValueKind, field_kind: FieldKind) -> bool:
    if field_kind is FieldKind.INTEGER:
        return value_kind in _NUMBER_LIKE or value_kind in _BOOLEAN_LIKE
    if field_kind is FieldKind.REAL:
        return value_kind in _NUMBER_LIKE
    if field_kind is FieldKind.BOOLEAN:
        return value_kind in _BOOLEAN_LIKE
    return _EXACT[field_kind] is value_kind


def decode(node: Any, record: Optional[Record], table: Optional[Table] = None) -> None:
    """Populate ``record`` from ``node``; raises ``DecodeError`` on a hard failure."""
    if node is None or record is None:
        raise DecodeError(ErrorKind.INVALID_ARGUMENTS, (), "value tree and record are required")
    if not isinstance(node, ValueNode):
        node = ValueNode(node)
    if table is not None and table is not table_of(record):
        try:
            record = view(record, table)
        except ValueError as exc:
            raise DecodeError(ErrorKind.INVALID_ARGUMENTS, (), str(exc)) from exc
    decode_fields(node, record, table_of(record), ())


def decode_text(data: Union[str, bytes, bytearray], record: Record, table: Optional[Table] = None) -> None:
    root = parse(data)
    try:
        decode(root, record, table)
    finally:
        root.release()


def loads(data: Union[str, bytes, bytearray], table: Table) -> Record:
    record = allocate(table)
    decode_text(data, record)
    return record


def decode_fields(node: ValueNode, record: Record, table: Table, path: Path) -> None:
    for field in table:
        try:
            _decode_field(node, record, field, path + (field.name,))
        except DecodeError as err:
            fill_default(record, field)
            if field.nullable:
                logger.info("recovered field %s: %s", format_path(path + (field.name,)), err)
                continue
            logger.warning("parse error on field %s: %s", format_path(path + (field.name,)), err)
            raise


def _decode_field(node: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    child = node.get(field.name)
    if child is None:
        raise DecodeError(ErrorKind.MISSING_FIELD, path)
    decode_value(child, record, field, path)


def decode_value(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    if not compatible(child.kind, field.kind):
        raise DecodeError(
            ErrorKind.WRONG_TYPE, path, f"expected {field.kind.value}, got {child.kind.value}"
        )
    _DECODERS[field.kind](child, record, field, path)


def _decode_object(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    decode_fields(child, nested(record, field), field.table, path)


def _decode_array(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    count_field = table_of(record).field(field.count_field)
    length = len(child)

    if length == 0:
        write_integer(record, count_field, 0, path)
        store_ref(record, field, None)
        return

    try:
        block = Block(length * field.element_size)
    except MemoryError as exc:
        raise DecodeError(ErrorKind.MEMORY, path, f"cannot allocate {length} elements") from exc

    elements = field.table
    scalar = elements.fields[0] if elements.describes_scalars else None
    success = 0
    for index in range(length):
        item = child.at(index)
        item_path = path + (f"[{index}]",)
        slot = element(block, elements, success)
        try:
            if scalar is not None:
                decode_value(item, slot, scalar, item_path)
            elif item.kind is not ValueKind.OBJECT:
                raise DecodeError(ErrorKind.WRONG_TYPE, item_path, f"expected object, got {item.kind.value}")
            else:
                decode_fields(item, slot, elements, item_path)
        except DecodeError as err:
            logger.debug("skipping element %s: %s", format_path(item_path), err)
            continue
        success += 1

    if success == 0:
        write_integer(record, count_field, 0, path)
        store_ref(record, field, None)
        raise DecodeError(ErrorKind.MISSING_FIELD, path, "no element could be decoded")

    block.truncate(success * field.element_size)
    write_integer(record, count_field, success, path)
    store_ref(record, field, block)


def _decode_string(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    value = child.string_value()
    if value is None:
        raise DecodeError(ErrorKind.MISSING_FIELD, path)
    store_ref(record, field, value)


def integral_value(child: ValueNode, path: Path) -> int:
    kind = child.kind
    if kind in _BOOLEAN_LIKE:
        return int(child.bool_value())
    if kind is ValueKind.INTEGER:
        return child.integer_value()
    value = child.real_value()
    if not math.isfinite(value) or not INT64_MIN <= value < INT64_MAX + 1:
        logger.debug("value of field %s overflows 64 bits: %r", format_path(path), value)
        raise DecodeError(ErrorKind.OVERFLOW, path, f"{value!r} does not fit 64 bits")
    return int(value)


def write_integer(record: Record, field: FieldDescriptor, value: int, path: Path) -> None:
    if field.size not in INTEGER_WIDTHS:
        raise DecodeError(ErrorKind.OVERFLOW, path, f"unsupported integer width {field.size} of {field.name}")
    low, high = integer_range(field.size)
    if not low <= value <= high:
        logger.debug("value of field %s overflows %d bytes: %d", format_path(path), field.size, value)
        raise DecodeError(ErrorKind.OVERFLOW, path, f"{value} does not fit {field.size} bytes")
    store_integer(record, field, value)


def _decode_integer(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    write_integer(record, field, integral_value(child, path), path)


def _decode_real(child: ValueNode, record: Record, field: FieldDescriptor, path: Path) -> None:
    if field.size != REAL_SIZE:
        raise DecodeError(ErrorKind.OVERFLOW, path, f"unsupported real width {field.size}")
    try:
        value = child.real_value()
    except OverflowError as exc:
        raise DecodeError(ErrorKind.OVERFLOW, path, "integer too large for a real") from exc
    store_real(record, field, value)


_DECODERS: Dict[FieldKind, Callable[[ValueNode, Record, FieldDescriptor, Path], None]] = {
    FieldKind.OBJECT: _decode_object,
    FieldKind.ARRAY: _decode_array,
    FieldKind.STRING: _decode_string,
    FieldKind.INTEGER: _decode_integer,
    FieldKind.REAL: _decode_real,
    FieldKind.BOOLEAN: _decode_integer,
}
