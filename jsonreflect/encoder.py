"""Table-driven conversion of a record back into a JSON value tree.

Failures follow the decoder's policy: a nullable field that cannot be
encoded is left out, any other field aborts the encode, and array
elements that cannot be encoded are skipped.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import EncodeError, ErrorKind, format_path
from .meta import INTEGER_WIDTHS, REAL_SIZE, FieldDescriptor, FieldKind, Table
from .record import Record, count_of, element, load_integer, load_real, load_ref, nested, table_of, view

logger = logging.getLogger(__name__)

Path = Tuple[str, ...]


def encode(record: Optional[Record], table: Optional[Table] = None) -> Dict[str, Any]:
    if record is None:
        raise EncodeError(ErrorKind.INVALID_ARGUMENTS, (), "record is required")
    if table is not None and table is not table_of(record):
        record = view(record, table)
    return encode_fields(record, table_of(record), ())


def dumps(record: Optional[Record], table: Optional[Table] = None, indent: Optional[int] = None) -> str:
    return json.dumps(encode(record, table), indent=indent, ensure_ascii=False, allow_nan=False)


def encode_fields(record: Record, table: Table, path: Path) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for field in table:
        where = path + (field.name,)
        try:
            out[field.name] = _ENCODERS[field.kind](record, field, where)
        except EncodeError as err:
            if field.nullable:
                logger.info("omitting field %s: %s", format_path(where), err)
                continue
            logger.warning("encode error on field %s: %s", format_path(where), err)
            raise
    return out


def _encode_integer(record: Record, field: FieldDescriptor, path: Path) -> int:
    if field.size not in INTEGER_WIDTHS:
        raise EncodeError(ErrorKind.OVERFLOW, path, f"unsupported integer width {field.size}")
    return load_integer(record, field)


def _encode_boolean(record: Record, field: FieldDescriptor, path: Path) -> bool:
    return bool(_encode_integer(record, field, path))


def _encode_real(record: Record, field: FieldDescriptor, path: Path) -> float:
    if field.size != REAL_SIZE:
        raise EncodeError(ErrorKind.OVERFLOW, path, f"unsupported real width {field.size}")
    value = load_real(record, field)
    if not math.isfinite(value):
        raise EncodeError(ErrorKind.OVERFLOW, path, f"{value!r} has no JSON form")
    return value


def _encode_string(record: Record, field: FieldDescriptor, path: Path) -> str:
    value = load_ref(record, field)
    if value is None:
        raise EncodeError(ErrorKind.MISSING_FIELD, path)
    return value


def _encode_object(record: Record, field: FieldDescriptor, path: Path) -> Dict[str, Any]:
    return encode_fields(nested(record, field), field.table, path)


def _encode_array(record: Record, field: FieldDescriptor, path: Path) -> List[Any]:
    block = load_ref(record, field)
    count = count_of(record, field)
    if block is None or count <= 0:
        return []
    if count * field.element_size > len(block):
        raise EncodeError(ErrorKind.OVERFLOW, path, f"count {count} exceeds the allocation")

    elements = field.table
    scalar = elements.fields[0] if elements.describes_scalars else None
    items: List[Any] = []
    for index in range(count):
        item_path = path + (f"[{index}]",)
        slot = element(block, elements, index)
        try:
            if scalar is not None:
                items.append(_ENCODERS[scalar.kind](slot, scalar, item_path))
            else:
                items.append(encode_fields(slot, elements, item_path))
        except EncodeError as err:
            logger.debug("skipping element %s: %s", format_path(item_path), err)

    if not items:
        raise EncodeError(ErrorKind.MISSING_FIELD, path, "no element could be encoded")
    return items


_ENCODERS: Dict[FieldKind, Callable[[Record, FieldDescriptor, Path], Any]] = {
    FieldKind.OBJECT: _encode_object,
    FieldKind.ARRAY: _encode_array,
    FieldKind.STRING: _encode_string,
    FieldKind.INTEGER: _encode_integer,
    FieldKind.REAL: _encode_real,
    FieldKind.BOOLEAN: _encode_boolean,
}
