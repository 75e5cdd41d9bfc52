"""Per-field traversal of a populated record, plus printing and release."""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, List, Optional, TextIO

from .meta import INTEGER_WIDTHS, FieldDescriptor, FieldKind, Table
from .record import Record, elements, load_value, nested, store_integer, store_ref, table_of, view

logger = logging.getLogger(__name__)

FieldFn = Callable[[Record, FieldDescriptor], Any]


def visit(record: Record, fn: FieldFn, table: Optional[Table] = None) -> None:
    """Call ``fn(record, field)`` for every field of one table level.

    Object and array fields are passed to ``fn`` like any other field; the
    visitor never descends into them on its own.
    """
    if table is not None and table is not table_of(record):
        record = view(record, table)
    for field in table_of(record):
        fn(record, field)


def _render(field: FieldDescriptor, value: Any) -> str:
    if field.kind is FieldKind.BOOLEAN:
        return "true" if value else "false"
    if field.kind is FieldKind.REAL:
        return f"{value:f}"
    if value is None:
        return "(null)"
    return str(value)


def format_record(record: Record, table: Optional[Table] = None) -> List[str]:
    lines: List[str] = []

    def printer(prefix: str) -> FieldFn:
        def show(rec: Record, field: FieldDescriptor) -> None:
            label = prefix + field.name
            if field.kind is FieldKind.OBJECT:
                visit(nested(rec, field), printer(label + "."))
            elif field.kind is FieldKind.ARRAY:
                scalar = field.table.fields[0] if field.table.describes_scalars else None
                for index, item in enumerate(elements(rec, field)):
                    if scalar is not None:
                        lines.append(f"{label}[{index}]:{_render(scalar, load_value(item, scalar))}")
                    else:
                        visit(item, printer(f"{label}[{index}]."))
            else:
                lines.append(f"{label}:{_render(field, load_value(rec, field))}")

        return show

    visit(record, printer(""), table)
    return lines


def print_record(record: Record, table: Optional[Table] = None, file: Optional[TextIO] = None) -> None:
    out = file if file is not None else sys.stdout
    for line in format_record(record, table):
        print(line, file=out)


def release(record: Record, recursive: bool = True, table: Optional[Table] = None) -> None:
    """Drop every string and array a record owns.

    With ``recursive=False`` only the top level is released: strings and
    arrays inside nested objects or array elements are left in place.
    """

    def free(rec: Record, field: FieldDescriptor) -> None:
        if field.kind is FieldKind.OBJECT:
            if recursive:
                visit(nested(rec, field), free)
            return
        if field.kind is FieldKind.STRING:
            store_ref(rec, field, None)
            return
        if field.kind is not FieldKind.ARRAY:
            return
        if recursive and not field.table.describes_scalars:
            for item in elements(rec, field):
                visit(item, free)
        logger.debug("free field %s", field.name)
        store_ref(rec, field, None)
        count_field = table_of(rec).field(field.count_field)
        if count_field.size in INTEGER_WIDTHS:
            store_integer(rec, count_field, 0)

    visit(record, free, table)
