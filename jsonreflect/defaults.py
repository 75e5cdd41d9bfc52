"""Deterministic zero/null values for fields a decode could not populate."""

from __future__ import annotations

from .meta import INTEGER_WIDTHS, REAL_SIZE, FieldDescriptor, FieldKind
from .record import Record, nested, store_integer, store_real, store_ref, table_of


def fill_default(record: Record, field: FieldDescriptor) -> None:
    kind = field.kind
    if kind in (FieldKind.INTEGER, FieldKind.BOOLEAN):
        if field.size in INTEGER_WIDTHS:
            store_integer(record, field, 0)
    elif kind is FieldKind.REAL:
        if field.size == REAL_SIZE:
            store_real(record, field, 0.0)
    elif kind is FieldKind.STRING:
        store_ref(record, field, None)
    elif kind is FieldKind.ARRAY:
        store_ref(record, field, None)
        # A null array always pairs with a zero count.
        count_field = table_of(record).field(field.count_field)
        if count_field is not None:
            fill_default(record, count_field)
    elif kind is FieldKind.OBJECT:
        inner = nested(record, field)
        for child in field.table:
            fill_default(inner, child)
