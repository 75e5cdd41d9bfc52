"""Reflective JSON decoding and encoding for laid-out records."""

from .decoder import decode, decode_text, loads
from .declare import compile_declarations, load_declarations
from .encoder import dumps, encode
from .errors import DeclarationError, DecodeError, EncodeError, ErrorKind, ReflectError, TableError
from .meta import (
    FieldDescriptor,
    FieldKind,
    Table,
    array,
    boolean,
    integer,
    obj,
    real,
    scalar_array,
    scalar_table,
    string,
)
from .record import Record, allocate, is_null
from .tree import ValueKind, ValueNode, parse
from .visitor import format_record, print_record, release, visit

__version__ = "0.1.0"

__all__ = [
    "DeclarationError",
    "DecodeError",
    "EncodeError",
    "ErrorKind",
    "FieldDescriptor",
    "FieldKind",
    "Record",
    "ReflectError",
    "Table",
    "TableError",
    "ValueKind",
    "ValueNode",
    "allocate",
    "array",
    "boolean",
    "compile_declarations",
    "decode",
    "decode_text",
    "dumps",
    "encode",
    "format_record",
    "integer",
    "is_null",
    "load_declarations",
    "loads",
    "obj",
    "parse",
    "print_record",
    "real",
    "release",
    "scalar_array",
    "scalar_table",
    "string",
    "visit",
]
