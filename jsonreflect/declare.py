"""Compile C-like ``[[reflect]] struct`` declarations into metadata tables.

Input:  source text containing ``[[reflect]] struct Name { ... };`` blocks.
Output: one ``Table`` per tagged struct, in declaration order.

Supported member forms::

    int id;                    integer, width from the type name
    [[boolean]] int paid;      boolean stored in an int
    bool flag;                 boolean, 1 byte
    double price;              real
    char* title;               string
    Other nested;              object (Other must be declared earlier)
    Other items[itemNum];      array of Other, count stored in itemNum
    int keys[keyNum];          array of scalars
    [[required]] char* name;   non-nullable field
"""

from __future__ import annotations

import dataclasses
import pathlib
import re
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import DeclarationError, TableError
from .meta import (
    POINTER_SIZE,
    REAL_SIZE,
    FieldDescriptor,
    FieldKind,
    Table,
    array,
    boolean,
    obj,
    scalar_table,
)

ATTRIBUTE_TOKEN = "[[reflect]]"
FIELD_ATTRIBUTES = ("required", "boolean")

INTEGER_TYPES: Dict[str, int] = {
    "char": 1,
    "signed char": 1,
    "int8_t": 1,
    "short": 2,
    "short int": 2,
    "int16_t": 2,
    "int": 4,
    "int32_t": 4,
    "long": 8,
    "long long": 8,
    "long long int": 8,
    "int64_t": 8,
    "size_t": 8,
    "ssize_t": 8,
}
STRING_TYPES = ("char*", "const char*")

DECL_PATTERN = re.compile(
    r"^(?P<type>.*[\s*])(?P<name>[A-Za-z_]\w*)\s*(?:\[\s*(?P<count>[^\]]*?)\s*\])?$", re.DOTALL
)
ATTRIBUTE_PATTERN = re.compile(r"^\[\[\s*([A-Za-z_]\w*)\s*\]\]\s*")
STRUCT_PATTERN = re.compile(r"struct\s+([A-Za-z_]\w*)\b")


@dataclasses.dataclass
class StructBlock:
    name: str
    body: str
    start: int
    end: int
    body_start: int


def line_col(text: str, index: int) -> Tuple[int, int]:
    line = text.count("\n", 0, index) + 1
    col = index - text.rfind("\n", 0, index)
    return line, col


def iter_code(text: str, start: int = 0) -> Iterator[int]:
    """Yield the indices of ``text`` that lie outside comments and literals."""
    i = start
    n = len(text)
    while i < n:
        if text.startswith("//", i):
            j = text.find("\n", i + 2)
            i = n if j == -1 else j + 1
            continue
        if text.startswith("/*", i):
            j = text.find("*/", i + 2)
            if j == -1:
                raise DeclarationError("unterminated block comment", i)
            i = j + 2
            continue
        ch = text[i]
        if ch in "\"'":
            j = i + 1
            while j < n and text[j] != ch:
                j += 2 if text[j] == "\\" else 1
            if j >= n:
                raise DeclarationError("unterminated literal", i)
            i = j + 1
            continue
        yield i
        i += 1


def skip_ws_comments(text: str, i: int) -> int:
    for j in iter_code(text, i):
        if not text[j].isspace():
            return j
    return len(text)


def find_attribute_positions(text: str) -> List[int]:
    return [i for i in iter_code(text) if text.startswith(ATTRIBUTE_TOKEN, i)]


def find_matching_brace(text: str, open_index: int) -> int:
    depth = 0
    for i in iter_code(text, open_index):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    raise DeclarationError("unbalanced braces", open_index)


def blank_comments(text: str) -> str:
    """Replace comments and literals with spaces, keeping every index in place."""
    code = set(iter_code(text))
    return "".join(ch if i in code or ch == "\n" else " " for i, ch in enumerate(text))


def split_members(body: str, offset: int = 0) -> List[Tuple[str, int]]:
    """Split a struct body on top-level ``;``, keeping each member's start index.

    ``offset`` is the position of ``body`` in the full source; every reported
    index is shifted by it.
    """
    code = blank_comments(body)
    members: List[Tuple[str, int]] = []
    start = 0
    depth = 0
    for i, ch in enumerate(code):
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth < 0:
                raise DeclarationError("unexpected closing brace", offset + i)
        elif ch == ";" and depth == 0:
            decl = code[start:i]
            stripped = decl.strip()
            if stripped:
                members.append((stripped, offset + start + decl.find(stripped)))
            start = i + 1

    trailing = code[start:].strip()
    if trailing:
        raise DeclarationError("expected ';' after member declaration", offset + start + code[start:].find(trailing))
    return members


def parse_tagged_struct(text: str, attr_index: int) -> StructBlock:
    i = skip_ws_comments(text, attr_index + len(ATTRIBUTE_TOKEN))
    match = STRUCT_PATTERN.match(text, i)
    if not match:
        raise DeclarationError(f"expected 'struct Name' after {ATTRIBUTE_TOKEN}", i)

    i = skip_ws_comments(text, match.end())
    if i >= len(text) or text[i] != "{":
        raise DeclarationError("expected '{' to open struct body", i)
    close = find_matching_brace(text, i)

    end = skip_ws_comments(text, close + 1)
    if end >= len(text) or text[end] != ";":
        raise DeclarationError("expected ';' after struct declaration", end)
    return StructBlock(match.group(1), text[i + 1 : close], attr_index, end + 1, i + 1)


def parse_all_structs(text: str) -> List[StructBlock]:
    blocks: List[StructBlock] = []
    consumed_until = -1
    for pos in find_attribute_positions(text):
        if pos < consumed_until:
            continue
        block = parse_tagged_struct(text, pos)
        blocks.append(block)
        consumed_until = block.end
    return blocks


def normalize_type(type_name: str) -> str:
    spaced = " ".join(type_name.replace("*", " * ").split())
    spaced = spaced.replace(" *", "*")
    return spaced[len("std::") :] if spaced.startswith("std::") else spaced


def _scalar_field(type_name: str, name: str, is_boolean: bool, index: int) -> Optional[FieldDescriptor]:
    if type_name in STRING_TYPES:
        if is_boolean:
            raise DeclarationError("[[boolean]] applies to integer types only", index)
        return FieldDescriptor(name, FieldKind.STRING, POINTER_SIZE)
    if type_name == "bool":
        return boolean(name, size=1)
    if type_name == "double":
        if is_boolean:
            raise DeclarationError("[[boolean]] applies to integer types only", index)
        return FieldDescriptor(name, FieldKind.REAL, REAL_SIZE)
    if type_name in INTEGER_TYPES:
        kind = FieldKind.BOOLEAN if is_boolean else FieldKind.INTEGER
        return FieldDescriptor(name, kind, INTEGER_TYPES[type_name])
    return None


def compile_member(decl: str, index: int, tables: Dict[str, Table]) -> FieldDescriptor:
    attributes: List[str] = []
    while True:
        match = ATTRIBUTE_PATTERN.match(decl)
        if not match:
            break
        if match.group(1) not in FIELD_ATTRIBUTES:
            raise DeclarationError(f"unknown field attribute '[[{match.group(1)}]]'", index)
        attributes.append(match.group(1))
        decl = decl[match.end() :]

    if "=" in decl:
        raise DeclarationError("default field initializers are not supported", index)
    match = DECL_PATTERN.match(decl.strip())
    if not match:
        raise DeclarationError("expected '<type> <name>' or '<type> <name>[count]' declaration", index)

    type_name = normalize_type(match.group("type"))
    name = match.group("name")
    count = match.group("count")
    is_boolean = "boolean" in attributes

    if type_name.endswith("*") and type_name not in STRING_TYPES:
        raise DeclarationError("only char* pointers are supported; declare arrays as 'T name[count]'", index)

    if type_name == "float":
        raise DeclarationError("only double reals are supported", index)

    field = _scalar_field(type_name, name, is_boolean, index)
    record_table: Optional[Table] = None
    if field is None:
        record_table = tables.get(type_name)
        if record_table is None:
            raise DeclarationError(f"unknown type '{type_name}'", index)
        if is_boolean:
            raise DeclarationError("[[boolean]] applies to integer types only", index)

    if count is not None:
        if not re.fullmatch(r"[A-Za-z_]\w*", count):
            raise DeclarationError("array bound must name the count field", index)
        if record_table is None:
            record_table = scalar_table(field.kind, field.size)
        field = array(name, record_table, count)
    elif record_table is not None:
        field = obj(name, record_table)

    return dataclasses.replace(field, nullable="required" not in attributes)


def compile_struct(block: StructBlock, tables: Dict[str, Table]) -> Table:
    fields: List[FieldDescriptor] = []
    seen: Dict[str, int] = {}
    for decl, index in split_members(block.body, block.body_start):
        field = compile_member(decl, index, tables)
        if field.name in seen:
            raise DeclarationError(f"duplicate field '{field.name}' in struct {block.name}", index)
        seen[field.name] = index
        fields.append(field)

    try:
        table = Table(block.name, fields)
        table.validate()
    except TableError as exc:
        raise DeclarationError(str(exc), block.start) from exc
    return table


def compile_declarations(text: str) -> Dict[str, Table]:
    tables: Dict[str, Table] = {}
    for block in parse_all_structs(text):
        if block.name in tables:
            raise DeclarationError(f"struct {block.name} is declared twice", block.start)
        tables[block.name] = compile_struct(block, tables)
    return tables


def load_declarations(path: pathlib.Path) -> Dict[str, Table]:
    return compile_declarations(path.read_text(encoding="utf-8"))
