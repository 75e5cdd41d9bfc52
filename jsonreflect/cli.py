"""Decode a JSON document against a declared struct, then print or re-encode it."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import List, Optional

from .declare import compile_declarations, line_col
from .decoder import decode_text
from .encoder import dumps
from .errors import DeclarationError, DecodeError, EncodeError
from .record import allocate
from .visitor import print_record, release


def fail(path: pathlib.Path, text: str, error: DeclarationError) -> None:
    line, col = line_col(text, error.index)
    print(f"{path}:{line}:{col}: error: {error}", file=sys.stderr)


def run(args: argparse.Namespace) -> int:
    schema_path = pathlib.Path(args.schema)
    in_path = pathlib.Path(args.input)

    for path in (schema_path, in_path):
        if not path.exists():
            print(f"error: input file does not exist: {path}", file=sys.stderr)
            return 1

    schema_text = schema_path.read_text(encoding="utf-8")
    try:
        tables = compile_declarations(schema_text)
    except DeclarationError as e:
        fail(schema_path, schema_text, e)
        return 1

    table = tables.get(args.struct)
    if table is None:
        print(f"error: struct {args.struct} is not declared in {schema_path}", file=sys.stderr)
        return 1

    record = allocate(table)
    try:
        decode_text(in_path.read_bytes(), record)
    except DecodeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    try:
        if args.print or not args.encode:
            print_record(record)
        if args.encode:
            print(dumps(record, indent=args.indent))
    except EncodeError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        release(record)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode JSON into a declared struct layout")
    parser.add_argument("--schema", required=True, help="File with [[reflect]] struct declarations")
    parser.add_argument("--struct", required=True, help="Name of the struct to decode into")
    parser.add_argument("--in", dest="input", required=True, help="Input JSON document")
    parser.add_argument("--print", action="store_true", help="Print every decoded field")
    parser.add_argument("--encode", action="store_true", help="Print the record re-encoded as JSON")
    parser.add_argument("--indent", type=int, default=None, help="Indentation for --encode output")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Diagnostics printed on stderr",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    return run(args)


if __name__ == "__main__":
    raise SystemExit(main())
