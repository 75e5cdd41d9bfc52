#!/usr/bin/env python3

from __future__ import annotations

import textwrap
import unittest

from jsonreflect import DeclarationError, FieldKind, compile_declarations, loads
from jsonreflect.declare import line_col, normalize_type

from playlist_fixtures import PLAYLIST, PLAYLIST_DECLARATIONS, PLAYLIST_JSON


class CompileTests(unittest.TestCase):
    def test_playlist_declarations_match_builder_tables(self) -> None:
        tables = compile_declarations(PLAYLIST_DECLARATIONS)
        self.assertEqual(list(tables), ["Lyric", "SongInfo", "ExtData", "PlayList"])

        declared = tables["PlayList"]
        self.assertEqual(declared.size_bytes, PLAYLIST.size_bytes)
        for built, compiled in zip(PLAYLIST, declared):
            self.assertEqual(
                (built.name, built.kind, built.offset, built.size, built.nullable),
                (compiled.name, compiled.kind, compiled.offset, compiled.size, compiled.nullable),
            )

        song = tables["SongInfo"]
        self.assertEqual(song.field("paid").kind, FieldKind.BOOLEAN)
        self.assertEqual(song.field("paid").size, 4)
        self.assertTrue(song.field("key").table.describes_scalars)
        self.assertIs(song.field("lyric").table, tables["Lyric"])
        self.assertIs(declared.field("extData").table, tables["ExtData"])

    def test_declared_tables_decode(self) -> None:
        table = compile_declarations(PLAYLIST_DECLARATIONS)["PlayList"]
        playlist = loads(PLAYLIST_JSON, table)
        self.assertEqual(playlist.songList[1].key, [1234, 5678, 9876])
        self.assertEqual(playlist.extData.a, 999)

    def test_member_spellings(self) -> None:
        tables = compile_declarations(
            textwrap.dedent(
                """
                [[reflect]] struct Mixed {
                  const char *label;   /* string; */
                  std::int16_t small;
                  long long big;
                  bool flag;
                  size_t n;
                  [[required]] double values [ n ];
                };
                """
            )
        )
        mixed = tables["Mixed"]
        self.assertEqual([f.kind for f in mixed], [
            FieldKind.STRING,
            FieldKind.INTEGER,
            FieldKind.INTEGER,
            FieldKind.BOOLEAN,
            FieldKind.INTEGER,
            FieldKind.ARRAY,
        ])
        self.assertEqual([f.size for f in mixed][1:4], [2, 8, 1])
        self.assertFalse(mixed.field("values").nullable)
        self.assertTrue(mixed.field("label").nullable)

    def test_attribute_in_literal_is_ignored(self) -> None:
        tables = compile_declarations('static const char* s = "[[reflect]] struct X {";\n')
        self.assertEqual(tables, {})

    def test_normalize_type(self) -> None:
        self.assertEqual(normalize_type("const  char *"), "const char*")
        self.assertEqual(normalize_type("std::int64_t "), "int64_t")


class CompileErrorTests(unittest.TestCase):
    def compile_error(self, source: str) -> DeclarationError:
        with self.assertRaises(DeclarationError) as ctx:
            compile_declarations(textwrap.dedent(source))
        return ctx.exception

    def test_pointer_rejected_with_location(self) -> None:
        source = "[[reflect]] struct Bad {\n  int time;\n  int* ptr;\n};\n"
        err = self.compile_error(source)
        self.assertIn("only char* pointers are supported", str(err))
        self.assertEqual(line_col(source, err.index), (3, 3))

    def test_unknown_type(self) -> None:
        err = self.compile_error(
            """
            [[reflect]] struct Outer {
              Inner inner;
            };
            [[reflect]] struct Inner {
              int a;
            };
            """
        )
        self.assertIn("unknown type 'Inner'", str(err))

    def test_float_rejected(self) -> None:
        err = self.compile_error("[[reflect]] struct F { float f; };")
        self.assertIn("only double reals are supported", str(err))

    def test_unknown_attribute(self) -> None:
        err = self.compile_error("[[reflect]] struct F { [[optional]] int f; };")
        self.assertIn("unknown field attribute", str(err))

    def test_missing_semicolon(self) -> None:
        err = self.compile_error("[[reflect]] struct F { int a; int b };")
        self.assertIn("expected ';' after member declaration", str(err))
        err = self.compile_error("[[reflect]] struct F { int a; }")
        self.assertIn("expected ';' after struct declaration", str(err))

    def test_count_field_must_exist(self) -> None:
        err = self.compile_error("[[reflect]] struct F { int v[n]; };")
        self.assertIn("count field 'n'", str(err))
        err = self.compile_error("[[reflect]] struct F { char* n; int v[n]; };")
        self.assertIn("count field 'n'", str(err))
        err = self.compile_error("[[reflect]] struct F { int v[n]; int n; };")
        self.assertIn("declared before the array", str(err))

    def test_duplicates(self) -> None:
        err = self.compile_error("[[reflect]] struct F { int a; double a; };")
        self.assertIn("duplicate field 'a'", str(err))
        err = self.compile_error("[[reflect]] struct F { int a; };\n[[reflect]] struct F { int b; };")
        self.assertIn("declared twice", str(err))

    def test_boolean_attribute_needs_integer(self) -> None:
        err = self.compile_error("[[reflect]] struct F { [[boolean]] double d; };")
        self.assertIn("[[boolean]] applies to integer types only", str(err))

    def test_unterminated_comment(self) -> None:
        err = self.compile_error("[[reflect]] struct F { int a; /* open\n};")
        self.assertIn("unterminated block comment", str(err))


if __name__ == "__main__":
    unittest.main()
