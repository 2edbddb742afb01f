import tempfile
import unittest
from pathlib import Path

from featuregraph.parsers.imports import extract_import, scan_file_for_imports
from featuregraph.parsers.source_patterns import (
    BLOCK_C,
    BLOCK_HTML,
    LINE_HASH,
    LINE_SLASH,
    ImportGrammar,
    comment_patterns,
    import_grammar,
)


class SourcePatternTests(unittest.TestCase):
    def test_comment_patterns_by_extension(self) -> None:
        self.assertEqual(comment_patterns("ts"), (LINE_SLASH, BLOCK_C))
        self.assertEqual(comment_patterns("py"), (LINE_HASH,))
        self.assertEqual(comment_patterns("html"), (BLOCK_HTML,))
        self.assertEqual(comment_patterns("unknown"), (LINE_SLASH, LINE_HASH, BLOCK_C))

    def test_import_grammar_skips_unknown_extensions(self) -> None:
        self.assertEqual(import_grammar("tsx"), ImportGrammar.JAVASCRIPT)
        self.assertEqual(import_grammar(".RS"), ImportGrammar.RUST)
        self.assertIsNone(import_grammar("md"))


class ExtractImportTests(unittest.TestCase):
    def test_javascript_forms(self) -> None:
        js = ImportGrammar.JAVASCRIPT
        self.assertEqual(extract_import("import { Feature } from './models';", js), "./models")
        self.assertEqual(extract_import("const x = require('../utils');", js), "../utils")
        self.assertEqual(extract_import("export { a } from './a';", js), "./a")
        self.assertEqual(extract_import("import './styles.css';", js), "./styles.css")
        self.assertIsNone(extract_import("import React from 'react';", js))

    def test_rust_only_crate_relative_paths(self) -> None:
        rust = ImportGrammar.RUST
        self.assertEqual(extract_import("use crate::models::Feature;", rust), "crate::models::Feature")
        self.assertEqual(extract_import("use super::{a, b};", rust), "super::")
        self.assertIsNone(extract_import("use std::collections::HashMap;", rust))

    def test_python_relative_only(self) -> None:
        py = ImportGrammar.PYTHON
        self.assertEqual(extract_import("from .models import Feature", py), ".models")
        self.assertEqual(extract_import("from ..shared.util import x", py), "..shared.util")
        self.assertIsNone(extract_import("from os import path", py))
        self.assertIsNone(extract_import("import json", py))

    def test_other_languages(self) -> None:
        self.assertEqual(extract_import('#include "lib/util.h"', ImportGrammar.C_STYLE), "lib/util.h")
        self.assertEqual(extract_import("#include <sys/types.h>", ImportGrammar.C_STYLE), "sys/types.h")
        self.assertIsNone(extract_import("#include <stdio.h>", ImportGrammar.C_STYLE))
        self.assertEqual(extract_import("require_relative './helper'", ImportGrammar.RUBY), "./helper")
        self.assertEqual(extract_import("require_once('lib/db.php');", ImportGrammar.PHP), "lib/db.php")
        self.assertEqual(extract_import("source ./env.sh", ImportGrammar.SHELL), "./env.sh")
        self.assertEqual(extract_import('@import "base/reset.css";', ImportGrammar.CSS), "base/reset.css")
        self.assertEqual(extract_import("import com.acme.billing.Invoice;", ImportGrammar.JAVA_LIKE), "com.acme.billing.Invoice")
        self.assertIsNone(extract_import("import static org.junit.Assert.assertEquals;", ImportGrammar.JAVA_LIKE))
        self.assertIsNone(extract_import("using Alias = Some.Namespace;", ImportGrammar.JAVA_LIKE))
        self.assertEqual(extract_import('import "github.com/acme/app/pkg"', ImportGrammar.GO), "github.com/acme/app/pkg")


class ScanFileForImportsTests(unittest.TestCase):
    def test_reports_line_numbers_and_trimmed_content(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "index.ts"
            source.write_text(
                "// entry\n"
                "  import { a } from './a';\n"
                "import lodash from 'lodash';\n"
                "const b = require('../b');\n",
                encoding="utf-8",
            )

            imports = scan_file_for_imports(source)

            self.assertEqual([(i.line_number, i.imported_path) for i in imports], [(2, "./a"), (4, "../b")])
            self.assertEqual(imports[0].line_content, "import { a } from './a';")
            self.assertEqual(imports[0].file_path, str(source))

    def test_unknown_extension_and_unreadable_file_yield_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            notes = Path(tmpdir) / "notes.md"
            notes.write_text("import x from './x'\n", encoding="utf-8")
            binary = Path(tmpdir) / "blob.js"
            binary.write_bytes(b"\xff\xfe\x00import")

            self.assertEqual(scan_file_for_imports(notes), [])
            self.assertEqual(scan_file_for_imports(binary), [])
            self.assertEqual(scan_file_for_imports(Path(tmpdir) / "missing.ts"), [])


if __name__ == "__main__":
    unittest.main()
