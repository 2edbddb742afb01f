"""Lexical import/include detection for source files."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from featuregraph.parsers.source_patterns import ImportGrammar, extension_of, import_grammar

logger = logging.getLogger("featuregraph.imports")

_QUOTES = ('"', "'", "`")


@dataclass
class ImportStatement:
    file_path: str
    line_number: int
    line_content: str
    imported_path: str


def extract_quoted_string(text: str) -> Optional[str]:
    value = text.strip()
    if not value or value[0] not in _QUOTES:
        return None
    end = value.find(value[0], 1)
    if end == -1:
        return None
    return value[1:end]


def _after_from(line: str) -> Optional[str]:
    pos = line.find(" from ")
    if pos == -1:
        return None
    return extract_quoted_string(line[pos + len(" from "):])


# ── Per-language extractors ─────────────────────────────────────────

def extract_rust_import(line: str) -> Optional[str]:
    trimmed = line.strip()
    if not trimmed.startswith("use "):
        return None
    import_part = trimmed[len("use "):].rstrip(";").strip()
    if not import_part.startswith(("crate::", "super::", "self::")):
        return None
    if "{" in import_part:
        return import_part[: import_part.find("{")].strip()
    if " as " in import_part:
        return import_part[: import_part.find(" as ")].strip()
    return import_part


def extract_javascript_import(line: str) -> Optional[str]:
    trimmed = line.strip()

    if trimmed.startswith("import "):
        if " from " in trimmed:
            return _after_from(trimmed)
        quote_positions = [trimmed.find(q) for q in ('"', "'") if q in trimmed]
        if quote_positions:
            return extract_quoted_string(trimmed[min(quote_positions):])

    if trimmed.startswith("export ") and " from " in trimmed:
        return _after_from(trimmed)

    pos = trimmed.find("require(")
    if pos != -1:
        return extract_quoted_string(trimmed[pos + len("require("):])

    return None


def extract_python_import(line: str) -> Optional[str]:
    """Relative imports only; absolute module names are external."""
    trimmed = line.strip()

    if trimmed.startswith("from ") and " import " in trimmed:
        module_path = trimmed[len("from "): trimmed.find(" import ")].strip()
        if module_path.startswith("."):
            return module_path

    if trimmed.startswith("import "):
        import_part = trimmed[len("import "):].strip()
        if " as " in import_part:
            import_part = import_part[: import_part.find(" as ")]
        if import_part.startswith("."):
            return import_part.strip()

    return None


def extract_go_import(line: str) -> Optional[str]:
    trimmed = line.strip()
    if not trimmed.startswith("import "):
        return None
    return extract_quoted_string(trimmed[len("import "):])


def extract_javalike_import(line: str) -> Optional[str]:
    trimmed = line.strip()

    if trimmed.startswith("import "):
        import_part = trimmed[len("import "):].strip().rstrip(";")
        if import_part.startswith("static "):
            return None
        return import_part

    if trimmed.startswith("using ") and "=" not in trimmed:
        return trimmed[len("using "):].strip().rstrip(";")

    return None


def extract_c_include(line: str) -> Optional[str]:
    trimmed = line.strip()
    if not trimmed.startswith("#include "):
        return None
    after_include = trimmed[len("#include "):].strip()

    quoted = extract_quoted_string(after_include)
    if quoted is not None:
        return quoted

    # System includes are only kept when they name a path.
    if after_include.startswith("<") and "/" in after_include and ">" in after_include:
        return after_include[1: after_include.find(">")]
    return None


def extract_ruby_require(line: str) -> Optional[str]:
    trimmed = line.strip()
    if trimmed.startswith("require_relative "):
        return extract_quoted_string(trimmed[len("require_relative "):])
    if trimmed.startswith("require "):
        path = extract_quoted_string(trimmed[len("require "):])
        if path is not None and path.startswith("."):
            return path
    return None


def extract_php_include(line: str) -> Optional[str]:
    trimmed = line.strip()
    for keyword in ("require_once", "include_once", "require", "include"):
        if trimmed.startswith(keyword):
            rest = trimmed[len(keyword):].strip().lstrip("(").strip()
            path = extract_quoted_string(rest)
            if path is not None:
                return path
    return None


def extract_shell_source(line: str) -> Optional[str]:
    trimmed = line.strip()
    if trimmed.startswith("source "):
        path = trimmed[len("source "):].strip()
        return extract_quoted_string(path) or path
    if trimmed.startswith(". ") and not trimmed.startswith(".."):
        path = trimmed[len(". "):].strip()
        return extract_quoted_string(path) or path
    return None


def extract_css_import(line: str) -> Optional[str]:
    trimmed = line.strip()
    if not trimmed.startswith("@import "):
        return None
    return extract_quoted_string(trimmed[len("@import "):])


_EXTRACTORS: dict[ImportGrammar, Callable[[str], Optional[str]]] = {
    ImportGrammar.RUST: extract_rust_import,
    ImportGrammar.JAVASCRIPT: extract_javascript_import,
    ImportGrammar.PYTHON: extract_python_import,
    ImportGrammar.GO: extract_go_import,
    ImportGrammar.JAVA_LIKE: extract_javalike_import,
    ImportGrammar.C_STYLE: extract_c_include,
    ImportGrammar.RUBY: extract_ruby_require,
    ImportGrammar.PHP: extract_php_include,
    ImportGrammar.SHELL: extract_shell_source,
    ImportGrammar.CSS: extract_css_import,
}


def extract_import(line: str, grammar: ImportGrammar) -> Optional[str]:
    imported = _EXTRACTORS[grammar](line)
    if not imported:
        return None
    # Bare package names point outside the repository.
    if not any(marker in imported for marker in (".", "/", "::")):
        return None
    return imported


def scan_file_for_imports(file_path: Path) -> list[ImportStatement]:
    """Return every import statement in `file_path`; unreadable files yield []."""
    grammar = import_grammar(extension_of(file_path))
    if grammar is None:
        return []

    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug(f"Skipping imports for {file_path}: {exc}")
        return []

    imports: list[ImportStatement] = []
    for index, line in enumerate(content.splitlines()):
        imported_path = extract_import(line, grammar)
        if imported_path is None:
            continue
        imports.append(
            ImportStatement(
                file_path=str(file_path),
                line_number=index + 1,
                line_content=line.strip(),
                imported_path=imported_path,
            )
        )
    return imports
