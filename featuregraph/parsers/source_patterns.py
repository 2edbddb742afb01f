"""Per-language comment and import syntax tables.

Both the import detector and the metadata comment detector dispatch on the
file extension through this module; nothing else hard-codes language rules.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class CommentPattern:
    """A line comment (`end` is None) or a block comment syntax."""

    start: str
    end: Optional[str] = None

    @property
    def is_block(self) -> bool:
        return self.end is not None


LINE_SLASH = CommentPattern("//")
LINE_HASH = CommentPattern("#")
LINE_DASH = CommentPattern("--")
BLOCK_C = CommentPattern("/*", "*/")
BLOCK_HTML = CommentPattern("<!--", "-->")
BLOCK_LUA = CommentPattern("--[[", "]]")

_C_LIKE_EXTENSIONS = {
    "rs", "c", "cpp", "cc", "cxx", "h", "hpp", "java", "js", "jsx", "ts", "tsx",
    "go", "cs", "swift", "kt", "scala",
}
_HASH_EXTENSIONS = {"py", "sh", "bash", "rb", "pl", "yml", "yaml", "toml"}
_MARKUP_EXTENSIONS = {"html", "xml", "svg"}
_STYLE_EXTENSIONS = {"css", "scss", "less"}

DEFAULT_COMMENT_PATTERNS = (LINE_SLASH, LINE_HASH, BLOCK_C)


def comment_patterns(extension: str) -> tuple[CommentPattern, ...]:
    ext = extension.lower().lstrip(".")
    if ext in _C_LIKE_EXTENSIONS or ext in _STYLE_EXTENSIONS:
        return (LINE_SLASH, BLOCK_C)
    if ext in _HASH_EXTENSIONS:
        return (LINE_HASH,)
    if ext in _MARKUP_EXTENSIONS:
        return (BLOCK_HTML,)
    if ext == "lua":
        # Block form first so "--[[" is not read as a "--" line comment.
        return (BLOCK_LUA, LINE_DASH)
    if ext == "sql":
        return (LINE_DASH, BLOCK_C)
    return DEFAULT_COMMENT_PATTERNS


class ImportGrammar(str, Enum):
    RUST = "rust"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    GO = "go"
    JAVA_LIKE = "java_like"
    C_STYLE = "c_style"
    RUBY = "ruby"
    PHP = "php"
    SHELL = "shell"
    CSS = "css"


_IMPORT_GRAMMARS: dict[str, ImportGrammar] = {
    "rs": ImportGrammar.RUST,
    "js": ImportGrammar.JAVASCRIPT,
    "jsx": ImportGrammar.JAVASCRIPT,
    "ts": ImportGrammar.JAVASCRIPT,
    "tsx": ImportGrammar.JAVASCRIPT,
    "mjs": ImportGrammar.JAVASCRIPT,
    "cjs": ImportGrammar.JAVASCRIPT,
    "py": ImportGrammar.PYTHON,
    "go": ImportGrammar.GO,
    "java": ImportGrammar.JAVA_LIKE,
    "kt": ImportGrammar.JAVA_LIKE,
    "scala": ImportGrammar.JAVA_LIKE,
    "cs": ImportGrammar.JAVA_LIKE,
    "c": ImportGrammar.C_STYLE,
    "cpp": ImportGrammar.C_STYLE,
    "cc": ImportGrammar.C_STYLE,
    "cxx": ImportGrammar.C_STYLE,
    "h": ImportGrammar.C_STYLE,
    "hpp": ImportGrammar.C_STYLE,
    "rb": ImportGrammar.RUBY,
    "php": ImportGrammar.PHP,
    "sh": ImportGrammar.SHELL,
    "bash": ImportGrammar.SHELL,
    "css": ImportGrammar.CSS,
    "scss": ImportGrammar.CSS,
    "less": ImportGrammar.CSS,
}


def import_grammar(extension: str) -> Optional[ImportGrammar]:
    return _IMPORT_GRAMMARS.get(extension.lower().lstrip("."))


def extension_of(path: Path | str) -> str:
    return Path(path).suffix.lstrip(".")


# ── Resolver probe tables ───────────────────────────────────────────

# Suffixes appended to a relative import, in probe order. "" probes the bare path.
RELATIVE_IMPORT_SUFFIXES = (
    "", ".ts", ".tsx", ".js", ".jsx", ".rs", ".py", ".go", ".java", ".rb", ".php",
)
# Extensions tried when a slash path is looked up in the file index.
INDEXED_IMPORT_EXTENSIONS = ("ts", "tsx", "js", "jsx", "rs", "py", "go", "java", "rb", "php")
INDEX_FILE_STEMS = ("index", "mod", "__init__")
INDEX_FILE_EXTENSIONS = ("ts", "tsx", "js", "jsx", "rs", "py")

# Directories never walked by the file index or metadata scanner.
SKIPPED_DIRECTORIES = frozenset({
    "node_modules",
    "target",
    "dist",
    "build",
    ".git",
    ".svn",
    ".hg",
    "vendor",
    "__pycache__",
    ".next",
    ".nuxt",
    "coverage",
})
