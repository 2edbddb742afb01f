"""Resolve imported paths found in source files to files on disk."""
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Optional

from featuregraph.parsers.source_patterns import (
    INDEX_FILE_EXTENSIONS,
    INDEX_FILE_STEMS,
    INDEXED_IMPORT_EXTENSIONS,
    RELATIVE_IMPORT_SUFFIXES,
    SKIPPED_DIRECTORIES,
)

logger = logging.getLogger("featuregraph.resolver")

# ".models", "..pkg.mod", "." but not "./x" or "../x"
_PYTHON_RELATIVE_RE = re.compile(r"^(\.+)([A-Za-z_][\w.]*)?$")


def build_file_index(base_path: Path) -> dict[str, Path]:
    """Map every file under `base_path` (relative POSIX path) to its absolute path."""
    file_index: dict[str, Path] = {}
    for dirpath, dirnames, filenames in os.walk(base_path):
        dirnames[:] = [name for name in dirnames if name not in SKIPPED_DIRECTORIES]
        for filename in filenames:
            absolute = Path(dirpath) / filename
            key = absolute.relative_to(base_path).as_posix()
            file_index[key] = absolute
    return file_index


def _is_inside(path: Path, base_path: Path) -> bool:
    try:
        path.resolve().relative_to(base_path.resolve())
    except ValueError:
        return False
    return True


def _existing_inside(path: Path, base_path: Path) -> Optional[Path]:
    if path.exists() and _is_inside(path, base_path):
        return path.resolve()
    return None


def _index_file_in(directory: Path, base_path: Path) -> Optional[Path]:
    for stem in INDEX_FILE_STEMS:
        for ext in INDEX_FILE_EXTENSIONS:
            found = _existing_inside(directory / f"{stem}.{ext}", base_path)
            if found is not None:
                return found
    return None


def _python_relative_to_path(import_path: str) -> Optional[str]:
    match = _PYTHON_RELATIVE_RE.match(import_path)
    if match is None:
        return None
    dots, module = match.group(1), match.group(2) or ""
    prefix = "./" if len(dots) == 1 else "../" * (len(dots) - 1)
    return prefix + module.replace(".", "/")


def _resolve_relative(import_path: str, source_dir: Path, base_path: Path) -> Optional[Path]:
    if not import_path.startswith(("./", "../")):
        converted = _python_relative_to_path(import_path)
        if converted is not None:
            import_path = converted

    candidate = source_dir / import_path
    if candidate.is_dir():
        found = _index_file_in(candidate, base_path)
        if found is not None:
            return found

    for suffix in RELATIVE_IMPORT_SUFFIXES:
        with_suffix = Path(f"{candidate}{suffix}") if suffix else candidate
        if with_suffix.is_file():
            found = _existing_inside(with_suffix, base_path)
            if found is not None:
                return found
        # "./widget.component" -> "./widget.component/index.ts"
        if suffix and with_suffix.is_dir():
            found = _index_file_in(with_suffix, base_path)
            if found is not None:
                return found
    return None


def _find_src_directory(base_path: Path) -> Optional[Path]:
    src_dir = base_path / "src"
    if src_dir.is_dir():
        return src_dir
    try:
        children = sorted(base_path.iterdir())
    except OSError:
        return None
    for child in children:
        nested_src = child / "src"
        if child.is_dir() and nested_src.is_dir():
            return nested_src
    return None


def _rust_module_file(module_path: Path) -> Optional[Path]:
    as_file = module_path.with_name(f"{module_path.name}.rs")
    if as_file.exists():
        return as_file
    as_mod = module_path / "mod.rs"
    if as_mod.exists():
        return as_mod
    return None


def _resolve_super(remaining: str, source_file: Path, base_path: Path) -> Optional[Path]:
    parent_dir = source_file.parent.parent
    if not _is_inside(parent_dir, base_path):
        return None
    return _rust_module_file(parent_dir.joinpath(*remaining.split("::")))


def _resolve_rust_module(import_path: str, source_file: Path, base_path: Path) -> Optional[Path]:
    if import_path.startswith("super::"):
        return _resolve_super(import_path[len("super::"):], source_file, base_path)

    for prefix in ("crate::", "self::"):
        if import_path.startswith(prefix):
            remaining = import_path[len(prefix):]
            break
    else:
        return None

    src_dir = _find_src_directory(base_path)
    if src_dir is None:
        return None
    return _rust_module_file(src_dir.joinpath(*remaining.split("::")))


def _resolve_indexed(import_path: str, file_index: dict[str, Path]) -> Optional[Path]:
    if import_path in file_index:
        return file_index[import_path]
    for ext in INDEXED_IMPORT_EXTENSIONS:
        found = file_index.get(f"{import_path}.{ext}")
        if found is not None:
            return found
    for stem in INDEX_FILE_STEMS:
        for ext in INDEX_FILE_EXTENSIONS:
            found = file_index.get(f"{import_path}/{stem}.{ext}")
            if found is not None:
                return found
    return None


def resolve_import_path(
    import_path: str,
    source_file: Path,
    base_path: Path,
    file_index: dict[str, Path],
) -> Optional[Path]:
    """Resolve `import_path` written in `source_file`; ``None`` when unresolvable.

    Relative paths are probed on disk, Rust module paths through the crate's
    ``src`` directory, and other slash paths through `file_index`. Package
    names are external and never resolve.
    """
    try:
        if import_path.startswith("."):
            return _resolve_relative(import_path, source_file.parent, base_path)
        if "::" in import_path:
            return _resolve_rust_module(import_path, source_file, base_path)
        if "/" in import_path:
            return _resolve_indexed(import_path, file_index)
    except OSError as exc:
        logger.debug(f"Could not resolve {import_path!r} from {source_file}: {exc}")
    return None
