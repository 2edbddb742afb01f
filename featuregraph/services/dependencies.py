"""Second pass: resolve imports into cross-feature dependency edges."""
from __future__ import annotations

import logging
import os
from pathlib import Path, PurePosixPath
from typing import Iterable

from featuregraph.models import Dependency, DependencyType, Feature
from featuregraph.parsers.imports import ImportStatement, scan_file_for_imports
from featuregraph.parsers.source_patterns import SKIPPED_DIRECTORIES
from featuregraph.services.feature_tree import (
    NESTED_FEATURES_DIRECTORY,
    has_feature_flag_in_readme,
    is_documentation_directory,
)
from featuregraph.services.import_resolver import build_file_index, resolve_import_path

logger = logging.getLogger("featuregraph.dependencies")


def collect_feature_paths(features: Iterable[Feature]) -> list[str]:
    return [feature.path for top in features for feature in top.walk()]


def _canonical(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path


def build_file_to_feature_index(feature_paths: list[str], base_path: Path) -> dict[Path, str]:
    """Map each canonical file path to the most specific feature containing it."""
    feature_dirs = {_canonical(base_path / path) for path in feature_paths}
    index: dict[Path, str] = {}

    # Longest paths first, and nested feature directories are never descended,
    # so each file lands on its most specific feature.
    for feature_path in sorted(feature_paths, key=len, reverse=True):
        for dirpath, dirnames, filenames in os.walk(base_path / feature_path):
            dirnames[:] = [
                name
                for name in dirnames
                if name not in SKIPPED_DIRECTORIES and _canonical(Path(dirpath) / name) not in feature_dirs
            ]
            for filename in filenames:
                index.setdefault(_canonical(Path(dirpath) / filename), feature_path)

    return index


def determine_dependency_type(source_feature_path: str, target_feature_path: str) -> DependencyType:
    source = PurePosixPath(source_feature_path)
    target = PurePosixPath(target_feature_path)
    if target.is_relative_to(source):
        return DependencyType.CHILD
    if source.is_relative_to(target):
        return DependencyType.PARENT
    return DependencyType.SIBLING


def scan_feature_directory_for_imports(feature_path: Path) -> list[ImportStatement]:
    """Imports in files owned by this feature, not by nested features or docs."""
    imports: list[ImportStatement] = []
    try:
        with os.scandir(feature_path) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        logger.debug(f"Skipping imports under {feature_path}: {exc}")
        return imports

    for entry in entries:
        path = Path(entry.path)
        if is_documentation_directory(path):
            continue
        if entry.is_file():
            imports.extend(scan_file_for_imports(path))
        elif entry.is_dir(follow_symlinks=False):
            if entry.name == NESTED_FEATURES_DIRECTORY or entry.name in SKIPPED_DIRECTORIES:
                continue
            if not has_feature_flag_in_readme(path):
                imports.extend(scan_feature_directory_for_imports(path))
    return imports


def _relative_to_base(path: Path, canonical_base: Path) -> str:
    try:
        return _canonical(path).relative_to(canonical_base).as_posix()
    except ValueError:
        return str(path)


def resolve_feature_dependencies(
    feature_path: str,
    base_path: Path,
    imports: list[ImportStatement],
    file_to_feature: dict[Path, str],
    file_index: dict[str, Path],
) -> list[Dependency]:
    """Outgoing edges of one feature, in import order."""
    canonical_base = _canonical(base_path)
    dependencies: list[Dependency] = []
    seen: set[tuple[Path, int, str]] = set()

    for statement in imports:
        source_file = Path(statement.file_path)
        resolved = resolve_import_path(statement.imported_path, source_file, base_path, file_index)
        if resolved is None:
            continue
        resolved = _canonical(resolved)
        target_feature = file_to_feature.get(resolved)
        if target_feature is None or target_feature == feature_path:
            continue

        key = (resolved, statement.line_number, target_feature)
        if key in seen:
            continue
        seen.add(key)

        dependencies.append(
            Dependency(
                source_filename=_relative_to_base(source_file, canonical_base),
                target_filename=_relative_to_base(resolved, canonical_base),
                line=statement.line_number,
                content=statement.line_content,
                feature_path=target_feature,
                dependency_type=determine_dependency_type(feature_path, target_feature),
            )
        )

    return dependencies


def populate_dependencies(features: list[Feature], base_path: Path) -> None:
    """Attach dependency edges to every feature of a finished tree, in place."""
    file_index = build_file_index(base_path)
    file_to_feature = build_file_to_feature_index(collect_feature_paths(features), base_path)

    total = 0
    for top in features:
        for feature in top.walk():
            imports = scan_feature_directory_for_imports(base_path / feature.path)
            feature.dependencies = resolve_feature_dependencies(
                feature.path, base_path, imports, file_to_feature, file_index
            )
            total += len(feature.dependencies)
    logger.debug(f"Resolved {total} dependency edges under {base_path}")
