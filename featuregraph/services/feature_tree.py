"""First pass: walk the scan root and build the feature hierarchy."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from featuregraph.models import Feature, Stats
from featuregraph.parsers.feature_metadata import FeatureMetadataMap
from featuregraph.parsers.manifests import find_readme_file, has_feature_flag, read_feature_manifest
from featuregraph.parsers.source_patterns import SKIPPED_DIRECTORIES
from featuregraph.services.git_history import (
    GitHistory,
    changes_for_path,
    compute_commit_stats,
    filter_changes,
)

logger = logging.getLogger("featuregraph.scan")

DOCUMENTATION_DIRECTORIES = frozenset({"docs", "__docs__", ".docs"})
DECISION_DIRECTORIES = (Path(".docs") / "decisions", Path("__docs__") / "decisions")
NESTED_FEATURES_DIRECTORY = "features"


class FeatureScanError(Exception):
    """A required directory could not be read; the scan is aborted."""


@dataclass(frozen=True)
class _ScanContext:
    base_path: Path
    history: Optional[GitHistory] = None
    metadata: FeatureMetadataMap = field(default_factory=dict)


def is_documentation_directory(path: Path) -> bool:
    return path.name.lower() in DOCUMENTATION_DIRECTORIES


def is_inside_documentation_directory(path: Path, base_path: Optional[Path] = None) -> bool:
    """True when an ancestor of `path` (below `base_path`, if given) is a docs folder."""
    for ancestor in path.parents:
        if base_path is not None and ancestor == base_path:
            break
        if is_documentation_directory(ancestor):
            return True
    return False


def has_feature_flag_in_readme(path: Path) -> bool:
    readme_path = find_readme_file(path)
    return readme_path is not None and has_feature_flag(readme_path)


def is_feature_directory(path: Path, base_path: Optional[Path] = None) -> bool:
    if is_documentation_directory(path) or is_inside_documentation_directory(path, base_path):
        return False
    if path.parent.name == NESTED_FEATURES_DIRECTORY:
        return True
    return has_feature_flag_in_readme(path)


def _sorted_subdirectories(directory: Path) -> list[Path]:
    try:
        with os.scandir(directory) as entries:
            return sorted(Path(entry.path) for entry in entries if entry.is_dir(follow_symlinks=False))
    except OSError as exc:
        raise FeatureScanError(f"could not read directory `{directory}`: {exc}") from exc


# ── Counting ────────────────────────────────────────────────────────

def count_own_files(path: Path, excluded: set[Path]) -> tuple[int, int, int]:
    """Return ``(files, lines, todos)`` under `path`, skipping docs and `excluded` subtrees.

    Files that are not UTF-8 text count as files but contribute no lines.
    """
    files = lines = todos = 0
    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        logger.debug(f"Skipping unreadable directory {path}: {exc}")
        return 0, 0, 0

    for entry in entries:
        entry_path = Path(entry.path)
        if entry_path in excluded:
            continue
        if entry.is_dir(follow_symlinks=False):
            if is_documentation_directory(entry_path):
                continue
            sub_files, sub_lines, sub_todos = count_own_files(entry_path, excluded)
            files += sub_files
            lines += sub_lines
            todos += sub_todos
        elif entry.is_file():
            files += 1
            try:
                content = entry_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            text_lines = content.splitlines()
            lines += len(text_lines)
            todos += sum(1 for line in text_lines if "TODO" in line.upper())

    return files, lines, todos


def read_decision_files(path: Path) -> list[str]:
    """Full text of each decision record, sorted by filename."""
    for relative in DECISION_DIRECTORIES:
        decisions_dir = path / relative
        if not decisions_dir.is_dir():
            continue
        records = sorted(
            (
                candidate
                for candidate in decisions_dir.iterdir()
                if candidate.is_file() and candidate.name.endswith(".md") and candidate.name != "README.md"
            ),
            key=lambda candidate: candidate.name,
        )
        return [record.read_text(encoding="utf-8", errors="replace") for record in records]
    return []


# ── Metadata ────────────────────────────────────────────────────────

def merge_comment_metadata(
    meta: dict[str, Any],
    metadata: FeatureMetadataMap,
    relative_path: str,
    dir_name: str,
) -> None:
    """Append comment annotations for this feature to `meta`, key by key.

    Annotations are matched on the feature's relative path, and on the bare
    directory name for ``feature:<name>`` properties.
    """
    lookup_keys = [relative_path]
    if dir_name != relative_path:
        lookup_keys.append(dir_name)

    for lookup_key in lookup_keys:
        for metadata_key, entries in metadata.get(lookup_key, {}).items():
            values = [dict(entry) for entry in entries]
            existing = meta.get(metadata_key)
            if existing is None:
                meta[metadata_key] = values
            elif isinstance(existing, list):
                existing.extend(values)


# ── Tree walk ───────────────────────────────────────────────────────

def _process_feature_directory(path: Path, ctx: _ScanContext, parent_owner: Optional[str]) -> Feature:
    try:
        manifest = read_feature_manifest(path)
    except OSError as exc:
        raise FeatureScanError(f"could not read manifest in `{path}`: {exc}") from exc

    relative_path = path.relative_to(ctx.base_path).as_posix()
    meta = dict(manifest.meta)
    meta.pop("feature", None)
    merge_comment_metadata(meta, ctx.metadata, relative_path, path.name)

    if manifest.owner:
        owner, is_owner_inherited = manifest.owner, False
    elif parent_owner:
        owner, is_owner_inherited = parent_owner, True
    else:
        owner, is_owner_inherited = "", False

    nested: list[Feature] = []
    nested_dir = path / NESTED_FEATURES_DIRECTORY
    if nested_dir.is_dir():
        try:
            nested.extend(_list_features(nested_dir, ctx, owner))
        except FeatureScanError as exc:
            logger.warning(f"Skipping nested features in {nested_dir}: {exc}")

    for subdir in _sorted_subdirectories(path):
        if subdir.name == NESTED_FEATURES_DIRECTORY or is_documentation_directory(subdir):
            continue
        if has_feature_flag_in_readme(subdir):
            nested.append(_process_feature_directory(subdir, ctx, owner))
        elif subdir.name not in SKIPPED_DIRECTORIES:
            nested.extend(_list_features(subdir, ctx, owner))

    nested_paths = {ctx.base_path / child.path for child in nested}
    files_count, lines_count, todos_count = count_own_files(path, nested_paths)

    changes = []
    commits: dict[str, Any] = {}
    if ctx.history is not None:
        all_changes = changes_for_path(path, ctx.history)
        feature_dir = ctx.history.relative_path(path)
        if all_changes and feature_dir is not None:
            nested_dirs = [
                rel for rel in (ctx.history.relative_path(p) for p in sorted(nested_paths)) if rel is not None
            ]
            changes = filter_changes(all_changes, feature_dir, nested_dirs, ctx.history.paths_by_commit)
            commits = compute_commit_stats(changes)

    try:
        decisions = read_decision_files(path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning(f"Could not read decision records in {path}: {exc}")
        decisions = []

    return Feature(
        name=manifest.title or path.name,
        description=manifest.description,
        owner=owner,
        is_owner_inherited=is_owner_inherited,
        path=relative_path,
        features=nested,
        meta=meta,
        changes=changes,
        decisions=decisions,
        stats=Stats(
            files_count=files_count,
            lines_count=lines_count,
            todos_count=todos_count,
            commits=commits,
        ),
    )


def _list_features(directory: Path, ctx: _ScanContext, parent_owner: Optional[str]) -> list[Feature]:
    features: list[Feature] = []
    for path in _sorted_subdirectories(directory):
        if is_feature_directory(path, ctx.base_path):
            features.append(_process_feature_directory(path, ctx, parent_owner))
        elif (
            not is_documentation_directory(path)
            and not is_inside_documentation_directory(path, ctx.base_path)
            and path.name not in SKIPPED_DIRECTORIES
        ):
            features.extend(_list_features(path, ctx, parent_owner))
    return features


def build_feature_tree(
    base_path: Path,
    history: Optional[GitHistory] = None,
    metadata: Optional[FeatureMetadataMap] = None,
) -> list[Feature]:
    """Build the feature hierarchy under `base_path` without dependencies.

    Raises FeatureScanError when the root or a required directory cannot
    be read.
    """
    if not base_path.is_dir():
        raise FeatureScanError(f"`{base_path}` is not a readable directory")
    ctx = _ScanContext(base_path=base_path, history=history, metadata=metadata or {})
    features = _list_features(base_path, ctx, None)
    logger.debug(f"Found {sum(1 for top in features for _ in top.walk())} features under {base_path}")
    return features
