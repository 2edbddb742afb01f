"""Detect `--feature-<key>` metadata annotations in source comments.

A comment such as::

    // --feature-flag feature:checkout, type: experiment, owner: growth

contributes ``{"feature": "checkout", "type": "experiment", "owner":
"growth"}`` under the ``flag`` key of the ``checkout`` feature. Annotations
without an explicit ``feature:`` property are attached to the feature
directory enclosing the file (``<...>/features/<name>``).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from featuregraph.parsers.source_patterns import (
    SKIPPED_DIRECTORIES,
    CommentPattern,
    comment_patterns,
    extension_of,
)

logger = logging.getLogger("featuregraph.metadata")

METADATA_MARKER = "--feature-"

# feature path -> metadata key -> list of property maps (insertion ordered)
FeatureMetadataMap = dict[str, dict[str, list[dict[str, str]]]]


@dataclass
class FeatureMetadataComment:
    file_path: str
    line_number: int
    metadata_key: str
    properties: dict[str, str]


def extract_comment_content(line: str, patterns: tuple[CommentPattern, ...]) -> Optional[str]:
    trimmed = line.strip()
    for pattern in patterns:
        if not trimmed.startswith(pattern.start):
            continue
        content = trimmed[len(pattern.start):]
        if pattern.end and content.endswith(pattern.end):
            content = content[: -len(pattern.end)]
        return content.strip()
    return None


def parse_properties(content: str) -> dict[str, str]:
    properties: dict[str, str] = {}
    for part in content.split(","):
        key, sep, value = part.strip().partition(":")
        if not sep:
            continue
        key = key.strip()
        if key:
            properties[key] = value.strip()
    return properties


def check_line_for_feature_metadata(
    line: str,
    patterns: tuple[CommentPattern, ...],
) -> Optional[tuple[str, dict[str, str]]]:
    content = extract_comment_content(line, patterns)
    if content is None:
        return None

    start = content.find(METADATA_MARKER)
    if start == -1:
        return None

    after_dashes = content[start + 2:]
    key_end = len(after_dashes)
    for index, char in enumerate(after_dashes):
        if char.isspace() or char == ",":
            key_end = index
            break

    full_key = after_dashes[:key_end]
    metadata_key = full_key[len("feature-"):] if full_key.startswith("feature-") else full_key

    properties = parse_properties(after_dashes[key_end:].lstrip())
    if not properties:
        return None
    return metadata_key, properties


def scan_file(file_path: Path) -> list[FeatureMetadataComment]:
    patterns = comment_patterns(extension_of(file_path))
    try:
        content = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug(f"Skipping metadata scan for {file_path}: {exc}")
        return []

    results: list[FeatureMetadataComment] = []
    for index, line in enumerate(content.splitlines()):
        found = check_line_for_feature_metadata(line, patterns)
        if found is None:
            continue
        metadata_key, properties = found
        results.append(
            FeatureMetadataComment(
                file_path=str(file_path),
                line_number=index + 1,
                metadata_key=metadata_key,
                properties=properties,
            )
        )
    return results


def infer_feature_path(file_path: Path, base_path: Path) -> Optional[str]:
    """Return ``<...>/features/<name>`` for the nearest features folder above a file."""
    try:
        relative = file_path.relative_to(base_path)
    except ValueError:
        return None

    parts = PurePosixPath(relative.as_posix()).parts
    # The last part is the file itself and never names a feature directory.
    for index in range(len(parts) - 3, -1, -1):
        if parts[index] == "features":
            return "/".join(parts[: index + 2])
    return None


def scan_directory_for_feature_metadata(base_path: Path) -> FeatureMetadataMap:
    """Walk `base_path` once and group every annotation by feature path."""
    metadata: FeatureMetadataMap = {}

    for dirpath, dirnames, filenames in os.walk(base_path):
        dirnames[:] = sorted(name for name in dirnames if name not in SKIPPED_DIRECTORIES)
        for filename in sorted(filenames):
            file_path = Path(dirpath) / filename
            for comment in scan_file(file_path):
                feature_path = comment.properties.get("feature") or infer_feature_path(file_path, base_path)
                if not feature_path:
                    continue
                by_key = metadata.setdefault(feature_path, {})
                by_key.setdefault(comment.metadata_key, []).append(comment.properties)

    return metadata
