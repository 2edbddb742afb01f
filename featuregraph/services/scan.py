"""Scan entry point combining the tree, dependency and coverage passes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from featuregraph.models import CoverageStats, Feature, Stats
from featuregraph.parsers.coverage import map_coverage_to_features, parse_coverage_reports
from featuregraph.parsers.feature_metadata import scan_directory_for_feature_metadata
from featuregraph.services.dependencies import populate_dependencies
from featuregraph.services.feature_tree import build_feature_tree
from featuregraph.services.git_history import load_git_history

logger = logging.getLogger("featuregraph.scan")


@dataclass
class ScanConfig:
    skip_changes: bool = False
    with_coverage: bool = False
    coverage_dir: Optional[Path] = None
    current_dir: Path = field(default_factory=Path.cwd)
    project_dir: Optional[Path] = None


def coverage_search_paths(base_path: Path, config: ScanConfig) -> list[Path]:
    if config.coverage_dir is not None:
        return [config.coverage_dir]
    candidates = [
        base_path / ".coverage",
        base_path / "coverage",
        config.current_dir / ".coverage",
        config.current_dir / "coverage",
    ]
    if config.project_dir is not None:
        for candidate in (config.project_dir / ".coverage", config.project_dir / "coverage"):
            if candidate not in candidates:
                candidates.append(candidate)
    return candidates


def _apply_coverage(features: list[Feature], feature_coverage: dict[str, CoverageStats]) -> None:
    for top in features:
        for feature in top.walk():
            coverage = feature_coverage.get(feature.path)
            if coverage is None:
                continue
            if feature.stats is None:
                feature.stats = Stats()
            feature.stats.coverage = coverage.model_copy(deep=True)


def add_coverage_to_features(features: list[Feature], base_path: Path, config: ScanConfig) -> Optional[Path]:
    """Attach coverage from the first directory holding reports; return that directory."""
    for coverage_dir in coverage_search_paths(base_path, config):
        coverage_map = parse_coverage_reports(coverage_dir)
        if not coverage_map:
            continue
        _apply_coverage(features, map_coverage_to_features(features, coverage_map, base_path))
        logger.info(f"Loaded coverage for {len(coverage_map)} files from {coverage_dir}")
        return coverage_dir
    logger.debug(f"No coverage reports found for {base_path}")
    return None


def scan_features(base_path: Path, config: Optional[ScanConfig] = None) -> list[Feature]:
    """Scan `base_path` and return the complete feature tree.

    Raises FeatureScanError if the tree cannot be built; nothing partial is
    returned.
    """
    config = config or ScanConfig()
    history = None if config.skip_changes else load_git_history(base_path)
    metadata = scan_directory_for_feature_metadata(base_path)

    features = build_feature_tree(base_path, history=history, metadata=metadata)
    populate_dependencies(features, base_path)

    if config.with_coverage:
        add_coverage_to_features(features, base_path, config)
    return features
