"""Cobertura XML and LCOV coverage report parsing."""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from featuregraph.models import CoverageStats, Feature, FileCoverageStats

logger = logging.getLogger("featuregraph.coverage")

_CONDITION_RE = re.compile(r"\((\d+)/(\d+)\)")


@dataclass
class FileCoverage:
    path: str
    lines_total: int = 0
    lines_covered: int = 0
    branches_total: int = 0
    branches_covered: int = 0


def _to_int(raw: Optional[str]) -> int:
    try:
        return int(float(raw or 0))
    except ValueError:
        return 0


def parse_condition_coverage(value: str) -> Optional[tuple[int, int]]:
    """Parse ``"50% (1/2)"`` into ``(covered, total)``."""
    match = _CONDITION_RE.search(value or "")
    if not match:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_cobertura_xml(path: Path) -> list[FileCoverage]:
    tree = ET.parse(path)
    results: list[FileCoverage] = []

    for node in tree.iter():
        if node.tag not in ("class", "file"):
            continue
        filename = node.get("filename") or node.get("name")
        if not filename:
            continue

        coverage = FileCoverage(path=filename)
        # Method-level <line> entries repeat the class-level ones.
        line_nodes = node.findall("./lines/line") or node.findall("./line")
        if line_nodes:
            for line in line_nodes:
                coverage.lines_total += 1
                if _to_int(line.get("hits")) > 0:
                    coverage.lines_covered += 1
                if line.get("branch") == "true":
                    parsed = parse_condition_coverage(line.get("condition-coverage", ""))
                    if parsed:
                        coverage.branches_covered += parsed[0]
                        coverage.branches_total += parsed[1]
        else:
            coverage.lines_total = _to_int(node.get("lines-valid"))
            coverage.lines_covered = _to_int(node.get("lines-covered"))
            coverage.branches_total = _to_int(node.get("branches-valid"))
            coverage.branches_covered = _to_int(node.get("branches-covered"))

        if coverage.lines_total > 0:
            results.append(coverage)

    return results


def parse_lcov(path: Path) -> list[FileCoverage]:
    results: list[FileCoverage] = []
    current: Optional[FileCoverage] = None

    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if line.startswith("SF:"):
            if current is not None:
                results.append(current)
            current = FileCoverage(path=line[3:])
        elif current is None:
            continue
        elif line.startswith("DA:"):
            _, _, hits = line[3:].partition(",")
            if hits.split(",")[0].strip().isdigit():
                current.lines_total += 1
                if int(hits.split(",")[0]) > 0:
                    current.lines_covered += 1
        elif line.startswith("BRDA:"):
            parts = line[5:].split(",")
            current.branches_total += 1
            if len(parts) >= 4 and parts[3] not in ("-", "0"):
                current.branches_covered += 1
        elif line.startswith("LF:") and line[3:].isdigit():
            current.lines_total = int(line[3:])
        elif line.startswith("LH:") and line[3:].isdigit():
            current.lines_covered = int(line[3:])
        elif line.startswith("BRF:") and line[4:].isdigit():
            current.branches_total = int(line[4:])
        elif line.startswith("BRH:") and line[4:].isdigit():
            current.branches_covered = int(line[4:])
        elif line == "end_of_record":
            results.append(current)
            current = None

    if current is not None:
        results.append(current)
    return results


def _file_stats(coverage: FileCoverage) -> FileCoverageStats:
    stats = FileCoverageStats(
        lines_total=coverage.lines_total,
        lines_covered=coverage.lines_covered,
        lines_missed=max(0, coverage.lines_total - coverage.lines_covered),
    )
    if coverage.branches_total > 0:
        stats.branches_total = coverage.branches_total
        stats.branches_covered = coverage.branches_covered
    stats.calculate_percentages()
    return stats


def merge_file_coverage(coverage_map: dict[str, CoverageStats], file_coverage: list[FileCoverage]) -> None:
    """Accumulate per-file results.

    Totals for a file seen in several reports are summed; its ``files``
    entry keeps the last report's numbers.
    """
    for entry in file_coverage:
        per_report = _file_stats(entry)
        stats = coverage_map.setdefault(entry.path, CoverageStats())
        stats.merge(CoverageStats(**per_report.model_dump(), files={entry.path: per_report}))


def parse_coverage_reports(coverage_dir: Path) -> dict[str, CoverageStats]:
    """Parse every report in `coverage_dir` into ``file path -> CoverageStats``."""
    coverage_map: dict[str, CoverageStats] = {}
    if not coverage_dir.is_dir():
        return coverage_map

    for path in sorted(coverage_dir.iterdir()):
        if not path.is_file():
            continue
        name = path.name
        try:
            if name.endswith(".xml") or "cobertura" in name:
                merge_file_coverage(coverage_map, parse_cobertura_xml(path))
            elif name.endswith(".info") or "lcov" in name:
                merge_file_coverage(coverage_map, parse_lcov(path))
        except (OSError, ET.ParseError) as exc:
            logger.warning(f"Skipping unreadable coverage report {path}: {exc}")

    return coverage_map


# ── Feature mapping ─────────────────────────────────────────────────

def _normalize(path: str) -> str:
    value = path.replace("\\", "/")
    while value.startswith("./"):
        value = value[2:]
    return value


def _is_under(path: str, directory: str) -> bool:
    return path == directory or path.startswith(f"{directory}/")


def _candidate_paths(file_path: str, base_path: Path) -> list[str]:
    """Spellings of `file_path` relative to `base_path`, most literal first."""
    candidates = [_normalize(file_path)]
    raw = Path(file_path)
    resolved_base = base_path.resolve()
    # Reports usually name files relative to the directory they ran in.
    for absolute in (raw,) if raw.is_absolute() else (resolved_base / raw, Path.cwd() / raw):
        try:
            relative = absolute.resolve(strict=False).relative_to(resolved_base).as_posix()
        except ValueError:
            continue
        if relative not in candidates:
            candidates.append(relative)
    return candidates


def find_feature_for_file(file_path: str, features: list[Feature], base_path: Path) -> Optional[str]:
    """Return the path of the most specific feature containing `file_path`."""

    def search(normalized: str, level: list[Feature]) -> Optional[str]:
        for feature in level:
            if _is_under(normalized, _normalize(feature.path)):
                return search(normalized, feature.features) or feature.path
        return None

    for normalized in _candidate_paths(file_path, base_path):
        found = search(normalized, features)
        if found is not None:
            return found
    return None


def map_coverage_to_features(
    features: list[Feature],
    coverage_map: dict[str, CoverageStats],
    base_path: Path,
) -> dict[str, CoverageStats]:
    """Aggregate per-file coverage into ``feature path -> CoverageStats``."""
    feature_coverage: dict[str, CoverageStats] = {}
    for file_path, coverage in coverage_map.items():
        feature_path = find_feature_for_file(file_path, features, base_path)
        if feature_path is None:
            continue
        feature_coverage.setdefault(feature_path, CoverageStats()).merge(coverage)
    return feature_coverage
