"""Ownership queries over a scanned feature tree."""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from pathlib import Path
from typing import Optional

from featuregraph.models import Feature, OwnerInfo

logger = logging.getLogger("featuregraph.ownership")

CODEOWNERS_FILENAME = "CODEOWNERS"
CODEOWNERS_BEGIN = "# BEGIN featuregraph (generated, do not edit this section)"
CODEOWNERS_END = "# END featuregraph"


class CheckFailed(Exception):
    def __init__(self, error_count: int, report: list[str]):
        super().__init__(f"Check failed: {error_count} error(s) found")
        self.error_count = error_count
        self.report = report


def flatten_features(features: list[Feature]) -> list[Feature]:
    """Depth-first copies without nesting, changes or decisions."""
    flat: list[Feature] = []
    for top in features:
        for feature in top.walk():
            flat.append(feature.model_copy(update={"features": [], "changes": [], "decisions": []}))
    return flat


def unique_owners(features: list[Feature]) -> list[str]:
    return sorted({feature.owner for top in features for feature in top.walk()})


def find_owner(target: Path, features: list[Feature], base_path: Path) -> Optional[OwnerInfo]:
    """Owner of the most specific feature whose directory contains `target`."""
    try:
        canonical_target = target.resolve(strict=True)
    except (OSError, RuntimeError):
        return None

    best: Optional[Feature] = None
    best_depth = -1
    for top in features:
        for feature in top.walk():
            feature_dir = (base_path / feature.path).resolve()
            if not canonical_target.is_relative_to(feature_dir):
                continue
            depth = len(feature_dir.parts)
            if depth > best_depth:
                best, best_depth = feature, depth

    if best is None:
        return None
    return OwnerInfo(
        owner=best.owner,
        inherited=best.is_owner_inherited,
        feature_name=best.name,
        feature_path=best.path,
    )


def check_duplicate_names(features: list[Feature]) -> list[tuple[str, list[str]]]:
    """Every feature name used by more than one feature, with all its paths."""
    paths_by_name: dict[str, list[str]] = defaultdict(list)
    for top in features:
        for feature in top.walk():
            paths_by_name[feature.name].append(feature.path)
    return [(name, paths) for name, paths in paths_by_name.items() if len(paths) > 1]


def run_checks(features: list[Feature]) -> None:
    """Run every check; raises CheckFailed carrying the full report."""
    report: list[str] = []
    duplicates = check_duplicate_names(features)
    for name, paths in duplicates:
        report.append(f"Error: Duplicate feature name '{name}' found in {len(paths)} locations:")
        report.extend(f"  - {path}" for path in paths)
    if duplicates:
        raise CheckFailed(len(duplicates), report)


# ── CODEOWNERS ──────────────────────────────────────────────────────

def format_owners(owner: str, prefix: str) -> str:
    handles = [handle for handle in re.split(r"[\s,]+", owner.strip()) if handle]
    return " ".join(handle if handle.startswith(prefix) else f"{prefix}{handle}" for handle in handles)


def codeowners_entries(features: list[Feature], base_path: Path, project_dir: Path, prefix: str) -> list[str]:
    """One CODEOWNERS rule per feature that declares its own owner, parents first."""
    project_root = project_dir.resolve()
    lines: list[str] = []
    for top in features:
        for feature in top.walk():
            if not feature.owner or feature.is_owner_inherited:
                continue
            feature_dir = (base_path / feature.path).resolve()
            try:
                relative = feature_dir.relative_to(project_root).as_posix()
            except ValueError:
                logger.warning(f"Feature {feature.path} is outside {project_root}; not added to CODEOWNERS")
                continue
            lines.append(f"/{relative}/ {format_owners(feature.owner, prefix)}")
    return lines


def replace_managed_section(existing: str, entries: list[str]) -> str:
    section = "\n".join([CODEOWNERS_BEGIN, *entries, CODEOWNERS_END])
    start = existing.find(CODEOWNERS_BEGIN)
    end = existing.find(CODEOWNERS_END, start + 1) if start != -1 else -1
    if start != -1 and end != -1:
        updated = existing[:start] + section + existing[end + len(CODEOWNERS_END):]
    elif existing.strip():
        updated = existing.rstrip("\n") + "\n\n" + section
    else:
        updated = section
    return updated if updated.endswith("\n") else updated + "\n"


def generate_codeowners(
    features: list[Feature],
    base_path: Path,
    project_dir: Optional[Path],
    output_dir: Path,
    codeowners_path: Optional[Path] = None,
    prefix: str = "@",
) -> Path:
    """Write or update the generated section of a CODEOWNERS file; return its path.

    Rules outside the managed section are preserved.
    """
    target = codeowners_path or Path(CODEOWNERS_FILENAME)
    if not target.is_absolute():
        target = output_dir / target

    entries = codeowners_entries(features, base_path, project_dir or output_dir, prefix)
    existing = target.read_text(encoding="utf-8") if target.exists() else ""
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(replace_managed_section(existing, entries), encoding="utf-8")
    logger.info(f"Wrote {len(entries)} CODEOWNERS rules to {target}")
    return target
