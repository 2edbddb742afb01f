"""Pydantic models for the feature tree and its JSON shape."""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Git history ─────────────────────────────────────────────────────

class Change(BaseModel):
    title: str = ""
    author_name: str = ""
    author_email: str = ""
    description: str = ""
    date: str = ""  # "YYYY-MM-DD HH:MM:SS" (UTC)
    hash: str = ""


# ── Coverage ────────────────────────────────────────────────────────

def _percent(covered: int, total: int) -> float:
    return (covered / total) * 100.0


class FileCoverageStats(BaseModel):
    lines_total: int = 0
    lines_covered: int = 0
    lines_missed: int = 0
    line_coverage_percent: float = 0.0
    branches_total: Optional[int] = None
    branches_covered: Optional[int] = None
    branch_coverage_percent: Optional[float] = None

    def calculate_percentages(self) -> None:
        if self.lines_total > 0:
            self.line_coverage_percent = _percent(self.lines_covered, self.lines_total)
        if self.branches_total and self.branches_covered is not None:
            self.branch_coverage_percent = _percent(self.branches_covered, self.branches_total)


class CoverageStats(FileCoverageStats):
    files: dict[str, FileCoverageStats] = Field(default_factory=dict)

    def merge(self, other: CoverageStats) -> None:
        """Sum totals from `other`; file entries from `other` replace ours."""
        self.lines_total += other.lines_total
        self.lines_covered += other.lines_covered
        self.lines_missed = max(0, self.lines_total - self.lines_covered)

        if other.branches_total is not None:
            self.branches_total = (self.branches_total or 0) + other.branches_total
        if other.branches_covered is not None:
            self.branches_covered = (self.branches_covered or 0) + other.branches_covered

        for file_path, file_stats in other.files.items():
            self.files[file_path] = file_stats.model_copy()

        self.calculate_percentages()


# ── Feature tree ────────────────────────────────────────────────────

class Stats(BaseModel):
    files_count: Optional[int] = None
    lines_count: Optional[int] = None
    todos_count: Optional[int] = None
    commits: dict[str, Any] = Field(default_factory=dict)
    coverage: Optional[CoverageStats] = None


class DependencyType(str, Enum):
    PARENT = "parent"
    CHILD = "child"
    SIBLING = "sibling"


class Dependency(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_filename: str = Field(alias="sourceFilename")
    target_filename: str = Field(alias="targetFilename")
    line: int
    content: str = ""
    feature_path: str = Field(alias="featurePath")
    dependency_type: DependencyType = Field(alias="type")


class Feature(BaseModel):
    name: str
    description: str = ""
    owner: str = ""
    is_owner_inherited: bool = False
    path: str
    features: list[Feature] = Field(default_factory=list)
    meta: dict[str, Any] = Field(default_factory=dict)
    changes: list[Change] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    stats: Optional[Stats] = None
    dependencies: list[Dependency] = Field(default_factory=list)

    def walk(self):
        """Yield this feature followed by every nested feature, depth first."""
        yield self
        for child in self.features:
            yield from child.walk()


class OwnerInfo(BaseModel):
    owner: str
    inherited: bool = False
    feature_name: str
    feature_path: str


def features_payload(features: list[Feature]) -> list[dict[str, Any]]:
    """Serialize a feature list into the stable JSON shape."""
    payload: list[dict[str, Any]] = []
    for feature in features:
        payload.append(_feature_payload(feature))
    return payload


def _feature_payload(feature: Feature) -> dict[str, Any]:
    data = feature.model_dump(
        mode="json",
        by_alias=True,
        exclude={"features", "stats"},
    )
    data["features"] = [_feature_payload(child) for child in feature.features]
    if feature.stats is not None:
        stats = feature.stats.model_dump(mode="json", exclude_none=True)
        coverage = stats.get("coverage")
        if isinstance(coverage, dict) and not coverage.get("files"):
            coverage.pop("files", None)
        data["stats"] = stats
    # Field order follows the model declaration.
    ordered = {
        key: data[key]
        for key in (
            "name",
            "description",
            "owner",
            "is_owner_inherited",
            "path",
            "features",
            "meta",
            "changes",
            "decisions",
            "stats",
            "dependencies",
        )
        if key in data
    }
    return ordered
