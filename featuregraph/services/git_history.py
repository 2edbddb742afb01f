"""Attribute git history to feature directories.

History is read with a single ``git log`` walk of HEAD. Each commit is
attached to every ancestor directory of every path it touches, so the
lookup for a feature directory is one dictionary access.
"""
from __future__ import annotations

import logging
import subprocess
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, Optional

from featuregraph import config
from featuregraph.models import Change

logger = logging.getLogger("featuregraph.git")

COMMIT_TYPES = (
    "feat", "fix", "docs", "style", "refactor", "perf", "test", "build", "ci", "chore", "revert",
)

_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x1f"
_LOG_FORMAT = f"{_RECORD_SEP}%H{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%ct{_FIELD_SEP}%B{_FIELD_SEP}"


class GitError(RuntimeError):
    pass


@dataclass
class Commit:
    change: Change
    paths: list[str] = field(default_factory=list)


@dataclass
class GitHistory:
    repo_root: Path
    # directory (relative to repo root) -> changes, oldest first
    changes_by_path: dict[str, list[Change]] = field(default_factory=dict)
    paths_by_commit: dict[str, list[str]] = field(default_factory=dict)

    def relative_path(self, path: Path) -> Optional[str]:
        try:
            return path.resolve().relative_to(self.repo_root).as_posix()
        except ValueError:
            return None


class GitRepository:
    def __init__(self, root: Path):
        self.root = root

    def _run(self, *args: str) -> str:
        cmd = [config.GIT_BINARY, "-C", str(self.root), *args]
        result = subprocess.run(cmd, capture_output=True, text=True, check=False)
        if result.returncode != 0:
            raise GitError(f"git {' '.join(args)} failed: {result.stderr.strip()}")
        return result.stdout

    @classmethod
    def discover(cls, path: Path) -> Optional[GitRepository]:
        """Return the repository containing `path`, or None outside a work tree."""
        try:
            result = subprocess.run(
                [config.GIT_BINARY, "-C", str(path), "rev-parse", "--show-toplevel"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            logger.warning(f"git is not available: {exc}")
            return None
        if result.returncode != 0 or not result.stdout.strip():
            return None
        return cls(Path(result.stdout.strip()).resolve())

    def has_head(self) -> bool:
        try:
            self._run("rev-parse", "--verify", "--quiet", "HEAD")
        except GitError:
            return False
        return True

    def load_commits(self) -> list[Commit]:
        """Every commit reachable from HEAD, newest first, with its affected paths.

        The root commit lists every file in its tree; other commits list the
        old and new paths of their diff against the first parent.
        """
        if not self.has_head():
            return []
        output = self._run(
            "-c", "core.quotepath=off",
            "log",
            "HEAD",
            "--date-order",
            "--root",
            "--no-renames",
            "--diff-merges=first-parent",
            "--name-only",
            f"--format={_LOG_FORMAT}",
        )
        return parse_log_output(output)


def format_commit_timestamp(epoch: int) -> str:
    return datetime.fromtimestamp(epoch, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def split_message(message: str) -> tuple[str, str]:
    lines = message.splitlines()
    if not lines:
        return "", ""
    return lines[0], "\n".join(lines[1:]).strip()


def parse_log_output(output: str) -> list[Commit]:
    commits: list[Commit] = []
    for record in output.split(_RECORD_SEP):
        if not record.strip():
            continue
        parts = record.split(_FIELD_SEP)
        if len(parts) < 6:
            logger.debug(f"Skipping malformed log record: {record[:80]!r}")
            continue
        sha, author_name, author_email, committed_at, message, names = parts[:6]
        title, description = split_message(message)
        try:
            date = format_commit_timestamp(int(committed_at))
        except ValueError:
            date = format_commit_timestamp(0)

        paths: list[str] = []
        for line in names.splitlines():
            path = line.strip()
            if path and path not in paths:
                paths.append(path)

        commits.append(
            Commit(
                change=Change(
                    title=title,
                    author_name=author_name or "Unknown",
                    author_email=author_email,
                    description=description,
                    date=date,
                    hash=sha.strip(),
                ),
                paths=paths,
            )
        )
    return commits


def ancestor_directories(path: str) -> list[str]:
    """``"a/b/c.ts"`` -> ``["a/b", "a"]``."""
    return [parent.as_posix() for parent in PurePosixPath(path).parents if parent.as_posix() != "."]


def build_changes_index(commits: Iterable[Commit]) -> dict[str, list[Change]]:
    """Map every directory touched by a commit to its changes, oldest first."""
    ordered = sorted(reversed(list(commits)), key=lambda commit: commit.change.date)
    changes_by_path: dict[str, list[Change]] = {}
    for commit in ordered:
        for path in commit.paths:
            for directory in ancestor_directories(path):
                changes = changes_by_path.setdefault(directory, [])
                # A commit's paths are visited together, so the last entry is enough.
                if not changes or changes[-1].hash != commit.change.hash:
                    changes.append(commit.change)
    return changes_by_path


def load_git_history(path: Path) -> Optional[GitHistory]:
    """Read history for the repository containing `path`; None when unavailable."""
    repo = GitRepository.discover(path)
    if repo is None:
        logger.info(f"{path} is not inside a git repository; skipping history")
        return None
    try:
        commits = repo.load_commits()
    except (GitError, OSError) as exc:
        logger.warning(f"Could not read git history for {repo.root}: {exc}")
        return None

    logger.debug(f"Loaded {len(commits)} commits from {repo.root}")
    return GitHistory(
        repo_root=repo.root,
        changes_by_path=build_changes_index(commits),
        paths_by_commit={commit.change.hash: commit.paths for commit in commits},
    )


def changes_for_path(path: Path, history: Optional[GitHistory]) -> list[Change]:
    if history is None:
        return []
    relative = history.relative_path(path)
    if relative is None:
        return []
    return [change.model_copy() for change in history.changes_by_path.get(relative, [])]


def filter_changes(
    changes: list[Change],
    feature_dir: str,
    nested_dirs: list[str],
    paths_by_commit: dict[str, list[str]],
) -> list[Change]:
    """Keep commits touching a file under `feature_dir` outside every nested feature.

    Paths are repo-relative; containment is a plain string prefix test.
    """
    kept: list[Change] = []
    for change in changes:
        for file_path in paths_by_commit.get(change.hash, []):
            in_feature = file_path.startswith(feature_dir)
            in_nested = any(file_path.startswith(nested) for nested in nested_dirs)
            if in_feature and not in_nested:
                kept.append(change)
                break
    return kept


def extract_commit_type(title: str) -> str:
    """Conventional commit type of `title`, or ``"other"``."""
    prefix, sep, _ = title.partition(":")
    if not sep:
        return "other"
    commit_type = prefix.split("(", 1)[0].strip().lower()
    return commit_type if commit_type in COMMIT_TYPES else "other"


def compute_commit_stats(changes: list[Change]) -> dict[str, Any]:
    authors = Counter(change.author_name for change in changes)
    types = Counter(extract_commit_type(change.title) for change in changes)
    commits: dict[str, Any] = {
        "total_commits": len(changes),
        "authors_count": dict(authors),
        "count_by_type": dict(types),
    }
    if changes:
        commits["first_commit_date"] = changes[0].date
        commits["last_commit_date"] = changes[-1].date
    return commits
