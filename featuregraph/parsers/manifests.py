"""README front matter and FEATURES.toml readers."""
from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger("featuregraph.manifests")

README_CANDIDATES = ("README.md", "README.mdx")
FEATURES_TOML = "FEATURES.toml"

_FRONTMATTER_OPEN = "---\n"
_FRONTMATTER_CLOSE = "\n---\n"


@dataclass
class ManifestInfo:
    title: Optional[str] = None
    owner: str = ""
    description: str = ""
    meta: dict[str, Any] = field(default_factory=dict)


def find_readme_file(dir_path: Path) -> Optional[Path]:
    for candidate in README_CANDIDATES:
        readme_path = dir_path / candidate
        if readme_path.exists():
            return readme_path
    return None


def find_features_toml(dir_path: Path) -> Optional[Path]:
    toml_path = dir_path / FEATURES_TOML
    return toml_path if toml_path.exists() else None


def split_frontmatter(text: str) -> tuple[Optional[dict[str, Any]], str]:
    """Split YAML front matter from markdown.

    Returns ``(None, text)`` when there is no front matter block, and
    ``({}, body)`` when the block exists but is not a YAML mapping.
    """
    if not text.startswith(_FRONTMATTER_OPEN):
        return None, text
    stripped = text[len(_FRONTMATTER_OPEN):]
    end = stripped.find(_FRONTMATTER_CLOSE)
    if end == -1:
        return None, text

    body = stripped[end + len(_FRONTMATTER_CLOSE):]
    try:
        parsed = yaml.safe_load(stripped[:end])
    except yaml.YAMLError as exc:
        logger.debug(f"Ignoring unparsable front matter: {exc}")
        return {}, body
    return (parsed if isinstance(parsed, dict) else {}), body


def extract_first_title(content: str) -> Optional[str]:
    for line in content.splitlines():
        trimmed = line.strip()
        if trimmed.startswith("#"):
            title = trimmed.lstrip("#").strip()
            if title:
                return title
    return None


def content_after_first_title(content: str) -> str:
    lines = content.splitlines()
    for index, line in enumerate(lines):
        if line.strip().startswith("#"):
            return "\n".join(lines[index + 1:]).strip()
    return ""


def has_feature_flag(readme_path: Path) -> bool:
    try:
        text = readme_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False
    frontmatter, _ = split_frontmatter(text)
    return bool(frontmatter) and frontmatter.get("feature") is True


def read_readme_info(readme_path: Path) -> ManifestInfo:
    """Read title, owner, description and meta from a README.

    Raises OSError when the file exists but cannot be read.
    """
    if not readme_path.exists():
        return ManifestInfo()

    text = readme_path.read_text(encoding="utf-8", errors="replace")
    frontmatter, body = split_frontmatter(text)

    info = ManifestInfo()
    for key, value in (frontmatter or {}).items():
        key_str = str(key)
        if key_str == "owner":
            if isinstance(value, str):
                info.owner = value
            continue
        info.meta[key_str] = value

    info.title = extract_first_title(body)
    info.description = content_after_first_title(body)
    return info


def read_features_toml(toml_path: Path) -> ManifestInfo:
    """Parse FEATURES.toml; raises OSError or tomllib.TOMLDecodeError."""
    with toml_path.open("rb") as handle:
        data = tomllib.load(handle)

    name = data.pop("name", None)
    owner = data.pop("owner", None)
    description = data.pop("description", None)
    return ManifestInfo(
        title=str(name) if name is not None else None,
        owner=str(owner) if owner is not None else "",
        description=str(description) if description is not None else "",
        meta=data,
    )


def read_feature_manifest(dir_path: Path) -> ManifestInfo:
    """FEATURES.toml wins over the README; a broken TOML yields defaults."""
    toml_path = find_features_toml(dir_path)
    if toml_path is not None:
        try:
            return read_features_toml(toml_path)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            logger.warning(f"Could not parse {toml_path}: {exc}")
            return ManifestInfo()

    readme_path = find_readme_file(dir_path)
    if readme_path is None:
        return ManifestInfo()
    return read_readme_info(readme_path)
