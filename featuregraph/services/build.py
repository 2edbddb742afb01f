"""Static build: features.json plus a page that renders it."""
from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path

from featuregraph.models import Feature, features_payload

logger = logging.getLogger("featuregraph.build")

FEATURES_JSON = "features.json"
INDEX_HTML = "index.html"

INDEX_PAGE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Features</title>
  <style>
    body { font-family: system-ui, sans-serif; margin: 2rem; }
    ul { list-style: none; padding-left: 1.25rem; }
    .owner { color: #2563eb; }
    .path { color: #6b7280; font-size: 0.85em; }
  </style>
</head>
<body>
  <h1>Features</h1>
  <ul id="features"></ul>
  <script>
    function render(features, parent) {
      for (const feature of features) {
        const item = document.createElement("li");
        item.innerHTML = "<strong></strong> <span class=owner></span> <span class=path></span>";
        item.querySelector("strong").textContent = feature.name;
        item.querySelector(".owner").textContent = "[" + feature.owner + "]";
        item.querySelector(".path").textContent = feature.path;
        if (feature.features.length) {
          const nested = document.createElement("ul");
          render(feature.features, nested);
          item.appendChild(nested);
        }
        parent.appendChild(item);
      }
    }
    fetch("features.json")
      .then((response) => response.json())
      .then((features) => render(features, document.getElementById("features")));
  </script>
</body>
</html>
"""


def features_json(features: list[Feature]) -> str:
    return json.dumps(features_payload(features), indent=2)


def create_build(features: list[Feature], build_dir: Path, clean: bool = True) -> Path:
    """Write the static site into `build_dir`, replacing a previous build."""
    if clean and build_dir.exists():
        logger.info(f"Cleaning existing build directory {build_dir}")
        shutil.rmtree(build_dir)
    build_dir.mkdir(parents=True, exist_ok=True)

    (build_dir / INDEX_HTML).write_text(INDEX_PAGE, encoding="utf-8")
    features_path = build_dir / FEATURES_JSON
    features_path.write_text(features_json(features), encoding="utf-8")
    logger.info(f"Build written to {build_dir}")
    return features_path
