"""Feature tree API router."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from featuregraph.models import OwnerInfo
from featuregraph.services.build import INDEX_PAGE
from featuregraph.services.ownership import find_owner
from featuregraph.snapshot import FeatureSnapshotStore

logger = logging.getLogger("featuregraph.features")

features_router = APIRouter(tags=["features"])


def _get_store(request: Request) -> FeatureSnapshotStore:
    store = getattr(request.app.state, "snapshot", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Feature snapshot not initialized")
    return store


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.resolve(strict=False).relative_to(root.resolve(strict=False))
        return True
    except ValueError:
        return False


def _resolve_target(raw_path: str, base_path: Path) -> Path:
    if not raw_path.strip():
        raise ValueError("path must not be empty")
    candidate = Path(raw_path).expanduser()
    if not candidate.is_absolute():
        candidate = base_path / candidate
    if not _is_under(candidate, base_path):
        raise ValueError(f"Path outside scanned directory: {raw_path}")
    return candidate


@features_router.get("/", response_class=HTMLResponse)
def index_page():
    return HTMLResponse(INDEX_PAGE)


@features_router.get("/features.json")
def get_features_json(request: Request):
    """Serialize the current feature tree."""
    store = _get_store(request)
    return JSONResponse(store.payload())


@features_router.get("/api/owner", response_model=OwnerInfo)
def get_owner(request: Request, path: str = Query(..., description="File or directory to look up")):
    """Owner of the most specific feature containing `path`."""
    store = _get_store(request)
    try:
        target = _resolve_target(path, store.base_path)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    owner = find_owner(target, store.read(), store.base_path)
    if owner is None:
        raise HTTPException(status_code=404, detail=f"No feature found for path: {path}")
    return owner
