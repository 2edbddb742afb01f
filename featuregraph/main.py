"""featuregraph FastAPI application."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from featuregraph import config
from featuregraph.file_watcher import FileWatcher
from featuregraph.models import Feature
from featuregraph.routers.features import features_router
from featuregraph.services.scan import ScanConfig
from featuregraph.snapshot import FeatureSnapshotStore

logger = logging.getLogger("featuregraph")


def create_app(
    base_path: Path,
    features: list[Feature],
    scan_config: Optional[ScanConfig] = None,
    watch: bool = True,
) -> FastAPI:
    """Build the app serving `features`; the watcher keeps them current."""
    scan_config = scan_config or ScanConfig()
    store = FeatureSnapshotStore(base_path, features)
    file_watcher = FileWatcher()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"featuregraph server starting for {base_path}")
        if watch:
            await file_watcher.start(store, scan_config)
        yield
        logger.info("featuregraph server shutting down")
        await file_watcher.stop()

    app = FastAPI(
        title="featuregraph",
        description="Feature inventory, ownership and dependency graph",
        version=config.VERSION,
        lifespan=lifespan,
    )
    app.state.snapshot = store
    app.state.file_watcher = file_watcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            config.FRONTEND_ORIGIN,
            f"http://localhost:{config.PORT}",
            f"http://127.0.0.1:{config.PORT}",
        ],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(features_router)

    @app.get("/api/health")
    def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "features_version": store.version,
            "updated_at": store.updated_at.isoformat() if store.updated_at else None,
            "watcher": "running" if file_watcher.is_running else "stopped",
        }

    return app
