"""File watcher service using watchfiles.

Monitors the scanned directory and recomputes the whole feature tree
when a README changes or any file or directory is added or removed.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from featuregraph import config
from featuregraph.parsers.manifests import FEATURES_TOML, README_CANDIDATES
from featuregraph.services.scan import ScanConfig, scan_features
from featuregraph.snapshot import FeatureSnapshotStore

logger = logging.getLogger("featuregraph.watcher")

MANIFEST_FILENAMES = frozenset({*README_CANDIDATES, FEATURES_TOML})


def classify_changes(changes: set[tuple[Change, str]]) -> list[tuple[str, Path]]:
    """Keep the changes that can alter the feature tree as (change_type, path) pairs."""
    result = []
    for change_type, path_str in sorted(changes, key=lambda change: change[1]):
        path = Path(path_str)
        if change_type == Change.added:
            result.append(("added", path))
        elif change_type == Change.deleted:
            result.append(("deleted", path))
        elif change_type == Change.modified and path.name in MANIFEST_FILENAMES:
            result.append(("modified", path))
    return result


class FileWatcher:
    """Background watcher that rescans and swaps the snapshot on change."""

    def __init__(self):
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self.rescan_count = 0

    async def start(self, store: FeatureSnapshotStore, scan_config: ScanConfig) -> None:
        if self._running:
            logger.warning("File watcher already running")
            return

        self._running = True
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._watch_loop(store, scan_config))
        logger.info(f"File watcher started for {store.base_path}")

    async def stop(self) -> None:
        self._running = False
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    async def rescan(self, store: FeatureSnapshotStore, scan_config: ScanConfig) -> bool:
        """Recompute the tree off the event loop; keep the old tree on failure."""
        try:
            features = await asyncio.to_thread(scan_features, store.base_path, scan_config)
        except Exception as e:
            logger.error(f"Error recomputing features: {e}")
            return False
        version = await store.replace(features)
        self.rescan_count += 1
        logger.info(f"Feature tree updated (version {version})")
        return True

    async def _watch_loop(self, store: FeatureSnapshotStore, scan_config: ScanConfig) -> None:
        if not store.base_path.exists():
            logger.warning(f"Watch path {store.base_path} does not exist, watcher has nothing to monitor")
            self._running = False
            return

        logger.info(f"Watching {store.base_path} (debounce {config.WATCH_DEBOUNCE_MS} ms)")
        try:
            async for changes in awatch(
                store.base_path,
                debounce=config.WATCH_DEBOUNCE_MS,
                stop_event=self._stop_event,
            ):
                if not self._running:
                    break
                classified = classify_changes(changes)
                if classified:
                    logger.info(f"Detected {len(classified)} relevant changes, rescanning...")
                    await self.rescan(store, scan_config)
        except asyncio.CancelledError:
            logger.info("File watcher task cancelled")
        except Exception as e:
            logger.error(f"File watcher error: {e}")
        finally:
            self._running = False
