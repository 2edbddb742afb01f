"""In-memory snapshot of the last scanned feature tree."""
from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from featuregraph.models import Feature, features_payload


class FeatureSnapshotStore:
    """Single-writer / multi-reader holder for the feature tree.

    Writers replace the whole tree under a lock. Readers get whichever
    complete tree is current; a tree is never modified after it is stored.
    """

    def __init__(self, base_path: Path, features: Optional[list[Feature]] = None):
        self.base_path = base_path
        self._write_lock = asyncio.Lock()
        self._features: list[Feature] = []
        self._payload: list[dict[str, Any]] = []
        self.version = 0
        self.updated_at: Optional[datetime] = None
        if features is not None:
            self._store(features)

    def _store(self, features: list[Feature]) -> None:
        payload = features_payload(features)
        # Assign together so readers never pair a tree with another tree's payload.
        self._features, self._payload = features, payload
        self.version += 1
        self.updated_at = datetime.now(timezone.utc)

    async def replace(self, features: list[Feature]) -> int:
        async with self._write_lock:
            self._store(features)
            return self.version

    def read(self) -> list[Feature]:
        return self._features

    def payload(self) -> list[dict[str, Any]]:
        return self._payload
