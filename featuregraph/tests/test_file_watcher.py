import unittest
from pathlib import Path
from unittest.mock import patch

from watchfiles import Change

from featuregraph.file_watcher import FileWatcher, classify_changes
from featuregraph.models import Feature
from featuregraph.services.feature_tree import FeatureScanError
from featuregraph.services.scan import ScanConfig
from featuregraph.snapshot import FeatureSnapshotStore


class ClassifyChangesTests(unittest.TestCase):
    def test_only_structural_and_manifest_changes_are_kept(self) -> None:
        changes = {
            (Change.modified, "/repo/features/a/index.ts"),
            (Change.modified, "/repo/features/a/README.md"),
            (Change.modified, "/repo/features/b/FEATURES.toml"),
            (Change.added, "/repo/features/c"),
            (Change.deleted, "/repo/features/d/old.ts"),
        }

        self.assertEqual(
            classify_changes(changes),
            [
                ("modified", Path("/repo/features/a/README.md")),
                ("modified", Path("/repo/features/b/FEATURES.toml")),
                ("added", Path("/repo/features/c")),
                ("deleted", Path("/repo/features/d/old.ts")),
            ],
        )

    def test_source_edits_are_ignored(self) -> None:
        self.assertEqual(classify_changes({(Change.modified, "/repo/src/app.ts")}), [])


class FileWatcherRescanTests(unittest.IsolatedAsyncioTestCase):
    async def test_rescan_replaces_snapshot(self) -> None:
        store = FeatureSnapshotStore(Path("/repo"), [Feature(name="old", path="features/old")])
        watcher = FileWatcher()
        new_tree = [Feature(name="new", path="features/new")]

        with patch("featuregraph.file_watcher.scan_features", return_value=new_tree) as scan:
            updated = await watcher.rescan(store, ScanConfig(skip_changes=True))

        self.assertTrue(updated)
        scan.assert_called_once()
        self.assertEqual(scan.call_args.args[0], Path("/repo"))
        self.assertEqual(store.read()[0].name, "new")
        self.assertEqual(store.version, 2)
        self.assertEqual(watcher.rescan_count, 1)

    async def test_failed_rescan_keeps_previous_tree(self) -> None:
        store = FeatureSnapshotStore(Path("/repo"), [Feature(name="old", path="features/old")])
        watcher = FileWatcher()

        with patch("featuregraph.file_watcher.scan_features", side_effect=FeatureScanError("unreadable")):
            updated = await watcher.rescan(store, ScanConfig())

        self.assertFalse(updated)
        self.assertEqual(store.read()[0].name, "old")
        self.assertEqual(store.version, 1)
        self.assertEqual(watcher.rescan_count, 0)

    async def test_stop_without_start_is_safe(self) -> None:
        watcher = FileWatcher()
        await watcher.stop()
        self.assertFalse(watcher.is_running)


if __name__ == "__main__":
    unittest.main()
