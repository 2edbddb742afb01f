import os
import tempfile
import unittest
from pathlib import Path

from featuregraph.parsers.feature_metadata import scan_directory_for_feature_metadata
from featuregraph.services.dependencies import populate_dependencies
from featuregraph.services.feature_tree import (
    FeatureScanError,
    build_feature_tree,
    count_own_files,
    is_feature_directory,
    merge_comment_metadata,
)


def _write(path: Path, content: str = "") -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


class FeatureTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_nested_feature_inherits_owner(self) -> None:
        _write(self.root / "features" / "f1" / "README.md", "---\nowner: team-x\n---\n# Feature One\n\nFirst.\n")
        _write(self.root / "features" / "f1" / "features" / "f2" / "index.ts", "export const x = 1;\n")

        features = build_feature_tree(self.root)

        self.assertEqual(len(features), 1)
        f1 = features[0]
        self.assertEqual((f1.name, f1.path, f1.owner, f1.is_owner_inherited), ("Feature One", "features/f1", "team-x", False))
        self.assertEqual(f1.description, "First.")
        f2 = f1.features[0]
        self.assertEqual((f2.name, f2.path), ("f2", "features/f1/features/f2"))
        self.assertEqual(f2.owner, "team-x")
        self.assertTrue(f2.is_owner_inherited)

    def test_unowned_tree_has_empty_owner(self) -> None:
        (self.root / "features" / "solo").mkdir(parents=True)

        solo = build_feature_tree(self.root)[0]

        self.assertEqual(solo.owner, "")
        self.assertFalse(solo.is_owner_inherited)
        self.assertEqual(solo.stats.files_count, 0)
        self.assertEqual(solo.stats.commits, {})

    def test_counts_exclude_nested_features_and_docs(self) -> None:
        f1 = self.root / "features" / "f1"
        for index in range(9):
            _write(f1 / "src" / f"file{index}.ts", "line one\n// TODO: tidy\n")
        _write(f1 / "logo.bin")
        (f1 / "logo.bin").write_bytes(b"\xff\xfe\x00\x01")
        _write(f1 / "docs" / "guide.md", "ignored\n")
        for index in range(5):
            _write(f1 / "features" / "f2" / f"nested{index}.ts", "nested\n")

        top = build_feature_tree(self.root)[0]

        self.assertEqual(top.stats.files_count, 10)
        self.assertEqual(top.stats.lines_count, 18)
        self.assertEqual(top.stats.todos_count, 9)
        self.assertEqual(top.features[0].stats.files_count, 5)

    def test_comment_annotation_lands_in_meta(self) -> None:
        _write(self.root / "features" / "f1" / "README.md", "---\nfeature: true\nstatus: beta\n---\n# F1\n")
        _write(self.root / "features" / "f1" / "a.ts", "// --feature-flag feature:f1, type: experiment\n")

        metadata = scan_directory_for_feature_metadata(self.root)
        top = build_feature_tree(self.root, metadata=metadata)[0]

        self.assertEqual(top.meta["flag"], [{"feature": "f1", "type": "experiment"}])
        self.assertEqual(top.meta["status"], "beta")
        self.assertNotIn("feature", top.meta)

    def test_unnamed_annotation_lands_on_nearest_feature(self) -> None:
        _write(self.root / "features" / "f1" / "a.ts", "export const a = 1;\n")
        _write(self.root / "features" / "f1" / "features" / "f2" / "x.ts", "// --feature-flag type: experiment\n")

        metadata = scan_directory_for_feature_metadata(self.root)
        f1 = build_feature_tree(self.root, metadata=metadata)[0]

        self.assertNotIn("flag", f1.meta)
        self.assertEqual(f1.features[0].meta["flag"], [{"type": "experiment"}])

    def test_paths_nest_strictly_and_are_unique(self) -> None:
        _write(self.root / "features" / "shop" / "index.ts")
        _write(self.root / "features" / "shop" / "features" / "cart" / "cart.ts")
        _write(self.root / "features" / "shop" / "widgets" / "README.md", "---\nfeature: true\n---\n# Widgets\n")
        _write(self.root / "features" / "shop" / "widgets" / "features" / "button" / "button.ts")
        _write(self.root / "app" / "billing" / "README.md", "---\nfeature: true\n---\n# Billing\n")
        _write(self.root / "app" / "billing" / "lib" / "charts" / "README.md", "---\nfeature: true\n---\n# Charts\n")

        features = build_feature_tree(self.root)

        seen: list[str] = []

        def check(nodes, parent_path):
            for node in nodes:
                seen.append(node.path)
                if parent_path is not None:
                    self.assertTrue(node.path.startswith(f"{parent_path}/"), f"{node.path} not under {parent_path}")
                check(node.features, node.path)

        check(features, None)
        self.assertEqual(len(seen), len(set(seen)))
        self.assertEqual(
            sorted(seen),
            [
                "app/billing",
                "app/billing/lib/charts",
                "features/shop",
                "features/shop/features/cart",
                "features/shop/widgets",
                "features/shop/widgets/features/button",
            ],
        )

    @unittest.skipUnless(hasattr(os, "symlink"), "symlinks are not supported")
    def test_symlinked_directories_are_not_followed(self) -> None:
        f1 = self.root / "features" / "f1"
        _write(f1 / "a.ts", "one\n")
        try:
            os.symlink(f1, f1 / "loop", target_is_directory=True)
        except OSError as exc:
            self.skipTest(f"cannot create symlink: {exc}")

        top = build_feature_tree(self.root)[0]
        populate_dependencies([top], self.root)

        self.assertEqual(top.features, [])
        self.assertEqual((top.stats.files_count, top.stats.lines_count), (1, 1))

    def test_decisions_sorted_without_readme(self) -> None:
        decisions = self.root / "features" / "f1" / ".docs" / "decisions"
        _write(decisions / "002-second.md", "second")
        _write(decisions / "001-first.md", "first")
        _write(decisions / "README.md", "index")
        _write(decisions / "notes.txt", "not a record")

        top = build_feature_tree(self.root)[0]

        self.assertEqual(top.decisions, ["first", "second"])
        self.assertEqual(top.stats.files_count, 0)

    def test_documentation_directories_are_not_features(self) -> None:
        (self.root / "docs" / "features" / "ghost").mkdir(parents=True)
        (self.root / "features" / "real" / "docs").mkdir(parents=True)

        features = build_feature_tree(self.root)

        self.assertEqual([feature.path for feature in features], ["features/real"])
        self.assertEqual(features[0].features, [])
        self.assertFalse(is_feature_directory(self.root / "docs" / "features" / "ghost", self.root))

    def test_readme_flag_marks_nested_feature(self) -> None:
        _write(self.root / "app" / "billing" / "README.md", "---\nfeature: true\n---\n# Billing\n")
        _write(self.root / "app" / "billing" / "widgets" / "README.md", "---\nfeature: true\nowner: ui\n---\n# Widgets\n")
        _write(self.root / "app" / "billing" / "lib" / "util.ts", "")
        _write(self.root / "app" / "billing" / "lib" / "charts" / "README.md", "---\nfeature: true\n---\n# Charts\n")
        _write(self.root / "app" / "plain" / "README.md", "# Not a feature\n")

        features = build_feature_tree(self.root)

        self.assertEqual([feature.path for feature in features], ["app/billing"])
        nested = [(child.path, child.owner) for child in features[0].features]
        self.assertEqual(nested, [("app/billing/lib/charts", ""), ("app/billing/widgets", "ui")])
        self.assertEqual(features[0].stats.files_count, 2)

    def test_missing_root_raises(self) -> None:
        with self.assertRaises(FeatureScanError):
            build_feature_tree(self.root / "missing")


class FeatureTreeHelperTests(unittest.TestCase):
    def test_count_own_files_on_missing_directory(self) -> None:
        self.assertEqual(count_own_files(Path("/definitely/not/here"), set()), (0, 0, 0))

    def test_merge_comment_metadata_appends_only_to_lists(self) -> None:
        meta = {"flag": [{"name": "from-readme"}], "owner_note": "keep"}
        metadata = {
            "features/f1": {"flag": [{"name": "a"}]},
            "f1": {"flag": [{"name": "b"}], "owner_note": [{"x": "y"}]},
        }

        merge_comment_metadata(meta, metadata, "features/f1", "f1")

        self.assertEqual(meta["flag"], [{"name": "from-readme"}, {"name": "a"}, {"name": "b"}])
        self.assertEqual(meta["owner_note"], "keep")


if __name__ == "__main__":
    unittest.main()
