import tempfile
import unittest
from pathlib import Path

from featuregraph.parsers.feature_metadata import (
    check_line_for_feature_metadata,
    infer_feature_path,
    parse_properties,
    scan_directory_for_feature_metadata,
)
from featuregraph.parsers.source_patterns import comment_patterns


class FeatureMetadataLineTests(unittest.TestCase):
    def test_line_comment_with_properties(self) -> None:
        found = check_line_for_feature_metadata(
            "// --feature-flag feature:f1, type: experiment",
            comment_patterns("ts"),
        )
        self.assertEqual(found, ("flag", {"feature": "f1", "type": "experiment"}))

    def test_block_comment_end_is_stripped(self) -> None:
        found = check_line_for_feature_metadata(
            "<!-- --feature-toggle name: dark-mode -->",
            comment_patterns("html"),
        )
        self.assertEqual(found, ("toggle", {"name": "dark-mode"}))

    def test_entries_without_properties_are_dropped(self) -> None:
        self.assertIsNone(check_line_for_feature_metadata("# --feature-flag", comment_patterns("py")))
        self.assertIsNone(check_line_for_feature_metadata("x = 1  # --feature-flag a: b", comment_patterns("py")))

    def test_parse_properties_keeps_order(self) -> None:
        props = parse_properties("b: 2, a: 1, junk, c: x:y")
        self.assertEqual(list(props.items()), [("b", "2"), ("a", "1"), ("c", "x:y")])


class FeatureMetadataScanTests(unittest.TestCase):
    def test_infer_feature_path(self) -> None:
        base = Path("/repo/src")
        self.assertEqual(
            infer_feature_path(base / "features" / "checkout" / "cart" / "cart.ts", base),
            "features/checkout",
        )
        self.assertEqual(
            infer_feature_path(base / "features" / "f1" / "features" / "f2" / "x.ts", base),
            "features/f1/features/f2",
        )
        self.assertEqual(infer_feature_path(base / "features" / "f1" / "features" / "x.ts", base), "features/f1")
        self.assertIsNone(infer_feature_path(base / "features" / "loose.ts", base))
        self.assertIsNone(infer_feature_path(base / "lib" / "util.ts", base))

    def test_scan_groups_annotations_by_feature(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            feature_dir = root / "features" / "f1"
            feature_dir.mkdir(parents=True)
            (feature_dir / "a.ts").write_text(
                "// --feature-flag feature:f1, type: experiment\n"
                "// --feature-flag name: beta\n",
                encoding="utf-8",
            )
            (root / "node_modules").mkdir()
            (root / "node_modules" / "dep.js").write_text("// --feature-flag feature:f1, x: y\n", encoding="utf-8")

            metadata = scan_directory_for_feature_metadata(root)

            self.assertEqual(metadata["f1"]["flag"], [{"feature": "f1", "type": "experiment"}])
            self.assertEqual(metadata["features/f1"]["flag"], [{"name": "beta"}])
            self.assertEqual(len(metadata), 2)


if __name__ == "__main__":
    unittest.main()
