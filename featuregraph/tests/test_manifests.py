import tempfile
import unittest
from pathlib import Path

from featuregraph.parsers.manifests import (
    has_feature_flag,
    read_feature_manifest,
    read_readme_info,
    split_frontmatter,
)


class FrontmatterTests(unittest.TestCase):
    def test_requires_opening_and_closing_markers(self) -> None:
        self.assertEqual(split_frontmatter("---\nowner: a\n---\n# T\n"), ({"owner": "a"}, "# T\n"))
        self.assertEqual(split_frontmatter("# T\n---\nowner: a\n---\n")[0], None)
        self.assertEqual(split_frontmatter("---\nowner: a\n")[0], None)

    def test_unparsable_yaml_is_ignored(self) -> None:
        frontmatter, body = split_frontmatter("---\nowner: [unclosed\n---\n# Title\n")
        self.assertEqual(frontmatter, {})
        self.assertEqual(body, "# Title\n")


class ReadmeTests(unittest.TestCase):
    def test_readme_title_description_owner_and_meta(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            readme = Path(tmpdir) / "README.md"
            readme.write_text(
                "---\nowner: team-x\nfeature: true\nstatus: beta\n---\n"
                "Intro line\n# Checkout\n\nHandles the cart.\n",
                encoding="utf-8",
            )

            info = read_readme_info(readme)

            self.assertEqual(info.title, "Checkout")
            self.assertEqual(info.owner, "team-x")
            self.assertEqual(info.description, "Handles the cart.")
            self.assertEqual(info.meta, {"feature": True, "status": "beta"})
            self.assertTrue(has_feature_flag(readme))

    def test_feature_flag_must_be_boolean_true(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            readme = Path(tmpdir) / "README.md"
            readme.write_text("---\nfeature: \"yes\"\n---\n# X\n", encoding="utf-8")
            self.assertFalse(has_feature_flag(readme))


class FeatureManifestTests(unittest.TestCase):
    def test_features_toml_wins_over_readme(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "README.md").write_text("---\nowner: readme-owner\n---\n# From Readme\n", encoding="utf-8")
            (root / "FEATURES.toml").write_text(
                'name = "Billing"\nowner = "payments"\ndescription = "Invoices"\ntier = 1\n',
                encoding="utf-8",
            )

            info = read_feature_manifest(root)

            self.assertEqual(info.title, "Billing")
            self.assertEqual(info.owner, "payments")
            self.assertEqual(info.description, "Invoices")
            self.assertEqual(info.meta, {"tier": 1})

    def test_broken_toml_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "FEATURES.toml").write_text("name = \n", encoding="utf-8")
            info = read_feature_manifest(root)
            self.assertIsNone(info.title)
            self.assertEqual(info.owner, "")

    def test_missing_manifest_yields_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            info = read_feature_manifest(Path(tmpdir))
            self.assertIsNone(info.title)
            self.assertEqual(info.meta, {})


if __name__ == "__main__":
    unittest.main()
