#!/usr/bin/env python3
"""Discover features in a directory and report, serve or export them.

Usage:
  featuregraph src/
  featuregraph src/ --json --flat
  featuregraph src/ --find-owner src/features/checkout/cart.ts
  featuregraph src/ --serve --port 3000
  featuregraph src/ --generate-codeowners --project-dir .
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from featuregraph import config
from featuregraph.main import create_app
from featuregraph.models import Feature, features_payload
from featuregraph.services.build import create_build
from featuregraph.services.feature_tree import FeatureScanError
from featuregraph.services.ownership import (
    CheckFailed,
    find_owner,
    flatten_features,
    generate_codeowners,
    run_checks,
    unique_owners,
)
from featuregraph.services.scan import ScanConfig, scan_features

logger = logging.getLogger("featuregraph.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="featuregraph",
        description="Discover features by their README.md / FEATURES.toml and report ownership, "
        "dependencies and history.",
    )
    parser.add_argument("path", nargs="?", type=Path, help="Directory to scan")
    parser.add_argument("-V", "--version", action="version", version=f"%(prog)s {config.VERSION}")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--flat", action="store_true", help="Output a flat list instead of a tree")
    parser.add_argument("--description", action="store_true", help="Include descriptions")
    parser.add_argument("--list-owners", action="store_true", help="Print the unique owners only")
    parser.add_argument("--check", action="store_true", help="Fail on duplicate feature names")
    parser.add_argument("--serve", action="store_true", help="Serve features over HTTP")
    parser.add_argument("--port", type=int, default=config.PORT, help="HTTP port (default: %(default)s)")
    parser.add_argument("--build", action="store_true", help="Write a static build")
    parser.add_argument("--build-dir", type=Path, default=Path(config.BUILD_DIR), help="Static build output directory")
    parser.add_argument(
        "--skip-changes",
        action="store_true",
        default=config.SKIP_CHANGES,
        help="Do not read git history",
    )
    parser.add_argument("--find-owner", default=None, help="Print the owner of a file or directory")
    parser.add_argument("--coverage-dir", type=Path, default=None, help="Coverage report directory")
    parser.add_argument("--coverage", action="store_true", help="Include coverage information")
    parser.add_argument("--generate-codeowners", action="store_true", help="Write or update CODEOWNERS")
    parser.add_argument("--project-dir", type=Path, default=None, help="Repository root for CODEOWNERS and coverage")
    parser.add_argument("--codeowners-path", type=Path, default=None, help="CODEOWNERS file (default: CODEOWNERS)")
    parser.add_argument("--codeowners-prefix", default="@", help="Owner handle prefix (default: %(default)s)")
    return parser


def _error(message: str) -> int:
    print(f"Error: {message}", file=sys.stderr)
    return 1


def print_features(features: list[Feature], indent: int = 0, show_description: bool = False) -> None:
    prefix = "  " * indent
    for feature in features:
        deprecated = " (deprecated)" if feature.meta.get("deprecated") is True else ""
        print(f"{prefix}{feature.name}{deprecated} [{feature.owner}] -> {feature.path}")

        coverage = feature.stats.coverage if feature.stats else None
        if coverage is not None:
            print(
                f"  {prefix}Coverage: {coverage.line_coverage_percent:.1f}% lines "
                f"({coverage.lines_covered}/{coverage.lines_total})"
            )
            if coverage.branch_coverage_percent is not None:
                print(
                    f"  {prefix}          {coverage.branch_coverage_percent:.1f}% branches "
                    f"({coverage.branches_covered or 0}/{coverage.branches_total or 0})"
                )

        if show_description:
            print(f"{prefix}Description: {feature.description}")

        if feature.features:
            print_features(feature.features, indent + 1, show_description)


def _find_owner(args: argparse.Namespace) -> int:
    target = Path(args.find_owner)
    if not target.exists():
        return _error(f"Path '{args.find_owner}' does not exist.")

    base_path: Path = args.path or Path.cwd()
    features = scan_features(base_path, ScanConfig(skip_changes=args.skip_changes))
    owner = find_owner(target, features, base_path)
    if owner is None:
        print(f"No feature found for path: {args.find_owner}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(owner.model_dump(exclude={"inherited"} if not owner.inherited else None), indent=2))
    else:
        print(f"Owner: {owner.owner}{' (inherited)' if owner.inherited else ''}")
        print(f"Feature: {owner.feature_name}")
        print(f"Feature Path: {owner.feature_path}")
    return 0


def _serve(features: list[Feature], base_path: Path, scan_config: ScanConfig, port: int) -> None:
    app = create_app(base_path, features, scan_config)
    print(f"Serving {len(features)} top-level features on http://{config.HOST}:{port}", file=sys.stderr)
    uvicorn.run(app, host=config.HOST, port=port, log_level=config.LOG_LEVEL.lower())


def run(args: argparse.Namespace) -> int:
    if args.find_owner:
        return _find_owner(args)

    if args.path is None:
        return _error("The path argument is required. Try 'featuregraph --help' for more information.")

    path: Path = args.path
    scan_config = ScanConfig(
        skip_changes=args.skip_changes,
        with_coverage=args.serve or args.build or args.json or args.coverage,
        coverage_dir=args.coverage_dir,
        project_dir=args.project_dir,
    )
    features = scan_features(path, scan_config)

    if args.generate_codeowners:
        codeowners_path = generate_codeowners(
            features,
            path,
            args.project_dir,
            args.project_dir or scan_config.current_dir,
            args.codeowners_path,
            args.codeowners_prefix,
        )
        print(f"CODEOWNERS written: {codeowners_path}", file=sys.stderr)
        if not (args.serve or args.build or args.check):
            return 0

    if args.serve:
        _serve(features, path, scan_config, args.port)
    elif args.build:
        features_path = create_build(features, args.build_dir)
        print(f"Build completed: {features_path}", file=sys.stderr)
    elif args.check:
        try:
            run_checks(features)
        except CheckFailed as e:
            for line in e.report:
                print(line, file=sys.stderr)
            return _error(str(e))
        print("All checks passed successfully.", file=sys.stderr)
    elif args.list_owners:
        owners = unique_owners(features)
        if args.json:
            print(json.dumps(owners, indent=2))
        else:
            print(f"Unique owners found in {path}:", file=sys.stderr)
            for owner in owners:
                print(owner)
    else:
        output = flatten_features(features) if args.flat else features
        if args.json:
            print(json.dumps(features_payload(output), indent=2))
        else:
            print(f"Features found in {path}:", file=sys.stderr)
            if not output:
                print("No features found.", file=sys.stderr)
            else:
                print_features(output, 0, args.description)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, stream=sys.stderr)
    try:
        return run(args)
    except FeatureScanError as e:
        return _error(str(e))
    except OSError as e:
        return _error(str(e))


if __name__ == "__main__":
    raise SystemExit(main())
