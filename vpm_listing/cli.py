#!/usr/bin/env python3
"""
VPM Listing Builder — command-line entry point.

Usage:
    vpm-listing build --source source.json --output docs
    python -m vpm_listing build --listing-id com.example.listing

Exit codes: 0 build completed (per-candidate failures are reported but do
not fail the run), 1 configuration error or hard abort, 2 usage error.
"""

import argparse
import logging
import sys

from vpm_listing_core.errors import ListingError

from . import __version__
from .build import build_listing
from .config import BuildSettings


def _setup_logging(level):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_parser():
    parser = argparse.ArgumentParser(
        prog="vpm-listing",
        description="Build a VPM package listing from a listing source")
    parser.add_argument("--version", action="version",
                        version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="Build index.json and the listing website")
    build.add_argument("--source", dest="source_path", default=None,
                       help="Path to source.json (default: ./source.json)")
    build.add_argument("--output", dest="output_dir", default=None,
                       help="Publish directory (default: ./docs)")
    build.add_argument("--existing", dest="existing_index", default=None,
                       help="Path or URL of the previously published index.json")
    build.add_argument("--website", dest="website_dir", default=None,
                       help="Website template directory (default: <source dir>/Website)")
    build.add_argument("--package-manifest", dest="package_manifest", default=None,
                       help="package.json to build a listing from when source.json is missing")
    build.add_argument("--listing-id", default=None, help="Override the listing id")
    build.add_argument("--listing-name", default=None, help="Override the listing name")
    build.add_argument("--listing-url", default=None, help="Override the listing URL")
    build.add_argument("--workers", dest="max_workers", type=int, default=None,
                       help="Concurrent downloads (default: 8, max 16)")
    build.add_argument("--log-level", default=None,
                       help="Log level (default: info)")
    return parser


def main(argv=None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    overrides = {k: v for k, v in vars(args).items() if k != "command"}
    try:
        settings = BuildSettings.from_env(**overrides)
    except ValueError as e:
        print(f"Error: invalid settings: {e}", file=sys.stderr)
        return 2
    _setup_logging(settings.log_level)

    print("=" * 60)
    print("VPM Listing Builder")
    print("=" * 60)
    print(f"Source:   {settings.source_path}")
    print(f"Output:   {settings.output_dir}")
    print(f"Existing: {settings.existing_index_location}")
    print(f"Workers:  {settings.max_workers}")
    print("=" * 60)
    print()

    try:
        report = build_listing(settings)
    except ListingError as e:
        print(f"\nFATAL: {e}", file=sys.stderr)
        return 1

    print()
    print("=" * 60)
    print(f"Summary: {len(report.accepted)} new version(s), "
          f"{report.skipped} skipped, {len(report.failed)} failed, "
          f"{len(report.discovery_errors)} repository error(s)")
    for descriptor in report.accepted:
        print(f"  + {descriptor.id} {descriptor.version}")
    for candidate, error in report.failed:
        print(f"  ! {candidate.archive_url}: {error}")
    for ref, error in report.discovery_errors:
        print(f"  ! {ref}: {error}")
    print(f"Listing:  {report.index_path} ({report.total_versions} version(s))")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
