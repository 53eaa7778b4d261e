#!/usr/bin/env python3
"""
Package archive validator — CLI wrapper.

Validation logic lives in vpm_listing_core (extract_entry, validate_manifest).

Usage:
  python scripts/validate_manifest.py com.example.tool-1.0.0.zip
  python scripts/validate_manifest.py tool.zip --id com.example.tool --version 1.0.0
  # exit code 0: valid package archive, exit code 1: invalid
"""

import argparse
import sys

from vpm_listing_core import (
    MANIFEST_FILENAME, ListingError, extract_entry, fingerprint,
    package_type, validate_manifest,
)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Validate a package archive")
    parser.add_argument("archive", help="Path to the package .zip")
    parser.add_argument("--id", dest="declared_id", default=None,
                        help="Expected package id")
    parser.add_argument("--version", dest="declared_version", default=None,
                        help="Expected package version")
    args = parser.parse_args(argv)

    try:
        with open(args.archive, "rb") as f:
            data = f.read()
    except OSError as e:
        print(f"  ERROR: {e}", file=sys.stderr)
        return 1

    try:
        raw = extract_entry(data, MANIFEST_FILENAME)
        if raw is None:
            print(f"  ERROR: no {MANIFEST_FILENAME} in {args.archive}")
            return 1
        descriptor = validate_manifest(raw, args.declared_id, args.declared_version)
    except ListingError as e:
        print(f"  ERROR: {e}")
        return 1

    print(f"  id:       {descriptor.id}")
    print(f"  version:  {descriptor.version}")
    print(f"  type:     {package_type(descriptor)}")
    print(f"  sha256:   {fingerprint(data)}")
    print("\nOK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
