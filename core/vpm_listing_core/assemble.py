"""
assemble.py — build, order and serialise the published listing document.

Published layout:

    {
      "name": ..., "id": ..., "author": "<author name>", "url": ...,
      "packages": {
        "<package id>": {"versions": {"<version>": {...package.json...}}}
      }
    }

Package ids are sorted and versions are in ascending semver order, so the
same set of descriptors always serialises to the same bytes.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field

from .manifest import package_type, parse_semver

logger = logging.getLogger(__name__)


def _version_key(descriptor):
    return (parse_semver(descriptor.version), descriptor.version)


@dataclass
class ReconciledIndex:
    name: str
    id: str
    author: str
    url: str
    descriptors: list = field(default_factory=list)

    def to_document(self):
        """Return the listing as a JSON-ready dict with None fields omitted."""
        by_id = {}
        for descriptor in self.descriptors:
            by_id.setdefault(descriptor.id, []).append(descriptor)

        packages = {}
        for pkg_id in sorted(by_id):
            versions = sorted(by_id[pkg_id], key=_version_key)
            packages[pkg_id] = {
                "versions": {d.version: d.to_entry() for d in versions},
            }

        document = {
            "name": self.name,
            "id": self.id,
            "author": self.author,
            "url": self.url,
            "packages": packages,
        }
        return {k: v for k, v in document.items() if v is not None}

    def dumps(self):
        return json.dumps(self.to_document(), indent=2, ensure_ascii=False) + "\n"

    @property
    def version_count(self):
        return len(self.descriptors)


def assemble(source, accepted, existing):
    """Combine previously published and newly accepted descriptors.

    Args:
        source: ListingSource; name/id/url are copied verbatim and the
            author is flattened to its name.
        accepted: Descriptors verified in this run.
        existing: ExistingIndex from the previous run.

    Returns:
        ReconciledIndex spanning every known version.
    """
    merged = {d.identity: d for d in existing.descriptors}
    for descriptor in accepted:
        merged[descriptor.identity] = descriptor

    index = ReconciledIndex(
        name=source.name,
        id=source.id,
        author=source.author.name,
        url=source.url,
        descriptors=list(merged.values()),
    )
    logger.info("Assembled listing %s: %d package(s), %d version(s) "
                "(%d new)", index.id, len({d.id for d in index.descriptors}),
                index.version_count, len(accepted))
    return index


def latest_view(descriptors):
    """Highest version of each package by semver, sorted by package id."""
    latest = {}
    for descriptor in descriptors:
        current = latest.get(descriptor.id)
        if current is None or _version_key(descriptor) > _version_key(current):
            latest[descriptor.id] = descriptor
    return [latest[pkg_id] for pkg_id in sorted(latest)]


def format_package_view(descriptor):
    """Projection of a descriptor consumed by the website templates."""
    author = descriptor.author
    return {
        "name": descriptor.id,
        "author": {
            "name": author.name if author else None,
            "url": author.url if author else None,
        },
        "archiveUrl": descriptor.archive_url,
        "license": descriptor.license,
        "licenseUrl": descriptor.license_url,
        "keywords": list(descriptor.keywords),
        "type": package_type(descriptor),
        "description": descriptor.description,
        "displayName": descriptor.display_name,
        "version": descriptor.version,
        "dependencies": [
            {"name": name, "version": version}
            for name, version in descriptor.dependencies.items()
        ],
    }


def write_index(index, path):
    """Atomically write the listing document to path."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(index.dumps())
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Saved listing to %s", path)
    return path
