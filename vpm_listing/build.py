"""
build.py — the "build listing" operation.

load source → load existing index → discover → reconcile → assemble →
write index.json → render website. Nothing is written when reconciliation
aborts.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field

from vpm_listing_core.assemble import assemble, write_index
from vpm_listing_core.discovery import discover
from vpm_listing_core.errors import ConfigError, ManifestError, TransportFailure
from vpm_listing_core.listing import (
    ExistingIndex, ListingAuthor, ListingSource, load_existing_index,
    load_listing_source, parse_existing_index,
)
from vpm_listing_core.manifest import validate_manifest
from vpm_listing_core.reconcile import Reconciler

from .render import render_site

logger = logging.getLogger(__name__)


@dataclass
class BuildReport:
    index_path: str
    accepted: list = field(default_factory=list)
    skipped: int = 0
    failed: list = field(default_factory=list)
    discovery_errors: list = field(default_factory=list)
    total_versions: int = 0
    downloads: int = 0
    rendered: list = field(default_factory=list)


def listing_source_from_manifest(manifest_path, settings):
    """Synthesise a listing source from a single package's package.json.

    Used when a repository has no source.json: the listing lists the
    releases of the repository the build runs in.

    Raises:
        ConfigError: The manifest is missing or invalid.
    """
    try:
        with open(manifest_path, "rb") as f:
            descriptor = validate_manifest(f.read())
    except OSError as e:
        raise ConfigError(f"Cannot read package manifest {manifest_path}: {e}") from e
    except ManifestError as e:
        raise ConfigError(f"Invalid package manifest {manifest_path}: {e}") from e

    display_name = descriptor.display_name or descriptor.id
    author = descriptor.author
    return ListingSource(
        name=f"{display_name} Listing",
        id=f"{descriptor.id}.listing",
        author=ListingAuthor(
            name=(author.name if author else None) or "",
            url=(author.url if author else None) or "",
            email=(author.email if author else None) or "",
        ),
        url=settings.published_index_url or "",
        description=f"Listing for {display_name}",
        banner_url="banner.png",
        github_repos=[settings.repository] if settings.repository else [],
    )


def load_source(settings):
    """Load source.json, or fall back to the configured package manifest."""
    if os.path.isfile(settings.source_path):
        source = load_listing_source(settings.source_path)
    elif settings.package_manifest and os.path.isfile(settings.package_manifest):
        logger.info("No listing source at %s, building one from %s",
                    settings.source_path, settings.package_manifest)
        source = listing_source_from_manifest(settings.package_manifest, settings)
    else:
        raise ConfigError(
            f"Could not find listing source at {settings.source_path}"
            + (f" or package manifest at {settings.package_manifest}"
               if settings.package_manifest else "")
            + ", you need at least one of them.")

    updates = {}
    if settings.listing_id:
        updates["id"] = settings.listing_id
    if settings.listing_name:
        updates["name"] = settings.listing_name
    if settings.listing_url:
        updates["url"] = settings.listing_url
    if not (updates.get("id") or source.id):
        owner, name = settings.repository_parts
        updates["id"] = f"io.github.{owner or 'localtestowner'}.{name or 'listing'}".lower()
        logger.warning("Your listing needs an id. Generated one for you: %s. "
                       "Set \"id\" in %s to change it.",
                       updates["id"], settings.source_path)
    if updates:
        source = source.model_copy(update=updates)
    return source


def load_existing(location, http):
    """Load the previously published index from a path or URL."""
    if location.startswith(("http://", "https://")):
        try:
            body = http.get(location, accept="application/json", authenticated=True)
        except TransportFailure as e:
            logger.warning("Could not download existing index from %s (%s), "
                           "starting fresh", location, e)
            return ExistingIndex.empty()
        try:
            document = json.loads(body.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError(f"Existing index at {location} is not valid JSON: {e}") from e
        return parse_existing_index(document)
    return load_existing_index(location)


def build_listing(settings, http=None, github=None):
    """Run one listing build.

    Args:
        settings: BuildSettings.
        http: HTTP client (defaults to one built from settings).
        github: Release-listing client (defaults to one built from settings).

    Returns:
        BuildReport.

    Raises:
        ConfigError: Source or existing index cannot be loaded.
        ReconcileAborted: An explicit release failed; nothing was written.
    """
    source = load_source(settings)
    http = http or settings.make_http_client()
    github = github or settings.make_github_client(http)

    existing = load_existing(settings.existing_index_location, http)

    discovered = discover(source, github)
    reconciler = Reconciler(http, existing, max_workers=settings.max_workers)
    result = reconciler.reconcile(discovered.candidates)

    logger.info("All packages prepared, generating listing")
    index = assemble(source, result.accepted, existing)
    index_path = write_index(index, settings.index_path)
    rendered = render_site(source, index, settings.resolved_website_dir,
                           settings.output_dir)

    report = BuildReport(
        index_path=index_path,
        accepted=result.accepted,
        skipped=result.skipped + len(discovered.skipped),
        failed=result.failed,
        discovery_errors=discovered.errors,
        total_versions=index.version_count,
        downloads=result.downloads,
        rendered=rendered,
    )
    log_summary(report)
    return report


def log_summary(report):
    logger.info("Accepted %d new version(s), skipped %d, %d failure(s), "
                "%d discovery error(s); listing has %d version(s)",
                len(report.accepted), report.skipped, len(report.failed),
                len(report.discovery_errors), report.total_versions)
    for candidate, error in report.failed:
        logger.error("Failed %s: %s", candidate.archive_url, error)
    for ref, error in report.discovery_errors:
        logger.error("Failed repository %s: %s", ref, error)
