"""
discovery.py — turn a listing source into candidate archive URLs.

Two sources feed the candidate list:
  - explicit releases named in source.json packages[].releases, which carry
    the declared package id (and version, when given);
  - releases of the repositories in githubRepos, whose .zip assets are
    opportunistic candidates with no declared identity.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import RepoReferenceError, TransportFailure

logger = logging.getLogger(__name__)

ARCHIVE_EXTENSION = ".zip"


class Origin(enum.Enum):
    EXPLICIT = "explicit"
    REPOSITORY = "repository"


class AssetMatch(enum.Enum):
    NONE = "none"
    SINGLE = "single"
    MULTIPLE = "multiple"


@dataclass(frozen=True)
class Candidate:
    """A not-yet-verified reference to a package archive."""

    archive_url: str
    declared_id: Optional[str] = None
    declared_version: Optional[str] = None
    origin: Origin = Origin.EXPLICIT
    label: str = ""

    @property
    def is_explicit(self):
        return self.origin is Origin.EXPLICIT

    def __str__(self):
        return self.label or self.archive_url


@dataclass
class DiscoveryResult:
    candidates: list = field(default_factory=list)
    # Human-readable descriptions of releases that had no archive asset
    skipped: list = field(default_factory=list)
    # (githubRepos entry, ListingError) pairs
    errors: list = field(default_factory=list)


def parse_repo_ref(ref):
    """Split an 'owner/name' reference.

    Raises:
        RepoReferenceError: Not exactly two non-empty '/'-separated parts.
    """
    parts = ref.strip().split("/") if isinstance(ref, str) else []
    if len(parts) != 2 or not all(parts):
        raise RepoReferenceError(
            f"Could not get owner and repository from {ref!r}, "
            f"expected 'owner/name'")
    return parts[0], parts[1]


def match_archive_assets(assets):
    """Select the archive assets of a release, sorted by name.

    Returns:
        (AssetMatch, list of matching assets)
    """
    matches = sorted(
        (a for a in assets if a.name.lower().endswith(ARCHIVE_EXTENSION)),
        key=lambda a: a.name,
    )
    if not matches:
        return AssetMatch.NONE, []
    if len(matches) == 1:
        return AssetMatch.SINGLE, matches
    return AssetMatch.MULTIPLE, matches


def explicit_candidates(source):
    """One candidate per declared release of every package in the source."""
    candidates = []
    for info in source.packages:
        logger.info("Looking at %s with %d release(s)", info.id, len(info.releases))
        for release in info.releases:
            label = f"{info.id} {release.version}" if release.version else info.id
            candidates.append(Candidate(
                archive_url=release.url,
                declared_id=info.id,
                declared_version=release.version,
                origin=Origin.EXPLICIT,
                label=label,
            ))
    return candidates


def repository_candidates(ref, github, result):
    """Add candidates for every archive asset of one repository's releases.

    Errors for this repository are recorded in result.errors; they never
    stop discovery of the other entries.
    """
    try:
        owner, name = parse_repo_ref(ref)
    except RepoReferenceError as e:
        logger.error("%s", e)
        result.errors.append((ref, e))
        return

    try:
        releases = github.get_releases(owner, name)
    except TransportFailure as e:
        logger.error("Could not list releases for %s/%s: %s", owner, name, e)
        result.errors.append((ref, e))
        return

    if not releases:
        logger.info("Found no releases for %s/%s", owner, name)
        return

    for release in releases:
        match, assets = match_archive_assets(release.assets)
        where = f"{owner}/{name} release {release.name or release.tag}"
        if match is AssetMatch.NONE:
            logger.info("No %s asset in %s, skipping", ARCHIVE_EXTENSION, where)
            result.skipped.append(where)
            continue
        if match is AssetMatch.MULTIPLE:
            logger.warning("%s has %d %s assets, considering each: %s",
                           where, len(assets), ARCHIVE_EXTENSION,
                           ", ".join(a.name for a in assets))
        for asset in assets:
            result.candidates.append(Candidate(
                archive_url=asset.download_url,
                origin=Origin.REPOSITORY,
                label=f"{where} asset {asset.name}",
            ))


def discover(source, github):
    """Enumerate candidate archives for a listing source.

    Args:
        source: ListingSource.
        github: Object with get_releases(owner, repo) (GitHubClient).

    Returns:
        DiscoveryResult.
    """
    result = DiscoveryResult()
    result.candidates.extend(explicit_candidates(source))
    for ref in source.github_repos:
        repository_candidates(ref, github, result)
    logger.info("Discovered %d candidate(s), %d release(s) without archives, "
                "%d discovery error(s)", len(result.candidates),
                len(result.skipped), len(result.errors))
    return result
