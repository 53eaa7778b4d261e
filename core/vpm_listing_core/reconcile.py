"""
reconcile.py — fetch, verify and deduplicate candidate archives.

Policy per candidate (explicit = named in source.json, repository = found
in a linked repository's releases):

  URL already in the existing index     skip, no download
  download fails                        explicit: abort / repository: failure
  no package.json in the archive        skip with a warning
  archive cannot be opened              failure
  manifest malformed or identity wrong  explicit: abort / repository: failure
  any other error                       explicit: abort / repository: failure

Candidates are processed on a bounded thread pool. Workers only return
outcomes; the accepted list is built afterwards in a fixed order, so the
result does not depend on scheduling.
"""

import enum
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional

from .archive import MANIFEST_FILENAME, extract_entry, fingerprint
from .errors import (
    CorruptArchive, ManifestError, ReconcileAborted, TransportFailure,
)
from .manifest import validate_manifest

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 8
MAX_WORKERS_LIMIT = 16


class Status(enum.Enum):
    VERIFIED = "verified"
    ALREADY_INDEXED = "already_indexed"
    NOT_A_PACKAGE = "not_a_package"
    FAILED = "failed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Outcome:
    candidate: object
    status: Status
    descriptor: Optional[object] = None
    error: Optional[Exception] = None


@dataclass
class ReconcileResult:
    accepted: list = field(default_factory=list)
    skipped: int = 0
    # (Candidate, exception) pairs
    failed: list = field(default_factory=list)
    downloads: int = 0


class _RunState:
    """Per-run cancellation flag, first abort and download counter."""

    def __init__(self):
        self.abort = threading.Event()
        self.lock = threading.Lock()
        self.first_abort = None
        self.downloads = 0

    def record_abort(self, candidate, cause):
        with self.lock:
            if self.first_abort is None:
                self.first_abort = ReconcileAborted(candidate, cause)
        self.abort.set()

    def count_download(self):
        with self.lock:
            self.downloads += 1


def collapse_duplicate_urls(candidates):
    """Keep one candidate per archive URL, preferring explicit ones."""
    by_url = {}
    for candidate in candidates:
        current = by_url.get(candidate.archive_url)
        if current is None or (candidate.is_explicit and not current.is_explicit):
            by_url[candidate.archive_url] = candidate
    return list(by_url.values())


class Reconciler:
    """Reconciles candidates against an existing index.

    Args:
        http: Object with get(url, accept=None) returning bytes (HttpClient).
        existing: ExistingIndex from the previous run. Never modified.
        max_workers: Concurrent downloads, clamped to 1..16.
    """

    def __init__(self, http, existing, max_workers=DEFAULT_MAX_WORKERS,
                 manifest_name=MANIFEST_FILENAME):
        self.http = http
        self.existing = existing
        self.max_workers = max(1, min(int(max_workers), MAX_WORKERS_LIMIT))
        self.manifest_name = manifest_name

    def reconcile(self, candidates):
        """Verify candidates and return the new, deduplicated descriptors.

        Raises:
            ReconcileAborted: An explicit candidate could not be downloaded
                or failed validation. No partial result is returned.
        """
        unique = collapse_duplicate_urls(candidates)
        state = _RunState()
        outcomes = []

        with ThreadPoolExecutor(max_workers=self.max_workers,
                                thread_name_prefix="reconcile") as pool:
            futures = [pool.submit(self._process, c, state) for c in unique]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                outcomes.append(future.result())
                if state.abort.is_set():
                    for pending in futures:
                        pending.cancel()

        if state.first_abort is not None:
            logger.error("%s", state.first_abort)
            raise state.first_abort

        result = self._merge(outcomes)
        result.downloads = state.downloads
        return result

    def _process(self, candidate, state):
        try:
            return self._inspect(candidate, state)
        except Exception as e:
            # unexpected errors follow the same explicit/repository policy
            logger.exception("Unexpected error while processing %s", candidate)
            return self._fail(candidate, e, state)

    def _inspect(self, candidate, state):
        url = candidate.archive_url
        if state.abort.is_set():
            return Outcome(candidate, Status.CANCELLED)

        logger.info("Looking at %s", candidate)
        if url in self.existing.urls:
            logger.info("Current listing already contains %s, skipping", url)
            return Outcome(candidate, Status.ALREADY_INDEXED)

        state.count_download()
        try:
            data = self.http.get(url, accept="application/octet-stream")
        except TransportFailure as e:
            return self._fail(candidate, e, state)

        if state.abort.is_set():
            return Outcome(candidate, Status.CANCELLED)

        try:
            raw = extract_entry(data, self.manifest_name)
        except CorruptArchive as e:
            logger.error("Skipping %s: %s", url, e)
            return Outcome(candidate, Status.FAILED, error=e)

        if raw is None:
            logger.warning("Could not find %s in %s, skipping",
                           self.manifest_name, url)
            return Outcome(candidate, Status.NOT_A_PACKAGE)

        try:
            descriptor = validate_manifest(
                raw, candidate.declared_id, candidate.declared_version)
        except ManifestError as e:
            return self._fail(candidate, e, state)

        descriptor = descriptor.with_archive(url, fingerprint(data))
        logger.info("Found %s %s in %s", descriptor.id, descriptor.version, url)
        return Outcome(candidate, Status.VERIFIED, descriptor=descriptor)

    def _fail(self, candidate, error, state):
        if candidate.is_explicit:
            state.record_abort(candidate, error)
            return Outcome(candidate, Status.ABORTED, error=error)
        logger.error("Skipping %s: %s", candidate.archive_url, error)
        return Outcome(candidate, Status.FAILED, error=error)

    def _merge(self, outcomes):
        result = ReconcileResult()
        verified = []
        for outcome in outcomes:
            if outcome.status is Status.VERIFIED:
                verified.append(outcome)
            elif outcome.status is Status.FAILED:
                result.failed.append((outcome.candidate, outcome.error))
            else:
                result.skipped += 1

        # Explicit candidates win identity ties, then the lowest URL
        verified.sort(key=lambda o: (not o.candidate.is_explicit,
                                     o.candidate.archive_url))
        seen = set()
        for outcome in verified:
            descriptor = outcome.descriptor
            identity = descriptor.identity
            if identity in self.existing.identities:
                logger.info("Listing already contains %s %s, skipping %s",
                            *identity, descriptor.archive_url)
                result.skipped += 1
            elif identity in seen:
                logger.warning("Duplicate %s %s at %s, keeping the first",
                               *identity, descriptor.archive_url)
                result.skipped += 1
            else:
                seen.add(identity)
                result.accepted.append(descriptor)

        result.failed.sort(key=lambda pair: pair[0].archive_url)
        return result


def reconcile(candidates, existing, http, max_workers=DEFAULT_MAX_WORKERS):
    """Functional wrapper around Reconciler.reconcile()."""
    return Reconciler(http, existing, max_workers=max_workers).reconcile(candidates)
