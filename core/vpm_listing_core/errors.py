"""
errors.py — exception hierarchy for listing reconciliation.

Every error raised by vpm_listing_core derives from ListingError so the
CLI can catch one type at the top level.
"""


class ListingError(Exception):
    """Base exception for listing operations."""


class ConfigError(ListingError):
    """Raised when the listing source or existing index cannot be loaded."""


class TransportFailure(ListingError):
    """Raised on a non-success response or network error."""

    def __init__(self, message, url=None, status=None):
        super().__init__(message)
        self.url = url
        self.status = status


class TransportSSLError(TransportFailure):
    """Raised when an SSL certificate verification error occurs."""


class CorruptArchive(ListingError):
    """Raised when an archive container cannot be opened or read."""


class ManifestError(ListingError):
    """Base class for package manifest validation failures."""


class MalformedManifest(ManifestError):
    """Raised when package.json is unparsable or lacks required fields."""


class IdentityMismatch(ManifestError):
    """Raised when a declared id/version disagrees with the archive."""

    def __init__(self, field, declared, actual):
        super().__init__(
            f"The manifest {field} in the archive is {actual!r}, which does "
            f"not match the declared {field} {declared!r}")
        self.field = field
        self.declared = declared
        self.actual = actual


class RepoReferenceError(ListingError):
    """Raised for a githubRepos entry that is not 'owner/name'."""


class ReconcileAborted(ListingError):
    """Raised when an explicit candidate fails and the run must stop.

    Carries the offending candidate and the underlying cause so the
    failure can be diagnosed without re-running.
    """

    def __init__(self, candidate, cause):
        declared = []
        if candidate.declared_id:
            declared.append(f"id={candidate.declared_id}")
        if candidate.declared_version:
            declared.append(f"version={candidate.declared_version}")
        identity = f" ({', '.join(declared)})" if declared else ""
        super().__init__(
            f"Aborting: {candidate.archive_url}{identity}: {cause}")
        self.candidate = candidate
        self.cause = cause
