"""vpm_listing_core — reconcile a package listing source against its published index."""

__version__ = "0.1.0"

from .archive import MANIFEST_FILENAME, extract_entry, fingerprint
from .assemble import (
    ReconciledIndex, assemble, format_package_view, latest_view, write_index,
)
from .discovery import (
    AssetMatch, Candidate, DiscoveryResult, Origin, discover, parse_repo_ref,
)
from .errors import (
    ConfigError, CorruptArchive, IdentityMismatch, ListingError, MalformedManifest,
    ManifestError, ReconcileAborted, RepoReferenceError, TransportFailure,
    TransportSSLError,
)
from .hub_client import GitHubClient, HttpClient
from .listing import (
    ExistingIndex, ListingSource, PackageInfo, ReleaseRef, load_existing_index,
    load_listing_source, parse_existing_index, parse_listing_source,
)
from .manifest import PackageDescriptor, package_type, parse_semver, validate_manifest
from .reconcile import ReconcileResult, Reconciler, reconcile
