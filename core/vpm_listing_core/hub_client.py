"""
hub_client.py — HTTP transport and GitHub release listing (stdlib urllib).

Clients are plain objects constructed once per run and passed to whatever
needs them; there is no module-level client or credential state.
"""

import http.client
import json
import logging
import os
import ssl
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field

from .errors import TransportFailure, TransportSSLError

logger = logging.getLogger(__name__)

# Some archive hosts block requests without a recognisable client name
DEFAULT_USER_AGENT = "VCCBootstrap/1.0"
GITHUB_API = "https://api.github.com"
RELEASES_PER_PAGE = 100


def _create_ssl_context(ssl_noverify=False):
    """Create an SSL context for HTTPS requests.

    Supports the following environment variables:
      - VPM_SSL_CERT: Path to a custom CA certificate bundle (PEM).
      - VPM_SSL_VERIFY: Set to "0" to disable certificate verification.
            Archive integrity is still recorded as SHA-256 in the index.

    Returns:
        ssl.SSLContext or None (None = use urllib defaults).
    """
    ssl_verify = os.environ.get("VPM_SSL_VERIFY", "1").strip()
    ssl_cert = os.environ.get("VPM_SSL_CERT", "").strip()

    if ssl_noverify or ssl_verify == "0":
        ctx = ssl.create_default_context()
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
        return ctx

    if ssl_cert:
        if not os.path.isfile(ssl_cert):
            logger.warning("VPM_SSL_CERT file not found: %s", ssl_cert)
            return None
        logger.info("Using custom CA bundle: %s", ssl_cert)
        return ssl.create_default_context(cafile=ssl_cert)

    return None


def _is_ssl_error(exc):
    """Check whether an exception is caused by SSL certificate verification."""
    if isinstance(exc, ssl.SSLError):
        return True
    if isinstance(exc, urllib.error.URLError):
        return isinstance(getattr(exc, "reason", None), ssl.SSLError)
    return False


class HttpClient:
    """Minimal GET client with a fixed User-Agent and optional bearer token."""

    def __init__(self, user_agent=DEFAULT_USER_AGENT, token=None, timeout=60,
                 ssl_noverify=False):
        self.user_agent = user_agent
        self.token = token
        self.timeout = timeout
        if ssl_noverify:
            logger.warning("SSL certificate verification disabled")
        self._ssl_ctx = _create_ssl_context(ssl_noverify)

    def get(self, url, accept=None, authenticated=False):
        """GET a URL and return the response body.

        Args:
            url: Absolute http(s) URL.
            accept: Optional Accept header value.
            authenticated: Send the bearer token, if one is configured.

        Raises:
            TransportSSLError: On SSL certificate verification failure.
            TransportFailure: On non-success status or network failure.
        """
        headers = {"User-Agent": self.user_agent}
        if accept:
            headers["Accept"] = accept
        if authenticated and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            req = urllib.request.Request(url, headers=headers)
            with urllib.request.urlopen(req, timeout=self.timeout,
                                        context=self._ssl_ctx) as resp:
                return resp.read()
        except urllib.error.HTTPError as e:
            raise TransportFailure(
                f"HTTP {e.code} for {url}", url=url, status=e.code) from e
        except ValueError as e:
            # urllib rejects empty or scheme-less URLs before any I/O
            raise TransportFailure(f"Invalid URL {url!r}: {e}", url=url) from e
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            if _is_ssl_error(e):
                raise TransportSSLError(
                    f"SSL certificate verification failed for {url}: {e}",
                    url=url) from e
            raise TransportFailure(f"Request failed for {url}: {e}", url=url) from e

    def get_json(self, url, authenticated=False):
        """GET a URL and parse the body as JSON."""
        body = self.get(url, accept="application/json", authenticated=authenticated)
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TransportFailure(f"Invalid JSON from {url}: {e}", url=url) from e


@dataclass(frozen=True)
class Asset:
    name: str
    download_url: str


@dataclass(frozen=True)
class Release:
    name: str
    tag: str = ""
    assets: tuple = field(default_factory=tuple)


class GitHubClient:
    """Lists repository releases through the GitHub REST API."""

    def __init__(self, http, api_url=GITHUB_API):
        self.http = http
        self.api_url = api_url.rstrip("/")

    def get_releases(self, owner, repo):
        """Return every release of owner/repo, newest first as GitHub orders them.

        Raises:
            TransportFailure: The repository or its releases cannot be listed.
        """
        base = (f"{self.api_url}/repos/{urllib.parse.quote(owner)}/"
                f"{urllib.parse.quote(repo)}/releases")
        releases = []
        page = 1
        while True:
            url = f"{base}?per_page={RELEASES_PER_PAGE}&page={page}"
            data = self.http.get_json(url, authenticated=True)
            if not isinstance(data, list):
                raise TransportFailure(
                    f"Unexpected release list from {url}", url=url)
            for item in data:
                assets = tuple(
                    Asset(name=a.get("name") or "",
                          download_url=a["browser_download_url"])
                    for a in item.get("assets") or ()
                    if a.get("browser_download_url")
                )
                releases.append(Release(
                    name=item.get("name") or item.get("tag_name") or "",
                    tag=item.get("tag_name") or "",
                    assets=assets,
                ))
            if len(data) < RELEASES_PER_PAGE:
                break
            page += 1
        logger.debug("Listed %d release(s) for %s/%s", len(releases), owner, repo)
        return releases
