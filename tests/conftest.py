"""
Shared test fixtures for the listing builder test suite.

  - make_zip: build package archives in memory
  - FakeHttp: URL → bytes / exception map standing in for HttpClient
  - FakeGitHub: "owner/repo" → releases map standing in for GitHubClient
  - write_source: writes source.json into tmp_path
"""

import io
import json
import threading
import zipfile

import pytest

from vpm_listing_core.errors import TransportFailure
from vpm_listing_core.hub_client import Asset, Release


def make_manifest(pkg_id="com.example.tool", version="1.0.0", **extra):
    manifest = {
        "name": pkg_id,
        "version": version,
        "displayName": "Example Tool",
        "description": "A tool for testing",
        "author": {"name": "Example Author", "url": "https://example.com"},
        "license": "MIT",
        "vpmDependencies": {},
    }
    manifest.update(extra)
    return manifest


def make_zip(manifest=None, files=None, manifest_name="package.json"):
    """Return zip bytes containing package.json (unless manifest is None)."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in (files or {}).items():
            zf.writestr(name, content)
        if manifest is not None:
            data = manifest if isinstance(manifest, (str, bytes)) else json.dumps(manifest)
            zf.writestr(manifest_name, data)
    return buf.getvalue()


def encrypt_flag(zip_bytes):
    """Set the 'encrypted' flag bit on every entry of a zip, without encrypting."""
    data = bytearray(zip_bytes)
    # local file headers: flags at +6; central directory headers: flags at +8
    for signature, offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        pos = data.find(signature)
        while pos != -1:
            data[pos + offset] |= 0x1
            pos = data.find(signature, pos + 4)
    return bytes(data)


class FakeHttp:
    """In-memory replacement for HttpClient.get()."""

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self._lock = threading.Lock()

    def get(self, url, accept=None, authenticated=False):
        with self._lock:
            self.calls.append(url)
        response = self.responses.get(url)
        if response is None:
            raise TransportFailure(f"HTTP 404 for {url}", url=url, status=404)
        if isinstance(response, Exception):
            raise response
        return response

    def get_json(self, url, authenticated=False):
        return json.loads(self.get(url, accept="application/json",
                                   authenticated=authenticated))


class FakeGitHub:
    """In-memory replacement for GitHubClient.get_releases()."""

    def __init__(self, repos=None):
        self.repos = dict(repos or {})
        self.calls = []

    def get_releases(self, owner, repo):
        key = f"{owner}/{repo}"
        self.calls.append(key)
        releases = self.repos.get(key)
        if releases is None:
            raise TransportFailure(f"HTTP 404 for {key}", status=404)
        return releases


def release(name, *assets):
    """Build a Release from (asset name, download url) pairs."""
    return Release(name=name, tag=name,
                   assets=tuple(Asset(name=n, download_url=u) for n, u in assets))


@pytest.fixture
def write_source(tmp_path):
    """Write a source.json into tmp_path and return its path."""
    def _write(data):
        path = tmp_path / "source.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        return path
    return _write


@pytest.fixture
def source_data():
    return {
        "name": "Example Listing",
        "id": "com.example.listing",
        "author": {"name": "Example Author", "url": "https://example.com",
                   "email": "author@example.com"},
        "url": "https://example.github.io/listing/index.json",
        "description": "Packages for testing",
        "bannerUrl": "banner.png",
        "infoLink": {"text": "Docs", "url": "https://example.com/docs"},
        "packages": [],
        "githubRepos": [],
    }
