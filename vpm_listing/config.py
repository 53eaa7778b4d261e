"""
config.py — run settings for a listing build.

Precedence: explicit overrides (CLI arguments) > environment variables >
defaults. A settings object is created once per run and passed down; the
HTTP and GitHub clients are built from it.

Environment variables:
    VPM_SOURCE            — Path to source.json (default: ./source.json)
    VPM_OUTPUT_DIR        — Publish directory (default: ./docs)
    VPM_EXISTING_INDEX    — Path or URL of the previously published index.json
    VPM_WEBSITE_DIR       — Website template directory (default: <source dir>/Website)
    VPM_PACKAGE_MANIFEST  — package.json used when source.json is missing
    VPM_LISTING_ID / VPM_LISTING_NAME / VPM_LISTING_URL — listing overrides
    VPM_MAX_WORKERS       — Concurrent downloads (default: 8, max 16)
    VPM_TIMEOUT           — HTTP timeout in seconds (default: 60)
    VPM_USER_AGENT        — HTTP User-Agent (default: VCCBootstrap/1.0)
    VPM_LOG_LEVEL         — Log level (default: info)
    GITHUB_TOKEN          — API token, only used for server builds
    GITHUB_REPOSITORY     — owner/name of the repository hosting the listing
    GITHUB_ACTIONS        — "true" marks a server build
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from vpm_listing_core.hub_client import DEFAULT_USER_AGENT, GitHubClient, HttpClient
from vpm_listing_core.reconcile import DEFAULT_MAX_WORKERS, MAX_WORKERS_LIMIT

INDEX_FILENAME = "index.json"

_ENV = {
    "source_path": "VPM_SOURCE",
    "output_dir": "VPM_OUTPUT_DIR",
    "existing_index": "VPM_EXISTING_INDEX",
    "website_dir": "VPM_WEBSITE_DIR",
    "package_manifest": "VPM_PACKAGE_MANIFEST",
    "listing_id": "VPM_LISTING_ID",
    "listing_name": "VPM_LISTING_NAME",
    "listing_url": "VPM_LISTING_URL",
    "max_workers": "VPM_MAX_WORKERS",
    "timeout": "VPM_TIMEOUT",
    "user_agent": "VPM_USER_AGENT",
    "log_level": "VPM_LOG_LEVEL",
    "github_token": "GITHUB_TOKEN",
    "repository": "GITHUB_REPOSITORY",
}


class BuildSettings(BaseModel):
    source_path: str = "source.json"
    output_dir: str = "docs"
    existing_index: Optional[str] = None
    website_dir: Optional[str] = None
    package_manifest: Optional[str] = None
    listing_id: Optional[str] = None
    listing_name: Optional[str] = None
    listing_url: Optional[str] = None
    max_workers: int = Field(DEFAULT_MAX_WORKERS, ge=1, le=MAX_WORKERS_LIMIT)
    timeout: float = Field(60, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "info"
    github_token: Optional[str] = None
    repository: Optional[str] = None
    server_build: bool = False

    @field_validator("max_workers", mode="before")
    @classmethod
    def _clamp_workers(cls, value):
        try:
            value = int(value)
        except (TypeError, ValueError):
            return value
        return max(1, min(value, MAX_WORKERS_LIMIT))

    @classmethod
    def from_env(cls, environ=None, **overrides):
        """Build settings from environment variables plus explicit overrides.

        Overrides whose value is None are ignored so argparse defaults do
        not mask the environment.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name, var in _ENV.items():
            raw = environ.get(var, "").strip()
            if raw:
                values[name] = raw
        values["server_build"] = environ.get("GITHUB_ACTIONS", "").lower() == "true"
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    # -- derived values -----------------------------------------------------

    @property
    def repository_parts(self):
        """(owner, name) of GITHUB_REPOSITORY, or (None, None)."""
        if self.repository and self.repository.count("/") == 1:
            owner, name = self.repository.split("/")
            if owner and name:
                return owner, name
        return None, None

    @property
    def published_index_url(self):
        """https://{owner}.github.io/{repo}/index.json, when the repo is known."""
        owner, name = self.repository_parts
        if not owner:
            return None
        return f"https://{owner}.github.io/{name}/{INDEX_FILENAME}"

    @property
    def index_path(self):
        return os.path.join(self.output_dir, INDEX_FILENAME)

    @property
    def existing_index_location(self):
        """Where to read the previous index from (path or URL)."""
        if self.existing_index:
            return self.existing_index
        if self.server_build and self.published_index_url:
            return self.published_index_url
        return self.index_path

    @property
    def resolved_website_dir(self):
        if self.website_dir:
            return self.website_dir
        source_dir = os.path.dirname(os.path.abspath(self.source_path))
        return os.path.join(source_dir, "Website")

    @property
    def token(self):
        """API token for server builds; local builds run unauthenticated."""
        return self.github_token if self.server_build else None

    def make_http_client(self):
        return HttpClient(user_agent=self.user_agent, token=self.token,
                          timeout=self.timeout)

    def make_github_client(self, http):
        return GitHubClient(http)
