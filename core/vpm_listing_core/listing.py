"""
listing.py — the listing source document and the previously published index.

Release references have been written two ways over time: a bare archive
URL string, or an object {"url": ..., "version": ...}. Both are normalised
to ReleaseRef here so nothing downstream looks at the raw JSON shape.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ConfigError
from .manifest import PackageDescriptor

logger = logging.getLogger(__name__)


class ListingAuthor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    url: str = ""
    email: str = ""


class InfoLink(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    text: Optional[str] = None
    url: Optional[str] = None


class ReleaseRef(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    url: str
    version: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _from_bare_url(cls, value):
        if isinstance(value, str):
            return {"url": value}
        return value


class PackageInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    releases: list[ReleaseRef] = Field(default_factory=list)


class ListingSource(BaseModel):
    """Declarative description of a listing (source.json)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = ""
    id: str = ""
    author: ListingAuthor = Field(default_factory=ListingAuthor)
    url: str = ""
    description: str = ""
    banner_url: Optional[str] = Field(None, alias="bannerUrl")
    info_link: Optional[InfoLink] = Field(None, alias="infoLink")
    packages: list[PackageInfo] = Field(default_factory=list)
    github_repos: list[str] = Field(default_factory=list, alias="githubRepos")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, value):
        # source.json files in the wild carry "packages": null etc.
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if v is not None}
        return value


def parse_listing_source(data):
    """Validate a parsed source.json dict.

    Raises:
        ConfigError: The document does not match the listing source schema.
    """
    try:
        return ListingSource.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid listing source: {e}") from e


def load_listing_source(path):
    """Load and validate a listing source file.

    Raises:
        ConfigError: File missing, unreadable, not JSON, or invalid.
    """
    if not os.path.isfile(path):
        raise ConfigError(f"Listing source not found: {path}")
    try:
        with open(path, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read listing source {path}: {e}") from e
    source = parse_listing_source(data)
    logger.info("Loaded listing source %s (%d package(s), %d repo(s))",
                path, len(source.packages), len(source.github_repos))
    return source


class ExistingIndex:
    """The previously published index, used as a read-only skip list."""

    def __init__(self, descriptors=()):
        self._descriptors = tuple(descriptors)
        self.urls = frozenset(d.archive_url for d in self._descriptors
                              if d.archive_url)
        self.identities = frozenset(d.identity for d in self._descriptors)

    @classmethod
    def empty(cls):
        return cls(())

    @property
    def descriptors(self):
        return self._descriptors

    def __len__(self):
        return len(self._descriptors)


def parse_existing_index(document):
    """Build an ExistingIndex from a published listing document.

    The document layout is {"packages": {id: {"versions": {ver: entry}}}}.

    Raises:
        ConfigError: The document or one of its entries is invalid.
    """
    if not isinstance(document, dict):
        raise ConfigError("Existing index must be a JSON object")
    packages = document.get("packages") or {}
    if not isinstance(packages, dict):
        raise ConfigError("Existing index 'packages' must be an object")

    descriptors = []
    for pkg_id, pkg_data in packages.items():
        versions = (pkg_data or {}).get("versions") or {}
        if not isinstance(versions, dict):
            raise ConfigError(f"Existing index entry {pkg_id} has invalid versions")
        for version, entry in versions.items():
            try:
                descriptors.append(PackageDescriptor.model_validate(entry))
            except ValidationError as e:
                raise ConfigError(
                    f"Existing index entry {pkg_id} {version} is invalid: {e}") from e

    logger.info("Existing index has %d version(s)", len(descriptors))
    return ExistingIndex(descriptors)


def load_existing_index(path):
    """Load an existing index from a local file; missing file means empty."""
    if not os.path.isfile(path):
        logger.info("No existing index at %s, starting fresh", path)
        return ExistingIndex.empty()
    try:
        with open(path, encoding="utf-8-sig") as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read existing index {path}: {e}") from e
    return parse_existing_index(document)
