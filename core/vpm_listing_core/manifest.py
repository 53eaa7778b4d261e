"""
manifest.py — package.json parsing, identity checks and version ordering.

A PackageDescriptor is what a package archive says about itself. It is
built from the archive's package.json by validate_manifest(), which also
cross-checks any id/version the listing source declared for the archive.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import IdentityMismatch, MalformedManifest

logger = logging.getLogger(__name__)

# Dependency markers used to categorise packages for the website
AVATAR_PACKAGE = "com.vrchat.avatars"
WORLD_PACKAGE = "com.vrchat.worlds"

SEMVER_RE = re.compile(
    r"^(\d+)\.(\d+)\.(\d+)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)


def parse_semver(version):
    """Parse a semantic version into a sortable key.

    Release versions sort after their pre-releases; pre-release identifiers
    compare numerically when numeric, lexically otherwise, and numeric
    identifiers sort before alphanumeric ones. Build metadata is ignored.

    Raises:
        ValueError: If the string is not a semantic version.
    """
    m = SEMVER_RE.match(version.strip()) if isinstance(version, str) else None
    if not m:
        raise ValueError(f"Invalid semantic version: {version!r}")
    major, minor, patch = int(m.group(1)), int(m.group(2)), int(m.group(3))
    pre = m.group(4)
    if pre is None:
        return (major, minor, patch, 1, ())
    idents = []
    for part in pre.split("."):
        if part.isdigit():
            idents.append((0, int(part), ""))
        else:
            idents.append((1, 0, part))
    return (major, minor, patch, 0, tuple(idents))


class Author(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


class PackageDescriptor(BaseModel):
    """Validated package metadata extracted from an archive.

    Python attribute names follow this project; the JSON aliases are the
    package.json / listing field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(alias="name")
    version: str
    display_name: Optional[str] = Field(None, alias="displayName")
    description: Optional[str] = None
    author: Optional[Author] = None
    license: Optional[str] = None
    license_url: Optional[str] = Field(None, alias="licensesUrl")
    keywords: list[str] = Field(default_factory=list)
    unity: Optional[str] = None
    unity_release: Optional[str] = Field(None, alias="unityRelease")
    changelog_url: Optional[str] = Field(None, alias="changelogUrl")
    documentation_url: Optional[str] = Field(None, alias="documentationUrl")
    dependencies: dict[str, str] = Field(default_factory=dict, alias="vpmDependencies")
    unity_dependencies: dict[str, str] = Field(default_factory=dict, alias="dependencies")
    legacy_folders: Optional[dict[str, Any]] = Field(None, alias="legacyFolders")
    legacy_files: Optional[dict[str, Any]] = Field(None, alias="legacyFiles")
    archive_url: Optional[str] = Field(None, alias="url")
    content_hash: Optional[str] = Field(None, alias="zipSHA256")

    @field_validator("id", "version", mode="before")
    @classmethod
    def _required_text(cls, value):
        if not isinstance(value, str) or not value.strip():
            raise ValueError("must be a non-empty string")
        return value.strip()

    @field_validator("version")
    @classmethod
    def _semver(cls, value):
        parse_semver(value)
        return value

    @field_validator("author", mode="before")
    @classmethod
    def _author_string(cls, value):
        # UPM allows "author": "Name" as well as an object
        if isinstance(value, str):
            return {"name": value}
        return value

    @field_validator("keywords", "dependencies", "unity_dependencies", mode="before")
    @classmethod
    def _null_collections(cls, value, info):
        if value is None:
            return [] if info.field_name == "keywords" else {}
        return value

    @property
    def identity(self):
        """(id, version) without build metadata, so 1.0.0+a and 1.0.0+b collide."""
        return (self.id, self.version.split("+", 1)[0])

    def with_archive(self, archive_url, content_hash):
        """Return a copy pointing at the archive it was extracted from."""
        return self.model_copy(update={
            "archive_url": archive_url,
            "content_hash": content_hash,
        })

    def to_entry(self):
        """Serialise as a listing version entry (JSON field names)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _summarize(exc):
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)


def validate_manifest(raw, declared_id=None, declared_version=None):
    """Parse package.json bytes and enforce the declared identity.

    Args:
        raw: Bytes of the package.json entry.
        declared_id: Package id the listing source expects, or None.
        declared_version: Version the listing source expects, or None.

    Returns:
        PackageDescriptor (without archive_url / content_hash).

    Raises:
        MalformedManifest: Unparsable JSON or missing/invalid id or version.
        IdentityMismatch: Declared id or version differs from the manifest.
    """
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedManifest(f"package.json is not valid UTF-8: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedManifest(f"Invalid package.json: {e}") from e
    if not isinstance(data, dict):
        raise MalformedManifest("package.json must contain a JSON object")

    try:
        descriptor = PackageDescriptor.model_validate(data)
    except ValidationError as e:
        raise MalformedManifest(f"Invalid package.json: {_summarize(e)}") from e

    if declared_id and descriptor.id != declared_id:
        raise IdentityMismatch("id", declared_id, descriptor.id)
    if declared_version and descriptor.version != declared_version:
        raise IdentityMismatch("version", declared_version, descriptor.version)
    return descriptor


def package_type(descriptor):
    """Categorise a package as 'Avatar', 'World' or 'Any'.

    A package depending on the avatars SDK is an Avatar package even if it
    also depends on the worlds SDK.
    """
    deps = descriptor.dependencies or {}
    if AVATAR_PACKAGE in deps:
        return "Avatar"
    if WORLD_PACKAGE in deps:
        return "World"
    return "Any"
