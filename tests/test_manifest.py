"""
Tests for vpm_listing_core.manifest — validation, identity checks, semver.
"""

import json

import pytest

from vpm_listing_core.errors import IdentityMismatch, MalformedManifest, ManifestError
from vpm_listing_core.manifest import (
    PackageDescriptor, package_type, parse_semver, validate_manifest,
)

from conftest import make_manifest


def _raw(data):
    return json.dumps(data).encode("utf-8")


class TestValidateManifest:
    def test_valid_manifest(self):
        d = validate_manifest(_raw(make_manifest(
            "com.example.tool", "1.2.3",
            keywords=["tools"], licensesUrl="https://example.com/license",
            vpmDependencies={"com.vrchat.base": ">=3.0.0"})))
        assert d.id == "com.example.tool"
        assert d.version == "1.2.3"
        assert d.display_name == "Example Tool"
        assert d.author.name == "Example Author"
        assert d.license_url == "https://example.com/license"
        assert d.keywords == ["tools"]
        assert d.dependencies == {"com.vrchat.base": ">=3.0.0"}
        assert d.identity == ("com.example.tool", "1.2.3")
        assert d.archive_url is None
        assert d.content_hash is None

    def test_utf8_bom_accepted(self):
        raw = b"\xef\xbb\xbf" + _raw(make_manifest())
        assert validate_manifest(raw).id == "com.example.tool"

    def test_unknown_fields_ignored(self):
        d = validate_manifest(_raw(make_manifest(futureField={"x": 1})))
        assert not hasattr(d, "futureField")

    def test_author_string_accepted(self):
        d = validate_manifest(_raw(make_manifest(author="Someone")))
        assert d.author.name == "Someone"

    def test_null_collections_become_empty(self):
        d = validate_manifest(_raw(make_manifest(keywords=None, vpmDependencies=None)))
        assert d.keywords == []
        assert d.dependencies == {}

    def test_unity_dependencies_kept_separately(self):
        d = validate_manifest(_raw(make_manifest(
            dependencies={"com.unity.timeline": "1.0.0"})))
        assert d.unity_dependencies == {"com.unity.timeline": "1.0.0"}
        assert d.dependencies == {}

    @pytest.mark.parametrize("field", ["name", "version"])
    def test_missing_required_field(self, field):
        data = make_manifest()
        del data[field]
        with pytest.raises(MalformedManifest, match=field):
            validate_manifest(_raw(data))

    @pytest.mark.parametrize("field", ["name", "version"])
    def test_empty_required_field(self, field):
        data = make_manifest()
        data[field] = "  "
        with pytest.raises(MalformedManifest):
            validate_manifest(_raw(data))

    def test_invalid_semver(self):
        with pytest.raises(MalformedManifest, match="semantic version"):
            validate_manifest(_raw(make_manifest(version="1.0")))

    def test_invalid_json(self):
        with pytest.raises(MalformedManifest, match="Invalid package.json"):
            validate_manifest(b"{not json")

    def test_non_object_json(self):
        with pytest.raises(MalformedManifest, match="JSON object"):
            validate_manifest(b"[1, 2, 3]")

    def test_not_utf8(self):
        with pytest.raises(MalformedManifest, match="UTF-8"):
            validate_manifest(b"\xff\xfe\x00garbage")

    def test_declared_id_matches(self):
        d = validate_manifest(_raw(make_manifest("a", "1.0.0")), declared_id="a",
                              declared_version="1.0.0")
        assert d.identity == ("a", "1.0.0")

    def test_declared_id_mismatch(self):
        with pytest.raises(IdentityMismatch) as exc_info:
            validate_manifest(_raw(make_manifest("a", "1.0.0")), declared_id="b")
        assert exc_info.value.field == "id"
        assert exc_info.value.declared == "b"
        assert exc_info.value.actual == "a"

    def test_declared_version_mismatch(self):
        with pytest.raises(IdentityMismatch, match="version"):
            validate_manifest(_raw(make_manifest("a", "2.9.9")),
                              declared_id="a", declared_version="3.0.0")

    def test_no_declaration_trusts_archive(self):
        d = validate_manifest(_raw(make_manifest("p", "2.0.0")))
        assert d.identity == ("p", "2.0.0")


class TestDescriptor:
    def test_frozen(self):
        d = validate_manifest(_raw(make_manifest()))
        with pytest.raises(Exception):
            d.version = "9.9.9"

    def test_identity_ignores_build_metadata(self):
        d = validate_manifest(_raw(make_manifest("a", "1.0.0+build.7")))
        assert d.version == "1.0.0+build.7"
        assert d.identity == ("a", "1.0.0")

    def test_with_archive_returns_copy(self):
        d = validate_manifest(_raw(make_manifest()))
        attached = d.with_archive("https://example.com/a.zip", "ab" * 32)
        assert attached.archive_url == "https://example.com/a.zip"
        assert attached.content_hash == "ab" * 32
        assert d.archive_url is None

    def test_to_entry_uses_listing_field_names(self):
        d = validate_manifest(_raw(make_manifest(licensesUrl="https://l"))).with_archive(
            "https://example.com/a.zip", "00" * 32)
        entry = d.to_entry()
        assert entry["name"] == "com.example.tool"
        assert entry["url"] == "https://example.com/a.zip"
        assert entry["zipSHA256"] == "00" * 32
        assert entry["licensesUrl"] == "https://l"
        assert entry["vpmDependencies"] == {}
        assert "unity" not in entry  # None omitted

    def test_entry_round_trip(self):
        d = validate_manifest(_raw(make_manifest())).with_archive("https://x/a.zip", "11" * 32)
        again = PackageDescriptor.model_validate(d.to_entry())
        assert again == d


class TestParseSemver:
    def test_numeric_ordering(self):
        assert parse_semver("1.10.0") > parse_semver("1.9.0")
        assert parse_semver("2.0.0") > parse_semver("1.99.99")

    def test_prerelease_before_release(self):
        assert parse_semver("1.0.0-beta") < parse_semver("1.0.0")
        assert parse_semver("0.9.9-beta") < parse_semver("1.0.0")

    def test_prerelease_identifiers(self):
        ordered = ["1.0.0-alpha", "1.0.0-alpha.1", "1.0.0-alpha.beta",
                   "1.0.0-beta", "1.0.0-beta.2", "1.0.0-beta.11",
                   "1.0.0-rc.1", "1.0.0"]
        keys = [parse_semver(v) for v in ordered]
        assert keys == sorted(keys)

    def test_build_metadata_ignored(self):
        assert parse_semver("1.0.0+build.5") == parse_semver("1.0.0")

    @pytest.mark.parametrize("bad", ["", "1", "1.0", "v1.0.0", "1.0.0.0", "a.b.c", None])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_semver(bad)


class TestPackageType:
    def _descriptor(self, deps):
        return validate_manifest(_raw(make_manifest(vpmDependencies=deps)))

    def test_avatar(self):
        assert package_type(self._descriptor({"com.vrchat.avatars": "3.0.0"})) == "Avatar"

    def test_world(self):
        assert package_type(self._descriptor({"com.vrchat.worlds": "3.0.0"})) == "World"

    def test_avatar_wins_over_world(self):
        deps = {"com.vrchat.worlds": "3.0.0", "com.vrchat.avatars": "3.0.0"}
        assert package_type(self._descriptor(deps)) == "Avatar"

    def test_default_any(self):
        assert package_type(self._descriptor({"com.vrchat.base": "3.0.0"})) == "Any"
        assert package_type(self._descriptor({})) == "Any"


def test_manifest_errors_share_base():
    assert issubclass(MalformedManifest, ManifestError)
    assert issubclass(IdentityMismatch, ManifestError)
